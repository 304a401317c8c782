from __future__ import annotations

import re

from .row_builder import make_text_row
from .types import Row

_THAI_DIGITS = str.maketrans("๐๑๒๓๔๕๖๗๘๙", "0123456789")
_ZERO_WIDTH = re.compile("[\\u200B-\\u200D\\uFEFF]")
_SINGLE_THAI = re.compile(r"^[ก-๙]$")
_HAS_THAI = re.compile(r"[ก-๙]")
_NAME_PREFIX = re.compile(r"^(นาย|นาง|นางสาว|ด\.ช\.|ด\.ญ\.|น\.ส\.|ว\.อ\.|อ\.|น\.)\s+")

_PAGE_FURNITURE = [
    re.compile(r"^หน้า\s*\d+\s*$", re.MULTILINE),
    re.compile(r"^\d+\s*$", re.MULTILINE),
    re.compile(r"^Page\s+\d+\s*$", re.MULTILINE | re.IGNORECASE),
]

_HOUSE_NUMBER_PATTERNS = [
    re.compile(r"\b(\d{1,3}/\d{1,3})\b", re.ASCII),
    re.compile(r"\b(\d{1,3}-\d{1,3})\b", re.ASCII),
    re.compile(r"\b(\d{1,3},\d{1,3})\b", re.ASCII),
    re.compile(r"\b(\d{1,3})\b", re.ASCII),
]


def normalize_text(text: str | None) -> str:
    """Normalize line endings, spacing, invisible characters and Thai digits."""
    if not text or not isinstance(text, str):
        return ""
    normalized = text.replace("\r\n", "\n").replace("\r", "\n")
    normalized = re.sub(r"[ \t]+", " ", normalized)
    normalized = re.sub(r"\n{3,}", "\n\n", normalized).strip()
    normalized = _ZERO_WIDTH.sub("", normalized)
    return normalized.translate(_THAI_DIGITS)


def cleanup_text(text: str | None) -> str:
    """Drop page-number lines left by the text layer or OCR."""
    if not text or not isinstance(text, str):
        return ""
    cleaned = text
    for p in _PAGE_FURNITURE:
        cleaned = p.sub("", cleaned)
    cleaned = re.sub(r"\n{4,}", "\n\n\n", cleaned)
    return cleaned.strip()


def normalize_and_cleanup(text: str | None) -> str:
    return cleanup_text(normalize_text(text))


def merge_single_characters(line: str) -> str:
    """Join runs of space-separated single Thai characters ("ส ม ช า ย" -> "สมชาย")."""
    tokens = line.split()
    out: list[str] = []
    i = 0
    while i < len(tokens):
        if _SINGLE_THAI.match(tokens[i]) and i + 1 < len(tokens) and _SINGLE_THAI.match(tokens[i + 1]):
            j = i
            merged = ""
            while j < len(tokens) and _SINGLE_THAI.match(tokens[j]):
                merged += tokens[j]
                j += 1
            out.append(merged)
            i = j
        else:
            out.append(tokens[i])
            i += 1
    return " ".join(out)


def detect_name(text: str | None) -> bool:
    if not text or len(text.strip()) < 6:
        return False
    trimmed = text.strip()
    if not _HAS_THAI.search(trimmed):
        return False

    if _NAME_PREFIX.match(trimmed):
        rest = _NAME_PREFIX.sub("", trimmed, count=1).strip()
        return len(rest) >= 3 and re.search(r"[ก-๙]{3,}", rest) is not None

    return len("".join(re.findall(r"[ก-๙]+", trimmed))) >= 6


def detect_house_number(text: str | None) -> str | None:
    if not text:
        return None
    for p in _HOUSE_NUMBER_PATTERNS:
        m = p.search(text)
        if m:
            return m.group(1)
    return None


def segment_lines(text: str) -> list[str]:
    """Group text lines into row texts.

    A line is appended to the open row until the following line looks like a
    new name; rows with neither Thai text nor a house number are dropped.
    """
    lines = [merge_single_characters(line.strip()) for line in text.split("\n")]
    lines = [line for line in lines if line]

    rows: list[str] = []
    buffer: list[str] = []
    for i, line in enumerate(lines):
        buffer.append(line)
        next_line = lines[i + 1] if i + 1 < len(lines) else ""
        if next_line and detect_name(next_line):
            rows.append(" ".join(buffer).strip())
            buffer = []
    if buffer:
        rows.append(" ".join(buffer).strip())

    return [r for r in rows if r and (_HAS_THAI.search(r) or detect_house_number(r) is not None)]


def rows_from_text(text: str) -> list[Row]:
    """Line-based counterpart of RowBuilder.build; the line index stands in for ``y``."""
    return [make_text_row(float(i), line) for i, line in enumerate(segment_lines(text))]
