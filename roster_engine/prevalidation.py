"""Cheap local check run before any text is sent to an external normalizer.

Each signal adds to or subtracts from a score; pages scoring below the
threshold are not worth an external call.
"""

from __future__ import annotations

import re

from .types import PreValidationResult

DEFAULT_THRESHOLD = 4

_NAME_PREFIX = re.compile(r"(นาย|นาง|นางสาว|ด\.ช\.|ด\.ญ\.)")
_FULL_NAME = re.compile(r"[ก-๙]{2,}\s+[ก-๙]{2,}")
_THAI_WORD = re.compile(r"[ก-๙]{3,}")
_HOUSE_NUMBER = re.compile(r"\b\d+/?\d*\b", re.ASCII)
_ADDRESS_KEYWORD = re.compile(r"(บ้านเลขที่|หมู่|ตำบล|ต\.|อำเภอ|อ\.|จังหวัด|จ\.)")
_DIGIT = re.compile(r"\d", re.ASCII)
_WS = re.compile(r"\s+")


def count_fragmented_lines(text: str) -> int:
    return sum(1 for line in re.split(r"\r?\n", text) if len(line.strip()) == 1)


def pre_validate(text: str | None, threshold: int = DEFAULT_THRESHOLD) -> PreValidationResult:
    if not text or not text.strip():
        return PreValidationResult(should_extract_table=False, score=0, reasons=("Empty text",))

    score = 0
    reasons: list[str] = []

    # line structure is only visible before whitespace is normalized
    fragmented = count_fragmented_lines(text)
    if fragmented > 5:
        score -= 2
        reasons.append(f"Fragmented OCR detected ({fragmented} single-char lines)")

    normalized = _WS.sub(" ", text).strip()

    prefixes = _NAME_PREFIX.findall(normalized)
    if prefixes:
        score += 3
        reasons.append(f"Thai name prefixes detected ({len(prefixes)} times)")

    names = _FULL_NAME.findall(normalized)
    if len(names) >= 2:
        score += 3
        reasons.append(f"Thai full names detected ({len(names)} times)")
    elif len(names) == 1:
        score += 2
        reasons.append("Thai full names detected (1 time, partial)")

    words = _THAI_WORD.findall(normalized)
    if len(words) >= 3:
        score += 1
        reasons.append(f"Thai words detected ({len(words)} words, potential names)")

    house_numbers = _HOUSE_NUMBER.findall(normalized)
    if house_numbers:
        score += 2
        reasons.append(f"House numbers detected ({len(house_numbers)} times)")

    address_keywords = _ADDRESS_KEYWORD.findall(normalized)
    if address_keywords:
        score += 2
        reasons.append(f"Address keywords detected ({len(address_keywords)} times)")

    digit_ratio = len(_DIGIT.findall(normalized)) / len(normalized)
    if digit_ratio > 0.6:
        score -= 3
        reasons.append(f"Mostly numeric text ({round(digit_ratio * 100)}% digits)")

    should_extract = score >= threshold
    if not should_extract:
        reasons.append(f"Score {score} < {threshold}, skipping table extraction")

    return PreValidationResult(should_extract_table=should_extract, score=score, reasons=tuple(reasons))
