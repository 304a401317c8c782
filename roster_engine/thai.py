"""Thai-script patterns and keyword sets shared by the pipeline stages.

Digits are matched as ASCII ``[0-9]`` on purpose: OCR output for these rosters
uses Arabic digits, and Thai digits are mapped to ASCII by the text normalizer.
"""

from __future__ import annotations

import re

THAI_RUN = re.compile(r"[\u0E00-\u0E7F]+")
THAI_WORD_FULL = re.compile(r"^[\u0E00-\u0E7F]+$")
# Word-boundary digit runs; ASCII word semantics so "นาย12" still yields "12".
NUMERIC_TOKEN = re.compile(r"\b[0-9]+\b", re.ASCII)

# Deliberately loose: single name-particle letters survive broken OCR.
HONORIFIC_FRAGMENT = re.compile(r"[นส]|นา|นาย|นาง")
TRAILING_HOUSE_NUMBER = re.compile(r"[0-9]+([/-][0-9]+)?\s*$")

TITLE_TOKEN = re.compile(r"^(นาย|นาง|น\.ส|น\.ส\.|อ\.)$")
GENDER_MARKERS = ("ช", "ญ", "ร")

LEADING_ORDINAL = re.compile(r"^[0-9]+([-\s][0-9]+)?\s*")
TRAILING_NUMBER = re.compile(r"\s+([0-9]+([/-][0-9]+)*)\s*$")
HOUSE_NUMBER_VALUE = re.compile(r"^[0-9]+([-/][0-9]+)*$")
DIGITS = re.compile(r"[0-9]+")
WHITESPACE = re.compile(r"\s+")

# Non-person text: a row containing one of these is an address continuation.
LOCALITY_KEYWORDS = ("ถนน", "ตลาด", "หมู่", "ตำบล", "อำเภอ", "จังหวัด")

# Administrative boilerplate that never appears on a person row.
HARD_HEADER_KEYWORDS = (
    "เลือกตั้ง",
    "ลายพิมพ์",
    "ประจําตัวประชาชน",
    "ประจำตัวประชาชน",
    "เลขหมาย",
    "PROCESS",
    "DATEMI",
)

HEADER_KEYWORDS = (
    "บ้านเลขที่",
    "เลขหมายประจำบ้าน",
    "เลขประจำบ้าน",
    "เลขประจำตัวประชาชน",
    "ชื่อ",
    "ชื่อ-สกุล",
    "ชื่อตัว",
    "ลำดับ",
    "ลำดับที่",
    "เพศ",
)

# field name -> substrings that identify its header cell
HEADER_COLUMN_FAMILIES: dict[str, tuple[str, ...]] = {
    "house_number": ("บ้าน", "เลขหมาย"),
    "citizen_id": ("ประชาชน",),
    "name": ("ชื่อ",),
    "gender": ("เพศ",),
    "order": ("ลำดับ",),
}


def thai_word_count(text: str) -> int:
    return len(THAI_RUN.findall(text))


def numeric_token_count(text: str) -> int:
    return len(NUMERIC_TOKEN.findall(text))


def collapse_whitespace(text: str) -> str:
    return WHITESPACE.sub(" ", text).strip()
