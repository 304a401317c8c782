from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any

from .errors import RowExtractionFailure
from .header import extract_house_number_by_column
from .thai import (
    DIGITS,
    GENDER_MARKERS,
    LEADING_ORDINAL,
    LOCALITY_KEYWORDS,
    THAI_WORD_FULL,
    TITLE_TOKEN,
    TRAILING_NUMBER,
    collapse_whitespace,
)
from .types import HeaderInfo, Record

logger = logging.getLogger(__name__)


def _strip_value(name: str, value: str) -> str:
    # "12/3" also matches "12 / 3", "12-3" and "12 3" left in the name
    parts = [re.escape(p) for p in re.split(r"[-/]", value) if p]
    pattern = r"[\s\-/]*".join(parts)
    return re.sub(rf"\s*(?<![0-9]){pattern}(?![0-9])\s*", " ", name).strip()


def _strip_gender_marker(name: str, markers: tuple[str, ...]) -> str:
    tokens = name.split()
    if len(tokens) > 1 and tokens[-1] in markers:
        return " ".join(tokens[:-1])
    return name


@dataclass
class NameNormalizer:
    """Second pass over an extracted name; ``normalize`` returns None for non-person text."""

    extractor_cfg: dict[str, Any]

    def __post_init__(self):
        self.locality_keywords = tuple(self.extractor_cfg.get("locality_keywords") or LOCALITY_KEYWORDS)
        self.gender_markers = tuple(self.extractor_cfg.get("gender_markers") or GENDER_MARKERS)
        self.min_name_length = int(self.extractor_cfg.get("min_name_length", 3))

    def normalize(self, name: str | None) -> str | None:
        if not name or not isinstance(name, str):
            return None

        cleaned = collapse_whitespace(name)
        cleaned = _strip_gender_marker(cleaned, self.gender_markers)

        if any(kw in cleaned for kw in self.locality_keywords):
            return None
        if len(cleaned) < self.min_name_length:
            return None
        return cleaned


@dataclass
class FieldExtractor:
    extractor_cfg: dict[str, Any]

    def __post_init__(self):
        self.gender_markers = tuple(self.extractor_cfg.get("gender_markers") or GENDER_MARKERS)
        self.name_normalizer = NameNormalizer(self.extractor_cfg)

    def split_fields(self, row_text: str, header: HeaderInfo) -> tuple[str, str | None]:
        """Split one row into (name candidate, house number)."""
        original = row_text.strip()
        name = LEADING_ORDINAL.sub("", original, count=1)
        address: str | None = None

        if header.has_header and header.house_number_column is not None:
            address = extract_house_number_by_column(original, header.house_number_column)
            if address:
                name = _strip_value(name, address)

        if address is None:
            m = TRAILING_NUMBER.search(name)
            if m:
                address = m.group(1)
                name = name[: m.start()].strip()

        name = name.strip()
        if not name:
            name = original
        return name, address

    def clean_name(self, name: str) -> str:
        cleaned = _strip_gender_marker(name.strip(), self.gender_markers)

        tokens = cleaned.split()
        if len(tokens) > 1:
            last = tokens[-1]
            # stray OCR bleed such as a digit or latin fragment
            if len(last) <= 2 and not TITLE_TOKEN.match(last) and not THAI_WORD_FULL.match(last):
                cleaned = " ".join(tokens[:-1])

        without_digits = collapse_whitespace(DIGITS.sub("", cleaned))
        return without_digits or cleaned

    def extract(self, row_text: str, header: HeaderInfo) -> Record:
        """Build a Record from one accepted row; never raises."""
        try:
            if not isinstance(row_text, str):
                raise RowExtractionFailure(f"row text is {type(row_text).__name__}, expected str")
            name, address = self.split_fields(row_text, header)
            return Record(name=self.clean_name(name), address=address)
        except Exception as e:
            logger.warning("Row extraction failed, using raw text as name: %s", e)
            return Record(name=str(row_text or "").strip(), address=None)

    def extract_person(self, row_text: str, header: HeaderInfo) -> Record | None:
        """Extract and normalize; None when the row does not name a person."""
        record = self.extract(row_text, header)
        name = self.name_normalizer.normalize(record.name)
        if name is None:
            return None
        return Record(name=name, address=record.address)
