from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from .thai import HEADER_COLUMN_FAMILIES, HEADER_KEYWORDS, HOUSE_NUMBER_VALUE
from .types import HeaderInfo

_SEPARATOR_SPACING = re.compile(r"\s*([-/])\s*")


@dataclass
class HeaderLocator:
    header_cfg: dict[str, Any]

    def __post_init__(self):
        self.scan_rows = int(self.header_cfg.get("scan_rows", 5))
        self.min_keyword_hits = int(self.header_cfg.get("min_keyword_hits", 2))
        self.keywords = tuple(self.header_cfg.get("keywords") or HEADER_KEYWORDS)

    def locate(self, row_texts: list[str]) -> HeaderInfo:
        """Find a literal header row among the first rows and map its cells to token positions."""
        for i, text in enumerate(row_texts[: self.scan_rows]):
            hits = [kw for kw in self.keywords if kw in text]
            if len(hits) < self.min_keyword_hits:
                continue

            columns: dict[str, int] = {}
            for token_index, token in enumerate(text.split()):
                for field_name, needles in HEADER_COLUMN_FAMILIES.items():
                    if any(n in token for n in needles):
                        columns[field_name] = token_index
            return HeaderInfo(has_header=True, header_row_index=i, column_index_by_field=columns)

        return HeaderInfo()


def extract_house_number_by_column(row_text: str, column_index: int | None) -> str | None:
    """Return the house number found in the given whitespace column, or None."""
    if column_index is None or column_index < 0:
        return None
    tokens = row_text.split()
    if column_index >= len(tokens):
        return None
    candidate = tokens[column_index].strip()
    if not any(ch.isdigit() for ch in candidate):
        return None
    normalized = _SEPARATOR_SPACING.sub(r"\1", candidate)
    return normalized if HOUSE_NUMBER_VALUE.match(normalized) else None
