from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .thai import HARD_HEADER_KEYWORDS
from .types import Row
from .utils import compile_patterns


@dataclass(frozen=True)
class FilterResult:
    kept: list[Row]
    dropped: list[tuple[Row, str]] = field(default_factory=list)


@dataclass
class RowNoiseFilter:
    noise_cfg: dict[str, Any]

    def __post_init__(self):
        """Compile patterns once on initialization."""
        keywords = self.noise_cfg.get("hard_header_keywords") or list(HARD_HEADER_KEYWORDS)
        self._keywords = [str(k) for k in keywords]
        self._drop_patterns = compile_patterns(list(self.noise_cfg.get("drop_patterns", [])))

    def drop_reason(self, row: Row) -> str | None:
        text = row.text.strip()
        upper = text.upper()

        for keyword in self._keywords:
            if keyword.upper() in upper:
                return f'Contains hard header keyword: "{keyword}"'

        if row.thai_word_count < 2 and row.numeric_token_count > row.thai_word_count:
            return (
                f"Thai words ({row.thai_word_count}) < 2 AND "
                f"numeric tokens ({row.numeric_token_count}) > Thai tokens"
            )

        if any(p.fullmatch(text) for p in self._drop_patterns):
            return "Matches drop pattern"

        return None

    def apply(self, rows: list[Row]) -> FilterResult:
        kept: list[Row] = []
        dropped: list[tuple[Row, str]] = []
        for row in rows:
            reason = self.drop_reason(row)
            if reason is None:
                kept.append(row)
            else:
                dropped.append((row, reason))
        return FilterResult(kept=kept, dropped=dropped)
