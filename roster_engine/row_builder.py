from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from .thai import numeric_token_count, thai_word_count
from .types import Row, Token


@dataclass(frozen=True)
class _RowAccumulator:
    """Open-row state threaded through the grouping pass."""

    anchor: float
    total: float
    count: int
    tokens: tuple[Token, ...]

    @classmethod
    def start(cls, token: Token, position: float) -> "_RowAccumulator":
        return cls(anchor=position, total=position, count=1, tokens=(token,))

    def absorb(self, token: Token, position: float, *, running_mean: bool) -> "_RowAccumulator":
        total = self.total + position
        count = self.count + 1
        anchor = total / count if running_mean else self.anchor
        return _RowAccumulator(anchor=anchor, total=total, count=count, tokens=self.tokens + (token,))


def average_height(tokens: Iterable[Token], default: float = 10.0) -> float:
    heights = [t.h for t in tokens if t.h > 0]
    if not heights:
        return float(default)
    return sum(heights) / len(heights)


def make_row(y_anchor: float, tokens: Iterable[Token]) -> Row:
    ordered = tuple(sorted(tokens, key=lambda t: t.x))
    text = " ".join(t.text.strip() for t in ordered if t.text.strip())
    return Row(
        y_anchor=y_anchor,
        tokens=ordered,
        text=text,
        thai_word_count=thai_word_count(text),
        numeric_token_count=numeric_token_count(text),
    )


def make_text_row(y_anchor: float, text: str) -> Row:
    return Row(
        y_anchor=y_anchor,
        tokens=(),
        text=text,
        thai_word_count=thai_word_count(text),
        numeric_token_count=numeric_token_count(text),
    )


@dataclass
class RowBuilder:
    rows_cfg: dict[str, Any]

    def __post_init__(self):
        self.tolerance_ratio = float(self.rows_cfg.get("y_tolerance_ratio", 0.8))
        self.default_height = float(self.rows_cfg.get("default_height", 10))
        self.anchor_mode = str(self.rows_cfg.get("anchor", "running_mean"))
        if self.anchor_mode not in ("running_mean", "first"):
            raise ValueError(f"Unknown row anchor mode: {self.anchor_mode}")

    def _position(self, token: Token) -> float:
        # running_mean anchors on vertical centers, first-token mode on top edges
        return token.center_y if self.anchor_mode == "running_mean" else token.y

    def y_tolerance(self, tokens: list[Token]) -> float:
        return average_height(tokens, self.default_height) * self.tolerance_ratio

    def build(self, tokens: Iterable[Token]) -> list[Row]:
        """Cluster one page's tokens into rows, top to bottom.

        Tokens are sorted by (vertical position, x), so the stream is monotone in
        y and rows come out with ascending anchors. A single pass then opens a
        new row whenever a token is farther than the tolerance from the open
        row's anchor; ``make_row`` orders each row left to right.
        """
        tokens = list(tokens)
        if not tokens:
            return []

        tol = self.y_tolerance(tokens)
        running_mean = self.anchor_mode == "running_mean"

        rows: list[Row] = []
        acc: _RowAccumulator | None = None
        for token in sorted(tokens, key=lambda t: (self._position(t), t.x)):
            pos = self._position(token)
            if acc is None:
                acc = _RowAccumulator.start(token, pos)
            elif abs(pos - acc.anchor) > tol:
                rows.append(make_row(acc.anchor, acc.tokens))
                acc = _RowAccumulator.start(token, pos)
            else:
                acc = acc.absorb(token, pos, running_mean=running_mean)

        if acc is not None:
            rows.append(make_row(acc.anchor, acc.tokens))
        return rows
