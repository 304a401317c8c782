from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

from .thai import HONORIFIC_FRAGMENT, TRAILING_HOUSE_NUMBER
from .types import Row

DEFAULT_WEIGHTS = {
    "thai_words": 2,
    "honorific": 1,
    "trailing_number": 1,
    "long_text": 1,
}


@dataclass(frozen=True)
class Classification:
    person_rows: list[Row] = field(default_factory=list)
    uncertain_rows: list[Row] = field(default_factory=list)


@dataclass
class RowClassifier:
    """Additive score over simple row features; rows at or above the threshold are person rows."""

    classifier_cfg: dict[str, Any]

    def __post_init__(self):
        weights = dict(DEFAULT_WEIGHTS)
        weights.update({k: int(v) for k, v in (self.classifier_cfg.get("weights") or {}).items()})
        self.weights = weights
        self.threshold = int(self.classifier_cfg.get("threshold", 3))
        self.min_thai_words = int(self.classifier_cfg.get("min_thai_words", 3))
        self.long_text_length = int(self.classifier_cfg.get("long_text_length", 15))

    def score(self, row: Row) -> int:
        score = 0
        if row.thai_word_count >= self.min_thai_words:
            score += self.weights["thai_words"]
        if HONORIFIC_FRAGMENT.search(row.text):
            score += self.weights["honorific"]
        if TRAILING_HOUSE_NUMBER.search(row.text):
            score += self.weights["trailing_number"]
        if len(row.text) > self.long_text_length:
            score += self.weights["long_text"]
        return score

    def classify(self, rows: list[Row]) -> Classification:
        person: list[Row] = []
        uncertain: list[Row] = []
        for row in rows:
            scored = replace(row, score=self.score(row))
            if scored.score >= self.threshold:
                person.append(scored)
            else:
                uncertain.append(scored)
        return Classification(person_rows=person, uncertain_rows=uncertain)
