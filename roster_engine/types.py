from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .errors import AllPagesFailed


@dataclass(frozen=True)
class Page:
    page_index: int  # 0-based
    page_id: str  # e.g. page_003
    source_ref: str  # e.g. roster_scans/003.png
    image_path: str | None = None  # absolute or cwd-relative path; None for token-only inputs

    @property
    def page_number(self) -> int:
        return self.page_index + 1


@dataclass(frozen=True)
class Token:
    text: str
    x: float
    y: float
    w: float
    h: float
    page_number: int | None = None

    @property
    def center_y(self) -> float:
        return self.y + self.h / 2.0

    @classmethod
    def from_dict(cls, d: dict[str, Any], page_number: int | None = None) -> "Token":
        return cls(
            text=str(d.get("text") or ""),
            x=float(d.get("x", 0) or 0),
            y=float(d.get("y", 0) or 0),
            w=float(d.get("w", 0) or 0),
            h=float(d.get("h", 0) or 0),
            page_number=d.get("pageNumber", d.get("page_number", page_number)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"text": self.text, "x": self.x, "y": self.y, "w": self.w, "h": self.h}


@dataclass(frozen=True)
class OCRResult:
    words: tuple[Token, ...]
    width: int = 0
    height: int = 0


@dataclass(frozen=True)
class Row:
    """One printed table line.

    ``tokens`` are sorted left to right and ``text`` is their space-joined text.
    Rows built from plain text lines carry no tokens.
    """

    y_anchor: float
    tokens: tuple[Token, ...]
    text: str
    thai_word_count: int
    numeric_token_count: int
    score: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "y_anchor": self.y_anchor,
            "text": self.text,
            "thai_word_count": self.thai_word_count,
            "numeric_token_count": self.numeric_token_count,
            "score": self.score,
        }


@dataclass(frozen=True)
class HeaderInfo:
    has_header: bool = False
    header_row_index: int | None = None
    column_index_by_field: dict[str, int] = field(default_factory=dict)

    @property
    def house_number_column(self) -> int | None:
        return self.column_index_by_field.get("house_number")

    def to_dict(self) -> dict[str, Any]:
        return {
            "has_header": self.has_header,
            "header_row_index": self.header_row_index,
            "columns": dict(self.column_index_by_field),
        }


RECORD_FIELDS = ("name", "address", "age", "zone", "province", "district", "sub_district", "village")


@dataclass(frozen=True)
class Record:
    name: str
    address: str | None = None
    age: None = None
    zone: None = None
    province: None = None
    district: None = None
    sub_district: None = None
    village: None = None

    def to_dict(self) -> dict[str, Any]:
        return {k: getattr(self, k) for k in RECORD_FIELDS}


@dataclass(frozen=True)
class PageResult:
    page_number: int
    records: tuple[Record, ...] = ()
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "page": self.page_number,
            "records": [r.to_dict() for r in self.records],
            "error": self.error,
        }


@dataclass(frozen=True)
class DocumentResult:
    request_id: str
    pages: tuple[PageResult, ...]
    records: tuple[Record, ...]
    logs: tuple[str, ...] = ()

    @property
    def all_pages_failed(self) -> bool:
        return bool(self.pages) and all(p.error is not None for p in self.pages)

    @property
    def success(self) -> bool:
        return not self.all_pages_failed

    @property
    def error(self) -> str | None:
        return "All pages failed to extract records" if self.all_pages_failed else None

    def raise_for_status(self) -> "DocumentResult":
        if self.all_pages_failed:
            raise AllPagesFailed(self)
        return self

    def to_dict(self) -> dict[str, Any]:
        return {
            "request_id": self.request_id,
            "success": self.success,
            "error": self.error,
            "pages": [p.to_dict() for p in self.pages],
            "records": [r.to_dict() for r in self.records],
            "logs": list(self.logs),
        }


@dataclass(frozen=True)
class PreValidationResult:
    should_extract_table: bool
    score: int
    reasons: tuple[str, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "should_extract_table": self.should_extract_table,
            "score": self.score,
            "reasons": list(self.reasons),
        }


PAGE_TYPES = ("DATA", "HEADER", "NOISE", "EMPTY")


@dataclass(frozen=True)
class PageClassification:
    type: str
    confidence: float
