from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .types import DocumentResult


class RosterError(Exception):
    """Base class for roster_engine errors."""


class PageError(RosterError):
    """A failure scoped to one page. The message becomes PageResult.error."""

    stage = "page"


class NoTokensDetected(PageError):
    stage = "ocr"

    def __init__(self, message: str = "No OCR words detected"):
        super().__init__(message)


class NoPersonRowsDetected(PageError):
    stage = "classify"

    def __init__(self, message: str = "No person rows detected"):
        super().__init__(message)


class PageTimeout(PageError):
    stage = "timeout"


class PreValidationRejected(PageError):
    stage = "prevalidation"

    def __init__(self, score: int, reasons: list[str] | tuple[str, ...] = ()):
        self.score = score
        self.reasons = tuple(reasons)
        detail = "; ".join(self.reasons)
        super().__init__(f"Pre-validation rejected (score={score}): {detail}" if detail else f"Pre-validation rejected (score={score})")


class PageSkipped(PageError):
    stage = "page_classifier"

    def __init__(self, page_type: str):
        self.page_type = page_type
        super().__init__(f"skipped: {page_type}")


class RowExtractionFailure(RosterError):
    """Raised inside field extraction; always recovered by the extractor."""


class AllPagesFailed(RosterError):
    def __init__(self, result: "DocumentResult"):
        self.result = result
        super().__init__("All pages failed to extract records")
