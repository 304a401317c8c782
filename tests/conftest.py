from __future__ import annotations

import time
from pathlib import Path
from typing import Any

import pytest

from roster_engine.config import EngineConfig
from roster_engine.types import OCRResult, Page, PageClassification, Token

REPO_ROOT = Path(__file__).resolve().parent.parent


def tok(text: str, x: float, y: float, w: float = 40, h: float = 10) -> Token:
    return Token(text=text, x=x, y=y, w=w, h=h)


def line_tokens(texts: list[str], y: float, h: float = 10) -> list[Token]:
    """Tokens laid out left to right on one printed line."""
    return [tok(t, x=i * 100, y=y, h=h) for i, t in enumerate(texts)]


def make_pages(n: int, image_paths: list[str] | None = None) -> list[Page]:
    return [
        Page(
            page_index=i,
            page_id=f"page_{i + 1:03d}",
            source_ref=f"test/{i + 1:03d}",
            image_path=image_paths[i] if image_paths else None,
        )
        for i in range(n)
    ]


class FakeOCR:
    """OCR collaborator keyed by page number; a value may be an exception to raise."""

    def __init__(self, pages: dict[int, Any], delay_s: float = 0.0):
        self.pages = pages
        self.delay_s = delay_s
        self.calls: list[int] = []

    def extract(self, page: Page) -> OCRResult:
        self.calls.append(page.page_number)
        if self.delay_s:
            time.sleep(self.delay_s)
        value = self.pages.get(page.page_number, [])
        if isinstance(value, Exception):
            raise value
        return OCRResult(words=tuple(value))


class FakeNormalizer:
    def __init__(self, replies: list[list[str]] | None = None, mapping: dict[str, str] | None = None):
        self.replies = list(replies or [])
        self.mapping = mapping or {}
        self.calls: list[list[str]] = []

    def normalize(self, lines: list[str], *, max_output_tokens: int, temperature: float) -> list[str]:
        self.calls.append(list(lines))
        if self.replies:
            return self.replies.pop(0)
        return [self.mapping.get(line, line) for line in lines]


class FakePageClassifier:
    """Classifies a page by the type name written into its image file."""

    def __init__(self):
        self.calls = 0
        self.mime_types: list[str] = []

    def classify(self, image_bytes: bytes, mime_type: str = "image/png") -> PageClassification:
        self.calls += 1
        self.mime_types.append(mime_type)
        return PageClassification(type=image_bytes.decode("utf-8").strip(), confidence=0.9)


@pytest.fixture
def cfg() -> EngineConfig:
    return EngineConfig()


@pytest.fixture
def person_page_tokens() -> list[Token]:
    """A header line, two person rows and an address continuation."""
    return (
        line_tokens(["ลำดับ", "ชื่อ-สกุล", "บ้านเลขที่"], y=0)
        + line_tokens(["1", "นายสมชาย", "ใจดี", "12/3"], y=40)
        + line_tokens(["2", "นางสมศรี", "มีสุข", "45"], y=80)
        + line_tokens(["ถนนสุขุมวิท", "99"], y=120)
    )
