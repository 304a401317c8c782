from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import cv2
import numpy as np
from PIL import Image, ImageEnhance

from .job import JobPaths
from .types import OCRResult, Page, Token
from .utils import load_json, write_json

logger = logging.getLogger(__name__)


def _poly_to_xywh(poly: list[list[float]] | list[tuple[float, float]]) -> tuple[int, int, int, int]:
    xs = [p[0] for p in poly]
    ys = [p[1] for p in poly]
    x0, y0, x1, y1 = min(xs), min(ys), max(xs), max(ys)
    return int(x0), int(y0), int(x1 - x0), int(y1 - y0)


def tokens_from_payload(payload: Any, page_number: int | None = None) -> tuple[Token, ...]:
    """Read words from an OCR payload: ``{"words": [...]}`` or a bare list of word dicts."""
    if isinstance(payload, dict):
        words = payload.get("words", payload.get("tokens", []))
    else:
        words = payload
    tokens = []
    for w in words or []:
        if isinstance(w, dict) and str(w.get("text") or "").strip():
            tokens.append(Token.from_dict(w, page_number=page_number))
    return tuple(tokens)


@dataclass
class JsonTokenReader:
    """OCR collaborator backed by pre-computed OCR JSON files, one per page."""

    paths: JobPaths | None = None

    def extract(self, page: Page) -> OCRResult:
        if not page.image_path:
            raise FileNotFoundError(f"No OCR JSON for {page.page_id}")
        data = load_json(page.image_path)
        size = data.get("page", {}) if isinstance(data, dict) else {}
        result = OCRResult(
            words=tokens_from_payload(data, page_number=page.page_number),
            width=int(size.get("width", 0) or 0),
            height=int(size.get("height", 0) or 0),
        )
        if self.paths is not None:
            write_json(
                self.paths.stage_ocr_dir / f"{page.page_id}.json",
                {"page_id": page.page_id, "words": [t.to_dict() for t in result.words]},
            )
        return result


@dataclass
class OCRExtractor:
    """OCR collaborator running EasyOCR (PaddleOCR fallback) on page images."""

    lang: str = "th,en"
    paths: JobPaths | None = None
    _ocr: Any | None = None
    _ocr_engine: str = "auto"  # auto, easyocr, paddleocr
    _use_preprocessing: bool = True
    _max_retries: int = 2

    def _preprocess_image(self, image: Image.Image) -> Image.Image:
        """Binarize, denoise and sharpen a faint scan before a second OCR attempt."""
        if not self._use_preprocessing:
            return image

        try:
            img_array = np.array(image.convert("RGB"))
            gray = cv2.cvtColor(img_array, cv2.COLOR_RGB2GRAY)

            binary = cv2.adaptiveThreshold(
                gray, 255,
                cv2.ADAPTIVE_THRESH_GAUSSIAN_C,
                cv2.THRESH_BINARY,
                11, 2,
            )
            denoised = cv2.fastNlMeansDenoising(binary, None, 10, 7, 21)
            kernel = np.array([[-1, -1, -1], [-1, 9, -1], [-1, -1, -1]])
            sharpened = cv2.filter2D(denoised, -1, kernel)

            processed = ImageEnhance.Contrast(Image.fromarray(sharpened)).enhance(1.5)
            return processed.convert("RGB")
        except Exception as e:
            logger.warning("Preprocessing failed, using original image: %s", e)
            return image

    def extract(self, page: Page) -> OCRResult:
        """Return the page's words.

        A first attempt runs on the raw image; if it yields nothing, a second
        runs on the preprocessed image. Engine errors on the last attempt propagate.
        """
        if not page.image_path:
            raise FileNotFoundError(f"No image for {page.page_id}")
        image = Image.open(page.image_path).convert("RGB")
        width, height = image.size

        tokens: list[Token] = []
        for attempt in range(self._max_retries):
            processed = image if attempt == 0 else self._preprocess_image(image)
            try:
                tokens = self._extract_with_engine(processed, page.page_number)
            except Exception as e:
                if attempt == self._max_retries - 1:
                    raise
                logger.warning("OCR attempt %d failed for %s: %s", attempt + 1, page.page_id, e)
                continue
            if tokens:
                break
            if attempt < self._max_retries - 1:
                time.sleep(0.1)

        if self.paths is not None:
            write_json(
                self.paths.stage_ocr_dir / f"{page.page_id}.json",
                {
                    "page_id": page.page_id,
                    "page": {"width": width, "height": height},
                    "words": [t.to_dict() for t in tokens],
                },
            )
        return OCRResult(words=tuple(tokens), width=width, height=height)

    def _extract_with_engine(self, image: Image.Image, page_number: int) -> list[Token]:
        if self._ocr_engine == "auto":
            try:
                return self._extract_easyocr(image, page_number)
            except ImportError:
                return self._extract_paddleocr(image, page_number)
        if self._ocr_engine == "easyocr":
            return self._extract_easyocr(image, page_number)
        if self._ocr_engine == "paddleocr":
            return self._extract_paddleocr(image, page_number)
        raise ValueError(f"Unknown OCR engine: {self._ocr_engine}")

    def _extract_easyocr(self, image: Image.Image, page_number: int) -> list[Token]:
        import easyocr

        if self._ocr is None or not isinstance(self._ocr, easyocr.Reader):
            langs = [lang.strip() for lang in self.lang.split(",") if lang.strip()]
            self._ocr = easyocr.Reader(langs, gpu=False)

        tokens = []
        for bbox, text, _confidence in self._ocr.readtext(np.array(image)):
            x, y, w, h = _poly_to_xywh(bbox)
            tokens.append(Token(text=str(text), x=x, y=y, w=w, h=h, page_number=page_number))
        return tokens

    def _extract_paddleocr(self, image: Image.Image, page_number: int) -> list[Token]:
        from paddleocr import PaddleOCR

        if self._ocr is None or not hasattr(self._ocr, "ocr"):
            lang = self.lang.split(",")[0].strip() or "th"
            self._ocr = PaddleOCR(use_angle_cls=True, lang=lang, show_log=False)

        arr = np.array(image)
        try:
            result = self._ocr.ocr(arr, cls=True)
        except TypeError:
            result = self._ocr.ocr(arr)

        tokens = []
        for line in result or []:
            for poly, (text, _score) in line or []:
                x, y, w, h = _poly_to_xywh(poly)
                tokens.append(Token(text=str(text), x=x, y=y, w=w, h=h, page_number=page_number))
        return tokens
