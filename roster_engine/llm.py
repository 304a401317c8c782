"""External language-model collaborators.

Two narrow contracts are consumed by the pipeline:

- a row normalizer: ``normalize(lines, max_output_tokens=..., temperature=...)``
  returns one cleaned line per input line, same order;
- a page classifier: ``classify(image_bytes, mime_type)`` returns a PageClassification and
  never raises.

The OpenAI-backed implementations below satisfy both. Any object with the same
methods can be passed instead (tests use plain fakes).
"""

from __future__ import annotations

import base64
import json
import logging
import mimetypes
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from .types import PAGE_TYPES, PageClassification

logger = logging.getLogger(__name__)

FALLBACK_CLASSIFICATION = PageClassification(type="DATA", confidence=0.5)


class RowNormalizer(Protocol):
    def normalize(self, lines: list[str], *, max_output_tokens: int, temperature: float) -> list[str]: ...


class PageClassifier(Protocol):
    def classify(self, image_bytes: bytes, mime_type: str = "image/png") -> PageClassification: ...


# -------------------------
# Prompts
# -------------------------

def build_normalization_prompt(lines: list[str]) -> str:
    numbered = "\n".join(f'Row {i + 1}: "{line}"' for i, line in enumerate(lines))
    return f"""Normalize the following OCR text rows from a Thai civil registry list.

Rules (apply to EACH row independently):
1. Output exactly ONE line per input row.
2. Remove a "/" symbol at the very start of a row.
3. Keep all Thai characters and all numbers.
4. Do not drop house numbers, indexes or other symbols (except the leading "/").
5. You may join broken Thai syllables (e.g. "นั น" -> "นัน") and fix spacing.
6. Do not guess missing data, classify fields, merge rows or split rows.
7. Do not add or remove information.

INPUT ROWS:
{numbered}

Return ONLY the normalized row text, one row per line, in the same order as input.
No explanations. No markdown. No JSON."""


CLASSIFIER_PROMPT = """You are classifying a document page.

Classify this page into ONE of the following types:
- DATA: contains rows of people with name / house number
- HEADER: contains column titles only
- NOISE: instructions, notes, paragraphs
- EMPTY: blank or almost blank

Return JSON ONLY:
{"type": "DATA | HEADER | NOISE | EMPTY", "confidence": 0.0-1.0}

Rules:
- DATA must have at least 2 rows of people
- HEADER has column labels but no people
- If unsure, choose NOISE
- Do not extract data
- Do not explain"""


# -------------------------
# Response parsing
# -------------------------

_LINE_PREFIX = re.compile(r"^(?:Row\s*)?\d+\s*[.:)]\s*", re.IGNORECASE)


def parse_normalized_lines(response: str | None) -> list[str]:
    if not response or not isinstance(response, str):
        return []
    out = []
    for raw in response.split("\n"):
        line = raw.strip()
        if not line or line.startswith("```"):
            continue
        line = _LINE_PREFIX.sub("", line, count=1).strip()
        if len(line) >= 2 and line[0] == line[-1] and line[0] in "\"'":
            line = line[1:-1].strip()
        line = line.lstrip("/").strip()
        if line:
            out.append(line)
    return out


def reconcile_lines(original: list[str], normalized: list[str] | None) -> tuple[list[str], bool]:
    """Use the normalized lines only when they line up one-to-one with the originals."""
    if normalized is None or len(normalized) != len(original):
        return list(original), False
    return list(normalized), True


def parse_page_classification(response: str | None) -> PageClassification:
    """Parse a classifier reply; anything unusable maps to DATA at 0.5."""
    if not response or not isinstance(response, str):
        return FALLBACK_CLASSIFICATION

    text = response.strip()
    fenced = re.search(r"```(?:json)?\s*([\s\S]*?)\s*```", text)
    if fenced:
        text = fenced.group(1).strip()

    start, end = text.find("{"), text.rfind("}")
    if start == -1 or end <= start:
        return FALLBACK_CLASSIFICATION
    try:
        parsed = json.loads(text[start : end + 1])
    except json.JSONDecodeError:
        return FALLBACK_CLASSIFICATION

    page_type = parsed.get("type") if isinstance(parsed, dict) else None
    if page_type not in PAGE_TYPES:
        return FALLBACK_CLASSIFICATION
    confidence = parsed.get("confidence")
    if isinstance(confidence, (int, float)) and not isinstance(confidence, bool):
        confidence = max(0.0, min(1.0, float(confidence)))
    else:
        confidence = 0.5
    return PageClassification(type=page_type, confidence=confidence)


def image_to_data_url(image_bytes: bytes, mime_type: str = "image/png") -> str:
    return f"data:{mime_type};base64," + base64.b64encode(image_bytes).decode("ascii")


def image_mime_type(path: str | Path) -> str:
    mime_type, _ = mimetypes.guess_type(str(path))
    return mime_type or "image/png"


# -------------------------
# OpenAI client
# -------------------------

def get_client() -> Any:
    from dotenv import load_dotenv
    from openai import OpenAI

    load_dotenv()
    client = OpenAI()
    if not client.api_key:
        raise RuntimeError("You must set OPENAI_API_KEY environment variable")
    return client


def _is_retryable(message: str) -> bool:
    msg = message.lower()
    if "429" in msg or "rate limit" in msg or "too many requests" in msg:
        return True
    return any(kw in msg for kw in ["timeout", "temporarily unavailable", "try again", "server error"])


def chat_completion(
    client: Any,
    model: str,
    messages: list[dict[str, Any]],
    *,
    max_output_tokens: int,
    temperature: float,
    max_retries: int = 2,
    retry_sleep_s: float = 2.0,
) -> str:
    """One chat call with exponential backoff on rate limits and transient errors."""
    delay = retry_sleep_s
    for attempt in range(1, max_retries + 1):
        try:
            resp = client.chat.completions.create(
                model=model,
                temperature=temperature,
                max_tokens=max_output_tokens,
                messages=messages,
            )
            return (resp.choices[0].message.content or "").strip()
        except Exception as e:
            if attempt < max_retries and _is_retryable(str(e)):
                logger.warning("LLM attempt %d failed: %s; retrying in %.1fs", attempt, e, delay)
                time.sleep(delay)
                delay *= 2.0
                continue
            raise
    raise RuntimeError("Unreachable: exhausted retries in chat_completion")


@dataclass
class OpenAIRowNormalizer:
    llm_cfg: dict[str, Any]
    client: Any | None = None

    def __post_init__(self):
        self.model = str(self.llm_cfg.get("model", "gpt-4o-mini"))
        self.max_retries = int(self.llm_cfg.get("max_retries", 2))
        self.retry_sleep_s = float(self.llm_cfg.get("retry_sleep_s", 2.0))

    def normalize(self, lines: list[str], *, max_output_tokens: int, temperature: float) -> list[str]:
        if not lines:
            return []
        if self.client is None:
            self.client = get_client()
        reply = chat_completion(
            self.client,
            self.model,
            [{"role": "user", "content": build_normalization_prompt(lines)}],
            max_output_tokens=max_output_tokens,
            temperature=temperature,
            max_retries=self.max_retries,
            retry_sleep_s=self.retry_sleep_s,
        )
        return parse_normalized_lines(reply)


@dataclass
class OpenAIPageClassifier:
    llm_cfg: dict[str, Any]
    client: Any | None = None

    def __post_init__(self):
        self.model = str(self.llm_cfg.get("vision_model", self.llm_cfg.get("model", "gpt-4o-mini")))

    def classify(self, image_bytes: bytes, mime_type: str = "image/png") -> PageClassification:
        try:
            if self.client is None:
                self.client = get_client()
            reply = chat_completion(
                self.client,
                self.model,
                [
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": CLASSIFIER_PROMPT},
                            {"type": "image_url", "image_url": {"url": image_to_data_url(image_bytes, mime_type)}},
                        ],
                    }
                ],
                max_output_tokens=512,
                temperature=0,
                max_retries=1,
            )
        except Exception as e:
            logger.warning("Page classification failed, assuming DATA: %s", e)
            return FALLBACK_CLASSIFICATION
        return parse_page_classification(reply)
