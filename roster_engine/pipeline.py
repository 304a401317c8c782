from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Iterable, Protocol

from .classifier import RowClassifier
from .config import EngineConfig
from .errors import NoPersonRowsDetected, NoTokensDetected, PageError, PageSkipped, PreValidationRejected
from .extractor import FieldExtractor
from .header import HeaderLocator
from .job import JobPaths, record_error
from .llm import FALLBACK_CLASSIFICATION, PageClassifier, RowNormalizer, image_mime_type, reconcile_lines
from .logs import RequestLog
from .noise_filter import RowNoiseFilter
from .page_provider import IMAGE_EXTS
from .prevalidation import DEFAULT_THRESHOLD, pre_validate
from .row_builder import RowBuilder
from .text_lines import normalize_and_cleanup, rows_from_text
from .types import DocumentResult, HeaderInfo, OCRResult, Page, PageClassification, PageResult, Record, Row
from .utils import call_with_timeout, write_json

logger = logging.getLogger(__name__)


class OCRSource(Protocol):
    def extract(self, page: Page) -> OCRResult: ...


def _new_metrics() -> dict[str, Any]:
    return {
        "pages_total": 0,
        "pages_processed": 0,
        "pages_failed": 0,
        "pages_skipped": 0,
        "records_total": 0,
        "rows_built": 0,
        "rows_dropped": 0,
        "person_rows": 0,
        "uncertain_rows": 0,
        "names_rejected": 0,
        "normalization_calls": 0,
        "normalization_skipped": 0,
        "normalization_fallbacks": 0,
    }


@dataclass
class PageTrace:
    """Page-local intermediate state, written to stage/rows/<page_id>.json."""

    page_id: str
    rows: list[Row] = field(default_factory=list)
    dropped: list[tuple[Row, str]] = field(default_factory=list)
    person_rows: list[Row] = field(default_factory=list)
    uncertain_rows: list[Row] = field(default_factory=list)
    row_texts: list[str] = field(default_factory=list)
    header: HeaderInfo = field(default_factory=HeaderInfo)
    records: list[Record] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "page_id": self.page_id,
            "rows": [r.to_dict() for r in self.rows],
            "dropped": [{"text": r.text, "reason": reason} for r, reason in self.dropped],
            "person_rows": [r.to_dict() for r in self.person_rows],
            "uncertain_rows": [r.to_dict() for r in self.uncertain_rows],
            "row_texts": list(self.row_texts),
            "header": self.header.to_dict(),
            "records": [r.to_dict() for r in self.records],
        }


class DocumentPipeline:
    """Runs the row pipeline over the pages of one document, strictly in order.

    Each page runs inside its own failure boundary: a page error (including a
    timed-out collaborator call) becomes that page's ``PageResult.error`` and
    the next page starts from fresh page-local state.
    """

    def __init__(
        self,
        cfg: EngineConfig,
        *,
        ocr: OCRSource | None = None,
        normalizer: RowNormalizer | None = None,
        page_classifier: PageClassifier | None = None,
        paths: JobPaths | None = None,
    ):
        self.cfg = cfg
        self.ocr = ocr
        self.normalizer = normalizer
        self.page_classifier = page_classifier
        self.paths = paths

        self.builder = RowBuilder(cfg.rows)
        self.noise_filter = RowNoiseFilter(cfg.noise_filter)
        self.classifier = RowClassifier(cfg.classifier)
        self.header_locator = HeaderLocator(cfg.header)
        self.extractor = FieldExtractor(cfg.extractor)

        pipeline_cfg = cfg.pipeline
        self.page_timeout_s = float(pipeline_cfg.get("page_timeout_s", 60))
        self.normalize_rows = bool(pipeline_cfg.get("normalize_rows", True))
        self.classify_pages = bool(pipeline_cfg.get("classify_pages", False))
        self.stop_after_empty_pages = int(pipeline_cfg.get("stop_after_empty_pages", 2))
        self.gate_threshold = int(cfg.prevalidation.get("threshold", DEFAULT_THRESHOLD))
        self.max_output_tokens = int(cfg.llm.get("max_output_tokens", 8192))
        self.temperature = float(cfg.llm.get("temperature", 0))

        self.metrics: dict[str, Any] = _new_metrics()

    # -------------------------
    # Document entry points
    # -------------------------

    def run(self, pages: Iterable[Page], log: RequestLog | None = None) -> DocumentResult:
        """Process OCR pages (images or pre-computed token JSON)."""
        if self.ocr is None:
            raise ValueError("DocumentPipeline.run requires an OCR source")
        log = log or RequestLog(logger)
        self.metrics = _new_metrics()

        results: list[PageResult] = []
        data_started = False
        empty_streak = 0
        stopped = False

        for page in pages:
            self.metrics["pages_total"] += 1
            if stopped:
                results.append(self._skipped(page, "skipped: processing stopped after EMPTY pages", log))
                continue

            classification = self._classify(page, log)
            if classification is not None:
                if classification.type == "DATA":
                    data_started = True
                    empty_streak = 0
                else:
                    empty_streak = empty_streak + 1 if classification.type == "EMPTY" else 0
                    if data_started and empty_streak >= self.stop_after_empty_pages:
                        log.info("STOP after page %d (%d consecutive EMPTY pages)", page.page_number, empty_streak)
                        stopped = True
                    results.append(self._skipped(page, str(PageSkipped(classification.type)), log))
                    continue

            results.append(self._run_page(page, lambda p=page: self.process_page(p, log), log))

        return self._finish(results, log)

    def run_text(self, page_texts: list[str], log: RequestLog | None = None) -> DocumentResult:
        """Process plain-text pages (text layer or OCR full text), one string per page."""
        log = log or RequestLog(logger)
        self.metrics = _new_metrics()

        cleaned = [normalize_and_cleanup(t) for t in page_texts]
        pages = [Page(page_index=i, page_id=f"page_{i + 1:03d}", source_ref=f"text#page={i + 1}") for i in range(len(cleaned))]
        self.metrics["pages_total"] = len(pages)

        verdict = pre_validate("\n".join(cleaned), self.gate_threshold)
        log.info("Pre-validation score=%d shouldExtractTable=%s", verdict.score, verdict.should_extract_table)
        if not verdict.should_extract_table:
            rejection = PreValidationRejected(verdict.score, verdict.reasons)
            results = []
            for page in pages:
                record_error(self.paths, page_id=page.page_id, stage=rejection.stage, message=str(rejection))
                results.append(PageResult(page_number=page.page_number, error=str(rejection)))
            self.metrics["pages_failed"] = len(pages)
            if self.normalizer is not None and self.normalize_rows:
                self.metrics["normalization_skipped"] += len(pages)
            return self._finish(results, log)

        results = [
            self._run_page(page, lambda p=page, t=text: self.process_text_page(p, t, log), log)
            for page, text in zip(pages, cleaned)
        ]
        return self._finish(results, log)

    # -------------------------
    # Per-page pipelines
    # -------------------------

    def process_page(self, page: Page, log: RequestLog) -> list[Record]:
        if self.ocr is None:
            raise ValueError("DocumentPipeline.process_page requires an OCR source")
        ocr_result = call_with_timeout(
            self.ocr.extract, self.page_timeout_s, page, label=f"Page {page.page_number} OCR"
        )
        if not ocr_result.words:
            raise NoTokensDetected()
        log.info("[PAGE %d] OCR words: %d", page.page_number, len(ocr_result.words))

        trace = PageTrace(page_id=page.page_id)
        trace.rows = self.builder.build(ocr_result.words)
        return self._rows_to_records(page, trace, log, gate=True)

    def process_text_page(self, page: Page, text: str, log: RequestLog) -> list[Record]:
        trace = PageTrace(page_id=page.page_id)
        trace.rows = rows_from_text(text)
        # the document-level gate already ran in run_text
        return self._rows_to_records(page, trace, log, gate=False)

    def _rows_to_records(self, page: Page, trace: PageTrace, log: RequestLog, *, gate: bool) -> list[Record]:
        n = page.page_number
        self.metrics["rows_built"] += len(trace.rows)

        filtered = self.noise_filter.apply(trace.rows)
        trace.dropped = filtered.dropped
        self.metrics["rows_dropped"] += len(filtered.dropped)
        for row, reason in filtered.dropped:
            log.debug('[PAGE %d] DROPPED row "%s" - %s', n, row.text[:50], reason)

        classification = self.classifier.classify(filtered.kept)
        trace.person_rows = classification.person_rows
        trace.uncertain_rows = classification.uncertain_rows
        self.metrics["person_rows"] += len(classification.person_rows)
        self.metrics["uncertain_rows"] += len(classification.uncertain_rows)
        log.info(
            "[PAGE %d] rows=%d candidates=%d person=%d uncertain=%d",
            n, len(trace.rows), len(filtered.kept), len(classification.person_rows), len(classification.uncertain_rows),
        )

        try:
            if not classification.person_rows:
                raise NoPersonRowsDetected()

            texts = [r.text for r in classification.person_rows]
            trace.row_texts = self._normalize(n, texts, log, gate=gate)

            trace.header = self.header_locator.locate(trace.row_texts)
            if trace.header.has_header:
                log.info("[PAGE %d] header at row %s columns=%s", n, trace.header.header_row_index, trace.header.column_index_by_field)

            for i, text in enumerate(trace.row_texts):
                if i == trace.header.header_row_index:
                    continue
                record = self.extractor.extract_person(text, trace.header)
                if record is None:
                    self.metrics["names_rejected"] += 1
                    log.debug('[PAGE %d] Discarded row "%s"', n, text)
                    continue
                trace.records.append(record)
        finally:
            if self.paths is not None:
                write_json(self.paths.stage_rows_dir / f"{page.page_id}.json", trace.to_dict())

        return trace.records

    def _normalize(self, page_number: int, texts: list[str], log: RequestLog, *, gate: bool) -> list[str]:
        if self.normalizer is None or not self.normalize_rows:
            return texts

        if gate:
            verdict = pre_validate("\n".join(texts), self.gate_threshold)
            if not verdict.should_extract_table:
                self.metrics["normalization_skipped"] += 1
                raise PreValidationRejected(verdict.score, verdict.reasons)

        self.metrics["normalization_calls"] += 1
        normalized = call_with_timeout(
            self.normalizer.normalize,
            self.page_timeout_s,
            texts,
            max_output_tokens=self.max_output_tokens,
            temperature=self.temperature,
            label=f"Page {page_number} normalization",
        )
        lines, used = reconcile_lines(texts, normalized)
        if not used:
            self.metrics["normalization_fallbacks"] += 1
            log.warning(
                "[PAGE %d] normalizer returned %d lines for %d rows, keeping original rows",
                page_number, len(normalized or []), len(texts),
            )
        return lines

    # -------------------------
    # Helpers
    # -------------------------

    def _classify(self, page: Page, log: RequestLog) -> PageClassification | None:
        if not self.classify_pages or self.page_classifier is None or not page.image_path:
            return None
        image_path = Path(page.image_path)
        if image_path.suffix.lower() not in IMAGE_EXTS:
            log.debug("[PAGE %d] not an image (%s), classification skipped", page.page_number, image_path.name)
            return None
        try:
            result = call_with_timeout(
                self.page_classifier.classify,
                self.page_timeout_s,
                image_path.read_bytes(),
                image_mime_type(image_path),
                label=f"Page {page.page_number} classification",
            )
        except Exception as e:
            log.warning("[PAGE %d] classification failed, fallback to DATA: %s", page.page_number, e)
            result = FALLBACK_CLASSIFICATION
        log.info("[PAGE %d] classified %s (%.2f)", page.page_number, result.type, result.confidence)
        return result

    def _run_page(self, page: Page, work, log: RequestLog) -> PageResult:
        log.info("[PAGE %d] START", page.page_number)
        try:
            records = work()
        except PageError as e:
            log.warning("[PAGE %d] %s", page.page_number, e)
            record_error(self.paths, page_id=page.page_id, stage=e.stage, message=str(e))
            self.metrics["pages_failed"] += 1
            return PageResult(page_number=page.page_number, error=str(e))
        except Exception as e:
            log.exception("[PAGE %d] ERROR: %s", page.page_number, e)
            record_error(self.paths, page_id=page.page_id, stage="page", message=str(e))
            self.metrics["pages_failed"] += 1
            return PageResult(page_number=page.page_number, error=str(e) or type(e).__name__)

        self.metrics["pages_processed"] += 1
        log.info("[PAGE %d] END - Records: %d", page.page_number, len(records))
        return PageResult(page_number=page.page_number, records=tuple(records))

    def _skipped(self, page: Page, reason: str, log: RequestLog) -> PageResult:
        log.info("[PAGE %d] %s", page.page_number, reason)
        self.metrics["pages_skipped"] += 1
        return PageResult(page_number=page.page_number, error=reason)

    def _finish(self, results: list[PageResult], log: RequestLog) -> DocumentResult:
        merged = tuple(r for page in results for r in page.records)
        self.metrics["records_total"] = len(merged)
        result = DocumentResult(request_id=log.request_id, pages=tuple(results), records=merged, logs=())
        if result.all_pages_failed:
            log.error("All pages failed to extract records (%d pages)", len(results))
        log.info("Document done: pages=%d records=%d", len(results), len(merged))
        return replace(result, logs=tuple(log.lines))
