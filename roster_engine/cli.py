from __future__ import annotations

import argparse
import logging
import os
from dataclasses import replace
from pathlib import Path
from typing import Any

from .config import EngineConfig, load_config
from .job import JobPaths, create_job_dirs, init_job_outputs, new_job_id, snapshot_input
from .llm import OpenAIPageClassifier, OpenAIRowNormalizer, get_client
from .logs import RequestLog
from .ocr import JsonTokenReader, OCRExtractor
from .page_provider import INPUT_TYPES, PageProvider
from .pipeline import DocumentPipeline
from .prevalidation import DEFAULT_THRESHOLD, pre_validate
from .types import RECORD_FIELDS, DocumentResult
from .utils import load_json
from .writer import JobWriter

logger = logging.getLogger("roster_engine")

PAGE_BREAK = "\f"


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="roster_engine")
    p.add_argument("--log-level", default=os.environ.get("LOG_LEVEL", "INFO"), help="Logging level")
    sub = p.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Extract person records from OCR pages")
    run.add_argument("--input", required=True, help="Input folder (page images or OCR token JSON)")
    run.add_argument("--type", required=True, choices=list(INPUT_TYPES), help="Input type")
    run.add_argument("--lang", default="th,en", help="OCR languages, comma separated (images only)")
    run.add_argument("--workspace", default="./workspace", help="Workspace root")
    run.add_argument("--config", default=str(Path("config") / "default.json"), help="Config path")
    run.add_argument("--no-normalize", action="store_true", help="Skip the language-model row normalization")
    run.add_argument("--classify-pages", action="store_true", help="Classify page images before extraction")

    run_text = sub.add_parser("run-text", help="Extract person records from plain text")
    run_text.add_argument("--input", required=True, help="Text file (pages separated by form feed) or folder of .txt pages")
    run_text.add_argument("--workspace", default="./workspace", help="Workspace root")
    run_text.add_argument("--config", default=str(Path("config") / "default.json"), help="Config path")
    run_text.add_argument("--no-normalize", action="store_true", help="Skip the language-model row normalization")

    pv = sub.add_parser("prevalidate", help="Score a text file with the table pre-validation gate")
    pv.add_argument("--input", required=True, help="Text file")
    pv.add_argument("--threshold", type=int, default=DEFAULT_THRESHOLD)

    validate = sub.add_parser("validate", help="Validate Output Contract of a finished job")
    validate.add_argument("--job-dir", required=True, help="Job directory (workspace/jobs/<job_id>)")

    return p


def _make_normalizer(cfg: EngineConfig, disabled: bool) -> OpenAIRowNormalizer | None:
    if disabled or not cfg.pipeline.get("normalize_rows", True):
        return None
    try:
        client = get_client()
    except (ImportError, RuntimeError) as e:
        logger.warning("Row normalization disabled: %s", e)
        return None
    return OpenAIRowNormalizer(cfg.llm, client=client)


def _read_text_pages(input_path: str | Path) -> list[str]:
    src = Path(input_path)
    if src.is_dir():
        return [p.read_text(encoding="utf-8") for p in sorted(src.glob("*.txt"))]
    return src.read_text(encoding="utf-8").split(PAGE_BREAK)


def _finish_job(
    paths: JobPaths,
    job_id: str,
    input_type: str,
    args: argparse.Namespace,
    pipeline: DocumentPipeline,
    result: DocumentResult,
) -> int:
    job_meta: dict[str, Any] = {
        "job_id": job_id,
        "request_id": result.request_id,
        "input": str(args.input),
        "input_type": input_type,
        "normalized": pipeline.normalizer is not None,
    }
    JobWriter(paths).write_final(job_meta, result, pipeline.metrics)
    print(str(paths.job_dir))
    if not result.success:
        print(result.error)
        return 1
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    job_id = new_job_id()
    paths = create_job_dirs(args.workspace, job_id)
    init_job_outputs(paths)
    snapshot_input(paths, args.input, args.type)

    cfg = load_config(args.config)
    if args.type == "images":
        ocr = OCRExtractor(lang=args.lang, paths=paths)
    else:
        ocr = JsonTokenReader(paths=paths)

    page_classifier = None
    if args.classify_pages:
        cfg = replace(cfg, pipeline={**cfg.pipeline, "classify_pages": True})
        page_classifier = OpenAIPageClassifier(cfg.llm)

    pipeline = DocumentPipeline(
        cfg,
        ocr=ocr,
        normalizer=_make_normalizer(cfg, args.no_normalize),
        page_classifier=page_classifier,
        paths=paths,
    )
    pages = PageProvider(input_path=args.input, input_type=args.type).iter_pages()
    result = pipeline.run(pages, log=RequestLog(logger))
    return _finish_job(paths, job_id, args.type, args, pipeline, result)


def cmd_run_text(args: argparse.Namespace) -> int:
    job_id = new_job_id()
    paths = create_job_dirs(args.workspace, job_id)
    init_job_outputs(paths)
    snapshot_input(paths, args.input, "text")

    cfg = load_config(args.config)
    pipeline = DocumentPipeline(cfg, normalizer=_make_normalizer(cfg, args.no_normalize), paths=paths)
    result = pipeline.run_text(_read_text_pages(args.input), log=RequestLog(logger))
    return _finish_job(paths, job_id, "text", args, pipeline, result)


def cmd_prevalidate(args: argparse.Namespace) -> int:
    text = Path(args.input).read_text(encoding="utf-8")
    verdict = pre_validate(text, args.threshold)
    print(f"score={verdict.score}")
    print(f"shouldExtractTable={str(verdict.should_extract_table).lower()}")
    for reason in verdict.reasons:
        print(f"reason: {reason}")
    return 0


def _validate_records(obj: Any, errors: list[str]) -> int:
    invalid = 0
    records = (obj or {}).get("records", []) if isinstance(obj, dict) else []
    expected = set(RECORD_FIELDS)
    for idx, rec in enumerate(records):
        if not isinstance(rec, dict):
            errors.append(f"invalid record[{idx}]: not an object")
            invalid += 1
            continue
        keys = set(rec)
        if keys != expected:
            missing = sorted(expected - keys)
            extra = sorted(keys - expected)
            errors.append(f"invalid record[{idx}]: missing={missing} extra={extra}")
            invalid += 1
            continue
        if not isinstance(rec.get("name"), str) or len(rec["name"]) < 3:
            errors.append(f"invalid record[{idx}]: name must be a string of 3+ characters")
            invalid += 1
    return invalid


def _validate_pages(obj: Any, errors: list[str]) -> int:
    invalid = 0
    pages = (obj or {}).get("pages", []) if isinstance(obj, dict) else []
    for idx, page in enumerate(pages):
        if not isinstance(page, dict):
            errors.append(f"invalid page[{idx}]: not an object")
            invalid += 1
            continue
        for k in ("page", "records", "error"):
            if k not in page:
                errors.append(f"invalid page[{idx}]: missing field {k}")
                invalid += 1
    return invalid


def cmd_validate(args: argparse.Namespace) -> int:
    job_dir = Path(args.job_dir)
    errors: list[str] = []

    missing_contract_files = 0
    invalid_records = 0
    invalid_pages = 0

    # Output Contract (must always exist)
    for f in ("result.json", "metrics.json", "errors.jsonl"):
        p = job_dir / f
        if not p.exists():
            missing_contract_files += 1
            errors.append(f"missing: {p}")

    try:
        result = load_json(job_dir / "result.json")
        invalid_records += _validate_records(result, errors)
        invalid_pages += _validate_pages(result, errors)
    except Exception as e:
        errors.append(f"failed to read result.json: {e}")
        invalid_records += 1

    print(f"missing_contract_files={missing_contract_files}")
    print(f"invalid_records={invalid_records}")
    print(f"invalid_pages={invalid_pages}")

    if errors:
        for m in errors:
            print(m)
        return 1

    print("OK")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command == "run" and args.classify_pages and args.type != "images":
        parser.error("--classify-pages requires --type images")
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "run":
        return cmd_run(args)

    if args.command == "run-text":
        return cmd_run_text(args)

    if args.command == "prevalidate":
        return cmd_prevalidate(args)

    if args.command == "validate":
        return cmd_validate(args)

    raise SystemExit(2)


if __name__ == "__main__":
    raise SystemExit(main())
