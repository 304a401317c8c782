from __future__ import annotations

import shutil
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from .utils import append_jsonl, ensure_dir, utc_now_iso, write_json


@dataclass
class JobPaths:
    job_dir: Path
    input_dir: Path
    stage_ocr_dir: Path
    stage_rows_dir: Path
    result_json: Path
    metrics_json: Path
    errors_jsonl: Path


def create_job_dirs(workspace: str | Path, job_id: str) -> JobPaths:
    ws = Path(workspace)
    job_dir = ws / "jobs" / job_id

    input_dir = job_dir / "input"
    stage_dir = job_dir / "stage"
    stage_ocr_dir = stage_dir / "ocr"
    stage_rows_dir = stage_dir / "rows"

    for p in [input_dir, stage_ocr_dir, stage_rows_dir]:
        ensure_dir(p)

    return JobPaths(
        job_dir=job_dir,
        input_dir=input_dir,
        stage_ocr_dir=stage_ocr_dir,
        stage_rows_dir=stage_rows_dir,
        result_json=job_dir / "result.json",
        metrics_json=job_dir / "metrics.json",
        errors_jsonl=job_dir / "errors.jsonl",
    )


def new_job_id() -> str:
    """Timeline job id: YYYY-MM-DD/HH-MM-SS__<shortid>."""
    now = datetime.now(timezone.utc)
    return f"{now.strftime('%Y-%m-%d')}/{now.strftime('%H-%M-%S')}__{uuid.uuid4().hex[:8]}"


def record_error(paths: JobPaths | None, page_id: str, stage: str, message: str) -> None:
    if paths is None:
        return
    append_jsonl(paths.errors_jsonl, {"page_id": page_id, "stage": stage, "message": message})


def init_job_outputs(paths: JobPaths) -> None:
    # Always create output files, even if empty.
    write_json(paths.result_json, {"job": {}, "success": False, "error": None, "pages": [], "records": [], "logs": []})
    write_json(
        paths.metrics_json,
        {
            "created_at": utc_now_iso(),
            "finished": False,
            "completed_at": None,
            "pages_total": 0,
            "pages_processed": 0,
            "pages_failed": 0,
            "records_total": 0,
        },
    )
    paths.errors_jsonl.parent.mkdir(parents=True, exist_ok=True)
    paths.errors_jsonl.touch(exist_ok=True)


def snapshot_input(paths: JobPaths, input_path: str | Path, input_type: str) -> None:
    src = Path(input_path)
    if input_type == "text" and src.is_file():
        shutil.copy2(src, paths.input_dir / src.name)
    else:
        # Folders are referenced, not copied.
        write_json(paths.input_dir / "manifest.json", {"type": input_type, "path": str(src.resolve())})
