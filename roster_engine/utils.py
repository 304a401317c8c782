from __future__ import annotations

import json
import re
import uuid
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, TypeVar

from .errors import PageTimeout

T = TypeVar("T")


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def new_request_id() -> str:
    now = datetime.now(timezone.utc)
    return f"REQ-{now.strftime('%Y%m%d%H%M%S')}-{uuid.uuid4().hex[:7]}"


def ensure_dir(path: str | Path) -> None:
    Path(path).mkdir(parents=True, exist_ok=True)


def write_json(path: str | Path, data: Any) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)


def append_jsonl(path: str | Path, obj: dict[str, Any]) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a", encoding="utf-8") as f:
        f.write(json.dumps(obj, ensure_ascii=False) + "\n")


def load_json(path: str | Path) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def compile_patterns(patterns: list[str]) -> list[re.Pattern[str]]:
    return [re.compile(p, re.IGNORECASE) for p in patterns]


def call_with_timeout(fn: Callable[..., T], timeout_s: float | None, *args: Any, label: str = "call", **kwargs: Any) -> T:
    """Run ``fn`` and raise PageTimeout if it has not returned after ``timeout_s`` seconds.

    The worker thread is abandoned on timeout, not killed; its result is discarded.
    """
    if not timeout_s or timeout_s <= 0:
        return fn(*args, **kwargs)

    executor = ThreadPoolExecutor(max_workers=1)
    try:
        future = executor.submit(fn, *args, **kwargs)
        try:
            return future.result(timeout=timeout_s)
        except FuturesTimeout:
            future.cancel()
            raise PageTimeout(f"{label} timeout: exceeded {timeout_s:g} seconds") from None
    finally:
        executor.shutdown(wait=False)
