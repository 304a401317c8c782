from __future__ import annotations

import logging
from typing import Any

from .utils import new_request_id


class RequestLog(logging.LoggerAdapter):
    """Logger scoped to one document run.

    Messages go to the wrapped logger with a ``[request_id]`` prefix and are also
    kept in ``lines`` at every level, so they can be returned with the result.
    """

    def __init__(self, logger: logging.Logger | None = None, request_id: str | None = None):
        self.request_id = request_id or new_request_id()
        super().__init__(logger or logging.getLogger("roster_engine"), {"request_id": self.request_id})
        self.lines: list[str] = []

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        return f"[{self.request_id}] {msg}", kwargs

    def log(self, level: int, msg: Any, *args: Any, **kwargs: Any) -> None:
        try:
            text = str(msg) % args if args else str(msg)
        except (TypeError, ValueError):
            text = f"{msg} {args}"
        self.lines.append(f"{logging.getLevelName(level)} [{self.request_id}] {text}")
        super().log(level, msg, *args, **kwargs)
