from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .utils import load_json

SECTIONS = ("rows", "noise_filter", "classifier", "header", "extractor", "prevalidation", "pipeline", "llm")


@dataclass(frozen=True)
class EngineConfig:
    rows: dict[str, Any] = field(default_factory=dict)
    noise_filter: dict[str, Any] = field(default_factory=dict)
    classifier: dict[str, Any] = field(default_factory=dict)
    header: dict[str, Any] = field(default_factory=dict)
    extractor: dict[str, Any] = field(default_factory=dict)
    prevalidation: dict[str, Any] = field(default_factory=dict)
    pipeline: dict[str, Any] = field(default_factory=dict)
    llm: dict[str, Any] = field(default_factory=dict)


def default_config() -> EngineConfig:
    return EngineConfig()


def load_config(config_path: str | Path | None) -> EngineConfig:
    if config_path is None or not Path(config_path).exists():
        return default_config()
    data = load_json(config_path)
    if not isinstance(data, dict):
        raise ValueError(f"Config must be a JSON object: {config_path}")
    return EngineConfig(**{name: dict(data.get(name, {}) or {}) for name in SECTIONS})
