from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from .types import Page

IMAGE_EXTS = {".png", ".jpg", ".jpeg", ".webp", ".bmp", ".tif", ".tiff"}
INPUT_TYPES = ("images", "tokens")


@dataclass(frozen=True)
class PageProvider:
    input_path: str
    input_type: str  # images|tokens

    def iter_pages(self) -> Iterator[Page]:
        if self.input_type == "images":
            yield from self._iter_folder(IMAGE_EXTS)
        elif self.input_type == "tokens":
            yield from self._iter_folder({".json"})
        else:
            raise ValueError(f"Unknown input_type: {self.input_type}")

    def _iter_folder(self, exts: set[str]) -> Iterator[Page]:
        folder = Path(self.input_path)
        if not folder.exists() or not folder.is_dir():
            raise ValueError(f"--type {self.input_type} expects a folder: {folder}")

        files = sorted([p for p in folder.iterdir() if p.suffix.lower() in exts])
        for i, path in enumerate(files):
            yield Page(
                page_index=i,
                page_id=f"page_{i + 1:03d}",
                source_ref=f"{folder.name}/{path.name}",
                image_path=str(path),
            )
