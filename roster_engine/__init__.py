"""Person-record extraction engine for Thai civic registry lists.

This package turns OCR output of scanned roster pages into:
- rows of tokens grouped by line
- person records (name + house number) per page
- result.json / metrics.json / errors.jsonl per job

Reading other registry columns (age, citizen id, gender) is out of scope.
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
