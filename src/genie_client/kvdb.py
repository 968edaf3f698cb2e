"""Small persistent key-value store backed by a JSON file."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional

import structlog

LOGGER = structlog.get_logger(__name__)


class KeyValueStore:
    """Keeps every value in one JSON document, rewritten on each ``set``."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except json.JSONDecodeError:
            LOGGER.warning("kvdb.corrupt", path=str(self.path))
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str) -> Optional[Any]:
        return self._load().get(key)

    def set(self, key: str, value: Any) -> None:
        data = self._load()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", encoding="utf-8") as handle:
            json.dump(data, handle, ensure_ascii=True, indent=2)

