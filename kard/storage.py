"""
Per-device key/value storage.

LocalStorage keeps string keys and string values, either in a JSON file on
disk or purely in memory. Every write is flushed synchronously; a failed flush
is logged and the in-memory value stays authoritative for this process.
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

from .constants import STORAGE_FILENAME

logger = logging.getLogger(__name__)


class LocalStorage:
    """Device-local string key/value store."""

    def __init__(self, path: Optional[Union[str, Path]] = None):
        """
        Parameters:
            path: JSON file holding the stored items, or a directory in which
                `local_storage.json` is used. `None` keeps items in memory only.
        """
        if path is not None:
            path = Path(path)
            if path.is_dir() or path.suffix == "":
                path = path / STORAGE_FILENAME
        self.path: Optional[Path] = path
        self._items: Dict[str, str] = self._load()

    @classmethod
    def in_memory(cls) -> "LocalStorage":
        return cls(None)

    def _load(self) -> Dict[str, str]:
        if self.path is None or not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(
                f"Could not read device storage at {self.path}; starting empty: {e}"
            )
            return {}
        if not isinstance(data, dict):
            logger.warning(
                f"Device storage at {self.path} is not a JSON object; starting empty."
            )
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _flush(self) -> None:
        if self.path is None:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(self._items, f, indent=2, sort_keys=True)
        except OSError as e:
            logger.warning(f"Failed to write device storage {self.path}: {e}")

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value
        self._flush()

    def remove_item(self, key: str) -> None:
        if self._items.pop(key, None) is not None:
            self._flush()

    def remove_items(self, keys: List[str]) -> None:
        """Remove several keys with a single flush."""
        removed = [k for k in keys if self._items.pop(k, None) is not None]
        if removed:
            self._flush()

    def keys(self) -> List[str]:
        return list(self._items)

    def clear(self) -> None:
        self._items.clear()
        self._flush()

    def __contains__(self, key: str) -> bool:
        return key in self._items

    def __len__(self) -> int:
        return len(self._items)
