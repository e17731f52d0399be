"""
Checkpoint Management Module
------------------------------------------------------------------------------------
This module provides a keyed blob store used to persist crawl state between runs.

Every piece of resumable state is stored as an independent blob under its own key:
    - GEOLOCATION: the resolved search area
    - START-REQUESTS: the generated request list
    - MAX-CRAWLED-PLACES-STATE: per-search accepted and enqueued counts
    - EXPORT-URLS-DEDUP: identifiers already written to the output
    - PLACES-CACHE-<cache key>: the cross-run places cache
    - STATS: crawl counters

Blobs are pickled and written atomically: the value is dumped into a temporary
file first, which then replaces the checkpoint file, so an interrupted write never
leaves a truncated blob behind.

Classes:
    KeyValueStore: A directory of pickled blobs keyed by name.
"""

import os
import pickle
import re
import threading
import time
from pathlib import Path
from typing import Any, Optional, Union

from ..config import STORES_DIR
from ..errors import StateStoreError
from ..utils import logger

CKPT_SUFFIX = ".ckpt"
_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class KeyValueStore:
    """Directory-backed store of pickled values."""

    def __init__(self, name: str, base_dir: Optional[Union[str, Path]] = None):
        self.name = name
        self.directory = Path(base_dir or STORES_DIR) / name
        self.directory.mkdir(parents=True, exist_ok=True)
        # Serialises writers of the same key inside this process
        self._write_lock = threading.Lock()

    def _path(self, key: str) -> Path:
        return self.directory / (_UNSAFE_KEY_CHARS.sub("_", key) + CKPT_SUFFIX)

    def get_value(self, key: str, default: Any = None) -> Any:
        """Load the value stored under `key`, or `default` when nothing was saved yet.

        Raises:
            StateStoreError: If the blob exists but cannot be unpickled.
        """
        path = self._path(key)

        if not path.exists():
            logger.debug(f"No checkpoint found for {key}", extra={
                "operation": "load_checkpoint",
                "store": self.name,
                "key": key,
                "status": "not_found"
            })
            return default

        try:
            with open(path, "rb") as f:
                value = pickle.load(f)
        except Exception as e:
            logger.error(f"Failed to load checkpoint: {str(e)}", extra={
                "operation": "load_checkpoint",
                "store": self.name,
                "key": key,
                "error": str(e),
                "status": "error"
            })
            raise StateStoreError(f"Checkpoint {key!r} in store {self.name!r} is unreadable") from e

        logger.info(f"Loaded checkpoint for {key}", extra={
            "operation": "load_checkpoint",
            "store": self.name,
            "key": key,
            "checkpoint_age_seconds": round(time.time() - path.stat().st_mtime, 2),
            "status": "success"
        })
        return value

    def set_value(self, key: str, value: Any) -> None:
        """Atomically replace the blob stored under `key`."""
        path = self._path(key)
        tmp_path = path.with_name(path.name + ".tmp")

        with self._write_lock:
            try:
                # Write to a temporary file first to avoid corruption if the process is interrupted
                with open(tmp_path, "wb") as f:
                    pickle.dump(value, f)
                os.replace(tmp_path, path)
            except Exception as e:
                logger.error(f"Failed to save checkpoint: {str(e)}", extra={
                    "operation": "save_checkpoint",
                    "store": self.name,
                    "key": key,
                    "error": str(e)
                })
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise StateStoreError(f"Could not save checkpoint {key!r}") from e

        logger.debug(f"Saved checkpoint", extra={
            "operation": "save_checkpoint",
            "store": self.name,
            "key": key,
            "checkpoint_size_bytes": os.path.getsize(path)
        })
