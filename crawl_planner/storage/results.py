"""
Accepted results are buffered in memory and appended to a CSV file in chunks,
so a long crawl never holds all of its output at once.
"""

import os
import threading
from pathlib import Path
from typing import Dict, List, Optional, Union

import pandas as pd

from ..config import CHUNK_SIZE, RESULTS_DIR
from ..utils import logger


def flush_chunk(output_path: Union[str, Path], chunk_buffer: List[Dict]) -> None:
    if not chunk_buffer:
        return  # nothing to write

    df = pd.DataFrame(chunk_buffer)

    mode = 'a' if os.path.exists(output_path) else 'w'
    header = (mode == 'w')
    df.to_csv(output_path, mode=mode, header=header, index=False)

    chunk_buffer.clear()
    return None


class ResultsWriter:
    """Thread-safe chunked CSV writer for accepted place rows."""

    def __init__(self, output_path: Optional[Union[str, Path]] = None, chunk_size: int = CHUNK_SIZE):
        self.output_path = Path(output_path or RESULTS_DIR / "places.csv")
        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        self.chunk_size = chunk_size
        self.written = 0
        self._buffer: List[Dict] = []
        self._lock = threading.Lock()

    def add(self, row: Dict) -> None:
        with self._lock:
            self._buffer.append(row)
            if len(self._buffer) >= self.chunk_size:
                self._flush_locked()

    def flush(self) -> None:
        with self._lock:
            self._flush_locked()

    def _flush_locked(self) -> None:
        count = len(self._buffer)
        if not count:
            return
        flush_chunk(self.output_path, self._buffer)
        self.written += count
        logger.info(f"Flushed {count} places to CSV", extra={
            "operation": "flush_chunk",
            "output_path": str(self.output_path),
            "flushed_count": count,
            "written_total": self.written
        })
