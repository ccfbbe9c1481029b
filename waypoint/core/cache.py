"""Analysis cache: many concurrent readers, one writer at a time."""

import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

from loguru import logger

from .models import AnalysisResult, normalize_path


class ReadWriteLock:
    """Reader/writer lock; writers wait for active readers and get priority over new ones."""

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._waiting_writers:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._waiting_writers += 1
            while self._writer or self._readers:
                self._cond.wait()
            self._waiting_writers -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class AnalysisCache:
    """
    Normalized path -> last computed AnalysisResult.

    Entries have no TTL; ``clear()`` drops everything and starts a new
    generation. A write tagged with an older generation (an analysis that
    started before the clear) is discarded.
    """

    def __init__(self):
        self._entries: Dict[str, AnalysisResult] = {}
        self._lock = ReadWriteLock()
        self._generation = 0

    @property
    def generation(self) -> int:
        with self._lock.read():
            return self._generation

    def get(self, path: str) -> Optional[AnalysisResult]:
        key = normalize_path(path)
        with self._lock.read():
            return self._entries.get(key)

    def put(self, path: str, result: AnalysisResult, generation: Optional[int] = None) -> bool:
        """Store ``result``; returns False if it belonged to an invalidated generation."""
        key = normalize_path(path)
        with self._lock.write():
            if generation is not None and generation != self._generation:
                logger.debug(f"Discarding stale analysis for {key}")
                return False
            self._entries[key] = result
            return True

    def clear(self) -> None:
        with self._lock.write():
            self._entries.clear()
            self._generation += 1

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._entries)

    def __contains__(self, path: str) -> bool:
        return self.get(path) is not None
