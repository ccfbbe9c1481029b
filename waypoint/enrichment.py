"""Fire-and-forget enrichment of records with folder analysis."""

import asyncio
from typing import Dict, Iterable, List, Optional

from loguru import logger

from .bus import Event, EventBus
from .core.analyzer import FolderAnalyzer
from .core.models import AnalysisResult, normalize_path


ANALYSIS_COMPLETED = "analysis.completed"


class AnalysisScheduler:
    """
    Runs ``FolderAnalyzer.analyze`` in background tasks.

    Callers never wait on analysis: ``schedule`` returns immediately and
    the result is published as an ``analysis.completed`` event carrying
    ``path`` and ``result``. A second request for a path already in
    flight joins the existing task.
    """

    def __init__(self, analyzer: FolderAnalyzer, event_bus: EventBus):
        self.analyzer = analyzer
        self.event_bus = event_bus
        self._in_flight: Dict[str, asyncio.Task] = {}

    @property
    def pending(self) -> int:
        return len(self._in_flight)

    def schedule(self, path: str) -> asyncio.Task:
        """Start analysis of ``path`` in the background (needs a running loop)."""
        key = normalize_path(path)
        task = self._in_flight.get(key)
        if task is not None and not task.done():
            return task

        task = asyncio.create_task(self._run(key))
        self._in_flight[key] = task
        task.add_done_callback(lambda t, k=key: self._forget(k, t))
        return task

    def schedule_many(self, paths: Iterable[str]) -> List[asyncio.Task]:
        return [self.schedule(p) for p in paths]

    async def drain(self) -> None:
        """Wait for every outstanding analysis."""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight.values()), return_exceptions=True)

    async def _run(self, path: str) -> Optional[AnalysisResult]:
        result = await self.analyzer.analyze(path)
        await self.event_bus.emit(Event(
            type=ANALYSIS_COMPLETED,
            data={"path": path, "result": result},
            source="analysis_scheduler"
        ))
        logger.debug(f"Analysis completed for {path}: {list(result.tags)}")
        return result

    def _forget(self, key: str, task: asyncio.Task) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
