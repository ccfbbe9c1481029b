"""Service wiring: builds every component explicitly from a Config."""

from datetime import datetime
from typing import List, Optional

from loguru import logger

from .bus import EventBus
from .config import Config
from .core.analyzer import FolderAnalyzer
from .core.models import AnalysisResult, PathRecord
from .core.predictor import ContextPredictor, ForegroundAppProvider
from .core.ranking import RankingPipeline, RankingResult, View
from .core.rules import RuleBook
from .core.runner import CommandRunner, SubprocessRunner
from .enrichment import AnalysisScheduler
from .store import ItemStore


class WayPoint:
    """Owns the store, rules and services; no global state."""

    def __init__(
        self,
        config: Config,
        runner: Optional[CommandRunner] = None,
        foreground: Optional[ForegroundAppProvider] = None,
        rules: Optional[RuleBook] = None
    ):
        self.config = config
        self.store = ItemStore(config.data_dir, max_history=config.history.max_entries)
        self.rules = rules or RuleBook.load(config.rules_path)

        self.runner = runner or SubprocessRunner(
            timeout=config.analyzer.command_timeout,
            shell=config.analyzer.shell
        )
        self.analyzer = FolderAnalyzer(
            self.rules,
            runner=self.runner,
            git_executable=config.analyzer.git_executable,
            shell=config.analyzer.shell
        )
        self.predictor = ContextPredictor(
            self.rules,
            foreground=foreground,
            refresh_interval=config.predictor.refresh_interval,
            morning_start_hour=config.predictor.morning_start_hour,
            morning_end_hour=config.predictor.morning_end_hour,
            morning_boost=config.predictor.morning_boost,
            morning_min_visits=config.predictor.morning_min_visits
        )
        self.pipeline = RankingPipeline(
            weights=config.weights,
            predictor=self.predictor,
            default_limit=config.ranking.default_limit
        )

        self.event_bus = EventBus()
        self.scheduler = AnalysisScheduler(self.analyzer, self.event_bus)
        self.store.attach(self.event_bus)
        self.view = View.ALL

    async def start(self) -> None:
        logger.info("Starting WayPoint services...")
        self.store.load()
        await self.event_bus.start()

    async def stop(self) -> None:
        await self.scheduler.drain()
        await self.event_bus.stop()
        self.store.save()
        self.store.save_history()
        logger.info("WayPoint services stopped")

    def search(self, query: str, view: Optional[View] = None, now: Optional[datetime] = None) -> RankingResult:
        """Rank the current store snapshot for ``query``."""
        return self.pipeline.compute(
            query,
            self.store.snapshot(),
            self.store.history(),
            view or self.view,
            now=now
        )

    def switch_view(self) -> View:
        self.view = self.view.next()
        return self.view

    def refresh_analysis(self, records: Optional[List[PathRecord]] = None) -> None:
        """Schedule background analysis for ``records`` (default: every record)."""
        targets = records if records is not None else self.store.snapshot()
        self.scheduler.schedule_many(r.path for r in targets)

    async def analyze_now(self, path: str) -> AnalysisResult:
        """Analyze ``path`` and apply the result to the store immediately."""
        result = await self.analyzer.analyze(path)
        self.store.apply_analysis(path, result)
        return result
