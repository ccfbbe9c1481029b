"""Context prediction: bias ranking towards what the foreground application needs."""

import subprocess
import sys
import threading
import time
from datetime import datetime
from typing import Callable, List, Optional, Protocol, TYPE_CHECKING

import psutil
from loguru import logger

from .models import utcnow
from .rules import PredictorRule, RuleBook

if TYPE_CHECKING:
    from .models import PathRecord


class ForegroundAppProvider(Protocol):
    """OS service reporting the identifier of the foreground application."""

    def current_app(self) -> Optional[str]:
        ...


class StaticForegroundApp:
    """Provider with a fixed (or manually switched) foreground application."""

    def __init__(self, app_id: Optional[str] = None):
        self.app_id = app_id

    def current_app(self) -> Optional[str]:
        return self.app_id


class SystemForegroundApp:
    """
    Query the desktop for the frontmost application.

    macOS reports the bundle identifier via ``osascript``; on X11 the
    active window's pid is resolved to a process name with psutil.
    Anything else reports no foreground application.
    """

    def __init__(self, timeout: float = 0.5):
        self.timeout = timeout

    def current_app(self) -> Optional[str]:
        if sys.platform == "darwin":
            return self._query(["osascript", "-e", "id of app (path to frontmost application as text)"])
        if sys.platform.startswith("linux"):
            pid = self._query(["xdotool", "getactivewindow", "getwindowpid"])
            if pid and pid.isdigit():
                return self._process_name(int(pid))
        return None

    def _query(self, argv: List[str]) -> Optional[str]:
        try:
            completed = subprocess.run(
                argv, capture_output=True, text=True, timeout=self.timeout, check=False
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.debug(f"Foreground app query failed: {e}")
            return None
        output = completed.stdout.strip()
        return output if completed.returncode == 0 and output else None

    @staticmethod
    def _process_name(pid: int) -> Optional[str]:
        try:
            return psutil.Process(pid).name()
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            return None


class ContextPredictor:
    """
    Transient score bonus for a record.

    - For each enabled predictor rule of the current foreground app whose
      target tags intersect the record's technology or tags, add its boost.
    - Frequently visited records get a flat boost during the morning window.

    The foreground app and its applicable rules are refreshed at most once
    per ``refresh_interval`` seconds; between refreshes ``bonus`` is pure
    set comparison.
    """

    def __init__(
        self,
        rules: RuleBook,
        foreground: Optional[ForegroundAppProvider] = None,
        refresh_interval: float = 1.0,
        morning_start_hour: int = 8,
        morning_end_hour: int = 10,
        morning_boost: int = 200,
        morning_min_visits: int = 10,
        monotonic: Callable[[], float] = time.monotonic
    ):
        self.rules = rules
        self.foreground = foreground or SystemForegroundApp()
        self.refresh_interval = refresh_interval
        self.morning_start_hour = morning_start_hour
        self.morning_end_hour = morning_end_hour
        self.morning_boost = morning_boost
        self.morning_min_visits = morning_min_visits
        self._monotonic = monotonic

        self._lock = threading.Lock()
        self._cached_app: Optional[str] = None
        self._cached_rules: List[PredictorRule] = []
        self._last_refresh: Optional[float] = None

    @property
    def current_app(self) -> Optional[str]:
        self._refresh_if_stale()
        return self._cached_app

    def active_rules(self) -> List[PredictorRule]:
        """Enabled rules for the cached foreground application."""
        self._refresh_if_stale()
        return list(self._cached_rules)

    def invalidate(self) -> None:
        """Force a refresh on the next call."""
        with self._lock:
            self._last_refresh = None

    def bonus(self, record: "PathRecord", now: Optional[datetime] = None) -> int:
        """Non-negative bonus for ``record``, before ``weight_prediction``."""
        total = 0

        labels = set(record.tags)
        if record.technology:
            labels.add(record.technology)
        if labels:
            for rule in self.active_rules():
                if labels.intersection(rule.target_tags):
                    total += max(0, rule.boost)

        if self._is_morning(now) and record.visit_count > self.morning_min_visits:
            total += self.morning_boost

        return total

    def _is_morning(self, now: Optional[datetime]) -> bool:
        if now is None:
            now = utcnow()
        hour = now.astimezone().hour if now.tzinfo is not None else now.hour
        return self.morning_start_hour <= hour <= self.morning_end_hour

    def _refresh_if_stale(self) -> None:
        with self._lock:
            tick = self._monotonic()
            if self._last_refresh is not None and tick - self._last_refresh <= self.refresh_interval:
                return

            app_id = self.foreground.current_app()
            if app_id:
                self._cached_rules = [r for r in self.rules.predictor_rules() if r.app_id == app_id]
            else:
                self._cached_rules = []
            if app_id != self._cached_app:
                logger.debug(f"Foreground app: {app_id} ({len(self._cached_rules)} predictor rules)")
            self._cached_app = app_id
            self._last_refresh = tick
