"""Usage statistics derived from the jump history."""

from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .core.models import JumpRecord, utcnow


# Estimated seconds saved per jump, by action type
DEFAULT_SECONDS_SAVED = 10
INJECT_SECONDS_SAVED = 30
RULE_SECONDS_SAVED = 20
APP_SECONDS_SAVED = 15


@dataclass
class Insights:
    """Aggregated jump statistics."""
    today_count: int
    weekly_count: int
    total_count: int
    top_path: Optional[str]
    time_saved_seconds: int
    action_distribution: List[Tuple[str, int]] = field(default_factory=list)
    weekly_trend: List[int] = field(default_factory=list)  # oldest day first, today last

    def to_dict(self) -> Dict[str, Any]:
        return {
            'today': self.today_count,
            'week': self.weekly_count,
            'total': self.total_count,
            'top_path': self.top_path,
            'time_saved_seconds': self.time_saved_seconds,
            'actions': [{'name': n, 'count': c} for n, c in self.action_distribution],
            'trend': self.weekly_trend
        }


def seconds_saved(action_type: str) -> int:
    if action_type == "Inject":
        return INJECT_SECONDS_SAVED
    if action_type.startswith("Rule:"):
        return RULE_SECONDS_SAVED
    if action_type in ("Editor", "Terminal"):
        return APP_SECONDS_SAVED
    return DEFAULT_SECONDS_SAVED


def compute_insights(history: Sequence[JumpRecord], now: Optional[datetime] = None, top_actions: int = 5) -> Insights:
    """
    Summarize the jump log.

    Days are local calendar days; the weekly window starts at midnight six
    days before ``now``.
    """
    if now is None:
        now = utcnow()
    today = _local_date(now)
    week_start = today - timedelta(days=6)

    per_day: Counter = Counter()
    weekly_paths: Counter = Counter()
    actions: Counter = Counter()
    saved = 0

    for jump in history:
        day = _local_date(jump.timestamp)
        per_day[day] += 1
        if week_start <= day <= today:
            weekly_paths[jump.path] += 1
        actions[jump.action_type] += 1
        saved += seconds_saved(jump.action_type)

    top_path = None
    if weekly_paths:
        top_path = min(weekly_paths.items(), key=lambda kv: (-kv[1], kv[0]))[0]

    distribution = sorted(actions.items(), key=lambda kv: (-kv[1], kv[0]))[:top_actions]
    trend = [per_day[today - timedelta(days=offset)] for offset in range(6, -1, -1)]

    return Insights(
        today_count=per_day[today],
        weekly_count=sum(weekly_paths.values()),
        total_count=len(history),
        top_path=top_path,
        time_saved_seconds=saved,
        action_distribution=distribution,
        weekly_trend=trend
    )


def _local_date(moment: datetime) -> date:
    if moment.tzinfo is not None:
        return moment.astimezone().date()
    return moment.date()
