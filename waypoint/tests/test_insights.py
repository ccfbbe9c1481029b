"""Tests for usage insights."""

from datetime import datetime, timedelta

from waypoint.core.models import JumpRecord
from waypoint.insights import compute_insights, seconds_saved


NOW = datetime(2026, 1, 10, 18, 0).astimezone()


def jump(path, days_ago=0, action="Finder", hours=0):
    return JumpRecord(path=path, timestamp=NOW - timedelta(days=days_ago, hours=hours), action_type=action)


def test_empty_history():
    insights = compute_insights([], now=NOW)
    assert insights.total_count == 0
    assert insights.top_path is None
    assert insights.weekly_trend == [0] * 7
    assert insights.time_saved_seconds == 0


def test_counts_and_trend():
    history = [
        jump("/a"),
        jump("/a", hours=2),
        jump("/b", days_ago=1),
        jump("/b", days_ago=6),
        jump("/c", days_ago=7),
        jump("/c", days_ago=30),
    ]
    insights = compute_insights(history, now=NOW)

    assert insights.today_count == 2
    assert insights.weekly_count == 4
    assert insights.total_count == 6
    assert insights.weekly_trend == [1, 0, 0, 0, 0, 1, 2]


def test_top_path_ties_broken_by_path():
    history = [jump("/zeta"), jump("/alpha"), jump("/zeta", days_ago=1), jump("/alpha", days_ago=2)]
    assert compute_insights(history, now=NOW).top_path == "/alpha"


def test_top_path_only_counts_this_week():
    history = [jump("/old", days_ago=20)] * 5 + [jump("/new")]
    assert compute_insights(history, now=NOW).top_path == "/new"


def test_action_distribution():
    history = [
        jump("/a", action="Terminal"),
        jump("/a", action="Editor"),
        jump("/a", action="Terminal"),
        jump("/a", action="Finder"),
    ]
    insights = compute_insights(history, now=NOW, top_actions=2)
    assert insights.action_distribution == [("Terminal", 2), ("Editor", 1)]


def test_time_saved():
    history = [
        jump("/a", action="Inject"),
        jump("/a", action="Rule:npm start"),
        jump("/a", action="Editor"),
        jump("/a", action="Finder"),
    ]
    assert compute_insights(history, now=NOW).time_saved_seconds == 30 + 20 + 15 + 10


def test_seconds_saved_default():
    assert seconds_saved("Something") == 10
    assert seconds_saved("Terminal") == 15


def test_to_dict():
    data = compute_insights([jump("/a", action="Terminal")], now=NOW).to_dict()
    assert data['today'] == 1
    assert data['actions'] == [{'name': 'Terminal', 'count': 1}]
    assert len(data['trend']) == 7
