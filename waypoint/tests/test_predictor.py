"""Tests for the context predictor."""

from datetime import datetime

import pytest

from waypoint.core.models import PathRecord
from waypoint.core.predictor import ContextPredictor, StaticForegroundApp
from waypoint.core.rules import PredictorRule, RuleBook


# Local-time references, so the morning window does not depend on the machine's zone
MORNING = datetime(2026, 1, 5, 9, 0).astimezone()
AFTERNOON = datetime(2026, 1, 5, 15, 0).astimezone()


class FakeClock:
    def __init__(self):
        self.value = 100.0

    def __call__(self):
        return self.value


class CountingApp(StaticForegroundApp):
    def __init__(self, app_id=None):
        super().__init__(app_id)
        self.queries = 0

    def current_app(self):
        self.queries += 1
        return super().current_app()


def make_predictor(app_id="com.apple.dt.Xcode", rules=None, **kwargs):
    book = RuleBook(predictors=rules if rules is not None else [
        PredictorRule(app_id="com.apple.dt.Xcode", target_tags=["Code", "Swift"], boost=500),
        PredictorRule(app_id="com.figma.Desktop", target_tags=["Design"], boost=500),
    ])
    return ContextPredictor(book, foreground=StaticForegroundApp(app_id), **kwargs)


def record(tags=(), technology=None, visits=1):
    return PathRecord(path="/work/project", tags=list(tags), technology=technology, visit_count=visits)


class TestRuleBonus:

    def test_matching_tag_gets_boost(self):
        predictor = make_predictor()
        assert predictor.bonus(record(tags=["Swift"]), now=AFTERNOON) == 500

    def test_no_overlap_no_boost(self):
        predictor = make_predictor()
        assert predictor.bonus(record(tags=["Python"]), now=AFTERNOON) == 0

    def test_technology_counts_as_tag(self):
        predictor = make_predictor()
        assert predictor.bonus(record(technology="Swift"), now=AFTERNOON) == 500

    def test_multiple_tags_count_once_per_rule(self):
        predictor = make_predictor()
        assert predictor.bonus(record(tags=["Code", "Swift"]), now=AFTERNOON) == 500

    def test_multiple_rules_for_same_app_add_up(self):
        predictor = make_predictor(rules=[
            PredictorRule(app_id="X", target_tags=["Code"], boost=300),
            PredictorRule(app_id="X", target_tags=["Python"], boost=200),
        ], app_id="X")
        assert predictor.bonus(record(tags=["Code", "Python"]), now=AFTERNOON) == 500

    def test_other_app_rules_ignored(self):
        predictor = make_predictor(app_id="com.figma.Desktop")
        assert predictor.bonus(record(tags=["Swift"]), now=AFTERNOON) == 0
        assert predictor.bonus(record(tags=["Design"]), now=AFTERNOON) == 500

    def test_no_foreground_app(self):
        predictor = make_predictor(app_id=None)
        assert predictor.current_app is None
        assert predictor.bonus(record(tags=["Swift"]), now=AFTERNOON) == 0

    def test_disabled_rule_ignored(self):
        predictor = make_predictor(rules=[
            PredictorRule(app_id="com.apple.dt.Xcode", target_tags=["Swift"], boost=500, enabled=False)
        ])
        assert predictor.active_rules() == []
        assert predictor.bonus(record(tags=["Swift"]), now=AFTERNOON) == 0


class TestMorningBoost:

    def test_frequent_record_boosted_in_morning(self):
        predictor = make_predictor(app_id=None)
        assert predictor.bonus(record(visits=11), now=MORNING) == 200

    def test_not_in_afternoon(self):
        predictor = make_predictor(app_id=None)
        assert predictor.bonus(record(visits=11), now=AFTERNOON) == 0

    def test_requires_more_than_threshold_visits(self):
        predictor = make_predictor(app_id=None)
        assert predictor.bonus(record(visits=10), now=MORNING) == 0

    def test_combines_with_rule_boost(self):
        predictor = make_predictor()
        assert predictor.bonus(record(tags=["Code"], visits=50), now=MORNING) == 700

    @pytest.mark.parametrize("hour,expected", [(7, 0), (8, 200), (10, 200), (11, 0)])
    def test_window_bounds(self, hour, expected):
        predictor = make_predictor(app_id=None)
        now = datetime(2026, 1, 5, hour, 30).astimezone()
        assert predictor.bonus(record(visits=20), now=now) == expected


class TestRefresh:

    def test_foreground_queried_once_per_interval(self):
        clock = FakeClock()
        app = CountingApp("com.apple.dt.Xcode")
        predictor = ContextPredictor(RuleBook(), foreground=app, refresh_interval=1.0, monotonic=clock)

        for _ in range(50):
            predictor.bonus(record(tags=["Swift"]), now=AFTERNOON)
        assert app.queries == 1

        clock.value += 1.5
        predictor.bonus(record(tags=["Swift"]), now=AFTERNOON)
        assert app.queries == 2

    def test_app_switch_seen_after_refresh(self):
        clock = FakeClock()
        app = CountingApp("com.apple.dt.Xcode")
        predictor = ContextPredictor(RuleBook(), foreground=app, monotonic=clock)
        swift = record(tags=["Swift"])

        assert predictor.bonus(swift, now=AFTERNOON) == 500
        app.app_id = "com.figma.Desktop"
        assert predictor.bonus(swift, now=AFTERNOON) == 500  # still cached

        clock.value += 2
        assert predictor.bonus(swift, now=AFTERNOON) == 0
        assert predictor.current_app == "com.figma.Desktop"

    def test_invalidate_forces_refresh(self):
        clock = FakeClock()
        app = CountingApp("A")
        predictor = ContextPredictor(RuleBook(), foreground=app, monotonic=clock)

        predictor.active_rules()
        predictor.invalidate()
        predictor.active_rules()
        assert app.queries == 2
