"""
End-to-end integration tests for WayPoint.
Tests complete flows from visit to background analysis to ranked search.
"""

import pytest
from click.testing import CliRunner
from loguru import logger

from waypoint.app import WayPoint
from waypoint.cli.wp import cli
from waypoint.config import Config
from waypoint.core.predictor import StaticForegroundApp
from waypoint.core.ranking import View
from waypoint.core.rules import DetectionRule, PredictorRule, RuleBook


@pytest.fixture
def config(tmp_path):
    return Config(data_dir=tmp_path / "data")


@pytest.fixture
def rules():
    return RuleBook(
        detection=[
            DetectionRule(name="Node.js", trigger_files="package.json", status_command="node -v"),
            DetectionRule(name="Python", trigger_files="pyproject.toml, *.py"),
        ],
        predictors=[PredictorRule(app_id="editor", target_tags=["Node.js"], boost=500)],
    )


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logger.remove()


class TestVisitToSearchFlow:
    """Test visit -> analyze -> rank flow."""

    @pytest.mark.asyncio
    async def test_analysis_reaches_store_and_ranking(self, config, rules, make_runner, node_project, git_project):
        runner = make_runner({"node -v": "v20.11.0\n", "status --porcelain": " M main.py\n"})
        waypoint = WayPoint(config, runner=runner, foreground=StaticForegroundApp("editor"), rules=rules)
        await waypoint.start()

        waypoint.store.visit(str(git_project))
        waypoint.store.visit(str(node_project))
        waypoint.refresh_analysis()
        assert waypoint.scheduler.pending == 2

        await waypoint.stop()

        node = waypoint.store.get(str(node_project))
        assert node.technology == "Node.js"
        assert node.status_summary == "v20.11.0"
        assert [a.label for a in node.actions] == ["npm start", "Install Deps"]

        service = waypoint.store.get(str(git_project))
        assert service.tags == ["Code", "Python"]
        assert service.status_summary == "1 files changed (Git)"

        # The foreground editor boosts Node.js folders
        result = waypoint.search("")
        assert result.records[0].path == str(node_project)
        assert result.selected_index == 0

    @pytest.mark.asyncio
    async def test_state_survives_restart(self, config, rules, make_runner, node_project):
        runner = make_runner({"node -v": "v20.11.0\n"})
        waypoint = WayPoint(config, runner=runner, foreground=StaticForegroundApp(None), rules=rules)
        await waypoint.start()
        record = waypoint.store.visit(str(node_project))
        waypoint.store.toggle_favorite(record.id)
        await waypoint.analyze_now(record.path)
        await waypoint.stop()

        restarted = WayPoint(config, runner=make_runner(), foreground=StaticForegroundApp(None), rules=rules)
        await restarted.start()
        try:
            favorites = restarted.search("", view=View.FAVORITES)
            assert [r.id for r in favorites.records] == [record.id]
            assert favorites.records[0].technology == "Node.js"
            assert len(restarted.search("web", view=View.HISTORY)) == 1
        finally:
            await restarted.stop()

    @pytest.mark.asyncio
    async def test_switch_view_cycles(self, config, rules, fake_runner):
        waypoint = WayPoint(config, runner=fake_runner, foreground=StaticForegroundApp(None), rules=rules)
        assert [waypoint.switch_view() for _ in range(3)] == [View.FAVORITES, View.HISTORY, View.ALL]


class TestCommandLine:
    """Test the wp command against a temporary data directory."""

    def invoke(self, data_dir, *args):
        result = CliRunner().invoke(cli, ["--data-dir", str(data_dir), *args], obj={})
        assert result.exit_code == 0, result.output
        return result.output

    def test_visit_then_search(self, tmp_path, node_project):
        data_dir = tmp_path / "data"
        assert "webapp" in self.invoke(data_dir, "visit", str(node_project))

        output = self.invoke(data_dir, "search", "web", "--app", "none")
        assert "webapp" in output

        output = self.invoke(data_dir, "search", "zzzz", "--app", "none")
        assert "No results found" in output

    def test_favorite_and_exclude(self, tmp_path, node_project):
        data_dir = tmp_path / "data"
        self.invoke(data_dir, "visit", str(node_project))

        assert "is now a favorite" in self.invoke(data_dir, "favorite", str(node_project))
        assert "webapp" in self.invoke(data_dir, "search", "--view", "favorites", "--app", "none")

        self.invoke(data_dir, "exclude", str(node_project))
        assert "No results found" in self.invoke(data_dir, "search", "--app", "none")
        assert "can be tracked again" in self.invoke(data_dir, "unexclude", str(node_project))

    def test_rename(self, tmp_path, node_project):
        data_dir = tmp_path / "data"
        self.invoke(data_dir, "visit", str(node_project))
        self.invoke(data_dir, "rename", str(node_project), "frontend")
        assert "frontend" in self.invoke(data_dir, "search", "front", "--app", "none")

    def test_analyze_and_rules(self, tmp_path, node_project):
        data_dir = tmp_path / "data"
        assert "Node.js" in self.invoke(data_dir, "analyze", str(node_project))
        assert "Detection Rules" in self.invoke(data_dir, "rules")

    def test_insights(self, tmp_path, node_project):
        data_dir = tmp_path / "data"
        self.invoke(data_dir, "visit", str(node_project), "--action", "Terminal")
        output = self.invoke(data_dir, "insights")
        assert "Today: 1" in output
        assert "Terminal: 1" in output

    def test_unknown_path_fails(self, tmp_path):
        result = CliRunner().invoke(cli, ["--data-dir", str(tmp_path / "data"), "favorite", "/no/such/dir"], obj={})
        assert result.exit_code == 1
