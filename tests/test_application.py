"""Tests for application wiring, the CLI entry point and logging setup."""

import json
import logging
from unittest.mock import Mock, patch

import pytest

from conftest import make_response
from harvester.api.exceptions import (
    ApplicationException, ConfigurationError, InitializationError, MissingConfigError
)
from harvester.cli.args import parse_args
from harvester.cli.environment import Environment
from harvester.cli.main import main
from harvester.core.application import Application
from harvester.core.config import Config
from harvester.db.models import GitHubIssue, Question
from harvester.utils.logging_config import LogManager


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def config(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "sources": {
            "issues": ["https://github.com/example/repo"],
            "qa": [{"url": "https://qa.example/search?q=topic", "label": "topic"}],
        },
        "collection": {"windows": ["1h", "2h"], "inter_source_interval": 0},
    }))
    return Config(config_file=str(path))


@pytest.fixture
def make_app(config, metrics, db_manager, connection_manager):
    def _make(environ=None, **overrides):
        components = dict(config=config, metrics=metrics, db_manager=db_manager,
                          connection_manager=connection_manager)
        components.update(overrides)
        return Application(
            log_manager=Mock(get_logger=logging.getLogger),
            environment=Environment(environ={"ACCESS_TOKEN": "ghp_testtoken1234"} if environ is None else environ),
            **components,
        )
    return _make


class TestApplication:
    """Test component wiring and a full run."""

    def test_initialize_builds_components(self, make_app):
        app = make_app().initialize(serve_metrics=False)

        for name in ("record_store", "issue_client", "qa_scraper", "scheduler"):
            assert app.get_component(name) is not None
        assert app.get_component("metrics_server") is None
        assert [s.label for s in app.get_component("scheduler").sources] == ["example/repo", "topic"]

    def test_run_collects_and_saves(self, make_app, fake_session, metrics, db_manager, capsys):
        fake_session.routes["https://api.github.com/repos/example/repo/issues"] = make_response(
            json_data=[{"id": 1, "title": "a", "body": "x"}]
        )
        fake_session.routes["https://qa.example/search"] = make_response(text=(
            '<div class="question-summary"><a class="question-hyperlink" href="/questions/42">T</a>'
            '<div class="excerpt">E</div></div>'
        ))
        fake_session.routes["https://qa.example/questions/42"] = make_response(text='<div class="js-post-body">A</div>')

        app = make_app().initialize(serve_metrics=False)
        assert app.run(hold=False) == 0

        assert db_manager.count_rows(GitHubIssue) == 2
        assert db_manager.count_rows(Question) == 2
        assert metrics.issues.calls_per_second("example/repo") == pytest.approx(2 / 7200)
        assert "Repository: example/repo" in capsys.readouterr().out

    def test_missing_access_token(self, make_app):
        with pytest.raises(MissingConfigError):
            make_app(environ={}).initialize(serve_metrics=False)

    def test_qa_only_needs_no_token(self, make_app, tmp_path):
        path = tmp_path / "qa_only.json"
        path.write_text(json.dumps({"sources": {"issues": []}}))

        app = make_app(environ={}, config=Config(config_file=str(path))).initialize(serve_metrics=False)

        assert app.get_component("issue_client") is None
        assert app.get_component("qa_scraper") is not None

    def test_missing_database_configuration(self, config, metrics, connection_manager):
        app = Application(log_manager=Mock(get_logger=logging.getLogger),
                          environment=Environment(environ={"ACCESS_TOKEN": "ghp_testtoken1234"}),
                          config=config, metrics=metrics, connection_manager=connection_manager)

        with pytest.raises(MissingConfigError):
            app.initialize(serve_metrics=False)

    def test_unreachable_database(self, config, metrics, connection_manager, db_manager):
        db_manager.test_connection = Mock(return_value=False)
        app = Application(log_manager=Mock(get_logger=logging.getLogger),
                          environment=Environment(environ={
                              "ACCESS_TOKEN": "ghp_testtoken1234",
                              "DATABASE_URL": "postgresql+psycopg2://u:p@localhost:1/none",
                          }),
                          config=config, metrics=metrics, connection_manager=connection_manager)

        with patch("harvester.core.application.DatabaseManager", return_value=db_manager):
            with pytest.raises(InitializationError):
                app.initialize(serve_metrics=False)

    def test_unexpected_failure_is_wrapped(self, make_app):
        app = make_app()
        with patch("harvester.core.application.CollectionScheduler", side_effect=TypeError("bad argument")):
            with pytest.raises(InitializationError):
                app.initialize(serve_metrics=False)

    def test_metrics_server_started_and_stopped(self, make_app):
        server = Mock()
        with patch("harvester.core.application.start_metrics_server", return_value=(server, Mock())) as start:
            app = make_app().initialize()
        start.assert_called_once()

        app.cleanup()

        server.shutdown.assert_called_once()

    def test_stop_event_ends_hold(self, make_app, fake_session):
        fake_session.routes["https://"] = make_response(json_data=[])
        app = make_app().initialize(serve_metrics=False)
        app.stop_event.set()

        assert app.run() == 0


class TestMain:
    """Test exit codes of the entry point."""

    @pytest.fixture
    def app(self):
        with patch("harvester.cli.main.Application") as app_class:
            app = app_class.return_value
            app.initialize.return_value = app
            app.run.return_value = 0
            yield app

    def test_clean_stop(self, app):
        assert main([]) == 0
        app.cleanup.assert_called_once()

    def test_initialization_failure(self, app):
        app.initialize.side_effect = InitializationError("db down")

        assert main([]) == 2
        app.run.assert_not_called()

    def test_configuration_failure(self, app):
        app.initialize.side_effect = ConfigurationError("bad port")

        assert main([]) == 2

    def test_keyboard_interrupt(self, app):
        app.run.side_effect = KeyboardInterrupt

        assert main([]) == 130
        app.cleanup.assert_called_once()

    def test_application_error(self, app):
        app.run.side_effect = ApplicationException("boom")

        assert main([]) == 1


class TestArgs:
    """Test command-line parsing."""

    def test_defaults(self):
        args = parse_args([])

        assert args.config is None
        assert args.log_level is None

    def test_flags(self):
        args = parse_args(["--config", "harvester.json", "--log-level", "DEBUG"])

        assert args.config == "harvester.json"
        assert args.log_level == "DEBUG"

    def test_log_level_override(self):
        app = Application(args=parse_args(["--log-level", "WARNING"]), environment=Environment(environ={}))

        app._init_config()

        assert app.get_component("config").get("logging.level") == "WARNING"


class TestLogManager:
    """Test handler setup and teardown."""

    def test_file_handlers(self, tmp_path):
        log_manager = LogManager(log_level=logging.INFO, logs_dir=tmp_path / "logs",
                                 console=False, enable_debug_file=True)
        try:
            log_manager.get_logger("harvester.db.database").info("table ready")
            log_manager.get_logger("harvester.api.issue_client").info("fetched")
        finally:
            log_manager.close()

        logs = tmp_path / "logs"
        assert "table ready" in (logs / "database.log").read_text()
        assert "fetched" in (logs / "sources.log").read_text()
        assert "table ready" not in (logs / "sources.log").read_text()
        assert "fetched" in (logs / "harvester.log").read_text()
        assert (logs / "harvester_debug.log").exists()

    def test_close_detaches_handlers(self, tmp_path):
        log_manager = LogManager(logs_dir=tmp_path / "logs", console=False)
        attached = list(log_manager._attached)

        log_manager.close()

        assert len(attached) == 3
        assert not any(handler in target.handlers for target, handler in attached)
        assert log_manager._attached == []
