"""
Tests for configuration loading and the CLI.

============================================================
PURPOSE
============================================================
- Verify environment loading and validation
- Verify CLI overrides on top of the environment
- Verify backend selection
- Confirm configuration errors exit with code 2

============================================================
"""

import logging
import pytest

from core.exceptions import ConfigurationError
from manager.factory import create_manager
from manager.remote import RemoteManager
from manager.simulated import SimulatedManager
from orchestrator.cli import EXIT_CONFIGURATION_ERROR, build_config, create_parser, main
from orchestrator.core import setup_logging
from orchestrator.models import OrchestratorConfig


ENV_KEYS = [
    "MANAGER_BACKEND",
    "MANAGER_URL",
    "REPORT_INTERVAL_SECONDS",
    "STARTUP_DELAY_SECONDS",
    "INCLUDE_SYSTEM_REPORT",
    "HISTORY_LIMIT",
    "LOG_LEVEL",
    "LOG_FORMAT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


# ============================================================
# CONFIGURATION TESTS
# ============================================================

class TestOrchestratorConfig:
    """Tests for OrchestratorConfig."""

    def test_defaults_are_valid(self):
        config = OrchestratorConfig()

        assert config.validate() == []
        assert config.report_interval_seconds == 120.0
        assert config.startup_delay_seconds == 5.0
        assert config.history_limit == 10
        assert config.alarm_limit == 5
        assert config.include_system_report is False

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("MANAGER_BACKEND", "remote")
        monkeypatch.setenv("MANAGER_URL", "http://plc-gateway:3000")
        monkeypatch.setenv("REPORT_INTERVAL_SECONDS", "30")
        monkeypatch.setenv("INCLUDE_SYSTEM_REPORT", "true")

        config = OrchestratorConfig.from_env()

        assert config.backend == "remote"
        assert config.manager_url == "http://plc-gateway:3000"
        assert config.report_interval_seconds == 30.0
        assert config.include_system_report is True

    def test_from_env_bad_number(self, monkeypatch):
        monkeypatch.setenv("HISTORY_LIMIT", "ten")

        with pytest.raises(ValueError):
            OrchestratorConfig.from_env()

    def test_validate_errors(self):
        config = OrchestratorConfig(
            backend="modbus",
            report_interval_seconds=0,
            startup_delay_seconds=-1,
            alarm_limit=0,
            log_format="xml",
        )

        errors = config.validate()

        assert len(errors) == 5
        assert any("backend" in e for e in errors)
        assert any("report_interval_seconds" in e for e in errors)


# ============================================================
# CLI TESTS
# ============================================================

class TestCli:
    """Tests for argument parsing and main()."""

    def test_cli_overrides_env(self, monkeypatch):
        monkeypatch.setenv("REPORT_INTERVAL_SECONDS", "30")
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        args = create_parser().parse_args([
            "--report-interval", "15",
            "--startup-delay", "0",
            "--system-report",
        ])

        config = build_config(args)

        assert config.report_interval_seconds == 15.0
        assert config.startup_delay_seconds == 0.0
        assert config.include_system_report is True
        # Not given on the command line
        assert config.log_level == "DEBUG"

    def test_flag_absent_keeps_env(self, monkeypatch):
        monkeypatch.setenv("INCLUDE_SYSTEM_REPORT", "yes")

        config = build_config(create_parser().parse_args([]))

        assert config.include_system_report is True

    def test_invalid_interval_exit_code(self, capsys):
        assert main(["--report-interval", "0"]) == EXIT_CONFIGURATION_ERROR
        assert "report_interval_seconds" in capsys.readouterr().err

    def test_bad_env_value_exit_code(self, monkeypatch):
        monkeypatch.setenv("REPORT_INTERVAL_SECONDS", "soon")

        assert main([]) == EXIT_CONFIGURATION_ERROR

    def test_unknown_backend_rejected_by_parser(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["--backend", "modbus"])


# ============================================================
# BACKEND FACTORY TESTS
# ============================================================

class TestBackendFactory:
    """Tests for create_manager."""

    def test_simulated(self):
        assert isinstance(create_manager(OrchestratorConfig()), SimulatedManager)

    def test_remote(self):
        manager = create_manager(OrchestratorConfig(
            backend="remote",
            manager_url="http://plc-gateway:3000/",
        ))

        assert isinstance(manager, RemoteManager)
        assert manager.base_url == "http://plc-gateway:3000"

    def test_unknown_backend(self):
        with pytest.raises(ConfigurationError):
            create_manager(OrchestratorConfig(backend="modbus"))


# ============================================================
# LOGGING SETUP TESTS
# ============================================================

class TestSetupLogging:
    """Tests for setup_logging."""

    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield
        root.handlers = handlers
        root.setLevel(level)

    def test_text_format_with_correlation_id(self):
        setup_logging(level="DEBUG", log_format="text", correlation_id="run_abc123")

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1

        record = logging.LogRecord("orchestrator", logging.INFO, __file__, 1, "hello", None, None)
        line = root.handlers[0].format(record)
        assert line.endswith("run_abc123 | hello")
        assert logging.getLogger("aiohttp").level == logging.WARNING

    def test_json_format(self):
        setup_logging(level="INFO", log_format="json", correlation_id="run_abc123")

        record = logging.LogRecord("orchestrator", logging.INFO, __file__, 1, "hello", None, None)
        line = logging.getLogger().handlers[0].format(record)
        assert '"correlation_id": "run_abc123"' in line
        assert '"message": "hello"' in line
