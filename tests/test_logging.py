"""Tests for apphost logging configuration and setup."""

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest

from apphost import logging as apphost_logging
from apphost.errors import AppHostError
from apphost.logging import LoggingError, get_config_path, load_config, setup_logging


@pytest.fixture(autouse=True)
def restore_logging() -> Iterator[None]:
    """Undo global logging changes made by setup_logging()."""
    root = logging.getLogger()
    apphost_logger = logging.getLogger("apphost")
    saved = (
        root.level,
        list(root.handlers),
        apphost_logger.level,
        list(apphost_logger.handlers),
        apphost_logger.propagate,
    )
    yield
    root.setLevel(saved[0])
    root.handlers[:] = saved[1]
    apphost_logger.setLevel(saved[2])
    apphost_logger.handlers[:] = saved[3]
    apphost_logger.propagate = saved[4]


# =============================================================================
# Configuration Loading
# =============================================================================


class TestLoggingConfiguration:
    """Test logging configuration file selection and loading."""

    def test_logging_error_is_an_apphost_error(self) -> None:
        assert issubclass(LoggingError, AppHostError)

    def test_default_config_path(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("APPHOST_ENV", raising=False)

        config_path = get_config_path()

        assert config_path.name == "logging.yaml"
        assert config_path.exists()

    @pytest.mark.parametrize("env", ["dev", "development", "DEV"])
    def test_dev_environment_selects_dev_config(
        self, monkeypatch: pytest.MonkeyPatch, env: str
    ) -> None:
        monkeypatch.setenv("APPHOST_ENV", env)

        assert get_config_path().name == "logging-dev.yaml"

    def test_environment_without_config_falls_back_to_default(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("APPHOST_ENV", "prod")

        assert get_config_path().name == "logging.yaml"

    def test_missing_config_dir_raises(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        monkeypatch.setattr(apphost_logging, "CONFIG_DIR", tmp_path / "nowhere")

        with pytest.raises(LoggingError, match="No logging configuration found"):
            get_config_path()

    def test_load_config_valid_yaml(self) -> None:
        config = load_config(get_config_path(environment="dev"))

        assert config["version"] == 1
        assert "apphost" in config["loggers"]

    def test_load_config_invalid_yaml_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.yaml"
        path.write_text("invalid: yaml: content: [", encoding="utf-8")

        with pytest.raises(LoggingError, match="Failed to parse YAML"):
            load_config(path)

    def test_load_config_non_mapping_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- handlers\n", encoding="utf-8")

        with pytest.raises(LoggingError, match="Invalid configuration format"):
            load_config(path)


# =============================================================================
# Setup
# =============================================================================


class TestSetupLogging:
    """Test applying logging configuration."""

    def test_level_override_applies_to_apphost_logger(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("APPHOST_ENV", raising=False)

        setup_logging(level="DEBUG")

        assert logging.getLogger("apphost").level == logging.DEBUG

    def test_file_handler_directory_created(self, tmp_path: Path) -> None:
        log_file = tmp_path / "logs" / "apphost.log"
        config_path = tmp_path / "logging.yaml"
        config_path.write_text(
            f"""
version: 1
handlers:
  file:
    class: logging.FileHandler
    filename: {log_file}
loggers:
  apphost:
    level: INFO
    handlers: [file]
""",
            encoding="utf-8",
        )

        setup_logging(config_path=config_path)

        assert log_file.parent.is_dir()
        for handler in logging.getLogger("apphost").handlers:
            handler.close()

    def test_invalid_level_falls_back_to_basic_logging(self) -> None:
        setup_logging(level="CHATTY")

        assert logging.getLogger().level == logging.INFO

    def test_force_basic(self) -> None:
        setup_logging(level="WARNING", force_basic=True)

        assert logging.getLogger().level == logging.WARNING
