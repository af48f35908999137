"""
Tests for observability — level resolution, level labels and file output.
"""

import logging

import pytest

from yb.core.observability.logging_config import LevelFormatter, _parse_level, setup_logging


@pytest.fixture(autouse=True)
def clean_log_env(monkeypatch):
    for var in ("YB_LOG_LEVEL", "YB_LOG_FILE", "YB_LOG_FILE_LEVEL", "YB_NO_PRETTY_OUTPUT", "CLICOLOR"):
        monkeypatch.delenv(var, raising=False)


def _record(level: int, msg: str = "Installing Go 1.15.2") -> logging.LogRecord:
    return logging.makeLogRecord({"name": "yb.test", "levelno": level, "levelname": logging.getLevelName(level), "msg": msg})


def _console() -> logging.Handler:
    return logging.getLogger().handlers[0]


class TestParseLevel:
    @pytest.mark.parametrize(
        "name, level",
        [
            ("debug", logging.DEBUG),
            ("INFO", logging.INFO),
            ("warn", logging.WARNING),
            ("Error", logging.ERROR),
            (None, logging.WARNING),
        ],
    )
    def test_names(self, name, level):
        assert _parse_level(name) == level

    def test_unknown_falls_back_to_warning(self):
        assert _parse_level("chatty") == logging.WARNING
        assert _parse_level("Logger") == logging.WARNING


# ── Level labels ────────────────────────────────────────────────


class TestLevelFormatter:
    @pytest.mark.parametrize(
        "level, label",
        [
            (logging.DEBUG, "DEBUG"),
            (logging.INFO, "INFO"),
            (logging.WARNING, "WARN"),
            (logging.ERROR, "ERROR"),
            (logging.CRITICAL, "ERROR"),
        ],
    )
    def test_plain_labels(self, level, label):
        formatter = LevelFormatter(color=False)
        assert formatter.format(_record(level)) == f"{label} Installing Go 1.15.2"

    def test_colored_label(self):
        line = LevelFormatter(color=True).format(_record(logging.WARNING))
        assert "\x1b[" in line
        assert "WARN" in line
        assert line.endswith(" Installing Go 1.15.2")

    def test_without_levels(self):
        formatter = LevelFormatter(show_levels=False)
        assert formatter.format(_record(logging.ERROR)) == "Installing Go 1.15.2"


# ── setup_logging ───────────────────────────────────────────────


class TestSetupLogging:
    def test_default_is_warning(self):
        setup_logging()
        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert len(root.handlers) == 1
        assert isinstance(_console().formatter, LevelFormatter)

    def test_explicit_level(self):
        setup_logging(level="DEBUG")
        assert logging.getLogger().level == logging.DEBUG
        assert "%(name)s:%(lineno)d" in _console().formatter._fmt

    def test_info_is_bare_message(self):
        setup_logging(level="INFO")
        assert _console().formatter._fmt == "%(message)s"

    def test_env_fallback(self, monkeypatch):
        monkeypatch.setenv("YB_LOG_LEVEL", "info")
        setup_logging()
        assert logging.getLogger().level == logging.INFO

    def test_flag_beats_env(self, monkeypatch):
        monkeypatch.setenv("YB_LOG_LEVEL", "debug")
        setup_logging(level="ERROR")
        assert logging.getLogger().level == logging.ERROR

    def test_replaces_handlers(self):
        setup_logging()
        setup_logging()
        assert len(logging.getLogger().handlers) == 1

    def test_no_pretty_output(self, monkeypatch):
        monkeypatch.setenv("YB_NO_PRETTY_OUTPUT", "1")
        setup_logging()
        assert not _console().formatter.show_levels

    def test_clicolor_off(self, monkeypatch):
        monkeypatch.setenv("CLICOLOR", "0")
        setup_logging()
        formatter = _console().formatter
        assert formatter.show_levels
        assert not formatter.color
        assert formatter.format(_record(logging.WARNING)) == "WARN Installing Go 1.15.2"

    def test_color_by_default(self):
        setup_logging()
        assert _console().formatter.color


class TestLogFile:
    def test_file_gets_more_detail(self, tmp_path):
        log_file = tmp_path / "yb.log"
        setup_logging(level="WARNING", log_file=str(log_file), log_file_level="DEBUG")
        root = logging.getLogger()
        assert root.level == logging.DEBUG

        logging.getLogger("yb.test").debug("installing go")
        for handler in root.handlers:
            handler.flush()

        text = log_file.read_text()
        assert "installing go" in text
        assert "DEBUG" in text
        assert "yb.test" in text
        assert "\x1b[" not in text

    def test_file_from_env(self, tmp_path, monkeypatch):
        log_file = tmp_path / "env.log"
        monkeypatch.setenv("YB_LOG_FILE", str(log_file))
        setup_logging(level="INFO")
        logging.getLogger("yb.test").info("from env")
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert "from env" in log_file.read_text()
        assert logging.getLogger().level == logging.INFO
