import logging

import pytest
import structlog

from void_survey.config import SurveySettings, load_settings
from void_survey.logging_setup import PACKAGE_LOGGER, QUIET_LOGGERS, configure_logging


@pytest.fixture(autouse=True)
def restore_logging():
    names = (PACKAGE_LOGGER,) + QUIET_LOGGERS
    levels = {name: logging.getLogger(name).level for name in names}
    yield
    for name, level in levels.items():
        logging.getLogger(name).setLevel(level)
    structlog.reset_defaults()


def test_level_comes_from_settings():
    configure_logging(SurveySettings(log_level="debug"))
    assert logging.getLogger(PACKAGE_LOGGER).level == logging.DEBUG
    assert logging.getLogger("httpx").level == logging.WARNING


def test_quiet_loggers_follow_a_stricter_level():
    configure_logging(SurveySettings(log_level="ERROR"))
    assert logging.getLogger(PACKAGE_LOGGER).level == logging.ERROR
    assert logging.getLogger("httpcore").level == logging.ERROR


def test_unknown_level_falls_back_to_info():
    configure_logging(SurveySettings(log_level="chatty"))
    assert logging.getLogger(PACKAGE_LOGGER).level == logging.INFO


def test_json_renderer():
    configure_logging(SurveySettings(json_logs=True))
    processors = structlog.get_config()["processors"]
    assert isinstance(processors[-1], structlog.processors.JSONRenderer)


def test_env_override(monkeypatch, tmp_path):
    monkeypatch.setenv("VOID_SURVEY_LOG_LEVEL", "WARNING")
    settings = load_settings(tmp_path / "missing.yaml")
    assert settings.log_level == "WARNING"
