import logging

import pytest
import structlog
from ordering.utils.logging import add_context, clear_context, configure_logging, get_log_level


@pytest.fixture()
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)
    structlog.reset_defaults()
    clear_context()


@pytest.mark.parametrize(
    "env,level",
    [("production", "INFO"), ("staging", "INFO"), ("development", "DEBUG"), ("test", "WARNING"), ("other", "INFO")],
)
def test_level_follows_environment(monkeypatch, env, level):
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    monkeypatch.delenv("ENV", raising=False)
    monkeypatch.delenv("ENVIRONMENT", raising=False)
    monkeypatch.setenv("PROTEAN_ENV", env)

    assert get_log_level() == level


def test_explicit_level_wins(monkeypatch):
    monkeypatch.setenv("PROTEAN_ENV", "production")
    monkeypatch.setenv("LOG_LEVEL", "ERROR")

    assert get_log_level() == "ERROR"


def test_file_handlers_only_with_log_dir(monkeypatch, tmp_path, restore_logging):
    monkeypatch.delenv("LOG_DIR", raising=False)
    configure_logging()
    assert len(logging.getLogger().handlers) == 1

    configure_logging(log_dir=str(tmp_path / "logs"))
    assert len(logging.getLogger().handlers) == 3
    assert (tmp_path / "logs").is_dir()


def test_context_is_bound_and_cleared(restore_logging):
    clear_context()
    add_context(request_id="req-1")
    assert structlog.contextvars.get_contextvars() == {"request_id": "req-1"}

    clear_context()
    assert structlog.contextvars.get_contextvars() == {}
