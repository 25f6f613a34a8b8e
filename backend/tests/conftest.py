"""Shared test fixtures"""
import logging

import pytest

from app.config import Settings

CONFIG_VARIABLES = list(Settings.model_fields)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Start every test without any configuration variable set"""
    for name in CONFIG_VARIABLES:
        monkeypatch.delenv(name, raising=False)
    yield monkeypatch


@pytest.fixture
def restore_logging():
    """Undo root logger changes made by init_logger()"""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers = handlers
    root.setLevel(level)


class FakeRedis:
    """Stand-in for redis.Redis that records how it was built"""

    def __init__(self, fail_ping=None, **kwargs):
        self.kwargs = kwargs
        self.fail_ping = fail_ping
        self.closed = False

    def ping(self):
        if self.fail_ping is not None:
            raise self.fail_ping
        return True

    def close(self):
        self.closed = True


@pytest.fixture
def fake_redis():
    return FakeRedis
