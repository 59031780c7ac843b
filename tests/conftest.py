from pathlib import Path
from types import SimpleNamespace

import pytest

from bdd_instrument.engine.options import CONFIG_ENV, OPTIONS_ENV
from bdd_instrument.report.channel import MemoryReportChannel

FIXTURES = Path(__file__).parent / "fixtures"


class RecordingFormatter:
    """Accepts any formatter callback and remembers it."""

    def __init__(self):
        self.calls = []

    def __getattr__(self, name):
        if name.startswith("__"):
            raise AttributeError(name)
        return lambda *args: self.calls.append((name, args))

    @property
    def names(self):
        return [name for name, _ in self.calls]


def make_feature(name="Login", keyword="Feature"):
    return SimpleNamespace(keyword=keyword, name=name)


def make_statement(name, keyword="Scenario"):
    return SimpleNamespace(keyword=keyword, name=name)


def make_step(name="a step", keyword="Given"):
    return SimpleNamespace(keyword=keyword, name=name)


def make_result(status="passed", error_message=None, name="a step", keyword="Given"):
    return SimpleNamespace(keyword=keyword, name=name, status=status, error_message=error_message)


@pytest.fixture
def channel():
    return MemoryReportChannel()


@pytest.fixture
def recorder():
    return RecordingFormatter()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    # the runner publishes options in the environment; keep tests apart
    monkeypatch.setenv(OPTIONS_ENV, "")
    monkeypatch.delenv(CONFIG_ENV, raising=False)


@pytest.fixture
def suite_dir():
    return FIXTURES / "suite"
