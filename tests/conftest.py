"""Shared test fixtures: hermetic settings, a fake LLM backend and a fake clock."""

import os

# No real LLM calls from tests, whatever the shell environment holds.
os.environ.pop("FAULTLINE_LLM_API_BASE", None)
os.environ.pop("FAULTLINE_LLM_MODEL", None)

from collections.abc import Callable
from typing import Any

import pytest

from faultline.analysis.cache import AnalysisCache
from faultline.analysis.llm.fakes import FakeLLMBackend
from faultline.config import Settings


def make_settings(**overrides: Any) -> Settings:
    """Settings that ignore any local .env file."""
    base: dict[str, Any] = {
        "enable_llm_advisor": False,
        "debounce_ms": 0,
        "min_fragment_length": 0,
    }
    base.update(overrides)
    return Settings(_env_file=None, **base)  # type: ignore[call-arg]


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def settings_factory() -> Callable[..., Settings]:
    return make_settings


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def advisor_settings() -> Settings:
    return make_settings(enable_llm_advisor=True)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> AnalysisCache:
    return AnalysisCache(ttl_seconds=600, max_entries=100, clock=clock)


@pytest.fixture
def fake_backend() -> FakeLLMBackend:
    return FakeLLMBackend()
