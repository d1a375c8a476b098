"""
Pytest configuration and shared fixtures.

Contains common test fixtures and setup for all test modules.
"""

import os
import signal
from datetime import date
from pathlib import Path
from typing import Dict, Generator

import pytest
from prometheus_client import CollectorRegistry

from logveil.core.metrics import MetricsCollector
from logveil.core.output import OutputRouter, OutputTarget, open_output_target
from logveil.core.salt import SaltProvider

FIXED_DAY = date(2024, 1, 1)


@pytest.fixture
def fixed_day() -> date:
    return FIXED_DAY


@pytest.fixture
def salt_provider() -> SaltProvider:
    """Salt provider with secret "s" pinned to 2024-01-01."""
    return SaltProvider("s", clock=lambda: FIXED_DAY)


@pytest.fixture
def output_paths(tmp_path: Path) -> Dict[str, Path]:
    return {
        "tracked": tmp_path / "goaccess.log",
        "untracked": tmp_path / "untracked.log",
    }


@pytest.fixture
def open_target(output_paths: Dict[str, Path]):
    """Opener for a fresh OutputTarget at the temp paths."""
    def _open() -> OutputTarget:
        return open_output_target(output_paths["tracked"], output_paths["untracked"])
    return _open


@pytest.fixture
def router(open_target) -> Generator[OutputRouter, None, None]:
    router = OutputRouter(open_target())
    yield router
    router.close()


@pytest.fixture
def metrics() -> MetricsCollector:
    """Collector on a private registry so tests don't collide."""
    return MetricsCollector(registry=CollectorRegistry())


@pytest.fixture
def restore_sighup() -> Generator[None, None, None]:
    """Put the original SIGHUP handler back after the test."""
    original = signal.getsignal(signal.SIGHUP)
    yield
    signal.signal(signal.SIGHUP, original)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> Generator[pytest.MonkeyPatch, None, None]:
    """
    Private environment without any relay variables.

    Config loading writes YAML values into os.environ, so the whole mapping
    is swapped for a copy that is thrown away after the test.
    """
    from logveil import config

    env = {
        name: value for name, value in os.environ.items()
        if not (name.startswith("LOGVEIL_") or name == "SALT")
    }
    monkeypatch.setattr(os, "environ", env)
    yield monkeypatch
    monkeypatch.setattr(config, "_config_path", None)
    config.get_settings.cache_clear()
