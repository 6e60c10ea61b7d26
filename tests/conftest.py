"""Shared pytest fixtures for artifactory-build-info tests.

For unit-specific fixtures, see unit/conftest.py.

NOTE: Do NOT add __init__.py to test directories - pytest uses importlib mode
which can cause namespace collisions with __init__.py files.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
import structlog

if TYPE_CHECKING:
    from collections.abc import Generator

PLUGIN_ENV_PREFIXES = ("PLUGIN_", "DRONE_")


@pytest.fixture(autouse=True)
def clean_plugin_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Remove plugin and CI runner variables inherited from the host.

    Tests that run inside a Drone pipeline would otherwise pick up the
    runner's own DRONE_* values through PluginSettings.
    """
    for key in list(os.environ):
        if key.upper().startswith(PLUGIN_ENV_PREFIXES):
            monkeypatch.delenv(key, raising=False)
    yield


@pytest.fixture(autouse=True)
def reset_structlog() -> Generator[None, None, None]:
    """Undo configure_logging() so level filters do not leak between tests."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def sample_digest() -> str:
    """Provide a well-formed manifest digest."""
    return "deadbeef" * 8
