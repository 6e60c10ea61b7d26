"""Unit test fixtures for artifactory-build-info.

Unit tests:
- Run without the jfrog CLI or an Artifactory server
- Fake subprocesses with unittest.mock (or a fake jfrog shell script) and
  HTTP with httpx.MockTransport
- Never sleep: time is driven by the fake_clock fixture

For shared fixtures across all test tiers, see ../conftest.py.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any
from unittest.mock import MagicMock

import pytest

from artifactory_build_info.auth import TokenAuth
from artifactory_build_info.config import PluginSettings
from artifactory_build_info.jfrog import JFrogCLI

if TYPE_CHECKING:
    from collections.abc import Callable

# Test fixture values (use constants to avoid secret scanner false positives)
TEST_TOKEN_VALUE = "PLACEHOLDER_ACCESS_TOKEN"
BASE_URL = "https://artifactory.example.com/artifactory/"


class FakeClock:
    """Monotonic clock whose sleep() advances time instantly."""

    def __init__(self) -> None:
        self.now = 1000.0
        self.sleeps: list[float] = []

    def clock(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    @property
    def elapsed(self) -> float:
        return self.now - 1000.0


@pytest.fixture
def fake_clock() -> FakeClock:
    """Provide a fresh fake clock."""
    return FakeClock()


@pytest.fixture
def base_url() -> str:
    """Sanitized Artifactory root used across unit tests."""
    return BASE_URL


@pytest.fixture
def token_auth() -> TokenAuth:
    """Provide access-token authentication."""
    return TokenAuth(TEST_TOKEN_VALUE)


@pytest.fixture
def make_settings() -> Callable[..., PluginSettings]:
    """Factory fixture building PluginSettings by field name.

    Usage:
        def test_x(make_settings: Callable[..., PluginSettings]) -> None:
            settings = make_settings(build_trigger="alice")
    """

    def _make(**overrides: Any) -> PluginSettings:
        values: dict[str, Any] = {
            "build_name": "build-7",
            "build_number": "42",
            "docker_image": "artifactory.example.com/my-repo/my-app:1.0",
            "url": "https://artifactory.example.com/artifactory/",
            "access_token": TEST_TOKEN_VALUE,
        }
        values.update(overrides)
        return PluginSettings(**values)

    return _make


@pytest.fixture
def fake_jfrog(tmp_path: Path) -> Callable[[bytes, int], Path]:
    """Factory writing a ``jfrog`` shell script with fixed raw output.

    Usage:
        script = fake_jfrog(b"fatal: \\xff not a git repo\\n", 1)
        cli = JFrogCLI(url=..., auth=..., executable=str(script))
    """

    def _write(output: bytes, returncode: int) -> Path:
        script = tmp_path / "bin" / "jfrog"
        script.parent.mkdir(exist_ok=True)
        escaped = "".join(f"\\{byte:03o}" for byte in output)
        script.write_text(f"#!/bin/sh\nprintf '{escaped}'\nexit {returncode}\n")
        script.chmod(0o755)
        return script

    return _write


@pytest.fixture
def mock_cli(base_url: str, token_auth: TokenAuth) -> MagicMock:
    """Provide a JFrogCLI double whose run() succeeds with empty output."""
    cli = MagicMock(spec=JFrogCLI)
    cli.url = base_url
    cli.auth = token_auth
    cli.run.return_value = ""
    return cli
