"""Unit tests for the plugin workflow.

Tests cover:
- The CLI command sequence for a full run
- Optional VCS and principal steps
- Fatal versus non-fatal failures
- TLS settings handed to the CLI and HTTP client
"""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

import httpx
import pytest
from structlog.testing import capture_logs

from artifactory_build_info.config import PluginSettings
from artifactory_build_info.errors import (
    ArtifactoryURLError,
    AuthenticationConfigError,
    ImageReferenceError,
    JFrogCLIError,
    NoMatchingArtifactError,
)
from artifactory_build_info.plugin import DEFAULT_PEM_FILE_NAME, BuildInfoPlugin, PublishResult

VCS_SETTINGS = {
    "commit_sha": "abc123",
    "repo_url": "https://git.example.com/org/repo.git",
    "branch_name": "main",
    "default_path": "/drone/src",
}


def search_output(digest: str) -> str:
    return "12:00:01 [Info] Searching artifacts...\n" + json.dumps([{"sha256": digest}])


def subcommands(cli: MagicMock) -> list[str]:
    """Return the jfrog sub-commands run, in order."""
    return [c.args[0][1] for c in cli.run.call_args_list]


@pytest.fixture
def registry() -> Callable[[httpx.Request], httpx.Response]:
    """Build API that is immediately visible and accepts the update."""

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "PUT":
            return httpx.Response(204)
        return httpx.Response(200, json={"buildInfo": {"name": "build-7", "number": "42"}})

    return handler


@pytest.fixture
def run_plugin(
    mock_cli: MagicMock, tmp_path: Path, fake_clock: Any, sample_digest: str
) -> Callable[..., PublishResult]:
    """Run the plugin with a mocked CLI whose search returns sample_digest."""

    def _run(
        settings: PluginSettings,
        handler: Callable[[httpx.Request], httpx.Response] | None = None,
    ) -> PublishResult:
        mock_cli.run.side_effect = lambda args, **_: (
            search_output(sample_digest) if args[1] == "s" else ""
        )
        client = httpx.Client(transport=httpx.MockTransport(handler)) if handler else None
        plugin = BuildInfoPlugin(
            settings,
            work_dir=tmp_path,
            cli=mock_cli,
            http_client=client,
            reconciler_options={"clock": fake_clock.clock, "sleep": fake_clock.sleep},
        )
        return plugin.run()

    return _run


class TestRun:
    """Tests for BuildInfoPlugin.run()."""

    def test_minimal_run(
        self,
        run_plugin: Callable[..., PublishResult],
        make_settings: Callable[..., PluginSettings],
        mock_cli: MagicMock,
        sample_digest: str,
    ) -> None:
        """Test search, create and publish run in order without optional steps."""
        result = run_plugin(make_settings())

        assert subcommands(mock_cli) == ["s", "build-docker-create", "build-publish"]
        assert result.image_info == f"my-repo/my-app:1.0@sha256:{sample_digest}"
        assert result.digest == sample_digest
        assert result.vcs_attached is False
        assert result.principal_attached is False

    def test_searches_manifest_of_tag(
        self,
        run_plugin: Callable[..., PublishResult],
        make_settings: Callable[..., PluginSettings],
        tmp_path: Path,
    ) -> None:
        run_plugin(make_settings())

        query = json.loads((tmp_path / "query.json").read_text())
        assert query["files"][0]["aql"]["items.find"] == {
            "repo": "my-repo",
            "path": "my-app/1.0",
            "name": "manifest.json",
        }

    def test_vcs_info_is_added_before_publish(
        self,
        run_plugin: Callable[..., PublishResult],
        make_settings: Callable[..., PluginSettings],
        mock_cli: MagicMock,
    ) -> None:
        result = run_plugin(make_settings(**VCS_SETTINGS))

        assert subcommands(mock_cli) == [
            "s",
            "build-docker-create",
            "build-add-git",
            "build-publish",
        ]
        assert mock_cli.run.call_args_list[2].args[0][-1] == "/drone/src"
        assert result.vcs_attached is True

    def test_principal_is_added(
        self,
        run_plugin: Callable[..., PublishResult],
        make_settings: Callable[..., PluginSettings],
        registry: Callable[[httpx.Request], httpx.Response],
    ) -> None:
        result = run_plugin(make_settings(build_trigger="alice"), registry)

        assert result.principal_attached is True


class TestFailures:
    """Tests for fatal and non-fatal failures."""

    @pytest.mark.parametrize(
        ("overrides", "error"),
        [
            ({"docker_image": "my-app"}, ImageReferenceError),
            ({"url": "https://artifactory.example.com/api"}, ArtifactoryURLError),
            ({"access_token": None}, AuthenticationConfigError),
        ],
    )
    def test_configuration_errors_stop_before_any_command(
        self,
        run_plugin: Callable[..., PublishResult],
        make_settings: Callable[..., PluginSettings],
        mock_cli: MagicMock,
        overrides: dict[str, Any],
        error: type[Exception],
    ) -> None:
        with pytest.raises(error):
            run_plugin(make_settings(**overrides))

        mock_cli.run.assert_not_called()

    def test_digest_not_found_is_fatal(
        self,
        make_settings: Callable[..., PluginSettings],
        mock_cli: MagicMock,
        tmp_path: Path,
    ) -> None:
        mock_cli.run.return_value = "[]"
        plugin = BuildInfoPlugin(make_settings(), work_dir=tmp_path, cli=mock_cli)

        with pytest.raises(NoMatchingArtifactError):
            plugin.run()

        assert subcommands(mock_cli) == ["s"]

    def test_publish_failure_is_fatal(
        self,
        make_settings: Callable[..., PluginSettings],
        mock_cli: MagicMock,
        tmp_path: Path,
        sample_digest: str,
    ) -> None:
        def fail_publish(args: list[str], **_: Any) -> str:
            if args[1] == "build-publish":
                raise JFrogCLIError(args[:2], 1)
            return search_output(sample_digest) if args[1] == "s" else ""

        mock_cli.run.side_effect = fail_publish
        plugin = BuildInfoPlugin(
            make_settings(build_trigger="alice"), work_dir=tmp_path, cli=mock_cli
        )

        with pytest.raises(JFrogCLIError) as exc_info:
            plugin.run()

        assert exc_info.value.exit_code == 3

    def test_git_failure_is_not_fatal(
        self,
        make_settings: Callable[..., PluginSettings],
        mock_cli: MagicMock,
        tmp_path: Path,
        sample_digest: str,
    ) -> None:
        def fail_git(args: list[str], **_: Any) -> str:
            if args[1] == "build-add-git":
                raise JFrogCLIError(args[:2], 1, "not a git repository")
            return search_output(sample_digest) if args[1] == "s" else ""

        mock_cli.run.side_effect = fail_git
        plugin = BuildInfoPlugin(make_settings(**VCS_SETTINGS), work_dir=tmp_path, cli=mock_cli)

        result = plugin.run()

        assert result.vcs_attached is False
        assert subcommands(mock_cli)[-1] == "build-publish"

    def test_principal_failure_is_a_warning(
        self,
        run_plugin: Callable[..., PublishResult],
        make_settings: Callable[..., PluginSettings],
    ) -> None:
        """Test a record that never appears still leaves the run successful."""

        def never_visible(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404)

        with capture_logs() as logs:
            result = run_plugin(make_settings(build_trigger="alice"), never_visible)

        assert result.principal_attached is False
        warnings = [entry for entry in logs if entry["event"] == "principal_not_added"]
        assert len(warnings) == 1
        assert warnings[0]["log_level"] == "warning"
        assert "Timed out" in warnings[0]["error"]


class TestTLS:
    """Tests for PEM and insecure handling."""

    def test_pem_contents_are_written(
        self, make_settings: Callable[..., PluginSettings], tmp_path: Path
    ) -> None:
        plugin = BuildInfoPlugin(
            make_settings(pem_file_contents="-----BEGIN CERTIFICATE-----\n"),
            work_dir=tmp_path,
        )

        verify = plugin._tls_verify()

        assert verify == tmp_path / DEFAULT_PEM_FILE_NAME
        assert verify.read_text() == "-----BEGIN CERTIFICATE-----\n"

    def test_pem_path_is_used_as_is(
        self, make_settings: Callable[..., PluginSettings], tmp_path: Path
    ) -> None:
        bundle = tmp_path / "ca.pem"
        plugin = BuildInfoPlugin(make_settings(pem_file_path=bundle), work_dir=tmp_path)

        assert plugin._tls_verify() == bundle

    def test_insecure_disables_verification(
        self, make_settings: Callable[..., PluginSettings], tmp_path: Path
    ) -> None:
        plugin = BuildInfoPlugin(
            make_settings(insecure=True, pem_file_contents="pem"), work_dir=tmp_path
        )

        assert plugin._tls_verify() is False
        assert not (tmp_path / DEFAULT_PEM_FILE_NAME).exists()

    def test_cli_receives_tls_settings(
        self,
        make_settings: Callable[..., PluginSettings],
        tmp_path: Path,
        sample_digest: str,
    ) -> None:
        """Test the default CLI adapter is built with the CA bundle and cwd."""
        with patch("artifactory_build_info.plugin.JFrogCLI") as cli_cls:
            cli = cli_cls.return_value
            cli.url = "https://artifactory.example.com/artifactory/"
            cli.run.side_effect = lambda args, **_: (
                search_output(sample_digest) if args[1] == "s" else ""
            )
            plugin = BuildInfoPlugin(
                make_settings(pem_file_contents="pem"), work_dir=tmp_path
            )

            plugin.run()

        kwargs = cli_cls.call_args.kwargs
        assert kwargs["url"] == "https://artifactory.example.com/artifactory/"
        assert kwargs["ca_bundle"] == tmp_path / DEFAULT_PEM_FILE_NAME
        assert kwargs["insecure"] is False
        assert kwargs["cwd"] == tmp_path
