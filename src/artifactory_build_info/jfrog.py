"""Subprocess adapter for the jfrog CLI.

The jfrog CLI is treated as an opaque collaborator: commands are run to
completion, their exit status decides success, and the combined
stdout/stderr text is returned to the caller.

Example:
    >>> cli = JFrogCLI(url="https://host/artifactory/", auth=TokenAuth("..."), log=log)
    >>> output = cli.run(["rt", "s", "--spec=query.json", f"--url={cli.url}"])
"""

from __future__ import annotations

import os
import shutil
import subprocess
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from opentelemetry import trace

from artifactory_build_info.errors import JFrogCLIError

if TYPE_CHECKING:
    from artifactory_build_info.auth import AuthStrategy

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)

DEFAULT_EXECUTABLE = "jfrog"

CLI_ENVIRONMENT: dict[str, str] = {"JFROG_CLI_OFFER_CONFIG": "false"}
"""Keeps the CLI from prompting for a server configuration."""


def resolve_executable(name: str) -> str:
    """Resolve an executable name to its full path, or return it unchanged."""
    return shutil.which(name) or name


class JFrogCLI:
    """Runs jfrog CLI commands against one Artifactory server.

    Attributes:
        url: Sanitized Artifactory root passed as ``--url``.
        auth: Strategy supplying credential flags.
    """

    def __init__(
        self,
        *,
        url: str,
        auth: AuthStrategy,
        executable: str = DEFAULT_EXECUTABLE,
        insecure: bool = False,
        ca_bundle: Path | None = None,
        cwd: Path | None = None,
        log: Any = None,
    ) -> None:
        """Initialize JFrogCLI.

        Args:
            url: Sanitized Artifactory root.
            auth: Authentication strategy for server commands.
            executable: CLI executable name or path.
            insecure: Append ``--insecure-tls`` to server commands.
            ca_bundle: PEM bundle exported to the CLI as SSL_CERT_FILE.
            cwd: Working directory for the subprocess.
            log: Logger to bind; module logger if None.
        """
        self.url = url
        self.auth = auth
        self._executable = resolve_executable(executable)
        self._insecure = insecure
        self._ca_bundle = ca_bundle
        self._cwd = cwd
        self._log = (log or logger).bind(component="jfrog_cli")

    def server_args(self, *, masked: bool = False) -> list[str]:
        """Return trailing flags for commands that talk to the server.

        Args:
            masked: Replace credential values with a mask, for logging.
        """
        args = self.auth.masked_cli_args() if masked else self.auth.to_cli_args()
        if self._insecure:
            args.append("--insecure-tls")
        return args

    def _environment(self) -> dict[str, str]:
        env = dict(os.environ)
        for key, value in CLI_ENVIRONMENT.items():
            env.setdefault(key, value)
        if self._ca_bundle is not None:
            env["SSL_CERT_FILE"] = str(self._ca_bundle)
        return env

    def run(self, args: Sequence[str], *, server: bool = True) -> str:
        """Run one jfrog command and return its combined output.

        Args:
            args: Sub-command and flags, without the executable.
            server: Append credential flags (False for local-only commands
                such as ``rt build-add-git``).

        Returns:
            Combined stdout and stderr, decoded as UTF-8 with undecodable
            bytes replaced.

        Raises:
            JFrogCLIError: If the process cannot start or exits non-zero.
        """
        argv = [*args, *self.server_args()] if server else list(args)
        shown = [*args, *self.server_args(masked=True)] if server else list(args)
        printable = " ".join([DEFAULT_EXECUTABLE, *shown])
        subcommand = list(args[:2])

        with tracer.start_as_current_span("artifactory_build_info.jfrog") as span:
            span.set_attribute("jfrog.command", " ".join(subcommand))
            self._log.info("executing_command", command=printable)

            try:
                result = subprocess.run(
                    [self._executable, *argv],
                    stdout=subprocess.PIPE,
                    stderr=subprocess.STDOUT,
                    encoding="utf-8",
                    errors="replace",
                    check=False,
                    cwd=self._cwd,
                    env=self._environment(),
                )
            except OSError as e:
                span.record_exception(e)
                raise JFrogCLIError(subcommand, 127, str(e)) from e

            output = self.auth.mask(result.stdout or "")
            span.set_attribute("jfrog.returncode", result.returncode)
            self._log.debug("command_output", command=" ".join(subcommand), output=output)

            if result.returncode != 0:
                self._log.error(
                    "command_failed",
                    command=" ".join(subcommand),
                    returncode=result.returncode,
                )
                raise JFrogCLIError(subcommand, result.returncode, output)

            return result.stdout or ""


__all__ = ["CLI_ENVIRONMENT", "DEFAULT_EXECUTABLE", "JFrogCLI", "resolve_executable"]
