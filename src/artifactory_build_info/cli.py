"""Command-line entry point for the artifactory-build-info plugin.

The plugin takes its configuration from the environment (see
PluginSettings); the command line only offers overrides useful when running
it by hand.

Exit Codes:
    0 - Build-info published (principal failures are warnings only)
    1 - Unexpected error
    2 - Invalid configuration
    3 - jfrog CLI failure
    4 - Digest could not be resolved

Example:
    $ PLUGIN_URL=https://host/artifactory PLUGIN_DOCKER_IMAGE=host.example.com/repo/app:1.0 \\
        PLUGIN_BUILD_NAME=app PLUGIN_BUILD_NUMBER=42 PLUGIN_ACCESS_TOKEN=... \\
        artifactory-build-info
"""

from __future__ import annotations

import sys
from importlib.metadata import version as get_version
from pathlib import Path
from typing import TYPE_CHECKING

import click
from pydantic import ValidationError

from artifactory_build_info.config import PluginSettings
from artifactory_build_info.errors import BuildInfoError, ConfigurationError
from artifactory_build_info.logging import configure_logging
from artifactory_build_info.plugin import BuildInfoPlugin

if TYPE_CHECKING:
    from typing import NoReturn

LOG_LEVELS = ("trace", "debug", "info", "warning", "warn", "error", "fatal", "panic")


def _get_version() -> str:
    """Return the installed package version, or 'unknown'."""
    try:
        return get_version("artifactory-build-info")
    except Exception:
        return "unknown"


def error_exit(message: str, exit_code: int) -> NoReturn:
    """Print an error message to stderr and exit with ``exit_code``."""
    click.echo(f"Error: {message}", err=True)
    sys.exit(exit_code)


def format_validation_error(exc: ValidationError) -> str:
    """Render settings validation errors one per line."""
    lines = ["invalid plugin settings:"]
    for err in exc.errors():
        location = ".".join(str(part) for part in err["loc"]) or "settings"
        lines.append(f"  {location}: {err['msg']}")
    return "\n".join(lines)


@click.command(
    name="artifactory-build-info",
    help="Publish Artifactory build-info for a pushed Docker image.",
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.version_option(
    version=_get_version(),
    prog_name="artifactory-build-info",
    message="%(prog)s %(version)s",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default=None,
    help="Override PLUGIN_LOG_LEVEL.",
)
@click.option(
    "--work-dir",
    type=click.Path(file_okay=False, dir_okay=True, path_type=Path),
    default=None,
    help="Directory for query.json and image_info.txt (default: current directory).",
)
def cli(log_level: str | None, work_dir: Path | None) -> None:
    """Run the plugin once using settings from the environment."""
    try:
        settings = PluginSettings()
    except ValidationError as e:
        error_exit(format_validation_error(e), ConfigurationError.exit_code)

    log = configure_logging(log_level or settings.log_level)

    try:
        result = BuildInfoPlugin(settings, work_dir=work_dir, log=log).run()
    except BuildInfoError as e:
        log.error("run_failed", error=str(e), error_type=type(e).__name__)
        sys.exit(e.exit_code)

    log.info(
        "build_info_published",
        image_info=result.image_info,
        vcs_attached=result.vcs_attached,
        principal_attached=result.principal_attached,
    )


def main(argv: list[str] | None = None) -> None:
    """Main entry point.

    Args:
        argv: Command-line arguments (uses sys.argv if None).
    """
    try:
        cli(args=argv, standalone_mode=False)
    except click.ClickException as e:
        e.show()
        sys.exit(e.exit_code)
    except click.Abort:
        click.echo("Aborted!", err=True)
        sys.exit(1)
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
