"""Exception hierarchy for artifactory-build-info.

All exceptions inherit from BuildInfoError, the base exception class.

Exception Hierarchy:
    BuildInfoError (base)
    ├── ConfigurationError             # Invalid plugin input, fatal
    │   ├── ImageReferenceError        # Malformed or unsupported image reference
    │   ├── ArtifactoryURLError        # URL is not an Artifactory URL
    │   └── AuthenticationConfigError  # No usable authentication method
    ├── JFrogCLIError                  # jfrog CLI exited non-zero
    ├── DigestResolutionError          # Digest could not be read from search output
    │   ├── NoSearchOutputError        # No JSON array in the output
    │   └── NoMatchingArtifactError    # Search returned no results
    └── ReconcileError                 # Principal update failed, never fatal
        ├── ReconcileTimeoutError      # Build info not visible before the deadline
        ├── BuildInfoFetchError        # GET returned a non-200 status
        ├── BuildInfoShapeError        # Payload has no buildInfo object
        └── BuildInfoUpdateError       # PUT returned a non-success status

Exit Codes:
    0 - Success (including reconcile failures)
    1 - General error (BuildInfoError)
    2 - Configuration error (ConfigurationError)
    3 - jfrog CLI failure (JFrogCLIError)
    4 - Digest resolution failure (DigestResolutionError)

Example:
    >>> from artifactory_build_info.errors import ImageReferenceError
    >>> raise ImageReferenceError("nginx", "missing tag separator ':'")
    Traceback (most recent call last):
        ...
    ImageReferenceError: Invalid Docker image 'nginx': missing tag separator ':'
"""

from __future__ import annotations

from collections.abc import Sequence

_BODY_PREVIEW_LIMIT = 512


def _preview(body: str) -> str:
    if len(body) <= _BODY_PREVIEW_LIMIT:
        return body
    return body[:_BODY_PREVIEW_LIMIT] + "..."


class BuildInfoError(Exception):
    """Base exception for all plugin errors.

    Attributes:
        exit_code: Process exit code for this error type (default: 1).
    """

    exit_code: int = 1


class ConfigurationError(BuildInfoError):
    """Raised when plugin input is invalid.

    Detected before any subprocess or network work is started.
    """

    exit_code: int = 2


class ImageReferenceError(ConfigurationError):
    """Raised when the Docker image reference cannot be parsed.

    Attributes:
        image: The offending image reference.
        reason: Why parsing failed.
    """

    def __init__(self, image: str, reason: str) -> None:
        self.image = image
        self.reason = reason
        super().__init__(f"Invalid Docker image '{image}': {reason}")


class ArtifactoryURLError(ConfigurationError):
    """Raised when the registry URL is malformed or not an Artifactory URL.

    Attributes:
        url: The offending URL.
        reason: Why sanitization failed.
    """

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"Invalid Artifactory URL '{url}': {reason}")


class AuthenticationConfigError(ConfigurationError):
    """Raised when no usable authentication method is configured."""


class JFrogCLIError(BuildInfoError):
    """Raised when a jfrog CLI invocation exits with a non-zero status.

    Attributes:
        command: The sub-command that failed (e.g. ``rt build-publish``).
        returncode: Process exit status.
        output: Combined stdout/stderr of the process.
    """

    exit_code: int = 3

    def __init__(self, command: Sequence[str], returncode: int, output: str = "") -> None:
        self.command = " ".join(command)
        self.returncode = returncode
        self.output = output
        msg = f"jfrog {self.command} exited with status {returncode}"
        if output.strip():
            msg += f"\n{_preview(output.strip())}"
        super().__init__(msg)


class DigestResolutionError(BuildInfoError):
    """Raised when the image manifest digest cannot be resolved."""

    exit_code: int = 4


class NoSearchOutputError(DigestResolutionError):
    """Raised when the search output contains no JSON array."""

    def __init__(self) -> None:
        super().__init__("Could not find JSON output in the jfrog search response")


class NoMatchingArtifactError(DigestResolutionError):
    """Raised when the search returned an empty result set.

    Attributes:
        repository: Repository that was searched.
        path: Manifest path that was searched.
    """

    def __init__(self, repository: str | None = None, path: str | None = None) -> None:
        self.repository = repository
        self.path = path
        if repository and path:
            super().__init__(f"No manifest.json found in {repository}/{path}")
        else:
            super().__init__("No artifacts found in jfrog search output")


class ReconcileError(BuildInfoError):
    """Base exception for principal reconciliation failures.

    These are reported as warnings; they never fail the run.
    """


class ReconcileTimeoutError(ReconcileError):
    """Raised when build info did not become visible before the deadline.

    Attributes:
        timeout_seconds: The deadline that elapsed.
    """

    def __init__(self, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Timed out after {timeout_seconds:g}s waiting for build info to be available"
        )


class BuildInfoFetchError(ReconcileError):
    """Raised when fetching build info returns a non-200 status.

    Attributes:
        status_code: HTTP status returned by the registry.
        body: Response body, kept for diagnostics.
    """

    def __init__(self, status_code: int, body: str = "") -> None:
        self.status_code = status_code
        self.body = body
        msg = f"Build info request failed with status {status_code}"
        if body:
            msg += f": {_preview(body)}"
        super().__init__(msg)


class BuildInfoShapeError(ReconcileError):
    """Raised when the build info payload lacks a buildInfo object."""


class BuildInfoUpdateError(ReconcileError):
    """Raised when the build info PUT returns a non-success status.

    Attributes:
        status_code: HTTP status returned by the registry.
        body: Response body, kept for diagnostics.
    """

    def __init__(self, status_code: int, body: str = "") -> None:
        self.status_code = status_code
        self.body = body
        msg = f"Build info update failed with status {status_code}"
        if body:
            msg += f": {_preview(body)}"
        super().__init__(msg)


__all__ = [
    "ArtifactoryURLError",
    "AuthenticationConfigError",
    "BuildInfoError",
    "BuildInfoFetchError",
    "BuildInfoShapeError",
    "BuildInfoUpdateError",
    "ConfigurationError",
    "DigestResolutionError",
    "ImageReferenceError",
    "JFrogCLIError",
    "NoMatchingArtifactError",
    "NoSearchOutputError",
    "ReconcileError",
    "ReconcileTimeoutError",
]
