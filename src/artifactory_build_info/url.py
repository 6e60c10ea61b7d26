"""Artifactory URL handling.

Users commonly paste a URL pointing somewhere below the Artifactory root
(``https://host/artifactory/webapp/#/builds``). The jfrog CLI and the REST API
both need the root itself, so the path is cut back to ``<prefix>/artifactory/``.
"""

from __future__ import annotations

import urllib.parse

from artifactory_build_info.errors import ArtifactoryURLError

ARTIFACTORY_SEGMENT = "/artifactory"


def sanitize_artifactory_url(url: str) -> str:
    """Normalize a URL to the Artifactory root.

    The path is truncated at the first ``/artifactory`` and forced to end in
    ``/artifactory/``. Query string and fragment are dropped.

    Args:
        url: User supplied URL.

    Returns:
        URL of the form ``scheme://host[:port]<prefix>/artifactory/``.

    Raises:
        ArtifactoryURLError: If scheme or host is missing, or the path has no
            ``/artifactory`` segment.

    Example:
        >>> sanitize_artifactory_url("https://host/x/artifactory/y/z")
        'https://host/x/artifactory/'
    """
    try:
        parsed = urllib.parse.urlsplit(url)
    except ValueError as e:
        raise ArtifactoryURLError(url, str(e)) from e

    if not parsed.scheme or not parsed.netloc:
        raise ArtifactoryURLError(url, "scheme and host are required")

    prefix, sep, _ = parsed.path.partition(ARTIFACTORY_SEGMENT)
    if not sep:
        raise ArtifactoryURLError(url, f"path does not contain '{ARTIFACTORY_SEGMENT}'")

    return urllib.parse.urlunsplit(
        (parsed.scheme, parsed.netloc, f"{prefix}{ARTIFACTORY_SEGMENT}/", "", "")
    )


def quote_path_segment(value: str) -> str:
    """Percent-encode a single path segment, spaces as ``%20``."""
    return urllib.parse.quote(value, safe="")


def build_info_url(base_url: str, build_name: str, build_number: str) -> str:
    """Return the REST URL of one build-info record.

    Args:
        base_url: Sanitized Artifactory root.
        build_name: Build name, encoded as one path segment.
        build_number: Build number, encoded as one path segment.
    """
    root = base_url.rstrip("/")
    return (
        f"{root}/api/build/{quote_path_segment(build_name)}/{quote_path_segment(build_number)}"
    )


def build_info_update_url(base_url: str) -> str:
    """Return the REST URL that accepts build-info uploads."""
    return f"{base_url.rstrip('/')}/api/build"


__all__ = [
    "ARTIFACTORY_SEGMENT",
    "build_info_update_url",
    "build_info_url",
    "quote_path_segment",
    "sanitize_artifactory_url",
]
