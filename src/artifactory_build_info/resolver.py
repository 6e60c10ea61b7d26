"""Docker manifest digest resolution.

The digest of a pushed tag is read from the ``sha256`` checksum Artifactory
keeps for the tag's ``manifest.json``. The lookup is an AQL search run by
``jfrog rt s``, whose output mixes log lines with the JSON result array, so
the scraping is kept behind the narrow DigestResolver interface.

Example:
    >>> resolver = AqlDigestResolver(cli, work_dir=Path.cwd(), log=log)
    >>> resolver.find_digest("docker-local", "team/app/1.0")
    'deadbeef...'
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

from artifactory_build_info.errors import (
    DigestResolutionError,
    NoMatchingArtifactError,
    NoSearchOutputError,
)

if TYPE_CHECKING:
    from artifactory_build_info.jfrog import JFrogCLI

logger = structlog.get_logger(__name__)

MANIFEST_FILE_NAME = "manifest.json"
QUERY_FILE_NAME = "query.json"


class DigestResolver(ABC):
    """Looks up the manifest digest of an image tag."""

    @abstractmethod
    def find_digest(self, repository: str, path: str) -> str:
        """Return the SHA-256 digest of ``<repository>/<path>/manifest.json``.

        Raises:
            DigestResolutionError: If the digest cannot be determined.
        """
        ...


def build_manifest_query(repository: str, path: str) -> dict[str, Any]:
    """Build the jfrog file spec searching for a tag's manifest.json."""
    return {
        "files": [
            {
                "aql": {
                    "items.find": {
                        "repo": repository,
                        "path": path,
                        "name": MANIFEST_FILE_NAME,
                    }
                }
            }
        ]
    }


def extract_sha256(output: str) -> str:
    """Extract the first result's sha256 from ``jfrog rt s`` output.

    Everything before the first line starting with ``[`` is log noise; that
    line and all following lines are the JSON result array.

    Args:
        output: Combined CLI output.

    Returns:
        The ``sha256`` of the first search result.

    Raises:
        NoSearchOutputError: If no line starts with ``[``.
        NoMatchingArtifactError: If the result array is empty.
        DigestResolutionError: If the JSON is malformed or has no sha256.
    """
    lines = output.replace("\\n", "\n").split("\n")
    start = next((i for i, line in enumerate(lines) if line.startswith("[")), None)
    if start is None:
        raise NoSearchOutputError()

    try:
        results = json.loads("\n".join(lines[start:]))
    except json.JSONDecodeError as e:
        raise DigestResolutionError(f"Error parsing jfrog search output: {e}") from e

    if not isinstance(results, list):
        raise DigestResolutionError("jfrog search output is not a JSON array")
    if not results:
        raise NoMatchingArtifactError()

    first = results[0]
    digest = first.get("sha256") if isinstance(first, dict) else None
    if not isinstance(digest, str) or not digest:
        raise DigestResolutionError("First search result has no sha256 field")
    return digest


class AqlDigestResolver(DigestResolver):
    """Resolves digests with an AQL file spec and ``jfrog rt s``."""

    def __init__(self, cli: JFrogCLI, *, work_dir: Path, log: Any = None) -> None:
        """Initialize AqlDigestResolver.

        Args:
            cli: jfrog CLI adapter.
            work_dir: Directory receiving the query file.
            log: Logger to bind; module logger if None.
        """
        self._cli = cli
        self._work_dir = work_dir
        self._log = (log or logger).bind(component="digest_resolver")

    def write_query(self, repository: str, path: str) -> Path:
        """Write the search spec file and return its path."""
        query_file = self._work_dir / QUERY_FILE_NAME
        contents = json.dumps(build_manifest_query(repository, path), indent=2) + "\n"
        query_file.write_text(contents, encoding="utf-8")
        self._log.info("query_file_written", path=str(query_file))
        self._log.debug("query_file_contents", contents=contents)
        return query_file

    def find_digest(self, repository: str, path: str) -> str:
        query_file = self.write_query(repository, path)
        output = self._cli.run(["rt", "s", f"--spec={query_file}", f"--url={self._cli.url}"])
        try:
            digest = extract_sha256(output)
        except NoMatchingArtifactError:
            raise NoMatchingArtifactError(repository, path) from None
        self._log.info("digest_resolved", repository=repository, path=path, sha256=digest)
        return digest


__all__ = [
    "MANIFEST_FILE_NAME",
    "QUERY_FILE_NAME",
    "AqlDigestResolver",
    "DigestResolver",
    "build_manifest_query",
    "extract_sha256",
]
