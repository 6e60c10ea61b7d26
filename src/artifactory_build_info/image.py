"""Docker image reference parsing.

Splits references of the form ``[registry/]repository/image[/...]:tag`` into
the Artifactory repository, the image path inside it, and the tag.

Example:
    >>> ref = ImageReference.parse("artifactory.example.com/docker-local/team/app:1.0")
    >>> ref.repository, ref.image_name, ref.tag
    ('docker-local', 'team/app', '1.0')
    >>> ref.manifest_path
    'team/app/1.0'
"""

from __future__ import annotations

from dataclasses import dataclass

from artifactory_build_info.errors import ImageReferenceError

DOMAIN_MIN_DOTS = 2
"""A first path segment with at least this many dots is a registry host."""


@dataclass(frozen=True)
class ImageReference:
    """Parsed Docker image reference.

    Attributes:
        repository: Artifactory repository key (e.g. ``docker-local``).
        image_name: Image path inside the repository, may contain ``/``.
        tag: Image tag.
    """

    repository: str
    image_name: str
    tag: str

    @classmethod
    def parse(cls, image: str) -> ImageReference:
        """Parse a Docker image reference.

        The tag is everything after the last ``:``. When the first path
        segment looks like a domain (two or more dots) it is discarded and the
        next segment is the repository.

        Args:
            image: Reference such as ``registry.example.com/repo/app:1.0``.

        Returns:
            The parsed reference.

        Raises:
            ImageReferenceError: If the reference is malformed or digest-pinned.
        """
        if "@" in image:
            raise ImageReferenceError(image, "digest-pinned references are not supported")

        path, sep, tag = image.rpartition(":")
        if not sep:
            raise ImageReferenceError(image, "missing tag separator ':'")
        if not tag:
            raise ImageReferenceError(image, "empty tag")

        parts = path.split("/")
        if len(parts) < 2:
            raise ImageReferenceError(image, "expected at least repository/image")

        if parts[0].count(".") >= DOMAIN_MIN_DOTS:
            parts = parts[1:]
            if len(parts) < 2:
                raise ImageReferenceError(image, "no image name after the repository")

        return cls(repository=parts[0], image_name="/".join(parts[1:]), tag=tag)

    @property
    def manifest_path(self) -> str:
        """Return the Artifactory folder holding the tag's manifest.json."""
        return f"{self.image_name}/{self.tag}"

    def image_info(self, digest: str) -> str:
        """Return the image-file line consumed by ``jfrog rt build-docker-create``."""
        return f"{self.repository}/{self.image_name}:{self.tag}@sha256:{digest}"

    def __str__(self) -> str:
        return f"{self.repository}/{self.image_name}:{self.tag}"


__all__ = ["DOMAIN_MIN_DOTS", "ImageReference"]
