"""Build-info publication through the jfrog CLI.

Publishing is three CLI steps run in order:

1. ``rt build-docker-create``: record the image (by digest) in the local
   build-info for the build coordinate. Fatal on failure.
2. ``rt build-add-git``: attach VCS details when they are known.
   Best effort, failure is only a warning.
3. ``rt build-publish``: upload the finished build-info. Fatal on failure.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

from artifactory_build_info.errors import JFrogCLIError

if TYPE_CHECKING:
    from artifactory_build_info.image import ImageReference
    from artifactory_build_info.jfrog import JFrogCLI

logger = structlog.get_logger(__name__)

IMAGE_FILE_NAME = "image_info.txt"


class BuildInfoPublisher:
    """Creates and publishes Docker build-info for one build coordinate.

    Attributes:
        build_name: Build name.
        build_number: Build number.
    """

    def __init__(
        self,
        cli: JFrogCLI,
        *,
        build_name: str,
        build_number: str,
        work_dir: Path,
        build_url: str | None = None,
        log: Any = None,
    ) -> None:
        """Initialize BuildInfoPublisher.

        Args:
            cli: jfrog CLI adapter.
            build_name: Build name.
            build_number: Build number.
            work_dir: Directory receiving the image-info file.
            build_url: CI build link recorded on the published build-info.
            log: Logger to bind; module logger if None.
        """
        self._cli = cli
        self.build_name = build_name
        self.build_number = build_number
        self._work_dir = work_dir
        self._build_url = build_url
        self._log = (log or logger).bind(
            component="build_info_publisher",
            build_name=build_name,
            build_number=build_number,
        )

    def write_image_file(self, image: ImageReference, digest: str) -> Path:
        """Write the image-info file and return its path."""
        image_file = self._work_dir / IMAGE_FILE_NAME
        contents = image.image_info(digest)
        image_file.write_text(contents, encoding="utf-8")
        self._log.info("image_file_written", path=str(image_file), contents=contents)
        return image_file

    def create_docker_build(self, image: ImageReference, digest: str) -> None:
        """Register the image in the build-info.

        Raises:
            JFrogCLIError: If the CLI command fails.
        """
        image_file = self.write_image_file(image, digest)
        self._log.info("creating_docker_build", image=str(image))
        self._cli.run(
            [
                "rt",
                "build-docker-create",
                image.repository,
                f"--build-name={self.build_name}",
                f"--build-number={self.build_number}",
                f"--image-file={image_file}",
                f"--url={self._cli.url}",
            ]
        )

    def add_git_info(self, git_path: str | None) -> bool:
        """Attach VCS details from the checkout at ``git_path``.

        Failures are logged and swallowed.

        Returns:
            True if the CLI command succeeded.
        """
        args = ["rt", "build-add-git", self.build_name, self.build_number]
        if git_path:
            args.append(git_path)
        try:
            self._cli.run(args, server=False)
        except JFrogCLIError as e:
            self._log.warning("add_git_failed", error=str(e))
            return False
        return True

    def publish(self) -> None:
        """Publish the build-info to Artifactory.

        Raises:
            JFrogCLIError: If the CLI command fails.
        """
        self._log.info("publishing_build_info")
        args = ["rt", "build-publish"]
        if self._build_url:
            args.append(f"--build-url={self._build_url}")
        args += [f"--url={self._cli.url}", self.build_name, self.build_number]
        self._cli.run(args)


__all__ = ["IMAGE_FILE_NAME", "BuildInfoPublisher"]
