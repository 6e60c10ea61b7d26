"""Plugin workflow: resolve the digest, publish build-info, add the principal.

Input errors are detected before any subprocess or network work. CLI and
digest failures are fatal and propagate; principal reconciliation failures
are logged as warnings and never fail the run.

Example:
    >>> settings = PluginSettings()
    >>> log = configure_logging(settings.log_level)
    >>> result = BuildInfoPlugin(settings, log=log).run()
    >>> result.image_info
    'my-repo/my-app:1.0@sha256:deadbeef...'
"""

from __future__ import annotations

import ssl
from pathlib import Path
from typing import TYPE_CHECKING, Any

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field

from artifactory_build_info.auth import AuthStrategy, select_auth_strategy
from artifactory_build_info.errors import ReconcileError
from artifactory_build_info.image import ImageReference
from artifactory_build_info.jfrog import JFrogCLI
from artifactory_build_info.publisher import BuildInfoPublisher
from artifactory_build_info.reconciler import PrincipalReconciler
from artifactory_build_info.resolver import AqlDigestResolver, DigestResolver
from artifactory_build_info.url import sanitize_artifactory_url

if TYPE_CHECKING:
    from artifactory_build_info.config import PluginSettings

logger = structlog.get_logger(__name__)

DEFAULT_PEM_FILE_NAME = "artifactory-ca.pem"


class PublishResult(BaseModel):
    """Outcome of a plugin run.

    Attributes:
        image_info: Line written to the image-info file.
        digest: Resolved manifest digest.
        vcs_attached: Whether ``build-add-git`` succeeded.
        principal_attached: Whether the principal was written.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    image_info: str = Field(..., description="repo/image:tag@sha256:<digest>")
    digest: str = Field(..., description="Manifest SHA-256 digest")
    vcs_attached: bool = Field(default=False, description="VCS info attached")
    principal_attached: bool = Field(default=False, description="Principal written")


class BuildInfoPlugin:
    """Runs the whole plugin for one set of settings.

    Collaborators can be injected for testing; by default they are built
    from the settings.
    """

    def __init__(
        self,
        settings: PluginSettings,
        *,
        work_dir: Path | None = None,
        cli: JFrogCLI | None = None,
        resolver: DigestResolver | None = None,
        http_client: httpx.Client | None = None,
        reconciler_options: dict[str, Any] | None = None,
        log: Any = None,
    ) -> None:
        """Initialize BuildInfoPlugin.

        Args:
            settings: Validated plugin settings.
            work_dir: Directory for hand-off files, defaults to the cwd.
            cli: Pre-built jfrog CLI adapter.
            resolver: Digest resolver, AQL search by default.
            http_client: HTTP client for reconciliation; the plugin creates
                and closes its own when None.
            reconciler_options: Extra keyword arguments for
                PrincipalReconciler (backoff, timeout, clock, sleep).
            log: Root logger from configure_logging().
        """
        self._settings = settings
        self._work_dir = work_dir or Path.cwd()
        self._cli = cli
        self._resolver = resolver
        self._http_client = http_client
        self._reconciler_options = reconciler_options or {}
        self._root_log = log or logger
        self._log = self._root_log.bind(component="plugin")

    def _tls_verify(self) -> bool | Path:
        """Return the TLS verification setting, writing the PEM bundle if given."""
        settings = self._settings
        if settings.insecure:
            return False
        if settings.pem_file_contents:
            pem_path = settings.pem_file_path or self._work_dir / DEFAULT_PEM_FILE_NAME
            pem_path.write_text(settings.pem_file_contents, encoding="utf-8")
            self._log.info("pem_file_written", path=str(pem_path))
            return pem_path
        if settings.pem_file_path:
            return settings.pem_file_path
        return True

    def run(self) -> PublishResult:
        """Execute the workflow.

        Returns:
            Summary of what was published.

        Raises:
            ConfigurationError: On invalid image, URL or authentication.
            JFrogCLIError: If search, create or publish fails.
            DigestResolutionError: If the digest cannot be extracted.
        """
        settings = self._settings
        image = ImageReference.parse(settings.docker_image)
        base_url = sanitize_artifactory_url(settings.url)
        auth = select_auth_strategy(settings)
        verify = self._tls_verify()
        self._log.info(
            "starting",
            image=str(image),
            url=base_url,
            auth_type=auth.auth_type.value,
        )

        cli = self._cli or JFrogCLI(
            url=base_url,
            auth=auth,
            insecure=settings.insecure,
            ca_bundle=verify if isinstance(verify, Path) else None,
            cwd=self._work_dir,
            log=self._root_log,
        )
        resolver = self._resolver or AqlDigestResolver(
            cli, work_dir=self._work_dir, log=self._root_log
        )

        digest = resolver.find_digest(image.repository, image.manifest_path)

        publisher = BuildInfoPublisher(
            cli,
            build_name=settings.build_name,
            build_number=settings.build_number,
            work_dir=self._work_dir,
            build_url=settings.build_url,
            log=self._root_log,
        )
        publisher.create_docker_build(image, digest)

        vcs_attached = False
        if settings.has_vcs_info:
            self._log.info(
                "adding_vcs_info",
                repo_url=settings.repo_url,
                commit_sha=settings.commit_sha,
                branch_name=settings.branch_name,
                tag_name=settings.tag_name,
            )
            vcs_attached = publisher.add_git_info(settings.effective_git_path)

        publisher.publish()

        principal_attached = False
        if settings.build_trigger:
            principal_attached = self._reconcile(base_url, auth, verify, settings.build_trigger)

        return PublishResult(
            image_info=image.image_info(digest),
            digest=digest,
            vcs_attached=vcs_attached,
            principal_attached=principal_attached,
        )

    def _reconcile(
        self,
        base_url: str,
        auth: AuthStrategy,
        verify: bool | Path | ssl.SSLContext,
        principal: str,
    ) -> bool:
        """Attach the principal; failures are logged, never raised."""
        self._log.info("adding_principal_via_rest_api", principal=principal)
        if self._http_client is not None:
            client = self._http_client
        else:
            try:
                if isinstance(verify, Path):
                    verify = ssl.create_default_context(cafile=str(verify))
            except OSError as e:
                self._log.warning("principal_not_added", error=f"Invalid CA bundle: {e}")
                return False
            client = httpx.Client(verify=verify)
        try:
            reconciler = PrincipalReconciler(
                client,
                base_url=base_url,
                auth=auth,
                build_name=self._settings.build_name,
                build_number=self._settings.build_number,
                log=self._root_log,
                **self._reconciler_options,
            )
            reconciler.reconcile(principal)
        except ReconcileError as e:
            self._log.warning("principal_not_added", error=str(e))
            return False
        finally:
            if self._http_client is None:
                client.close()
        return True


__all__ = ["DEFAULT_PEM_FILE_NAME", "BuildInfoPlugin", "PublishResult"]
