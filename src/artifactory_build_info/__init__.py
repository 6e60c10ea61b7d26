"""Artifactory build-info publisher for Docker images.

Resolves the manifest digest of an image already pushed to Artifactory,
publishes build-info for it through the jfrog CLI, and optionally records
the principal that triggered the build through the REST API.

Key Components:
- BuildInfoPlugin: Runs the complete workflow for one PluginSettings
- ImageReference: Docker image reference parsing
- AqlDigestResolver: Manifest digest lookup via ``jfrog rt s``
- BuildInfoPublisher: ``build-docker-create`` / ``build-add-git`` / ``build-publish``
- PrincipalReconciler: Polls for the published record and sets its principal
- AuthStrategy: One authentication policy for CLI flags and HTTP headers
"""

from __future__ import annotations

from artifactory_build_info.auth import (
    AuthStrategy,
    AuthType,
    BasicAuth,
    TokenAuth,
    select_auth_strategy,
)
from artifactory_build_info.config import PluginSettings
from artifactory_build_info.errors import (
    ArtifactoryURLError,
    AuthenticationConfigError,
    BuildInfoError,
    BuildInfoFetchError,
    BuildInfoShapeError,
    BuildInfoUpdateError,
    ConfigurationError,
    DigestResolutionError,
    ImageReferenceError,
    JFrogCLIError,
    NoMatchingArtifactError,
    NoSearchOutputError,
    ReconcileError,
    ReconcileTimeoutError,
)
from artifactory_build_info.image import ImageReference
from artifactory_build_info.jfrog import JFrogCLI
from artifactory_build_info.plugin import BuildInfoPlugin, PublishResult
from artifactory_build_info.publisher import BuildInfoPublisher
from artifactory_build_info.reconciler import PrincipalReconciler
from artifactory_build_info.resilience import Backoff, Deadline
from artifactory_build_info.resolver import AqlDigestResolver, DigestResolver, extract_sha256
from artifactory_build_info.url import sanitize_artifactory_url

__all__ = [
    "AqlDigestResolver",
    "ArtifactoryURLError",
    "AuthStrategy",
    "AuthType",
    "AuthenticationConfigError",
    "Backoff",
    "BasicAuth",
    "BuildInfoError",
    "BuildInfoFetchError",
    "BuildInfoPlugin",
    "BuildInfoPublisher",
    "BuildInfoShapeError",
    "BuildInfoUpdateError",
    "ConfigurationError",
    "Deadline",
    "DigestResolutionError",
    "DigestResolver",
    "ImageReference",
    "ImageReferenceError",
    "JFrogCLI",
    "JFrogCLIError",
    "NoMatchingArtifactError",
    "NoSearchOutputError",
    "PluginSettings",
    "PrincipalReconciler",
    "PublishResult",
    "ReconcileError",
    "ReconcileTimeoutError",
    "TokenAuth",
    "extract_sha256",
    "sanitize_artifactory_url",
    "select_auth_strategy",
]
