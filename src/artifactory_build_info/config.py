"""Plugin settings bound to the CI environment.

The plugin is configured entirely through environment variables: ``PLUGIN_*``
variables come from the pipeline step's ``settings`` block, ``DRONE_*``
variables are provided by the CI runner.

Example:
    >>> settings = PluginSettings()  # reads os.environ
    >>> settings.build_name
    'build-7'
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing_extensions import Self

_OPTIONAL_TEXT_FIELDS = (
    "build_url",
    "access_token",
    "username",
    "password",
    "api_key",
    "pem_file_contents",
    "pem_file_path",
    "git_path",
    "commit_sha",
    "repo_url",
    "branch_name",
    "tag_name",
    "commit_message",
    "default_path",
    "build_trigger",
)


class PluginSettings(BaseSettings):
    """Settings for one plugin run.

    Empty environment variables are treated as unset, since CI runners
    export every declared setting whether or not it has a value.

    Environment Variables:
        PLUGIN_URL: Artifactory URL (any path below the Artifactory root)
        PLUGIN_DOCKER_IMAGE: Pushed image, ``[registry/]repo/image:tag``
        PLUGIN_BUILD_NAME / PLUGIN_BUILD_NUMBER: Build coordinate
        PLUGIN_ACCESS_TOKEN: Bearer token (preferred)
        PLUGIN_USERNAME + PLUGIN_API_KEY: Basic auth with API key
        PLUGIN_USERNAME + PLUGIN_PASSWORD: Basic auth with password
        DRONE_BUILD_TRIGGER: Principal recorded on the build info
    """

    model_config = SettingsConfigDict(
        env_prefix="",
        extra="ignore",
        populate_by_name=True,
        frozen=True,
    )

    # Build coordinate and image
    build_number: str = Field(..., min_length=1, alias="PLUGIN_BUILD_NUMBER")
    build_name: str = Field(..., min_length=1, alias="PLUGIN_BUILD_NAME")
    build_url: str | None = Field(default=None, alias="PLUGIN_BUILD_URL")
    docker_image: str = Field(..., min_length=1, alias="PLUGIN_DOCKER_IMAGE")

    # Registry access
    url: str = Field(..., min_length=1, alias="PLUGIN_URL")
    access_token: SecretStr | None = Field(default=None, alias="PLUGIN_ACCESS_TOKEN")
    username: str | None = Field(default=None, alias="PLUGIN_USERNAME")
    password: SecretStr | None = Field(default=None, alias="PLUGIN_PASSWORD")
    api_key: SecretStr | None = Field(default=None, alias="PLUGIN_API_KEY")

    # TLS
    insecure: bool = Field(default=False, alias="PLUGIN_INSECURE")
    pem_file_contents: str | None = Field(default=None, alias="PLUGIN_PEM_FILE_CONTENTS")
    pem_file_path: Path | None = Field(default=None, alias="PLUGIN_PEM_FILE_PATH")

    # Unknown names are accepted and logged at info (see resolve_level)
    log_level: str = Field(default="info", alias="PLUGIN_LOG_LEVEL")
    git_path: str | None = Field(default=None, alias="PLUGIN_GIT_PATH")

    # Provided by the CI runner
    commit_sha: str | None = Field(default=None, alias="DRONE_COMMIT_SHA")
    repo_url: str | None = Field(default=None, alias="DRONE_GIT_HTTP_URL")
    branch_name: str | None = Field(default=None, alias="DRONE_REPO_BRANCH")
    tag_name: str | None = Field(default=None, alias="DRONE_TAG")
    commit_message: str | None = Field(default=None, alias="DRONE_COMMIT_MESSAGE")
    default_path: str | None = Field(default=None, alias="DRONE_WORKSPACE")
    build_trigger: str | None = Field(default=None, alias="DRONE_BUILD_TRIGGER")

    @field_validator(*_OPTIONAL_TEXT_FIELDS, mode="before")
    @classmethod
    def empty_as_unset(cls, v: Any) -> Any:
        """Treat empty strings as unset."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("insecure", mode="before")
    @classmethod
    def empty_insecure_as_false(cls, v: Any) -> Any:
        """Treat an empty PLUGIN_INSECURE as false."""
        if isinstance(v, str) and not v.strip():
            return False
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: Any) -> Any:
        """Lowercase the level; an empty value means the default."""
        if isinstance(v, str):
            return v.strip().lower() or "info"
        return v

    @model_validator(mode="after")
    def validate_api_key_has_username(self) -> Self:
        """An API key is only usable as a basic-auth password."""
        if self.api_key is not None and not self.username:
            msg = "PLUGIN_API_KEY requires PLUGIN_USERNAME (the API key is sent as the password)"
            raise ValueError(msg)
        return self

    @property
    def effective_git_path(self) -> str | None:
        """Return the Git checkout path, defaulting to the CI workspace."""
        return self.git_path or self.default_path

    @property
    def has_vcs_info(self) -> bool:
        """Return True when repo URL, commit and a branch or tag are all known."""
        return bool(self.repo_url and self.commit_sha and (self.branch_name or self.tag_name))


__all__ = ["PluginSettings"]
