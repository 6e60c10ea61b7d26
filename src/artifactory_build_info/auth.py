"""Authentication strategies for Artifactory.

One precedence rule decides how the plugin authenticates, and the chosen
strategy is used both for jfrog CLI arguments and for REST API headers.

Precedence (first match wins):
    1. Access token          -> ``--access-token``      / ``Authorization: Bearer``
    2. Username + API key    -> ``--user`` ``--password`` / basic auth, key as password
    3. Username + password   -> ``--user`` ``--password`` / basic auth

An API key without a username is rejected by PluginSettings; the jfrog CLI
``--apikey`` flag is not used.

Example:
    >>> strategy = select_auth_strategy(settings)
    >>> strategy.to_cli_args()
    ['--access-token=...']
    >>> strategy.to_http_headers()
    {'Authorization': 'Bearer ...'}
"""

from __future__ import annotations

import base64
from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING

from artifactory_build_info.errors import AuthenticationConfigError

if TYPE_CHECKING:
    from artifactory_build_info.config import PluginSettings

MASK = "****"


class AuthType(str, Enum):
    """Authentication methods supported by the plugin."""

    ACCESS_TOKEN = "access-token"
    API_KEY = "api-key"
    PASSWORD = "password"


class AuthStrategy(ABC):
    """Abstract base class for an Artifactory authentication method.

    Subclasses must implement:
        - to_cli_args(): flags appended to jfrog CLI commands
        - to_http_headers(): headers added to REST API requests
    """

    @property
    @abstractmethod
    def auth_type(self) -> AuthType:
        """Return the authentication type for this strategy."""
        ...

    @abstractmethod
    def to_cli_args(self) -> list[str]:
        """Return jfrog CLI flags carrying the credentials."""
        ...

    @abstractmethod
    def to_http_headers(self) -> dict[str, str]:
        """Return HTTP headers carrying the credentials."""
        ...

    @abstractmethod
    def secrets(self) -> tuple[str, ...]:
        """Return secret values that must never be logged."""
        ...

    def masked_cli_args(self) -> list[str]:
        """Return to_cli_args() with secret flag values replaced by a mask."""
        secrets = set(self.secrets())
        masked = []
        for arg in self.to_cli_args():
            flag, sep, value = arg.partition("=")
            masked.append(f"{flag}={MASK}" if sep and value in secrets else arg)
        return masked

    def mask(self, text: str) -> str:
        """Replace every secret value in free-form ``text`` with a mask.

        Used for process output; command lines are printed from
        masked_cli_args() instead.
        """
        for secret in self.secrets():
            if secret:
                text = text.replace(secret, MASK)
        return text


class TokenAuth(AuthStrategy):
    """Bearer access token authentication."""

    def __init__(self, token: str) -> None:
        self._token = token

    @property
    def auth_type(self) -> AuthType:
        return AuthType.ACCESS_TOKEN

    def to_cli_args(self) -> list[str]:
        return [f"--access-token={self._token}"]

    def to_http_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._token}"}

    def secrets(self) -> tuple[str, ...]:
        return (self._token,)


class BasicAuth(AuthStrategy):
    """Username and password (or API key used as password) authentication.

    Attributes:
        username: Artifactory user name.
    """

    def __init__(
        self,
        username: str,
        password: str,
        *,
        auth_type: AuthType = AuthType.PASSWORD,
    ) -> None:
        self.username = username
        self._password = password
        self._auth_type = auth_type

    @property
    def auth_type(self) -> AuthType:
        return self._auth_type

    def to_cli_args(self) -> list[str]:
        return [f"--user={self.username}", f"--password={self._password}"]

    def to_http_headers(self) -> dict[str, str]:
        raw = f"{self.username}:{self._password}".encode()
        return {"Authorization": f"Basic {base64.b64encode(raw).decode('ascii')}"}

    def secrets(self) -> tuple[str, ...]:
        return (self._password,)


def select_auth_strategy(settings: PluginSettings) -> AuthStrategy:
    """Pick the authentication strategy for a run.

    Args:
        settings: Plugin settings.

    Returns:
        The first applicable strategy in precedence order.

    Raises:
        AuthenticationConfigError: If no authentication method is configured.
    """
    if settings.access_token is not None:
        return TokenAuth(settings.access_token.get_secret_value())
    if settings.username and settings.api_key is not None:
        return BasicAuth(
            settings.username,
            settings.api_key.get_secret_value(),
            auth_type=AuthType.API_KEY,
        )
    if settings.username and settings.password is not None:
        return BasicAuth(settings.username, settings.password.get_secret_value())
    raise AuthenticationConfigError(
        "No authentication method provided: set PLUGIN_ACCESS_TOKEN, "
        "PLUGIN_USERNAME with PLUGIN_API_KEY, or PLUGIN_USERNAME with PLUGIN_PASSWORD"
    )


__all__ = [
    "MASK",
    "AuthStrategy",
    "AuthType",
    "BasicAuth",
    "TokenAuth",
    "select_auth_strategy",
]
