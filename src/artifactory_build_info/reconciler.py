"""Principal reconciliation for published build-info.

``jfrog rt build-publish`` has no way to record who triggered a build, so the
principal is added afterwards through the REST API. Artifactory indexes a
freshly published build asynchronously, which makes this a two phase
operation under a single 30 second deadline:

Polling:
    GET /api/build/{name}/{number} until it answers 200 with a JSON body whose
    ``buildInfo.number`` equals the expected build number. Any other outcome
    (error status, bad JSON, wrong number, transport failure) means "not yet
    visible" and is retried with exponential backoff (1s doubling, 5s cap).

Fetch-Mutate-Put:
    GET the record again, set ``buildInfo.principal`` and PUT the bare
    ``buildInfo`` object (not the envelope) to /api/build. 200, 201 and 204
    are success.

Every failure raises a ReconcileError subclass; callers treat them as
warnings.

Example:
    >>> with httpx.Client() as client:
    ...     reconciler = PrincipalReconciler(
    ...         client,
    ...         base_url="https://host/artifactory/",
    ...         auth=strategy,
    ...         build_name="build-7",
    ...         build_number="42",
    ...     )
    ...     reconciler.reconcile("alice")
"""

from __future__ import annotations

import json
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import httpx
import structlog
from opentelemetry import trace

from artifactory_build_info.errors import (
    BuildInfoFetchError,
    BuildInfoShapeError,
    BuildInfoUpdateError,
    ReconcileError,
)
from artifactory_build_info.resilience import RECONCILE_TIMEOUT_SECONDS, Backoff, Deadline
from artifactory_build_info.url import build_info_update_url, build_info_url

if TYPE_CHECKING:
    from artifactory_build_info.auth import AuthStrategy

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)

REQUEST_TIMEOUT_SECONDS = 10.0
"""Ceiling for a single HTTP request; the deadline may shorten it."""

UPDATE_SUCCESS_CODES = frozenset({200, 201, 204})


class PrincipalReconciler:
    """Adds a principal to one published build-info record.

    Attributes:
        build_name: Build name of the record.
        build_number: Build number of the record.
    """

    def __init__(
        self,
        client: httpx.Client,
        *,
        base_url: str,
        auth: AuthStrategy,
        build_name: str,
        build_number: str,
        backoff: Backoff | None = None,
        timeout: float = RECONCILE_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        log: Any = None,
    ) -> None:
        """Initialize PrincipalReconciler.

        Args:
            client: HTTP client; the caller owns and closes it.
            base_url: Sanitized Artifactory root.
            auth: Authentication strategy for request headers.
            build_name: Build name of the record.
            build_number: Build number of the record.
            backoff: Polling schedule, defaults to 1s/x2/5s cap.
            timeout: Budget for the whole reconciliation, in seconds.
            clock: Monotonic clock, injectable for tests.
            sleep: Sleep function, injectable for tests.
            log: Logger to bind; module logger if None.
        """
        self._client = client
        self._auth = auth
        self.build_name = build_name
        self.build_number = build_number
        self._record_url = build_info_url(base_url, build_name, build_number)
        self._update_url = build_info_update_url(base_url)
        self._backoff = backoff or Backoff()
        self._timeout = timeout
        self._clock = clock
        self._sleep = sleep
        self._log = (log or logger).bind(
            component="principal_reconciler",
            build_name=build_name,
            build_number=build_number,
        )

    def start_deadline(self) -> Deadline:
        """Start the reconciliation time budget."""
        return Deadline(self._timeout, clock=self._clock, sleep=self._sleep)

    def reconcile(self, principal: str) -> dict[str, Any]:
        """Wait for the record, then set its principal.

        Args:
            principal: Identity that triggered the build.

        Returns:
            The ``buildInfo`` object that was uploaded.

        Raises:
            ReconcileError: On timeout or any fetch/update failure.
        """
        deadline = self.start_deadline()
        with tracer.start_as_current_span("artifactory_build_info.reconcile") as span:
            span.set_attribute("build.name", self.build_name)
            span.set_attribute("build.number", self.build_number)
            try:
                self.wait_until_visible(deadline)
                return self.add_principal(principal, deadline)
            except ReconcileError as e:
                span.record_exception(e)
                raise

    def _get(self, deadline: Deadline) -> httpx.Response:
        return self._client.get(
            self._record_url,
            headers=self._auth.to_http_headers(),
            timeout=deadline.timeout_for(REQUEST_TIMEOUT_SECONDS),
        )

    def is_visible(self, deadline: Deadline) -> bool:
        """Probe the record once.

        Returns:
            True if the record answers 200 with the expected build number.

        Raises:
            ReconcileTimeoutError: If the deadline has already passed.
        """
        try:
            response = self._get(deadline)
        except httpx.HTTPError as e:
            self._log.debug("build_info_probe_failed", error=str(e))
            return False

        if response.status_code != httpx.codes.OK:
            self._log.debug("build_info_not_available", status_code=response.status_code)
            return False

        try:
            payload = response.json()
        except ValueError as e:
            self._log.debug("build_info_unparseable", error=str(e))
            return False

        build_info = payload.get("buildInfo") if isinstance(payload, dict) else None
        number = build_info.get("number") if isinstance(build_info, dict) else None
        if not isinstance(number, str) or number != self.build_number:
            self._log.debug("build_number_mismatch", expected=self.build_number, actual=number)
            return False
        return True

    def wait_until_visible(self, deadline: Deadline) -> None:
        """Poll until the record is visible.

        Raises:
            ReconcileTimeoutError: If the deadline passes first.
        """
        self._log.info("polling_for_build_info", url=self._record_url)
        for delay in self._backoff.delays():
            deadline.check()
            if self.is_visible(deadline):
                self._log.info("build_info_available")
                return
            self._log.debug("build_info_retry", delay_seconds=delay)
            deadline.sleep(delay)

    def add_principal(self, principal: str, deadline: Deadline) -> dict[str, Any]:
        """Fetch the record, set its principal and upload it.

        Args:
            principal: Identity that triggered the build.
            deadline: Running reconciliation deadline.

        Returns:
            The uploaded ``buildInfo`` object.

        Raises:
            BuildInfoFetchError: If the GET does not answer 200.
            BuildInfoShapeError: If the payload has no ``buildInfo`` object.
            BuildInfoUpdateError: If the PUT is not accepted.
            ReconcileError: On transport failures.
        """
        self._log.info("fetching_build_info", url=self._record_url)
        try:
            response = self._get(deadline)
        except httpx.HTTPError as e:
            raise ReconcileError(f"Error fetching build info: {e}") from e

        if response.status_code != httpx.codes.OK:
            self._log.error(
                "build_info_fetch_failed",
                status_code=response.status_code,
                body=response.text,
            )
            raise BuildInfoFetchError(response.status_code, response.text)

        try:
            payload = response.json()
        except ValueError as e:
            raise BuildInfoShapeError(f"Error parsing build info: {e}") from e

        build_info = payload.get("buildInfo") if isinstance(payload, dict) else None
        if not isinstance(build_info, dict):
            raise BuildInfoShapeError("buildInfo not found or has unexpected format")

        build_info["principal"] = principal
        self._log.info("adding_principal", principal=principal)

        headers = {**self._auth.to_http_headers(), "Content-Type": "application/json"}
        try:
            response = self._client.put(
                self._update_url,
                content=json.dumps(build_info).encode("utf-8"),
                headers=headers,
                timeout=deadline.timeout_for(REQUEST_TIMEOUT_SECONDS),
            )
        except httpx.HTTPError as e:
            raise ReconcileError(f"Error updating build info: {e}") from e

        if response.status_code not in UPDATE_SUCCESS_CODES:
            self._log.error(
                "build_info_update_failed",
                status_code=response.status_code,
                body=response.text,
            )
            raise BuildInfoUpdateError(response.status_code, response.text)

        self._log.info("principal_added")
        return build_info


__all__ = ["REQUEST_TIMEOUT_SECONDS", "UPDATE_SUCCESS_CODES", "PrincipalReconciler"]
