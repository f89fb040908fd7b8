"""Bounded status polling for uploaded deployments.

The poller drives the deployment state machine::

    PENDING -> VALIDATING -> VALIDATED -> PUBLISHING -> PUBLISHED
                                    \\-> FAILED

``PENDING``, ``VALIDATING``, ``VALIDATED`` and ``PUBLISHING`` keep polling,
``PUBLISHED`` succeeds, ``FAILED`` and any unrecognised state fail. Non-2xx
status responses are transient: they consume an attempt and wait one interval
without advancing the state machine. Network failures are not retried.

The interval and attempt budget are fixed (no back-off, no ``Retry-After``),
and ``sleep``/``clock`` are injectable so the full timeout path can be
exercised without waiting.
"""

from __future__ import annotations

import dataclasses
import logging
import time
import typing as typ

from tenacity import (
    RetryError,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from .errors import (
    DeploymentFailedError,
    DeploymentTimeoutError,
    ServerResponseError,
    truncate_text,
)
from .response import DeploymentState, extract_deployment_state

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from .client import PortalResponse

__all__ = [
    "MAX_POLL_ATTEMPTS",
    "POLL_INTERVAL_SECONDS",
    "PollResult",
    "StatusPoller",
    "wait_for_published",
]

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 10.0
MAX_POLL_ATTEMPTS = 1080  # three hours at the default interval


class SupportsStatus(typ.Protocol):
    """Anything that can query the status endpoint."""

    def status(self, deployment_id: str) -> PortalResponse:
        """Return the raw status response for ``deployment_id``."""
        ...


class _DeploymentPending(Exception):  # noqa: N818 - control-flow signal
    """Signal that the deployment is still progressing."""

    def __init__(self, state: DeploymentState) -> None:
        super().__init__(state.value)
        self.state = state


@dataclasses.dataclass(frozen=True, slots=True)
class PollResult:
    """Outcome of a successful :meth:`StatusPoller.wait_for_published`."""

    deployment_id: str
    state: DeploymentState
    attempts: int
    elapsed_seconds: float

    def format_elapsed(self) -> str:
        """Return the elapsed time as ``<minutes>m<seconds>s``."""
        minutes, seconds = divmod(int(self.elapsed_seconds), 60)
        return f"{minutes}m{seconds}s"


class StatusPoller:
    """Poll a deployment until it is published, fails, or runs out of time."""

    def __init__(
        self,
        client: SupportsStatus,
        *,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        max_attempts: int = MAX_POLL_ATTEMPTS,
        sleep: cabc.Callable[[float], None] = time.sleep,
        clock: cabc.Callable[[], float] = time.monotonic,
    ) -> None:
        if max_attempts < 1:
            msg = f"max_attempts must be at least 1, got {max_attempts}"
            raise ValueError(msg)
        self._client = client
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self._sleep = sleep
        self._clock = clock

    def wait_for_published(self, deployment_id: str) -> PollResult:
        """Block until ``deployment_id`` reaches a terminal state.

        Returns
        -------
        PollResult
            The ``PUBLISHED`` outcome with the number of polls and the elapsed
            wall-clock time.

        Raises
        ------
        DeploymentFailedError
            Raised as soon as the server reports ``FAILED`` or a state that
            cannot be interpreted.
        DeploymentTimeoutError
            Raised after ``max_attempts`` polls without a terminal state.
        TransportError
            Raised when a status request fails at the network level.
        """
        logger.info(
            "Waiting for deployment to be PUBLISHED (deploymentId: %s)...",
            deployment_id,
        )
        start = self._clock()
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_fixed(self.poll_interval),
            retry=retry_if_exception_type((_DeploymentPending, ServerResponseError)),
            sleep=self._sleep,
            reraise=False,
        )
        attempts = 0
        try:
            for attempt in retrying:
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    state = self._poll_once(deployment_id, attempts)
        except RetryError as exc:
            minutes = self.max_attempts * self.poll_interval / 60
            msg = (
                f"Timeout waiting for deployment {deployment_id} to be PUBLISHED "
                f"after {self.max_attempts} attempts ({minutes:g} minutes)"
            )
            raise DeploymentTimeoutError(
                msg, deployment_id=deployment_id, attempts=attempts
            ) from exc

        result = PollResult(deployment_id, state, attempts, self._clock() - start)
        logger.info(
            "✓ [ %s ] Deployment successfully PUBLISHED and available on "
            "Maven Central!",
            result.format_elapsed(),
        )
        return result

    def _poll_once(self, deployment_id: str, attempt: int) -> DeploymentState:
        response = self._client.status(deployment_id)
        if not response.is_success:
            logger.warning(
                "Status check failed with code %s: %s",
                response.status_code,
                truncate_text(response.body),
            )
            response.raise_for_status()

        state = extract_deployment_state(response.body)
        logger.info("  [%d] Current state: %s", attempt, state.value)
        if state is DeploymentState.PUBLISHED:
            return state
        if state.is_terminal:
            self._fail(deployment_id, state, response)
        raise _DeploymentPending(state)

    @staticmethod
    def _fail(
        deployment_id: str, state: DeploymentState, response: PortalResponse
    ) -> typ.NoReturn:
        body = truncate_text(response.body)
        if state is DeploymentState.FAILED:
            logger.error("✗ Deployment FAILED. Response: %s", body)
            msg = (
                f"Deployment {deployment_id} failed with state FAILED, "
                f"response: {body}"
            )
        else:
            msg = f"Unrecognized state for deployment {deployment_id}. Response: {body}"
        raise DeploymentFailedError(
            msg, deployment_id=deployment_id, state=state.value, body=response.body
        )


def wait_for_published(
    client: SupportsStatus, deployment_id: str, **options: typ.Any
) -> PollResult:
    """Shortcut for ``StatusPoller(client, **options).wait_for_published(...)``."""
    return StatusPoller(client, **options).wait_for_published(deployment_id)
