"""Error types shared across the deploy pipeline."""

from __future__ import annotations

__all__ = [
    "ERROR_DETAIL_LIMIT",
    "BundleIOError",
    "DeployError",
    "DeploymentFailedError",
    "DeploymentTimeoutError",
    "InvalidInputError",
    "ServerResponseError",
    "SigningError",
    "TransportError",
    "truncate_text",
]

ERROR_DETAIL_LIMIT = 1024


def truncate_text(
    value: str, limit: int = ERROR_DETAIL_LIMIT, *, suffix: str = "…"
) -> str:
    """Return ``value`` truncated to ``limit`` characters with ``suffix``."""
    if limit <= 0:
        return ""
    if len(value) <= limit:
        return value
    return value[:limit] + suffix


class DeployError(RuntimeError):
    """Raised when the deploy pipeline cannot continue."""


class InvalidInputError(DeployError, ValueError):
    """Raised when a deploy request is malformed, e.g. a source dir is missing."""


class SigningError(DeployError):
    """Raised when detached signatures cannot be produced for a directory."""


class BundleIOError(DeployError):
    """Raised when the bundle archive cannot be removed or written."""


class TransportError(DeployError):
    """Raised when an HTTPS request fails below the HTTP layer."""


class ServerResponseError(DeployError):
    """Raised when the publisher API answers with a non-2xx status."""

    def __init__(self, message: str, *, status_code: int, body: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class DeploymentFailedError(DeployError):
    """Raised when the server reports a failed or unrecognised deployment."""

    def __init__(
        self, message: str, *, deployment_id: str, state: str, body: str
    ) -> None:
        super().__init__(message)
        self.deployment_id = deployment_id
        self.state = state
        self.body = body


class DeploymentTimeoutError(DeployError):
    """Raised when a deployment does not reach a terminal state in time."""

    def __init__(self, message: str, *, deployment_id: str, attempts: int) -> None:
        super().__init__(message)
        self.deployment_id = deployment_id
        self.attempts = attempts
