"""Targeted field extraction from publisher API response bodies.

Only two scalar fields are needed, ``deploymentId`` and ``deploymentState``,
so they are pulled out with regular expressions instead of a full JSON parse.
The extractor tolerates surrounding and unknown fields, and bodies that are
not valid JSON at all.

Limitations: the first occurrence of a key wins, so a nested object carrying
the same key earlier in the body is read instead of the top-level value, and
values containing escaped quotes are not understood. Both fields are simple
tokens in the live API, which makes this acceptable.
"""

from __future__ import annotations

import enum
import logging
import re

from .errors import truncate_text

__all__ = [
    "DeploymentState",
    "extract_deployment_id",
    "extract_deployment_state",
]

logger = logging.getLogger(__name__)

_DEPLOYMENT_ID = re.compile(r'"deploymentId"\s*:\s*"([^"]+)"')
_DEPLOYMENT_STATE = re.compile(r'"deploymentState"\s*:\s*"([^"]+)"')
# The upload endpoint answers with the bare deployment id as plain text.
_BARE_TOKEN = re.compile(r"[A-Za-z0-9][A-Za-z0-9._:-]*")
_LOG_BODY_LIMIT = 500


class DeploymentState(enum.StrEnum):
    """Server-side lifecycle of an uploaded deployment."""

    PENDING = "PENDING"
    VALIDATING = "VALIDATING"
    VALIDATED = "VALIDATED"
    PUBLISHING = "PUBLISHING"
    PUBLISHED = "PUBLISHED"
    FAILED = "FAILED"
    UNRECOGNIZED = "UNRECOGNIZED"

    @property
    def is_terminal(self) -> bool:
        """Return ``True`` when polling must stop at this state."""
        return self in _TERMINAL_STATES


_TERMINAL_STATES = frozenset(
    {
        DeploymentState.PUBLISHED,
        DeploymentState.FAILED,
        DeploymentState.UNRECOGNIZED,
    }
)


def extract_deployment_id(body: str) -> str | None:
    """Return the deployment id carried by ``body`` or ``None``.

    Examples
    --------
    >>> extract_deployment_id('{"deploymentId":"abc-123","deploymentName":"x"}')
    'abc-123'
    >>> extract_deployment_id("28570f16-da32-4c14-bd2e-c1acc0782365")
    '28570f16-da32-4c14-bd2e-c1acc0782365'
    >>> extract_deployment_id('{"deploymentName":"x"}') is None
    True
    """
    if match := _DEPLOYMENT_ID.search(body):
        return match.group(1)
    candidate = body.strip()
    if _BARE_TOKEN.fullmatch(candidate):
        return candidate
    return None


def extract_deployment_state(body: str) -> DeploymentState:
    """Return the deployment state carried by ``body``.

    Unknown state names and bodies without a ``deploymentState`` field map to
    :attr:`DeploymentState.UNRECOGNIZED`.

    Examples
    --------
    >>> extract_deployment_state('{"deploymentState": "PUBLISHED"}')
    <DeploymentState.PUBLISHED: 'PUBLISHED'>
    >>> extract_deployment_state('{"deploymentState":"WEIRD"}')
    <DeploymentState.UNRECOGNIZED: 'UNRECOGNIZED'>
    """
    match = _DEPLOYMENT_STATE.search(body)
    if match is None:
        logger.warning(
            "Could not extract deploymentState from response body: %s",
            truncate_text(body, _LOG_BODY_LIMIT),
        )
        return DeploymentState.UNRECOGNIZED

    raw_state = match.group(1)
    try:
        state = DeploymentState(raw_state)
    except ValueError:
        logger.warning("Unrecognized deployment state: %s", raw_state)
        return DeploymentState.UNRECOGNIZED
    return state
