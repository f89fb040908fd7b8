"""Deploy artifact bundles to the Sonatype Central Publisher API."""

from __future__ import annotations

from .bundle import Bundle, build_bundle
from .client import PortalResponse, PublisherClient
from .config import (
    DeployConfig,
    DeployRequest,
    PublishingType,
    SigningConfig,
    load_config,
)
from .errors import (
    BundleIOError,
    DeployError,
    DeploymentFailedError,
    DeploymentTimeoutError,
    InvalidInputError,
    ServerResponseError,
    SigningError,
    TransportError,
)
from .pipeline import DeployResult, deploy
from .poller import PollResult, StatusPoller
from .response import DeploymentState
from .signing import GpgSigner, Signer

__all__ = [
    "Bundle",
    "BundleIOError",
    "DeployConfig",
    "DeployError",
    "DeployRequest",
    "DeployResult",
    "DeploymentFailedError",
    "DeploymentState",
    "DeploymentTimeoutError",
    "GpgSigner",
    "InvalidInputError",
    "PollResult",
    "PortalResponse",
    "PublisherClient",
    "PublishingType",
    "ServerResponseError",
    "Signer",
    "SigningConfig",
    "SigningError",
    "StatusPoller",
    "TransportError",
    "build_bundle",
    "deploy",
    "load_config",
]
