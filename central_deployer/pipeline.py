"""Sign, bundle, upload and optionally wait for a deployment."""

from __future__ import annotations

import dataclasses
import logging
import time
import typing as typ

from .bundle import build_bundle
from .client import PublisherClient
from .errors import ServerResponseError
from .poller import MAX_POLL_ATTEMPTS, POLL_INTERVAL_SECONDS, StatusPoller
from .response import extract_deployment_id
from .signing import GpgSigner

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    import httpx

    from .bundle import Bundle
    from .client import PortalResponse
    from .config import DeployRequest
    from .poller import PollResult
    from .signing import Signer

__all__ = ["DeployResult", "deploy"]

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True, slots=True)
class DeployResult:
    """Outcome of :func:`deploy`.

    ``response`` is ``None`` only for a dry run. ``deployment_id`` is set when
    a successful upload response carried one, and ``poll`` when the
    deployment was waited on until published.
    """

    bundle: Bundle
    response: PortalResponse | None = None
    deployment_id: str | None = None
    poll: PollResult | None = None
    dry_run: bool = False


def _sign_dirs(request: DeployRequest, signer: Signer) -> None:
    if request.signing is None:
        return
    for directory in request.dirs:
        logger.info("Signing artifacts in %s", directory)
        signer.sign(
            directory, request.signing.secret_key, request.signing.passphrase
        )


def deploy(  # noqa: PLR0913 - test seams are keyword-only
    request: DeployRequest,
    *,
    signer: Signer | None = None,
    transport: httpx.BaseTransport | None = None,
    sleep: cabc.Callable[[float], None] = time.sleep,
    clock: cabc.Callable[[], float] = time.monotonic,
    dry_run: bool = False,
    poll_interval: float = POLL_INTERVAL_SECONDS,
    max_attempts: int = MAX_POLL_ATTEMPTS,
) -> DeployResult | None:
    """Run one deploy invocation for ``request``.

    Parameters
    ----------
    request
        Validated deploy input.
    signer
        Signature producer used when ``request.signing`` is set; defaults to
        :class:`~central_deployer.signing.GpgSigner`.
    transport
        Optional ``httpx`` transport replacing the network.
    sleep, clock
        Time sources for status polling.
    dry_run
        When ``True`` the bundle is built but nothing is uploaded.
    poll_interval, max_attempts
        Status polling budget for ``WAIT_FOR_PUBLISHED``.

    Returns
    -------
    DeployResult | None
        ``None`` when no directories are configured, otherwise the outcome.

    Raises
    ------
    DeployError
        Any signing, bundling, transport or deployment failure. Non-2xx
        upload responses are logged as warnings instead.
    """
    if not request.dirs:
        logger.info("No dirs configured for deploying. Skipping.")
        return None

    logger.info("Deploying dirs:")
    for directory in request.dirs:
        logger.info("  - %s", directory)

    _sign_dirs(request, signer or GpgSigner())
    bundle = build_bundle(request.dirs, request.bundle_path)
    logger.info("Deploy bundle: %s", bundle.path)

    publishing_type = request.publishing_type
    if dry_run:
        logger.info(
            "Dry run: skipping upload of %s (publishingType=%s)",
            bundle.path,
            publishing_type.wire_value,
        )
        return DeployResult(bundle, dry_run=True)

    with PublisherClient(
        request.username,
        request.password,
        base_url=request.base_url,
        timeout=request.timeout,
        transport=transport,
    ) as client:
        response = client.upload(bundle.path, publishing_type)
        if not publishing_type.waits_for_publication:
            try:
                response.raise_for_status()
            except ServerResponseError as exc:
                logger.warning("Deployment upload was not accepted: %s", exc)
                return DeployResult(bundle, response)
            return DeployResult(bundle, response, extract_deployment_id(response.body))

        if not response.is_success:
            logger.warning(
                "Upload failed with status %s. Cannot wait for PUBLISHED status.",
                response.status_code,
            )
            return DeployResult(bundle, response)

        deployment_id = extract_deployment_id(response.body)
        if deployment_id is None:
            logger.warning(
                "Could not extract deploymentId from response. "
                "Cannot wait for PUBLISHED status."
            )
            return DeployResult(bundle, response)

        poller = StatusPoller(
            client,
            poll_interval=poll_interval,
            max_attempts=max_attempts,
            sleep=sleep,
            clock=clock,
        )
        poll = poller.wait_for_published(deployment_id)
    return DeployResult(bundle, response, deployment_id, poll)
