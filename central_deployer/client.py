"""HTTPS client for the Central Publisher API.

One :class:`PublisherClient` wraps a single :class:`httpx.Client` so the
upload and every status poll of a deploy invocation share one connection
pool. Responses are returned verbatim as :class:`PortalResponse`; non-2xx
statuses are ordinary return values and interpretation is left to the caller.
"""

from __future__ import annotations

import base64
import dataclasses
import logging
import typing as typ

import httpx

from .config import DEFAULT_BASE_URL, DEFAULT_TIMEOUT
from .errors import ServerResponseError, TransportError, truncate_text
from .multipart import MultipartBody

if typ.TYPE_CHECKING:
    from pathlib import Path

    from .config import PublishingType

__all__ = [
    "STATUS_PATH",
    "UPLOAD_PATH",
    "PortalResponse",
    "PublisherClient",
    "auth_token",
]

logger = logging.getLogger(__name__)

UPLOAD_PATH = "/api/v1/publisher/upload"
STATUS_PATH = "/api/v1/publisher/status"
USER_AGENT = "central-deployer"


def auth_token(username: str, password: str) -> str:
    """Return the bearer token for ``username`` and ``password``.

    Examples
    --------
    >>> auth_token("user", "pass")
    'dXNlcjpwYXNz'
    """
    credentials = f"{username}:{password}".encode()
    return base64.b64encode(credentials).decode("ascii")


@dataclasses.dataclass(frozen=True, slots=True)
class PortalResponse:
    """Status, body and headers of one publisher API response."""

    status_code: int
    body: str
    headers: typ.Mapping[str, tuple[str, ...]]

    @classmethod
    def from_httpx(cls, response: httpx.Response) -> PortalResponse:
        """Capture ``response`` keeping repeated headers in order."""
        headers: dict[str, tuple[str, ...]] = {}
        for name, value in response.headers.multi_items():
            headers[name] = (*headers.get(name, ()), value)
        return cls(response.status_code, response.text, headers)

    @property
    def is_success(self) -> bool:
        """Return ``True`` for any 2xx status."""
        return httpx.codes.is_success(self.status_code)

    def raise_for_status(self) -> None:
        """Raise :class:`ServerResponseError` unless the status is 2xx."""
        if self.is_success:
            return
        detail = truncate_text(self.body.strip()) or "<empty body>"
        msg = f"Publisher API responded with status {self.status_code}: {detail}"
        raise ServerResponseError(msg, status_code=self.status_code, body=self.body)


class PublisherClient:
    """Authenticated client for the upload and status endpoints.

    Use it as a context manager; the underlying connection pool is closed on
    exit. ``transport`` replaces the network layer, which tests use to plug in
    :class:`httpx.MockTransport`.
    """

    def __init__(
        self,
        username: str,
        password: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        headers = {
            "Authorization": f"Bearer {auth_token(username, password)}",
            "User-Agent": USER_AGENT,
        }
        self._client = httpx.Client(
            base_url=self.base_url,
            headers=headers,
            timeout=httpx.Timeout(timeout),
            transport=transport,
            follow_redirects=False,
        )

    def __enter__(self) -> PublisherClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: object,
    ) -> None:
        self.close()

    def close(self) -> None:
        """Release pooled connections."""
        self._client.close()

    def upload(
        self, bundle_path: Path, publishing_type: PublishingType
    ) -> PortalResponse:
        """POST ``bundle_path`` to the upload endpoint exactly once.

        Parameters
        ----------
        bundle_path
            Archive to send as the ``bundle`` form part.
        publishing_type
            Requested mode; its :attr:`~PublishingType.wire_value` is sent.

        Returns
        -------
        PortalResponse
            The server's answer, whatever its status.

        Raises
        ------
        TransportError
            Raised when the request cannot be completed (connection refused,
            TLS failure, timeout).
        """
        body = MultipartBody(bundle_path)
        params = {"publishingType": publishing_type.wire_value}
        logger.info(
            "Deploying to URL: %s",
            httpx.URL(f"{self.base_url}{UPLOAD_PATH}", params=params),
        )
        response = self._send(
            "POST", UPLOAD_PATH, params=params, content=body, headers=body.headers()
        )
        logger.info("Response:")
        logger.info("  status: %s", response.status_code)
        logger.info("  body: %s", response.body)
        logger.info("  headers: %s", dict(response.headers))
        return response

    def status(self, deployment_id: str) -> PortalResponse:
        """POST to the status endpoint for ``deployment_id`` with an empty body."""
        return self._send("POST", STATUS_PATH, params={"id": deployment_id})

    def _send(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str],
        content: typ.Iterable[bytes] | None = None,
        headers: dict[str, str] | None = None,
    ) -> PortalResponse:
        try:
            response = self._client.request(
                method, path, params=params, content=content, headers=headers
            )
        except httpx.TransportError as exc:
            msg = f"{method} {self.base_url}{path} failed: {exc!s}"
            raise TransportError(msg) from exc
        return PortalResponse.from_httpx(response)
