r"""Single-part ``multipart/form-data`` framing for bundle uploads.

The upload body carries exactly one part named ``bundle``::

    --<boundary>\r\n
    Content-Disposition: form-data; name=bundle; filename=<name>\r\n
    Content-Type: application/octet-stream\r\n
    \r\n
    <file bytes>\r\n
    --<boundary>--\r\n

The boundary is a random UUIDv7-derived token. It is not checked against the
file content; a collision is improbable, not impossible.
"""

from __future__ import annotations

import typing as typ
from pathlib import Path

import uuid_utils

__all__ = [
    "BOUNDARY_PREFIX",
    "FIELD_NAME",
    "MultipartBody",
    "content_type_for",
    "encode_multipart",
    "new_boundary",
]

BOUNDARY_PREFIX = "----CentralDeployerBoundary"
FIELD_NAME = "bundle"
DEFAULT_CHUNK_SIZE = 64 * 1024


def new_boundary() -> str:
    """Return a fresh boundary token."""
    return f"{BOUNDARY_PREFIX}{uuid_utils.uuid7().hex}"


def content_type_for(boundary: str) -> str:
    """Return the ``Content-Type`` header value for ``boundary``."""
    return f"multipart/form-data; boundary={boundary}"


def _part_header(filename: str, boundary: str) -> bytes:
    return (
        f"--{boundary}\r\n"
        f"Content-Disposition: form-data; name={FIELD_NAME}; filename={filename}\r\n"
        "Content-Type: application/octet-stream\r\n"
        "\r\n"
    ).encode()


def _closing_boundary(boundary: str) -> bytes:
    return f"\r\n--{boundary}--\r\n".encode()


def encode_multipart(filename: str, source: typ.BinaryIO, boundary: str) -> bytes:
    """Return the complete multipart body for the bytes read from ``source``."""
    header = _part_header(filename, boundary)
    return header + source.read() + _closing_boundary(boundary)


class MultipartBody:
    """Streaming multipart body for a file on disk.

    Iterating yields the part header, the file in ``chunk_size`` pieces, then
    the closing boundary, so memory stays bounded for large bundles. The file
    is reopened on every iteration and never written to.
    """

    def __init__(
        self,
        path: Path,
        *,
        boundary: str | None = None,
        filename: str | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self.path = Path(path)
        self.boundary = boundary or new_boundary()
        self.filename = filename or self.path.name
        self.chunk_size = chunk_size
        self._header = _part_header(self.filename, self.boundary)
        self._trailer = _closing_boundary(self.boundary)

    @property
    def content_type(self) -> str:
        """``Content-Type`` header value announcing the boundary."""
        return content_type_for(self.boundary)

    @property
    def content_length(self) -> int:
        """Total body size in bytes."""
        return len(self._header) + self.path.stat().st_size + len(self._trailer)

    def headers(self) -> dict[str, str]:
        """Return the entity headers to send with this body."""
        return {
            "Content-Type": self.content_type,
            "Content-Length": str(self.content_length),
        }

    def __iter__(self) -> typ.Iterator[bytes]:
        yield self._header
        with self.path.open("rb") as handle:
            while chunk := handle.read(self.chunk_size):
                yield chunk
        yield self._trailer
