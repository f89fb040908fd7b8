"""Shared pytest fixtures for the deploy pipeline tests."""

from __future__ import annotations

import typing as typ
from pathlib import Path

import httpx
import pytest

from central_deployer.client import STATUS_PATH, UPLOAD_PATH
from central_deployer.config import DeployRequest

if typ.TYPE_CHECKING:
    import collections.abc as cabc

DEPLOYMENT_ID = "28570f16-da32-4c14-bd2e-c1acc0782365"


class FakeClock:
    """Monotonic clock that only advances when ``sleep`` is called."""

    def __init__(self) -> None:
        self.now = 1000.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakePortal:
    """Scripted stand-in for the Central Publisher API.

    Upload requests are answered with :attr:`upload_response`; status polls
    consume :attr:`status_responses` in order and fall back to
    :attr:`fallback_state` once the queue is empty.
    """

    def __init__(self) -> None:
        self.upload_response: httpx.Response | Exception = httpx.Response(
            201, text=DEPLOYMENT_ID
        )
        self.status_responses: list[httpx.Response | Exception] = []
        self.fallback_state: str | None = None
        self.requests: list[httpx.Request] = []

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)

    @property
    def uploads(self) -> list[httpx.Request]:
        return [req for req in self.requests if req.url.path == UPLOAD_PATH]

    @property
    def status_calls(self) -> list[httpx.Request]:
        return [req for req in self.requests if req.url.path == STATUS_PATH]

    def queue_states(self, *states: str) -> None:
        for state in states:
            self.status_responses.append(_state_response(state))

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == UPLOAD_PATH:
            outcome = self.upload_response
        elif request.url.path == STATUS_PATH:
            outcome = self._next_status()
        else:
            outcome = httpx.Response(404, text="not found")
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def _next_status(self) -> httpx.Response | Exception:
        if self.status_responses:
            return self.status_responses.pop(0)
        if self.fallback_state is not None:
            return _state_response(self.fallback_state)
        msg = "unexpected status poll"
        raise AssertionError(msg)


def _state_response(state: str) -> httpx.Response:
    return httpx.Response(
        200,
        json={
            "deploymentId": DEPLOYMENT_ID,
            "deploymentName": "demo",
            "deploymentState": state,
            "purls": [],
        },
    )


class RecordingSigner:
    """Signer double that records the directories it was asked to sign."""

    def __init__(self, error: Exception | None = None) -> None:
        self.calls: list[tuple[Path, str, str]] = []
        self.error = error

    def sign(self, directory: Path, secret_key: str, passphrase: str) -> None:
        self.calls.append((directory, secret_key, passphrase))
        if self.error is not None:
            raise self.error


@pytest.fixture
def artifact_dirs(tmp_path: Path) -> tuple[Path, Path]:
    """Create two artifact directories with a nested file in the first."""
    first = tmp_path / "a"
    second = tmp_path / "b"
    (first / "nested").mkdir(parents=True)
    second.mkdir()
    (first / "x.txt").write_text("x", encoding="utf-8")
    (first / "nested" / "y.txt").write_text("y", encoding="utf-8")
    (second / "z.txt").write_text("z", encoding="utf-8")
    return first, second


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """Return an empty project directory the bundle is written to."""
    path = tmp_path / "project"
    path.mkdir()
    return path


@pytest.fixture
def make_request(
    artifact_dirs: tuple[Path, Path], project_dir: Path
) -> cabc.Callable[..., DeployRequest]:
    """Return a factory for valid :class:`DeployRequest` objects."""

    def _make(**overrides: object) -> DeployRequest:
        values: dict[str, object] = {
            "dirs": artifact_dirs,
            "username": "user",
            "password": "secret",
            "project_dir": project_dir,
            "bundle_name": "demo",
        }
        values.update(overrides)
        return DeployRequest(**values)  # type: ignore[arg-type]

    return _make


@pytest.fixture
def clock() -> FakeClock:
    """Provide a fake clock whose ``sleep`` advances time instantly."""
    return FakeClock()


@pytest.fixture
def portal() -> FakePortal:
    """Provide a scripted publisher API."""
    return FakePortal()


@pytest.fixture
def signer() -> RecordingSigner:
    """Provide a signer double that succeeds."""
    return RecordingSigner()


@pytest.fixture(autouse=True)
def _clear_deploy_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep host credentials out of the tests."""
    for name in (
        "MAVENCENTRAL_USERNAME",
        "MAVENCENTRAL_PASSWORD",
        "GPG_SECRET_KEY",
        "GPG_PASSPHRASE",
    ):
        monkeypatch.delenv(name, raising=False)
