"""Tests for :mod:`central_deployer.pipeline`."""

from __future__ import annotations

import logging
import typing as typ
import zipfile

import httpx
import pytest

from central_deployer.config import PublishingType, SigningConfig
from central_deployer.errors import (
    BundleIOError,
    DeploymentFailedError,
    DeploymentTimeoutError,
    SigningError,
    TransportError,
)
from central_deployer.pipeline import DeployResult, deploy
from central_deployer.response import DeploymentState
from conftest import DEPLOYMENT_ID, RecordingSigner

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    from pathlib import Path

    from central_deployer.config import DeployRequest
    from conftest import FakeClock, FakePortal


def _deploy(
    request: DeployRequest,
    portal: FakePortal,
    clock: FakeClock,
    **options: typ.Any,
) -> DeployResult | None:
    options.setdefault("signer", RecordingSigner())
    return deploy(
        request,
        transport=portal.transport,
        sleep=clock.sleep,
        clock=clock,
        poll_interval=10.0,
        **options,
    )


@pytest.mark.parametrize(
    "publishing_type", [PublishingType.AUTOMATIC, PublishingType.USER_MANAGED]
)
def test_non_waiting_modes_upload_once_without_polling(
    make_request: cabc.Callable[..., DeployRequest],
    portal: FakePortal,
    clock: FakeClock,
    publishing_type: PublishingType,
) -> None:
    """Fire-and-forget modes never touch the status endpoint."""
    result = _deploy(make_request(publishing_type=publishing_type), portal, clock)

    assert result is not None
    assert len(portal.uploads) == 1
    assert portal.status_calls == []
    assert portal.uploads[0].url.params["publishingType"] == publishing_type.value
    assert result.deployment_id == DEPLOYMENT_ID
    assert result.poll is None


def test_bundle_is_written_and_uploaded(
    make_request: cabc.Callable[..., DeployRequest],
    portal: FakePortal,
    clock: FakeClock,
    project_dir: Path,
) -> None:
    """The uploaded bytes are the archive built from the directories."""
    result = _deploy(make_request(), portal, clock)

    assert result is not None
    assert result.bundle.path == project_dir.resolve() / "demo-bundle.zip"
    with zipfile.ZipFile(result.bundle.path) as archive:
        assert sorted(archive.namelist()) == ["nested/y.txt", "x.txt", "z.txt"]
    assert result.bundle.path.read_bytes() in portal.uploads[0].content


def test_wait_mode_polls_until_published(
    make_request: cabc.Callable[..., DeployRequest],
    portal: FakePortal,
    clock: FakeClock,
) -> None:
    """WAIT_FOR_PUBLISHED uploads as AUTOMATIC and polls the returned id."""
    portal.queue_states("PENDING", "PUBLISHING", "PUBLISHED")
    request = make_request(publishing_type=PublishingType.WAIT_FOR_PUBLISHED)

    result = _deploy(request, portal, clock)

    assert result is not None
    assert portal.uploads[0].url.params["publishingType"] == "AUTOMATIC"
    assert len(portal.status_calls) == 3
    assert portal.status_calls[0].url.params["id"] == DEPLOYMENT_ID
    assert result.poll is not None
    assert result.poll.state is DeploymentState.PUBLISHED
    assert result.poll.elapsed_seconds >= 20


def test_wait_mode_reads_json_upload_response(
    make_request: cabc.Callable[..., DeployRequest],
    portal: FakePortal,
    clock: FakeClock,
) -> None:
    """A JSON upload body carrying ``deploymentId`` is understood as well."""
    portal.upload_response = httpx.Response(201, json={"deploymentId": "json-id"})
    portal.queue_states("PUBLISHED")

    result = _deploy(
        make_request(publishing_type="WAIT_FOR_PUBLISHED"), portal, clock
    )

    assert result is not None
    assert result.deployment_id == "json-id"
    assert portal.status_calls[0].url.params["id"] == "json-id"


def test_wait_mode_failed_deployment_raises(
    make_request: cabc.Callable[..., DeployRequest],
    portal: FakePortal,
    clock: FakeClock,
) -> None:
    """A FAILED deployment aborts the invocation."""
    portal.queue_states("VALIDATING", "FAILED")

    with pytest.raises(DeploymentFailedError):
        _deploy(make_request(publishing_type="WAIT_FOR_PUBLISHED"), portal, clock)

    assert len(portal.status_calls) == 2


def test_wait_mode_times_out(
    make_request: cabc.Callable[..., DeployRequest],
    portal: FakePortal,
    clock: FakeClock,
) -> None:
    """A deployment stuck in PENDING exhausts the attempt budget."""
    portal.fallback_state = "PENDING"

    with pytest.raises(DeploymentTimeoutError):
        _deploy(
            make_request(publishing_type="WAIT_FOR_PUBLISHED"),
            portal,
            clock,
            max_attempts=4,
        )

    assert len(portal.status_calls) == 4


def test_wait_mode_upload_failure_stops_without_polling(
    make_request: cabc.Callable[..., DeployRequest],
    portal: FakePortal,
    clock: FakeClock,
    caplog: pytest.LogCaptureFixture,
) -> None:
    """A rejected upload is logged and no status call is made."""
    portal.upload_response = httpx.Response(401, text="Unauthorized")

    with caplog.at_level(logging.WARNING):
        result = _deploy(
            make_request(publishing_type="WAIT_FOR_PUBLISHED"), portal, clock
        )

    assert result is not None
    assert result.response is not None
    assert result.response.status_code == 401
    assert portal.status_calls == []
    assert "Upload failed with status 401" in caplog.text


def test_wait_mode_without_id_stops_with_warning(
    make_request: cabc.Callable[..., DeployRequest],
    portal: FakePortal,
    clock: FakeClock,
    caplog: pytest.LogCaptureFixture,
) -> None:
    """A 2xx upload without an id cannot be waited on."""
    portal.upload_response = httpx.Response(201, json={"deploymentName": "demo"})

    with caplog.at_level(logging.WARNING):
        result = _deploy(
            make_request(publishing_type="WAIT_FOR_PUBLISHED"), portal, clock
        )

    assert result is not None
    assert result.deployment_id is None
    assert portal.status_calls == []
    assert "Could not extract deploymentId" in caplog.text


def test_non_2xx_upload_is_a_warning_in_fire_and_forget_mode(
    make_request: cabc.Callable[..., DeployRequest],
    portal: FakePortal,
    clock: FakeClock,
    caplog: pytest.LogCaptureFixture,
) -> None:
    """Server errors are downgraded to warnings when not waiting."""
    portal.upload_response = httpx.Response(500, text="boom")

    with caplog.at_level(logging.WARNING):
        result = _deploy(make_request(), portal, clock)

    assert result is not None
    assert result.deployment_id is None
    assert "status 500" in caplog.text


def test_transport_failure_propagates(
    make_request: cabc.Callable[..., DeployRequest],
    portal: FakePortal,
    clock: FakeClock,
) -> None:
    """Network failures during upload are fatal."""
    portal.upload_response = httpx.ConnectError("refused")

    with pytest.raises(TransportError):
        _deploy(make_request(), portal, clock)


def test_empty_dirs_skip_everything(
    make_request: cabc.Callable[..., DeployRequest],
    portal: FakePortal,
    clock: FakeClock,
    project_dir: Path,
    caplog: pytest.LogCaptureFixture,
) -> None:
    """Nothing is bundled or uploaded without directories."""
    with caplog.at_level(logging.INFO):
        result = _deploy(make_request(dirs=()), portal, clock)

    assert result is None
    assert portal.requests == []
    assert list(project_dir.iterdir()) == []
    assert "No dirs configured for deploying. Skipping." in caplog.text


def test_dry_run_builds_but_does_not_upload(
    make_request: cabc.Callable[..., DeployRequest],
    portal: FakePortal,
    clock: FakeClock,
) -> None:
    """A dry run stops after the bundle is written."""
    result = _deploy(make_request(), portal, clock, dry_run=True)

    assert result is not None
    assert result.dry_run
    assert result.response is None
    assert result.bundle.path.is_file()
    assert portal.requests == []


def test_signing_runs_per_directory_before_bundling(
    make_request: cabc.Callable[..., DeployRequest],
    artifact_dirs: tuple[Path, Path],
    portal: FakePortal,
    clock: FakeClock,
) -> None:
    """Each directory is signed with the configured key material."""
    signer = RecordingSigner()
    request = make_request(signing=SigningConfig("KEY", "PASS"))

    _deploy(request, portal, clock, signer=signer)

    assert signer.calls == [
        (artifact_dirs[0], "KEY", "PASS"),
        (artifact_dirs[1], "KEY", "PASS"),
    ]


def test_signing_is_skipped_without_key(
    make_request: cabc.Callable[..., DeployRequest],
    portal: FakePortal,
    clock: FakeClock,
) -> None:
    """No signing configuration means the signer is not called."""
    signer = RecordingSigner()

    _deploy(make_request(), portal, clock, signer=signer)

    assert signer.calls == []


def test_signing_failure_aborts_before_bundle(
    make_request: cabc.Callable[..., DeployRequest],
    portal: FakePortal,
    clock: FakeClock,
    project_dir: Path,
) -> None:
    """A signing error stops the pipeline before any archive or request."""
    signer = RecordingSigner(error=SigningError("bad key"))
    request = make_request(signing=SigningConfig("KEY", "PASS"))

    with pytest.raises(SigningError):
        _deploy(request, portal, clock, signer=signer)

    assert list(project_dir.iterdir()) == []
    assert portal.requests == []


def test_bundle_failure_prevents_upload(
    make_request: cabc.Callable[..., DeployRequest],
    portal: FakePortal,
    clock: FakeClock,
    project_dir: Path,
) -> None:
    """An archive that cannot be written is never uploaded."""
    (project_dir / "demo-bundle.zip").mkdir()

    with pytest.raises(BundleIOError):
        _deploy(make_request(), portal, clock)

    assert portal.requests == []


def test_credentials_are_sent_as_bearer_token(
    make_request: cabc.Callable[..., DeployRequest],
    portal: FakePortal,
    clock: FakeClock,
) -> None:
    """The request's credentials authenticate the upload."""
    _deploy(make_request(username="alice", password="pw"), portal, clock)

    assert portal.uploads[0].headers["Authorization"] == "Bearer YWxpY2U6cHc="
