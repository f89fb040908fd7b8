"""Command line entry point for ``central-deployer``.

Every option can also be supplied through an environment variable prefixed
with ``CENTRAL_DEPLOYER_``, e.g. ``CENTRAL_DEPLOYER_PUBLISHING_TYPE``.
Credentials and signing secrets additionally fall back to
``MAVENCENTRAL_USERNAME``, ``MAVENCENTRAL_PASSWORD``, ``GPG_SECRET_KEY`` and
``GPG_PASSPHRASE``.

Examples
--------
Upload two directories and wait for the deployment to be published::

    central-deployer --dirs build/repo --dirs lib/build/repo \\
        --publishing-type wait-for-published

Build the bundle without uploading it::

    CENTRAL_DEPLOYER_DRY_RUN=true central-deployer --config deploy.toml
"""

from __future__ import annotations

import logging
import sys
import time
import typing as typ
from pathlib import Path

import cyclopts
from cyclopts import App, Parameter

from .config import DeployConfig, load_config
from .errors import DeployError
from .inputs import split_list_input
from .pipeline import deploy

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    import httpx

    from .signing import Signer

__all__ = ["ENV_PREFIX", "app", "main", "show_config"]

ENV_PREFIX = "CENTRAL_DEPLOYER_"
ERROR_TITLE = "Deploy Failure"

logger = logging.getLogger(__name__)

app: App = App(
    name="central-deployer",
    help="Bundle artifact directories and deploy them to Maven Central.",
    config=cyclopts.config.Env(ENV_PREFIX, command=False),
)


def _emit_error(exc: BaseException) -> None:
    print(f"::error title={ERROR_TITLE}::{exc}", file=sys.stderr)


def _configure_logging(*, verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
    )


def _resolve_config(config_file: Path | None, **overrides: object) -> DeployConfig:
    base = load_config(config_file) if config_file is not None else DeployConfig()
    return base.merged(**overrides)


def main(  # noqa: PLR0913 - mirrors the CLI options
    *,
    dirs: cabc.Sequence[str] | str | None = None,
    username: str | None = None,
    password: str | None = None,
    publishing_type: str | None = None,
    config_file: Path | None = None,
    project_dir: Path | None = None,
    name: str | None = None,
    bundle_version: str | None = None,
    signing_key: str | None = None,
    signing_passphrase: str | None = None,
    dry_run: bool = False,
    signer: Signer | None = None,
    transport: httpx.BaseTransport | None = None,
    sleep: cabc.Callable[[float], None] = time.sleep,
) -> int:
    """Entry point shared by the CLI and tests.

    Command line values win over the configuration file, which wins over the
    environment fallbacks.

    Returns
    -------
    int
        Exit code: ``0`` on success or when there is nothing to deploy, ``1``
        when the deploy fails.
    """
    try:
        settings = _resolve_config(
            config_file,
            dirs=tuple(Path(entry) for entry in split_list_input(dirs)),
            username=username,
            password=password,
            publishing_type=publishing_type,
            name=name,
            version=bundle_version,
            signing_key=signing_key,
            signing_passphrase=signing_passphrase,
        )
        if not settings.dirs:
            logger.info("No dirs configured for deploying. Skipping.")
            return 0
        request = settings.to_request(project_dir)
        result = deploy(
            request,
            signer=signer,
            transport=transport,
            sleep=sleep,
            dry_run=dry_run,
        )
    except (DeployError, FileNotFoundError, ValueError) as exc:
        _emit_error(exc)
        return 1

    if result is None:
        return 0
    if result.dry_run:
        print(f"Dry run: bundle written to {result.bundle.path}")
    elif result.poll is not None:
        print(
            f"Deployment {result.poll.deployment_id} published "
            f"after {result.poll.format_elapsed()}"
        )
    elif result.deployment_id is not None:
        print(
            f"Uploaded {result.bundle.path.name} as deployment {result.deployment_id}"
        )
    return 0


def show_config(
    *,
    dirs: cabc.Sequence[str] | str | None = None,
    publishing_type: str | None = None,
    config_file: Path | None = None,
    project_dir: Path | None = None,
) -> int:
    """Print the resolved deploy settings with credentials masked."""
    try:
        settings = _resolve_config(
            config_file,
            dirs=tuple(Path(entry) for entry in split_list_input(dirs)),
            publishing_type=publishing_type,
        )
        summary = settings.summary(project_dir)
    except (DeployError, FileNotFoundError, ValueError) as exc:
        _emit_error(exc)
        return 1

    print("Deploy configuration:")
    for key, value in summary.items():
        if isinstance(value, list):
            print(f"  {key}:")
            for item in value:
                print(f"    - {item}")
        else:
            print(f"  {key}: {value}")
    return 0


@app.default
def cli(  # noqa: PLR0913 - one parameter per option
    *,
    dirs: list[str] | None = None,
    username: str | None = None,
    password: str | None = None,
    publishing_type: str | None = None,
    config: typ.Annotated[Path | None, Parameter(name="--config")] = None,
    project_dir: Path | None = None,
    name: str | None = None,
    bundle_version: str | None = None,
    signing_key: str | None = None,
    signing_passphrase: str | None = None,
    dry_run: bool = False,
    verbose: bool = False,
) -> None:
    """Sign, bundle and upload artifact directories to the Central Publisher API.

    Parameters
    ----------
    dirs
        Artifact directories; repeat the option or separate with commas.
    username
        Publisher portal token username.
    password
        Publisher portal token password.
    publishing_type
        AUTOMATIC, USER_MANAGED (default) or WAIT_FOR_PUBLISHED.
    config
        TOML file holding a ``[deploy]`` table.
    project_dir
        Directory the bundle is written to; defaults to the working directory.
    name
        Project name used for the bundle file name.
    bundle_version
        Version stamped into the bundle file name.
    signing_key
        ASCII-armoured private key used to sign every artifact.
    signing_passphrase
        Passphrase of ``signing_key``.
    dry_run
        Build the bundle but skip the upload.
    verbose
        Enable debug logging.
    """
    _configure_logging(verbose=verbose)
    exit_code = main(
        dirs=dirs,
        username=username,
        password=password,
        publishing_type=publishing_type,
        config_file=config,
        project_dir=project_dir,
        name=name,
        bundle_version=bundle_version,
        signing_key=signing_key,
        signing_passphrase=signing_passphrase,
        dry_run=dry_run,
    )
    raise SystemExit(exit_code)


@app.command(name="config")
def config_cli(
    *,
    dirs: list[str] | None = None,
    publishing_type: str | None = None,
    config: typ.Annotated[Path | None, Parameter(name="--config")] = None,
    project_dir: Path | None = None,
) -> None:
    """Show the resolved deploy configuration without deploying."""
    _configure_logging(verbose=False)
    raise SystemExit(
        show_config(
            dirs=dirs,
            publishing_type=publishing_type,
            config_file=config,
            project_dir=project_dir,
        )
    )


if __name__ == "__main__":
    app()
