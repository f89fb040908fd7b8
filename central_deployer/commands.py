r"""Echo-then-run wrapper for plumbum command invocations.

Every external command is printed as ``$ <command>`` before it runs so CI
logs show exactly what was executed. Secrets must therefore never be passed
as arguments; hand them over through files instead.

Examples
--------
>>> from plumbum import local
>>> run_cmd(local["echo"]["hello"])
$ echo hello
'hello\n'
"""

from __future__ import annotations

import collections.abc as cabc
import typing as typ

import typer

__all__ = ["SupportsFormulate", "run_cmd"]


@typ.runtime_checkable
class SupportsFormulate(typ.Protocol):
    """Objects that expose a shell representation via ``formulate``."""

    def formulate(self) -> cabc.Sequence[str]:  # pragma: no cover - protocol
        ...


def run_cmd(cmd: object) -> str:
    """Echo ``cmd`` and run it, returning its stdout.

    Raises
    ------
    TypeError
        If ``cmd`` is not a plumbum command invocation.
    plumbum.commands.processes.ProcessExecutionError
        If the command exits with a non-zero status.
    """
    if not isinstance(cmd, SupportsFormulate):
        msg = "run_cmd requires a plumbum command invocation"
        raise TypeError(msg)

    typer.echo(f"$ {cmd}")
    return typ.cast("typ.Any", cmd)()
