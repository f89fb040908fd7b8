"""List input helper for string-valued CLI and environment inputs.

Values that arrive through environment variables are always strings, so a
single value may carry several comma- or newline-separated entries.
"""

from __future__ import annotations

import re
import typing as typ

__all__ = ["split_list_input"]

_LIST_SEPARATORS = re.compile(r"[,\n]")


def split_list_input(values: str | typ.Iterable[str] | None) -> list[str]:
    """Split comma- or newline-separated inputs into a flat list.

    Blank items are dropped and surrounding whitespace is stripped, so a
    multi-line YAML block and ``"a, b"`` both yield ``["a", "b"]``.

    Examples
    --------
    >>> split_list_input("build/repo,\\nlib/build/repo")
    ['build/repo', 'lib/build/repo']
    >>> split_list_input(["a,b", "c"])
    ['a', 'b', 'c']
    """
    if values is None:
        return []
    if isinstance(values, str):
        values = [values]
    return [
        item.strip()
        for value in values
        for item in _LIST_SEPARATORS.split(value)
        if item.strip()
    ]
