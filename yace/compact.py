"""In-place filtering of lists."""

from __future__ import annotations

from typing import Callable, TypeVar

T = TypeVar("T")


def compact(items: list[T], keep: Callable[[T], bool]) -> list[T]:
    """Remove from ``items`` every element for which ``keep`` is false.

    The list is modified in place and returned.
    """
    items[:] = [item for item in items if keep(item)]
    return items