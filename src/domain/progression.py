"""
Ordered progress markers - the single advancement function.

Both progress markers (account stage and stage tracker status) are
ordered enums. Their position is their definition order. Every
transition of either marker goes through ``advance()``, which is
parameterized by how the requested value is interpreted:

    AdvanceMode.NEXT    "I have finished the stage I am in"
                        target == current -> value after current
                        target >  current -> unchanged
    AdvanceMode.TARGET  "move to target"
                        target >= current -> target

In both modes target < current raises StageRegression and nothing
changes, so the stored index never decreases.
"""

from enum import Enum
from typing import TypeVar

from .exceptions import StageRegression

E = TypeVar("E", bound=Enum)


class AdvanceMode(Enum):
    NEXT = "next"
    TARGET = "target"


def position(value: Enum) -> int:
    """Index of a marker value within its ordering."""
    return list(type(value)).index(value)


def next_after(value: E) -> E | None:
    """Value following ``value``, or None at the end of the ordering."""
    ordering = list(type(value))
    index = ordering.index(value)
    if index + 1 < len(ordering):
        return ordering[index + 1]
    return None


def advance(current: E, target: E, mode: AdvanceMode) -> E:
    """
    Compute the marker value after a requested transition.

    Args:
        current: Stored marker value
        target: Requested marker value (same enum as current)
        mode: NEXT or TARGET interpretation of ``target``

    Returns:
        New marker value, possibly equal to ``current`` (no-op)

    Raises:
        StageRegression: If target precedes current
    """
    if type(current) is not type(target):
        raise TypeError(f"Cannot compare {type(current).__name__} with {type(target).__name__}")

    if position(target) < position(current):
        raise StageRegression(
            f"Cannot go back from '{current.value}' to '{target.value}'",
            current=current.value,
        )

    if mode is AdvanceMode.TARGET:
        return target

    if target == current:
        following = next_after(current)
        if following is not None:
            return following
    return current
