#!/usr/bin/env python3
"""
Primitive checks backing each validation rule.

Every check is a pure function returning True when the value passes.
"""

from typing import Iterable, TypeVar

Scalar = TypeVar('Scalar', str, int)


def length_equals(value: str, length: int) -> bool:
    """Check that a string has exactly `length` characters."""
    return len(value) == length


def minimum(value: int, bound: int) -> bool:
    """Check `value >= bound`. Strings are checked by their length upstream."""
    return value >= bound


def maximum(value: int, bound: int) -> bool:
    """Check `value <= bound`. Strings are checked by their length upstream."""
    return value <= bound


def membership(value: Scalar, allowed: Iterable[Scalar]) -> bool:
    """
    Check that a value equals one of the allowed values.

    Args:
        value: String or integer to look up
        allowed: Candidate values of the same domain as `value`

    Returns:
        True if any candidate compares equal, False otherwise (always False
        for an empty candidate list)

    Example:
        >>> membership(2, (1, 2, 3))
        True
        >>> membership("x", ())
        False
    """
    return any(candidate == value for candidate in allowed)


# Check registry mapping rule names to implementations
CHECKS = {
    'len': length_equals,
    'min': minimum,
    'max': maximum,
    'in': membership,
}
