from __future__ import annotations

from .errors import Overflow
from .project_constants import UINT256_MAX


def _check(value: int, what: str) -> int:
    if value < 0 or value > UINT256_MAX:
        raise Overflow(f"{what} out of uint256 range")
    return value


def checked_add(a: int, b: int) -> int:
    _check(a, "left operand")
    _check(b, "right operand")
    return _check(a + b, "sum")


def checked_sub(a: int, b: int) -> int:
    _check(a, "left operand")
    _check(b, "right operand")
    return _check(a - b, "difference")


def checked_mul(a: int, b: int) -> int:
    _check(a, "left operand")
    _check(b, "right operand")
    return _check(a * b, "product")
