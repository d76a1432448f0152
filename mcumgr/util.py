"""Decimal formatting of integers into fixed-size buffers."""

from __future__ import annotations

_ULL_MAX = (1 << 64) - 1
_LL_MIN = -(1 << 63)
_LL_MAX = (1 << 63) - 1


def format_unsigned(value: int, max_len: int) -> str:
    """Format an unsigned 64-bit value as decimal text.

    ``max_len`` is the size of the destination buffer, terminator included.
    Raises ValueError if the value is out of range or the buffer is too small.
    """
    if not 0 <= value <= _ULL_MAX:
        raise ValueError(f"value out of unsigned 64-bit range: {value}")
    text = str(value)
    if len(text) >= max_len - 1:
        raise ValueError(
            f"buffer of {max_len} bytes too small for {len(text)} digits"
        )
    return text


def format_signed(value: int, max_len: int) -> str:
    """Format a signed 64-bit value as decimal text.

    ``max_len`` is the size of the destination buffer, terminator included.
    Raises ValueError if the value is out of range or the buffer is too small.
    """
    if not _LL_MIN <= value <= _LL_MAX:
        raise ValueError(f"value out of signed 64-bit range: {value}")
    if value < 0:
        if max_len < 1:
            raise ValueError(f"buffer of {max_len} bytes too small for a sign")
        return "-" + format_unsigned(-value, max_len - 1)
    return format_unsigned(value, max_len)