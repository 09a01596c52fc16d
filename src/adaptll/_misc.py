"""Bits and bobs, like typing-related shims, internal sentinels, and hash mixing."""

import sys
from typing import TYPE_CHECKING, Any, Final

__all__ = ("MISSING", "TypeAlias", "override", "murmur_initialize", "murmur_update", "murmur_finish")


if sys.version_info >= (3, 12):  # pragma: >=3.12 cover
    from typing import override
elif TYPE_CHECKING:
    from typing_extensions import override
else:  # pragma: <3.12 cover

    def override(arg: object) -> Any:
        try:
            arg.__override__ = True
        except AttributeError:  # pragma: no cover
            pass
        return arg


if sys.version_info >= (3, 10):  # pragma: >=3.10 cover
    from typing import TypeAlias
elif TYPE_CHECKING:
    from typing_extensions import TypeAlias
else:  # pragma: <3.10 cover
    TypeAlias = Any


class _Missing:
    __slots__ = ()

    @override
    def __repr__(self) -> str:
        return "<MISSING>"


MISSING: Final[Any] = _Missing()
"""Internal sentinel."""


# ============================================================================
# region -------- Murmur hash mixing --------
#
# 32-bit MurmurHash3 steps. Only used to spread structural hashes of
# prediction contexts and conflict keys; never part of a logical answer.
# ============================================================================

_MASK32: Final = 0xFFFFFFFF
_C1: Final = 0xCC9E2D51
_C2: Final = 0x1B873593


def murmur_initialize(seed: int = 0) -> int:
    return seed & _MASK32


def murmur_update(hash_value: int, value: int) -> int:
    """Mix one 32-bit word into a running hash."""

    k = value & _MASK32
    k = (k * _C1) & _MASK32
    k = ((k << 15) | (k >> 17)) & _MASK32
    k = (k * _C2) & _MASK32

    hash_value ^= k
    hash_value = ((hash_value << 13) | (hash_value >> 19)) & _MASK32
    return (hash_value * 5 + 0xE6546B64) & _MASK32


def murmur_finish(hash_value: int, word_count: int) -> int:
    """Apply the final avalanche after `word_count` words were mixed in."""

    hash_value ^= word_count * 4
    hash_value ^= hash_value >> 16
    hash_value = (hash_value * 0x85EBCA6B) & _MASK32
    hash_value ^= hash_value >> 13
    hash_value = (hash_value * 0xC2B2AE35) & _MASK32
    hash_value ^= hash_value >> 16
    return hash_value


# endregion
