# region License
# -----------------------------------------------------------------------------
# adaptll: prediction.py
#
# Copyright (C) 2024, the adaptll authors
# All rights reserved.
#
# Redistribution and use in source and binary forms, with or without
# modification, are permitted provided that the following conditions are
# met:
#
# * Redistributions of source code must retain the above copyright notice,
#   this list of conditions and the following disclaimer.
# * Redistributions in binary form must reproduce the above copyright notice,
#   this list of conditions and the following disclaimer in the documentation
#   and/or other materials provided with the distribution.
# * Neither the name of the copyright holders nor the names of its
#   contributors may be used to endorse or promote products derived from this
#   software without specific prior written permission.
#
# THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS
# "AS IS" AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT
# LIMITED TO, THE IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR
# A PARTICULAR PURPOSE ARE DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT
# OWNER OR CONTRIBUTORS BE LIABLE FOR ANY DIRECT, INDIRECT, INCIDENTAL,
# SPECIAL, EXEMPLARY, OR CONSEQUENTIAL DAMAGES (INCLUDING, BUT NOT
# LIMITED TO, PROCUREMENT OF SUBSTITUTE GOODS OR SERVICES; LOSS OF USE,
# DATA, OR PROFITS; OR BUSINESS INTERRUPTION) HOWEVER CAUSED AND ON ANY
# THEORY OF LIABILITY, WHETHER IN CONTRACT, STRICT LIABILITY, OR TORT
# (INCLUDING NEGLIGENCE OR OTHERWISE) ARISING IN ANY WAY OUT OF THE USE
# OF THIS SOFTWARE, EVEN IF ADVISED OF THE POSSIBILITY OF SUCH DAMAGE.
# -----------------------------------------------------------------------------
# endregion

"""Conflict resolution: deciding, from a set of configurations, whether prediction can stop and which alternative wins.

Extended Summary
----------------
Every function here is a pure function of its arguments. The configuration set handed in is only read; where
predicates must be dropped, a new set is derived.

The intermediate representation is a list of *alternative subsets*: for each distinct (state, context) pair among the
configurations, the set of alternatives that reached it. A subset with more than one member means the same input
prefix leaves the parser in the same place by two or more alternatives, which is a conflict.
"""

import enum
from collections.abc import Iterable, Sequence
from typing import Final

from ._misc import TypeAlias, murmur_finish, murmur_initialize, murmur_update, override
from .atn import INVALID_ALT_NUMBER, ATNState, StateKind
from .config import ATNConfig, ATNConfigSet

__all__ = (
    "AltSubset",
    "PredictionMode",
    "should_terminate_prediction",
    "has_config_in_rule_stop_state",
    "all_configs_in_rule_stop_states",
    "get_conflicting_alt_subsets",
    "get_state_to_alt_map",
    "has_state_associated_with_one_alt",
    "has_non_conflicting_alt_set",
    "has_conflicting_alt_set",
    "all_subsets_conflict",
    "all_subsets_equal",
    "get_alts",
    "get_unique_alt",
    "get_single_viable_alt",
    "resolves_to_just_one_viable_alt",
)


AltSubset: TypeAlias = frozenset[int]


class PredictionMode(enum.Enum):
    """Which prediction tiers a decision may use."""

    SLL = enum.auto()
    """Context-insensitive prediction only. Fast; may resolve a conflict that full context would have resolved
    differently, and never reports ambiguities."""

    LL = enum.auto()
    """Context-insensitive first, falling back to full-context prediction on conflict."""

    LL_EXACT_AMBIG_DETECTION = enum.auto()
    """Like LL, but full-context prediction keeps looking until an ambiguity is exact."""


# ============================================================================
# region -------- Termination --------
# ============================================================================


def should_terminate_prediction(mode: PredictionMode, configs: ATNConfigSet) -> bool:
    """Decide whether context-insensitive prediction can stop looking at more input.

    Extended Summary
    ----------------
    1. If every configuration reached the end of a rule (the decision's rule without context, the start rule with
       full context), no further input can be matched, so prediction stops.
    2. In pure SLL mode, predicates are dropped first, on a new set. Combining configurations across predicates is not
       sound, but a conflict here falls back to full context anyway, so tracking them precisely is wasted work.
    3. Otherwise stop when some (state, context) pair is reached by more than one alternative, unless some state is
       reached by exactly one alternative: that state can still tell the alternatives apart on the next token.

    Parameters
    ----------
    mode: PredictionMode
        The prediction mode in effect.
    configs: ATNConfigSet
        The configurations reached so far. Not modified.

    Returns
    -------
    bool
        True if prediction should stop.
    """

    if all_configs_in_rule_stop_states(configs):
        return True

    if mode is PredictionMode.SLL and configs.has_semantic_context:
        configs = configs.without_semantic_context()

    altsets = get_conflicting_alt_subsets(configs)
    return has_conflicting_alt_set(altsets) and not has_state_associated_with_one_alt(configs)


def has_config_in_rule_stop_state(configs: Iterable[ATNConfig]) -> bool:
    return any(config.state.kind is StateKind.RULE_STOP for config in configs)


def all_configs_in_rule_stop_states(configs: Iterable[ATNConfig]) -> bool:
    return all(config.state.kind is StateKind.RULE_STOP for config in configs)


# endregion


# ============================================================================
# region -------- Grouping --------
# ============================================================================


class _ConflictKey:
    """Wraps a configuration so that dictionary lookups compare only its state number and context."""

    __slots__ = ("state_number", "context", "_hash")

    def __init__(self, config: ATNConfig) -> None:
        self.state_number = config.state.state_number
        self.context = config.context

        h = murmur_initialize(7)
        h = murmur_update(h, self.state_number)
        h = murmur_update(h, hash(self.context))
        self._hash = murmur_finish(h, 2)

    @override
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, _ConflictKey):
            return NotImplemented
        return self.state_number == other.state_number and self.context == other.context

    @override
    def __hash__(self) -> int:
        return self._hash


def get_conflicting_alt_subsets(configs: Iterable[ATNConfig]) -> list[AltSubset]:
    """Group alternatives by (state, context).

    Returns
    -------
    list[AltSubset]
        One subset per distinct (state, context) pair, in order of first appearance. The context is compared
        structurally.
    """

    buckets: dict[_ConflictKey, set[int]] = {}
    for config in configs:
        buckets.setdefault(_ConflictKey(config), set()).add(config.alt)
    return [frozenset(alts) for alts in buckets.values()]


def get_state_to_alt_map(configs: Iterable[ATNConfig]) -> dict[ATNState, AltSubset]:
    """Group alternatives by state alone, ignoring context."""

    m: dict[ATNState, set[int]] = {}
    for config in configs:
        m.setdefault(config.state, set()).add(config.alt)
    return {state: frozenset(alts) for state, alts in m.items()}


def has_state_associated_with_one_alt(configs: Iterable[ATNConfig]) -> bool:
    """True if some state, whatever its contexts, is reached by exactly one alternative."""

    return any(len(alts) == 1 for alts in get_state_to_alt_map(configs).values())


# endregion


# ============================================================================
# region -------- Alternative subset queries --------
# ============================================================================


def has_non_conflicting_alt_set(altsets: Iterable[AltSubset]) -> bool:
    """True if some subset holds exactly one alternative."""

    return any(len(alts) == 1 for alts in altsets)


def has_conflicting_alt_set(altsets: Iterable[AltSubset]) -> bool:
    """True if some subset holds more than one alternative."""

    return any(len(alts) > 1 for alts in altsets)


def all_subsets_conflict(altsets: Iterable[AltSubset]) -> bool:
    """True if no subset holds exactly one alternative."""

    return not has_non_conflicting_alt_set(altsets)


def all_subsets_equal(altsets: Sequence[AltSubset]) -> bool:
    """True if every subset is the same set of alternatives. An empty list is vacuously equal."""

    if not altsets:
        return True
    first = altsets[0]
    return all(alts == first for alts in altsets)


def get_alts(altsets: Iterable[AltSubset]) -> AltSubset:
    all_alts: set[int] = set()
    for alts in altsets:
        all_alts.update(alts)
    return frozenset(all_alts)


def get_unique_alt(altsets: Iterable[AltSubset]) -> int:
    """Return the only alternative in the union of all subsets, or `INVALID_ALT_NUMBER` if there isn't just one."""

    all_alts = get_alts(altsets)
    if len(all_alts) == 1:
        return next(iter(all_alts))
    return INVALID_ALT_NUMBER


def get_single_viable_alt(altsets: Iterable[AltSubset]) -> int:
    """Pick the alternative every subset agrees on when each subset resolves to its lowest alternative.

    Extended Summary
    ----------------
    Earlier-declared alternatives win a conflict, so the lowest alternative of each subset is that subset's choice.
    If all subsets choose the same one, it is the answer; if two subsets choose differently, nothing can be chosen.

    Returns
    -------
    int
        The shared lowest alternative, or `INVALID_ALT_NUMBER` if the subsets disagree or there are none.
    """

    viable: set[int] = set()
    for alts in altsets:
        viable.add(min(alts))
        if len(viable) > 1:
            return INVALID_ALT_NUMBER
    return next(iter(viable), INVALID_ALT_NUMBER)


resolves_to_just_one_viable_alt: Final = get_single_viable_alt


# endregion
