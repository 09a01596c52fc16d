# region License
# -----------------------------------------------------------------------------
# adaptll: atn.py
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

"""The augmented transition network (ATN) a generated parser walks, and LL(1) look-ahead over it."""

import enum
from collections.abc import Iterable
from typing import TYPE_CHECKING, Final, Optional

from ._misc import override
from .tokens import EOF, EPSILON, MIN_USER_TOKEN_TYPE

if TYPE_CHECKING:
    from .tree import RuleContext

__all__ = ("INVALID_ALT_NUMBER", "ATN", "ATNState", "StateKind", "Transition", "TransitionKind")


INVALID_ALT_NUMBER: Final = 0
"""Sentinel for "no alternative"; real alternatives are numbered from 1 in declaration order."""


# ============================================================================
# region -------- States and Transitions --------
# ============================================================================


class StateKind(enum.Enum):
    BASIC = enum.auto()
    RULE_START = enum.auto()
    BLOCK_START = enum.auto()
    PLUS_BLOCK_START = enum.auto()
    STAR_BLOCK_START = enum.auto()
    TOKEN_START = enum.auto()
    RULE_STOP = enum.auto()
    BLOCK_END = enum.auto()
    STAR_LOOP_BACK = enum.auto()
    STAR_LOOP_ENTRY = enum.auto()
    PLUS_LOOP_BACK = enum.auto()
    LOOP_END = enum.auto()


class TransitionKind(enum.Enum):
    EPSILON = enum.auto()
    RULE = enum.auto()
    PREDICATE = enum.auto()
    PRECEDENCE = enum.auto()
    ACTION = enum.auto()
    ATOM = enum.auto()
    SET = enum.auto()
    NOT_SET = enum.auto()
    WILDCARD = enum.auto()


_EPSILON_KINDS: Final = frozenset(
    (
        TransitionKind.EPSILON,
        TransitionKind.RULE,
        TransitionKind.PREDICATE,
        TransitionKind.PRECEDENCE,
        TransitionKind.ACTION,
    )
)


class Transition:
    """An edge of the network.

    Only the attributes relevant to the transition's kind are meaningful: `label` for ATOM/SET/NOT_SET, `follow_state`
    and `rule_index` for RULE, `rule_index`/`pred_index`/`is_ctx_dependent` for PREDICATE, and `precedence` for RULE
    and PRECEDENCE.
    """

    __slots__ = (
        "kind",
        "target",
        "label",
        "follow_state",
        "rule_index",
        "pred_index",
        "precedence",
        "is_ctx_dependent",
    )

    def __init__(
        self,
        kind: TransitionKind,
        target: "ATNState",
        *,
        label: Iterable[int] = (),
        follow_state: Optional["ATNState"] = None,
        rule_index: int = -1,
        pred_index: int = -1,
        precedence: int = 0,
        is_ctx_dependent: bool = False,
    ) -> None:
        self.kind = kind
        self.target = target
        self.label: frozenset[int] = frozenset(label)
        self.follow_state = follow_state
        self.rule_index = rule_index
        self.pred_index = pred_index
        self.precedence = precedence
        self.is_ctx_dependent = is_ctx_dependent

    @classmethod
    def epsilon(cls, target: "ATNState") -> "Transition":
        return cls(TransitionKind.EPSILON, target)

    @classmethod
    def atom(cls, target: "ATNState", token_type: int) -> "Transition":
        return cls(TransitionKind.ATOM, target, label=(token_type,))

    @classmethod
    def token_set(cls, target: "ATNState", token_types: Iterable[int]) -> "Transition":
        return cls(TransitionKind.SET, target, label=token_types)

    @classmethod
    def not_set(cls, target: "ATNState", token_types: Iterable[int]) -> "Transition":
        return cls(TransitionKind.NOT_SET, target, label=token_types)

    @classmethod
    def wildcard(cls, target: "ATNState") -> "Transition":
        return cls(TransitionKind.WILDCARD, target)

    @classmethod
    def rule(cls, rule_start: "ATNState", follow_state: "ATNState", precedence: int = 0) -> "Transition":
        return cls(
            TransitionKind.RULE,
            rule_start,
            follow_state=follow_state,
            rule_index=rule_start.rule_index,
            precedence=precedence,
        )

    @classmethod
    def predicate(
        cls, target: "ATNState", rule_index: int, pred_index: int, *, is_ctx_dependent: bool = False
    ) -> "Transition":
        return cls(
            TransitionKind.PREDICATE,
            target,
            rule_index=rule_index,
            pred_index=pred_index,
            is_ctx_dependent=is_ctx_dependent,
        )

    @classmethod
    def precedence_predicate(cls, target: "ATNState", precedence: int) -> "Transition":
        return cls(TransitionKind.PRECEDENCE, target, precedence=precedence)

    @classmethod
    def action(cls, target: "ATNState") -> "Transition":
        return cls(TransitionKind.ACTION, target)

    @property
    def is_epsilon(self) -> bool:
        return self.kind in _EPSILON_KINDS

    def matches(self, symbol: int, min_vocab: int, max_vocab: int) -> bool:
        kind = self.kind
        if kind is TransitionKind.ATOM or kind is TransitionKind.SET:
            return symbol in self.label
        if kind is TransitionKind.NOT_SET:
            return min_vocab <= symbol <= max_vocab and symbol not in self.label
        if kind is TransitionKind.WILDCARD:
            return min_vocab <= symbol <= max_vocab
        return False

    @override
    def __repr__(self) -> str:
        return f"<{self.kind.name} -> {self.target.state_number}>"


class ATNState:
    """A node of the network. Its identity is its `state_number`, an index into `ATN.states`."""

    __slots__ = (
        "state_number",
        "kind",
        "rule_index",
        "transitions",
        "decision",
        "is_precedence_decision",
        "_next_tokens",
    )

    def __init__(self, state_number: int, kind: StateKind, rule_index: int = -1) -> None:
        self.state_number = state_number
        self.kind = kind
        self.rule_index = rule_index
        self.transitions: list[Transition] = []
        self.decision = -1
        self.is_precedence_decision = False
        self._next_tokens: Optional[frozenset[int]] = None

    def add_transition(self, transition: Transition) -> Transition:
        self.transitions.append(transition)
        return transition

    @property
    def only_epsilon(self) -> bool:
        return bool(self.transitions) and all(t.is_epsilon for t in self.transitions)

    @override
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ATNState):
            return NotImplemented
        return self.state_number == other.state_number

    @override
    def __hash__(self) -> int:
        return self.state_number

    @override
    def __repr__(self) -> str:
        return f"<ATNState {self.state_number} {self.kind.name}>"


# endregion


# ============================================================================
# region -------- Network --------
# ============================================================================


class ATN:
    """The network for a whole grammar.

    Extended Summary
    ----------------
    States live in `states` and are referred to by index everywhere else (`RuleContext.invoking_state`,
    `PredictionContext.return_state`, `Parser.state`). The network is built once and then only read.

    Parameters
    ----------
    max_token_type: int
        The largest token type of the grammar's vocabulary. Wildcard and not-set transitions match within
        `MIN_USER_TOKEN_TYPE..max_token_type`.
    """

    def __init__(self, max_token_type: int) -> None:
        self.max_token_type = max_token_type
        self.states: list[ATNState] = []
        self.decision_to_state: list[ATNState] = []
        self.rule_to_start_state: list[ATNState] = []
        self.rule_to_stop_state: list[ATNState] = []
        self._rule_follow_states: Optional[dict[int, list[ATNState]]] = None

    def add_state(self, kind: StateKind = StateKind.BASIC, rule_index: int = -1) -> ATNState:
        state = ATNState(len(self.states), kind, rule_index)
        self.states.append(state)
        self._rule_follow_states = None
        return state

    def add_rule(self) -> tuple[ATNState, ATNState]:
        """Create the start and stop states of the next rule. Rules are numbered in the order they are added."""

        rule_index = len(self.rule_to_start_state)
        start = self.add_state(StateKind.RULE_START, rule_index)
        stop = self.add_state(StateKind.RULE_STOP, rule_index)
        self.rule_to_start_state.append(start)
        self.rule_to_stop_state.append(stop)
        return start, stop

    def define_decision_state(self, state: ATNState, *, precedence: bool = False) -> int:
        self.decision_to_state.append(state)
        state.decision = len(self.decision_to_state) - 1
        state.is_precedence_decision = precedence
        return state.decision

    @property
    def number_of_decisions(self) -> int:
        return len(self.decision_to_state)

    def rule_follow_states(self, rule_index: int) -> list[ATNState]:
        """The states control returns to after any invocation of rule `rule_index`, in network order."""

        if self._rule_follow_states is None:
            follow: dict[int, list[ATNState]] = {}
            for state in self.states:
                for t in state.transitions:
                    if t.kind is TransitionKind.RULE and t.follow_state is not None:
                        follow.setdefault(t.rule_index, []).append(t.follow_state)
            self._rule_follow_states = follow
        return self._rule_follow_states.get(rule_index, [])

    # ----------------------------------------------------------------------
    # LL(1) look-ahead
    # ----------------------------------------------------------------------

    def next_tokens(self, state: ATNState, ctx: Optional["RuleContext"] = None) -> frozenset[int]:
        """Compute the set of tokens that can follow `state`.

        Extended Summary
        ----------------
        Without a context, the analysis stays within the rule containing `state` and reports `EPSILON` if the end of
        that rule is reachable without consuming a token. The context-free answer is cached on the state. With a
        context, falling off the end of a rule returns to the invoking rule recorded in the context chain, and
        reaching the end of the outermost rule yields `EOF`.
        """

        if ctx is not None:
            return self._look(state, self._follow_stack(ctx), eof_at_end=True)

        if state._next_tokens is None:
            state._next_tokens = self._look(state, (), eof_at_end=False)
        return state._next_tokens

    def get_expected_tokens(self, state_number: int, ctx: Optional["RuleContext"]) -> frozenset[int]:
        """Compute the tokens that can follow `state_number` given the rule invocation chain `ctx`."""

        if not 0 <= state_number < len(self.states):
            msg = f"Invalid state number {state_number}."
            raise ValueError(msg)

        following = self.next_tokens(self.states[state_number])
        if EPSILON not in following:
            return following

        expected = set(following)
        expected.discard(EPSILON)
        while ctx is not None and ctx.invoking_state >= 0 and EPSILON in following:
            invoking_state = self.states[ctx.invoking_state]
            follow_state = invoking_state.transitions[0].follow_state
            assert follow_state is not None
            following = self.next_tokens(follow_state)
            expected.update(following)
            expected.discard(EPSILON)
            ctx = ctx.parent

        if EPSILON in following:
            expected.add(EOF)
        return frozenset(expected)

    def _follow_stack(self, ctx: "RuleContext") -> tuple[int, ...]:
        """Follow states of the invocation chain of `ctx`, outermost first."""

        stack: list[int] = []
        while ctx is not None and ctx.invoking_state >= 0:
            follow_state = self.states[ctx.invoking_state].transitions[0].follow_state
            assert follow_state is not None
            stack.append(follow_state.state_number)
            ctx = ctx.parent
        stack.reverse()
        return tuple(stack)

    def _look(self, start: ATNState, stack: tuple[int, ...], *, eof_at_end: bool) -> frozenset[int]:
        look: set[int] = set()
        seen: set[tuple[int, tuple[int, ...]]] = set()
        # Each item: (state, return-state stack, rules entered during this analysis).
        work: list[tuple[ATNState, tuple[int, ...], frozenset[int]]] = [(start, stack, frozenset())]
        all_tokens = range(MIN_USER_TOKEN_TYPE, self.max_token_type + 1)

        while work:
            state, stack, called = work.pop()
            key = (state.state_number, stack)
            if key in seen:
                continue
            seen.add(key)

            if state.kind is StateKind.RULE_STOP:
                if stack:
                    work.append((self.states[stack[-1]], stack[:-1], called - {state.rule_index}))
                else:
                    look.add(EOF if eof_at_end else EPSILON)
                continue

            for t in state.transitions:
                kind = t.kind
                if kind is TransitionKind.RULE:
                    if t.rule_index in called:
                        continue
                    assert t.follow_state is not None
                    work.append((t.target, (*stack, t.follow_state.state_number), called | {t.rule_index}))
                elif t.is_epsilon:
                    work.append((t.target, stack, called))
                elif kind is TransitionKind.WILDCARD:
                    look.update(all_tokens)
                elif kind is TransitionKind.NOT_SET:
                    look.update(tok for tok in all_tokens if tok not in t.label)
                else:
                    look.update(t.label)

        return frozenset(look)


# endregion
