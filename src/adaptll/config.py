# region License
# -----------------------------------------------------------------------------
# adaptll: config.py
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

"""Configurations: the hypotheses a decision reasons over, and the sets the simulator hands to conflict resolution."""

from collections.abc import Iterable, Iterator
from typing import TYPE_CHECKING, Any, ClassVar, Final, Optional

from ._misc import MISSING, murmur_finish, murmur_initialize, murmur_update, override
from .atn import ATN, ATNState, StateKind

if TYPE_CHECKING:
    from .recognizer import Recognizer
    from .tree import RuleContext

__all__ = (
    "EMPTY_RETURN_STATE",
    "PredictionContext",
    "SemanticContext",
    "Predicate",
    "PrecedencePredicate",
    "AND",
    "OR",
    "ATNConfig",
    "ATNConfigSet",
    "ConfigSetFrozenError",
)


# ============================================================================
# region -------- Prediction Contexts --------
# ============================================================================

EMPTY_RETURN_STATE: Final = 0x7FFFFFFF


class PredictionContext:
    """An immutable stack of return states: the rule invocations a configuration is nested inside.

    Extended Summary
    ----------------
    Contexts compare structurally (two independently built stacks with the same return states are equal) and their
    hash is computed once, at construction. The empty stack is the shared `PredictionContext.EMPTY`.
    """

    __slots__ = ("parent", "return_state", "_depth", "_hash")

    EMPTY: ClassVar["PredictionContext"]

    def __init__(self, parent: Optional["PredictionContext"], return_state: int) -> None:
        self.parent = parent
        self.return_state = return_state
        self._depth = 0 if parent is None else parent._depth + 1

        h = murmur_initialize(1)
        h = murmur_update(h, hash(parent) if parent is not None else 0)
        h = murmur_update(h, return_state)
        self._hash = murmur_finish(h, 2)

    @property
    def is_empty(self) -> bool:
        return self.parent is None

    def push(self, return_state: int) -> "PredictionContext":
        return PredictionContext(self, return_state)

    def __len__(self) -> int:
        return self._depth

    def __iter__(self) -> Iterator[int]:
        """Yield return states, innermost first."""

        ctx = self
        while ctx.parent is not None:
            yield ctx.return_state
            ctx = ctx.parent

    @override
    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if not isinstance(other, PredictionContext):
            return NotImplemented
        if self._hash != other._hash or self._depth != other._depth:
            return False

        a: Optional[PredictionContext] = self
        b: Optional[PredictionContext] = other
        while a is not None and b is not None:
            if a is b:
                return True
            if a.return_state != b.return_state:
                return False
            a, b = a.parent, b.parent
        return a is None and b is None

    @override
    def __hash__(self) -> int:
        return self._hash

    @override
    def __repr__(self) -> str:
        if self.is_empty:
            return "[]"
        return f"[{' '.join(map(str, self))}]"

    @classmethod
    def from_rule_context(cls, atn: ATN, ctx: Optional["RuleContext"]) -> "PredictionContext":
        """Convert a rule-context chain into the equivalent stack of follow states."""

        follow_states: list[int] = []
        while ctx is not None and ctx.parent is not None:
            follow_state = atn.states[ctx.invoking_state].transitions[0].follow_state
            assert follow_state is not None
            follow_states.append(follow_state.state_number)
            ctx = ctx.parent

        result = cls.EMPTY
        for state_number in reversed(follow_states):
            result = result.push(state_number)
        return result


PredictionContext.EMPTY = PredictionContext(None, EMPTY_RETURN_STATE)


# endregion


# ============================================================================
# region -------- Semantic Contexts --------
# ============================================================================


class SemanticContext:
    """A predicate guarding a configuration. The base instance `SemanticContext.NONE` is always true."""

    __slots__ = ()

    NONE: ClassVar["SemanticContext"]

    def eval(self, parser: "Recognizer", outer_ctx: Optional["RuleContext"]) -> bool:
        return True

    @staticmethod
    def and_(a: "SemanticContext", b: "SemanticContext") -> "SemanticContext":
        if a is SemanticContext.NONE:
            return b
        if b is SemanticContext.NONE or a == b:
            return a
        return AND(a, b)

    @staticmethod
    def or_(a: "SemanticContext", b: "SemanticContext") -> "SemanticContext":
        if a is SemanticContext.NONE or b is SemanticContext.NONE:
            return SemanticContext.NONE
        if a == b:
            return a
        return OR(a, b)

    @override
    def __repr__(self) -> str:
        return "{true}?"


SemanticContext.NONE = SemanticContext()


class Predicate(SemanticContext):
    __slots__ = ("rule_index", "pred_index", "is_ctx_dependent")

    def __init__(self, rule_index: int = -1, pred_index: int = -1, is_ctx_dependent: bool = False) -> None:
        self.rule_index = rule_index
        self.pred_index = pred_index
        self.is_ctx_dependent = is_ctx_dependent

    @override
    def eval(self, parser: "Recognizer", outer_ctx: Optional["RuleContext"]) -> bool:
        localctx = outer_ctx if self.is_ctx_dependent else None
        return parser.sempred(localctx, self.rule_index, self.pred_index)

    @override
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Predicate):
            return NotImplemented
        return (self.rule_index, self.pred_index, self.is_ctx_dependent) == (
            other.rule_index,
            other.pred_index,
            other.is_ctx_dependent,
        )

    @override
    def __hash__(self) -> int:
        return hash((Predicate, self.rule_index, self.pred_index, self.is_ctx_dependent))

    @override
    def __repr__(self) -> str:
        return f"{{{self.rule_index}:{self.pred_index}}}?"


class PrecedencePredicate(SemanticContext):
    __slots__ = ("precedence",)

    def __init__(self, precedence: int = 0) -> None:
        self.precedence = precedence

    @override
    def eval(self, parser: "Recognizer", outer_ctx: Optional["RuleContext"]) -> bool:
        return parser.precpred(outer_ctx, self.precedence)

    @override
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PrecedencePredicate):
            return NotImplemented
        return self.precedence == other.precedence

    @override
    def __hash__(self) -> int:
        return hash((PrecedencePredicate, self.precedence))

    @override
    def __repr__(self) -> str:
        return f"{{{self.precedence}>=prec}}?"


class AND(SemanticContext):
    __slots__ = ("operands",)

    def __init__(self, a: SemanticContext, b: SemanticContext) -> None:
        operands: set[SemanticContext] = set()
        for operand in (a, b):
            operands.update(operand.operands if isinstance(operand, AND) else (operand,))
        self.operands = frozenset(operands)

    @override
    def eval(self, parser: "Recognizer", outer_ctx: Optional["RuleContext"]) -> bool:
        return all(operand.eval(parser, outer_ctx) for operand in self.operands)

    @override
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AND):
            return NotImplemented
        return self.operands == other.operands

    @override
    def __hash__(self) -> int:
        return hash((AND, self.operands))

    @override
    def __repr__(self) -> str:
        return "&&".join(sorted(map(repr, self.operands)))


class OR(SemanticContext):
    __slots__ = ("operands",)

    def __init__(self, a: SemanticContext, b: SemanticContext) -> None:
        operands: set[SemanticContext] = set()
        for operand in (a, b):
            operands.update(operand.operands if isinstance(operand, OR) else (operand,))
        self.operands = frozenset(operands)

    @override
    def eval(self, parser: "Recognizer", outer_ctx: Optional["RuleContext"]) -> bool:
        return any(operand.eval(parser, outer_ctx) for operand in self.operands)

    @override
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, OR):
            return NotImplemented
        return self.operands == other.operands

    @override
    def __hash__(self) -> int:
        return hash((OR, self.operands))

    @override
    def __repr__(self) -> str:
        return "||".join(sorted(map(repr, self.operands)))


# endregion


# ============================================================================
# region -------- Configurations --------
# ============================================================================


class ATNConfig:
    """One prediction hypothesis: "the parser is in `state`, having chosen `alt`, nested inside `context`".

    Attributes
    ----------
    state: ATNState
        Network state. Configurations compare states by `state_number`.
    alt: int
        Alternative of the decision this hypothesis predicts, numbered from 1.
    context: PredictionContext
        Rule invocations the hypothesis is nested inside.
    semantic_context: SemanticContext
        Predicate that must hold for the hypothesis to be viable.
    reaches_into_outer_context: int
        How many times the hypothesis fell off the end of the decision's rule into a caller that the context does not
        record. Non-zero means the hypothesis already finished the decision's rule.
    """

    __slots__ = ("state", "alt", "context", "semantic_context", "reaches_into_outer_context")

    def __init__(
        self,
        state: ATNState,
        alt: int,
        context: PredictionContext = PredictionContext.EMPTY,
        semantic_context: SemanticContext = SemanticContext.NONE,
        reaches_into_outer_context: int = 0,
    ) -> None:
        self.state = state
        self.alt = alt
        self.context = context
        self.semantic_context = semantic_context
        self.reaches_into_outer_context = reaches_into_outer_context

    def copy(
        self,
        *,
        state: ATNState = MISSING,
        context: PredictionContext = MISSING,
        semantic_context: SemanticContext = MISSING,
        reaches_into_outer_context: int = MISSING,
    ) -> "ATNConfig":
        """Derive a configuration that differs only in the given fields."""

        return ATNConfig(
            self.state if state is MISSING else state,
            self.alt,
            self.context if context is MISSING else context,
            self.semantic_context if semantic_context is MISSING else semantic_context,
            self.reaches_into_outer_context if reaches_into_outer_context is MISSING else reaches_into_outer_context,
        )

    @property
    def key(self) -> tuple[int, int, PredictionContext]:
        return (self.state.state_number, self.alt, self.context)

    @override
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ATNConfig):
            return NotImplemented
        return self.key == other.key and self.semantic_context == other.semantic_context

    @override
    def __hash__(self) -> int:
        return hash(self.key)

    @override
    def __repr__(self) -> str:
        parts = [str(self.state.state_number), str(self.alt), repr(self.context)]
        if self.semantic_context is not SemanticContext.NONE:
            parts.append(repr(self.semantic_context))
        if self.reaches_into_outer_context:
            parts.append(f"up={self.reaches_into_outer_context}")
        return f"({','.join(parts)})"


class ConfigSetFrozenError(RuntimeError):
    """Raised when adding to a configuration set that has already been handed out for reading."""


class ATNConfigSet:
    """An insertion-ordered set of configurations.

    Extended Summary
    ----------------
    Configurations with the same (state, alt, context) collapse into one entry. If the duplicates carry different
    predicates, the surviving entry is guarded by their disjunction. Once a set is frozen it can no longer be added to;
    anything that needs a variant derives a new set instead.

    Parameters
    ----------
    full_ctx: bool, default=False
        Whether the configurations were computed with full rule-invocation context.
    configs: Iterable[ATNConfig], default=()
        Initial contents.
    """

    def __init__(self, full_ctx: bool = False, configs: Iterable[ATNConfig] = ()) -> None:
        self.full_ctx = full_ctx
        self.has_semantic_context = False
        self.dips_into_outer_context = False
        self._lookup: dict[tuple[int, int, PredictionContext], ATNConfig] = {}
        self._readonly = False
        for config in configs:
            self.add(config)

    def add(self, config: ATNConfig) -> bool:
        """Add `config`. Return True if the set changed."""

        if self._readonly:
            msg = "This configuration set is read-only."
            raise ConfigSetFrozenError(msg)

        if config.semantic_context is not SemanticContext.NONE:
            self.has_semantic_context = True
        if config.reaches_into_outer_context > 0:
            self.dips_into_outer_context = True

        key = config.key
        existing = self._lookup.get(key)
        if existing is None:
            self._lookup[key] = config
            return True

        merged = SemanticContext.or_(existing.semantic_context, config.semantic_context)
        reaches = max(existing.reaches_into_outer_context, config.reaches_into_outer_context)
        if merged == existing.semantic_context and reaches == existing.reaches_into_outer_context:
            return False
        self._lookup[key] = existing.copy(semantic_context=merged, reaches_into_outer_context=reaches)
        return True

    def freeze(self) -> "ATNConfigSet":
        self._readonly = True
        return self

    @property
    def readonly(self) -> bool:
        return self._readonly

    @property
    def alts(self) -> frozenset[int]:
        return frozenset(config.alt for config in self)

    @property
    def states(self) -> list[ATNState]:
        seen: dict[int, ATNState] = {}
        for config in self:
            seen.setdefault(config.state.state_number, config.state)
        return list(seen.values())

    def without_semantic_context(self) -> "ATNConfigSet":
        """Derive a new set with every predicate dropped. Configurations that then coincide collapse."""

        result = ATNConfigSet(self.full_ctx)
        for config in self:
            result.add(config.copy(semantic_context=SemanticContext.NONE))
        return result

    def in_rule_stop_states(self) -> "ATNConfigSet":
        """Derive a new set holding only the configurations that reached the end of a rule."""

        return ATNConfigSet(self.full_ctx, (c for c in self if c.state.kind is StateKind.RULE_STOP))

    def __iter__(self) -> Iterator[ATNConfig]:
        return iter(self._lookup.values())

    def __len__(self) -> int:
        return len(self._lookup)

    def __bool__(self) -> bool:
        return bool(self._lookup)

    def __contains__(self, item: Any) -> bool:
        if not isinstance(item, ATNConfig):
            return False
        existing = self._lookup.get(item.key)
        return existing is not None and existing.semantic_context == item.semantic_context

    @override
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ATNConfigSet):
            return NotImplemented
        return self.full_ctx == other.full_ctx and list(self) == list(other)

    @override
    def __repr__(self) -> str:
        return f"ATNConfigSet([{', '.join(map(repr, self))}], full_ctx={self.full_ctx})"


# endregion
