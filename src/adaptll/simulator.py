# region License
# -----------------------------------------------------------------------------
# adaptll: simulator.py
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

"""Exploration of the network from a decision state: turning input into configuration sets.

Extended Summary
----------------
The simulator answers one question for the decision driver: which configurations are alive after the next `depth`
tokens of input, starting at a given decision. Depth 0 is the start closure. Each deeper set is computed from the
previous one by moving every configuration across the transitions that match the next token, then following epsilon
edges (rule entry and exit, predicates, actions) until every configuration sits in a state that consumes input or at
the end of a rule.
"""

from typing import TYPE_CHECKING, Optional, Protocol

from .atn import ATNState, StateKind, TransitionKind
from .config import ATNConfig, ATNConfigSet, Predicate, PredictionContext, SemanticContext
from .prediction import all_configs_in_rule_stop_states, has_config_in_rule_stop_state
from .tokens import EOF, MIN_USER_TOKEN_TYPE

if TYPE_CHECKING:
    from .parser import Parser
    from .tree import ParserRuleContext

__all__ = ("PredictionSimulator", "LookaheadSimulator")


class PredictionSimulator(Protocol):
    """What the decision driver needs from a network simulator."""

    def compute_config_set(
        self,
        decision_state: ATNState,
        outer_ctx: Optional["ParserRuleContext"],
        full_ctx: bool,
        depth: int = 1,
    ) -> ATNConfigSet:
        """Compute the configurations alive after `depth` tokens, starting at `decision_state` and the current input.

        Parameters
        ----------
        decision_state: ATNState
            The decision being predicted.
        outer_ctx: Optional[ParserRuleContext]
            The context of the rule containing the decision.
        full_ctx: bool
            Whether to track the full invocation stack from `outer_ctx` (the LL tier) or only what is learned during
            the decision itself (the SLL tier).
        depth: int, default=1
            How many tokens of look-ahead to consume. 0 yields the start closure.

        Returns
        -------
        ATNConfigSet
            A frozen set. Empty if no configuration survives.
        """

        ...


class LookaheadSimulator:
    """A straightforward simulator over the parser's network and token stream.

    Extended Summary
    ----------------
    Sets computed for one decision at one input position are kept, so asking for depth ``k + 1`` right after depth
    ``k`` only does one more step. Nothing is cached across positions.

    Predicates are only gathered while computing the start closure. Precedence predicates met in the decision's own
    rule are evaluated there and then, and configurations whose precedence test fails are dropped. Without full
    context, a configuration that reaches the end of a rule with nothing on its stack continues at the follow state of
    every invocation of that rule in the grammar, and remembers that it did so in `reaches_into_outer_context`.

    Parameters
    ----------
    parser: Parser
        Supplies the network, the token stream, and the `sempred`/`precpred` hooks.
    """

    def __init__(self, parser: "Parser") -> None:
        self.parser = parser
        self._cache_key: Optional[tuple[int, int, bool]] = None
        self._cache_ctx: Optional["ParserRuleContext"] = None
        self._cache: list[ATNConfigSet] = []

    def compute_config_set(
        self,
        decision_state: ATNState,
        outer_ctx: Optional["ParserRuleContext"],
        full_ctx: bool,
        depth: int = 1,
    ) -> ATNConfigSet:
        stream = self.parser.token_stream
        key = (decision_state.decision, stream.index, full_ctx)
        if key != self._cache_key or outer_ctx is not self._cache_ctx:
            self._cache_key = key
            self._cache_ctx = outer_ctx
            self._cache = [self._compute_start_state(decision_state, outer_ctx, full_ctx)]

        while len(self._cache) <= depth:
            previous = self._cache[-1]
            if not previous:
                return previous
            t = stream.LA(len(self._cache))
            self._cache.append(self._compute_reach_set(previous, t, full_ctx, outer_ctx))
        return self._cache[depth]

    def reset(self) -> None:
        self._cache_key = None
        self._cache_ctx = None
        self._cache = []

    # ----------------------------------------------------------------------
    # Start and reach sets
    # ----------------------------------------------------------------------

    def _compute_start_state(
        self,
        decision_state: ATNState,
        outer_ctx: Optional["ParserRuleContext"],
        full_ctx: bool,
    ) -> ATNConfigSet:
        atn = self.parser.atn
        if full_ctx:
            initial_context = PredictionContext.from_rule_context(atn, outer_ctx)
        else:
            initial_context = PredictionContext.EMPTY

        configs = ATNConfigSet(full_ctx)
        for alt, t in enumerate(decision_state.transitions, start=1):
            self._closure(ATNConfig(t.target, alt, initial_context), configs, True, full_ctx, outer_ctx)

        if decision_state.is_precedence_decision and not full_ctx:
            configs = self._apply_precedence_filter(configs)
        return configs.freeze()

    def _compute_reach_set(
        self,
        closure: ATNConfigSet,
        t: int,
        full_ctx: bool,
        outer_ctx: Optional["ParserRuleContext"],
    ) -> ATNConfigSet:
        max_token_type = self.parser.atn.max_token_type

        intermediate = ATNConfigSet(full_ctx)
        skipped_stop_states: list[ATNConfig] = []
        for config in closure:
            if config.state.kind is StateKind.RULE_STOP:
                # A configuration at the end of the start rule (full context) can only match EOF.
                if full_ctx or t == EOF:
                    skipped_stop_states.append(config)
                continue

            for transition in config.state.transitions:
                if transition.matches(t, MIN_USER_TOKEN_TYPE, max_token_type):
                    intermediate.add(config.copy(state=transition.target))

        reach = ATNConfigSet(full_ctx)
        for config in intermediate:
            self._closure(config, reach, False, full_ctx, outer_ctx)

        if t == EOF and not all_configs_in_rule_stop_states(reach):
            reach = reach.in_rule_stop_states()

        if skipped_stop_states and (not full_ctx or not has_config_in_rule_stop_state(reach)):
            for config in skipped_stop_states:
                reach.add(config)
        return reach.freeze()

    def _apply_precedence_filter(self, configs: ATNConfigSet) -> ATNConfigSet:
        """Drop configurations of the loop-exit alternatives that duplicate one of the first (loop) alternative.

        At a precedence decision, the exit alternatives only reach the loop body again by falling off the end of the
        rule. Where that lands on the same state and stack as alternative 1, the continuation belongs to the current
        invocation, not the caller.
        """

        states_from_alt1: dict[int, PredictionContext] = {}
        result = ATNConfigSet(configs.full_ctx)
        for config in configs:
            if config.alt == 1:
                states_from_alt1[config.state.state_number] = config.context
                result.add(config)

        for config in configs:
            if config.alt == 1:
                continue
            if states_from_alt1.get(config.state.state_number) == config.context:
                continue
            result.add(config)
        return result

    # ----------------------------------------------------------------------
    # Closure
    # ----------------------------------------------------------------------

    def _closure(
        self,
        config: ATNConfig,
        configs: ATNConfigSet,
        collect_predicates: bool,
        full_ctx: bool,
        outer_ctx: Optional["ParserRuleContext"],
    ) -> None:
        """Add to `configs` everything reachable from `config` without consuming input.

        `depth` tracks how far the walk is from the decision's own rule: entering a rule adds one, leaving one
        subtracts one. Context-dependent predicates can only be evaluated at depth 0, where `outer_ctx` is the right
        context for them.
        """

        atn = self.parser.atn
        busy: set[ATNConfig] = set()
        work: list[tuple[ATNConfig, int]] = [(config, 0)]

        while work:
            c, depth = work.pop()
            if c in busy:
                continue
            busy.add(c)

            state = c.state
            if state.kind is StateKind.RULE_STOP:
                if not c.context.is_empty:
                    assert c.context.parent is not None
                    return_state = atn.states[c.context.return_state]
                    work.append((c.copy(state=return_state, context=c.context.parent), depth - 1))
                    continue

                follow_states = atn.rule_follow_states(state.rule_index)
                if full_ctx or not follow_states:
                    configs.add(c)
                    continue

                configs.dips_into_outer_context = True
                for follow in follow_states:
                    fell_off = c.copy(state=follow, reaches_into_outer_context=c.reaches_into_outer_context + 1)
                    work.append((fell_off, depth - 1))
                continue

            if not state.only_epsilon:
                configs.add(c)

            for t in state.transitions:
                kind = t.kind
                if kind is TransitionKind.RULE:
                    assert t.follow_state is not None
                    pushed = c.context.push(t.follow_state.state_number)
                    work.append((c.copy(state=t.target, context=pushed), depth + 1))

                elif kind is TransitionKind.PRECEDENCE:
                    if collect_predicates and depth == 0:
                        if self.parser.precpred(outer_ctx, t.precedence):
                            work.append((c.copy(state=t.target), depth))
                    else:
                        work.append((c.copy(state=t.target), depth))

                elif kind is TransitionKind.PREDICATE:
                    if collect_predicates and (not t.is_ctx_dependent or depth == 0):
                        pred = Predicate(t.rule_index, t.pred_index, t.is_ctx_dependent)
                        semctx = SemanticContext.and_(c.semantic_context, pred)
                        work.append((c.copy(state=t.target, semantic_context=semctx), depth))
                    else:
                        work.append((c.copy(state=t.target), depth))

                elif t.is_epsilon:
                    work.append((c.copy(state=t.target), depth))
