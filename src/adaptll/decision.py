# region License
# -----------------------------------------------------------------------------
# adaptll: decision.py
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

"""Adaptive prediction: choosing an alternative at a decision, first without and then with full context."""

from typing import TYPE_CHECKING, Optional

from .atn import INVALID_ALT_NUMBER, ATNState, StateKind
from .config import ATNConfigSet, SemanticContext
from .errors import NoViableAltError
from .prediction import (
    PredictionMode,
    all_subsets_conflict,
    all_subsets_equal,
    get_conflicting_alt_subsets,
    get_single_viable_alt,
    get_unique_alt,
    resolves_to_just_one_viable_alt,
    should_terminate_prediction,
)
from .tokens import EOF, Token, TokenStream

if TYPE_CHECKING:
    from .parser import Parser
    from .simulator import PredictionSimulator
    from .tree import ParserRuleContext

__all__ = ("AdaptivePredictor",)


class AdaptivePredictor:
    """Drives a simulator through a decision and turns the configuration sets it produces into an alternative.

    Extended Summary
    ----------------
    Prediction runs in up to two tiers.

    The SLL tier looks at one more token at a time, ignoring how the current rule was reached, until a single
    alternative remains or the set is in a terminating conflict. In `PredictionMode.SLL` a conflict is settled right
    there in favor of the lowest alternative.

    Otherwise the conflict is reported as "attempting full context" and the LL tier starts over from the decision,
    this time tracking the real invocation stack. It stops on a single alternative (reported as a context
    sensitivity) or on an ambiguity (reported as such). With `PredictionMode.LL_EXACT_AMBIG_DETECTION` only an exact
    ambiguity, where every subset conflicts and all subsets are the same, ends the LL tier early.

    The input position is never moved; look-ahead goes through `LT`/`LA`.

    Parameters
    ----------
    parser: Parser
        The parser whose decisions are predicted. Its listeners receive the diagnostics.
    simulator: PredictionSimulator
        Source of configuration sets.
    prediction_mode: Optional[PredictionMode], default=None
        Fixed mode for this predictor. By default the parser's `prediction_mode` is read on every decision.
    """

    def __init__(
        self,
        parser: "Parser",
        simulator: "PredictionSimulator",
        prediction_mode: Optional[PredictionMode] = None,
    ) -> None:
        self.parser = parser
        self.simulator = simulator
        self._prediction_mode = prediction_mode

    @property
    def prediction_mode(self) -> PredictionMode:
        if self._prediction_mode is not None:
            return self._prediction_mode
        return self.parser.prediction_mode

    @prediction_mode.setter
    def prediction_mode(self, value: Optional[PredictionMode]) -> None:
        self._prediction_mode = value

    def adaptive_predict(
        self,
        input: TokenStream,  # noqa: A002
        decision: int,
        outer_ctx: Optional["ParserRuleContext"],
    ) -> int:
        """Predict which alternative of `decision` the upcoming input selects.

        Returns
        -------
        int
            An alternative number, starting at 1.

        Raises
        ------
        NoViableAltError
            If no alternative can match the input, or every alternative's predicate fails.
        """

        decision_state = self.parser.atn.decision_to_state[decision]
        start_token = input.LT(1)
        assert start_token is not None
        mode = self.prediction_mode

        if self.parser.debug_prediction:
            self.parser.log.debug(
                "adaptive_predict decision %d (%s) LT(1)=%s line %d:%d",
                decision,
                self._rule_name(decision_state),
                self.parser.get_token_error_display(start_token),
                start_token.lineno,
                start_token.column,
            )

        previous = self.simulator.compute_config_set(decision_state, outer_ctx, False, 0)
        depth = 0
        while True:
            depth += 1
            t = input.LA(depth)
            reach = self.simulator.compute_config_set(decision_state, outer_ctx, False, depth)
            if not reach:
                return self._dead_end(input, start_token, depth, previous, outer_ctx)

            altsets = get_conflicting_alt_subsets(reach)
            alt = get_unique_alt(altsets)
            if alt != INVALID_ALT_NUMBER:
                self._debug("SLL decision %d unique alt %d at depth %d", decision, alt, depth)
                if reach.has_semantic_context:
                    return self._choose_by_predicates(input, start_token, depth, reach, outer_ctx)
                return alt

            if should_terminate_prediction(mode, reach) or t == EOF:
                break
            previous = reach

        conflicting = reach.alts
        self._debug("SLL decision %d conflict %s at depth %d", decision, sorted(conflicting), depth)

        if mode is PredictionMode.SLL:
            if reach.has_semantic_context:
                return self._choose_by_predicates(input, start_token, depth, reach, outer_ctx)
            return min(conflicting)

        if reach.has_semantic_context:
            passing = self._evaluate_predicates(reach, outer_ctx)
            if len(passing) == 1:
                return next(iter(passing))

        stop_index = self._token_index(input, depth)
        self.parser.error_listener_dispatch.report_attempting_full_context(
            self.parser, decision, start_token.index, stop_index, conflicting, reach
        )
        return self._predict_full_context(input, decision, decision_state, start_token, outer_ctx, mode)

    def _predict_full_context(
        self,
        input: TokenStream,  # noqa: A002
        decision: int,
        decision_state: ATNState,
        start_token: Token,
        outer_ctx: Optional["ParserRuleContext"],
        mode: PredictionMode,
    ) -> int:
        predicate_results: dict[SemanticContext, bool] = {}

        previous = self._drop_failing_predicates(
            self.simulator.compute_config_set(decision_state, outer_ctx, True, 0), outer_ctx, predicate_results
        )
        depth = 0
        while True:
            depth += 1
            t = input.LA(depth)
            reach = self.simulator.compute_config_set(decision_state, outer_ctx, True, depth)
            reach = self._drop_failing_predicates(reach, outer_ctx, predicate_results)
            if not reach:
                return self._dead_end(input, start_token, depth, previous, outer_ctx)

            altsets = get_conflicting_alt_subsets(reach)
            stop_index = self._token_index(input, depth)

            alt = get_unique_alt(altsets)
            if alt != INVALID_ALT_NUMBER:
                self._debug("LL decision %d unique alt %d at depth %d", decision, alt, depth)
                self.parser.error_listener_dispatch.report_context_sensitivity(
                    self.parser, decision, start_token.index, stop_index, alt, reach
                )
                return alt

            exact = False
            if mode is not PredictionMode.LL_EXACT_AMBIG_DETECTION:
                alt = resolves_to_just_one_viable_alt(altsets)
            elif all_subsets_conflict(altsets) and all_subsets_equal(altsets):
                exact = True
                alt = get_single_viable_alt(altsets)

            if alt == INVALID_ALT_NUMBER and t == EOF:
                alt = get_single_viable_alt(altsets)
                if alt == INVALID_ALT_NUMBER:
                    alt = min(reach.alts)

            if alt != INVALID_ALT_NUMBER:
                self._debug("LL decision %d ambiguous %s, chose %d", decision, sorted(reach.alts), alt)
                self.parser.error_listener_dispatch.report_ambiguity(
                    self.parser, decision, start_token.index, stop_index, exact, reach.alts, reach
                )
                return alt

            previous = reach

    # ----------------------------------------------------------------------
    # Predicates and dead ends
    # ----------------------------------------------------------------------

    def _evaluate_predicates(self, configs: ATNConfigSet, outer_ctx: Optional["ParserRuleContext"]) -> frozenset[int]:
        """Evaluate, per alternative, the disjunction of its configurations' predicates. Return the alternatives that
        pass."""

        alt_to_pred: dict[int, SemanticContext] = {}
        for config in configs:
            if config.alt in alt_to_pred:
                alt_to_pred[config.alt] = SemanticContext.or_(alt_to_pred[config.alt], config.semantic_context)
            else:
                alt_to_pred[config.alt] = config.semantic_context
        return frozenset(alt for alt, pred in alt_to_pred.items() if pred.eval(self.parser, outer_ctx))

    def _choose_by_predicates(
        self,
        input: TokenStream,  # noqa: A002
        start_token: Token,
        depth: int,
        configs: ATNConfigSet,
        outer_ctx: Optional["ParserRuleContext"],
    ) -> int:
        passing = self._evaluate_predicates(configs, outer_ctx)
        if not passing:
            raise NoViableAltError(self.parser, input, start_token, input.LT(depth), configs, outer_ctx)
        return min(passing)

    def _drop_failing_predicates(
        self,
        configs: ATNConfigSet,
        outer_ctx: Optional["ParserRuleContext"],
        results: dict[SemanticContext, bool],
    ) -> ATNConfigSet:
        if not configs.has_semantic_context:
            return configs

        kept = ATNConfigSet(configs.full_ctx)
        for config in configs:
            semctx = config.semantic_context
            if semctx not in results:
                results[semctx] = semctx.eval(self.parser, outer_ctx)
            if results[semctx]:
                kept.add(config)
        return kept.freeze()

    def _dead_end(
        self,
        input: TokenStream,  # noqa: A002
        start_token: Token,
        depth: int,
        previous: ATNConfigSet,
        outer_ctx: Optional["ParserRuleContext"],
    ) -> int:
        """Handle input no configuration can match.

        If some configuration of the last live set had already finished the decision's rule, the decision is over
        and its alternative wins; the mismatch is for the caller to find. Otherwise raise.
        """

        alt = self._alt_that_finished_decision_entry_rule(previous, outer_ctx)
        if alt != INVALID_ALT_NUMBER:
            self._debug("dead end at depth %d, alt %d finished the rule", depth, alt)
            return alt

        raise NoViableAltError(self.parser, input, start_token, input.LT(depth), previous, outer_ctx)

    def _alt_that_finished_decision_entry_rule(
        self,
        configs: ATNConfigSet,
        outer_ctx: Optional["ParserRuleContext"],
    ) -> int:
        finished = [
            config
            for config in configs
            if config.reaches_into_outer_context > 0
            or (config.state.kind is StateKind.RULE_STOP and config.context.is_empty)
        ]
        valid = [config.alt for config in finished if config.semantic_context.eval(self.parser, outer_ctx)]
        if valid:
            return min(valid)
        return min((config.alt for config in finished), default=INVALID_ALT_NUMBER)

    # ----------------------------------------------------------------------
    # Helpers
    # ----------------------------------------------------------------------

    @staticmethod
    def _token_index(input: TokenStream, depth: int) -> int:  # noqa: A002
        tok = input.LT(depth)
        return tok.index if tok is not None else -1

    def _rule_name(self, state: ATNState) -> str:
        names = self.parser.rule_names
        return names[state.rule_index] if 0 <= state.rule_index < len(names) else str(state.rule_index)

    def _debug(self, msg: str, *args: object) -> None:
        if self.parser.debug_prediction:
            self.parser.log.debug(msg, *args)
