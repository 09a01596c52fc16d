import io

import pytest

from adaptll import (
    ATNConfig,
    ATNConfigSet,
    NoViableAltError,
    ParserLogger,
    Predicate,
    PredictionContext,
    PredictionMode,
)
from grammars import CALC_ATN, PRED_ATN, CalcParser, P, PredParser, RecordingErrorListener, S, stream

A = PredictionContext.EMPTY.push(S["stat_semi2"])
B = PredictionContext.EMPTY.push(S["after_stat"])
X = CALC_ATN.states[S["stat_assign"]]
Y = CALC_ATN.states[S["expr_int"]]
STAT_STOP = CALC_ATN.rule_to_stop_state[1]


class CannedSimulator:
    """Hands out prepared configuration sets, keyed by (full_ctx, depth)."""

    def __init__(self, sets):
        self.sets = sets
        self.requests = []

    def compute_config_set(self, decision_state, outer_ctx, full_ctx, depth=1):
        self.requests.append((full_ctx, depth))
        configs = ATNConfigSet(full_ctx)
        for config in self.sets.get((full_ctx, depth), ()):
            configs.add(config)
        return configs.freeze()


def make_parser(sets, mode=PredictionMode.LL, cls=CalcParser, text="a b c ;"):
    simulator = CannedSimulator(sets)
    parser = cls(stream(text), simulator=simulator)
    parser.prediction_mode = mode
    listener = RecordingErrorListener()
    parser.remove_error_listeners()
    parser.add_error_listener(listener)
    return parser, simulator, listener


def test_unique_alt_without_full_context():
    parser, simulator, listener = make_parser({(False, 1): [ATNConfig(X, 2, A)]})

    assert parser.adaptive_predict(1) == 2
    assert simulator.requests == [(False, 0), (False, 1)]
    assert listener.events == []
    assert parser.token_stream.index == 0


def test_sll_mode_takes_lowest_conflicting_alt():
    sets = {(False, 1): [ATNConfig(X, 3, A), ATNConfig(X, 2, A)]}
    parser, simulator, listener = make_parser(sets, PredictionMode.SLL)

    assert parser.adaptive_predict(1) == 2
    assert all(not full_ctx for full_ctx, _ in simulator.requests)
    assert listener.events == []


def test_sll_keeps_looking_while_a_state_has_one_alt():
    sets = {
        (False, 1): [ATNConfig(X, 1, A), ATNConfig(X, 2, A), ATNConfig(Y, 1, B)],
        (False, 2): [ATNConfig(Y, 1, B)],
    }
    parser, simulator, _ = make_parser(sets)

    assert parser.adaptive_predict(1) == 1
    assert simulator.requests[-1] == (False, 2)


def test_conflict_falls_back_to_full_context():
    sets = {
        (False, 1): [ATNConfig(X, 2, A), ATNConfig(X, 3, A)],
        (True, 1): [ATNConfig(X, 3, A)],
    }
    parser, _, listener = make_parser(sets)

    assert parser.adaptive_predict(1) == 3
    assert listener.events == [
        ("full_context", 1, frozenset({2, 3})),
        ("context_sensitivity", 1, 3),
    ]


AMBIGUOUS = {
    (False, 1): [ATNConfig(X, 2, A), ATNConfig(X, 3, A)],
    (True, 1): [ATNConfig(X, 2, A), ATNConfig(X, 3, A), ATNConfig(Y, 2, B)],
    (True, 2): [ATNConfig(X, 2, A), ATNConfig(X, 3, A), ATNConfig(Y, 2, B), ATNConfig(Y, 3, B)],
}


def test_full_context_ambiguity():
    parser, simulator, listener = make_parser(AMBIGUOUS)

    assert parser.adaptive_predict(1) == 2
    assert listener.events[-1] == ("ambiguity", 1, False, frozenset({2, 3}))
    assert (True, 2) not in simulator.requests


def test_exact_ambiguity_detection_looks_further():
    parser, simulator, listener = make_parser(AMBIGUOUS, PredictionMode.LL_EXACT_AMBIG_DETECTION)

    assert parser.adaptive_predict(1) == 2
    assert listener.events[-1] == ("ambiguity", 1, True, frozenset({2, 3}))
    assert simulator.requests[-1] == (True, 2)


def test_full_context_settles_at_eof():
    sets = {
        (False, 1): [ATNConfig(X, 2, A), ATNConfig(X, 3, A)],
        (True, 1): [ATNConfig(X, 2, A), ATNConfig(X, 3, A), ATNConfig(Y, 3, B)],
    }
    parser, _, listener = make_parser(sets, PredictionMode.LL_EXACT_AMBIG_DETECTION, text="")

    # Subsets {2, 3} and {3} disagree, so the lowest alternative overall is taken.
    assert parser.adaptive_predict(1) == 2
    assert listener.events[-1] == ("ambiguity", 1, False, frozenset({2, 3}))


def test_dead_end_raises():
    live = [ATNConfig(X, 1, A), ATNConfig(Y, 2, B)]
    parser, _, _ = make_parser({(False, 1): live})

    with pytest.raises(NoViableAltError) as excinfo:
        parser.adaptive_predict(1)

    e = excinfo.value
    assert e.start_token.value == "a"
    assert e.offending_token.value == "b"
    assert list(e.dead_end_configs) == live
    assert parser.token_stream.index == 0


def test_dead_end_after_finishing_the_rule():
    sets = {(False, 1): [ATNConfig(X, 1, A), ATNConfig(Y, 2, B, reaches_into_outer_context=1)]}
    parser, _, _ = make_parser(sets)
    assert parser.adaptive_predict(1) == 2

    sets = {(False, 1): [ATNConfig(X, 1, A), ATNConfig(STAT_STOP, 3)]}
    parser, _, _ = make_parser(sets)
    assert parser.adaptive_predict(1) == 3


def test_debug_output():
    parser, _, _ = make_parser({(False, 1): [ATNConfig(X, 2, A)]})
    out = io.StringIO()
    parser.log = ParserLogger(out)
    parser.debug_prediction = True

    parser.adaptive_predict(1)

    lines = out.getvalue().splitlines()
    assert lines[0] == "adaptive_predict decision 1 (stat) LT(1)='a' line 1:0"
    assert lines[1] == "SLL decision 1 unique alt 2 at depth 1"


# ---- Predicates


GUARDED = PRED_ATN.states[P["guarded_id"]]
PLAIN = PRED_ATN.states[P["plain_id"]]
PRED = Predicate(0, 0)


@pytest.mark.parametrize(
    ("allow", "expected"),
    [pytest.param(True, 1, id="pass"), pytest.param(False, 2, id="fail")],
)
def test_sll_conflict_settled_by_predicates(allow, expected):
    sets = {(False, 1): [ATNConfig(GUARDED, 1, semantic_context=PRED), ATNConfig(GUARDED, 2)]}
    parser, _, listener = make_parser(sets, PredictionMode.SLL, cls=PredParser, text="x")
    parser.allow = allow

    assert parser.adaptive_predict(0) == expected
    assert listener.events == []


def test_ll_conflict_with_one_passing_predicate_skips_full_context():
    sets = {(False, 1): [ATNConfig(GUARDED, 1, semantic_context=PRED), ATNConfig(GUARDED, 2)]}
    parser, simulator, listener = make_parser(sets, cls=PredParser, text="x")
    parser.allow = False

    assert parser.adaptive_predict(0) == 2
    assert listener.events == []
    assert all(not full_ctx for full_ctx, _ in simulator.requests)


def test_unique_alt_with_failing_predicate():
    sets = {(False, 1): [ATNConfig(GUARDED, 1, semantic_context=PRED), ATNConfig(PLAIN, 1, semantic_context=PRED)]}
    parser, _, _ = make_parser(sets, cls=PredParser, text="x")
    parser.allow = False

    with pytest.raises(NoViableAltError):
        parser.adaptive_predict(0)
    assert parser.sempred_calls == 1


def test_full_context_drops_failing_predicates():
    stop = PRED_ATN.rule_to_stop_state[0]
    sets = {
        (False, 1): [ATNConfig(GUARDED, 1), ATNConfig(GUARDED, 2)],
        (True, 1): [ATNConfig(GUARDED, 1, semantic_context=PRED), ATNConfig(PLAIN, 2)],
        (True, 2): [ATNConfig(stop, 1, semantic_context=PRED), ATNConfig(stop, 2)],
    }

    parser, _, listener = make_parser(sets, cls=PredParser, text="x")
    parser.allow = False
    assert parser.adaptive_predict(0) == 2
    assert listener.events == [("full_context", 0, frozenset({1, 2})), ("context_sensitivity", 0, 2)]

    parser, _, listener = make_parser(sets, cls=PredParser, text="x")
    parser.allow = True
    assert parser.adaptive_predict(0) == 1
    assert listener.events[-1] == ("ambiguity", 0, False, frozenset({1, 2}))
