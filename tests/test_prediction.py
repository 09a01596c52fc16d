import pytest

from adaptll import (
    ATN,
    INVALID_ALT_NUMBER,
    ATNConfig,
    ATNConfigSet,
    Predicate,
    PredictionContext,
    PredictionMode,
    SemanticContext,
    StateKind,
    all_configs_in_rule_stop_states,
    all_subsets_conflict,
    all_subsets_equal,
    get_alts,
    get_conflicting_alt_subsets,
    get_single_viable_alt,
    get_state_to_alt_map,
    get_unique_alt,
    has_config_in_rule_stop_state,
    has_conflicting_alt_set,
    has_non_conflicting_alt_set,
    has_state_associated_with_one_alt,
    resolves_to_just_one_viable_alt,
    should_terminate_prediction,
)


@pytest.fixture
def atn() -> ATN:
    network = ATN(max_token_type=4)
    network.add_rule()
    for _ in range(8):
        network.add_state(StateKind.BASIC, 0)
    return network


A = PredictionContext.EMPTY.push(10)
B = PredictionContext.EMPTY.push(20)


def configs_of(atn: ATN, *triples) -> ATNConfigSet:
    configs = ATNConfigSet()
    for state_number, alt, ctx in triples:
        configs.add(ATNConfig(atn.states[state_number], alt, ctx))
    return configs


def test_one_bucket_two_alts(atn):
    configs = configs_of(atn, (5, 1, A), (5, 2, A))

    altsets = get_conflicting_alt_subsets(configs)
    assert altsets == [frozenset({1, 2})]
    assert has_conflicting_alt_set(altsets)
    assert not has_non_conflicting_alt_set(altsets)
    assert all_subsets_conflict(altsets)
    assert get_unique_alt(altsets) == INVALID_ALT_NUMBER
    assert get_single_viable_alt(altsets) == 1


def test_disjoint_buckets(atn):
    configs = configs_of(atn, (5, 1, A), (7, 2, B))

    altsets = get_conflicting_alt_subsets(configs)
    assert altsets == [frozenset({1}), frozenset({2})]
    assert get_unique_alt(altsets) == INVALID_ALT_NUMBER
    assert has_non_conflicting_alt_set(altsets)
    assert not has_conflicting_alt_set(altsets)
    assert get_single_viable_alt(altsets) == INVALID_ALT_NUMBER


def test_buckets_compare_contexts_structurally(atn):
    a_again = PredictionContext.EMPTY.push(10)
    assert a_again is not A

    configs = configs_of(atn, (5, 1, A), (5, 2, a_again), (5, 3, B))
    assert get_conflicting_alt_subsets(configs) == [frozenset({1, 2}), frozenset({3})]


def test_buckets_in_first_seen_order(atn):
    configs = configs_of(atn, (7, 3, B), (5, 1, A), (7, 4, B), (5, 2, A))
    assert get_conflicting_alt_subsets(configs) == [frozenset({3, 4}), frozenset({1, 2})]


def test_single_viable_alt_agreement():
    assert get_single_viable_alt([frozenset({1, 2}), frozenset({1, 3})]) == 1
    assert get_single_viable_alt([frozenset({1, 2}), frozenset({2, 3})]) == INVALID_ALT_NUMBER
    assert get_single_viable_alt([]) == INVALID_ALT_NUMBER
    assert resolves_to_just_one_viable_alt([frozenset({2, 3}), frozenset({2})]) == 2


@pytest.mark.parametrize(
    ("altsets", "expected"),
    [
        pytest.param([], True, id="empty"),
        pytest.param([frozenset({1, 2})], True, id="one"),
        pytest.param([frozenset({1, 2}), frozenset({1, 2})], True, id="same"),
        pytest.param([frozenset({1, 2}), frozenset({1, 3})], False, id="different"),
    ],
)
def test_all_subsets_equal(altsets, expected):
    assert all_subsets_equal(altsets) is expected


def test_get_alts_and_unique_alt():
    assert get_alts([frozenset({1}), frozenset({3, 4})]) == frozenset({1, 3, 4})
    assert get_unique_alt([frozenset({2}), frozenset({2})]) == 2
    assert get_unique_alt([]) == INVALID_ALT_NUMBER


def test_state_to_alt_map_ignores_context(atn):
    configs = configs_of(atn, (5, 1, A), (5, 2, B), (7, 1, A))

    m = get_state_to_alt_map(configs)
    assert m == {atn.states[5]: frozenset({1, 2}), atn.states[7]: frozenset({1})}
    assert has_state_associated_with_one_alt(configs)
    assert not has_state_associated_with_one_alt(configs_of(atn, (5, 1, A), (5, 2, B)))


# ---- Termination


@pytest.mark.parametrize("mode", list(PredictionMode))
def test_all_in_rule_stop_states_terminates(atn, mode):
    stop = atn.rule_to_stop_state[0]
    configs = ATNConfigSet(configs=[ATNConfig(stop, 1), ATNConfig(stop, 2, A)])

    assert all_configs_in_rule_stop_states(configs)
    assert has_config_in_rule_stop_state(configs)
    assert should_terminate_prediction(mode, configs)


def test_conflict_terminates(atn):
    configs = configs_of(atn, (5, 1, A), (5, 2, A))
    assert should_terminate_prediction(PredictionMode.LL, configs)


def test_state_with_one_alt_keeps_going(atn):
    # State 5 conflicts, but state 7 still separates alternative 1 from 2.
    configs = configs_of(atn, (5, 1, A), (5, 2, A), (7, 1, B))
    assert not should_terminate_prediction(PredictionMode.LL, configs)


def test_no_conflict_keeps_going(atn):
    configs = configs_of(atn, (5, 1, A), (7, 2, B))
    assert not should_terminate_prediction(PredictionMode.SLL, configs)


def test_sll_strips_predicates_without_touching_the_set(atn):
    pred = Predicate(0, 0)
    configs = ATNConfigSet()
    configs.add(ATNConfig(atn.states[5], 1, A, pred))
    configs.add(ATNConfig(atn.states[5], 2, A))
    configs.freeze()

    assert should_terminate_prediction(PredictionMode.SLL, configs)

    assert configs.readonly
    assert configs.has_semantic_context
    assert [c.semantic_context for c in configs] == [pred, SemanticContext.NONE]


def test_has_config_in_rule_stop_state(atn):
    stop = atn.rule_to_stop_state[0]
    configs = configs_of(atn, (5, 1, A))
    configs.add(ATNConfig(stop, 2))

    assert has_config_in_rule_stop_state(configs)
    assert not all_configs_in_rule_stop_states(configs)
