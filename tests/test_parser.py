import io
import threading

import pytest

from adaptll import (
    ATN,
    EOF,
    EPSILON,
    BailErrorStrategy,
    BypassAltsRegistry,
    ConsoleErrorListener,
    DefaultErrorStrategy,
    DiagnosticErrorListener,
    ErrorNode,
    FailedPredicateError,
    NoViableAltError,
    ParseCancellationError,
    ParserLogger,
    ParserRuleContext,
    TerminalNode,
    Token,
    TrimToSizeListener,
)
from grammars import (
    ASSIGN,
    CALC_ATN,
    ID,
    INT,
    PLUS,
    SEMI,
    TIMES,
    CalcParser,
    PredParser,
    ProgContext,
    RecordingErrorListener,
    RecordingParseListener,
    RULE_prog,
    S,
    StatContext,
    calc,
    inside_expr,
    pred,
    stream,
)

RULE_NAMES = CalcParser.rule_names


def tree(ctx):
    return ctx.to_string_tree(RULE_NAMES)


# ---- Successful parses


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        pytest.param("1 ;", "(prog (stat (expr 1) ;) <EOF>)", id="atom"),
        pytest.param(
            "1 * 2 * 3 ;",
            "(prog (stat (expr (expr (expr 1) * (expr 2)) * (expr 3)) ;) <EOF>)",
            id="left-assoc",
        ),
        pytest.param(
            "1 + 2 * 3 ;",
            "(prog (stat (expr (expr 1) + (expr (expr 2) * (expr 3))) ;) <EOF>)",
            id="times-binds-tighter",
        ),
        pytest.param(
            "1 * 2 + 3 ;",
            "(prog (stat (expr (expr (expr 1) * (expr 2)) + (expr 3)) ;) <EOF>)",
            id="times-first",
        ),
        pytest.param(
            "a = (1 + 2) * 3 ;",
            "(prog (stat a = (expr (expr ( (expr (expr 1) + (expr 2)) )) * (expr 3)) ;) <EOF>)",
            id="parens",
        ),
        pytest.param("a = 1 ; b ;", "(prog (stat a = (expr 1) ;) (stat (expr b) ;) <EOF>)", id="two-statements"),
    ],
)
def test_parse_trees(text, expected):
    parser, listener = calc(text)
    ctx = parser.prog()

    assert tree(ctx) == expected
    assert parser.number_of_syntax_errors == 0
    assert listener.events == []
    assert parser.precedence_stack == (0,)
    assert parser._ctx is None


def test_start_and_stop_tokens():
    parser, _ = calc("x = 1 + 2 ;")
    prog = parser.prog()
    stat = prog.get_child(0)
    expr = stat.get_child(2)

    assert (prog.start.value, prog.stop.type) == ("x", EOF)
    assert (stat.start.value, stat.stop.value) == ("x", ";")
    assert (expr.start.value, expr.stop.value) == ("1", "2")
    assert expr.get_text() == "1+2"
    assert expr.source_interval == (2, 4)


def test_parent_links_are_consistent():
    parser, _ = calc("a = 1 * (2 + 3) + 4 ; 5 ;")
    prog = parser.prog()

    def check(ctx):
        for child in ctx.get_children():
            assert child.parent is ctx
            if isinstance(child, ParserRuleContext):
                assert child.depth() == ctx.depth() + 1
                check(child)

    check(prog)
    assert prog.depth() == 1
    assert prog.parent is None


def test_context_accessors():
    parser, _ = calc("a = 1 + 2 ;")
    stat = parser.prog().get_child(0)

    assert [t.symbol.value for t in stat.get_tokens(ID)] == ["a"]
    assert stat.get_token(SEMI, 0).symbol.value == ";"
    assert stat.get_token(INT, 0) is None
    (expr,) = stat.get_rule_contexts(type(stat.get_child(2)))
    assert stat.get_rule_context(0, type(expr)) is expr
    assert stat.get_child(0, TerminalNode).symbol.value == "a"
    assert stat.child_count == 4


def test_without_parse_trees():
    parser, _ = calc("1 + 2 ;")
    parser.build_parse_trees = False
    prog = parser.prog()

    assert prog.children is None
    assert parser.number_of_syntax_errors == 0


def test_trimming_listener_installed():
    class TrimmingCalcParser(CalcParser):
        trim_parse_trees = True

    parser = TrimmingCalcParser(stream("1 ;"))
    assert TrimToSizeListener.INSTANCE in parser.parse_listeners
    assert tree(parser.prog()) == "(prog (stat (expr 1) ;) <EOF>)"


def test_reset_allows_parsing_again():
    parser, listener = calc("a b ;")
    first = tree(parser.prog())
    assert parser.number_of_syntax_errors == 1

    parser.reset()
    assert parser.token_stream.index == 0
    assert parser.number_of_syntax_errors == 0
    assert not parser.error_handler.in_error_recovery_mode(parser)
    assert tree(parser.prog()) == first


# ---- Error reporting and recovery


def test_missing_token_is_conjured():
    parser, listener = calc("a = 1 b = 2 ;")
    prog = parser.prog()

    assert listener.messages == ["missing ';' at 'b'"]
    assert parser.number_of_syntax_errors == 1
    assert tree(prog) == "(prog (stat a = (expr 1) <missing ';'>) (stat b = (expr 2) ;) <EOF>)"

    missing = prog.get_child(0).get_child(3)
    assert isinstance(missing, ErrorNode)
    assert missing.symbol.index == -1
    assert missing.symbol.type == SEMI
    assert (missing.symbol.lineno, missing.symbol.column) == (1, 6)


class CountingStrategy(DefaultErrorStrategy):
    """Default recovery that counts how often the parser asks for inline recovery."""

    def __init__(self) -> None:
        super().__init__()
        self.inline_calls = 0

    def recover_inline(self, recognizer):
        self.inline_calls += 1
        return super().recover_inline(recognizer)


class ConjuringStrategy(DefaultErrorStrategy):
    """Always recovers inline by conjuring up an identifier."""

    def __init__(self) -> None:
        super().__init__()
        self.inline_calls = 0

    def recover_inline(self, recognizer):
        self.inline_calls += 1
        return Token.missing(ID, "<missing ID>", recognizer.current_token)


def test_missing_token_recovers_inline_once():
    strategy = CountingStrategy()
    parser, listener = calc("a = 1 b = 2 ;", error_handler=strategy)
    parser.prog()

    assert strategy.inline_calls == 1
    assert parser.number_of_syntax_errors == 1
    assert len(listener.messages) == 1


def enter_prog(parser):
    prog = ProgContext()
    parser.enter_rule(prog, S["prog_start"], RULE_prog)
    parser.state = S["stat_id"]
    return prog


def test_match_wildcard_consumes_any_token():
    strategy = ConjuringStrategy()
    parser, listener = calc("x ;", error_handler=strategy)
    prog = enter_prog(parser)

    t = parser.match_wildcard()

    assert (t.type, t.value, t.index) == (ID, "x", 0)
    assert parser.current_token.type == SEMI
    assert strategy.inline_calls == 0
    assert len(prog.children) == 1
    assert isinstance(prog.children[0], TerminalNode)
    assert not isinstance(prog.children[0], ErrorNode)
    assert prog.children[0].symbol is t
    assert listener.messages == []


def test_match_wildcard_at_eof_recovers_inline():
    strategy = ConjuringStrategy()
    parser, _ = calc("", error_handler=strategy)
    prog = enter_prog(parser)

    t = parser.match_wildcard()

    assert strategy.inline_calls == 1
    assert (t.type, t.index) == (ID, -1)
    assert parser.current_token.type == EOF
    assert parser.token_stream.index == 0
    assert len(prog.children) == 1
    assert isinstance(prog.children[0], ErrorNode)
    assert prog.children[0].symbol is t
    assert prog.children[0].parent is prog


def test_match_wildcard_at_eof_without_parse_trees():
    strategy = ConjuringStrategy()
    parser, _ = calc("", error_handler=strategy)
    parser.build_parse_trees = False
    prog = enter_prog(parser)

    t = parser.match_wildcard()

    assert strategy.inline_calls == 1
    assert t.index == -1
    assert prog.children is None


def test_copy_from_keeps_position_and_error_nodes():
    class AssignContext(StatContext):
        pass

    prog = ProgContext()
    stat = StatContext(prog, S["call_stat"])
    a, eq, junk = Token(ID, "a", index=0), Token(ASSIGN, "=", index=1), Token(SEMI, ";", index=2)
    stat.start, stat.stop = a, eq
    stat.add_token_node(a)
    stat.add_token_node(eq)
    bad = stat.add_error_node(junk)

    labeled = AssignContext()
    labeled.copy_from(stat)

    assert labeled.parent is prog
    assert labeled.invoking_state == S["call_stat"]
    assert (labeled.start, labeled.stop) == (a, eq)
    assert labeled.children == [bad]
    assert bad.parent is labeled
    assert stat.children is not None and len(stat.children) == 3


def test_copy_from_without_children():
    stat = StatContext(ProgContext(), 3)
    labeled = StatContext()
    labeled.copy_from(stat)

    assert labeled.children is None
    assert labeled.invoking_state == 3


@pytest.mark.parametrize(
    ("token", "expected"),
    [
        pytest.param(Token(ID, "a\tb"), "'a\\tb'", id="tab"),
        pytest.param(Token(ID, "a\r\nb"), "'a\\r\\nb'", id="newline"),
        pytest.param(Token(EOF), "'<EOF>'", id="eof"),
        pytest.param(Token(INT), "'<2>'", id="no-text"),
        pytest.param(None, "<no token>", id="none"),
    ],
)
def test_token_error_display(token, expected):
    parser, _ = calc("1")
    assert parser.get_token_error_display(token) == expected


def test_console_listener_output(capsys):
    parser = CalcParser(stream("a = 1 b = 2 ;"))
    assert parser.error_listeners == [ConsoleErrorListener.INSTANCE]
    parser.prog()

    assert capsys.readouterr().err == "line 1:6 missing ';' at 'b'\n"


def test_no_viable_alternative():
    parser, listener = calc("a b ;")
    prog = parser.prog()

    assert listener.messages == ["no viable alternative at input 'ab'"]
    assert parser.number_of_syntax_errors == 1

    _, _, offending, e = listener.events[0]
    assert offending.value == "b"
    assert isinstance(e, NoViableAltError)
    assert e.start_token.value == "a"
    assert e.dead_end_configs

    # The first attempt consumes nothing, the second skips 'a'.
    assert tree(prog) == "(prog stat (stat a) (stat (expr b) ;) <EOF>)"
    assert prog.get_child(0).exception is e
    assert isinstance(prog.get_child(1).get_child(0), ErrorNode)


def test_extraneous_token_at_loop_back():
    parser, listener = calc("1 ; ) 2 ;")
    recorder = RecordingParseListener(RULE_NAMES)
    parser.add_parse_listener(recorder)
    prog = parser.prog()

    assert listener.messages == ["extraneous input ')' expecting {<EOF>, ID, INT, '('}"]
    assert tree(prog) == "(prog (stat (expr 1) ;) ) (stat (expr 2) ;) <EOF>)"
    assert isinstance(prog.get_child(1), ErrorNode)
    assert ("error", ")") in recorder.events


def test_single_token_deletion():
    parser, listener = calc("1 ) ;")
    prog = parser.prog()

    assert listener.messages == ["extraneous input ')' expecting ';'"]
    assert tree(prog) == "(prog (stat (expr 1) ) ;) <EOF>)"
    stat = prog.get_child(0)
    assert isinstance(stat.get_child(1), ErrorNode)
    assert not isinstance(stat.get_child(2), ErrorNode)
    assert parser.number_of_syntax_errors == 1


def test_recovery_inside_left_recursion():
    parser, listener = calc("1 + * 2 ;")
    prog = parser.prog()

    assert listener.messages == ["no viable alternative at input '*'"]
    assert tree(prog) == "(prog (stat (expr (expr (expr 1) + expr) * (expr 2)) ;) <EOF>)"
    assert parser.precedence_stack == (0,)
    assert parser.number_of_syntax_errors == 1


def test_bail_strategy_cancels():
    parser, listener = calc("1 + * 2 ;", error_handler=BailErrorStrategy())

    with pytest.raises(ParseCancellationError) as excinfo:
        parser.prog()

    assert isinstance(excinfo.value.__cause__, NoViableAltError)
    assert excinfo.value.__cause__.ctx.exception is excinfo.value.__cause__
    assert parser.precedence_stack == (0,)
    assert parser._ctx is None


def test_bail_strategy_on_mismatch():
    parser, _ = calc("a = 1 b", error_handler=BailErrorStrategy())

    with pytest.raises(ParseCancellationError) as excinfo:
        parser.prog()
    assert excinfo.value.__cause__.offending_token.value == "b"


def test_missing_operand_before_terminator():
    parser, listener = calc("a = 1 + ;")
    prog = parser.prog()

    assert listener.messages == ["no viable alternative at input ';'"]
    assert tree(prog) == "(prog (stat a = (expr (expr 1) + expr) ;) <EOF>)"


# ---- Parse listeners and tracing


def test_listener_events_are_balanced():
    parser, _ = calc("1 + 2 ;")
    recorder = RecordingParseListener(RULE_NAMES)
    parser.add_parse_listener(recorder)
    parser.prog()

    assert recorder.events == [
        ("enter", "prog"),
        ("enter", "stat"),
        ("enter", "expr"),
        ("terminal", "1"),
        ("exit", "expr"),
        ("enter", "expr"),
        ("terminal", "+"),
        ("enter", "expr"),
        ("terminal", "2"),
        ("exit", "expr"),
        ("exit", "expr"),
        ("terminal", ";"),
        ("exit", "stat"),
        ("terminal", "<EOF>"),
        ("exit", "prog"),
    ]


def test_trace_output():
    parser, _ = calc("1 ;")
    out = io.StringIO()
    parser.log = ParserLogger(out)
    parser.trace = True
    parser.prog()

    assert out.getvalue().splitlines() == [
        "enter   prog, LT(1)=1",
        "enter   stat, LT(1)=1",
        "enter   expr, LT(1)=1",
        "consume 1 rule expr",
        "exit    expr, LT(1)=;",
        "consume ; rule stat",
        "exit    stat, LT(1)=<EOF>",
        "consume <EOF> rule prog",
        "exit    prog, LT(1)=<EOF>",
    ]

    parser.trace = False
    assert parser.parse_listeners == []


def test_remove_parse_listener():
    parser, _ = calc("1 ;")
    recorder = RecordingParseListener(RULE_NAMES)
    parser.add_parse_listener(recorder)
    parser.remove_parse_listener(recorder)
    parser.remove_parse_listener(recorder)
    parser.prog()

    assert recorder.events == []


# ---- Queries on the current position


def test_expected_tokens_inside_expression():
    parser, expr = inside_expr("1 ;")

    assert parser.context is expr
    assert parser.get_expected_tokens() == frozenset({TIMES, PLUS, SEMI})
    assert parser.get_expected_tokens_within_current_rule() == frozenset({TIMES, PLUS, EPSILON})
    assert parser.is_expected_token(TIMES)
    assert parser.is_expected_token(SEMI)
    assert not parser.is_expected_token(ID)
    assert not parser.is_expected_token(EOF)


def test_invocation_stack():
    parser, expr = inside_expr("1 ;")

    assert parser.get_rule_invocation_stack() == ["expr", "stat", "prog"]
    assert parser.get_rule_invocation_stack(ParserRuleContext()) == ["n/a"]
    assert parser.in_context("stat")
    assert not parser.in_context("nope")
    assert parser.get_invoking_context(1) is expr.parent
    assert parser.get_invoking_context(5) is None
    assert parser.get_rule_index("expr") == 2
    assert parser.get_rule_index("nope") == -1


def test_precedence_tracking():
    parser, _ = inside_expr("1 ;", precedence=3)

    assert parser.precedence == 3
    assert parser.precedence_stack == (0, 3)
    assert parser.precpred(None, 3)
    assert not parser.precpred(None, 2)


# ---- Predicates


def test_predicate_passing_is_ambiguous_with_full_context():
    parser, listener = pred("x", allow=True)
    ctx = parser.s()

    assert ctx.to_string_tree(parser.rule_names) == "(s x)"
    assert [event[0] for event in listener.events] == ["full_context", "ambiguity"]
    assert listener.events[-1] == ("ambiguity", 0, False, frozenset({1, 2}))


def test_predicate_failing_selects_other_alt():
    parser, listener = pred("x", allow=False)
    ctx = parser.s()

    assert ctx.to_string_tree(parser.rule_names) == "(s x)"
    assert listener.events == []


def test_failed_predicate_reported():
    class ForcedPredParser(PredParser):
        def adaptive_predict(self, decision):
            return 1

    parser = ForcedPredParser(stream("x"), allow=False)
    listener = RecordingErrorListener()
    parser.remove_error_listeners()
    parser.add_error_listener(listener)
    ctx = parser.s()

    assert listener.messages == ["rule s failed predicate: {self.allow}?"]
    e = ctx.exception
    assert isinstance(e, FailedPredicateError)
    assert (e.rule_index, e.predicate_index, e.predicate) == (0, 0, "self.allow")
    assert e.offending_token.value == "x"


@pytest.mark.parametrize(
    ("exact_only", "expected"),
    [
        pytest.param(
            False,
            [
                "report_attempting_full_context d=0 (s), input='x'",
                "report_ambiguity d=0 (s): ambig_alts={1, 2}, input='x'",
            ],
            id="all",
        ),
        pytest.param(True, ["report_attempting_full_context d=0 (s), input='x'"], id="exact-only"),
    ],
)
def test_diagnostic_listener(exact_only, expected):
    parser, listener = pred("x", allow=True)
    parser.add_error_listener(DiagnosticErrorListener(exact_only=exact_only))
    parser.s()

    assert listener.messages == expected
    assert parser.number_of_syntax_errors == len(expected)


# ---- Networks with bypass alternatives


class BypassCalcParser(CalcParser):
    serialized_atn = "calc-v1"
    bypass_registry = BypassAltsRegistry()
    builds = 0

    def build_bypass_atn(self):
        type(self).builds += 1
        network = ATN(max_token_type=CALC_ATN.max_token_type)
        network.add_rule()
        return network


def test_bypass_network_built_once():
    BypassCalcParser.bypass_registry.clear()
    BypassCalcParser.builds = 0

    first = BypassCalcParser(stream("1 ;")).get_atn_with_bypass_alts()
    second = BypassCalcParser(stream("2 ;")).get_atn_with_bypass_alts()

    assert first is second
    assert BypassCalcParser.builds == 1
    assert "calc-v1" in BypassCalcParser.bypass_registry
    assert len(BypassCalcParser.bypass_registry) == 1


def test_bypass_network_built_once_across_threads():
    registry = BypassAltsRegistry()
    barrier = threading.Barrier(8)
    calls = []
    results = []

    def factory():
        calls.append(1)
        return ATN(max_token_type=1)

    def worker():
        barrier.wait()
        results.append(registry.get_or_create("key", factory))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(calls) == 1
    assert len(results) == 8
    assert all(r is results[0] for r in results)


def test_bypass_network_unsupported():
    with pytest.raises(NotImplementedError, match="does not support"):
        CalcParser(stream("1 ;")).get_atn_with_bypass_alts()

    class HalfwayParser(CalcParser):
        serialized_atn = "halfway"
        bypass_registry = BypassAltsRegistry()

    with pytest.raises(NotImplementedError, match="HalfwayParser"):
        HalfwayParser(stream("1 ;")).get_atn_with_bypass_alts()


def test_positions_in_tree():
    parser, _ = calc("1 ;")
    prog = parser.prog()
    assert prog.get_child(0).invoking_state == S["call_stat"]
