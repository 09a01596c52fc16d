# region License
# -----------------------------------------------------------------------------
# adaptll: parser.py
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

"""The runtime half of a generated recursive-descent parser: rule entry and exit, token matching, left recursion."""

import sys
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING, ClassVar, Optional, TextIO

from ._misc import override
from .decision import AdaptivePredictor
from .prediction import PredictionMode
from .recognizer import Recognizer
from .simulator import LookaheadSimulator
from .strategy import DefaultErrorStrategy, ErrorStrategy
from .tokens import EOF, EPSILON, Token, TokenStream
from .tree import ErrorNode, ParserRuleContext, ParseTreeListener, TerminalNode

if TYPE_CHECKING:
    from .atn import ATN
    from .errors import RecognitionError
    from .simulator import PredictionSimulator

__all__ = ("ParserLogger", "BypassAltsRegistry", "TraceListener", "TrimToSizeListener", "Parser")


# ============================================================================
# region -------- Ambient helpers --------
# ============================================================================


class ParserLogger:
    """This object is a stand-in for a logging object created by the logging module.

    Extended Summary
    ----------------
    Parsers write trace output and prediction diagnostics here. Anything with the same methods can take its place,
    including a real `logging.Logger`.
    """

    def __init__(self, f: TextIO) -> None:
        self.f = f

    def debug(self, msg: str, *args: object, **kwargs: object) -> None:
        self.f.write((msg % args) + "\n")

    info = debug

    def warning(self, msg: str, *args: object, **kwargs: object) -> None:
        self.f.write("WARNING: " + (msg % args) + "\n")

    def error(self, msg: str, *args: object, **kwargs: object) -> None:
        self.f.write("ERROR: " + (msg % args) + "\n")

    critical = debug


class BypassAltsRegistry:
    """A cache of networks with bypass alternatives, keyed by the serialized form of the original network.

    Extended Summary
    ----------------
    Building one of these networks is expensive, so each is built once per key and then shared. Creation happens
    under a lock, so concurrent parsers asking for the same key still build it only once. Once a key is populated it
    is never replaced, and reading it takes no lock.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._networks: dict[str, "ATN"] = {}

    def get_or_create(self, key: str, factory: Callable[[], "ATN"]) -> "ATN":
        network = self._networks.get(key)
        if network is not None:
            return network

        with self._lock:
            network = self._networks.get(key)
            if network is None:
                network = factory()
                self._networks[key] = network
        return network

    def clear(self) -> None:
        with self._lock:
            self._networks.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._networks

    def __len__(self) -> int:
        return len(self._networks)


class TraceListener(ParseTreeListener):
    """Logs rule entry, rule exit and every consumed token of a parser, at info level."""

    def __init__(self, parser: "Parser") -> None:
        self.parser = parser

    def _rule_name(self, ctx: ParserRuleContext) -> str:
        names = self.parser.rule_names
        return names[ctx.rule_index] if 0 <= ctx.rule_index < len(names) else type(ctx).__name__

    @override
    def enter_every_rule(self, ctx: ParserRuleContext) -> None:
        self.parser.log.info("enter   %s, LT(1)=%s", self._rule_name(ctx), self.parser.current_token.value)

    @override
    def visit_terminal(self, node: TerminalNode) -> None:
        self.parser.log.info("consume %s rule %s", node.symbol.value, self._rule_name(self.parser.context))

    @override
    def exit_every_rule(self, ctx: ParserRuleContext) -> None:
        self.parser.log.info("exit    %s, LT(1)=%s", self._rule_name(ctx), self.parser.current_token.value)


class TrimToSizeListener(ParseTreeListener):
    """Replaces each finished rule's child list with an exact-size copy."""

    INSTANCE: ClassVar["TrimToSizeListener"]

    @override
    def exit_every_rule(self, ctx: ParserRuleContext) -> None:
        if ctx.children is not None:
            ctx.children = ctx.children[:]


TrimToSizeListener.INSTANCE = TrimToSizeListener()


# endregion


# ============================================================================
# region -------- Parser --------
# ============================================================================


class Parser(Recognizer):
    """Base class for generated parsers.

    Extended Summary
    ----------------
    A generated parser has one method per grammar rule. Each rule method creates its context, announces it with
    `enter_rule` (or `enter_recursion_rule` for a left-recursive rule), matches tokens and calls other rules as
    directed by `adaptive_predict`, and finally calls `exit_rule` (or `unroll_recursion_contexts`) in a ``finally``
    block so the context chain and the precedence stack stay balanced whatever happens. Recognition errors raised in a
    rule are caught by that rule and handed to the error strategy.

    Parameters
    ----------
    input: TokenStream
        Tokens to parse.
    simulator: Optional[PredictionSimulator], default=None
        Source of configuration sets for prediction. Defaults to a `LookaheadSimulator` over this parser.
    error_handler: Optional[ErrorStrategy], default=None
        Defaults to a fresh `DefaultErrorStrategy`.

    Attributes
    ----------
    matched_eof: bool
        Whether `match` has matched EOF, in which case the rule being exited ends at the EOF token.
    """

    # ---- These attributes may be redefined in subclasses or on instances.
    log = ParserLogger(sys.stderr)
    """Logging object where trace output and prediction diagnostics are sent."""

    build_parse_trees: bool = True
    """Whether rule contexts collect their children. Without it, a finished context is only referenced by whoever
    called the rule."""

    trim_parse_trees: bool = False
    """Whether to install `TrimToSizeListener` when the parser is created."""

    prediction_mode: PredictionMode = PredictionMode.LL
    """Prediction tiers to use for every decision."""

    debug_prediction: bool = False
    """Whether the decision driver logs its progress at debug level."""

    bypass_registry: BypassAltsRegistry = BypassAltsRegistry()
    """Where networks with bypass alternatives are cached. Shared by all parsers unless replaced."""

    serialized_atn: ClassVar[str] = ""
    """Serialized form of `atn`, used as the bypass registry key. Generated subclasses provide it."""

    def __init__(
        self,
        input: TokenStream,  # noqa: A002
        *,
        simulator: Optional["PredictionSimulator"] = None,
        error_handler: Optional[ErrorStrategy] = None,
    ) -> None:
        super().__init__()
        self._input: Optional[TokenStream] = None
        self._ctx: Optional[ParserRuleContext] = None
        self._err_handler: ErrorStrategy = error_handler if error_handler is not None else DefaultErrorStrategy()
        self._precedence_stack: list[int] = [0]
        self._parse_listeners: list[ParseTreeListener] = []
        self._syntax_errors = 0
        self._tracer: Optional[TraceListener] = None
        self.matched_eof = False

        if simulator is None:
            simulator = LookaheadSimulator(self)
        self._simulator = simulator
        self._interp = AdaptivePredictor(self, simulator)

        if self.trim_parse_trees:
            self.add_parse_listener(TrimToSizeListener.INSTANCE)

        self.token_stream = input

    def reset(self) -> None:
        """Rewind the input and forget everything learned about it."""

        if self._input is not None:
            self._input.seek(0)
        self._err_handler.reset(self)
        self._ctx = None
        self._syntax_errors = 0
        self.matched_eof = False
        self.trace = False
        self._precedence_stack = [0]
        reset_simulator = getattr(self._simulator, "reset", None)
        if reset_simulator is not None:
            reset_simulator()

    # ----------------------------------------------------------------------
    # Properties
    # ----------------------------------------------------------------------

    @property
    def token_stream(self) -> TokenStream:
        assert self._input is not None
        return self._input

    @token_stream.setter
    def token_stream(self, value: TokenStream) -> None:
        self._input = None
        self.reset()
        self._input = value

    @property
    def context(self) -> ParserRuleContext:
        assert self._ctx is not None
        return self._ctx

    @context.setter
    def context(self, value: ParserRuleContext) -> None:
        self._ctx = value

    @property
    def current_token(self) -> Token:
        tok = self.token_stream.LT(1)
        assert tok is not None
        return tok

    @property
    def error_handler(self) -> ErrorStrategy:
        return self._err_handler

    @error_handler.setter
    def error_handler(self, value: ErrorStrategy) -> None:
        self._err_handler = value

    @property
    def interpreter(self) -> AdaptivePredictor:
        return self._interp

    @property
    def number_of_syntax_errors(self) -> int:
        """How many syntax errors have been reported. Errors suppressed during recovery are not counted."""

        return self._syntax_errors

    @property
    def precedence(self) -> int:
        """The precedence the innermost left-recursive rule was entered with, or -1 outside of any."""

        if not self._precedence_stack:
            return -1
        return self._precedence_stack[-1]

    @property
    def precedence_stack(self) -> tuple[int, ...]:
        return tuple(self._precedence_stack)

    @property
    def trace(self) -> bool:
        return self._tracer is not None

    @trace.setter
    def trace(self, value: bool) -> None:
        if self._tracer is not None:
            self.remove_parse_listener(self._tracer)
            self._tracer = None
        if value:
            self._tracer = TraceListener(self)
            self.add_parse_listener(self._tracer)

    # ----------------------------------------------------------------------
    # Parse listeners
    # ----------------------------------------------------------------------

    @property
    def parse_listeners(self) -> list[ParseTreeListener]:
        return list(self._parse_listeners)

    def add_parse_listener(self, listener: ParseTreeListener) -> None:
        """Register `listener` to receive events as the parse tree is built.

        Events are fired during parsing, so their order can differ from a walk of the finished tree: for a
        left-recursive rule, the context that ends up outermost is entered after its first child.
        """

        self._parse_listeners.append(listener)

    def remove_parse_listener(self, listener: ParseTreeListener) -> None:
        if listener in self._parse_listeners:
            self._parse_listeners.remove(listener)

    def remove_parse_listeners(self) -> None:
        self._parse_listeners.clear()

    def trigger_enter_rule_event(self) -> None:
        ctx = self.context
        for listener in self._parse_listeners:
            listener.enter_every_rule(ctx)
            ctx.enter_rule(listener)

    def trigger_exit_rule_event(self) -> None:
        ctx = self.context
        for listener in reversed(self._parse_listeners):
            ctx.exit_rule(listener)
            listener.exit_every_rule(ctx)

    # ----------------------------------------------------------------------
    # Tokens
    # ----------------------------------------------------------------------

    def match(self, ttype: int) -> Token:
        """Match the current token against `ttype` and consume it.

        If it doesn't match, the error strategy recovers in place. When it conjures up the missing token, that token
        is attached to the tree as an error node.

        Raises
        ------
        RecognitionError
            If the error strategy can't recover here.
        """

        t = self.current_token
        if t.type == ttype:
            if ttype == EOF:
                self.matched_eof = True
            self._err_handler.report_match(self)
            self.consume()
        else:
            t = self._err_handler.recover_inline(self)
            if self.build_parse_trees and t.index == -1:
                self.context.add_error_node(t)
        return t

    def match_wildcard(self) -> Token:
        t = self.current_token
        if t.type > 0:
            self._err_handler.report_match(self)
            self.consume()
        else:
            t = self._err_handler.recover_inline(self)
            if self.build_parse_trees and t.index == -1:
                self.context.add_error_node(t)
        return t

    def consume(self) -> Token:
        """Consume the current token and return it.

        The token becomes a child of the current context: an error node while the error strategy is recovering, a
        terminal node otherwise. Parse listeners are told about it either way.
        """

        o = self.current_token
        if o.type != EOF:
            self.token_stream.consume()

        if self.build_parse_trees or self._parse_listeners:
            ctx = self.context
            if self._err_handler.in_error_recovery_mode(self):
                node = ErrorNode(o, ctx)
                if self.build_parse_trees:
                    ctx.add_child(node)
                for listener in self._parse_listeners:
                    listener.visit_error_node(node)
            else:
                node = TerminalNode(o, ctx)
                if self.build_parse_trees:
                    ctx.add_child(node)
                for listener in self._parse_listeners:
                    listener.visit_terminal(node)
        return o

    # ----------------------------------------------------------------------
    # Rule contexts
    # ----------------------------------------------------------------------

    def _link(self, localctx: ParserRuleContext) -> None:
        if localctx.parent is None and self._ctx is not None and localctx is not self._ctx:
            localctx.parent = self._ctx
            localctx.invoking_state = self.state

    def enter_rule(self, localctx: ParserRuleContext, state: int, rule_index: int) -> None:
        """Make `localctx` the current context, as a child of the previous one.

        Parameters
        ----------
        localctx: ParserRuleContext
            The new rule's context. If it has no parent yet, it is attached to the current context, invoked from the
            current state.
        state: int
            The rule's start state.
        rule_index: int
            Index of the rule being entered.
        """

        self._link(localctx)
        self.state = state
        self._ctx = localctx
        localctx.start = self.token_stream.LT(1)
        if self.build_parse_trees and localctx.parent is not None:
            localctx.parent.add_child(localctx)
        self.trigger_enter_rule_event()

    def exit_rule(self) -> None:
        ctx = self.context
        ctx.stop = self.token_stream.LT(1) if self.matched_eof else self.token_stream.LT(-1)
        self.trigger_exit_rule_event()
        self.state = ctx.invoking_state
        self._ctx = ctx.parent

    def enter_outer_alt(self, localctx: ParserRuleContext, alt_num: int) -> None:
        """Switch to `localctx` for alternative `alt_num`, replacing the current context in the parent's children."""

        localctx.alt_number = alt_num
        if self.build_parse_trees and self._ctx is not localctx:
            parent = self.context.parent
            if parent is not None:
                parent.remove_last_child()
                parent.add_child(localctx)
        self._ctx = localctx

    # ----------------------------------------------------------------------
    # Left recursion
    # ----------------------------------------------------------------------

    def enter_recursion_rule(self, localctx: ParserRuleContext, state: int, rule_index: int, precedence: int) -> None:
        """Enter a left-recursive rule at `precedence`.

        The context is not added to the parent's children yet: rotations may still put other contexts above it.
        `unroll_recursion_contexts` attaches whichever context ends up outermost.
        """

        self._link(localctx)
        self.state = state
        self._precedence_stack.append(precedence)
        self._ctx = localctx
        localctx.start = self.token_stream.LT(1)
        self.trigger_enter_rule_event()

    def push_new_recursion_context(self, localctx: ParserRuleContext, state: int, rule_index: int) -> None:
        """Rotate the tree so that the current context becomes the first child of `localctx`.

        Extended Summary
        ----------------
        After a left-recursive rule has matched a prefix and decides to continue with an operator, the prefix becomes
        the left operand of a new, enclosing context. `localctx` takes the place of the current context under the
        original parent; the current context moves one level down and is marked as invoked from `state`. This yields
        the same left-nested tree a chain of genuinely nested calls would, without the calls.

        Parse listeners see the current context exit before `localctx` is entered.
        """

        previous = self.context
        previous.stop = self.token_stream.LT(-1)
        self.trigger_exit_rule_event()
        previous.parent = localctx
        previous.invoking_state = state

        self._ctx = localctx
        localctx.start = previous.start
        if self.build_parse_trees:
            localctx.add_child(previous)
        self.trigger_enter_rule_event()

    def unroll_recursion_contexts(self, parent_ctx: Optional[ParserRuleContext]) -> None:
        """Leave a left-recursive rule: pop its precedence and make `parent_ctx` current again.

        Generated code calls this from a ``finally`` block, so the precedence stack is popped on every path out of
        the rule.
        """

        self._precedence_stack.pop()
        ctx = self.context
        ctx.stop = self.token_stream.LT(-1)
        retctx = ctx

        if self._parse_listeners:
            while self._ctx is not parent_ctx and self._ctx is not None:
                self.trigger_exit_rule_event()
                self._ctx = self._ctx.parent
        else:
            self._ctx = parent_ctx

        retctx.parent = parent_ctx
        if self.build_parse_trees and parent_ctx is not None:
            parent_ctx.add_child(retctx)

    @override
    def precpred(self, localctx: Optional[ParserRuleContext], precedence: int) -> bool:
        """Whether an operator of `precedence` may continue the innermost left-recursive rule."""

        return precedence >= self._precedence_stack[-1]

    # ----------------------------------------------------------------------
    # Queries
    # ----------------------------------------------------------------------

    def get_invoking_context(self, rule_index: int) -> Optional[ParserRuleContext]:
        p = self._ctx
        while p is not None:
            if p.rule_index == rule_index:
                return p
            p = p.parent
        return None

    def in_context(self, rule_name: str) -> bool:
        return rule_name in self.get_rule_invocation_stack()

    def is_expected_token(self, symbol: int) -> bool:
        """Whether `symbol` may come next, given the current state and the rules on the invocation stack.

        Follow sets are computed one invoking rule at a time, and only as far up the stack as the end of each rule is
        reachable.
        """

        atn = self.atn
        ctx = self._ctx
        following = atn.next_tokens(atn.states[self.state])
        if symbol in following:
            return True
        if EPSILON not in following:
            return False

        while ctx is not None and ctx.invoking_state >= 0 and EPSILON in following:
            follow_state = atn.states[ctx.invoking_state].transitions[0].follow_state
            assert follow_state is not None
            following = atn.next_tokens(follow_state)
            if symbol in following:
                return True
            ctx = ctx.parent

        return EPSILON in following and symbol == EOF

    def get_expected_tokens(self) -> frozenset[int]:
        return self.atn.get_expected_tokens(self.state, self._ctx)

    def get_expected_tokens_within_current_rule(self) -> frozenset[int]:
        return self.atn.next_tokens(self.atn.states[self.state])

    def get_rule_index(self, rule_name: str) -> int:
        return self.rule_index_map.get(rule_name, -1)

    def get_rule_invocation_stack(self, ctx: Optional[ParserRuleContext] = None) -> list[str]:
        """Names of the rules on the invocation stack, innermost first."""

        p = self._ctx if ctx is None else ctx
        stack: list[str] = []
        while p is not None:
            rule_index = p.rule_index
            stack.append(self.rule_names[rule_index] if 0 <= rule_index < len(self.rule_names) else "n/a")
            p = p.parent
        return stack

    # ----------------------------------------------------------------------
    # Errors and prediction
    # ----------------------------------------------------------------------

    def notify_error_listeners(
        self,
        msg: str,
        offending_token: Optional[Token] = None,
        e: Optional["RecognitionError"] = None,
    ) -> None:
        """Count a syntax error and pass it on to every error listener."""

        if offending_token is None:
            offending_token = self.current_token
        self._syntax_errors += 1
        self.error_listener_dispatch.syntax_error(
            self, offending_token, offending_token.lineno, offending_token.column, msg, e
        )

    def adaptive_predict(self, decision: int) -> int:
        return self._interp.adaptive_predict(self.token_stream, decision, self._ctx)

    def get_atn_with_bypass_alts(self) -> "ATN":
        """Return the variant of `atn` in which every rule invocation can be matched as a single unit.

        Raises
        ------
        NotImplementedError
            If the parser has no `serialized_atn` to key the cache with, or does not implement `build_bypass_atn`.
        """

        if not self.serialized_atn:
            msg = "The current parser does not support an ATN with bypass alternatives."
            raise NotImplementedError(msg)
        return self.bypass_registry.get_or_create(self.serialized_atn, self.build_bypass_atn)

    def build_bypass_atn(self) -> "ATN":
        msg = f"{type(self).__name__} does not know how to build an ATN with bypass alternatives."
        raise NotImplementedError(msg)


# endregion
