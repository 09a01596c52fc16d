# region License
# -----------------------------------------------------------------------------
# adaptll: strategy.py
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

"""Error reporting and recovery strategies a parser delegates to when the input does not fit the grammar."""

from typing import TYPE_CHECKING, Final, Optional

from ._misc import override
from .atn import StateKind
from .errors import FailedPredicateError, InputMismatchError, NoViableAltError, ParseCancellationError, RecognitionError
from .tokens import EOF, EPSILON, INVALID_TYPE, Token
from .tree import ParserRuleContext, escape_whitespace

if TYPE_CHECKING:
    from .parser import Parser

__all__ = ("ErrorStrategy", "DefaultErrorStrategy", "BailErrorStrategy")


_BLOCK_ENTRY_KINDS: Final = frozenset(
    (StateKind.BLOCK_START, StateKind.STAR_BLOCK_START, StateKind.PLUS_BLOCK_START, StateKind.STAR_LOOP_ENTRY)
)
_LOOP_BACK_KINDS: Final = frozenset((StateKind.PLUS_LOOP_BACK, StateKind.STAR_LOOP_BACK))


class ErrorStrategy:
    """What a parser calls on when something goes wrong, and on every successful match so recovery can end."""

    def reset(self, recognizer: "Parser") -> None:
        raise NotImplementedError

    def recover_inline(self, recognizer: "Parser") -> Token:
        """Recover from a mismatched token inside `Parser.match`. Return the token to use in its place."""

        raise NotImplementedError

    def recover(self, recognizer: "Parser", e: RecognitionError) -> None:
        """Resynchronize after `e` so the current rule can return."""

        raise NotImplementedError

    def sync(self, recognizer: "Parser") -> None:
        """Make sure the current token can start one of the paths out of the current state."""

        raise NotImplementedError

    def in_error_recovery_mode(self, recognizer: "Parser") -> bool:
        raise NotImplementedError

    def report_match(self, recognizer: "Parser") -> None:
        raise NotImplementedError

    def report_error(self, recognizer: "Parser", e: RecognitionError) -> None:
        raise NotImplementedError


class DefaultErrorStrategy(ErrorStrategy):
    """Report errors and recover locally, by deleting or conjuring up single tokens, or by resynchronizing.

    Extended Summary
    ----------------
    After an error is reported, the strategy stays in recovery mode until a token is matched successfully. Errors
    raised while in recovery mode are not reported again, so one mistake in the input yields one message.

    Resynchronization discards tokens until one appears that can follow some rule on the invocation stack. If
    recovery is attempted twice at the same input position from the same state, one token is consumed first so the
    parser cannot loop forever.
    """

    def __init__(self) -> None:
        self.error_recovery_mode = False
        self.last_error_index = -1
        self.last_error_states: Optional[set[int]] = None
        # Where sync last saw a state that could reach the end of its rule. Errors raised later in the same rule are
        # then reported against that state, which has a more useful expected set.
        self.next_tokens_context: Optional[ParserRuleContext] = None
        self.next_tokens_state = -1

    @override
    def reset(self, recognizer: "Parser") -> None:
        self.end_error_condition(recognizer)
        self.next_tokens_context = None
        self.next_tokens_state = -1

    def begin_error_condition(self, recognizer: "Parser") -> None:
        self.error_recovery_mode = True

    def end_error_condition(self, recognizer: "Parser") -> None:
        self.error_recovery_mode = False
        self.last_error_states = None
        self.last_error_index = -1

    @override
    def in_error_recovery_mode(self, recognizer: "Parser") -> bool:
        return self.error_recovery_mode

    @override
    def report_match(self, recognizer: "Parser") -> None:
        self.end_error_condition(recognizer)

    # ----------------------------------------------------------------------
    # Reporting
    # ----------------------------------------------------------------------

    @override
    def report_error(self, recognizer: "Parser", e: RecognitionError) -> None:
        if self.in_error_recovery_mode(recognizer):
            return
        self.begin_error_condition(recognizer)

        if isinstance(e, NoViableAltError):
            self.report_no_viable_alternative(recognizer, e)
        elif isinstance(e, InputMismatchError):
            self.report_input_mismatch(recognizer, e)
        elif isinstance(e, FailedPredicateError):
            self.report_failed_predicate(recognizer, e)
        else:
            recognizer.log.error("unknown recognition error type: %s", type(e).__name__)
            recognizer.notify_error_listeners(str(e), e.offending_token, e)

    def report_no_viable_alternative(self, recognizer: "Parser", e: NoViableAltError) -> None:
        tokens = recognizer.token_stream
        if e.start_token is not None and e.start_token.type == EOF:
            text = "<EOF>"
        elif e.start_token is not None and e.offending_token is not None:
            text = tokens.get_text(e.start_token, e.offending_token)
        else:
            text = "<unknown input>"
        msg = f"no viable alternative at input '{escape_whitespace(text)}'"
        recognizer.notify_error_listeners(msg, e.offending_token, e)

    def report_input_mismatch(self, recognizer: "Parser", e: InputMismatchError) -> None:
        expected = e.get_expected_tokens() or frozenset()
        msg = (
            f"mismatched input {recognizer.get_token_error_display(e.offending_token)} "
            f"expecting {recognizer.format_token_set(expected)}"
        )
        recognizer.notify_error_listeners(msg, e.offending_token, e)

    def report_failed_predicate(self, recognizer: "Parser", e: FailedPredicateError) -> None:
        rule_name = recognizer.rule_names[recognizer.context.rule_index]
        msg = f"rule {rule_name} {e.message}"
        recognizer.notify_error_listeners(msg, e.offending_token, e)

    def report_unwanted_token(self, recognizer: "Parser") -> None:
        if self.in_error_recovery_mode(recognizer):
            return
        self.begin_error_condition(recognizer)

        t = recognizer.current_token
        expecting = self.get_expected_tokens(recognizer)
        msg = (
            f"extraneous input {recognizer.get_token_error_display(t)} "
            f"expecting {recognizer.format_token_set(expecting)}"
        )
        recognizer.notify_error_listeners(msg, t, None)

    def report_missing_token(self, recognizer: "Parser") -> None:
        if self.in_error_recovery_mode(recognizer):
            return
        self.begin_error_condition(recognizer)

        t = recognizer.current_token
        expecting = self.get_expected_tokens(recognizer)
        msg = f"missing {recognizer.format_token_set(expecting)} at {recognizer.get_token_error_display(t)}"
        recognizer.notify_error_listeners(msg, t, None)

    # ----------------------------------------------------------------------
    # Recovery
    # ----------------------------------------------------------------------

    @override
    def recover(self, recognizer: "Parser", e: RecognitionError) -> None:
        stream = recognizer.token_stream
        if (
            self.last_error_index == stream.index
            and self.last_error_states is not None
            and recognizer.state in self.last_error_states
        ):
            # Recovering at the same spot again without having consumed anything: force progress.
            recognizer.consume()

        self.last_error_index = stream.index
        if self.last_error_states is None:
            self.last_error_states = set()
        self.last_error_states.add(recognizer.state)

        self.consume_until(recognizer, self.get_error_recovery_set(recognizer))

    @override
    def sync(self, recognizer: "Parser") -> None:
        """Check the current token before entering a sub-rule or loop, and recover early if it can't be matched.

        Extended Summary
        ----------------
        At the start of a block or loop entry, a single extraneous token is deleted if the token after it fits;
        otherwise an `InputMismatchError` is raised right there. At a loop back-edge, tokens are discarded until one
        that can start another iteration or follow the loop.
        """

        if self.in_error_recovery_mode(recognizer):
            return

        atn = recognizer.atn
        state = atn.states[recognizer.state]
        la = recognizer.token_stream.LA(1)

        next_tokens = atn.next_tokens(state)
        if la in next_tokens:
            self.next_tokens_context = None
            self.next_tokens_state = -1
            return

        if EPSILON in next_tokens:
            if self.next_tokens_context is None:
                self.next_tokens_context = recognizer.context
                self.next_tokens_state = recognizer.state
            return

        kind = state.kind
        if kind in _BLOCK_ENTRY_KINDS:
            if self.single_token_deletion(recognizer) is not None:
                return
            raise InputMismatchError(recognizer)

        if kind in _LOOP_BACK_KINDS:
            self.report_unwanted_token(recognizer)
            expecting = recognizer.get_expected_tokens()
            self.consume_until(recognizer, expecting | self.get_error_recovery_set(recognizer))

    @override
    def recover_inline(self, recognizer: "Parser") -> Token:
        matched = self.single_token_deletion(recognizer)
        if matched is not None:
            recognizer.consume()
            return matched

        if self.single_token_insertion(recognizer):
            return self.get_missing_symbol(recognizer)

        if self.next_tokens_context is None:
            raise InputMismatchError(recognizer)
        raise InputMismatchError(recognizer, self.next_tokens_state, self.next_tokens_context)

    def single_token_insertion(self, recognizer: "Parser") -> bool:
        """If the current token is what would come after the expected one, report the expected one as missing."""

        current_type = recognizer.token_stream.LA(1)
        atn = recognizer.atn
        state = atn.states[recognizer.state]
        following = state.transitions[0].target
        if current_type in atn.next_tokens(following, recognizer.context):
            self.report_missing_token(recognizer)
            return True
        return False

    def single_token_deletion(self, recognizer: "Parser") -> Optional[Token]:
        """If the token after the current one is what's expected, report and drop the current one.

        Returns
        -------
        Optional[Token]
            The expected token, now current, or None if deletion doesn't help.
        """

        next_type = recognizer.token_stream.LA(2)
        if next_type in self.get_expected_tokens(recognizer):
            self.report_unwanted_token(recognizer)
            recognizer.consume()
            matched = recognizer.current_token
            self.report_match(recognizer)
            return matched
        return None

    def get_missing_symbol(self, recognizer: "Parser") -> Token:
        """Conjure up the token that was expected. It is positioned at the current token and has index -1."""

        expecting = self.get_expected_tokens(recognizer)
        expected_type = min(expecting) if expecting else INVALID_TYPE
        if expected_type == EOF:
            text = "<missing EOF>"
        else:
            text = f"<missing {recognizer.get_token_display_name(expected_type)}>"

        current = recognizer.current_token
        lookback = recognizer.token_stream.LT(-1)
        if current.type == EOF and lookback is not None:
            current = lookback
        return Token.missing(expected_type, text, like=current)

    def get_expected_tokens(self, recognizer: "Parser") -> frozenset[int]:
        return recognizer.get_expected_tokens()

    def get_error_recovery_set(self, recognizer: "Parser") -> frozenset[int]:
        """The union of what can follow each rule invocation on the current stack."""

        atn = recognizer.atn
        ctx = recognizer.context
        recover_set: set[int] = set()
        while ctx is not None and ctx.invoking_state >= 0:
            follow_state = atn.states[ctx.invoking_state].transitions[0].follow_state
            assert follow_state is not None
            recover_set.update(atn.next_tokens(follow_state))
            ctx = ctx.parent
        recover_set.discard(EPSILON)
        return frozenset(recover_set)

    def consume_until(self, recognizer: "Parser", token_types: frozenset[int]) -> None:
        stream = recognizer.token_stream
        ttype = stream.LA(1)
        while ttype != EOF and ttype not in token_types:
            recognizer.consume()
            ttype = stream.LA(1)


class BailErrorStrategy(DefaultErrorStrategy):
    """Give up on the first syntax error.

    Every context on the invocation stack is marked with the error, and `ParseCancellationError` is raised from it.
    Useful for a fast SLL-only first pass whose failure triggers a second, full LL parse.
    """

    @override
    def recover(self, recognizer: "Parser", e: RecognitionError) -> None:
        ctx = recognizer.context
        while ctx is not None:
            ctx.exception = e
            ctx = ctx.parent
        raise ParseCancellationError(str(e)) from e

    @override
    def recover_inline(self, recognizer: "Parser") -> Token:
        e = InputMismatchError(recognizer)
        ctx = recognizer.context
        while ctx is not None:
            ctx.exception = e
            ctx = ctx.parent
        raise ParseCancellationError(str(e)) from e

    @override
    def sync(self, recognizer: "Parser") -> None:
        pass
