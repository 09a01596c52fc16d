"""Recognition failures raised while parsing."""

import enum
from typing import TYPE_CHECKING, Optional

from ._misc import override
from .atn import TransitionKind
from .tokens import Token, TokenStream

if TYPE_CHECKING:
    from .config import ATNConfigSet
    from .parser import Parser
    from .recognizer import Recognizer
    from .tree import ParserRuleContext

__all__ = (
    "FailureKind",
    "RecognitionError",
    "NoViableAltError",
    "InputMismatchError",
    "FailedPredicateError",
    "ParseCancellationError",
)


class FailureKind(enum.Enum):
    NO_VIABLE_ALT = enum.auto()
    INPUT_MISMATCH = enum.auto()
    FAILED_PREDICATE = enum.auto()


class RecognitionError(Exception):
    """Base class for the errors a recognizer raises when the input does not fit the grammar.

    Attributes
    ----------
    kind: Optional[FailureKind]
        Which kind of failure this is. Each subclass fixes it.
    recognizer: Optional[Recognizer]
        The recognizer that failed, if known.
    input: Optional[TokenStream]
        The token stream being parsed.
    ctx: Optional[ParserRuleContext]
        The rule context active at the time of failure.
    offending_token: Optional[Token]
        The token at which the failure was detected.
    offending_state: int
        Network state the recognizer was in, or -1.
    """

    kind: Optional[FailureKind] = None

    def __init__(
        self,
        message: str = "",
        recognizer: Optional["Recognizer"] = None,
        input: Optional[TokenStream] = None,  # noqa: A002
        ctx: Optional["ParserRuleContext"] = None,
        *,
        offending_token: Optional[Token] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.recognizer = recognizer
        self.input = input
        self.ctx = ctx
        self.offending_token = offending_token
        self.offending_state = recognizer.state if recognizer is not None else -1

    def get_expected_tokens(self) -> Optional[frozenset[int]]:
        """The token types that would have been acceptable at the point of failure, or None if that can't be known."""

        if self.recognizer is None or self.offending_state < 0:
            return None
        return self.recognizer.atn.get_expected_tokens(self.offending_state, self.ctx)

    @override
    def __str__(self) -> str:
        return self.message


class NoViableAltError(RecognitionError):
    """No alternative of a decision can match the remaining input.

    Parameters
    ----------
    recognizer: Parser
        The parser making the decision.
    input: Optional[TokenStream], default=None
        Defaults to the parser's token stream.
    start_token: Optional[Token], default=None
        First token the decision looked at. Defaults to the parser's current token. Held by reference, since the
        stream may seek away from it before the error is reported.
    offending_token: Optional[Token], default=None
        Token at which every alternative died. Defaults to the parser's current token.
    dead_end_configs: Optional[ATNConfigSet], default=None
        The last configurations that were still alive before the offending token.
    ctx: Optional[ParserRuleContext], default=None
        Defaults to the parser's current context, if any.
    """

    kind = FailureKind.NO_VIABLE_ALT

    def __init__(
        self,
        recognizer: "Parser",
        input: Optional[TokenStream] = None,  # noqa: A002
        start_token: Optional[Token] = None,
        offending_token: Optional[Token] = None,
        dead_end_configs: Optional["ATNConfigSet"] = None,
        ctx: Optional["ParserRuleContext"] = None,
    ) -> None:
        if ctx is None:
            ctx = recognizer._ctx
        if offending_token is None:
            offending_token = recognizer.current_token
        if start_token is None:
            start_token = recognizer.current_token
        if input is None:
            input = recognizer.token_stream  # noqa: A001

        super().__init__("", recognizer, input, ctx, offending_token=offending_token)
        self.start_token = start_token
        self.dead_end_configs = dead_end_configs


class InputMismatchError(RecognitionError):
    """The current token does not match what the parser expected here."""

    kind = FailureKind.INPUT_MISMATCH

    def __init__(
        self,
        recognizer: "Parser",
        state: Optional[int] = None,
        ctx: Optional["ParserRuleContext"] = None,
    ) -> None:
        super().__init__(
            "",
            recognizer,
            recognizer.token_stream,
            recognizer.context if ctx is None else ctx,
            offending_token=recognizer.current_token,
        )
        if state is not None:
            self.offending_state = state


class FailedPredicateError(RecognitionError):
    """A semantic predicate guarding the current alternative evaluated to false.

    Parameters
    ----------
    recognizer: Parser
        The parser that evaluated the predicate.
    predicate: Optional[str], default=None
        Source text of the predicate, for the error message.
    message: Optional[str], default=None
        Overrides the default ``failed predicate: {predicate}?`` message.
    """

    kind = FailureKind.FAILED_PREDICATE

    def __init__(self, recognizer: "Parser", predicate: Optional[str] = None, message: Optional[str] = None) -> None:
        super().__init__(
            message if message is not None else f"failed predicate: {{{predicate}}}?",
            recognizer,
            recognizer.token_stream,
            recognizer.context,
            offending_token=recognizer.current_token,
        )
        self.predicate = predicate

        state = recognizer.atn.states[recognizer.state]
        transition = state.transitions[0] if state.transitions else None
        if transition is not None and transition.kind is TransitionKind.PREDICATE:
            self.rule_index = transition.rule_index
            self.predicate_index = transition.pred_index
        else:
            self.rule_index = state.rule_index
            self.predicate_index = -1


class ParseCancellationError(Exception):
    """Raised to abandon a parse altogether. The recognition error that caused it is its ``__cause__``."""
