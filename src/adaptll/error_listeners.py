"""Receivers of syntax errors and prediction diagnostics."""

import sys
from collections.abc import Iterable
from typing import TYPE_CHECKING, ClassVar, Optional

from ._misc import override

if TYPE_CHECKING:
    from .config import ATNConfigSet
    from .errors import RecognitionError
    from .parser import Parser
    from .recognizer import Recognizer

__all__ = ("ErrorListener", "ConsoleErrorListener", "ProxyErrorListener", "DiagnosticErrorListener")


class ErrorListener:
    """Base class for error listeners. Every event is ignored unless overridden."""

    def syntax_error(
        self,
        recognizer: "Recognizer",
        offending_symbol: object,
        line: int,
        column: int,
        msg: str,
        e: Optional["RecognitionError"],
    ) -> None:
        pass

    def report_ambiguity(
        self,
        recognizer: "Parser",
        decision: int,
        start_index: int,
        stop_index: int,
        exact: bool,
        ambig_alts: Optional[frozenset[int]],
        configs: "ATNConfigSet",
    ) -> None:
        pass

    def report_attempting_full_context(
        self,
        recognizer: "Parser",
        decision: int,
        start_index: int,
        stop_index: int,
        conflicting_alts: Optional[frozenset[int]],
        configs: "ATNConfigSet",
    ) -> None:
        pass

    def report_context_sensitivity(
        self,
        recognizer: "Parser",
        decision: int,
        start_index: int,
        stop_index: int,
        prediction: int,
        configs: "ATNConfigSet",
    ) -> None:
        pass


class ConsoleErrorListener(ErrorListener):
    """Writes ``line L:C msg`` to stderr for every syntax error. Recognizers start out with `INSTANCE` installed."""

    INSTANCE: ClassVar["ConsoleErrorListener"]

    @override
    def syntax_error(
        self,
        recognizer: "Recognizer",
        offending_symbol: object,
        line: int,
        column: int,
        msg: str,
        e: Optional["RecognitionError"],
    ) -> None:
        sys.stderr.write(f"line {line}:{column} {msg}\n")


ConsoleErrorListener.INSTANCE = ConsoleErrorListener()


class ProxyErrorListener(ErrorListener):
    """Forwards every event to each of `delegates`, in order."""

    def __init__(self, delegates: Iterable[ErrorListener]) -> None:
        self.delegates = tuple(delegates)

    @override
    def syntax_error(
        self,
        recognizer: "Recognizer",
        offending_symbol: object,
        line: int,
        column: int,
        msg: str,
        e: Optional["RecognitionError"],
    ) -> None:
        for delegate in self.delegates:
            delegate.syntax_error(recognizer, offending_symbol, line, column, msg, e)

    @override
    def report_ambiguity(
        self,
        recognizer: "Parser",
        decision: int,
        start_index: int,
        stop_index: int,
        exact: bool,
        ambig_alts: Optional[frozenset[int]],
        configs: "ATNConfigSet",
    ) -> None:
        for delegate in self.delegates:
            delegate.report_ambiguity(recognizer, decision, start_index, stop_index, exact, ambig_alts, configs)

    @override
    def report_attempting_full_context(
        self,
        recognizer: "Parser",
        decision: int,
        start_index: int,
        stop_index: int,
        conflicting_alts: Optional[frozenset[int]],
        configs: "ATNConfigSet",
    ) -> None:
        for delegate in self.delegates:
            delegate.report_attempting_full_context(
                recognizer, decision, start_index, stop_index, conflicting_alts, configs
            )

    @override
    def report_context_sensitivity(
        self,
        recognizer: "Parser",
        decision: int,
        start_index: int,
        stop_index: int,
        prediction: int,
        configs: "ATNConfigSet",
    ) -> None:
        for delegate in self.delegates:
            delegate.report_context_sensitivity(recognizer, decision, start_index, stop_index, prediction, configs)


class DiagnosticErrorListener(ErrorListener):
    """Turns prediction diagnostics into syntax errors, which is handy while developing a grammar.

    Parameters
    ----------
    exact_only: bool, default=True
        Only report ambiguities that full-context prediction proved exact.
    """

    def __init__(self, exact_only: bool = True) -> None:
        self.exact_only = exact_only

    @override
    def report_ambiguity(
        self,
        recognizer: "Parser",
        decision: int,
        start_index: int,
        stop_index: int,
        exact: bool,
        ambig_alts: Optional[frozenset[int]],
        configs: "ATNConfigSet",
    ) -> None:
        if self.exact_only and not exact:
            return

        alts = self._conflicting_alts(ambig_alts, configs)
        text = self._input_text(recognizer, start_index, stop_index)
        description = self._decision_description(recognizer, decision)
        msg = f"report_ambiguity d={description}: ambig_alts={alts}, input='{text}'"
        recognizer.notify_error_listeners(msg)

    @override
    def report_attempting_full_context(
        self,
        recognizer: "Parser",
        decision: int,
        start_index: int,
        stop_index: int,
        conflicting_alts: Optional[frozenset[int]],
        configs: "ATNConfigSet",
    ) -> None:
        text = self._input_text(recognizer, start_index, stop_index)
        msg = f"report_attempting_full_context d={self._decision_description(recognizer, decision)}, input='{text}'"
        recognizer.notify_error_listeners(msg)

    @override
    def report_context_sensitivity(
        self,
        recognizer: "Parser",
        decision: int,
        start_index: int,
        stop_index: int,
        prediction: int,
        configs: "ATNConfigSet",
    ) -> None:
        text = self._input_text(recognizer, start_index, stop_index)
        msg = f"report_context_sensitivity d={self._decision_description(recognizer, decision)}, input='{text}'"
        recognizer.notify_error_listeners(msg)

    @staticmethod
    def _decision_description(recognizer: "Parser", decision: int) -> str:
        rule_index = recognizer.atn.decision_to_state[decision].rule_index
        if 0 <= rule_index < len(recognizer.rule_names):
            return f"{decision} ({recognizer.rule_names[rule_index]})"
        return str(decision)

    @staticmethod
    def _input_text(recognizer: "Parser", start_index: int, stop_index: int) -> str:
        stream = recognizer.token_stream
        return stream.get_text(stream.get(start_index), stream.get(stop_index))

    @staticmethod
    def _conflicting_alts(reported: Optional[frozenset[int]], configs: "ATNConfigSet") -> str:
        alts = reported if reported is not None else configs.alts
        return "{" + ", ".join(map(str, sorted(alts))) + "}"
