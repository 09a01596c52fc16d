"""Base class shared by generated recognizers: grammar metadata, naming and the error listener registry."""

from collections.abc import Iterable
from typing import TYPE_CHECKING, ClassVar, Optional

from .error_listeners import ConsoleErrorListener, ErrorListener, ProxyErrorListener
from .tokens import EOF, Token
from .tree import escape_whitespace

if TYPE_CHECKING:
    from .atn import ATN
    from .tree import RuleContext

__all__ = ("Recognizer",)


class Recognizer:
    """Shared recognizer behavior.

    Generated subclasses supply the grammar through the class attributes below.

    Attributes
    ----------
    state: int
        The network state the recognizer is currently in. Generated rule bodies assign it before every match and
        decision so errors and look-ahead queries know where parsing stands.
    """

    # ---- These attributes may be redefined in subclasses.
    if TYPE_CHECKING:
        atn: ClassVar[ATN]
        """The grammar's network. Must be assigned by a generated subclass."""

    rule_names: ClassVar[tuple[str, ...]] = ()
    literal_names: ClassVar[tuple[Optional[str], ...]] = ()
    """Display names like ``"';'"``, indexed by token type."""

    symbolic_names: ClassVar[tuple[Optional[str], ...]] = ()
    """Display names like ``"SEMI"``, indexed by token type."""

    def __init__(self) -> None:
        self.state = -1
        self._listeners: list[ErrorListener] = [ConsoleErrorListener.INSTANCE]

    # ----------------------------------------------------------------------
    # Error listeners
    # ----------------------------------------------------------------------

    def add_error_listener(self, listener: ErrorListener) -> None:
        self._listeners.append(listener)

    def remove_error_listener(self, listener: ErrorListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def remove_error_listeners(self) -> None:
        self._listeners.clear()

    @property
    def error_listeners(self) -> list[ErrorListener]:
        return list(self._listeners)

    @property
    def error_listener_dispatch(self) -> ProxyErrorListener:
        return ProxyErrorListener(self._listeners)

    # ----------------------------------------------------------------------
    # Naming
    # ----------------------------------------------------------------------

    @property
    def rule_index_map(self) -> dict[str, int]:
        return {name: i for i, name in enumerate(self.rule_names)}

    def get_token_display_name(self, token_type: int) -> str:
        """A readable name for `token_type`: its literal if it has one, else its symbolic name, else the number."""

        if token_type == EOF:
            return "<EOF>"
        if 0 <= token_type < len(self.literal_names) and self.literal_names[token_type]:
            return self.literal_names[token_type]
        if 0 <= token_type < len(self.symbolic_names) and self.symbolic_names[token_type]:
            return self.symbolic_names[token_type]
        return str(token_type)

    def format_token_set(self, token_types: Iterable[int]) -> str:
        """Render a set of token types for an error message: ``X`` for one, ``{X, Y}`` for several."""

        names = [self.get_token_display_name(t) for t in sorted(token_types)]
        if not names:
            return "{}"
        if len(names) == 1:
            return names[0]
        return "{" + ", ".join(names) + "}"

    def get_token_error_display(self, token: Optional[Token]) -> str:
        """Quote the text of `token` for an error message, with whitespace escaped."""

        if token is None:
            return "<no token>"

        text = token.value
        if not text:
            text = "<EOF>" if token.type == EOF else f"<{token.type}>"
        return f"'{escape_whitespace(text)}'"

    # ----------------------------------------------------------------------
    # Semantic hooks
    # ----------------------------------------------------------------------

    def sempred(self, localctx: Optional["RuleContext"], rule_index: int, pred_index: int) -> bool:
        """Evaluate semantic predicate `pred_index` of rule `rule_index`. Generated subclasses override this."""

        return True

    def precpred(self, localctx: Optional["RuleContext"], precedence: int) -> bool:
        return True
