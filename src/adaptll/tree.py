# region License
# -----------------------------------------------------------------------------
# adaptll: tree.py
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

"""Rule contexts and the parse tree they form."""

from collections.abc import Iterator, Sequence
from typing import TYPE_CHECKING, ClassVar, Optional, TypeVar, Union

from ._misc import override
from .atn import INVALID_ALT_NUMBER
from .tokens import EOF, Token

if TYPE_CHECKING:
    from .errors import RecognitionError

__all__ = (
    "ParseTree",
    "TerminalNode",
    "ErrorNode",
    "RuleContext",
    "ParserRuleContext",
    "ParseTreeListener",
    "escape_whitespace",
)


_ContextT = TypeVar("_ContextT", bound="ParserRuleContext")


def escape_whitespace(text: str) -> str:
    return text.replace("\n", "\\n").replace("\r", "\\r").replace("\t", "\\t")


# ============================================================================
# region -------- Nodes --------
# ============================================================================


class ParseTree:
    """Base class for everything that can appear in a parse tree."""

    __slots__ = ()

    parent: Optional["ParserRuleContext"]

    def get_text(self) -> str:
        raise NotImplementedError

    def to_string_tree(self, rule_names: Optional[Sequence[str]] = None) -> str:
        raise NotImplementedError


class TerminalNode(ParseTree):
    """A leaf holding a token that was matched."""

    __slots__ = ("symbol", "parent")

    def __init__(self, symbol: Token, parent: Optional["ParserRuleContext"] = None) -> None:
        self.symbol = symbol
        self.parent = parent

    @override
    def get_text(self) -> str:
        return self.symbol.value

    @override
    def to_string_tree(self, rule_names: Optional[Sequence[str]] = None) -> str:
        if self.symbol.type == EOF:
            return "<EOF>"
        return escape_whitespace(self.symbol.value)

    @override
    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.symbol!r})"


class ErrorNode(TerminalNode):
    """A leaf holding a token consumed or conjured up during error recovery."""

    __slots__ = ()


# endregion


# ============================================================================
# region -------- Rule Contexts --------
# ============================================================================


class RuleContext(ParseTree):
    """One activation of a grammar rule.

    Extended Summary
    ----------------
    Contexts form a tree through their `parent` references. A context is linked to its parent when the rule is
    entered and that link is never changed afterwards, except by the rotation performed for left-recursive rules,
    which only ever moves a context one level down beneath a fresh one. Parent chains therefore end at the root and
    never cycle.

    Parameters
    ----------
    parent: Optional[RuleContext], default=None
        The invoking rule's context, or None for the outermost rule.
    invoking_state: int, default=-1
        Network state number the rule was invoked from. -1 for the outermost rule.
    """

    rule_index: ClassVar[int] = -1
    """Index of the grammar rule. Generated context classes override it."""

    def __init__(self, parent: Optional["RuleContext"] = None, invoking_state: int = -1) -> None:
        self.parent = parent
        self.invoking_state = invoking_state

    def depth(self) -> int:
        n = 0
        p: Optional[RuleContext] = self
        while p is not None:
            p = p.parent
            n += 1
        return n

    @property
    def is_empty(self) -> bool:
        """True if the context was not invoked by any state, i.e. it is the root."""

        return self.invoking_state == -1

    @property
    def alt_number(self) -> int:
        return INVALID_ALT_NUMBER

    @alt_number.setter
    def alt_number(self, value: int) -> None:
        pass

    def get_children(self) -> Iterator[ParseTree]:
        return iter(())

    @override
    def get_text(self) -> str:
        return "".join(child.get_text() for child in self.get_children())

    @override
    def to_string_tree(self, rule_names: Optional[Sequence[str]] = None) -> str:
        """Render the subtree in LISP-like form, e.g. ``(expr (expr 1) + (expr 2))``."""

        if rule_names is not None and 0 <= self.rule_index < len(rule_names):
            name = rule_names[self.rule_index]
        else:
            name = type(self).__name__
        if self.alt_number != INVALID_ALT_NUMBER:
            name = f"{name}:{self.alt_number}"

        children = [child.to_string_tree(rule_names) for child in self.get_children()]
        if not children:
            return name
        return f"({name} {' '.join(children)})"


class ParserRuleContext(RuleContext):
    """A rule activation as built by a parser: child nodes plus the first and last token it spans.

    Attributes
    ----------
    children: Optional[list[ParseTree]]
        Child nodes in input order. None until the first child is added, and always None when the parser does not
        build parse trees.
    start: Optional[Token]
        First token of the rule, set on entry.
    stop: Optional[Token]
        Last token of the rule, set on exit. For a rule that failed before consuming anything this may precede
        `start`.
    exception: Optional[RecognitionError]
        The error that forced the rule to return early, if any.
    """

    def __init__(self, parent: Optional["ParserRuleContext"] = None, invoking_state: int = -1) -> None:
        super().__init__(parent, invoking_state)
        self.children: Optional[list[ParseTree]] = None
        self.start: Optional[Token] = None
        self.stop: Optional[Token] = None
        self.exception: Optional[RecognitionError] = None

    def copy_from(self, ctx: "ParserRuleContext") -> None:
        """Take over the position and content of `ctx`. Used when a generated rule switches to a labeled subclass."""

        self.parent = ctx.parent
        self.invoking_state = ctx.invoking_state
        self.start = ctx.start
        self.stop = ctx.stop

        if ctx.children is not None:
            self.children = []
            for child in ctx.children:
                if isinstance(child, ErrorNode):
                    self.children.append(child)
                    child.parent = self

    def enter_rule(self, listener: "ParseTreeListener") -> None:
        """Rule-specific enter event. Generated contexts override this."""

    def exit_rule(self, listener: "ParseTreeListener") -> None:
        """Rule-specific exit event. Generated contexts override this."""

    # ----------------------------------------------------------------------
    # Building
    # ----------------------------------------------------------------------

    def add_child(self, child: Union["ParserRuleContext", TerminalNode]) -> Union["ParserRuleContext", TerminalNode]:
        if self.children is None:
            self.children = []
        self.children.append(child)
        return child

    def add_token_node(self, token: Token) -> TerminalNode:
        node = TerminalNode(token, self)
        self.add_child(node)
        return node

    def add_error_node(self, token: Token) -> ErrorNode:
        node = ErrorNode(token, self)
        self.add_child(node)
        return node

    def remove_last_child(self) -> None:
        if self.children:
            del self.children[-1]

    # ----------------------------------------------------------------------
    # Querying
    # ----------------------------------------------------------------------

    @override
    def get_children(self) -> Iterator[ParseTree]:
        return iter(self.children or ())

    @property
    def child_count(self) -> int:
        return len(self.children) if self.children else 0

    def get_child(self, i: int, node_type: Optional[type] = None) -> Optional[ParseTree]:
        """Return the `i`-th child, or the `i`-th child of type `node_type` if given. None if there is no such child."""

        if not self.children:
            return None
        if node_type is None:
            return self.children[i] if 0 <= i < len(self.children) else None

        matches = [child for child in self.children if isinstance(child, node_type)]
        return matches[i] if 0 <= i < len(matches) else None

    def get_tokens(self, token_type: int) -> list[TerminalNode]:
        return [
            child
            for child in self.get_children()
            if isinstance(child, TerminalNode) and not isinstance(child, ErrorNode) and child.symbol.type == token_type
        ]

    def get_token(self, token_type: int, i: int) -> Optional[TerminalNode]:
        tokens = self.get_tokens(token_type)
        return tokens[i] if 0 <= i < len(tokens) else None

    def get_rule_contexts(self, ctx_type: type[_ContextT]) -> list[_ContextT]:
        return [child for child in self.get_children() if isinstance(child, ctx_type)]

    def get_rule_context(self, i: int, ctx_type: type[_ContextT]) -> Optional[_ContextT]:
        contexts = self.get_rule_contexts(ctx_type)
        return contexts[i] if 0 <= i < len(contexts) else None

    @property
    def source_interval(self) -> tuple[int, int]:
        """Token indices (start, stop) covered by this context. (-1, -2) if it covers nothing."""

        if self.start is None or self.stop is None:
            return (-1, -2)
        return (self.start.index, self.stop.index)

    @override
    def __repr__(self) -> str:
        return f"<{type(self).__name__} rule={self.rule_index} invoking_state={self.invoking_state}>"


# endregion


# ============================================================================
# region -------- Listeners --------
# ============================================================================


class ParseTreeListener:
    """Receives events while the tree is built, if registered with `Parser.add_parse_listener`.

    Events for a rule arrive in order: enter before any child event, exit after all of them. They are fired as parsing
    proceeds, so the sequence can differ from a later walk of the finished tree. In particular, for a left-recursive
    rule the enclosing context is entered after its first child has been exited.
    """

    def enter_every_rule(self, ctx: ParserRuleContext) -> None:
        pass

    def exit_every_rule(self, ctx: ParserRuleContext) -> None:
        pass

    def visit_terminal(self, node: TerminalNode) -> None:
        pass

    def visit_error_node(self, node: ErrorNode) -> None:
        pass


# endregion
