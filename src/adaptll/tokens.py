# region License
# -----------------------------------------------------------------------------
# adaptll: tokens.py
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

from collections.abc import Iterable, Iterator
from typing import Any, Final, Optional, Protocol

from ._misc import override

__all__ = ("EOF", "EPSILON", "INVALID_TYPE", "MIN_USER_TOKEN_TYPE", "Token", "TokenStream", "BufferedTokenStream")


EOF: Final = -1
"""Token type of the end-of-input token."""

INVALID_TYPE: Final = 0
"""Token type that never matches anything."""

EPSILON: Final = -2
"""Pseudo token type marking "the end of the rule can be reached" in look-ahead sets."""

MIN_USER_TOKEN_TYPE: Final = 1


# ============================================================================
# region -------- Token Structures --------
# ============================================================================


class Token:
    """Representation of a single token.

    Attributes
    ----------
    type: int
        Token type. Reserved values are `EOF` (-1) and `INVALID_TYPE` (0).
    value: str
        Matched text.
    lineno: int
        Line number of the first character.
    column: int
        Column of the first character within its line.
    index: int
        Position of the token within its token stream, or -1 for a token that was conjured up during error recovery
        and never came from the input.
    """

    __slots__ = ("type", "value", "lineno", "column", "index")

    def __init__(
        self,
        type: int,  # noqa: A002
        value: str = "",
        *,
        lineno: int = 0,
        column: int = -1,
        index: int = -1,
    ) -> None:
        self.type = type
        self.value = value
        self.lineno = lineno
        self.column = column
        self.index = index

    @override
    def __repr__(self) -> str:
        return (
            f"Token(type={self.type!r}, value={self.value!r}, lineno={self.lineno}, column={self.column}, "
            f"index={self.index})"
        )

    @classmethod
    def missing(cls, type: int, value: str, like: Optional["Token"] = None) -> "Token":  # noqa: A002
        """Conjure up a token that is not in the input, positioned at `like`. Its index is always -1."""

        if like is None:
            return cls(type, value)
        return cls(type, value, lineno=like.lineno, column=like.column)


# endregion


# ============================================================================
# region -------- Token Streams --------
# ============================================================================


class TokenStream(Protocol):
    """What the parser needs from a source of tokens."""

    @property
    def index(self) -> int: ...

    def get(self, i: int) -> Token: ...

    def LT(self, k: int) -> Optional[Token]: ...  # noqa: N802

    def LA(self, k: int) -> int: ...  # noqa: N802

    def consume(self) -> None: ...

    def seek(self, index: int) -> None: ...

    def get_text(self, start: Token, stop: Token) -> str: ...


class BufferedTokenStream:
    """A token stream over any iterable of tokens, fetched lazily and kept in a buffer.

    Extended Summary
    ----------------
    Tokens are numbered as they are pulled from the source. When the source runs dry, a single EOF token is
    synthesized at the position of the last real token, so the stream always ends with exactly one EOF.

    Parameters
    ----------
    tokens: Iterable[Any]
        Source of tokens. Anything with `type` and `value` attributes works, but the stream writes the `index`
        attribute of every token it buffers.
    """

    def __init__(self, tokens: Iterable[Any]) -> None:
        self._source: Iterator[Any] = iter(tokens)
        self._tokens: list[Token] = []
        self._p = 0
        self._fetched_eof = False

    @property
    def index(self) -> int:
        return self._p

    def __len__(self) -> int:
        return len(self._tokens)

    def _sync(self, i: int) -> bool:
        """Make sure index `i` is buffered. Return False if the stream ends before it."""

        n = i - len(self._tokens) + 1
        if n > 0:
            return self._fetch(n) >= n
        return True

    def _fetch(self, n: int) -> int:
        for i in range(n):
            if self._fetched_eof:
                return i

            tok = next(self._source, None)
            if tok is None:
                last = self._tokens[-1] if self._tokens else None
                tok = Token.missing(EOF, "<EOF>", like=last)

            tok.index = len(self._tokens)
            self._tokens.append(tok)
            if tok.type == EOF:
                self._fetched_eof = True
        return n

    def get(self, i: int) -> Token:
        if not self._sync(i) and i >= len(self._tokens):
            msg = f"token index {i} out of range 0..{len(self._tokens) - 1}"
            raise IndexError(msg)
        return self._tokens[i]

    def LT(self, k: int) -> Optional[Token]:  # noqa: N802
        """Look at the token `k` positions ahead (k >= 1) or behind (k <= -1). LT(0) is undefined and gives None."""

        if k == 0:
            return None
        if k < 0:
            i = self._p + k
            return self._tokens[i] if i >= 0 else None

        i = self._p + k - 1
        self._sync(i)
        if i >= len(self._tokens):
            return self._tokens[-1]
        return self._tokens[i]

    def LA(self, k: int) -> int:  # noqa: N802
        tok = self.LT(k)
        return tok.type if tok is not None else INVALID_TYPE

    def consume(self) -> None:
        if self.LA(1) == EOF:
            msg = "cannot consume EOF"
            raise ValueError(msg)
        self._p += 1
        self._sync(self._p)

    def seek(self, index: int) -> None:
        self._sync(index)
        self._p = min(index, len(self._tokens) - 1) if self._tokens else 0

    def get_text(self, start: Token, stop: Token) -> str:
        """Concatenate the text of the tokens from `start` through `stop`, both inclusive, excluding EOF."""

        if start is None or stop is None or start.index < 0 or stop.index < 0:
            return ""

        self._sync(stop.index)
        parts = []
        for tok in self._tokens[start.index : stop.index + 1]:
            if tok.type == EOF:
                break
            parts.append(tok.value)
        return "".join(parts)


# endregion
