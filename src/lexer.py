"""Tokenizer for tinysh input lines.

Splits a raw line into word and redirect-operator tokens. Words keep their
quotes and backslashes verbatim; resolving them into literal strings is the
job of ``unescape.resolve``.

Grammar (the whole supported subset):

    line     := ws* (item ws*)*
    item     := word | '>>' | '>'
    word     := (quoted | raw)+
    quoted   := "'" ... "'" | '"' ... '"'
    raw      := run of chars that are not unescaped ws, quotes or '>'
"""
from __future__ import annotations

import enum
import logging
from typing import List, Optional

logger = logging.getLogger(__name__)

QUOTES = ("'", '"')
REDIRECT_OPERATORS = (">>", ">")
# Unquoted metacharacters of syntax we do not implement (pipes, lists,
# subshells, input redirection, command substitution, globs).
UNSUPPORTED = frozenset("|&;<()`*?")


class ParseErrorKind(enum.Enum):
    QUOTE_MISSING = "quote missing"
    UNKNOWN_TOKEN = "unknown token"
    MISSING_TARGET = "missing redirection target"


class ParseError(Exception):
    """Raised when a line cannot be turned into a command."""

    def __init__(self, kind: ParseErrorKind, detail: str = "", position: Optional[int] = None) -> None:
        self.kind = kind
        self.detail = detail
        self.position = position
        message = kind.value
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class RawToken:
    def __init__(self, kind: str, text: str, start: int, quoting: str = 'unquoted') -> None:
        # kind in { 'WORD', 'OP' }
        # quoting in { 'unquoted', 'single', 'double' }, the first quoted run wins
        self.kind = kind
        self.text = text
        self.start = start
        self.quoting = quoting

    @property
    def end(self) -> int:
        return self.start + len(self.text)

    @property
    def is_operator(self) -> bool:
        return self.kind == 'OP'

    def __eq__(self, other: object) -> bool:
        if isinstance(other, RawToken):
            return (self.kind, self.text, self.start, self.quoting) == (
                other.kind, other.text, other.start, other.quoting)
        return NotImplemented

    def __repr__(self) -> str:
        return f"RawToken({self.kind!r}, {self.text!r}, {self.start}, {self.quoting!r})"


def _scan_quoted(line: str, i: int) -> int:
    """Return the index just past the quote that closes the run opened at ``i``."""
    quote = line[i]
    n = len(line)
    j = i + 1
    while j < n:
        ch = line[j]
        if ch == '\\' and quote == '"':
            j += 2
            continue
        if ch == quote:
            return j + 1
        j += 1
    raise ParseError(ParseErrorKind.QUOTE_MISSING, f"unterminated {quote} starting at column {i + 1}", i)


def _scan_raw(line: str, i: int) -> int:
    """Return the index just past the raw run starting at ``i`` (may be ``i`` itself)."""
    n = len(line)
    j = i
    while j < n:
        ch = line[j]
        if ch == '\\':
            # A trailing backslash has nothing to escape and stays in the run
            j = min(j + 2, n)
            continue
        if ch.isspace() or ch in QUOTES or ch == '>':
            break
        if ch in UNSUPPORTED:
            raise ParseError(ParseErrorKind.UNKNOWN_TOKEN, repr(line[j:]), j)
        j += 1
    return j


def _scan_word(line: str, i: int) -> RawToken:
    n = len(line)
    start = i
    quoting = 'unquoted'
    while i < n:
        ch = line[i]
        if ch in QUOTES:
            if quoting == 'unquoted':
                quoting = 'single' if ch == "'" else 'double'
            i = _scan_quoted(line, i)
            continue
        end = _scan_raw(line, i)
        if end == i:
            break
        i = end
    return RawToken('WORD', line[start:i], start, quoting)


def tokenize(line: str) -> List[RawToken]:
    """Split ``line`` into raw word and operator tokens.

    Raises ParseError(QUOTE_MISSING) when the line ends inside a quote and
    ParseError(UNKNOWN_TOKEN) when it contains syntax outside the grammar.
    """
    tokens: List[RawToken] = []
    i = 0
    n = len(line)
    while i < n:
        ch = line[i]
        if ch.isspace():
            i += 1
            continue
        if ch == '>':
            op = '>>' if line.startswith('>>', i) else '>'
            tokens.append(RawToken('OP', op, i))
            i += len(op)
            continue
        token = _scan_word(line, i)
        if not token.text:
            # Nothing in the grammar matched at this position
            raise ParseError(ParseErrorKind.UNKNOWN_TOKEN, repr(line[i:]), i)
        tokens.append(token)
        i = token.end
    logger.debug("tokenized %r into %r", line, tokens)
    return tokens


def token_texts(tokens: List[RawToken]) -> List[str]:
    return [t.text for t in tokens]


__all__ = [
    "ParseError",
    "ParseErrorKind",
    "RawToken",
    "REDIRECT_OPERATORS",
    "tokenize",
    "token_texts",
]
