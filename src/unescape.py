"""Quote and escape resolution for a single raw token."""
from __future__ import annotations

from typing import List, Optional, Union

from lexer import RawToken

# Characters a backslash can escape inside double quotes
DOUBLE_QUOTE_ESCAPABLE = ('"', '\\')


def resolve(token: Union[RawToken, str]) -> str:
    """Turn a raw token into the literal word it denotes.

    - Outside quotes a backslash escapes exactly the next character.
    - Inside single quotes nothing is special except the closing quote.
    - Inside double quotes a backslash only escapes ``"`` and ``\\``; before
      any other character both are kept.

    Quote state carries across the whole token, so ``a'b c'"d"`` is one word.
    Never raises: a dangling backslash is kept and an unclosed quote simply
    runs to the end of the token.
    """
    text = token.text if isinstance(token, RawToken) else token
    out: List[str] = []
    quote: Optional[str] = None
    escaped = False
    n = len(text)
    for i, ch in enumerate(text):
        if escaped:
            out.append(ch)
            escaped = False
            continue
        if quote == "'":
            if ch == "'":
                quote = None
            else:
                out.append(ch)
            continue
        if ch == '\\':
            nxt = text[i + 1] if i + 1 < n else None
            if nxt is None:
                out.append(ch)
            elif quote is None or nxt in DOUBLE_QUOTE_ESCAPABLE:
                escaped = True
            else:
                out.append(ch)
            continue
        if ch in ("'", '"'):
            if quote is None:
                quote = ch
                continue
            if quote == ch:
                quote = None
                continue
        out.append(ch)
    return ''.join(out)


def resolve_all(tokens: List[RawToken]) -> List[str]:
    return [resolve(t) for t in tokens]


__all__ = ["resolve", "resolve_all"]
