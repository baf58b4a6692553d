# module for building commands out of resolved words

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Collection, List, Optional, Sequence, Tuple

from lexer import ParseError, ParseErrorKind, REDIRECT_OPERATORS

logger = logging.getLogger(__name__)

# fd prefixes accepted in front of a redirect operator
STREAM_PREFIXES = {"1": "stdout", "2": "stderr"}


class RedirMode(enum.Enum):
    WRITE = ">"
    APPEND = ">>"

    @property
    def open_mode(self) -> str:
        # Both modes create a missing file; APPEND never truncates
        return "w" if self is RedirMode.WRITE else "a"

    @classmethod
    def from_operator(cls, op: str) -> "RedirMode":
        return cls(op)


@dataclass(frozen=True)
class Redirection:
    path: str
    mode: RedirMode = RedirMode.WRITE


@dataclass
class Command:
    """A simple command: argv[0] is ``executable``, redirections kept apart.

    ``stdout``/``stderr`` hold the redirect that wins for each stream;
    ``redirections`` keeps every redirect in line order so a superseded
    target is still created or truncated.
    """
    executable: str
    argv: List[str] = field(default_factory=list)
    stdout: Optional[Redirection] = None
    stderr: Optional[Redirection] = None
    redirections: List[Tuple[str, Redirection]] = field(default_factory=list, compare=False)

    def ordered_redirections(self) -> List[Tuple[str, Redirection]]:
        if self.redirections:
            return list(self.redirections)
        return [(stream, redir) for stream, redir in (("stdout", self.stdout), ("stderr", self.stderr)) if redir]


def build(
    words: Sequence[str],
    operators: Optional[Collection[int]] = None,
    prefixes: Optional[Collection[int]] = None,
) -> Optional[Command]:
    """Partition resolved words into executable, argv and redirections.

    ``operators`` lists the indices of words that came from operator tokens.
    Without it any ``>``/``>>`` word is treated as an operator; with it a
    quoted ``'>'`` stays an ordinary argument. ``prefixes`` does the same for
    bare ``1``/``2`` stream prefixes, so ``'2' > f`` keeps ``2`` as an argument.
    """
    if not words:
        return None

    def is_op(idx: int) -> bool:
        if operators is not None:
            return idx in operators
        return words[idx] in REDIRECT_OPERATORS

    def is_prefix(idx: int) -> bool:
        if prefixes is not None and idx not in prefixes:
            return False
        return not is_op(idx) and words[idx] in STREAM_PREFIXES

    if is_op(0):
        raise ParseError(ParseErrorKind.MISSING_TARGET, f"no command before '{words[0]}'")

    cmd = Command(executable=words[0])
    pending = "stdout"
    i = 1
    n = len(words)
    while i < n:
        word = words[i]
        if is_prefix(i) and i + 1 < n and is_op(i + 1):
            pending = STREAM_PREFIXES[word]
            i += 1
            continue
        if is_op(i):
            if i + 1 >= n or is_op(i + 1):
                raise ParseError(ParseErrorKind.MISSING_TARGET, f"expected a file after '{word}'")
            redir = Redirection(words[i + 1], RedirMode.from_operator(word))
            setattr(cmd, pending, redir)
            cmd.redirections.append((pending, redir))
            pending = "stdout"
            i += 2
            continue
        cmd.argv.append(word)
        i += 1
    logger.debug("built %r", cmd)
    return cmd


__all__ = ["Command", "RedirMode", "Redirection", "STREAM_PREFIXES", "build"]
