from __future__ import annotations

import functools
import logging
import os
import re
import stat
import subprocess
import sys
from contextlib import ExitStack
from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Callable, Dict, IO, List, Mapping, Optional, Tuple

from command import STREAM_PREFIXES, Command, build
from lexer import ParseError, tokenize
from unescape import resolve

logger = logging.getLogger(__name__)

EXECUTABLE_BITS = stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH
# exit accepts only plain ASCII decimal codes
EXIT_CODE_RE = re.compile(r"[+-]?[0-9]+")


@dataclass(frozen=True)
class ShellState:
    """Value threaded through every evaluation step.

    ``current_directory`` is always an existing canonical absolute path.
    ``exit_code`` stays None while the loop should keep going.
    """
    current_directory: str
    exit_code: Optional[int] = None

    @classmethod
    def initial(cls, directory: Optional[str] = None) -> "ShellState":
        return cls(current_directory=os.path.realpath(directory or os.getcwd()))

    def resolve_path(self, path: str) -> str:
        # Relative paths are taken against the tracked directory, never the process cwd
        return os.path.join(self.current_directory, os.path.expanduser(path))


# builtin(state, argv, out, err) -> new state
Builtin = Callable[[ShellState, List[str], IO[str], IO[str]], ShellState]


# ---- PATH lookup ----

def search_path() -> List[str]:
    value = os.environ.get("PATH", "")
    return [d for d in value.split(os.pathsep) if d]


def is_executable_file(path: str) -> bool:
    try:
        st = os.stat(path)
    except OSError:
        return False
    return stat.S_ISREG(st.st_mode) and bool(st.st_mode & EXECUTABLE_BITS)


def find_executable(name: str) -> Optional[str]:
    """Return the first PATH entry holding an executable regular file ``name``."""
    if not name or os.sep in name:
        return None
    for directory in search_path():
        candidate = os.path.join(directory, name)
        if is_executable_file(candidate):
            logger.debug("resolved %s -> %s", name, candidate)
            return candidate
    return None


# ---- Builtins ----

def builtin_echo(state: ShellState, argv: List[str], out: IO[str], err: IO[str]) -> ShellState:
    out.write(" ".join(argv) + "\n")
    return state


def builtin_exit(state: ShellState, argv: List[str], out: IO[str], err: IO[str]) -> ShellState:
    if not argv:
        return replace(state, exit_code=0)
    if not EXIT_CODE_RE.fullmatch(argv[0]):
        err.write(f"exit: {argv[0]}: numeric argument required\n")
        return state
    return replace(state, exit_code=int(argv[0]))


def builtin_cd(state: ShellState, argv: List[str], out: IO[str], err: IO[str]) -> ShellState:
    target = argv[0] if argv else "~"
    if target == "~" or target.startswith("~/"):
        path = os.path.expanduser(target)
    else:
        path = os.path.join(state.current_directory, target)
    if not os.path.exists(path):
        err.write(f"cd: {target}: No such file or directory\n")
        return state
    if not os.path.isdir(path):
        err.write(f"cd: {target}: Not a directory\n")
        return state
    if not os.access(path, os.X_OK):
        err.write(f"cd: {target}: Permission denied\n")
        return state
    try:
        canonical = os.path.realpath(path, strict=True)
    except OSError as e:
        err.write(f"cd: {target}: {e.strerror or e}\n")
        return state
    return replace(state, current_directory=canonical)


def builtin_pwd(state: ShellState, argv: List[str], out: IO[str], err: IO[str]) -> ShellState:
    out.write(state.current_directory + "\n")
    return state


def builtin_type(state: ShellState, argv: List[str], out: IO[str], err: IO[str]) -> ShellState:
    for name in argv:
        if name in builtin_registry():
            out.write(f"{name} is a shell builtin\n")
            continue
        path = find_executable(name)
        if path:
            out.write(f"{name} is {path}\n")
        else:
            err.write(f"{name}: not found\n")
    return state


def builtin_which(state: ShellState, argv: List[str], out: IO[str], err: IO[str]) -> ShellState:
    for name in argv:
        path = find_executable(name)
        if path:
            out.write(path + "\n")
        else:
            err.write(f"{name}: not found\n")
    return state


def builtin_help(state: ShellState, argv: List[str], out: IO[str], err: IO[str]) -> ShellState:
    out.write("Builtin commands:\n")
    for name, (_, description) in sorted(BUILTIN_TABLE.items()):
        out.write(f"  {name:<6} {description}\n")
    return state


BUILTIN_TABLE: Dict[str, Tuple[Builtin, str]] = {
    "echo": (builtin_echo, "print arguments"),
    "exit": (builtin_exit, "leave the shell with an optional status"),
    "cd": (builtin_cd, "change the current directory"),
    "pwd": (builtin_pwd, "print the current directory"),
    "type": (builtin_type, "describe how a name would be run"),
    "which": (builtin_which, "locate an executable on PATH"),
    "help": (builtin_help, "list builtin commands"),
}


@functools.lru_cache(maxsize=None)
def builtin_registry() -> Mapping[str, Builtin]:
    """Name -> builtin mapping, built once on first lookup and read-only after."""
    return MappingProxyType({name: func for name, (func, _) in BUILTIN_TABLE.items()})


# ---- Dispatch ----

def _open_redirections(stack: ExitStack, state: ShellState, command: Command) -> Tuple[Optional[IO[str]], Optional[IO[str]]]:
    """Open every redirect target in line order; the last one per stream wins."""
    streams: Dict[str, Optional[IO[str]]] = {"stdout": None, "stderr": None}
    for stream, redir in command.ordered_redirections():
        path = state.resolve_path(redir.path)
        logger.debug("opening %s for %s (%s)", path, stream, redir.mode.name)
        streams[stream] = stack.enter_context(open(path, redir.mode.open_mode))
    return streams["stdout"], streams["stderr"]


def _report_os_error(name: str, e: OSError) -> None:
    target = e.filename if e.filename else name
    sys.stdout.write(f"tinysh: {target}: {e.strerror or e}\n")
    sys.stdout.flush()


def run_builtin(state: ShellState, command: Command, func: Builtin) -> ShellState:
    with ExitStack() as stack:
        try:
            out, err = _open_redirections(stack, state, command)
        except OSError as e:
            _report_os_error(command.executable, e)
            return state
        new_state = func(state, list(command.argv), out or sys.stdout, err or sys.stdout)
        sys.stdout.flush()
        return new_state


def run_external(state: ShellState, command: Command, path: str) -> ShellState:
    with ExitStack() as stack:
        try:
            out, err = _open_redirections(stack, state, command)
            # Keep our own buffered output ahead of the child's
            sys.stdout.flush()
            completed = subprocess.run(
                [command.executable, *command.argv],
                executable=path,
                cwd=state.current_directory,
                stdout=out,
                stderr=err,
                check=False,
            )
        except OSError as e:
            _report_os_error(command.executable, e)
            return state
        except KeyboardInterrupt:
            # SIGINT during command; the child got it too
            sys.stdout.write("\n")
            sys.stdout.flush()
            return state
    logger.debug("%s exited with %s", command.executable, completed.returncode)
    return state


def dispatch(state: ShellState, command: Command) -> ShellState:
    func = builtin_registry().get(command.executable)
    if func is not None:
        return run_builtin(state, command, func)
    path = find_executable(command.executable)
    if path is not None:
        return run_external(state, command, path)
    sys.stdout.write(f"{command.executable}: command not found\n")
    sys.stdout.flush()
    return state


def parse_line(line: str) -> Optional[Command]:
    """Tokenize, resolve and build ``line``; raises ParseError."""
    tokens = tokenize(line)
    words = [t.text if t.is_operator else resolve(t) for t in tokens]
    operators = {i for i, t in enumerate(tokens) if t.is_operator}
    # Only a bare, unquoted 1 or 2 may select the stream of the next redirect
    prefixes = {
        i for i, t in enumerate(tokens)
        if t.kind == 'WORD' and t.quoting == 'unquoted' and t.text in STREAM_PREFIXES
    }
    return build(words, operators, prefixes)


def evaluate(state: ShellState, line: str) -> ShellState:
    try:
        command = parse_line(line)
    except ParseError as e:
        sys.stdout.write(f"tinysh: {e}\n")
        sys.stdout.flush()
        return state
    if command is None:
        return state
    return dispatch(state, command)


__all__ = [
    "Builtin",
    "ShellState",
    "builtin_registry",
    "dispatch",
    "evaluate",
    "find_executable",
    "parse_line",
    "search_path",
]
