#!/usr/bin/env python3

# Entry of tinysh

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Optional

try:
    import readline  # type: ignore
except ImportError:  # pragma: no cover - readline missing on some platforms
    readline = None

READLINE_ACTIVE = bool(readline)

DEFAULT_PROMPT = "$ "
PROMPT_ENV = "TINYSH_PROMPT"
DEBUG_ENV = "TINYSH_DEBUG"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

from ops import ShellState, evaluate  # local module in the same folder


_log_handler: Optional[logging.Handler] = None


def configure_logging(debug: bool = False) -> logging.Handler:
    """Send log records to stderr; quiet unless debugging.

    Calling it again replaces the handler installed by the previous call and
    leaves any other root handlers alone.
    """
    global _log_handler
    root = logging.getLogger()
    if _log_handler is not None:
        root.removeHandler(_log_handler)
    _log_handler = logging.StreamHandler(sys.stderr)
    _log_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(_log_handler)
    root.setLevel(logging.DEBUG if debug else logging.WARNING)
    return _log_handler


def debug_from_env() -> bool:
    return os.environ.get(DEBUG_ENV, "").lower() in ("1", "true", "yes", "on")


def get_prompt(override: Optional[str] = None) -> str:
    if override is not None:
        return override
    return os.environ.get(PROMPT_ENV, DEFAULT_PROMPT)


def setup_readline() -> None:
    if not READLINE_ACTIVE:
        return
    try:
        readline.parse_and_bind("set editing-mode emacs")
        readline.parse_and_bind("Control-l: clear-screen")
    except Exception:
        logging.getLogger(__name__).debug("readline configuration failed", exc_info=True)


def step(state: ShellState, line: str) -> ShellState:
    """Evaluate one line, reporting anything unexpected instead of dying."""
    try:
        return evaluate(state, line)
    except KeyboardInterrupt:
        # Ctrl-C while a line runs -> abandon it and keep the loop alive
        print()
        return state
    except Exception as e:
        logging.getLogger(__name__).debug("unhandled error for %r", line, exc_info=True)
        print(f"tinysh: error: {e}")
        return state


def repl(state: Optional[ShellState] = None, prompt: Optional[str] = None) -> int:
    state = state or ShellState.initial()
    prompt = get_prompt(prompt)
    setup_readline()

    while state.exit_code is None:
        try:
            line = input(prompt)
        except EOFError:
            # Ctrl-D -> exit
            print()
            return 0
        except KeyboardInterrupt:
            # Ctrl-C at prompt -> new line and continue
            print()
            continue
        state = step(state, line)

    return state.exit_code


def run_command(line: str, state: Optional[ShellState] = None) -> int:
    state = step(state or ShellState.initial(), line)
    return state.exit_code if state.exit_code is not None else 0


def parse_args(args=None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="tinysh",
        description="tinysh - a minimal interactive command interpreter",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Examples:
  tinysh                   # Start an interactive session
  tinysh -c 'echo hi > f'  # Run a single line and exit
  tinysh --prompt '% '     # Use a custom prompt

Environment:
  {PROMPT_ENV}   prompt shown before each line (default "{DEFAULT_PROMPT}")
  {DEBUG_ENV}    set to 1 to enable debug logging on stderr
"""
    )

    parser.add_argument(
        "-c", "--command",
        metavar="LINE",
        help="Evaluate LINE and exit with its status"
    )
    parser.add_argument(
        "--prompt",
        metavar="TEXT",
        help=f"Prompt text (overrides ${PROMPT_ENV})"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Log tokens, commands and PATH lookups to stderr"
    )

    return parser.parse_args(args)


def main(argv=None) -> None:
    args = parse_args(argv)
    configure_logging(args.debug or debug_from_env())
    if args.command is not None:
        sys.exit(run_command(args.command))
    sys.exit(repl(prompt=args.prompt))


if __name__ == "__main__":
    main()
