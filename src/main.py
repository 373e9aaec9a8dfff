#!/usr/bin/env python3

# Entry of tinysh

from __future__ import annotations

import argparse
import os
import sys
from typing import Optional

try:
    import readline  # type: ignore
except Exception:  # pragma: no cover - fallback when readline unavailable
    readline = None

READLINE_ACTIVE = bool(readline)

EXIT_COMMAND = "exit"

from groups import MAX_INPUT
from ops import ShellSession, execute_line  # local module in the same folder


def _use_color() -> bool:
    return sys.stdout.isatty() and os.environ.get("NO_COLOR") is None


def prompt() -> str:
    """Current directory followed by ``$``; bold blue on a color terminal."""
    try:
        cwd = os.getcwd()
    except OSError:
        return "$ "
    if _use_color():
        return f"\033[1;34m{cwd}\033[0m$ "
    return f"{cwd}$ "


def setup_readline() -> None:
    if not READLINE_ACTIVE:
        return
    try:
        readline.parse_and_bind("set editing-mode emacs")
        readline.parse_and_bind("Control-l: clear-screen")
    except Exception:
        pass


def setup_stdin() -> None:
    # Undecodable bytes survive as surrogates and are re-encoded unchanged
    # when handed to a program
    reconfigure = getattr(sys.stdin, "reconfigure", None)
    if reconfigure is None:
        return
    try:
        reconfigure(errors="surrogateescape")
    except (ValueError, OSError):
        pass


def read_line() -> Optional[str]:
    """Read one line, or None at end of input."""
    try:
        line = input(prompt())
    except EOFError:
        print()
        return None
    except UnicodeDecodeError as e:
        print(f"tinysh: error: {e}", file=sys.stderr)
        return ""
    return line[:MAX_INPUT - 1]


def repl(session: Optional[ShellSession] = None) -> int:
    session = session if session is not None else ShellSession(inherit_env=True)
    setup_readline()
    setup_stdin()
    session.reaper.install()
    try:
        while True:
            # Background children whose SIGCHLD raced their registration
            session.reaper.reap()
            try:
                line = read_line()
            except KeyboardInterrupt:
                # Ctrl-C at prompt -> new line and continue
                print()
                continue
            if line is None or line == EXIT_COMMAND:
                break
            try:
                execute_line(line, session)
            except KeyboardInterrupt:
                print()
                session.last_status = 130
            except Exception as e:
                print(f"tinysh: error: {e}", file=sys.stderr)
                session.last_status = 1
    finally:
        session.reaper.uninstall()
    return 0


def parse_args(args=None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="tinysh - a small interactive command interpreter",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Operators, outermost first:
  a ; b        run a, then b
  a && b       run b only if a succeeded
  a || b       run b only if a failed
  a | b        connect a's output to b's input
  a &          run in the background (last pipeline stage only)

Builtins: cd [path], pwd. Type 'exit' or press Ctrl-D to quit.
"""
    )
    return parser.parse_args(args)


def main() -> None:
    parse_args()
    sys.exit(repl())


if __name__ == "__main__":
    main()
