from __future__ import annotations

import os
import signal
import sys
from typing import Dict, List, Optional, Sequence, Tuple

from command import NOT_BUILTIN, run_builtin
from groups import AND, OR, SEQUENCE, CommandGroup, Pipeline, parse_pipeline, split_tokens
from reaper import Reaper

# Child exit statuses when the program cannot be run
EXIT_NOT_FOUND = 127
EXIT_NOT_EXECUTABLE = 126


class ShellSession:
    """Holds session-wide shell context: environment, reaper and last status."""

    def __init__(self, inherit_env: bool = True, reaper: Optional[Reaper] = None) -> None:
        # Environment handed to every external program
        self.env: Dict[str, str] = dict(os.environ) if inherit_env else {}
        self.reaper: Reaper = reaper if reaper is not None else Reaper()
        self.last_status: int = 0
        self.last_background_pid: Optional[int] = None


def _report(what: str, err: object) -> None:
    sys.stderr.write(f"tinysh: {what}: {err}\n")
    sys.stderr.flush()


def _close_fds(fds: Sequence[int]) -> None:
    for fd in fds:
        try:
            os.close(fd)
        except OSError:
            pass


# --------- Process helpers ---------

def exit_code(status: Optional[int]) -> int:
    """Reduce a raw wait status to an exit code; anything abnormal is 1."""
    if status is not None and os.WIFEXITED(status):
        return os.WEXITSTATUS(status)
    return 1


def wait_for(pid: int) -> Optional[int]:
    """Block until ``pid`` terminates and return its raw wait status.

    The wait is restarted whenever a signal handler interrupts it (the reaper
    on SIGCHLD, or Ctrl-C: a foreground wait cannot be cancelled).
    """
    while True:
        try:
            _, status = os.waitpid(pid, 0)
            return status
        except (InterruptedError, KeyboardInterrupt):
            continue
        except ChildProcessError:
            # Claimed by someone else; the status is gone
            return None


def _exec_child(argv: List[str], session: ShellSession, stdin_fd: Optional[int],
                stdout_fd: Optional[int], pipe_fds: Sequence[int]) -> None:
    """Body of a forked stage. Never returns."""
    status = 1
    try:
        # The interpreter ignores SIGPIPE; programs expect the default
        signal.signal(signal.SIGPIPE, signal.SIG_DFL)
        signal.signal(signal.SIGCHLD, signal.SIG_DFL)
        if stdin_fd is not None:
            os.dup2(stdin_fd, 0)
        if stdout_fd is not None:
            os.dup2(stdout_fd, 1)
        # Every pipe end not bound to this stage must go, or a reader
        # downstream never sees end-of-stream.
        _close_fds(pipe_fds)

        if not argv:
            status = 0
            return
        out = os.fdopen(1, "w", closefd=False)
        rc = run_builtin(argv, out)
        if rc is not NOT_BUILTIN:
            status = rc
            return
        try:
            os.execvpe(argv[0], argv, session.env)
        except FileNotFoundError:
            sys.stderr.write(f"tinysh: {argv[0]}: command not found\n")
            status = EXIT_NOT_FOUND
        except OSError as e:
            sys.stderr.write(f"tinysh: {argv[0]}: {e.strerror}\n")
            status = EXIT_NOT_EXECUTABLE
    finally:
        try:
            sys.stderr.flush()
        finally:
            os._exit(status)


def _spawn(argv: List[str], session: ShellSession, stdin_fd: Optional[int] = None,
           stdout_fd: Optional[int] = None, pipe_fds: Sequence[int] = ()) -> int:
    # Unflushed output would otherwise be written twice, once by the child
    sys.stdout.flush()
    sys.stderr.flush()
    pid = os.fork()
    if pid == 0:
        _exec_child(argv, session, stdin_fd, stdout_fd, pipe_fds)
    return pid


def _detach(pids: List[int], session: ShellSession) -> int:
    for pid in pids:
        session.reaper.track(pid)
    session.last_background_pid = pids[-1]
    sys.stdout.write(f"[{pids[-1]}]\n")
    sys.stdout.flush()
    return 0


# --------- Pipeline execution ---------

def _run_simple(cmd: CommandGroup, background: bool, session: ShellSession) -> int:
    if not cmd.parts:
        return 0
    rc = run_builtin(cmd.parts)
    if rc is not NOT_BUILTIN:
        return rc
    try:
        pid = _spawn(cmd.parts, session)
    except OSError as e:
        _report("fork", e)
        return 1
    if background:
        return _detach([pid], session)
    return exit_code(wait_for(pid))


def _open_pipes(count: int) -> Optional[List[Tuple[int, int]]]:
    pipes: List[Tuple[int, int]] = []
    try:
        for _ in range(count):
            pipes.append(os.pipe())
    except OSError as e:
        _report("pipe", e)
        _close_fds([fd for pair in pipes for fd in pair])
        return None
    return pipes


def run_pipeline(p: Pipeline, session: ShellSession) -> int:
    """Run every stage of ``p`` and return the status of the last one.

    A background pipeline is not waited for and always yields 0.
    """
    total = len(p.commands)
    if total == 0:
        return 0
    if total == 1:
        return _run_simple(p.commands[0], p.background, session)

    pipes = _open_pipes(total - 1)
    if pipes is None:
        return 1
    pipe_fds = [fd for pair in pipes for fd in pair]

    pids: List[int] = []
    try:
        for idx, cmd in enumerate(p.commands):
            stdin_fd = pipes[idx - 1][0] if idx > 0 else None
            stdout_fd = pipes[idx][1] if idx < total - 1 else None
            pids.append(_spawn(cmd.parts, session, stdin_fd, stdout_fd, pipe_fds))
    except OSError as e:
        _report("fork", e)
        _close_fds(pipe_fds)
        for pid in pids:
            wait_for(pid)
        return 1
    _close_fds(pipe_fds)

    if p.background:
        return _detach(pids, session)

    statuses = [wait_for(pid) for pid in pids]
    return exit_code(statuses[-1])


# --------- Operator chains ---------

def run_statement(statement: str, session: ShellSession, status: int = 0) -> int:
    """Evaluate one ``;``-free statement and return the resulting status.

    The statement is split on ``&&`` and each piece on ``||``. Every unit
    after the first is gated by the operator right before it: after ``&&``
    it runs only on status 0, after ``||`` only on nonzero status. Skipped
    units leave the status alone, so ``a && b || c`` acts as ``(a && b) || c``.
    """
    for i, member in enumerate(split_tokens(statement, AND)):
        for k, unit in enumerate(split_tokens(member, OR)):
            if k > 0:
                if status == 0:
                    continue
            elif i > 0 and status != 0:
                continue
            status = run_pipeline(parse_pipeline(unit), session)
    return status


def execute_line(line: str, session: ShellSession) -> int:
    status = session.last_status
    for statement in split_tokens(line, SEQUENCE):
        status = run_statement(statement, session, status)
    session.last_status = status
    return status
