"""Background process reaper for tinysh.

Background stages are never waited for by the evaluator. Their pids are
handed to a :class:`Reaper`, which claims them from a SIGCHLD handler as they
terminate so they do not linger as zombies.

Only tracked pids are ever claimed. The executor may be blocked in a targeted
``waitpid`` on a foreground child when the signal arrives; that child's status
belongs to the executor, not to the reaper.
"""
from __future__ import annotations

import os
import signal
from typing import Any, List, Optional, Set


class Reaper:
    """Claims terminated background children, discarding their statuses."""

    def __init__(self) -> None:
        self._pending: Set[int] = set()
        self._previous: Any = None
        self.installed: bool = False

    @property
    def pending(self) -> Set[int]:
        """Background pids handed over but not yet claimed."""
        return set(self._pending)

    def track(self, pid: int) -> None:
        self._pending.add(pid)
        # The child may already have exited before it was registered, in
        # which case its SIGCHLD has come and gone.
        self.reap()

    def reap(self) -> List[int]:
        """Claim every tracked child that has terminated. Never blocks."""
        claimed: List[int] = []
        for pid in list(self._pending):
            try:
                done, _ = os.waitpid(pid, os.WNOHANG)
            except ChildProcessError:
                # Already claimed elsewhere
                self._pending.discard(pid)
                continue
            if done:
                self._pending.discard(pid)
                claimed.append(pid)
        return claimed

    def _on_sigchld(self, signum: int, frame: Optional[Any]) -> None:
        self.reap()

    def install(self) -> None:
        if self.installed:
            return
        self._previous = signal.signal(signal.SIGCHLD, self._on_sigchld)
        self.installed = True

    def uninstall(self) -> None:
        if not self.installed:
            return
        previous = self._previous if self._previous is not None else signal.SIG_DFL
        signal.signal(signal.SIGCHLD, previous)
        self._previous = None
        self.installed = False
