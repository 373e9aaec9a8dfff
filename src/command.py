# module for builtin commands

import os
import sys
from typing import Callable, Dict, List, Optional, TextIO

# Returned by run_builtin when argv[0] is not a builtin; never a real exit code
NOT_BUILTIN = None


def _report(name: str, err: OSError) -> int:
    sys.stderr.write(f"tinysh: {name}: {err}\n")
    sys.stderr.flush()
    return 1


def home_directory() -> str:
    return os.environ.get("HOME") or os.path.expanduser("~")


def builtin_cd(args: List[str], out: TextIO) -> int:
    target = args[1] if len(args) > 1 else home_directory()
    try:
        os.chdir(target)
    except OSError as e:
        return _report("cd", e)
    return 0


def builtin_pwd(args: List[str], out: TextIO) -> int:
    try:
        cwd = os.getcwd()
    except OSError as e:
        return _report("pwd", e)
    out.write(cwd + "\n")
    out.flush()
    return 0


builtin_commands: Dict[str, Callable[[List[str], TextIO], int]] = {
    "cd": builtin_cd,
    "pwd": builtin_pwd,
}


def run_builtin(args: List[str], out: Optional[TextIO] = None) -> Optional[int]:
    """Run ``args`` if it names a builtin.

    Returns the builtin's exit status, or NOT_BUILTIN so the caller can fall
    through to an external program.
    """
    if not args or args[0] not in builtin_commands:
        return NOT_BUILTIN
    return builtin_commands[args[0]](args, out if out is not None else sys.stdout)
