"""Grouping and tokenization utilities for tinysh.

This module defines the data structures representing the parsed pieces of
an input line (command segments and pipelines) and the splitting helper used
at every nesting level: statements by ``;``, AND groups by ``&&``, OR groups
by ``||``, pipeline stages by ``|`` and finally words by whitespace.

Splitting is purely textual. Nothing is quoted or escaped, so an operator
character anywhere in the line splits it.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Optional

# Capacity limits. Input beyond them is dropped, not reported.
MAX_INPUT = 2048
MAX_TOKENS = 128
MAX_PIPELINE = 16

# Delimiters, outermost first
SEQUENCE = ";"
AND = "&&"
OR = "||"
PIPE = "|"
BACKGROUND = "&"
WHITESPACE = None

# Only these separate words; other Unicode spaces stay inside a word
BLANKS = " \t\r\n"
_BLANK_RUN = re.compile(r"[ \t\r\n]+")


@dataclass
class CommandGroup:
    """A simple command with its argv tokens (argv[0] is the program)."""
    parts: List[str]


@dataclass
class Pipeline:
    """One or more command groups connected stdout-to-stdin."""
    commands: List[CommandGroup] = field(default_factory=list)
    background: bool = False

# --- Tokenization ---

def split_tokens(text: str, delim: Optional[str] = WHITESPACE, limit: int = MAX_TOKENS) -> List[str]:
    """Split ``text`` on ``delim`` into trimmed, non-empty tokens.

    ``delim`` is a literal (``";"``, ``"&&"``...) or ``None`` for any run of
    space, tab, CR or LF. At most ``limit - 1`` tokens are returned.
    """
    if delim is WHITESPACE:
        pieces = _BLANK_RUN.split(text)
    else:
        pieces = text.split(delim)
    out: List[str] = []
    for piece in pieces:
        piece = piece.strip(BLANKS)
        if not piece:
            continue
        if len(out) >= limit - 1:
            break
        out.append(piece)
    return out


def split_words(text: str) -> List[str]:
    return split_tokens(text, WHITESPACE)

# --- Grouping ---

def parse_pipeline(text: str) -> Pipeline:
    """Build a pipeline from one OR-group member.

    A trailing ``&`` on the final stage marks the whole pipeline as
    background and is removed before that stage is split into words.
    """
    stages = split_tokens(text, PIPE, limit=MAX_PIPELINE + 1)
    background = False
    if stages and stages[-1].endswith(BACKGROUND):
        stages[-1] = stages[-1][:-1]
        background = True
    return Pipeline([CommandGroup(split_words(s)) for s in stages], background)
