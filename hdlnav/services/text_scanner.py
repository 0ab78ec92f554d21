"""
Text Scanner Primitives for Verilog/SystemVerilog source text.

Balanced-parenthesis skipping, comment and procedural-block masking, and the
two destructive simplifications (parameter lists, macro references) applied
to the working copy of a module body before instantiation scanning.

Works entirely via regex and character scanning; no parser involved.
Multi-line ``/* */`` comments are not masked.
"""

from __future__ import annotations

import logging
import re
from typing import Optional, Tuple

from . import RangeSet, TextRange, UnbalancedDelimiterError

logger = logging.getLogger(__name__)

_LINE_COMMENT_RE = re.compile(r"//[^\n]*")
_BEGIN_END_RE = re.compile(r"\b(begin|end)\b")
_PARAM_LIST_OPEN_RE = re.compile(r"#\s*\(")
_MACRO_REF_RE = re.compile(r"`(\w+)")

IDENTIFIER_RE = re.compile(r"[A-Za-z_][\w$]*")


def skip_balanced_parens(text: str, pos: int) -> int:
    """
    Skip to just past the ``)`` matching an already-consumed ``(``.

    Args:
        text: Source text
        pos: Index immediately after the opening parenthesis

    Returns:
        Index immediately after the matching closing parenthesis

    Raises:
        UnbalancedDelimiterError: End of text reached with nesting > 0
    """
    depth = 1
    i = pos
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return i + 1
        i += 1
    raise UnbalancedDelimiterError("(", pos)


def mask_comments(text: str) -> RangeSet:
    """Return the spans of every ``//`` line comment."""
    return RangeSet(TextRange(m.start(), m.end()) for m in _LINE_COMMENT_RE.finditer(text))


def mask_code_blocks(text: str, comments: Optional[RangeSet] = None) -> RangeSet:
    """
    Return the spans of every outermost ``begin`` … ``end`` block.

    Nesting is counted the same way parentheses are. ``begin``/``end``
    inside comment spans are ignored; a stray ``end`` at depth zero is
    ignored; a ``begin`` left open masks to the end of the text.

    Args:
        text: Source text
        comments: Comment mask for ``text``; computed if not supplied

    Returns:
        RangeSet of procedural block spans
    """
    if comments is None:
        comments = mask_comments(text)

    blocks = RangeSet()
    depth = 0
    block_start = 0

    for match in _BEGIN_END_RE.finditer(text):
        if comments.contains(match.start()):
            continue
        if match.group(1) == "begin":
            if depth == 0:
                block_start = match.start()
            depth += 1
        elif depth > 0:
            depth -= 1
            if depth == 0:
                blocks.add(TextRange(block_start, match.end()))

    if depth > 0:
        logger.debug("Unbalanced begin at offset %d; masking to end of text", block_start)
        blocks.add(TextRange(block_start, len(text)))

    return blocks


def strip_parameter_lists(text: str) -> str:
    """
    Delete every ``#( … )`` region, nested parentheses included.

    The result is only fit for instantiation scanning; offsets no longer
    match the original text. An unbalanced region stops the stripping and
    leaves the rest of the text as it was.
    """
    pieces = []
    pos = 0
    while True:
        match = _PARAM_LIST_OPEN_RE.search(text, pos)
        if not match:
            break
        try:
            end = skip_balanced_parens(text, match.end())
        except UnbalancedDelimiterError as e:
            logger.debug("Parameter list not stripped: %s", e)
            break
        pieces.append(text[pos:match.start()])
        pos = end
    pieces.append(text[pos:])
    return "".join(pieces)


def strip_macro_references(text: str) -> str:
    """Delete every `` `identifier `` token except `` `define ``."""
    return _MACRO_REF_RE.sub(
        lambda m: m.group(0) if m.group(1) == "define" else "",
        text,
    )


def line_of(text: str, offset: int) -> int:
    """1-based line number of ``offset``."""
    return text.count("\n", 0, offset) + 1


def offset_of(text: str, line: int, column: int = 1) -> int:
    """Character offset of a 1-based line/column, clamped to the line."""
    start = 0
    for _ in range(max(line, 1) - 1):
        newline = text.find("\n", start)
        if newline == -1:
            return len(text)
        start = newline + 1
    end = text.find("\n", start)
    if end == -1:
        end = len(text)
    return min(start + max(column, 1) - 1, end)


def line_span(text: str, offset: int) -> Tuple[int, int]:
    """Start and end offsets (newline excluded) of the line holding ``offset``."""
    start = text.rfind("\n", 0, offset) + 1
    end = text.find("\n", offset)
    if end == -1:
        end = len(text)
    return start, end
