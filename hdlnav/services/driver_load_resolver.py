"""
Driver/Load Resolver for Verilog/SystemVerilog HDL Navigation.

Answers "what drives this signal" and "what reads this signal" within one
module, using whole-word regex searches over the module's text span:

    1. Input port declaration (``input [wire|reg|logic] [range] name``)
    2. Direct assignments (``name [range] = …;`` or ``name <= …;``)
    3. Submodule port connections (``.port(name)``)

Tiers are tried in that order and a later tier only runs when the earlier
ones found nothing. Multiple matches are returned as-is for the caller to
disambiguate. All operations take an explicit half-open scope range; no
buffer or cursor state is kept between calls.

Works entirely via regex; no external tooling required.
"""

import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from . import (
    ClassificationFailure,
    DriverKind,
    DriverResult,
    Location,
    RangeSet,
    ResolverMatch,
    Role,
    ScopeError,
    SymbolOccurrence,
    TextRange,
    UnbalancedDelimiterError,
)
from .text_scanner import IDENTIFIER_RE, line_of, line_span, mask_comments, skip_balanced_parens

logger = logging.getLogger(__name__)

_MODULE_KEYWORD_RE = re.compile(r"\b(?:module|macromodule)\b")
_ENDMODULE_RE = re.compile(r"\bendmodule\b")
_LINE_COMMENT_RE = re.compile(r"//[^\n]*")

_IDENT_CHARS = frozenset("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_$")

# Words that open a declaration statement; an occurrence of a name in such a
# statement with no '=' before it declares the name rather than reading it.
_DECLARATION_KEYWORDS = {
    'module', 'macromodule', 'input', 'output', 'inout', 'wire', 'reg',
    'logic', 'bit', 'byte', 'shortint', 'int', 'longint', 'integer', 'real',
    'realtime', 'time', 'genvar', 'parameter', 'localparam', 'tri', 'tri0',
    'tri1', 'wand', 'wor', 'uwire', 'supply0', 'supply1', 'var', 'signed',
    'unsigned', 'typedef', 'event',
}

# Structural words skipped when looking for the first word of a statement.
_STATEMENT_PREFIX_WORDS = {'begin', 'end', 'else', 'generate', 'endgenerate', 'endcase', 'default'}

_NET_QUALIFIERS = (
    r"wire|reg|logic|bit|var|tri|tri0|tri1|wand|wor|uwire|integer|signed|unsigned"
    r"|[A-Za-z_]\w*::[A-Za-z_]\w*"
)


class DriverLoadResolver:
    """
    Driver and load searches over one source file's text.

    Attributes:
        text (str): Full file text
        file (str): Path reported on every Location
        config (Dict): Configuration dict with keys:
            - debug (bool): Enable debug logging
    """

    def __init__(self, text: str, file: str = "", config: Optional[Dict[str, Any]] = None) -> None:
        """
        Initialize the DriverLoadResolver.

        Args:
            text (str): Full text of the file being navigated
            file (str, optional): Path used in the returned locations
            config (Dict, optional): Configuration with keys:
                - debug (bool, optional): Enable debug logging
        """
        self.text = text
        self.file = file
        self.config = config or {}
        self.debug = self.config.get("debug", False)
        self.comments: RangeSet = mask_comments(text)

        if self.debug:
            logger.setLevel(logging.DEBUG)

    # ------------------------------------------------------------------
    # Scope and classification
    # ------------------------------------------------------------------

    def find_module_scope(self, cursor: int) -> TextRange:
        """
        Narrow to the module surrounding ``cursor``.

        Args:
            cursor (int): Character offset in the file text

        Returns:
            TextRange: From the ``module`` keyword to the end of ``endmodule``

        Raises:
            ScopeError: No module starts at or before the cursor, its
                ``endmodule`` is missing, or the cursor lies past it
        """
        start = None
        for match in _MODULE_KEYWORD_RE.finditer(self.text):
            if match.start() > cursor:
                break
            if not self.comments.contains(match.start()):
                start = match.start()

        if start is None:
            raise ScopeError("not inside a module")

        end = None
        for match in _ENDMODULE_RE.finditer(self.text, start):
            if not self.comments.contains(match.start()):
                end = match.end()
                break

        if end is None or cursor >= end:
            raise ScopeError("not inside a module")

        return TextRange(start, end)

    def classify(self, cursor: int, scope: TextRange) -> Role:
        """
        Decide whether the reference at ``cursor`` is assigned or read.

        Scans forward for the first assignment ``=`` (or ``<=``) or ``;``,
        skipping ``//`` comments and the comparison operators ``==``, ``!=``,
        ``>=``, ``===`` and ``!==``.

        Raises:
            ClassificationFailure: Neither found before the end of scope
        """
        text = self.text
        end = min(scope.end, len(text))
        i = cursor

        while i < end:
            ch = text[i]
            if ch == "/" and text.startswith("//", i):
                newline = text.find("\n", i, end)
                i = end if newline == -1 else newline
                continue
            if ch == ";":
                return Role.RVALUE
            if ch == "=":
                if text.startswith("==", i):
                    i += 3 if text.startswith("===", i) else 2
                    continue
                prev = text[i - 1] if i > 0 else ""
                if prev == "<":
                    return Role.LVALUE
                if prev in ("!", ">", "="):
                    i += 1
                    continue
                return Role.LVALUE
            i += 1

        raise ClassificationFailure(f"no '=' or ';' after offset {cursor}")

    def symbol_at(self, cursor: int, scope: TextRange) -> SymbolOccurrence:
        """
        Identify the signal under (or just after) the cursor and its role.

        Raises:
            ClassificationFailure: No identifier before the end of scope, or
                no terminator after it
        """
        text = self.text
        start = cursor
        while start > scope.start and text[start - 1] in _IDENT_CHARS:
            start -= 1

        match = IDENTIFIER_RE.search(text, start, scope.end)
        if not match:
            raise ClassificationFailure(f"no identifier at offset {cursor}")

        role = self.classify(match.start(), scope)
        return SymbolOccurrence(name=match.group(0), role=role, offset=match.start())

    # ------------------------------------------------------------------
    # Driver / load search
    # ------------------------------------------------------------------

    def find_driver(
        self,
        name: str,
        scope: TextRange,
        internal: bool,
        origin: Optional[int] = None,
    ) -> DriverResult:
        """
        Find what drives ``name`` inside ``scope``.

        Args:
            name (str): Signal name
            scope (TextRange): Module span from find_module_scope()
            internal (bool): True when the search started inside the module
                body; False when it started on the port itself
            origin (int, optional): Offset the search started from

        Returns:
            DriverResult: INPUT_PORT (single), GO_UP (carries the port
            declaration), ASSIGNMENT or PORT_CONNECTION (last in text first),
            or NONE
        """
        escaped = re.escape(name)

        input_re = re.compile(
            rf"\binput\b(?:\s+(?:{_NET_QUALIFIERS})\b)*(?:\s*\[[^\]]*\])*\s*"
            rf"(?:[A-Za-z_][\w$]*\s*(?:\[[^\]]*\]\s*)*,\s*)*"
            rf"(?P<name>{escaped})(?![\w$])"
        )
        for match in input_re.finditer(self.text, scope.start, scope.end):
            if self.comments.contains(match.start()):
                continue
            name_start, name_end = match.start("name"), match.end("name")
            port = self._match_at(name_start)
            if not internal and origin is not None and name_start <= origin <= name_end:
                logger.debug(f"{name} is an input port; driver lives in the parent")
                return DriverResult(DriverKind.GO_UP, [port])
            return DriverResult(DriverKind.INPUT_PORT, [port])

        assign_re = re.compile(
            rf"(?<![\w$.]){escaped}\s*(?:\[[^\]]*\]\s*)*(?:<=|=(?!=))[^;]*;"
        )
        matches = self._scan_backward(assign_re, scope)
        if matches:
            return DriverResult(DriverKind.ASSIGNMENT, matches)

        connection_re = re.compile(
            rf"\.\s*[A-Za-z_][\w$]*\s*\(\s*{escaped}\s*(?:\[[^\]]*\]\s*)*\)"
        )
        matches = self._scan_backward(connection_re, scope)
        if matches:
            return DriverResult(DriverKind.PORT_CONNECTION, matches)

        return DriverResult(DriverKind.NONE)

    def find_load(self, name: str, scope: TextRange) -> List[ResolverMatch]:
        """
        Find every line in ``scope`` that reads ``name``.

        Driver lines, comments, hierarchical references (``x.name``) and
        plain declarations are excluded; at most one match per line, in text
        order.
        """
        driver_lines = {
            m.location.line for m in self.find_driver(name, scope, internal=True).matches
        }

        word_re = re.compile(rf"(?<![\w$]){re.escape(name)}(?![\w$])")
        seen_lines = set()
        loads: List[ResolverMatch] = []

        for match in word_re.finditer(self.text, scope.start, scope.end):
            pos = match.start()
            if self.comments.contains(pos):
                continue
            if pos > 0 and self.text[pos - 1] == ".":
                continue
            line = line_of(self.text, pos)
            if line in driver_lines or line in seen_lines:
                continue
            if self._is_declaration(pos, scope):
                continue
            seen_lines.add(line)
            loads.append(self._match_at(pos))

        return loads

    def find_parent_connection(
        self,
        scope: TextRange,
        inst_name: str,
        port: str,
    ) -> Optional[Tuple[ResolverMatch, str]]:
        """
        Locate ``.port(expr)`` on instance ``inst_name`` inside ``scope``.

        Used to continue a GO_UP driver search one level up. Positional
        connections are not recognized.

        Returns:
            Tuple[ResolverMatch, str]: The connection site and the connected
            expression, or None
        """
        inst_re = re.compile(rf"(?<![\w$.]){re.escape(inst_name)}\s*\(")
        port_re = re.compile(rf"\.\s*{re.escape(port)}\s*\(")

        for inst in inst_re.finditer(self.text, scope.start, scope.end):
            if self.comments.contains(inst.start()):
                continue
            try:
                list_end = skip_balanced_parens(self.text, inst.end())
            except UnbalancedDelimiterError as e:
                logger.debug(f"Connection list of {inst_name} not closed: {e}")
                return None

            for conn in port_re.finditer(self.text, inst.end(), list_end):
                if self.comments.contains(conn.start()):
                    continue
                try:
                    expr_end = skip_balanced_parens(self.text, conn.end())
                except UnbalancedDelimiterError:
                    return None
                expr = self.text[conn.end():expr_end - 1].strip()
                return self._match_at(conn.start()), expr

        return None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _match_at(self, pos: int) -> ResolverMatch:
        start, end = line_span(self.text, pos)
        return ResolverMatch(
            description=self.text[start:end].strip(),
            location=Location(file=self.file, line=line_of(self.text, pos), offset=pos),
        )

    def _scan_backward(self, pattern: "re.Pattern", scope: TextRange) -> List[ResolverMatch]:
        found = [
            self._match_at(m.start())
            for m in pattern.finditer(self.text, scope.start, scope.end)
            if not self.comments.contains(m.start())
        ]
        found.reverse()
        return found

    def _is_declaration(self, pos: int, scope: TextRange) -> bool:
        statement_start = max(self.text.rfind(";", scope.start, pos) + 1, scope.start)
        statement = _LINE_COMMENT_RE.sub(" ", self.text[statement_start:pos])
        if "=" in statement:
            return False
        if statement.count("[") > statement.count("]"):
            return False

        for word in IDENTIFIER_RE.findall(statement):
            if word in _STATEMENT_PREFIX_WORDS:
                continue
            return word in _DECLARATION_KEYWORDS
        return False


# ---------------------------------------------------------------------------
# Function-style entry points
# ---------------------------------------------------------------------------

def find_module_scope(text: str, cursor: int) -> TextRange:
    return DriverLoadResolver(text).find_module_scope(cursor)


def classify(text: str, cursor: int, scope: TextRange) -> Role:
    return DriverLoadResolver(text).classify(cursor, scope)


def symbol_at(text: str, cursor: int, scope: TextRange) -> SymbolOccurrence:
    return DriverLoadResolver(text).symbol_at(cursor, scope)


def find_driver(
    name: str,
    text: str,
    scope: TextRange,
    internal: bool,
    origin: Optional[int] = None,
    file: str = "",
) -> DriverResult:
    return DriverLoadResolver(text, file).find_driver(name, scope, internal, origin)


def find_load(name: str, text: str, scope: TextRange, file: str = "") -> List[ResolverMatch]:
    return DriverLoadResolver(text, file).find_load(name, scope)


def find_parent_connection(
    parent_text: str,
    scope: TextRange,
    inst_name: str,
    port: str,
    file: str = "",
) -> Optional[Tuple[ResolverMatch, str]]:
    return DriverLoadResolver(parent_text, file).find_parent_connection(scope, inst_name, port)
