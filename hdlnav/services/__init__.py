"""
HDL Navigation: Data Models.

Canonical dataclass definitions and the error taxonomy shared by the module
catalog, the hierarchy builder, the driver/load resolver and the outline
adapter.
"""

from __future__ import annotations

import enum
import logging
from bisect import bisect_right
from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional, Tuple

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class NavigationError(Exception):
    """Base error for catalog, hierarchy and resolver operations."""


class ModuleNotFoundInCatalog(NavigationError):
    """A module (or its defining file) is absent from the catalog."""

    def __init__(self, module_name: str) -> None:
        super().__init__(f"module not found: {module_name}")
        self.module_name = module_name


class ScopeError(NavigationError):
    """Cursor is not inside a recognizable module, or delimiters are unbalanced."""


class UnbalancedDelimiterError(ScopeError):
    """End of text reached while a delimiter pair was still open."""

    def __init__(self, opener: str, position: int) -> None:
        super().__init__(f"unbalanced '{opener}' opened before offset {position}")
        self.opener = opener
        self.position = position


class ClassificationFailure(NavigationError):
    """No identifier, or no terminator, found when classifying a reference."""


class CircularReferenceError(NavigationError):
    """A module instantiates itself, directly or through its children."""

    def __init__(self, path: List[str]) -> None:
        super().__init__("circular instantiation: " + " -> ".join(path))
        self.path = list(path)


class BuildCancelledError(NavigationError):
    """Raised by a yield hook to interrupt a hierarchy build."""


# ---------------------------------------------------------------------------
# Text ranges
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TextRange:
    """Half-open character range [start, end) into one text."""
    start: int
    end: int

    def __contains__(self, pos: int) -> bool:
        return self.start <= pos < self.end

    def slice(self, text: str) -> str:
        return text[self.start:self.end]


class RangeSet:
    """
    Sorted, non-overlapping collection of TextRange objects.

    Ranges are added in any order and overlapping or touching ranges are
    merged; lookups use bisection so the masks built over a module body stay
    cheap to query for every candidate match.
    """

    def __init__(self, ranges: Optional[Iterable[TextRange]] = None) -> None:
        self._starts: List[int] = []
        self._ranges: List[TextRange] = []
        for rng in ranges or ():
            self.add(rng)

    def add(self, rng: TextRange) -> None:
        if rng.end <= rng.start:
            return
        start, end = rng.start, rng.end
        idx = bisect_right(self._starts, start)

        if idx > 0 and self._ranges[idx - 1].end >= start:
            idx -= 1
            start = self._ranges[idx].start
            end = max(end, self._ranges[idx].end)
            del self._starts[idx]
            del self._ranges[idx]

        while idx < len(self._ranges) and self._ranges[idx].start <= end:
            end = max(end, self._ranges[idx].end)
            del self._starts[idx]
            del self._ranges[idx]

        self._starts.insert(idx, start)
        self._ranges.insert(idx, TextRange(start, end))

    def contains(self, pos: int) -> bool:
        idx = bisect_right(self._starts, pos) - 1
        return idx >= 0 and pos in self._ranges[idx]

    def __contains__(self, pos: int) -> bool:
        return self.contains(pos)

    def __iter__(self) -> Iterator[TextRange]:
        return iter(self._ranges)

    def __len__(self) -> int:
        return len(self._ranges)

    def __repr__(self) -> str:
        spans = ", ".join(f"[{r.start},{r.end})" for r in self._ranges)
        return f"RangeSet({spans})"


# ---------------------------------------------------------------------------
# Module Catalog
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ModuleRecord:
    """One module declaration found by the catalog scan."""
    name: str
    file: str
    offset: int  # char offset immediately after the declaration match
    line: int  # 1-based line of the `module` keyword
    header_text: str

    @property
    def declaration_line(self) -> str:
        """Trailing non-empty line of the matched header, as shown to users."""
        lines = [ln.strip() for ln in self.header_text.splitlines() if ln.strip()]
        return lines[-1] if lines else ""


# ---------------------------------------------------------------------------
# Module Hierarchy
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Instance:
    """A single module instantiation edge."""
    inst_name: str
    mod_name: str
    file: str
    line: int = 0


@dataclass(frozen=True)
class HierarchyNode:
    """
    One instance plus the instances declared inside its module.

    Every instance of the same module shares the same ``children`` tuple; the
    outline adapter expands the shared subtrees into independent entries.
    """
    instance: Instance
    children: Tuple["HierarchyNode", ...] = ()
    resolved: bool = True

    @property
    def inst_name(self) -> str:
        return self.instance.inst_name

    @property
    def mod_name(self) -> str:
        return self.instance.mod_name

    def walk(self, depth: int = 0) -> Iterator[Tuple[int, "HierarchyNode"]]:
        """Preorder traversal yielding (depth, node)."""
        yield depth, self
        for child in self.children:
            yield from child.walk(depth + 1)

    def find(self, *inst_path: str) -> Optional["HierarchyNode"]:
        """Follow a path of instance names below this node."""
        node: Optional[HierarchyNode] = self
        for name in inst_path:
            if node is None:
                return None
            node = next((c for c in node.children if c.inst_name == name), None)
        return node

    def signature(self) -> Tuple:
        """Structural fingerprint (names, lines, nesting) used for comparisons."""
        return (
            self.instance.inst_name,
            self.instance.mod_name,
            self.instance.file,
            self.instance.line,
            self.resolved,
            tuple(child.signature() for child in self.children),
        )


class _Absent:
    """Memo cache sentinel: module not found, do not retry."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False


ABSENT = _Absent()


# ---------------------------------------------------------------------------
# Driver / Load Resolution
# ---------------------------------------------------------------------------

class Role(enum.Enum):
    LVALUE = "l-value"
    RVALUE = "r-value"


@dataclass(frozen=True)
class SymbolOccurrence:
    """A signal reference under the cursor and its heuristic role."""
    name: str
    role: Role
    offset: int = 0


@dataclass(frozen=True)
class Location:
    """A navigable source position."""
    file: str
    line: int
    offset: int = 0

    def __str__(self) -> str:
        return f"{self.file}:{self.line}"


@dataclass(frozen=True)
class ResolverMatch:
    """One driver or load candidate: the source line and where it lives."""
    description: str
    location: Location


class DriverKind(enum.Enum):
    INPUT_PORT = "input_port"
    ASSIGNMENT = "assignment"
    PORT_CONNECTION = "port_connection"
    NONE = "none"
    GO_UP = "go_up"


@dataclass
class DriverResult:
    """Result of a driver search; GO_UP means continue in the parent module."""
    kind: DriverKind
    matches: List[ResolverMatch] = field(default_factory=list)

    @property
    def is_ambiguous(self) -> bool:
        return len(self.matches) > 1

    @property
    def go_up(self) -> bool:
        return self.kind is DriverKind.GO_UP


__all__ = [
    "ABSENT",
    "BuildCancelledError",
    "CircularReferenceError",
    "ClassificationFailure",
    "DriverKind",
    "DriverResult",
    "HierarchyNode",
    "Instance",
    "Location",
    "ModuleNotFoundInCatalog",
    "ModuleRecord",
    "NavigationError",
    "RangeSet",
    "ResolverMatch",
    "Role",
    "ScopeError",
    "SymbolOccurrence",
    "TextRange",
    "UnbalancedDelimiterError",
]
