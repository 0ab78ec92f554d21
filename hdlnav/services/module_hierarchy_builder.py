"""
Module Hierarchy Builder for Verilog/SystemVerilog HDL Navigation.

Turns one module's body into a tree of instances and recurses into every
distinct instantiated module exactly once per build, using a memo cache keyed
by module name. Shared (diamond) references reuse the cached subtree, so the
cost of a build is proportional to the number of distinct modules rather than
the number of instantiation sites.

Instantiations are found heuristically on a simplified working copy of the
module body (parameter lists and macro references stripped, comments and
procedural blocks masked). Line numbers are always recovered from the
untouched original text.

Works entirely via regex; no external tooling required.
"""

import logging
import re
from collections import Counter
from typing import Any, Callable, Dict, List, Optional, Set, Tuple, Union

from . import (
    ABSENT,
    CircularReferenceError,
    HierarchyNode,
    Instance,
    ModuleRecord,
    RangeSet,
    UnbalancedDelimiterError,
)
from .module_catalog import ModuleCatalog, read_source
from .text_scanner import (
    line_of,
    mask_code_blocks,
    mask_comments,
    skip_balanced_parens,
    strip_macro_references,
    strip_parameter_lists,
)

logger = logging.getLogger(__name__)

Subtree = Tuple[HierarchyNode, ...]
MemoEntry = Union[Subtree, type(ABSENT)]


class ModuleHierarchyBuilder:
    """
    Builds the instance tree below a chosen top module.

    Attributes:
        catalog (ModuleCatalog): Module name -> declaration site
        config (Dict): Configuration dict with keys:
            - fail_on_cycle (bool): Raise CircularReferenceError when a module
              is re-entered while still being expanded (default: True);
              otherwise the offending instance is kept as a leaf
            - debug (bool): Enable debug logging
        yield_hook (Callable): Optional zero-argument scheduling hint invoked
            at every recursive call and after every masking/stripping pass
        bodies_scanned (Counter): Module name -> number of body scans in the
            last build (at most 1 each)
        edges (List[Tuple[str, str]]): (parent module, child module) for every
            accepted instantiation in the last build
        missing (Set[str]): Instantiated module names absent from the catalog
        cycles (List[List[str]]): Circular instantiation paths encountered
    """

    _INSTANCE_RE = re.compile(
        r"(?<![\w$])([A-Za-z_][\w$]*)\s+([A-Za-z_][\w$]*)\s*\("
    )
    _END_MODULE_RE = re.compile(r"\bendmodule\b")
    _STATEMENT_END_RE = re.compile(r"\s*;")

    # Keywords that can precede an identifier and a parenthesis without
    # being a module instantiation; gate primitives are not catalog modules.
    _VERILOG_KEYWORDS = {
        'module', 'macromodule', 'function', 'task', 'begin', 'end', 'if', 'else',
        'for', 'while', 'case', 'casex', 'casez', 'endcase', 'assign', 'always',
        'always_ff', 'always_comb', 'always_latch', 'initial', 'final',
        'generate', 'wire', 'reg', 'logic', 'input', 'output', 'inout',
        'integer', 'real', 'time', 'genvar', 'localparam', 'parameter', 'bit',
        'byte', 'shortint', 'int', 'longint', 'shortreal', 'realtime', 'string',
        'void', 'type', 'class', 'interface', 'program', 'package', 'import',
        'export', 'typedef', 'enum', 'struct', 'union', 'automatic', 'static',
        'extern', 'virtual', 'pure', 'local', 'protected', 'const', 'assert',
        'assume', 'cover', 'property', 'sequence', 'checker', 'modport',
        'clocking', 'default', 'disable', 'endmodule', 'endfunction', 'endtask',
        'endclass', 'endinterface', 'endpackage', 'endprogram', 'endproperty',
        'endsequence', 'endchecker', 'endclocking', 'endgenerate', 'endgroup',
        'specify', 'endspecify', 'table', 'endtable', 'primitive',
        'endprimitive', 'config', 'endconfig', 'pullup', 'pulldown', 'supply0',
        'supply1', 'wand', 'wor', 'tri', 'triand', 'trior', 'tri0', 'tri1',
        'trireg', 'uwire', 'signed', 'unsigned', 'ref', 'return', 'break',
        'continue', 'do', 'foreach', 'forever', 'repeat', 'wait', 'fork',
        'join', 'join_any', 'join_none', 'force', 'release', 'posedge',
        'negedge', 'edge', 'iff', 'inside', 'dist', 'with', 'unique',
        'priority', 'tagged', 'defparam', 'deassign', 'event', 'var',
        'and', 'nand', 'or', 'nor', 'xor', 'xnor', 'not', 'buf', 'bufif0',
        'bufif1', 'notif0', 'notif1',
    }

    def __init__(
        self,
        catalog: ModuleCatalog,
        config: Optional[Dict[str, Any]] = None,
        yield_hook: Optional[Callable[[], None]] = None,
    ) -> None:
        """
        Initialize the ModuleHierarchyBuilder.

        Args:
            catalog (ModuleCatalog): Catalog built for this session
            config (Dict, optional): Configuration with keys:
                - fail_on_cycle (bool, optional): Default True
                - debug (bool, optional): Enable debug logging
            yield_hook (Callable, optional): Scheduling hint; may raise
                BuildCancelledError to interrupt the build
        """
        self.catalog = catalog
        self.config = config or {}
        self.fail_on_cycle = self.config.get("fail_on_cycle", True)
        self.debug = self.config.get("debug", False)
        self.yield_hook = yield_hook

        if self.debug:
            logger.setLevel(logging.DEBUG)

        self._reset()

    def _reset(self) -> None:
        self._memo: Dict[str, MemoEntry] = {}
        self._in_progress: List[str] = []
        self._sources: Dict[str, Tuple[str, RangeSet, RangeSet]] = {}
        self.bodies_scanned: Counter = Counter()
        self.edges: List[Tuple[str, str]] = []
        self.missing: Set[str] = set()
        self.cycles: List[List[str]] = []

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def build(self, top_name: str) -> HierarchyNode:
        """
        Build the instance tree rooted at ``top_name``.

        The memo cache lives for one call; every call starts from scratch.

        Args:
            top_name (str): Name of the top module

        Returns:
            HierarchyNode: Synthetic root (inst_name = mod_name = top_name)

        Raises:
            ModuleNotFoundInCatalog: ``top_name`` is not cataloged
            CircularReferenceError: Circular instantiation with fail_on_cycle
            BuildCancelledError: Raised by the yield hook
        """
        self._reset()
        record = self.catalog.require(top_name)

        root = Instance(
            inst_name=top_name,
            mod_name=top_name,
            file=record.file,
            line=record.line,
        )
        children = self._build_subtree(top_name)

        logger.info(
            "Hierarchy for %s complete: %d distinct modules scanned, %d instantiations, %d missing",
            top_name, len(self.bodies_scanned), len(self.edges), len(self.missing)
        )
        return HierarchyNode(instance=root, children=children or ())

    def cached_modules(self) -> List[str]:
        """Module names resolved (or marked absent) during the last build."""
        return list(self._memo)

    # ------------------------------------------------------------------
    # Recursion
    # ------------------------------------------------------------------

    def _yield(self) -> None:
        if self.yield_hook is not None:
            self.yield_hook()

    def _build_subtree(self, mod_name: str) -> MemoEntry:
        self._yield()

        cached = self._memo.get(mod_name)
        if cached is not None:
            return cached

        if mod_name in self._in_progress:
            path = self._in_progress[self._in_progress.index(mod_name):] + [mod_name]
            self.cycles.append(path)
            if self.fail_on_cycle:
                raise CircularReferenceError(path)
            logger.warning("Circular instantiation %s; keeping instance as a leaf", " -> ".join(path))
            return ()

        record = self.catalog.get(mod_name)
        if record is None:
            self._memo[mod_name] = ABSENT
            self.missing.add(mod_name)
            logger.warning(f"module not found: {mod_name}")
            return ABSENT

        self._in_progress.append(mod_name)
        try:
            children = self._scan_module(record)
        finally:
            self._in_progress.pop()

        self._memo[mod_name] = children
        return children

    def _scan_module(self, record: ModuleRecord) -> Subtree:
        source, source_comments, source_blocks = self._source(record.file)

        body_end = len(source)
        for end_match in self._END_MODULE_RE.finditer(source, record.offset):
            if not source_comments.contains(end_match.start()):
                body_end = end_match.start()
                break
        original = source[record.offset:body_end]
        self.bodies_scanned[record.name] += 1

        working = strip_parameter_lists(original)
        self._yield()
        working = strip_macro_references(working)
        self._yield()
        comments = mask_comments(working)
        self._yield()
        blocks = mask_code_blocks(working, comments)
        self._yield()

        candidates = self._find_instantiations(working, comments, blocks)
        if self.debug:
            logger.debug(f"{record.name}: {len(candidates)} instantiation(s)")

        nodes: List[HierarchyNode] = []
        search_from = record.offset
        for mod_name, inst_name in candidates:
            line, search_from = self._recover_line(
                source, source_comments, source_blocks, record.offset, body_end,
                search_from, mod_name, inst_name,
            )
            instance = Instance(
                inst_name=inst_name,
                mod_name=mod_name,
                file=record.file,
                line=line,
            )
            self.edges.append((record.name, mod_name))

            subtree = self._build_subtree(mod_name)
            nodes.append(
                HierarchyNode(
                    instance=instance,
                    children=subtree or (),
                    resolved=subtree is not ABSENT,
                )
            )

        return tuple(nodes)

    # ------------------------------------------------------------------
    # Scanning helpers
    # ------------------------------------------------------------------

    def _source(self, path: str) -> Tuple[str, RangeSet, RangeSet]:
        """Source text of a file with its comment and begin/end masks."""
        cached = self._sources.get(path)
        if cached is None:
            text = read_source(path)
            comments = mask_comments(text)
            cached = (text, comments, mask_code_blocks(text, comments))
            self._sources[path] = cached
        return cached

    def _find_instantiations(
        self,
        working: str,
        comments: RangeSet,
        blocks: RangeSet,
    ) -> List[Tuple[str, str]]:
        """
        Scan the working copy for ``module_name instance_name ( … ) ;``.

        Args:
            working (str): Stripped module body
            comments (RangeSet): Comment mask of ``working``
            blocks (RangeSet): begin/end mask of ``working``

        Returns:
            List[Tuple[str, str]]: (module name, instance name) in text order
        """
        found: List[Tuple[str, str]] = []
        pos = 0

        while True:
            match = self._INSTANCE_RE.search(working, pos)
            if not match:
                break

            if self._is_rejected(working, match, comments, blocks):
                pos = match.start(2)
                continue

            try:
                after = skip_balanced_parens(working, match.end())
            except UnbalancedDelimiterError as e:
                logger.debug(f"Stopping instantiation scan: {e}")
                break

            terminator = self._STATEMENT_END_RE.match(working, after)
            if not terminator:
                pos = match.start(2)
                continue

            found.append((match.group(1), match.group(2)))
            pos = terminator.end()

        return found

    def _is_rejected(
        self,
        working: str,
        match: "re.Match",
        comments: RangeSet,
        blocks: RangeSet,
    ) -> bool:
        for group in (1, 2):
            start = match.start(group)
            if comments.contains(start) or blocks.contains(start):
                return True

        mod_start = match.start(1)
        if mod_start > 0 and working[mod_start - 1] == "`":
            return True

        return (
            match.group(1) in self._VERILOG_KEYWORDS
            or match.group(2) in self._VERILOG_KEYWORDS
        )

    def _recover_line(
        self,
        source: str,
        comments: RangeSet,
        blocks: RangeSet,
        body_start: int,
        body_end: int,
        search_from: int,
        mod_name: str,
        inst_name: str,
    ) -> Tuple[int, int]:
        """
        Find the original line of an instantiation.

        Looks for the module name followed, within the same statement, by the
        instance name and ``(``, skipping comments and begin/end blocks; falls
        back to the first whole-word occurrence of the instance name in the body.

        Returns:
            Tuple[int, int]: (1-based line, offset to continue searching from)
        """
        statement_re = re.compile(
            rf"(?<![\w$]){re.escape(mod_name)}(?![\w$])[^;]*?"
            rf"(?<![\w$]){re.escape(inst_name)}\s*\("
        )
        pos = search_from
        while True:
            match = statement_re.search(source, pos, body_end)
            if not match:
                break
            if not (comments.contains(match.start()) or blocks.contains(match.start())):
                return line_of(source, match.start()), match.end()
            pos = match.start() + 1

        word_re = re.compile(rf"(?<![\w$]){re.escape(inst_name)}(?![\w$])")
        for match in word_re.finditer(source, body_start, body_end):
            if not comments.contains(match.start()):
                return line_of(source, match.start()), search_from

        return line_of(source, body_start), search_from


def build_hierarchy(
    catalog: ModuleCatalog,
    top_name: str,
    config: Optional[Dict[str, Any]] = None,
    yield_hook: Optional[Callable[[], None]] = None,
) -> HierarchyNode:
    """Convenience wrapper around ModuleHierarchyBuilder.build()."""
    return ModuleHierarchyBuilder(catalog, config, yield_hook).build(top_name)
