"""
Navigation session.

Holds the state one navigation host works against: the module catalog, the
last built hierarchy and its builder statistics, and a location history.
Every operation returns a NavigationOutcome; catalog, hierarchy and resolver
errors become advisory NOTICE outcomes so the host session never aborts and
the catalog stays available for a retry.
"""

import enum
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from hdlnav.core.file_collector import SourceFileCollector
from hdlnav.services import (
    BuildCancelledError,
    CircularReferenceError,
    ClassificationFailure,
    HierarchyNode,
    Location,
    ModuleNotFoundInCatalog,
    ResolverMatch,
    ScopeError,
)
from hdlnav.services.driver_load_resolver import DriverLoadResolver
from hdlnav.services.hierarchy_outline_adapter import HierarchyOutlineAdapter, OutlineEntry
from hdlnav.services.instantiation_graph import InstantiationGraph
from hdlnav.services.module_catalog import ModuleCatalog, ModuleCatalogBuilder, read_source
from hdlnav.services.module_hierarchy_builder import ModuleHierarchyBuilder


@dataclass
class NavigatorConfig:
    """Configuration for a navigation session."""
    source_dir: Optional[str] = None
    extensions: List[str] = field(default_factory=lambda: list(SourceFileCollector.DEFAULT_EXTENSIONS))
    exclude_dirs: List[str] = field(default_factory=list)
    exclude_globs: List[str] = field(default_factory=list)
    max_files: int = 10000
    top: Optional[str] = None
    fail_on_cycle: bool = True
    debug: bool = False

    @classmethod
    def from_global_config(cls, gc) -> "NavigatorConfig":
        """Build from a GlobalConfig (see global_config.yaml for the sections)."""
        defaults = cls()
        return cls(
            source_dir=gc.get_path("paths.source_dir"),
            extensions=gc.get_list("scanning.extensions", default=defaults.extensions),
            exclude_dirs=gc.get_list("scanning.exclude_dirs"),
            exclude_globs=gc.get_list("scanning.exclude_globs"),
            max_files=gc.get_int("scanning.max_files", defaults.max_files),
            top=gc.get("hierarchy.top") or None,
            fail_on_cycle=gc.get_bool("hierarchy.fail_on_cycle", True),
            debug=gc.get_bool("logging.debug", False),
        )


class OutcomeStatus(enum.Enum):
    NAVIGATE = "navigate"  # exactly one location
    CHOOSE = "choose"  # several candidates for the host to disambiguate
    GO_UP = "go_up"  # continue in the parent module
    NOTICE = "notice"  # advisory message only


@dataclass
class NavigationOutcome:
    """Result of one session operation."""
    status: OutcomeStatus
    locations: List[ResolverMatch] = field(default_factory=list)
    message: str = ""
    failed: bool = False

    @classmethod
    def notice(cls, message: str, failed: bool = False) -> "NavigationOutcome":
        return cls(OutcomeStatus.NOTICE, [], message, failed)

    @classmethod
    def from_matches(cls, matches: List[ResolverMatch], empty_message: str) -> "NavigationOutcome":
        if not matches:
            return cls.notice(empty_message)
        status = OutcomeStatus.NAVIGATE if len(matches) == 1 else OutcomeStatus.CHOOSE
        return cls(status, list(matches))

    @property
    def location(self) -> Optional[Location]:
        """The single target of a NAVIGATE or GO_UP outcome."""
        return self.locations[0].location if self.locations else None


class NavigationSession:
    """
    Explicit navigation context; construct on session start, close() on teardown.

    Attributes:
        config (NavigatorConfig): Session configuration
        catalog (ModuleCatalog): Set by open()
        hierarchy (HierarchyNode): Set by a successful build_hierarchy()
        builder (ModuleHierarchyBuilder): Builder of the current hierarchy
        history (List[Location]): Locations pushed by the host, newest last
    """

    def __init__(self, config: Optional[NavigatorConfig] = None):
        self.config = config or NavigatorConfig()
        self.logger = logging.getLogger(__name__)

        # Build config dict for services
        self._svc_cfg: Dict[str, Any] = {
            "fail_on_cycle": self.config.fail_on_cycle,
            "debug": self.config.debug,
        }

        self.catalog: Optional[ModuleCatalog] = None
        self.hierarchy: Optional[HierarchyNode] = None
        self.builder: Optional[ModuleHierarchyBuilder] = None
        self.history: List[Location] = []

    def __enter__(self) -> "NavigationSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Catalog and hierarchy
    # ------------------------------------------------------------------

    def open(self, source: Union[str, Path, Sequence[str], None] = None) -> NavigationOutcome:
        """
        Build the module catalog.

        Args:
            source: Root directory (or single file) to collect, or an explicit
                file list; defaults to ``config.source_dir``

        Returns:
            NavigationOutcome: NOTICE summarizing the catalog
        """
        source = source if source is not None else self.config.source_dir
        if source is None:
            return NavigationOutcome.notice("no source files given", failed=True)

        if isinstance(source, (str, Path)):
            collector = SourceFileCollector(
                str(source),
                extensions=self.config.extensions,
                exclude_dirs=self.config.exclude_dirs,
                exclude_globs=self.config.exclude_globs,
                max_files=self.config.max_files,
            )
            try:
                files = collector.collect()
            except FileNotFoundError as e:
                return NavigationOutcome.notice(str(e), failed=True)
        else:
            files = [str(f) for f in source]

        self.catalog = ModuleCatalogBuilder(self._svc_cfg).build(files)
        self.hierarchy = None
        self.builder = None

        return NavigationOutcome.notice(
            f"{len(self.catalog)} modules cataloged from {len(self.catalog.files)} files"
        )

    def module_names(self) -> List[str]:
        """Completion candidates for the top module."""
        return self.catalog.names() if self.catalog is not None else []

    def build_hierarchy(
        self,
        top: Optional[str] = None,
        yield_hook: Optional[Callable[[], None]] = None,
    ) -> NavigationOutcome:
        """
        Build the instance tree below ``top`` (default ``config.top``).

        On success the outcome navigates to the top module's declaration.
        A failed or cancelled build leaves the previous hierarchy in place.
        """
        if self.catalog is None:
            return NavigationOutcome.notice("no source files opened", failed=True)

        top = top or self.config.top
        if not top:
            return NavigationOutcome.notice("no top module given", failed=True)

        builder = ModuleHierarchyBuilder(self.catalog, self._svc_cfg, yield_hook=yield_hook)
        try:
            root = builder.build(top)
        except ModuleNotFoundInCatalog as e:
            return NavigationOutcome.notice(str(e), failed=True)
        except CircularReferenceError as e:
            self.logger.warning(str(e))
            return NavigationOutcome.notice(str(e), failed=True)
        except BuildCancelledError:
            self.logger.info(f"Hierarchy build for {top} cancelled")
            return NavigationOutcome.notice("hierarchy build cancelled", failed=True)

        self.builder = builder
        self.hierarchy = root

        record = self.catalog[top]
        instances = sum(1 for _ in root.walk()) - 1
        message = f"{instances} instances under {top}"
        if builder.missing:
            message += f" ({len(builder.missing)} modules not found: {', '.join(sorted(builder.missing))})"

        return NavigationOutcome(
            OutcomeStatus.NAVIGATE,
            [
                ResolverMatch(
                    description=record.declaration_line,
                    location=Location(file=record.file, line=record.line, offset=record.offset),
                )
            ],
            message,
        )

    def outline(self) -> List[OutlineEntry]:
        """Outline of the current hierarchy (empty if none was built)."""
        if self.hierarchy is None:
            return []
        return HierarchyOutlineAdapter(self.catalog).to_outline(self.hierarchy)

    def graph(self) -> Optional[InstantiationGraph]:
        """Module-level instantiation graph of the current hierarchy."""
        if self.builder is None:
            return None
        return InstantiationGraph.from_builder(self.builder, top=self.hierarchy.mod_name)

    # ------------------------------------------------------------------
    # Driver / load navigation
    # ------------------------------------------------------------------

    def _resolver(self, path: str) -> DriverLoadResolver:
        return DriverLoadResolver(read_source(path), file=path, config=self._svc_cfg)

    def find_driver_at(self, path: str, cursor: int, internal: bool = True) -> NavigationOutcome:
        """
        Find the driver of the signal under ``cursor`` in ``path``.

        Args:
            path: Source file
            cursor: Character offset
            internal: False when the cursor sits on the port declaration
                itself; an input port then yields GO_UP

        Returns:
            NavigationOutcome: NAVIGATE, CHOOSE, GO_UP or NOTICE
        """
        try:
            resolver = self._resolver(path)
            scope = resolver.find_module_scope(cursor)
            symbol = resolver.symbol_at(cursor, scope)
            result = resolver.find_driver(symbol.name, scope, internal, origin=cursor)
        except OSError as e:
            return NavigationOutcome.notice(f"cannot read {path}: {e}", failed=True)
        except ScopeError:
            return NavigationOutcome.notice("not inside a module definition", failed=True)
        except ClassificationFailure as e:
            return NavigationOutcome.notice(f"no signal under cursor: {e}", failed=True)

        self.logger.debug(f"Driver search for {symbol.name} ({symbol.role.value}): {result.kind.value}")

        if result.go_up:
            return NavigationOutcome(
                OutcomeStatus.GO_UP,
                result.matches,
                f"{symbol.name} is an input port; its driver is in the parent module",
            )
        return NavigationOutcome.from_matches(result.matches, f"no driver found for {symbol.name}")

    def find_load_at(self, path: str, cursor: int) -> NavigationOutcome:
        """Find every load of the signal under ``cursor`` in ``path``."""
        try:
            resolver = self._resolver(path)
            scope = resolver.find_module_scope(cursor)
            symbol = resolver.symbol_at(cursor, scope)
            loads = resolver.find_load(symbol.name, scope)
        except OSError as e:
            return NavigationOutcome.notice(f"cannot read {path}: {e}", failed=True)
        except ScopeError:
            return NavigationOutcome.notice("not inside a module definition", failed=True)
        except ClassificationFailure as e:
            return NavigationOutcome.notice(f"no signal under cursor: {e}", failed=True)

        return NavigationOutcome.from_matches(loads, f"no load found for {symbol.name}")

    def go_up(self, inst_path: Sequence[str], port: str) -> NavigationOutcome:
        """
        Continue a GO_UP search at the parent's connection of ``port``.

        Args:
            inst_path: Instance names from below the root down to the
                instance whose port is being followed
            port: Port name on that instance

        Returns:
            NavigationOutcome: NAVIGATE to ``.port(expr)`` in the parent, or NOTICE
        """
        if self.hierarchy is None:
            return NavigationOutcome.notice("no hierarchy built", failed=True)
        if not inst_path:
            return NavigationOutcome.notice(f"{self.hierarchy.mod_name} is the top module")

        node = self.hierarchy.find(*inst_path)
        parent = self.hierarchy.find(*inst_path[:-1])
        if node is None or parent is None:
            return NavigationOutcome.notice(f"no instance {'.'.join(inst_path)}", failed=True)

        record = self.catalog.get(parent.mod_name)
        if record is None:
            return NavigationOutcome.notice(f"module not found: {parent.mod_name}", failed=True)

        try:
            resolver = self._resolver(record.file)
            scope = resolver.find_module_scope(record.offset)
        except OSError as e:
            return NavigationOutcome.notice(f"cannot read {record.file}: {e}", failed=True)
        except ScopeError:
            return NavigationOutcome.notice("not inside a module definition", failed=True)

        found = resolver.find_parent_connection(scope, node.inst_name, port)
        if found is None:
            return NavigationOutcome.notice(f"no connection of .{port} on {node.inst_name}")

        match, expr = found
        return NavigationOutcome(
            OutcomeStatus.NAVIGATE,
            [match],
            f"{node.inst_name}.{port} is driven by '{expr}' in {parent.mod_name}",
        )

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def push_location(self, location: Location) -> None:
        self.history.append(location)

    def pop_location(self) -> NavigationOutcome:
        if not self.history:
            return NavigationOutcome.notice("history empty")
        location = self.history.pop()
        return NavigationOutcome(
            OutcomeStatus.NAVIGATE,
            [ResolverMatch(description=str(location), location=location)],
        )

    def close(self) -> None:
        """Drop catalog, hierarchy and history."""
        self.catalog = None
        self.hierarchy = None
        self.builder = None
        self.history.clear()
        self.logger.debug("Navigation session closed")
