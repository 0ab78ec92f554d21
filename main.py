#!/usr/bin/env python
"""
main.py

Command line entry point for hdlnav, lexical navigation of
Verilog/SystemVerilog source trees.

Key stages:
1. Configuration: global_config.yaml (GlobalConfig) + command-line overrides
2. Module catalog over the collected source files
3. Optional hierarchy build below a top module (outline, JSON, graph stats)
4. Optional driver / load / go-up queries at FILE:LINE:COL positions
"""

import argparse
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from rich.console import Console

from hdlnav.services.hierarchy_outline_adapter import HierarchyOutlineAdapter, format_outline, to_dict
from hdlnav.services.module_catalog import read_source
from hdlnav.services.text_scanner import offset_of
from hdlnav.session import NavigationOutcome, NavigationSession, NavigatorConfig, OutcomeStatus
from utils.parsers.global_config_parser import ConfigError, GlobalConfig

console = Console()

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def parse_position(spec: str) -> Tuple[str, int, int]:
    """Split ``FILE:LINE[:COL]`` (1-based) into its parts."""
    parts = spec.rsplit(":", 2)
    try:
        if len(parts) == 3 and parts[1].isdigit():
            return parts[0], int(parts[1]), int(parts[2])
        path, line = spec.rsplit(":", 1)
        return path, int(line), 1
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected FILE:LINE[:COL], got '{spec}'")


def outcome_to_dict(outcome: NavigationOutcome) -> Dict[str, Any]:
    return {
        "status": outcome.status.value,
        "message": outcome.message,
        "locations": [
            {"description": m.description, **asdict(m.location)} for m in outcome.locations
        ],
    }


class NavigatorApp:
    """Command line front end over one NavigationSession."""

    def __init__(self, args):
        """Initialize with parsed CLI arguments."""
        self.args = args
        self.config: Optional[GlobalConfig] = None
        self.session: Optional[NavigationSession] = None
        self.results: Dict[str, Any] = {}

    def setup(self) -> bool:
        """Load configuration and build the session."""
        try:
            self.config = GlobalConfig(config_file=self.args.config_file)
        except ConfigError as e:
            console.print(f"[red]Error: {e}[/red]")
            return False

        # CLI > config
        if self.args.rtl_path:
            self.config.set("paths.source_dir", str(Path(self.args.rtl_path).resolve()))
        if self.args.top:
            self.config.set("hierarchy.top", self.args.top)
        if self.args.exclude_dirs:
            self.config.set("scanning.exclude_dirs",
                            self.config.get_list("scanning.exclude_dirs") + self.args.exclude_dirs)
        if self.args.exclude_globs:
            self.config.set("scanning.exclude_globs",
                            self.config.get_list("scanning.exclude_globs") + self.args.exclude_globs)
        if self.args.allow_cycles:
            self.config.set("hierarchy.fail_on_cycle", False)
        if self.args.debug:
            self.config.set("logging.debug", True)

        level = str(self.config.get("logging.level", "INFO")).upper()
        if not (self.args.verbose or self.args.debug):
            logging.getLogger().setLevel(getattr(logging, level, logging.INFO))

        nav_config = NavigatorConfig.from_global_config(self.config)
        if not nav_config.source_dir:
            console.print("[red]Error: no RTL path given (--rtl-path or paths.source_dir)[/red]")
            return False
        if not Path(nav_config.source_dir).exists():
            console.print(f"[red]Error: RTL path does not exist: {nav_config.source_dir}[/red]")
            return False

        self.session = NavigationSession(nav_config)
        return True

    def run(self) -> bool:
        """Execute the requested steps."""
        if not self.setup():
            return False

        with self.session:
            opened = self.session.open()
            if opened.failed:
                console.print(f"[red]{opened.message}[/red]")
                return False
            self._status(opened.message)

            if self.args.list_modules:
                self._list_modules()

            ok = True
            if self.session.config.top:
                ok = self._build_hierarchy() and ok

            for label, spec in (("driver", self.args.driver), ("load", self.args.load)):
                if spec:
                    ok = self._query(label, spec) and ok

            if self.args.go_up:
                ok = self._go_up(self.args.go_up) and ok

            if self.args.json:
                console.print_json(json.dumps(self.results))

        return ok

    def _status(self, message: str) -> None:
        if not self.args.json:
            console.print(f"[cyan]{message}[/cyan]")

    def _list_modules(self) -> None:
        catalog = self.session.catalog
        if self.args.json:
            self.results["modules"] = {
                name: {"file": catalog[name].file, "line": catalog[name].line}
                for name in catalog.names()
            }
            return
        for name in catalog.names():
            record = catalog[name]
            console.print(f"  {name:<32} {record.file}:{record.line}")
        for name, dups in sorted(catalog.duplicates.items()):
            for dup in dups:
                console.print(f"[yellow]  duplicate {name} ignored at {dup.file}:{dup.line}[/yellow]")

    def _build_hierarchy(self) -> bool:
        outcome = self.session.build_hierarchy()
        if outcome.failed:
            console.print(f"[red]{outcome.message}[/red]")
            return False
        self._status(outcome.message)

        entries = self.session.outline()
        graph = self.session.graph()
        if self.args.json:
            self.results["hierarchy"] = to_dict(entries)
            if self.args.stats:
                self.results["stats"] = graph.summary()
            return True

        if self.args.plain:
            console.print(format_outline(entries), markup=False, highlight=False)
        else:
            console.print(HierarchyOutlineAdapter(self.session.catalog).to_rich_tree(self.session.hierarchy))

        if self.args.stats:
            summary = graph.summary()
            console.print(
                f"[bold]Modules:[/bold] {summary['modules']}  "
                f"[bold]Instantiations:[/bold] {summary['instantiations']}  "
                f"[bold]Depth:[/bold] {summary['max_depth']}"
            )
            for cycle in summary["cycles"]:
                console.print(f"[yellow]cycle: {' -> '.join(cycle)}[/yellow]")
        return True

    def _query(self, label: str, spec: str) -> bool:
        path, line, column = parse_position(spec)
        try:
            cursor = offset_of(read_source(path), line, column)
        except OSError as e:
            console.print(f"[red]Error: cannot read {path}: {e}[/red]")
            return False

        if label == "driver":
            outcome = self.session.find_driver_at(path, cursor, internal=not self.args.from_port)
        else:
            outcome = self.session.find_load_at(path, cursor)
        self._report(label, outcome)
        return not outcome.failed

    def _go_up(self, spec: str) -> bool:
        *inst_path, port = spec.split(".")
        outcome = self.session.go_up(inst_path, port)
        self._report("go_up", outcome)
        return not outcome.failed

    def _report(self, label: str, outcome: NavigationOutcome) -> None:
        if self.args.json:
            self.results[label] = outcome_to_dict(outcome)
            return

        if outcome.status is OutcomeStatus.NOTICE:
            style = "red" if outcome.failed else "yellow"
            console.print(f"[{style}]{label}: {outcome.message}[/{style}]")
            return

        if outcome.message:
            console.print(f"[cyan]{label}: {outcome.message}[/cyan]")
        if outcome.status is OutcomeStatus.CHOOSE:
            console.print(f"[bold]{label}: {len(outcome.locations)} candidates[/bold]")
        for match in outcome.locations:
            console.print(f"  {match.location}  {match.description}", markup=False, highlight=False)


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="hdlnav: module hierarchy and driver/load navigation for Verilog/SystemVerilog",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    # ─────────────────────────────────────────────────────────────────────────
    # RTL/Source Path Options
    # ─────────────────────────────────────────────────────────────────────────
    rtl_group = parser.add_argument_group("RTL/Source Path")
    rtl_group.add_argument(
        "--rtl-path",
        default=None,
        help="Root directory (or single file) of the RTL source code"
    )
    rtl_group.add_argument(
        "--config-file",
        default=None,
        help="Path to global_config.yaml (overrides default)"
    )

    # ─────────────────────────────────────────────────────────────────────────
    # Hierarchy
    # ─────────────────────────────────────────────────────────────────────────
    hier_group = parser.add_argument_group("Hierarchy")
    hier_group.add_argument(
        "--top",
        default=None,
        metavar="MODULE",
        help="Top module to build the instance hierarchy from"
    )
    hier_group.add_argument(
        "--list-modules",
        action="store_true",
        help="List every cataloged module and its declaration site"
    )
    hier_group.add_argument(
        "--stats",
        action="store_true",
        help="Print instantiation graph metrics (fan-in/out, depth, cycles)"
    )
    hier_group.add_argument(
        "--allow-cycles",
        action="store_true",
        help="Keep circular instantiations as leaves instead of failing"
    )

    # ─────────────────────────────────────────────────────────────────────────
    # Driver / Load Navigation
    # ─────────────────────────────────────────────────────────────────────────
    nav_group = parser.add_argument_group("Driver/Load Navigation")
    nav_group.add_argument(
        "--driver",
        default=None,
        metavar="FILE:LINE:COL",
        help="Find the driver of the signal at this position"
    )
    nav_group.add_argument(
        "--from-port",
        action="store_true",
        help="The --driver position is the port declaration itself (input ports go up)"
    )
    nav_group.add_argument(
        "--load",
        default=None,
        metavar="FILE:LINE:COL",
        help="Find the loads of the signal at this position"
    )
    nav_group.add_argument(
        "--go-up",
        default=None,
        metavar="INST.PATH.PORT",
        help="Find the parent connection of a port (requires --top)"
    )

    # ─────────────────────────────────────────────────────────────────────────
    # Output
    # ─────────────────────────────────────────────────────────────────────────
    out_group = parser.add_argument_group("Output")
    out_group.add_argument(
        "--json",
        action="store_true",
        help="Emit results as JSON"
    )
    out_group.add_argument(
        "--plain",
        action="store_true",
        help="Print the hierarchy as an indented '*' outline instead of a tree"
    )

    # ─────────────────────────────────────────────────────────────────────────
    # File Scanning Options
    # ─────────────────────────────────────────────────────────────────────────
    scan_group = parser.add_argument_group("File Scanning")
    scan_group.add_argument(
        "--exclude-dirs",
        nargs="+",
        default=[],
        metavar="DIR",
        help="Additional directories to exclude"
    )
    scan_group.add_argument(
        "--exclude-globs",
        nargs="+",
        default=[],
        metavar="GLOB",
        help="Additional glob patterns to exclude"
    )

    # ─────────────────────────────────────────────────────────────────────────
    # Debugging & Verbosity
    # ─────────────────────────────────────────────────────────────────────────
    debug_group = parser.add_argument_group("Debugging & Verbosity")
    debug_group.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable detailed logging"
    )
    debug_group.add_argument(
        "-D", "--debug",
        action="store_true",
        help="Enable debug logging in every service"
    )

    args = parser.parse_args()

    for spec in (args.driver, args.load):
        if spec:
            try:
                parse_position(spec)
            except argparse.ArgumentTypeError as e:
                parser.error(str(e))

    # Setup logging level
    if args.verbose or args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    app = NavigatorApp(args)
    success = app.run()

    return 0 if success else 1


if __name__ == "__main__":
    sys.exit(main())
