"""
Module Catalog for Verilog/SystemVerilog HDL Navigation.

Scans a set of source files for module declarations and indexes each module
name to its defining file, the character offset just after the declaration
header, the 1-based line number and the header text. The first declaration
of a name wins; later duplicates are kept aside and reported, never raised.

Works entirely via regex; no external tooling required.
"""

import logging
import re
from typing import Any, Dict, Iterable, Iterator, List, Optional

from . import ModuleNotFoundInCatalog, ModuleRecord
from .text_scanner import line_of, mask_comments

logger = logging.getLogger(__name__)


def read_source(path: str) -> str:
    """Read a whole source file; undecodable bytes are replaced."""
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        return f.read()


class ModuleCatalog:
    """
    Mapping from module name to its canonical ModuleRecord.

    Attributes:
        records (Dict[str, ModuleRecord]): Canonical (first found) declarations
        duplicates (Dict[str, List[ModuleRecord]]): Later declarations of a name
        files (List[str]): Files scanned, in scan order
    """

    def __init__(self) -> None:
        self.records: Dict[str, ModuleRecord] = {}
        self.duplicates: Dict[str, List[ModuleRecord]] = {}
        self.files: List[str] = []

    def add(self, record: ModuleRecord) -> bool:
        """Add a record; returns False if the name was already cataloged."""
        if record.name in self.records:
            self.duplicates.setdefault(record.name, []).append(record)
            first = self.records[record.name]
            logger.debug(
                f"Duplicate declaration of '{record.name}' at {record.file}:{record.line} "
                f"(keeping {first.file}:{first.line})"
            )
            return False
        self.records[record.name] = record
        return True

    def get(self, name: str) -> Optional[ModuleRecord]:
        return self.records.get(name)

    def require(self, name: str) -> ModuleRecord:
        record = self.records.get(name)
        if record is None:
            raise ModuleNotFoundInCatalog(name)
        return record

    def names(self) -> List[str]:
        """Sorted module names; the key set offered for top-module completion."""
        return sorted(self.records)

    def records_in(self, file: str) -> List[ModuleRecord]:
        return sorted(
            (r for r in self.records.values() if r.file == file),
            key=lambda r: r.offset,
        )

    def module_at(self, file: str, offset: int) -> Optional[ModuleRecord]:
        """The last module declared in ``file`` at or before ``offset``."""
        found = None
        for record in self.records_in(file):
            header_start = record.offset - len(record.header_text)
            if header_start <= offset:
                found = record
            else:
                break
        return found

    def __contains__(self, name: object) -> bool:
        return name in self.records

    def __getitem__(self, name: str) -> ModuleRecord:
        return self.require(name)

    def __iter__(self) -> Iterator[str]:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)

    def __repr__(self) -> str:
        return f"ModuleCatalog(modules={len(self.records)}, files={len(self.files)})"


class ModuleCatalogBuilder:
    """
    Builds a ModuleCatalog from a list of Verilog/SystemVerilog files.

    The declaration pattern accepts an optional ``import pkg::*;`` preamble
    and only matches when the header is followed by ``(``, ``#(``, a macro
    token or ``;``. Matches whose ``module`` keyword sits inside a ``//``
    comment are dropped.

    Attributes:
        config (Dict): Configuration dict with keys:
            - debug (bool): Enable debug logging
    """

    _MODULE_DECL_RE = re.compile(
        r"\b(?P<keyword>module)\s+(?P<name>[A-Za-z_][\w$]*)"
        r"(?:\s*import\s+[^;]+;)*"
        r"(?=\s*(?:\(|#|`|;))"
    )

    def __init__(self, config: Optional[Dict[str, Any]] = None) -> None:
        """
        Initialize the ModuleCatalogBuilder.

        Args:
            config (Dict, optional): Configuration with keys:
                - debug (bool, optional): Enable debug logging
        """
        self.config = config or {}
        self.debug = self.config.get("debug", False)

        if self.debug:
            logger.setLevel(logging.DEBUG)

    def build(self, file_list: Iterable[str]) -> ModuleCatalog:
        """
        Scan every file and index its module declarations.

        Args:
            file_list (Iterable[str]): Source file paths, scanned in order

        Returns:
            ModuleCatalog: Name -> first declaration found
        """
        catalog = ModuleCatalog()

        for file_path in file_list:
            file_path = str(file_path)
            try:
                source = read_source(file_path)
            except OSError as e:
                logger.warning(f"Skipping unreadable file {file_path}: {e}")
                continue

            catalog.files.append(file_path)
            for record in self.scan_text(source, file_path):
                catalog.add(record)

        if not catalog.files:
            logger.warning("No files provided to build module catalog")

        logger.info(
            "Module catalog complete: %d modules in %d files (%d duplicate names)",
            len(catalog), len(catalog.files), len(catalog.duplicates)
        )
        return catalog

    def scan_text(self, source: str, file_path: str) -> List[ModuleRecord]:
        """
        Extract the module declarations of one file's text.

        Args:
            source (str): Full file text
            file_path (str): Path recorded on each ModuleRecord

        Returns:
            List[ModuleRecord]: Declarations in text order
        """
        comments = mask_comments(source)
        records: List[ModuleRecord] = []

        for match in self._MODULE_DECL_RE.finditer(source):
            keyword_pos = match.start("keyword")
            if comments.contains(keyword_pos):
                continue

            header_start = source.rfind("\n", 0, keyword_pos) + 1
            records.append(
                ModuleRecord(
                    name=match.group("name"),
                    file=file_path,
                    offset=match.end(),
                    line=line_of(source, keyword_pos),
                    header_text=source[header_start:match.end()],
                )
            )

            if self.debug:
                logger.debug(f"Found module {match.group('name')} in {file_path}")

        return records


def build_catalog(file_list: Iterable[str], config: Optional[Dict[str, Any]] = None) -> ModuleCatalog:
    """Convenience wrapper around ModuleCatalogBuilder."""
    return ModuleCatalogBuilder(config).build(file_list)
