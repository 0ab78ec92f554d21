"""
Verilog/SystemVerilog source file discovery.
"""

import fnmatch
import logging
import os
from pathlib import Path
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)


class SourceFileCollector:
    """
    Walks a source tree and selects the files the module catalog scans.

    Supports:
    - Verilog source files (.v)
    - SystemVerilog source files (.sv, .svh)
    - Verilog headers (.vh)
    """

    DEFAULT_EXTENSIONS = (".v", ".sv", ".vh", ".svh")

    # Default exclusions for HDL projects
    DEFAULT_EXCLUDE_DIRS = {
        ".git",
        ".svn",
        ".hg",
        "sim_results",
        ".Xil",
        "xsim.dir",
        ".idea",
        ".vscode",
        "__pycache__",
        ".pytest_cache",
    }

    DEFAULT_EXCLUDE_GLOBS = [
        "*.vcd",
        "*.wlf",
        "*.fsdb",
        "*.log",
        "*.tmp",
    ]

    def __init__(
        self,
        root: str,
        extensions: Optional[Iterable[str]] = None,
        exclude_dirs: Optional[List[str]] = None,
        exclude_globs: Optional[List[str]] = None,
        max_files: int = 10000,
    ):
        """
        Initialize the collector.

        Args:
            root: Path to the source tree
            extensions: File suffixes to keep (default .v/.sv/.vh/.svh)
            exclude_dirs: Additional directories to exclude (names, not paths)
            exclude_globs: Additional glob patterns to exclude (relative paths)
            max_files: Maximum files to return
        """
        self.root = Path(root).resolve()
        self.extensions = {e.lower() for e in (extensions or self.DEFAULT_EXTENSIONS)}
        self.exclude_dirs = self.DEFAULT_EXCLUDE_DIRS | set(exclude_dirs or [])
        self.exclude_globs = self.DEFAULT_EXCLUDE_GLOBS + (exclude_globs or [])
        self.max_files = max_files

    def _is_excluded(self, path: Path) -> bool:
        """Check a path against excluded directory names and glob patterns.

        Only components below the root are inspected, so the location of the
        tree itself never triggers an exclusion.
        """
        try:
            rel_path = path.relative_to(self.root)
        except ValueError:
            return True

        for part in rel_path.parts[:-1]:
            if part in self.exclude_dirs:
                return True

        rel_path_str = rel_path.as_posix().lower()
        for pattern in self.exclude_globs:
            if fnmatch.fnmatch(rel_path_str, pattern.lower()):
                return True

        return False

    def collect(self) -> List[str]:
        """
        Return matching source files, sorted by path.

        Raises:
            FileNotFoundError: The root does not exist
        """
        if not self.root.exists():
            raise FileNotFoundError(f"Source path does not exist: {self.root}")

        if self.root.is_file():
            return [str(self.root)]

        files: List[str] = []
        for root, dirs, filenames in os.walk(self.root):
            dirs[:] = sorted(d for d in dirs if d not in self.exclude_dirs)

            for filename in filenames:
                file_path = Path(root) / filename
                if file_path.suffix.lower() not in self.extensions:
                    continue
                if self._is_excluded(file_path):
                    continue
                files.append(str(file_path))

        files.sort()
        if len(files) > self.max_files:
            logger.warning(f"Found {len(files)} source files; keeping the first {self.max_files}")
            files = files[:self.max_files]

        logger.info(f"Collected {len(files)} source files under {self.root}")
        return files


def collect_source_files(
    root: str,
    extensions: Optional[Iterable[str]] = None,
    exclude_dirs: Optional[List[str]] = None,
    exclude_globs: Optional[List[str]] = None,
) -> List[str]:
    return SourceFileCollector(root, extensions, exclude_dirs, exclude_globs).collect()
