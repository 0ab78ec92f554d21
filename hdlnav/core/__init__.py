"""Host-side helpers: source file collection and background hierarchy builds."""

from hdlnav.core.build_worker import HierarchyBuildWorker
from hdlnav.core.file_collector import SourceFileCollector, collect_source_files

__all__ = [
    "HierarchyBuildWorker",
    "SourceFileCollector",
    "collect_source_files",
]
