from __future__ import annotations

from pathlib import Path
from typing import Dict, List

import pytest

from hdlnav.services.module_catalog import build_catalog


@pytest.fixture
def write_rtl(tmp_path: Path):
    """Write {name: text} into tmp_path/rtl and return the file paths in order."""

    def _write(files: Dict[str, str]) -> List[str]:
        root = tmp_path / "rtl"
        root.mkdir(exist_ok=True)
        paths = []
        for name, text in files.items():
            path = root / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding="utf-8")
            paths.append(str(path))
        return paths

    return _write


@pytest.fixture
def catalog_of(write_rtl):
    """Catalog built over freshly written files."""

    def _build(files: Dict[str, str]):
        return build_catalog(write_rtl(files))

    return _build


# A instantiates B directly and through C; B instantiates the leaf D.
DIAMOND = {
    "a.v": "module A;\n  B u_b1 ();\n  C u_c ();\nendmodule\n",
    "b.v": "module B;\n  D u_d ();\nendmodule\n",
    "c.v": "module C;\n  B u_b2 ();\nendmodule\n",
    "d.v": "module D;\nendmodule\n",
}


@pytest.fixture
def diamond(catalog_of):
    return catalog_of(DIAMOND)
