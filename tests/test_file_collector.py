from pathlib import Path

import pytest

from hdlnav.core.file_collector import SourceFileCollector, collect_source_files


def _touch(root: Path, *names):
    for name in names:
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("module x;\nendmodule\n")


def test_collects_hdl_extensions_sorted(tmp_path):
    _touch(tmp_path, "b.sv", "a.v", "inc/defs.vh", "notes.txt", "run.py")

    files = collect_source_files(str(tmp_path))

    assert [Path(f).relative_to(tmp_path).as_posix() for f in files] == ["a.v", "b.sv", "inc/defs.vh"]


def test_extension_match_ignores_case(tmp_path):
    _touch(tmp_path, "TOP.V")
    assert len(collect_source_files(str(tmp_path))) == 1


def test_default_and_extra_excluded_dirs(tmp_path):
    _touch(tmp_path, "rtl/core.v", ".git/hooks.v", "gen/auto.v")

    files = SourceFileCollector(str(tmp_path), exclude_dirs=["gen"]).collect()

    assert [Path(f).name for f in files] == ["core.v"]


def test_exclude_globs_match_relative_path(tmp_path):
    _touch(tmp_path, "rtl/core.v", "rtl/core_tb.v", "tb/top_tb.sv")

    files = SourceFileCollector(str(tmp_path), exclude_globs=["*_tb.*"]).collect()

    assert [Path(f).name for f in files] == ["core.v"]


def test_custom_extensions(tmp_path):
    _touch(tmp_path, "a.v", "b.sv")
    files = SourceFileCollector(str(tmp_path), extensions=[".sv"]).collect()
    assert [Path(f).name for f in files] == ["b.sv"]


def test_max_files_truncates(tmp_path):
    _touch(tmp_path, "a.v", "b.v", "c.v")
    files = SourceFileCollector(str(tmp_path), max_files=2).collect()
    assert [Path(f).name for f in files] == ["a.v", "b.v"]


def test_single_file_root(tmp_path):
    _touch(tmp_path, "only.v")
    assert collect_source_files(str(tmp_path / "only.v")) == [str((tmp_path / "only.v").resolve())]


def test_missing_root_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        collect_source_files(str(tmp_path / "nowhere"))
