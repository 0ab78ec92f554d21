import argparse
import json
import sys

import pytest

import main

TOP = "module top;\n  sub inst1 (.a(x));\nendmodule\n"
SUB = "module sub (input a);\n  wire y;\n  assign y = a;\nendmodule\n"


@pytest.fixture
def rtl(tmp_path):
    root = tmp_path / "rtl"
    root.mkdir()
    (root / "top.v").write_text(TOP)
    (root / "sub.v").write_text(SUB)
    config = tmp_path / "cfg.yaml"
    config.write_text("hierarchy:\n  fail_on_cycle: true\n")
    return root, config


def _run(monkeypatch, *argv):
    monkeypatch.setattr(sys, "argv", ["hdlnav", *argv])
    return main.main()


def test_parse_position():
    assert main.parse_position("rtl/top.v:12") == ("rtl/top.v", 12, 1)
    assert main.parse_position("rtl/top.v:12:7") == ("rtl/top.v", 12, 7)
    with pytest.raises(argparse.ArgumentTypeError):
        main.parse_position("rtl/top.v")
    with pytest.raises(argparse.ArgumentTypeError):
        main.parse_position("rtl/top.v:x")


def test_hierarchy_json(monkeypatch, capsys, rtl):
    root, config = rtl
    code = _run(monkeypatch, "--config-file", str(config), "--rtl-path", str(root),
                "--top", "top", "--stats", "--json")

    assert code == 0
    data = json.loads(capsys.readouterr().out)
    assert [entry["inst_name"] for entry in data["hierarchy"]] == ["top", "inst1"]
    assert data["stats"]["fan_out"]["top"] == 1


def test_plain_outline(monkeypatch, capsys, rtl):
    root, config = rtl
    code = _run(monkeypatch, "--config-file", str(config), "--rtl-path", str(root),
                "--top", "top", "--plain")

    assert code == 0
    assert "* inst1 (sub)" in capsys.readouterr().out


def test_driver_query_and_go_up(monkeypatch, capsys, rtl):
    root, config = rtl
    position = f"{root / 'sub.v'}:3:14"
    code = _run(monkeypatch, "--config-file", str(config), "--rtl-path", str(root),
                "--top", "top", "--driver", position, "--go-up", "inst1.a", "--json")

    assert code == 0
    data = json.loads(capsys.readouterr().out)
    assert data["driver"]["status"] == "navigate"
    assert data["driver"]["locations"][0]["line"] == 1
    assert data["go_up"]["locations"][0]["line"] == 2


def test_unknown_top_fails(monkeypatch, rtl):
    root, config = rtl
    assert _run(monkeypatch, "--config-file", str(config), "--rtl-path", str(root), "--top", "nope") == 1


def test_missing_rtl_path_fails(monkeypatch, tmp_path, rtl):
    _, config = rtl
    assert _run(monkeypatch, "--config-file", str(config), "--rtl-path", str(tmp_path / "nowhere")) == 1
