from __future__ import annotations

import json

from basecalc import run_cli


def test_expressions_from_arguments(capsys) -> None:
    assert run_cli(["-e", "1+2", "iota 3"]) == 0
    assert capsys.readouterr().out == "3\n1 2 3\n"


def test_flags_configure_session(capsys) -> None:
    assert run_cli(["--origin", "0", "--format", "%.1f", "-e", "iota 2", "1/4"]) == 0
    assert capsys.readouterr().out == "0.0 1.0\n0.2\n"


def test_error_sets_exit_status(capsys) -> None:
    assert run_cli(["-e", "nope"]) == 1
    assert "<args>:1: undefined variable nope" in capsys.readouterr().err


def test_unknown_debug_flag(capsys) -> None:
    assert run_cli(["--debug", "bogus", "-e", "1"]) == 2
    assert "no such debug flag: bogus" in capsys.readouterr().err


def test_script_files_and_state_log(tmp_path, capsys) -> None:
    script = tmp_path / "script.calc"
    script.write_text("x = 6\nx * 7\n)origin\n")
    log = tmp_path / "log.json"
    assert run_cli([str(script), "--state-log", str(log)]) == 0
    assert capsys.readouterr().out == "42\n1\n"
    steps = json.loads(log.read_text())["steps"]
    assert [step["rule"] for step in steps] == ["AssignmentExpr", "BinaryExpr", "directive"]
    assert steps[1]["source_location"]["line"] == 2


def test_missing_script(tmp_path, capsys) -> None:
    assert run_cli([str(tmp_path / "absent.calc")]) == 1
    assert "Failed to read" in capsys.readouterr().err
