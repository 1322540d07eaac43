## awwforth — Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import os, sys
import subprocess
from pathlib import Path


def repo_root() -> Path:
    return Path(__file__).resolve().parents[1]


def run_cli(*cli_args: str | Path, stdin: str | None = None, extra_args: list[str] | None = None) -> subprocess.CompletedProcess:
    args = [sys.executable, "-m", "awwforth", "--plain"]
    if extra_args:
        args.extend(extra_args)
    args.extend(str(arg) for arg in cli_args)
    env = os.environ.copy()
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(repo_root() / "src"), env.get("PYTHONPATH")]))
    return subprocess.run(args, input=stdin, capture_output=True, text=True, env=env, timeout=60)


def _strip_output_lines(output: str) -> list[str]:
    return [line for line in output.splitlines() if line.strip()]


def test_cli_inline_commands():
    result = run_cli("-c", "3 4 + .", "-c", ": sq dup * ; 5 sq .")
    assert result.returncode == 0
    assert _strip_output_lines(result.stdout) == ["7  ok", "25  ok"]


def test_cli_run_file_subcommand_executes_lines(tmp_path: Path):
    program = tmp_path / "hello.fs"
    program.write_text(": greet 72 emit 105 emit ;\n\\ comment only\ngreet\n", encoding='utf-8')
    result = run_cli("run-file", program)
    assert result.returncode == 0
    assert _strip_output_lines(result.stdout) == [" ok", " ok", "Hi ok"]


def test_cli_stdin_implicit_runs_program():
    result = run_cli(stdin="1 2 + .\n")
    assert result.returncode == 0
    assert _strip_output_lines(result.stdout) == ["3  ok"]


def test_cli_error_sets_retcode_and_stops(tmp_path: Path):
    program = tmp_path / "broken.fs"
    program.write_text("drop\n1 .\n", encoding='utf-8')
    result = run_cli("run-file", program)
    assert result.returncode == 1
    out = result.stdout
    assert "Stack underflow in Stack" in out
    assert "RUNTIME ERROR." in out
    assert "line 1 of" in out
    assert "1  ok" not in out


def test_cli_ignore_keeps_going(tmp_path: Path):
    program = tmp_path / "broken.fs"
    program.write_text("drop\n1 .\n", encoding='utf-8')
    result = run_cli("run-file", program, extra_args=["--ignore"])
    assert result.returncode == 0
    assert "1  ok" in result.stdout


def test_cli_compile_error_is_reported():
    result = run_cli("-c", ": f if 1 ;")
    assert result.returncode == 1
    assert "COMPILE ERROR." in result.stdout


def test_cli_sleep_waits_for_resume():
    result = run_cli("-c", "1 . 10 sleep 2 .")
    assert result.returncode == 0
    assert _strip_output_lines(result.stdout) == ["1 2  ok"]


def test_cli_stats():
    result = run_cli("-c", "1 2 +", extra_args=["--stats"])
    assert result.returncode == 0
    assert "STATISTICS." in result.stdout
    assert "lines\t1" in result.stdout


def test_cli_plain_strips_ansi():
    result = run_cli("-c", "drop", extra_args=["--ignore"])
    assert "\033[" not in result.stdout


def test_cli_repl_inspection_commands():
    result = run_cli("run-repl", stdin="%devices\nvariable spot\n1 2 +\n%stack\n%memory\n")
    assert result.returncode == 0
    out = result.stdout
    assert "no devices attached" in out
    # Piped stdin still echoes the `<<< ` prompt in front of each printed line.
    assert any(line.removeprefix("<<< ").strip() == "3" for line in _strip_output_lines(out))
    assert "spot" in out and "cell(s) left" in out
