from __future__ import annotations

from pathlib import Path

import pytest

from batch_mcp import BatchEngine, ServerSettings
from bmcp import cli

from conftest import PYTHON_PROFILE


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "MATLAB_PATH",
        "OCTAVE_PATH",
        "BATCH_MCP_CONFIG",
        "BATCH_MCP_INTERPRETER",
        "BATCH_MCP_TIMEOUT",
        "BATCH_MCP_LOG_LEVEL",
        "BATCH_MCP_STAGING_DIR",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def served(monkeypatch: pytest.MonkeyPatch) -> list[ServerSettings]:
    calls: list[ServerSettings] = []
    monkeypatch.setattr(cli, "serve", calls.append)
    return calls


@pytest.fixture
def python_cli(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    monkeypatch.setattr(cli, "build_engine", lambda settings: BatchEngine(profile=PYTHON_PROFILE))
    monkeypatch.setenv("BATCH_MCP_STAGING_DIR", str(tmp_path))
    return tmp_path


def test_cli_serve_defaults_to_stdio(served: list[ServerSettings]) -> None:
    code = cli.main(["serve"])

    assert code == 0
    assert served[0].transport == "stdio"
    assert served[0].executable == "matlab"


def test_cli_serve_http_with_flags(served: list[ServerSettings]) -> None:
    code = cli.main(["--interpreter-path", "/opt/matlab/bin/matlab", "serve", "-t", "http", "--port", "9000"])

    assert code == 0
    assert served[0].transport == "http"
    assert served[0].port == 9000
    assert served[0].executable == "/opt/matlab/bin/matlab"


def test_cli_flags_override_environment(served: list[ServerSettings], monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MATLAB_PATH", "/env/matlab")
    monkeypatch.setenv("BATCH_MCP_LOG_LEVEL", "WARNING")
    cli.main(["--interpreter", "octave", "--log-level", "debug", "serve"])

    assert served[0].interpreter == "octave"
    assert served[0].executable == "octave-cli"
    assert served[0].log_level == "DEBUG"


def test_cli_run_prints_output(python_cli: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code = cli.main(["run", "--code", "print(2 + 3)", "--timeout", "30"])
    output = capsys.readouterr().out

    assert code == 0
    assert "5" in output
    assert list(python_cli.iterdir()) == []


def test_cli_run_reads_code_file(python_cli: Path, tmp_path_factory: pytest.TempPathFactory, capsys) -> None:
    script = tmp_path_factory.mktemp("scripts") / "hello.py"
    script.write_text("print('Hello from batch-mcp!')\n", encoding="utf-8")
    code = cli.main(["run", "--file", str(script)])

    assert code == 0
    assert "Hello from batch-mcp!" in capsys.readouterr().out


def test_cli_run_reports_timeout(python_cli: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code = cli.main(["run", "--code", "import time\ntime.sleep(2)", "--timeout", "1"])
    output = capsys.readouterr().out

    assert code == 1
    assert "timed out" in output


def test_cli_run_rejects_non_positive_timeout(python_cli: Path, capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as exc:
        cli.main(["run", "--code", "print(1)", "--timeout", "-1"])

    assert exc.value.code == 2
    assert "positive" in capsys.readouterr().out


def test_cli_run_requires_code_source(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as exc:
        cli.main(["run"])

    assert exc.value.code == 2
    assert "Error:" in capsys.readouterr().out


def test_cli_invalid_environment_is_reported(monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    monkeypatch.setenv("BATCH_MCP_TIMEOUT", "soon")
    with pytest.raises(SystemExit) as exc:
        cli.main(["serve"])

    assert exc.value.code == 2
    assert "BATCH_MCP_TIMEOUT" in capsys.readouterr().out


def test_cli_top_level_help_examples(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as exc:
        cli.main(["--help"])
    output = capsys.readouterr().out

    assert exc.value.code == 0
    assert "Quick Examples:" in output
    assert "python -m bmcp serve -t http --port 8080" in output
    assert "MATLAB_PATH" in output
