from __future__ import annotations

import json
import os
import subprocess
from pathlib import Path

import pytest

from git_ai_report.cli import main


def _run(cmd: list[str], *, cwd: Path, env: dict[str, str] | None = None) -> str:
    proc = subprocess.run(cmd, cwd=str(cwd), env=env, check=True, capture_output=True, text=True)
    return proc.stdout


def _repo_with_ai_note(tmp_path: Path) -> Path:
    repo = tmp_path / "r"
    repo.mkdir()
    _run(["git", "init"], cwd=repo)
    _run(["git", "config", "user.name", "Test User"], cwd=repo)
    _run(["git", "config", "user.email", "test@example.com"], cwd=repo)
    (repo / "app.py").write_text("print('hi')\n", encoding="utf-8")
    _run(["git", "add", "app.py"], cwd=repo)
    env = os.environ.copy()
    env["GIT_AUTHOR_DATE"] = "2024-04-01T10:00:00Z"
    env["GIT_COMMITTER_DATE"] = "2024-04-01T10:00:00Z"
    _run(["git", "commit", "-m", "add app"], cwd=repo, env=env)
    note = "app.py\n---\n" + json.dumps(
        {"prompts": {"p1": {"total_additions": 4, "accepted_lines": 3, "agent_id": {"model": "m1", "tool": "t1"}, "human_author": "tester"}}}
    )
    _run(["git", "notes", "add", "-m", note, "HEAD"], cwd=repo)
    return repo


def test_generates_dashboard(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    repo = _repo_with_ai_note(tmp_path)
    monkeypatch.chdir(repo)

    assert main(["-o", "out/dash.html", "-r", "acme/app"]) == 0

    html = (repo / "out" / "dash.html").read_text(encoding="utf-8")
    assert "acme/app" in html
    assert '"total_commits": 1' in html
    out = capsys.readouterr().out
    assert "Found 1 commits with AI authorship data" in out
    assert "75.0% AI contribution" in out
    assert "Dashboard generated successfully" in out


def test_no_notes_exits_nonzero(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    repo = _repo_with_ai_note(tmp_path)
    monkeypatch.chdir(repo)

    assert main(["-n", "refs/notes/other", "-o", "dash.html"]) == 1
    assert not (repo / "dash.html").exists()
    out = capsys.readouterr().out
    assert "refs/notes/commits" in out


def test_outside_repo_exits_nonzero(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    monkeypatch.chdir(tmp_path)
    assert main([]) == 1
    assert "Not a git repository" in capsys.readouterr().err


def test_help_exits_zero(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as e:
        main(["--help"])
    assert e.value.code == 0
    assert "--notes-ref" in capsys.readouterr().out
