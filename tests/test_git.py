from __future__ import annotations

import os
import subprocess
from pathlib import Path

from git_ai_report.git import (
    get_commit_diff_stats,
    get_note,
    get_notes_for_range,
    get_repo_toplevel,
    list_commits_with_notes,
    list_notes_refs,
)


def _run(cmd: list[str], *, cwd: Path, env: dict[str, str] | None = None) -> str:
    proc = subprocess.run(cmd, cwd=str(cwd), env=env, check=True, capture_output=True, text=True)
    return proc.stdout


def _commit(repo: Path, name: str, content: str, msg: str, date: str) -> str:
    (repo / name).write_text(content, encoding="utf-8")
    _run(["git", "add", name], cwd=repo)
    env = os.environ.copy()
    env["GIT_AUTHOR_DATE"] = date
    env["GIT_COMMITTER_DATE"] = date
    _run(["git", "commit", "-m", msg], cwd=repo, env=env)
    return _run(["git", "rev-parse", "HEAD"], cwd=repo).strip()


def _init_repo(tmp_path: Path) -> Path:
    repo = tmp_path / "r"
    repo.mkdir()
    _run(["git", "init"], cwd=repo)
    _run(["git", "config", "user.name", "Test User"], cwd=repo)
    _run(["git", "config", "user.email", "test@example.com"], cwd=repo)
    return repo


def test_notes_are_listed_newest_first(tmp_path: Path) -> None:
    repo = _init_repo(tmp_path)
    first = _commit(repo, "a.txt", "one\ntwo\nthree\n", "first\tcommit", "2024-01-01T12:00:00Z")
    second = _commit(repo, "b.txt", "x\n", "second", "2024-01-02T12:00:00Z")
    third = _commit(repo, "a.txt", "one\nfour\n", "third", "2024-01-03T12:00:00Z")
    _run(["git", "notes", "add", "-m", "note for first", first], cwd=repo)
    _run(["git", "notes", "add", "-m", "note for third", third], cwd=repo)

    commits = list_commits_with_notes("refs/notes/commits", cwd=repo)
    assert [c.sha for c in commits] == [third, first]
    assert commits[0].note == "note for third"
    assert commits[0].author == "Test User"
    assert commits[0].date.startswith("2024-01-03")
    assert commits[1].subject == "first\tcommit"

    assert get_note(second, "refs/notes/commits", cwd=repo) is None
    assert list_notes_refs(cwd=repo) == ["refs/notes/commits"]

    notes = get_notes_for_range(first, third, "refs/notes/commits", cwd=repo)
    assert [n.commit_sha for n in notes] == [third]

    assert get_commit_diff_stats(first, cwd=repo) == (3, 0)
    assert get_commit_diff_stats(third, cwd=repo) == (1, 2)


def test_since_filters_commits(tmp_path: Path) -> None:
    repo = _init_repo(tmp_path)
    old = _commit(repo, "a.txt", "1\n", "old", "2020-01-01T12:00:00Z")
    new = _commit(repo, "a.txt", "2\n", "new", "2024-01-01T12:00:00Z")
    for sha in (old, new):
        _run(["git", "notes", "add", "-m", "n", sha], cwd=repo)

    commits = list_commits_with_notes("refs/notes/commits", since="2023-01-01", cwd=repo)
    assert [c.sha for c in commits] == [new]


def test_missing_ref_gives_empty_list(tmp_path: Path) -> None:
    repo = _init_repo(tmp_path)
    _commit(repo, "a.txt", "1\n", "c", "2024-01-01T12:00:00Z")
    assert list_commits_with_notes("refs/notes/ai", cwd=repo) == []
    assert list_notes_refs(cwd=repo) == []


def test_not_a_repo(tmp_path: Path) -> None:
    assert get_repo_toplevel(tmp_path) is None
    assert list_commits_with_notes("refs/notes/commits", cwd=tmp_path) == []
    assert get_commit_diff_stats("HEAD", cwd=tmp_path) == (0, 0)
