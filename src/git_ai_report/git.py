from __future__ import annotations

import re
import subprocess
from pathlib import Path
from typing import Optional

from .models import GitNote, RawCommit

_SHORTSTAT_RE = re.compile(r"(\d+) insertions?\(\+\),?\s*(?:(\d+) deletions?\(-\))?")


def run_git(args: list[str], cwd: Path | None = None, timeout_s: int | None = None) -> tuple[int, str, str]:
    proc = subprocess.run(
        ["git", *args],
        cwd=str(cwd) if cwd is not None else None,
        capture_output=True,
        text=True,
        timeout=timeout_s,
    )
    return proc.returncode, proc.stdout, proc.stderr


def _try_git(args: list[str], cwd: Path | None) -> tuple[int, str, str]:
    try:
        return run_git(args, cwd=cwd)
    except (OSError, subprocess.SubprocessError) as e:
        return 1, "", str(e)


def get_repo_toplevel(candidate: Path) -> Optional[Path]:
    code, out, _ = _try_git(["rev-parse", "--show-toplevel"], cwd=candidate)
    if code != 0:
        return None
    try:
        return Path(out.strip()).resolve()
    except Exception:
        return None


def get_note(commit_sha: str, notes_ref: str | None = None, cwd: Path | None = None) -> str | None:
    args = ["notes"]
    if notes_ref:
        args += ["--ref", notes_ref]
    args += ["show", commit_sha]
    code, out, _ = _try_git(args, cwd=cwd)
    if code != 0:
        return None
    note = out.strip()
    return note or None


def list_commits_with_notes(notes_ref: str, since: str | None = None, cwd: Path | None = None) -> list[RawCommit]:
    """
    List commits reachable from HEAD (newest first) that carry a note under `notes_ref`.

    A missing ref, an empty repository or a failing git call yields an empty list.
    """
    args = ["log", "--format=%H\t%aI\t%an\t%s"]
    if since:
        args.append(f"--since={since}")
    code, out, _ = _try_git(args, cwd=cwd)
    if code != 0:
        return []

    commits: list[RawCommit] = []
    for line in out.splitlines():
        if not line.strip():
            continue
        parts = line.split("\t", 3)
        if len(parts) < 3:
            continue
        sha, date, author = parts[0], parts[1], parts[2]
        subject = parts[3] if len(parts) == 4 else ""
        note = get_note(sha, notes_ref, cwd=cwd)
        if note:
            commits.append(RawCommit(sha=sha, date=date, author=author, subject=subject, note=note))
    return commits


def parse_shortstat(output: str) -> tuple[int, int]:
    m = _SHORTSTAT_RE.search(output or "")
    if m is None:
        return 0, 0
    return int(m.group(1) or 0), int(m.group(2) or 0)


def get_commit_diff_stats(commit_sha: str, cwd: Path | None = None) -> tuple[int, int]:
    """(insertions, deletions) from `git show --shortstat`; (0, 0) on any failure."""
    code, out, _ = _try_git(["show", "--shortstat", "--format=", commit_sha], cwd=cwd)
    if code != 0:
        return 0, 0
    return parse_shortstat(out)


def get_notes_for_range(base_sha: str, head_sha: str, notes_ref: str | None = None, cwd: Path | None = None) -> list[GitNote]:
    code, out, _ = _try_git(["rev-list", f"{base_sha}..{head_sha}"], cwd=cwd)
    if code != 0:
        return []
    notes: list[GitNote] = []
    for sha in out.split():
        note = get_note(sha, notes_ref, cwd=cwd)
        if note:
            notes.append(GitNote(commit_sha=sha, note=note))
    return notes


def fetch_notes(notes_ref: str, remote: str = "origin", cwd: Path | None = None) -> bool:
    code, _, _ = _try_git(["fetch", remote, f"{notes_ref}:{notes_ref}"], cwd=cwd)
    return code == 0


def list_notes_refs(cwd: Path | None = None) -> list[str]:
    code, out, _ = _try_git(["for-each-ref", "--format=%(refname)", "refs/notes/"], cwd=cwd)
    if code != 0:
        return []
    return [line.strip() for line in out.splitlines() if line.strip()]
