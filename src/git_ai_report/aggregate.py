from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from .config import DEFAULT_NOTES_REF, RECENT_COMMITS_LIMIT
from .git import get_commit_diff_stats, list_commits_with_notes
from .metrics import DiffStatsFetcher, pct, resolve_metrics
from .models import (
    AuthorStats,
    CommitDetail,
    CommitStats,
    DashboardData,
    FileStats,
    ModelStats,
    ParsedNote,
    RawCommit,
    ToolStats,
)
from .notes import parse_note


def commit_day(commit_iso: str) -> str:
    return (commit_iso or "").split("T", 1)[0]


def add_file_stats(
    file_stats: dict[str, FileStats],
    files: Iterable[str],
    *,
    total_lines: int | float,
    ai_lines: int | float,
    file_count: int,
    commit_iso: str,
) -> None:
    # Commit totals are split evenly over the files it touched.
    lines_per_file = total_lines / file_count
    ai_per_file = ai_lines / file_count
    for path in files:
        cur = file_stats.get(path)
        if cur is None:
            cur = file_stats[path] = FileStats(filepath=path)
        cur.modifications += 1
        cur.ai_lines += ai_per_file
        cur.total_lines += lines_per_file
        cur.last_modified = commit_iso


def add_date_stats(by_date: dict[str, CommitStats], day: str, *, total_lines: int | float, ai_lines: int | float) -> None:
    cur = by_date.get(day)
    if cur is None:
        cur = by_date[day] = CommitStats(date=day)
    cur.count += 1
    cur.ai_lines += ai_lines
    cur.total_lines += total_lines
    cur.ai_percent = pct(cur.ai_lines, cur.total_lines)


def add_model_stats(models: dict[str, ModelStats], model: str, *, total_lines: int | float, ai_lines: int | float) -> None:
    cur = models.get(model)
    if cur is None:
        cur = models[model] = ModelStats(model=model)
    cur.commits += 1
    cur.lines += total_lines
    cur.accepted_lines += ai_lines
    cur.acceptance_rate = pct(cur.accepted_lines, cur.lines)


def add_tool_stats(tools: dict[str, ToolStats], tool: str, *, total_lines: int | float) -> None:
    cur = tools.get(tool)
    if cur is None:
        cur = tools[tool] = ToolStats(tool=tool)
    cur.commits += 1
    cur.lines += total_lines


def add_author_stats(authors: dict[str, AuthorStats], author: str, *, total_lines: int | float, ai_lines: int | float) -> None:
    cur = authors.get(author)
    if cur is None:
        cur = authors[author] = AuthorStats(author=author)
    cur.commits += 1
    cur.total_lines += total_lines
    cur.ai_assisted_lines += ai_lines
    cur.ai_usage_percent = pct(cur.ai_assisted_lines, cur.total_lines)


def _commit_detail(commit: RawCommit, parsed: ParsedNote, *, total_lines: int | float, ai_lines: int | float) -> CommitDetail:
    return CommitDetail(
        sha=commit.sha,
        short_sha=commit.short_sha,
        date=commit.date,
        author=commit.author,
        message=commit.subject,
        ai_percent=pct(ai_lines, total_lines),
        total_lines=total_lines,
        ai_lines=ai_lines,
        model=parsed.model,
        tool=parsed.tool,
        files=parsed.files,
    )


def aggregate_commits(
    commits: Iterable[RawCommit],
    *,
    diff_stats: DiffStatsFetcher = get_commit_diff_stats,
    recent_limit: int = RECENT_COMMITS_LIMIT,
) -> DashboardData:
    """
    Fold commits and their notes into the dashboard data model.

    Commits without a note, or whose note is not an AI-authorship note, contribute to
    no rollup. `total_commits` counts every input commit that carries a note. Every
    rollup is keyed, so input order only matters for `recent_commits`, which keeps
    the first `recent_limit` processed commits.
    """
    total_commits = 0
    total_lines: int | float = 0
    ai_lines: int | float = 0
    seen_files: set[str] = set()
    by_date: dict[str, CommitStats] = {}
    models: dict[str, ModelStats] = {}
    tools: dict[str, ToolStats] = {}
    authors: dict[str, AuthorStats] = {}
    files: dict[str, FileStats] = {}
    recent: list[CommitDetail] = []

    for commit in commits:
        if not commit.note:
            continue
        total_commits += 1

        parsed = parse_note(commit.note)
        if parsed is None:
            continue

        resolved = resolve_metrics(parsed, commit.sha, diff_stats=diff_stats)
        c_total = resolved.total_lines
        c_ai = parsed.accepted_lines

        seen_files.update(parsed.files)
        add_file_stats(
            files,
            parsed.files,
            total_lines=c_total,
            ai_lines=c_ai,
            file_count=len(parsed.files) or 1,
            commit_iso=commit.date,
        )

        total_lines += c_total
        ai_lines += c_ai

        add_date_stats(by_date, commit_day(commit.date), total_lines=c_total, ai_lines=c_ai)
        if parsed.model:
            add_model_stats(models, parsed.model, total_lines=c_total, ai_lines=c_ai)
        if parsed.tool:
            add_tool_stats(tools, parsed.tool, total_lines=c_total)
        if parsed.author:
            add_author_stats(authors, parsed.author, total_lines=c_total, ai_lines=c_ai)

        if len(recent) < recent_limit:
            recent.append(_commit_detail(commit, parsed, total_lines=c_total, ai_lines=c_ai))

    acceptance_rates = tuple(
        {"date": st.date, "rate": st.ai_percent} for st in sorted(by_date.values(), key=lambda st: st.date)
    )

    return DashboardData(
        total_commits=total_commits,
        total_files=len(seen_files),
        total_lines=total_lines,
        ai_lines=ai_lines,
        human_lines=total_lines - ai_lines,
        ai_percentage=pct(ai_lines, total_lines),
        commits_by_date=by_date,
        model_usage=models,
        tool_usage=tools,
        author_stats=authors,
        file_stats=files,
        acceptance_rates=acceptance_rates,
        recent_commits=tuple(recent),
    )


def aggregate_dashboard_data(
    notes_ref: str = DEFAULT_NOTES_REF,
    since: str | None = None,
    cwd: Path | None = None,
) -> DashboardData:
    commits = list_commits_with_notes(notes_ref, since=since, cwd=cwd)
    return aggregate_commits(commits, diff_stats=lambda sha: get_commit_diff_stats(sha, cwd=cwd))
