from __future__ import annotations

from typing import Callable

from .git import get_commit_diff_stats
from .models import ParsedNote, ResolvedMetrics

DiffStatsFetcher = Callable[[str], tuple[int, int]]


def pct(part: int | float, whole: int | float) -> float:
    """part / whole * 100, or 0 when whole is 0. Not clamped."""
    if not whole:
        return 0.0
    return (part / whole) * 100.0


def needs_diff_fallback(parsed: ParsedNote) -> bool:
    return parsed.total_additions == 0 and not parsed.model


def resolve_metrics(
    parsed: ParsedNote,
    commit_sha: str,
    diff_stats: DiffStatsFetcher = get_commit_diff_stats,
) -> ResolvedMetrics:
    """
    Decide the authoritative total/deleted line counts for one commit.

    Notes with no recorded additions and no model are treated as manual commits and
    use the commit's real diff stats instead.
    """
    if needs_diff_fallback(parsed):
        try:
            insertions, deletions = diff_stats(commit_sha)
        except Exception:
            insertions, deletions = 0, 0
        return ResolvedMetrics(total_lines=insertions, total_deletions=deletions)
    return ResolvedMetrics(total_lines=parsed.total_additions, total_deletions=parsed.total_deletions)
