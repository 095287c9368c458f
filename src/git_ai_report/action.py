"""Pull request runner: post the AI authorship notes of a PR's commits as a comment."""

from __future__ import annotations

import os
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Callable

from .comment import format_notes_as_comment, with_marker
from .config import (
    COMMENT_MARKER,
    REVIEW_MARKER,
    ActionInputs,
    PullRequestContext,
    api_url,
    load_action_inputs,
    load_pull_request_context,
)
from .git import fetch_notes, get_notes_for_range
from .github_api import GitHubAPIError, GitHubClient
from .models import GitNote
from .notes import parse_note

ClientFactory = Callable[[ActionInputs, Mapping[str, str]], GitHubClient]


def _default_client(inputs: ActionInputs, env: Mapping[str, str]) -> GitHubClient:
    return GitHubClient(inputs.github_token, api_url=api_url(env))


def set_output(name: str, value: str, env: Mapping[str, str] | None = None) -> None:
    e = os.environ if env is None else env
    path = str(e.get("GITHUB_OUTPUT", "") or "").strip()
    if not path:
        print(f"{name}={value}")
        return
    with Path(path).open("a", encoding="utf-8") as f:
        f.write(f"{name}={value}\n")


def post_comment(client: GitHubClient, pr: PullRequestContext, body: str, *, update_existing: bool) -> str:
    """Create the PR comment, or update the previous one when asked to. Returns "created" or "updated"."""
    full = with_marker(body, COMMENT_MARKER)
    if update_existing:
        existing = client.find_comment_with_marker(pr.owner, pr.repo, pr.number, f"<!-- {COMMENT_MARKER} -->")
        if existing is not None:
            client.update_issue_comment(pr.owner, pr.repo, existing, full)
            print(f"Updated existing comment {existing}")
            return "updated"
    client.create_issue_comment(pr.owner, pr.repo, pr.number, full)
    print("Created new comment")
    return "created"


def file_review_comments(notes: Sequence[GitNote]) -> list[dict]:
    """One file-level review comment per file touched by the notes."""
    by_file: dict[str, dict[str, list[str]]] = {}
    for n in notes:
        parsed = parse_note(n.note)
        if parsed is None:
            continue
        for path in parsed.files:
            cur = by_file.setdefault(path, {"commits": [], "models": []})
            short = n.commit_sha[:7]
            if short not in cur["commits"]:
                cur["commits"].append(short)
            if parsed.model and parsed.model not in cur["models"]:
                cur["models"].append(parsed.model)

    marker = f"<!-- {REVIEW_MARKER} -->"
    comments: list[dict] = []
    for path, info in by_file.items():
        lines = [marker, "🤖 **AI-assisted changes in this file**", ""]
        lines.append("Commits: " + ", ".join(f"`{c}`" for c in info["commits"]))
        if info["models"]:
            lines.append("Models: " + ", ".join(info["models"]))
        comments.append({"path": path, "body": "\n".join(lines)})
    return comments


def post_inline_review(client: GitHubClient, pr: PullRequestContext, notes: Sequence[GitNote]) -> int:
    """
    Post the file-level comments once per PR. Returns how many were posted.

    A file GitHub refuses (e.g. not part of the PR diff) is reported and skipped.
    """
    marker = f"<!-- {REVIEW_MARKER} -->"
    for c in client.list_review_comments(pr.owner, pr.repo, pr.number):
        if marker in str(c.get("body") or ""):
            print("Inline review already posted; skipping")
            return 0
    posted = 0
    for c in file_review_comments(notes):
        try:
            client.create_review_comment(pr.owner, pr.repo, pr.number, commit_id=pr.head_sha, path=c["path"], body=c["body"])
        except GitHubAPIError as ex:
            print(f"::warning::Could not comment on {c['path']}: {ex}")
            continue
        posted += 1
    if posted:
        print(f"Posted {posted} file review comment(s)")
    return posted


def _run(e: Mapping[str, str], factory: ClientFactory, cwd: Path | None) -> int:
    inputs = load_action_inputs(e)
    pr = load_pull_request_context(e)
    if pr is None:
        print("::error::This action only works on pull request events")
        return 1

    print(f"Processing PR #{pr.number}")
    print(f"Base SHA: {pr.base_sha}")
    print(f"Head SHA: {pr.head_sha}")
    print(f"Notes ref: {inputs.notes_ref}")

    print("Fetching git notes from remote...")
    if not fetch_notes(inputs.notes_ref, cwd=cwd):
        print(f"Note: could not fetch {inputs.notes_ref} from origin; using local notes")

    print("Reading git notes for PR commits...")
    notes = get_notes_for_range(pr.base_sha, pr.head_sha, inputs.notes_ref, cwd=cwd)
    if not notes:
        print("No git notes found for commits in this PR")
        set_output("notes-found", "false", e)
        set_output("notes-count", "0", e)
        return 0

    print(f"Found {len(notes)} commit(s) with notes")
    set_output("notes-found", "true", e)
    set_output("notes-count", str(len(notes)), e)

    client = factory(inputs, e)
    post_comment(client, pr, format_notes_as_comment(notes, inputs.notes_ref), update_existing=inputs.update_existing)

    if inputs.add_inline_comments:
        try:
            post_inline_review(client, pr, notes)
        except GitHubAPIError as ex:
            print(f"::warning::Could not post inline review: {ex}")

    print("Successfully posted git notes to PR")
    return 0


def run_action(
    env: Mapping[str, str] | None = None,
    *,
    client_factory: ClientFactory | None = None,
    cwd: Path | None = None,
) -> int:
    """Run the PR comment flow. Every failure becomes an `::error::` line and exit code 1."""
    e = os.environ if env is None else env
    try:
        return _run(e, client_factory or _default_client, cwd)
    except Exception as ex:
        print(f"::error::{str(ex) or type(ex).__name__}")
        return 1


def main(argv: list[str] | None = None) -> int:
    return run_action()
