from __future__ import annotations

import dataclasses
import json
import os
from collections.abc import Mapping
from pathlib import Path

DEFAULT_NOTES_REF = "refs/notes/commits"
DEFAULT_OUTPUT = "ai-dashboard.html"
DEFAULT_API_URL = "https://api.github.com"
RECENT_COMMITS_LIMIT = 20
COMMENT_MARKER = "git-notes-bot"
REVIEW_MARKER = "git-notes-bot-review"


class ConfigError(RuntimeError):
    pass


def _env(env: Mapping[str, str] | None) -> Mapping[str, str]:
    return os.environ if env is None else env


def get_input(name: str, *, required: bool = False, env: Mapping[str, str] | None = None) -> str:
    """Read an action input the way the Actions runner exposes it: INPUT_<NAME> with spaces as `_`."""
    key = "INPUT_" + name.replace(" ", "_").upper()
    value = str(_env(env).get(key, "") or "").strip()
    if required and not value:
        raise ConfigError(f"Input required and not supplied: {name}")
    return value


def parse_bool_input(value: str) -> bool:
    return (value or "").strip().lower() == "true"


@dataclasses.dataclass(frozen=True)
class ActionInputs:
    github_token: str
    notes_ref: str = DEFAULT_NOTES_REF
    update_existing: bool = False
    add_inline_comments: bool = False


def load_action_inputs(env: Mapping[str, str] | None = None) -> ActionInputs:
    return ActionInputs(
        github_token=get_input("github-token", required=True, env=env),
        notes_ref=get_input("notes-ref", env=env) or DEFAULT_NOTES_REF,
        update_existing=parse_bool_input(get_input("update-existing", env=env)),
        add_inline_comments=parse_bool_input(get_input("add-inline-comments", env=env)),
    )


@dataclasses.dataclass(frozen=True)
class PullRequestContext:
    number: int
    base_sha: str
    head_sha: str
    owner: str
    repo: str


def load_event(event_path: Path) -> dict:
    if not event_path.exists():
        return {}
    data = json.loads(event_path.read_text(encoding="utf-8"))
    return data if isinstance(data, dict) else {}


def load_pull_request_context(env: Mapping[str, str] | None = None) -> PullRequestContext | None:
    """The pull request this run belongs to, or None outside a pull request event."""
    e = _env(env)
    event_path = str(e.get("GITHUB_EVENT_PATH", "") or "").strip()
    event = load_event(Path(event_path)) if event_path else {}
    pr = event.get("pull_request")
    if not isinstance(pr, dict):
        return None

    full_name = str(e.get("GITHUB_REPOSITORY", "") or "").strip()
    if not full_name:
        repo_obj = event.get("repository")
        if isinstance(repo_obj, dict):
            full_name = str(repo_obj.get("full_name", "") or "").strip()
    owner, _, repo = full_name.partition("/")
    if not owner or not repo:
        raise ConfigError("Cannot determine repository owner/name (GITHUB_REPOSITORY is not set)")

    base = pr.get("base") if isinstance(pr.get("base"), dict) else {}
    head = pr.get("head") if isinstance(pr.get("head"), dict) else {}
    return PullRequestContext(
        number=int(pr.get("number", 0) or 0),
        base_sha=str(base.get("sha", "") or ""),
        head_sha=str(head.get("sha", "") or ""),
        owner=owner,
        repo=repo,
    )


def api_url(env: Mapping[str, str] | None = None) -> str:
    return str(_env(env).get("GITHUB_API_URL", "") or "").strip().rstrip("/") or DEFAULT_API_URL
