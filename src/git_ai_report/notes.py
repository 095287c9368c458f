from __future__ import annotations

import json
import math
import re

from .models import NoteMessage, NotePrompt, ParsedNote

# Lines made only of hex digits, whitespace and dashes (content hashes, separators),
# or exactly 16 hex characters, are not file paths.
_HASH_OR_SEPARATOR_RE = re.compile(r"^(?:[a-f0-9\s\-]+|[a-f0-9]{16})$")


def is_file_path_line(line: str) -> bool:
    s = line.strip()
    if not s:
        return False
    return _HASH_OR_SEPARATOR_RE.match(s) is None


def extract_file_paths(note: str) -> list[str]:
    """
    Collect the file list that precedes the JSON payload of a note.

    Scanning stops at the first `---` line or the first line starting with `{`.
    Only the first whitespace-delimited token of each path line is kept.
    """
    paths: list[str] = []
    for raw in (note or "").split("\n"):
        line = raw.strip()
        if line == "---" or line.startswith("{"):
            break
        if is_file_path_line(line):
            paths.append(line.split()[0])
    return paths


def _reject_constant(name: str) -> float:
    raise ValueError(f"non-finite number in note: {name}")


def extract_payload(note: str) -> dict | None:
    """
    Parse the first-`{` to last-`}` span of a note as JSON; None when absent or malformed.

    `NaN` and `Infinity` are not JSON and make the note malformed, as does nesting
    too deep to decode.
    """
    text = note or ""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end < start:
        return None
    try:
        data = json.loads(text[start : end + 1], parse_constant=_reject_constant)
    except (ValueError, RecursionError):
        return None
    if not isinstance(data, dict):
        return None
    return data


def _number(value: object) -> int | float:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value):
        return value
    return 0


def _text(value: object) -> str | None:
    if isinstance(value, str) and value:
        return value
    return None


def _prompt_items(prompts: object) -> list[tuple[str, object]]:
    if isinstance(prompts, dict):
        return [(str(k), v) for k, v in prompts.items()]
    if isinstance(prompts, list):
        return [(str(i), v) for i, v in enumerate(prompts)]
    return []


def _has_prompts(payload: dict) -> bool:
    prompts = payload.get("prompts")
    if isinstance(prompts, (dict, list)):
        return True
    return bool(prompts)


def _parse_messages(raw: object) -> tuple[NoteMessage, ...]:
    if not isinstance(raw, list):
        return ()
    out: list[NoteMessage] = []
    for m in raw:
        if not isinstance(m, dict):
            continue
        out.append(
            NoteMessage(
                type=str(m.get("type", "") or ""),
                text=_text(m.get("text")),
                timestamp=_text(m.get("timestamp")),
                name=_text(m.get("name")),
            )
        )
    return tuple(out)


def parse_prompts(payload: dict) -> list[NotePrompt]:
    """
    Flatten the `prompts` member of a note payload, keeping the payload's key order.

    JSON objects decode into insertion-ordered dicts, so "first prompt" always means
    first in the note text.
    """
    out: list[NotePrompt] = []
    for prompt_id, p in _prompt_items(payload.get("prompts")):
        if not isinstance(p, dict):
            continue
        agent = p.get("agent_id")
        agent_d = agent if isinstance(agent, dict) else {}
        out.append(
            NotePrompt(
                prompt_id=prompt_id,
                tool=_text(agent_d.get("tool")),
                model=_text(agent_d.get("model")),
                human_author=_text(p.get("human_author")),
                has_agent_id=isinstance(agent, dict),
                total_additions=_number(p.get("total_additions")),
                total_deletions=_number(p.get("total_deletions")),
                accepted_lines=_number(p.get("accepted_lines")),
                overridden_lines=_number(p.get("overriden_lines")),
                messages=_parse_messages(p.get("messages")),
            )
        )
    return out


def load_ai_payload(note: str) -> dict | None:
    payload = extract_payload(note)
    if payload is None or not _has_prompts(payload):
        return None
    return payload


def parse_note(note: str | None) -> ParsedNote | None:
    """
    Turn one raw git-note into a ParsedNote, or None when it is not an AI-authorship note.

    Numeric fields are summed over all prompts; model, tool and human author are taken
    from the first prompt that carries a non-empty value.
    """
    if not note:
        return None
    try:
        payload = load_ai_payload(note)
        if payload is None:
            return None

        additions: int | float = 0
        deletions: int | float = 0
        accepted: int | float = 0
        overridden: int | float = 0
        model: str | None = None
        tool: str | None = None
        author: str | None = None
        for p in parse_prompts(payload):
            additions += p.total_additions
            deletions += p.total_deletions
            accepted += p.accepted_lines
            overridden += p.overridden_lines
            if model is None and p.model:
                model = p.model
            if tool is None and p.tool:
                tool = p.tool
            if author is None and p.human_author:
                author = p.human_author

        return ParsedNote(
            files=tuple(extract_file_paths(note)),
            total_additions=additions,
            total_deletions=deletions,
            accepted_lines=accepted,
            overridden_lines=overridden,
            model=model,
            tool=tool,
            author=author,
        )
    except (TypeError, ValueError, AttributeError, RecursionError):
        return None
