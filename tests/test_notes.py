from __future__ import annotations

import json

import pytest

from git_ai_report.notes import extract_file_paths, extract_payload, is_file_path_line, parse_note, parse_prompts


def _note(files: list[str], payload: dict) -> str:
    return "\n".join(files + ["---", json.dumps(payload)])


def test_parse_note_single_prompt() -> None:
    payload = {
        "prompts": {
            "p1": {
                "total_additions": 100,
                "accepted_lines": 80,
                "agent_id": {"model": "m1", "tool": "t1"},
                "human_author": "alice",
            }
        }
    }
    parsed = parse_note(_note(["src/a.ts"], payload))
    assert parsed is not None
    assert parsed.files == ("src/a.ts",)
    assert parsed.total_additions == 100
    assert parsed.accepted_lines == 80
    assert parsed.model == "m1"
    assert parsed.tool == "t1"
    assert parsed.author == "alice"


def test_first_prompt_with_a_model_wins() -> None:
    payload = {
        "prompts": {
            "p1": {"total_additions": 1, "agent_id": {"tool": "t1"}},
            "p2": {"total_additions": 2, "agent_id": {"model": "m2", "tool": "t2"}},
            "p3": {"total_additions": 3, "agent_id": {"model": "m3"}},
        }
    }
    parsed = parse_note(_note([], payload))
    assert parsed is not None
    assert parsed.model == "m2"
    assert parsed.tool == "t1"
    assert parsed.total_additions == 6

    reordered = {"prompts": {"p3": payload["prompts"]["p3"], "p2": payload["prompts"]["p2"]}}
    parsed2 = parse_note(_note([], reordered))
    assert parsed2 is not None
    assert parsed2.model == "m3"
    assert parsed2.tool == "t2"


def test_prompt_numbers_are_summed_and_overridden_key_is_read() -> None:
    payload = {
        "prompts": {
            "a": {"total_additions": 10, "total_deletions": 2, "accepted_lines": 7, "overriden_lines": 1},
            "b": {"total_additions": 5, "total_deletions": 3, "accepted_lines": 5, "overriden_lines": 2},
        }
    }
    parsed = parse_note(_note(["x.py"], payload))
    assert parsed is not None
    assert (parsed.total_additions, parsed.total_deletions) == (15, 5)
    assert (parsed.accepted_lines, parsed.overridden_lines) == (12, 3)


def test_non_numeric_values_count_as_zero() -> None:
    payload = {"prompts": {"a": {"total_additions": "12", "accepted_lines": None}}}
    parsed = parse_note(_note([], payload))
    assert parsed is not None
    assert parsed.total_additions == 0
    assert parsed.accepted_lines == 0


def test_malformed_json_is_not_an_ai_note() -> None:
    assert parse_note("src/a.ts\n---\n{\"prompts\": {") is None
    assert parse_note("just some plain text note") is None
    assert parse_note("") is None
    assert parse_note(None) is None


def test_payload_without_prompts_is_not_an_ai_note() -> None:
    assert parse_note('src/a.ts\n{"schema": 1}') is None
    # An empty prompt map still marks the note as an AI note.
    parsed = parse_note('src/a.ts\n{"prompts": {}}')
    assert parsed is not None
    assert parsed.total_additions == 0
    assert parsed.model is None


def test_file_paths_skip_hashes_and_separators() -> None:
    note = "\n".join(
        [
            "src/app.py  abc123",
            "0123456789abcdef",
            "  ",
            "deadbeef deadbeef",
            "docs/readme.md",
            "---",
            "after/separator.py",
        ]
    )
    assert extract_file_paths(note) == ["src/app.py", "docs/readme.md"]


def test_file_paths_stop_at_json() -> None:
    note = 'a.py\n{"prompts": {}}\nb.py'
    assert extract_file_paths(note) == ["a.py"]


def test_is_file_path_line() -> None:
    assert is_file_path_line("src/main.rs")
    assert not is_file_path_line("----")
    assert not is_file_path_line("a1b2 c3d4-e5f6")
    assert not is_file_path_line("")


def test_extract_payload_uses_outer_braces() -> None:
    note = 'file.txt\nprefix {"prompts": {"p": {"total_additions": 1}}} trailing'
    payload = extract_payload(note)
    assert payload == {"prompts": {"p": {"total_additions": 1}}}
    assert extract_payload("no json here") is None
    assert extract_payload("[1, 2]") is None


def test_parse_prompts_reads_messages_and_agent() -> None:
    payload = {
        "prompts": {
            "p1": {
                "agent_id": {"tool": "cursor", "model": "gpt"},
                "messages": [
                    {"type": "user", "text": "hi", "timestamp": "2024-01-01T00:00:00Z"},
                    {"type": "tool_use", "name": "edit"},
                    "ignored",
                ],
            },
            "p2": {"human_author": "bob"},
        }
    }
    prompts = parse_prompts(payload)
    assert [p.prompt_id for p in prompts] == ["p1", "p2"]
    assert prompts[0].has_agent_id
    assert not prompts[1].has_agent_id
    assert [m.type for m in prompts[0].messages] == ["user", "tool_use"]
    assert prompts[0].messages[1].name == "edit"
    assert prompts[1].human_author == "bob"


def test_deeply_nested_payload_is_not_an_ai_note() -> None:
    note = 'a.py\n{"prompts": ' + "[" * 100000 + "]" * 100000 + "}"
    assert extract_payload(note) is None
    assert parse_note(note) is None


@pytest.mark.parametrize("constant", ["NaN", "Infinity", "-Infinity"])
def test_non_finite_constants_are_not_an_ai_note(constant: str) -> None:
    note = 'a.py\n{"prompts": {"p": {"total_additions": ' + constant + ', "accepted_lines": 1}}}'
    assert extract_payload(note) is None
    assert parse_note(note) is None


def test_overflowing_numbers_count_as_zero() -> None:
    parsed = parse_note('a.py\n{"prompts": {"p": {"total_additions": 1e400, "accepted_lines": 2}}}')
    assert parsed is not None
    assert parsed.total_additions == 0
    assert parsed.accepted_lines == 2
