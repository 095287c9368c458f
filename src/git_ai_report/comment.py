from __future__ import annotations

import datetime as dt
import math
import re
from collections.abc import Sequence

from .config import COMMENT_MARKER
from .models import AggregateStats, GitNote, NotePrompt
from .notes import extract_file_paths, load_ai_payload, parse_prompts

AUTHORSHIP_BAR_WIDTH = 40


def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def fmt_num(v: int | float) -> str:
    if isinstance(v, float) and v.is_integer():
        return str(int(v))
    return str(v)


def progress_bar(value: int | float, total: int | float, width: int = 20) -> str:
    if total > 0:
        percentage = (value / total) * 100
        filled = round_half_up((value / total) * width)
    else:
        percentage = 0.0
        filled = 0
    filled = max(0, min(width, filled))
    return "[" + ("█" * filled) + ("░" * (width - filled)) + f"] {round_half_up(percentage)}%"


def pie_marker(percentage: float) -> str:
    # Buckets of one eighth.
    if percentage >= 87.5:
        return "🟢"
    if percentage >= 75:
        return "🔵"
    if percentage >= 62.5:
        return "🟡"
    if percentage >= 37.5:
        return "🟠"
    if percentage >= 12.5:
        return "🔴"
    return "⚪"


_FRACTION_RE = re.compile(r"(T\d{2}:\d{2}:\d{2})\.(\d+)")


def parse_timestamp(value: str) -> dt.datetime:
    s = (value or "").strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    # fromisoformat wants exactly 3 or 6 fraction digits before Python 3.11.
    s = _FRACTION_RE.sub(lambda m: f"{m.group(1)}.{m.group(2)[:6].ljust(6, '0')}", s, count=1)
    d = dt.datetime.fromisoformat(s)
    if d.tzinfo is None:
        d = d.replace(tzinfo=dt.timezone.utc)
    return d


def format_timestamp(value: str) -> str:
    try:
        d = parse_timestamp(value)
    except ValueError:
        return value
    return f"{d:%b} {d.day}, {d:%I:%M %p}"


def format_duration(start: str, end: str) -> str:
    """
    Largest applicable unit with one remainder unit: "2d 3h", "1h 5m", "4m 10s", "9s".

    Unparsable or reversed timestamps give "N/A".
    """
    try:
        diff = parse_timestamp(end) - parse_timestamp(start)
    except ValueError:
        return "N/A"
    total_ms = diff.total_seconds() * 1000
    if total_ms < 0:
        return "N/A"
    seconds = int(total_ms // 1000)
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24
    if days > 0:
        rem = hours % 24
        return f"{days}d {rem}h" if rem > 0 else f"{days}d"
    if hours > 0:
        rem = minutes % 60
        return f"{hours}h {rem}m" if rem > 0 else f"{hours}h"
    if minutes > 0:
        rem = seconds % 60
        return f"{minutes}m {rem}s" if rem > 0 else f"{minutes}m"
    return f"{seconds}s"


def authorship_widths(total_lines: int | float, ai_lines: int | float, width: int = AUTHORSHIP_BAR_WIDTH) -> tuple[int, int]:
    """(human, ai) segment widths; they always add up to `width`, AI taking the rounding remainder."""
    if total_lines > 0:
        human = round_half_up(((total_lines - ai_lines) / total_lines) * width)
    else:
        human = 0
    human = max(0, min(width, human))
    return human, width - human


def _fenced(note: str) -> str:
    return f"```\n{note}\n```\n\n"


def _prompt_duration(p: NotePrompt) -> str | None:
    timestamps = [m.timestamp for m in p.messages if m.timestamp is not None]
    if len(timestamps) < 2:
        return None
    return format_duration(timestamps[0], timestamps[-1])


def _render_prompt(p: NotePrompt) -> list[str]:
    out: list[str] = []

    duration = _prompt_duration(p)
    if duration is not None:
        out.append("#### ⏱️ Commit Duration\n\n")
        out.append(f"**{duration}** (from first change to commit)\n\n")

    out.append("#### 🤖 AI Assistant\n\n")
    if p.has_agent_id:
        out.append(f"- **Tool:** {p.tool or 'Unknown'}\n")
        out.append(f"- **Model:** {p.model or 'Unknown'}\n")
    out.append(f"- **Human Author:** {p.human_author or 'Unknown'}\n\n")

    total = p.total_additions
    ai = p.accepted_lines
    human = total - ai
    human_pct = round_half_up((human / total) * 100) if total > 0 else 0
    ai_pct = round_half_up((ai / total) * 100) if total > 0 else 0
    human_w, ai_w = authorship_widths(total, ai)
    gap = max(0, AUTHORSHIP_BAR_WIDTH - len(str(human_pct)) - len(str(ai_pct)) - 1)

    out.append("#### 👥 Authorship\n\n")
    out.append("<table><tr><td>\n\n")
    out.append("```\n")
    out.append("┌────────────────────────────────────────┐\n")
    out.append(f"│  you  {'█' * human_w}{'░' * ai_w} ai  │\n")
    out.append(f"│       {human_pct}%{' ' * gap}{ai_pct}%       │\n")
    out.append("├────────────────────────────────────────┤\n")
    out.append(f"│   {pie_marker(ai_pct)} {ai_pct}% AI code accepted        │\n")
    out.append("└────────────────────────────────────────┘\n")
    out.append("```\n\n")
    out.append("</td><td>\n\n")
    ai_icons = max(0, min(10, round_half_up(ai_pct / 10)))
    human_icons = max(0, min(10, round_half_up(human_pct / 10)))
    out.append("**Visual Breakdown**\n\n")
    out.append(f"🤖 AI: {'▓' * ai_icons}{'░' * (10 - ai_icons)}\n\n")
    out.append(f"👤 You: {'▓' * human_icons}{'░' * (10 - human_icons)}\n\n")
    out.append("</td></tr></table>\n\n")

    additions = p.total_additions
    deletions = p.total_deletions
    changes = additions + deletions
    add_pct = round_half_up(additions / changes * 100) if changes > 0 else 0
    del_pct = round_half_up(deletions / changes * 100) if changes > 0 else 0
    acc_pct = round_half_up(p.accepted_lines / additions * 100) if additions > 0 else 0
    ov_pct = round_half_up(p.overridden_lines / additions * 100) if additions > 0 else 0
    per_addition = additions or 1

    out.append("#### 📊 Code Changes\n\n")
    out.append("<table>\n")
    out.append("<tr><th>Metric</th><th>Count</th><th>Visualization</th><th>Impact</th></tr>\n")
    out.append(
        f"<tr><td>➕ Additions</td><td><b>{fmt_num(additions)}</b></td>"
        f"<td>{progress_bar(additions, changes)}</td><td>🟢 {add_pct}%</td></tr>\n"
    )
    out.append(
        f"<tr><td>➖ Deletions</td><td><b>{fmt_num(deletions)}</b></td>"
        f"<td>{progress_bar(deletions, changes)}</td><td>🔴 {del_pct}%</td></tr>\n"
    )
    out.append(
        f"<tr><td>✅ Accepted</td><td><b>{fmt_num(p.accepted_lines)}</b></td>"
        f"<td>{progress_bar(p.accepted_lines, per_addition)}</td><td>💚 {acc_pct}%</td></tr>\n"
    )
    out.append(
        f"<tr><td>🔄 Overridden</td><td><b>{fmt_num(p.overridden_lines)}</b></td>"
        f"<td>{progress_bar(p.overridden_lines, per_addition)}</td><td>🟡 {ov_pct}%</td></tr>\n"
    )
    out.append("</table>\n\n")

    if changes > 0:

        def ticks(v: int | float) -> int:
            return max(0, min(3, round_half_up(v / changes * 10)))

        pattern = "▁" * ticks(deletions) + "▃" * ticks(p.accepted_lines) + "▅" * ticks(p.overridden_lines)
    else:
        pattern = "▁"
    out.append(f"**Change Pattern:** `{pattern}` (deletions → accepted → modified)\n\n")

    if p.messages:
        user_n = sum(1 for m in p.messages if m.type == "user")
        assistant_n = sum(1 for m in p.messages if m.type == "assistant")
        tool_n = sum(1 for m in p.messages if m.type == "tool_use")
        out.append("#### 💬 Conversation\n\n")
        out.append(f"- 👤 User messages: {user_n}\n")
        out.append(f"- 🤖 Assistant messages: {assistant_n}\n")
        out.append(f"- 🔧 Tool uses: {tool_n}\n\n")
        out.append("<details>\n<summary>View full conversation</summary>\n\n")
        for m in p.messages:
            ts = f" *({format_timestamp(m.timestamp)})*" if m.timestamp else ""
            if m.type == "user":
                out.append(f"**👤 User:**{ts} {m.text or ''}\n\n")
            elif m.type == "assistant" and m.text:
                out.append(f"**🤖 Assistant:**{ts} {m.text}\n\n")
            elif m.type == "tool_use" and m.name:
                out.append(f"*🔧 Used tool: {m.name}*{ts}\n\n")
        out.append("</details>\n\n")

    out.append("---\n\n")
    return out


def format_ai_authorship(note: str) -> str:
    """Markdown for one commit's note; a note that is not an AI-authorship note is shown verbatim."""
    payload = load_ai_payload(note)
    if payload is None:
        return _fenced(note)

    out: list[str] = []
    files = extract_file_paths(note)
    if files:
        out.append("#### 📁 Files Modified\n\n")
        out.extend(f"- `{f}`\n" for f in files)
        out.append("\n")
    for p in parse_prompts(payload):
        out.extend(_render_prompt(p))
    return "".join(out)


def calculate_aggregate_stats(notes: Sequence[GitNote]) -> AggregateStats:
    """
    Totals across a commit range plus the mean of per-prompt acceptance rates.

    `avg_ai_percent` averages accepted/additions over every prompt with additions; it is
    intentionally not weighted by lines.
    """
    additions: int | float = 0
    deletions: int | float = 0
    accepted: int | float = 0
    overridden: int | float = 0
    percent_sum = 0.0
    rated_prompts = 0
    files: set[str] = set()

    for n in notes:
        files.update(extract_file_paths(n.note))
        payload = load_ai_payload(n.note)
        if payload is None:
            continue
        for p in parse_prompts(payload):
            additions += p.total_additions
            deletions += p.total_deletions
            accepted += p.accepted_lines
            overridden += p.overridden_lines
            if p.total_additions > 0:
                percent_sum += (p.accepted_lines / p.total_additions) * 100
                rated_prompts += 1

    return AggregateStats(
        total_additions=additions,
        total_deletions=deletions,
        total_accepted=accepted,
        total_overridden=overridden,
        avg_ai_percent=percent_sum / rated_prompts if rated_prompts > 0 else 0.0,
        files=frozenset(files),
        commit_count=len(notes),
    )


def _summary_card(stats: AggregateStats) -> list[str]:
    avg = round_half_up(stats.avg_ai_percent)
    return [
        "╔═══════════════════════════════════════════════════════════╗\n",
        "║                    PR STATISTICS                          ║\n",
        "╠═══════════════════════════════════════════════════════════╣\n",
        f"║  📝 Commits: {str(stats.commit_count).ljust(10)} 📁 Files: {str(len(stats.files)).ljust(16)} ║\n",
        f"║  ➕ Added: {fmt_num(stats.total_additions).ljust(12)} ➖ Removed: {fmt_num(stats.total_deletions).ljust(13)} ║\n",
        f"║  ✅ Accepted: {fmt_num(stats.total_accepted).ljust(9)} 🔄 Modified: {fmt_num(stats.total_overridden).ljust(11)} ║\n",
        "╠═══════════════════════════════════════════════════════════╣\n",
        f"║            🤖 AI Contribution: {avg}%{' ' * max(0, 19 - len(str(avg)))}║\n",
        f"║            {progress_bar(stats.total_accepted, stats.total_additions, 30).ljust(39)}║\n",
        "╚═══════════════════════════════════════════════════════════╝\n",
    ]


def format_notes_as_comment(notes: Sequence[GitNote], notes_ref: str) -> str:
    if not notes:
        return ""

    stats = calculate_aggregate_stats(notes)
    out: list[str] = ["## 🤖 AI Authorship Report\n\n"]

    out.append('<div align="center">\n\n')
    out.append("### 📊 Summary Dashboard\n\n")
    out.append("```\n")
    out.extend(_summary_card(stats))
    out.append("```\n\n")
    out.append("</div>\n\n")
    out.append(f"*Details from `{notes_ref}`*\n\n")

    if len(notes) > 1:
        out.append("### 📅 Commit Timeline\n\n")
        out.append("```\n")
        for i, n in enumerate(notes):
            is_last = i == len(notes) - 1
            out.append(f"{'└─' if is_last else '├─'} 📝 {n.commit_sha[:7]}\n")
            if not is_last:
                out.append("│\n")
        out.append("```\n\n")

    out.append("## 📋 Detailed Breakdown\n\n")
    for n in notes:
        out.append(f"### 📝 Commit `{n.commit_sha[:7]}`\n\n")
        out.append(format_ai_authorship(n.note))

    out.append("---\n*Posted by git-notes-bot*")
    return "".join(out)


def with_marker(body: str, marker: str = COMMENT_MARKER) -> str:
    return f"<!-- {marker} -->\n{body}"
