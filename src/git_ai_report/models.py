from __future__ import annotations

import dataclasses


@dataclasses.dataclass(frozen=True)
class RawCommit:
    sha: str
    date: str  # author date, ISO-8601
    author: str
    subject: str
    note: str | None = None

    @property
    def short_sha(self) -> str:
        return self.sha[:7]


@dataclasses.dataclass(frozen=True)
class GitNote:
    commit_sha: str
    note: str


@dataclasses.dataclass(frozen=True)
class NoteMessage:
    type: str  # user | assistant | tool_use
    text: str | None = None
    timestamp: str | None = None
    name: str | None = None


@dataclasses.dataclass(frozen=True)
class NotePrompt:
    prompt_id: str
    tool: str | None
    model: str | None
    human_author: str | None
    has_agent_id: bool
    total_additions: int | float = 0
    total_deletions: int | float = 0
    accepted_lines: int | float = 0
    overridden_lines: int | float = 0
    messages: tuple[NoteMessage, ...] = ()


@dataclasses.dataclass(frozen=True)
class ParsedNote:
    files: tuple[str, ...]
    total_additions: int | float = 0
    total_deletions: int | float = 0
    accepted_lines: int | float = 0
    overridden_lines: int | float = 0
    model: str | None = None
    tool: str | None = None
    author: str | None = None


@dataclasses.dataclass(frozen=True)
class ResolvedMetrics:
    total_lines: int | float
    total_deletions: int | float


@dataclasses.dataclass
class CommitStats:
    date: str
    count: int = 0
    ai_lines: int | float = 0
    total_lines: int | float = 0
    ai_percent: float = 0.0


@dataclasses.dataclass
class ModelStats:
    model: str
    commits: int = 0
    lines: int | float = 0
    accepted_lines: int | float = 0
    acceptance_rate: float = 0.0


@dataclasses.dataclass
class ToolStats:
    tool: str
    commits: int = 0
    lines: int | float = 0


@dataclasses.dataclass
class AuthorStats:
    author: str
    commits: int = 0
    total_lines: int | float = 0
    ai_assisted_lines: int | float = 0
    ai_usage_percent: float = 0.0


@dataclasses.dataclass
class FileStats:
    filepath: str
    modifications: int = 0
    ai_lines: float = 0.0
    total_lines: float = 0.0
    last_modified: str = ""


@dataclasses.dataclass(frozen=True)
class CommitDetail:
    sha: str
    short_sha: str
    date: str
    author: str
    message: str
    ai_percent: float
    total_lines: int | float
    ai_lines: int | float
    model: str | None = None
    tool: str | None = None
    files: tuple[str, ...] = ()


@dataclasses.dataclass(frozen=True)
class DashboardData:
    total_commits: int
    total_files: int
    total_lines: int | float
    ai_lines: int | float
    human_lines: int | float
    ai_percentage: float
    commits_by_date: dict[str, CommitStats]
    model_usage: dict[str, ModelStats]
    tool_usage: dict[str, ToolStats]
    author_stats: dict[str, AuthorStats]
    file_stats: dict[str, FileStats]
    acceptance_rates: tuple[dict[str, object], ...]  # {date, rate}, ascending by date
    recent_commits: tuple[CommitDetail, ...]


@dataclasses.dataclass(frozen=True)
class AggregateStats:
    total_additions: int | float
    total_deletions: int | float
    total_accepted: int | float
    total_overridden: int | float
    avg_ai_percent: float  # simple mean of per-prompt accepted/additions
    files: frozenset[str]
    commit_count: int
