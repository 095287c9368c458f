from __future__ import annotations

import json
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer
from urllib.parse import parse_qs, urlparse

import pytest

from git_ai_report.github_api import PER_PAGE, GitHubAPIError, GitHubClient


def _serve(handler: type[BaseHTTPRequestHandler]) -> HTTPServer:
    server = HTTPServer(("127.0.0.1", 0), handler)
    t = threading.Thread(target=server.serve_forever, daemon=True)
    t.start()
    return server


def test_comments_are_paginated_and_marker_is_found() -> None:
    seen: list[dict[str, object]] = []

    class Handler(BaseHTTPRequestHandler):
        def do_GET(self) -> None:  # noqa: N802
            u = urlparse(self.path)
            page = int(parse_qs(u.query).get("page", ["1"])[0])
            seen.append({"path": u.path, "page": page, "auth": self.headers.get("Authorization")})
            if page == 1:
                items = [{"id": i, "body": "other"} for i in range(PER_PAGE)]
            else:
                items = [{"id": 500, "body": "<!-- git-notes-bot -->\nold"}, {"id": 501, "body": "<!-- git-notes-bot -->\nnewer"}]
            body = json.dumps(items).encode("utf-8")
            self.send_response(200)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, fmt: str, *args: object) -> None:
            return

    server = _serve(Handler)
    client = GitHubClient("tok", api_url=f"http://127.0.0.1:{server.server_port}", timeout_s=5)
    found = client.find_comment_with_marker("o", "r", 7, "<!-- git-notes-bot -->")
    server.shutdown()

    assert found == 500
    assert [s["page"] for s in seen] == [1, 2]
    assert seen[0]["path"] == "/repos/o/r/issues/7/comments"
    assert seen[0]["auth"] == "Bearer tok"


def test_create_and_update_send_json_bodies() -> None:
    received: list[tuple[str, str, dict]] = []

    class Handler(BaseHTTPRequestHandler):
        def _handle(self) -> None:
            raw = self.rfile.read(int(self.headers.get("Content-Length", "0")))
            received.append((self.command, self.path, json.loads(raw.decode("utf-8"))))
            body = json.dumps({"id": 42}).encode("utf-8")
            self.send_response(201 if self.command == "POST" else 200)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def do_POST(self) -> None:  # noqa: N802
            self._handle()

        def do_PATCH(self) -> None:  # noqa: N802
            self._handle()

        def log_message(self, fmt: str, *args: object) -> None:
            return

    server = _serve(Handler)
    client = GitHubClient("tok", api_url=f"http://127.0.0.1:{server.server_port}", timeout_s=5)
    created = client.create_issue_comment("o", "r", 3, "hello")
    client.update_issue_comment("o", "r", 42, "again")
    client.create_review_comment("o", "r", 3, commit_id="abc", path="a.py", body="x")
    server.shutdown()

    assert created == {"id": 42}
    assert received[0] == ("POST", "/repos/o/r/issues/3/comments", {"body": "hello"})
    assert received[1] == ("PATCH", "/repos/o/r/issues/comments/42", {"body": "again"})
    assert received[2] == (
        "POST",
        "/repos/o/r/pulls/3/comments",
        {"commit_id": "abc", "path": "a.py", "body": "x", "subject_type": "file"},
    )


def test_non_2xx_raises_with_status() -> None:
    class Handler(BaseHTTPRequestHandler):
        def do_POST(self) -> None:  # noqa: N802
            body = b'{"message": "Resource not accessible by integration"}'
            self.send_response(403)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, fmt: str, *args: object) -> None:
            return

    server = _serve(Handler)
    client = GitHubClient("tok", api_url=f"http://127.0.0.1:{server.server_port}", timeout_s=5)
    with pytest.raises(GitHubAPIError) as e:
        client.create_issue_comment("o", "r", 1, "x")
    server.shutdown()

    assert e.value.status == 403
    assert "not accessible" in str(e.value)


def test_token_is_required() -> None:
    with pytest.raises(ValueError):
        GitHubClient("  ")
