from __future__ import annotations

import json
import os
import ssl
import urllib.error
import urllib.parse
import urllib.request
from pathlib import Path

import certifi

from .config import DEFAULT_API_URL

PER_PAGE = 100


class GitHubAPIError(RuntimeError):
    def __init__(self, message: str, status: int = 0) -> None:
        super().__init__(message)
        self.status = status


def _resolve_cafile(explicit: str) -> str:
    p = (explicit or "").strip()
    if p:
        return str(Path(p).expanduser())
    for k in ("SSL_CERT_FILE", "REQUESTS_CA_BUNDLE"):
        v = (os.environ.get(k) or "").strip()
        if v and Path(v).expanduser().exists():
            return str(Path(v).expanduser())
    return certifi.where()


def _ssl_context(*, ca_bundle_path: str = "") -> ssl.SSLContext:
    cafile = _resolve_cafile(ca_bundle_path)
    if Path(cafile).is_dir():
        return ssl.create_default_context(capath=cafile)
    return ssl.create_default_context(cafile=cafile)


def _is_cert_verify_error(e: urllib.error.URLError) -> bool:
    if isinstance(getattr(e, "reason", None), ssl.SSLCertVerificationError):
        return True
    return "certificate verify failed" in str(e).lower()


class GitHubClient:
    """
    Minimal GitHub REST client for pull request comments and review comments.

    Only the endpoints the action needs are wrapped. Every non-2xx response or
    transport failure raises GitHubAPIError.
    """

    def __init__(
        self,
        token: str,
        *,
        api_url: str = DEFAULT_API_URL,
        timeout_s: int = 30,
        ca_bundle_path: str = "",
    ) -> None:
        if not (token or "").strip():
            raise ValueError("token is required")
        self.token = token.strip()
        self.api_url = (api_url or DEFAULT_API_URL).rstrip("/")
        self.timeout_s = timeout_s
        self.ca_bundle_path = ca_bundle_path
        self._ctx: ssl.SSLContext | None = None

    def _context(self) -> ssl.SSLContext | None:
        if not self.api_url.startswith("https://"):
            return None
        if self._ctx is None:
            self._ctx = _ssl_context(ca_bundle_path=self.ca_bundle_path)
        return self._ctx

    def request(self, method: str, path: str, *, body: dict | None = None, query: dict | None = None) -> object:
        url = self.api_url + path
        if query:
            url += "?" + urllib.parse.urlencode(query)
        data = None
        headers = {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {self.token}",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "git-ai-report",
        }
        if body is not None:
            data = json.dumps(body, ensure_ascii=False).encode("utf-8")
            headers["Content-Type"] = "application/json"
        req = urllib.request.Request(url, method=method, data=data, headers=headers)
        try:
            with urllib.request.urlopen(req, timeout=self.timeout_s, context=self._context()) as resp:
                code = int(getattr(resp, "status", 0) or 0)
                payload = resp.read().decode("utf-8", errors="replace")
                if not 200 <= code < 300:
                    raise GitHubAPIError(f"{method} {path} failed: HTTP {code}: {payload[:500]}", status=code)
        except urllib.error.HTTPError as e:
            payload = ""
            try:
                payload = e.read().decode("utf-8", errors="replace")
            except Exception:
                payload = ""
            raise GitHubAPIError(f"{method} {path} failed: HTTP {e.code}: {payload[:500]}", status=int(e.code or 0)) from e
        except urllib.error.URLError as e:
            msg = f"{method} {path} failed: {e}"
            if _is_cert_verify_error(e):
                msg += "\nHint: HTTPS certificate verification failed; set SSL_CERT_FILE to a CA bundle that trusts the API host."
            raise GitHubAPIError(msg) from e

        if not payload.strip():
            return None
        try:
            return json.loads(payload)
        except ValueError as e:
            raise GitHubAPIError(f"{method} {path} returned invalid JSON") from e

    def _paginate(self, path: str) -> list[dict]:
        items: list[dict] = []
        page = 1
        while True:
            batch = self.request("GET", path, query={"per_page": PER_PAGE, "page": page})
            if not isinstance(batch, list):
                break
            items.extend(x for x in batch if isinstance(x, dict))
            if len(batch) < PER_PAGE:
                break
            page += 1
        return items

    def list_issue_comments(self, owner: str, repo: str, number: int) -> list[dict]:
        return self._paginate(f"/repos/{owner}/{repo}/issues/{number}/comments")

    def create_issue_comment(self, owner: str, repo: str, number: int, body: str) -> dict:
        out = self.request("POST", f"/repos/{owner}/{repo}/issues/{number}/comments", body={"body": body})
        return out if isinstance(out, dict) else {}

    def update_issue_comment(self, owner: str, repo: str, comment_id: int, body: str) -> dict:
        out = self.request("PATCH", f"/repos/{owner}/{repo}/issues/comments/{comment_id}", body={"body": body})
        return out if isinstance(out, dict) else {}

    def find_comment_with_marker(self, owner: str, repo: str, number: int, marker: str) -> int | None:
        """Id of the first issue comment whose body contains `marker`."""
        for c in self.list_issue_comments(owner, repo, number):
            if marker in str(c.get("body") or ""):
                return int(c["id"])
        return None

    def list_review_comments(self, owner: str, repo: str, number: int) -> list[dict]:
        return self._paginate(f"/repos/{owner}/{repo}/pulls/{number}/comments")

    def create_review_comment(self, owner: str, repo: str, number: int, *, commit_id: str, path: str, body: str) -> dict:
        """File-level review comment; it needs no line inside a diff hunk."""
        out = self.request(
            "POST",
            f"/repos/{owner}/{repo}/pulls/{number}/comments",
            body={"commit_id": commit_id, "path": path, "body": body, "subject_type": "file"},
        )
        return out if isinstance(out, dict) else {}
