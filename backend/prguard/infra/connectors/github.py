"""GitHub REST adapter for the SourceControlConnector port.

Diffs are taken from the compare endpoint between the job's snapshotted
commits, so a scan always sees the same file set however the branch
moves afterwards.  File bodies come from the contents endpoint at each
side's commit.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote

import httpx

from prguard.domain.common.errors import (
    PermanentDiffFetchError,
    TransientDiffFetchError,
)
from prguard.domain.scanning.models import (
    ChangeType,
    FileChange,
    PullRequestRef,
    PullRequestSnapshot,
)
from prguard.domain.scanning.ports import SourceControlConnector

logger = logging.getLogger(__name__)

_STATUS_MAP = {
    "added": ChangeType.ADDED,
    "removed": ChangeType.DELETED,
    "modified": ChangeType.MODIFIED,
    "changed": ChangeType.MODIFIED,
    "renamed": ChangeType.RENAMED,
    "copied": ChangeType.ADDED,
}


def parse_timestamp(raw: str | None) -> datetime | None:
    """GitHub ISO-8601 (``...Z``) to naive UTC."""
    if not raw:
        return None
    parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def snapshot_from_github(pr: dict[str, Any]) -> PullRequestSnapshot:
    """Build a snapshot from a pull-request object (REST list item or webhook payload)."""
    if pr.get("merged_at") or pr.get("merged"):
        status = "merged"
    else:
        status = "closed" if pr.get("state") == "closed" else "open"
    base = pr.get("base") or {}
    head = pr.get("head") or {}
    return PullRequestSnapshot(
        number=int(pr["number"]),
        title=pr.get("title") or "",
        author=(pr.get("user") or {}).get("login") or "",
        base_branch=base.get("ref") or "",
        head_branch=head.get("ref") or "",
        base_commit=base.get("sha") or "",
        head_commit=head.get("sha") or "",
        status=status,
        html_url=pr.get("html_url"),
        description=pr.get("body"),
        created_at=parse_timestamp(pr.get("created_at")),
        updated_at=parse_timestamp(pr.get("updated_at")),
        merged_at=parse_timestamp(pr.get("merged_at")),
    )


class GitHubConnector(SourceControlConnector):
    """Synchronous GitHub client; one instance per worker process."""

    USER_AGENT = "prguard/1.0"

    def __init__(
        self,
        token: str | None,
        *,
        base_url: str = "https://api.github.com",
        timeout: float = 30.0,
        max_prs: int = 100,
        client: httpx.Client | None = None,
    ) -> None:
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": self.USER_AGENT,
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = client or httpx.Client(
            base_url=base_url, headers=headers, timeout=timeout
        )
        self._max_prs = max_prs

    # ── Port ─────────────────────────────────────────────────────────

    def fetch_diff(self, pull_request: PullRequestRef) -> list[FileChange]:
        repo = pull_request.repository_full_name
        base, head = pull_request.base_commit, pull_request.head_commit
        compare = self._get_json(f"/repos/{repo}/compare/{base}...{head}")

        changes: list[FileChange] = []
        for item in compare.get("files") or []:
            change_type = _STATUS_MAP.get(item.get("status"), ChangeType.MODIFIED)
            path = item["filename"]
            previous_path = item.get("previous_filename")

            base_content = None
            head_content = None
            if change_type is not ChangeType.ADDED:
                base_content = self._get_content(repo, previous_path or path, base)
            if change_type is not ChangeType.DELETED:
                head_content = self._get_content(repo, path, head)

            changes.append(
                FileChange(
                    path=path,
                    change_type=change_type,
                    base_content=base_content,
                    head_content=head_content,
                    previous_path=previous_path,
                    additions=item.get("additions", 0),
                    deletions=item.get("deletions", 0),
                )
            )

        logger.info(
            "Fetched diff for %s#%s: %d file(s)", repo, pull_request.number, len(changes)
        )
        return changes

    def list_pull_requests(self, repository_full_name: str) -> list[PullRequestSnapshot]:
        items = self._get_json(
            f"/repos/{repository_full_name}/pulls",
            params={
                "state": "all",
                "sort": "updated",
                "direction": "desc",
                "per_page": min(self._max_prs, 100),
            },
        )
        return [snapshot_from_github(pr) for pr in items]

    # ── HTTP ─────────────────────────────────────────────────────────

    def _get_json(self, path: str, params: dict | None = None) -> Any:
        response = self._request(path, params=params)
        try:
            return response.json()
        except ValueError as exc:
            raise PermanentDiffFetchError(f"Invalid JSON from GitHub for {path}") from exc

    def _get_content(self, repo: str, path: str, ref: str) -> str | None:
        response = self._request(
            f"/repos/{repo}/contents/{quote(path)}",
            params={"ref": ref},
            headers={"Accept": "application/vnd.github.raw+json"},
            allow_missing=True,
        )
        if response is None:
            return None
        return response.content.decode("utf-8", errors="replace")

    def _request(
        self,
        path: str,
        *,
        params: dict | None = None,
        headers: dict | None = None,
        allow_missing: bool = False,
    ) -> httpx.Response | None:
        try:
            response = self._client.get(path, params=params, headers=headers)
        except httpx.TimeoutException as exc:
            raise TransientDiffFetchError(f"GitHub timeout for {path}") from exc
        except httpx.TransportError as exc:
            raise TransientDiffFetchError(f"GitHub unreachable: {exc}") from exc

        status = response.status_code
        if status == 404 and allow_missing:
            return None
        if status == 429 or status >= 500 or _rate_limited(response):
            raise TransientDiffFetchError(f"GitHub returned {status} for {path}")
        if status >= 400:
            raise PermanentDiffFetchError(f"GitHub returned {status} for {path}")
        return response

    def close(self) -> None:
        self._client.close()


def _rate_limited(response: httpx.Response) -> bool:
    return (
        response.status_code == 403
        and response.headers.get("x-ratelimit-remaining") == "0"
    )
