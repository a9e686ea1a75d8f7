"""Domain models for repository watching.

The trigger decision is a pure function of the pull request's current
state and the last commit recorded for that (watch, pull request,
trigger).  Both the polling cycle and the webhook path call it, so the
at-most-once rule lives in one place.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class TriggerKind(str, Enum):
    ON_OPEN = "on_open"
    ON_SYNC = "on_sync"
    ON_MERGE = "on_merge"


class TriggerDecision(str, Enum):
    SCAN = "scan"
    BASELINE = "baseline"  # record head as last-checked without scanning
    SKIP = "skip"


# Webhook action -> trigger.  "closed" only maps when the PR was merged.
_ACTION_TRIGGERS: dict[str, TriggerKind] = {
    "opened": TriggerKind.ON_OPEN,
    "reopened": TriggerKind.ON_OPEN,
    "synchronize": TriggerKind.ON_SYNC,
}


def trigger_for_event(action: str, merged: bool = False) -> TriggerKind | None:
    if action == "closed":
        return TriggerKind.ON_MERGE if merged else None
    return _ACTION_TRIGGERS.get(action)


def idempotency_key(pull_request_id: int, head_commit: str, trigger: TriggerKind) -> str:
    return f"{pull_request_id}:{head_commit}:{trigger.value}"


def decide_trigger(
    kind: TriggerKind,
    pr_status: str,
    head_commit: str | None,
    last_commit: str | None,
    *,
    merged_at: datetime | None = None,
    watch_since: datetime | None = None,
) -> TriggerDecision:
    """Should *kind* fire for a pull request in this state?

    - on_open fires once per (watch, pull request): first sighting while open.
    - on_sync fires when an open pull request's head moved since the last
      check; with no prior check the head is only recorded as baseline.
    - on_merge fires when a merged pull request's head differs from the
      last check.  Pull requests merged before the watch existed are
      ignored so a new watch does not rescan history.
    """
    if not head_commit:
        return TriggerDecision.SKIP

    if kind is TriggerKind.ON_OPEN:
        if pr_status == "open" and last_commit is None:
            return TriggerDecision.SCAN
        return TriggerDecision.SKIP

    if kind is TriggerKind.ON_SYNC:
        if pr_status != "open":
            return TriggerDecision.SKIP
        if last_commit is None:
            return TriggerDecision.BASELINE
        return TriggerDecision.SCAN if last_commit != head_commit else TriggerDecision.SKIP

    if kind is TriggerKind.ON_MERGE:
        if merged_at is not None and watch_since is not None and merged_at < watch_since:
            return TriggerDecision.SKIP
        if pr_status == "merged" and last_commit != head_commit:
            return TriggerDecision.SCAN
        return TriggerDecision.SKIP

    return TriggerDecision.SKIP


@dataclass(frozen=True)
class WatchSettings:
    """User-editable settings of a repository watch.

    ``None`` in an update means "leave unchanged".
    """

    email_notifications: bool | None = None
    scan_on_open: bool | None = None
    scan_on_sync: bool | None = None
    scan_on_merge: bool | None = None
    notification_email: str | None = None


def enabled_triggers(watch: object) -> list[TriggerKind]:
    """Triggers switched on for an ORM-like watch record."""
    flags = (
        (TriggerKind.ON_OPEN, "scan_on_open"),
        (TriggerKind.ON_SYNC, "scan_on_sync"),
        (TriggerKind.ON_MERGE, "scan_on_merge"),
    )
    return [kind for kind, attr in flags if getattr(watch, attr, False)]


@dataclass(frozen=True)
class CycleReport:
    """Outcome of one scheduler pass."""

    repositories_checked: int = 0
    pull_requests_seen: int = 0
    scans_enqueued: int = 0
    duplicates: int = 0
    errors: int = 0
    skipped_locked: bool = False


DEFAULT_SETTINGS = WatchSettings(
    email_notifications=True,
    scan_on_open=True,
    scan_on_sync=True,
    scan_on_merge=False,
)


@dataclass(frozen=True)
class WatchTarget:
    """Plain view of an active watch, detached from the session."""

    id: int
    repository_id: int
    triggers: tuple[TriggerKind, ...]
    created_at: datetime | None = None


@dataclass(frozen=True)
class PullRequestState:
    id: int
    status: str
    head_commit: str | None
    merged_at: datetime | None = None


class TriggerOutcome(str, Enum):
    ENQUEUED = "enqueued"
    DUPLICATE = "duplicate"
    BASELINE = "baseline"
    SKIPPED = "skipped"
