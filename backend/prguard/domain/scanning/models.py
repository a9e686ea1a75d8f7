"""Domain models for the pull-request scanning bounded context.

Pure value objects and enums describing vulnerability findings, changed
files and the scan-job lifecycle, independently of any infrastructure
(ORM, HTTP, Celery).  All dataclasses use frozen=True for immutability.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..common.errors import InvalidTransitionError


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class JobStatus(str, Enum):
    """Lifecycle states of a PR scan job."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_active(self) -> bool:
        return self in (JobStatus.PENDING, JobStatus.RUNNING)


class ScanType(str, Enum):
    DIFF = "diff"
    FULL = "full"
    TARGETED = "targeted"


class ChangeType(str, Enum):
    """How a file changed between base and head."""

    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"  # scanned like a modification


class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"

    @classmethod
    def parse(cls, raw: object) -> "Severity":
        """Lenient parse: detectors report "High", "HIGH", "high"..."""
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            return cls.INFO


class Recommendation(str, Enum):
    APPROVE = "approve"
    REVIEW = "review"
    BLOCK = "block"


class ScanOutcome(str, Enum):
    """What a single run of the orchestrator ended with."""

    COMPLETED = "completed"
    FAILED = "failed"
    INTERRUPTED = "interrupted"  # left running, resumable
    SKIPPED = "skipped"  # job already terminal


# ---------------------------------------------------------------------------
# State Machine
# ---------------------------------------------------------------------------


_VALID_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    # pending -> failed only for jobs that never started (dispatch failure)
    JobStatus.PENDING: frozenset({JobStatus.RUNNING, JobStatus.FAILED}),
    JobStatus.RUNNING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}


def validate_transition(current: JobStatus, target: JobStatus) -> None:
    """Raise InvalidTransitionError if *current* → *target* is illegal."""
    allowed = _VALID_TRANSITIONS.get(current, frozenset())
    if target not in allowed:
        raise InvalidTransitionError(current, target)


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Vulnerability:
    """A single finding reported by the detector for one version of a file.

    ``category`` is the stable classification the reconciler matches on;
    detectors that only report a CWE id still reconcile through
    :attr:`classification`.
    """

    category: str
    severity: Severity
    start_line: int
    end_line: int
    title: str = ""
    description: str = ""
    cwe_id: str | None = None
    owasp_category: str | None = None
    confidence: float | None = None
    extra: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def __post_init__(self) -> None:
        if self.end_line < self.start_line:
            object.__setattr__(self, "end_line", self.start_line)

    @property
    def classification(self) -> str:
        category = str(self.category or "").strip().lower()
        if category:
            return category
        cwe = str(self.cwe_id or "").strip().upper()
        return cwe or "uncategorized"

    @property
    def text(self) -> str:
        return f"{self.title} {self.description}".strip().lower()

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "severity": self.severity.value,
            "start_line": self.start_line,
            "end_line": self.end_line,
            "title": self.title,
            "description": self.description,
            "cwe_id": self.cwe_id,
            "owasp_category": self.owasp_category,
            "confidence": self.confidence,
            **({"extra": self.extra} if self.extra else {}),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Vulnerability":
        """Build from a detector or stored record.

        Optional fields of the wrong type are dropped rather than rejected;
        only ``data`` itself must be a mapping.
        """
        start = _coerce_line(data.get("start_line", data.get("startingLine")), 0)
        end = _coerce_line(data.get("end_line", data.get("endingLine")), start)
        extra = data.get("extra")
        return cls(
            category=str(data.get("category") or ""),
            severity=Severity.parse(data.get("severity")),
            start_line=start,
            end_line=end,
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            cwe_id=_optional_str(data.get("cwe_id", data.get("cweId"))),
            owasp_category=_optional_str(
                data.get("owasp_category", data.get("owaspCategory"))
            ),
            confidence=_optional_float(data.get("confidence", data.get("confidenceScore"))),
            extra=dict(extra) if isinstance(extra, dict) else {},
        )


def _coerce_line(raw: object, default: int) -> int:
    if raw is None or raw == "":
        return default
    try:
        return int(str(raw).split("-")[0].strip())
    except ValueError:
        return default


def _optional_str(raw: object) -> str | None:
    if raw is None:
        return None
    text = str(raw).strip()
    return text or None


def _optional_float(raw: object) -> float | None:
    if raw is None or isinstance(raw, bool):
        return None
    try:
        return float(raw)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class FileChange:
    """One changed file of a pull request with both sides' content.

    ``base_content`` is None for added files, ``head_content`` is None for
    deleted files.
    """

    path: str
    change_type: ChangeType
    base_content: str | None = None
    head_content: str | None = None
    previous_path: str | None = None
    additions: int = 0
    deletions: int = 0


@dataclass(frozen=True)
class ReconcileResult:
    """Partition of one file's findings.  The three tuples are disjoint."""

    added: tuple[Vulnerability, ...] = ()
    fixed: tuple[Vulnerability, ...] = ()
    unchanged: tuple[Vulnerability, ...] = ()


@dataclass(frozen=True)
class SecurityAssessment:
    """Scorer output for a whole job."""

    score_before: int
    score_after: int
    recommendation: Recommendation
    total_added: int
    total_fixed: int
    total_unchanged: int
    added_by_severity: dict[str, int]
    fixed_by_severity: dict[str, int]


@dataclass(frozen=True)
class PullRequestRef:
    """What the orchestrator needs to know about the pull request it scans."""

    id: int
    repository_id: int
    repository_full_name: str
    number: int
    base_branch: str
    head_branch: str
    base_commit: str
    head_commit: str


@dataclass(frozen=True)
class PullRequestSnapshot:
    """A pull request as reported by the source-control connector."""

    number: int
    title: str
    author: str
    base_branch: str
    head_branch: str
    base_commit: str
    head_commit: str
    status: str  # open | closed | merged
    html_url: str | None = None
    description: str | None = None
    created_at: Any = None
    updated_at: Any = None
    merged_at: Any = None
