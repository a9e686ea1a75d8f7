"""Security scoring and merge recommendation (pure functions)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Sequence

from .models import (
    ReconcileResult,
    Recommendation,
    SecurityAssessment,
    Severity,
    Vulnerability,
)

_COUNTED_SEVERITIES = (Severity.CRITICAL, Severity.HIGH, Severity.MEDIUM, Severity.LOW)


@dataclass(frozen=True)
class ScoringConfig:
    """Penalty per finding by severity; anything not listed weighs 0."""

    weights: dict[Severity, int] = field(
        default_factory=lambda: {
            Severity.CRITICAL: 25,
            Severity.HIGH: 15,
            Severity.MEDIUM: 5,
            Severity.LOW: 2,
        }
    )
    block_threshold: int = 50


def security_score(
    vulnerabilities: Iterable[Vulnerability], config: ScoringConfig | None = None
) -> int:
    """``max(0, 100 - sum(weight(severity)))``."""
    config = config or ScoringConfig()
    penalty = sum(config.weights.get(v.severity, 0) for v in vulnerabilities)
    return max(0, 100 - penalty)


def count_by_severity(vulnerabilities: Iterable[Vulnerability]) -> dict[str, int]:
    counts = {s.value: 0 for s in _COUNTED_SEVERITIES}
    for v in vulnerabilities:
        if v.severity.value in counts:
            counts[v.severity.value] += 1
    return counts


def recommend(
    added: Sequence[Vulnerability],
    score_before: int,
    score_after: int,
    config: ScoringConfig | None = None,
) -> Recommendation:
    """Rules are evaluated in order; the first match wins."""
    config = config or ScoringConfig()
    severities = {v.severity for v in added}

    if Severity.CRITICAL in severities or score_after < config.block_threshold:
        return Recommendation.BLOCK
    if Severity.HIGH in severities or score_after < score_before:
        return Recommendation.REVIEW
    return Recommendation.APPROVE


def assess(
    results: Iterable[ReconcileResult], config: ScoringConfig | None = None
) -> SecurityAssessment:
    """Score the union of all files' partitions.

    before = fixed ∪ unchanged, after = added ∪ unchanged.
    """
    config = config or ScoringConfig()
    added: list[Vulnerability] = []
    fixed: list[Vulnerability] = []
    unchanged: list[Vulnerability] = []
    for result in results:
        added.extend(result.added)
        fixed.extend(result.fixed)
        unchanged.extend(result.unchanged)

    score_before = security_score([*fixed, *unchanged], config)
    score_after = security_score([*added, *unchanged], config)

    return SecurityAssessment(
        score_before=score_before,
        score_after=score_after,
        recommendation=recommend(added, score_before, score_after, config),
        total_added=len(added),
        total_fixed=len(fixed),
        total_unchanged=len(unchanged),
        added_by_severity=count_by_severity(added),
        fixed_by_severity=count_by_severity(fixed),
    )
