"""Vulnerability reconciliation across the two sides of a diff.

Matches the findings the detector produced for a file's base version
against those for its head version and partitions them into added, fixed
and unchanged.  This is a **pure function**: no I/O and no clock.

Matching rules
--------------
A ``before``/``after`` pair is a *candidate* only when both findings share
the same classification and both their start-line and end-line drift stay
within ``line_tolerance`` (unrelated edits above a finding shift it).

Each candidate gets a similarity score::

    severity_weight  * (1 if same severity else 0)
  + proximity_weight * (1 - distance / (line_tolerance + 1))
  + text_weight      * SequenceMatcher(before.text, after.text).ratio()

where ``distance`` is the larger of the two line drifts.  With the default
weights (2.0 / 1.0 / 0.1) a single line of drift (1/6 of the proximity
weight) outweighs the whole text term, so the ordering is effectively
severity, then distance, then text.

Candidates are consumed greedily in order of
``(-score, before_index, after_index)``; the index terms make the result
deterministic for a given input order.
"""

from __future__ import annotations

from dataclasses import dataclass
from difflib import SequenceMatcher
from typing import Sequence

from .models import ReconcileResult, Vulnerability


@dataclass(frozen=True)
class ReconcilerConfig:
    """Matching policy.  Populated from settings by the wiring layer."""

    line_tolerance: int = 5
    severity_weight: float = 2.0
    proximity_weight: float = 1.0
    text_weight: float = 0.1

    def __post_init__(self) -> None:
        if self.line_tolerance < 0:
            raise ValueError(
                f"line_tolerance must be >= 0, got {self.line_tolerance}"
            )


@dataclass(frozen=True)
class CandidatePair:
    before_index: int
    after_index: int
    score: float

    @property
    def sort_key(self) -> tuple[float, int, int]:
        return (-self.score, self.before_index, self.after_index)


def line_distance(a: Vulnerability, b: Vulnerability) -> int:
    """Larger of the start-line and end-line drift between two findings."""
    return max(abs(a.start_line - b.start_line), abs(a.end_line - b.end_line))


def text_similarity(a: Vulnerability, b: Vulnerability) -> float:
    if not a.text and not b.text:
        return 1.0
    return SequenceMatcher(None, a.text, b.text).ratio()


def is_candidate(
    before: Vulnerability, after: Vulnerability, config: ReconcilerConfig
) -> bool:
    return (
        before.classification == after.classification
        and line_distance(before, after) <= config.line_tolerance
    )


def similarity_score(
    before: Vulnerability, after: Vulnerability, config: ReconcilerConfig
) -> float:
    same_severity = 1.0 if before.severity == after.severity else 0.0
    proximity = 1.0 - line_distance(before, after) / (config.line_tolerance + 1)
    return (
        config.severity_weight * same_severity
        + config.proximity_weight * proximity
        + config.text_weight * text_similarity(before, after)
    )


def build_candidates(
    before: Sequence[Vulnerability],
    after: Sequence[Vulnerability],
    config: ReconcilerConfig,
) -> list[CandidatePair]:
    """All eligible pairs, best first."""
    pairs: list[CandidatePair] = []
    for i, b in enumerate(before):
        for j, a in enumerate(after):
            if is_candidate(b, a, config):
                pairs.append(CandidatePair(i, j, similarity_score(b, a, config)))
    pairs.sort(key=lambda p: p.sort_key)
    return pairs


def reconcile(
    before: Sequence[Vulnerability],
    after: Sequence[Vulnerability],
    config: ReconcilerConfig | None = None,
) -> ReconcileResult:
    """Partition *before*/*after* findings into added, fixed and unchanged.

    Matched pairs are reported once, as unchanged, using the ``after``
    finding (its current line numbers and wording).  Output tuples keep the
    input order of the side they come from.
    """
    config = config or ReconcilerConfig()

    matched_before: set[int] = set()
    matched_after: set[int] = set()
    for pair in build_candidates(before, after, config):
        if pair.before_index in matched_before or pair.after_index in matched_after:
            continue
        matched_before.add(pair.before_index)
        matched_after.add(pair.after_index)

    return ReconcileResult(
        added=tuple(a for j, a in enumerate(after) if j not in matched_after),
        fixed=tuple(b for i, b in enumerate(before) if i not in matched_before),
        unchanged=tuple(a for j, a in enumerate(after) if j in matched_after),
    )


def all_added(after: Sequence[Vulnerability]) -> ReconcileResult:
    """Partition for a file that only exists on the head side."""
    return ReconcileResult(added=tuple(after))


def all_fixed(before: Sequence[Vulnerability]) -> ReconcileResult:
    """Partition for a file that only exists on the base side."""
    return ReconcileResult(fixed=tuple(before))
