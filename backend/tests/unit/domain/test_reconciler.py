"""Unit tests for the vulnerability reconciler (pure, no I/O)."""

import pytest

from prguard.domain.scanning.models import Severity, Vulnerability
from prguard.domain.scanning.reconciler import (
    ReconcilerConfig,
    all_added,
    all_fixed,
    build_candidates,
    line_distance,
    reconcile,
)


def _v(category, severity, start, end=None, title="", description=""):
    return Vulnerability(
        category=category,
        severity=Severity(severity),
        start_line=start,
        end_line=end if end is not None else start,
        title=title,
        description=description,
    )


class TestPartition:
    def test_different_categories_are_fixed_and_added(self):
        before = [_v("sql-injection", "high", 10, 12)]
        after = [_v("xss", "medium", 20, 22)]

        result = reconcile(before, after, ReconcilerConfig(line_tolerance=5))

        assert result.fixed == (before[0],)
        assert result.added == (after[0],)
        assert result.unchanged == ()

    def test_shifted_finding_within_tolerance_is_unchanged(self):
        before = [_v("hardcoded-secret", "high", 5, 6)]
        after = [_v("hardcoded-secret", "high", 7, 8)]

        result = reconcile(before, after)

        assert result.unchanged == (after[0],)
        assert result.added == ()
        assert result.fixed == ()

    def test_shift_beyond_tolerance_does_not_match(self):
        before = [_v("xss", "high", 10)]
        after = [_v("xss", "high", 16)]

        result = reconcile(before, after, ReconcilerConfig(line_tolerance=5))

        assert result.fixed == (before[0],)
        assert result.added == (after[0],)

    def test_end_line_drift_counts_too(self):
        before = [_v("xss", "high", 10, 11)]
        after = [_v("xss", "high", 10, 30)]

        assert line_distance(before[0], after[0]) == 19
        assert reconcile(before, after).unchanged == ()

    def test_every_finding_lands_in_exactly_one_bucket(self):
        before = [_v("xss", "high", 1), _v("xss", "low", 40), _v("csrf", "medium", 9)]
        after = [_v("xss", "high", 2), _v("sqli", "critical", 50), _v("csrf", "medium", 12)]

        result = reconcile(before, after)

        assert len(result.unchanged) + len(result.fixed) == len(before)
        assert len(result.unchanged) + len(result.added) == len(after)

    def test_empty_sides(self):
        only = [_v("xss", "high", 3)]
        assert reconcile([], only).added == tuple(only)
        assert reconcile(only, []).fixed == tuple(only)
        result = reconcile([], [])
        assert result.added == result.fixed == result.unchanged == ()

    def test_is_deterministic(self):
        before = [_v("xss", "high", 10), _v("xss", "high", 12)]
        after = [_v("xss", "high", 11), _v("xss", "high", 13)]

        first = reconcile(before, after)
        second = reconcile(before, after)

        assert first == second

    def test_cwe_only_findings_match_on_cwe(self):
        before = [Vulnerability(category="", severity=Severity.HIGH, start_line=4, end_line=4, cwe_id="cwe-89")]
        after = [Vulnerability(category="", severity=Severity.HIGH, start_line=5, end_line=5, cwe_id="CWE-89")]

        assert len(reconcile(before, after).unchanged) == 1

    def test_numeric_cwe_from_detector_payload(self):
        before = [Vulnerability.from_dict({"category": "", "cweId": 89, "severity": "high", "start_line": 4})]
        after = [Vulnerability.from_dict({"category": "", "cwe_id": "CWE-89", "severity": "high", "start_line": 4})]

        result = reconcile(before, after)

        assert before[0].classification == "89"
        assert result.fixed == tuple(before) and result.added == tuple(after)


class TestTieBreak:
    def test_same_severity_preferred_over_closer_line(self):
        before = [_v("xss", "high", 10)]
        after = [_v("xss", "low", 10), _v("xss", "high", 13)]

        result = reconcile(before, after)

        assert result.unchanged == (after[1],)
        assert result.added == (after[0],)

    def test_closer_line_preferred_when_severity_equal(self):
        before = [_v("xss", "high", 10)]
        after = [_v("xss", "high", 14), _v("xss", "high", 11)]

        result = reconcile(before, after)

        assert result.unchanged == (after[1],)

    def test_equal_scores_fall_back_to_input_order(self):
        before = [_v("xss", "high", 10)]
        after = [_v("xss", "high", 11), _v("xss", "high", 9)]

        pairs = build_candidates(before, after, ReconcilerConfig())

        assert pairs[0].score == pytest.approx(pairs[1].score)
        assert (pairs[0].before_index, pairs[0].after_index) == (0, 0)
        assert reconcile(before, after).unchanged == (after[0],)

    def test_text_similarity_breaks_remaining_ties(self):
        before = [_v("xss", "high", 10, title="Reflected XSS in search box")]
        after = [
            _v("xss", "high", 11, title="Open redirect"),
            _v("xss", "high", 9, title="Reflected XSS in search box"),
        ]

        assert reconcile(before, after).unchanged == (after[1],)


class TestOneSidedFiles:
    def test_all_added(self):
        after = [_v("xss", "high", 1), _v("sqli", "low", 2)]
        result = all_added(after)
        assert result.added == tuple(after)
        assert result.fixed == result.unchanged == ()

    def test_all_fixed(self):
        before = [_v("xss", "high", 1)]
        result = all_fixed(before)
        assert result.fixed == tuple(before)
        assert result.added == result.unchanged == ()


class TestConfig:
    def test_negative_tolerance_rejected(self):
        with pytest.raises(ValueError):
            ReconcilerConfig(line_tolerance=-1)

    def test_zero_tolerance_requires_exact_lines(self):
        config = ReconcilerConfig(line_tolerance=0)
        assert reconcile([_v("xss", "high", 3)], [_v("xss", "high", 3)], config).unchanged
        assert not reconcile([_v("xss", "high", 3)], [_v("xss", "high", 4)], config).unchanged
