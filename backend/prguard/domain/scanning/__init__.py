"""Scanning domain: reconciliation and scoring of findings, and the scan-job lifecycle."""

from .reconciler import ReconcilerConfig, reconcile  # noqa: F401 – re-export for convenience
from .scoring import ScoringConfig, assess  # noqa: F401
