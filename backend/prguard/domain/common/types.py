"""Shared value types used across domain sub-packages.

These are thin wrappers that make function signatures self-documenting
and prevent primitive obsession (passing raw ints/strings everywhere).
"""

from __future__ import annotations

from typing import NewType

# Identifiers
JobId = NewType("JobId", int)
PullRequestId = NewType("PullRequestId", int)
RepositoryId = NewType("RepositoryId", int)
CommitSha = NewType("CommitSha", str)

# Scores are always 0-100 ints
Score = NewType("Score", int)
