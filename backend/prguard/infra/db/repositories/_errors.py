"""Translate driver errors raised at flush time into domain errors."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from prguard.domain.common.errors import DuplicateKeyError


@contextmanager
def unique_violation_as_duplicate(session: Session) -> Iterator[None]:
    """Flush inside the block; a unique-constraint clash becomes DuplicateKeyError.

    The session is rolled back before raising, as after any failed flush.
    """
    try:
        yield
        session.flush()
    except IntegrityError as exc:
        session.rollback()
        raise DuplicateKeyError(str(exc.orig)) from exc
