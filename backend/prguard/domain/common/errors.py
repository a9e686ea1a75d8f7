"""Domain-level error hierarchy.

All domain exceptions inherit from DomainError so that interface layers
can catch a single base class and translate to HTTP/Celery-appropriate
responses without leaking domain internals.

External-collaborator failures are split into *transient* (worth retrying
locally with backoff) and *permanent* (recorded at the smallest unit of
work and not retried).
"""


class DomainError(Exception):
    """Base class for all domain errors."""


class ValidationError(DomainError):
    """A domain invariant or input constraint was violated."""


class EntityNotFoundError(DomainError):
    """A requested entity does not exist."""

    def __init__(self, entity: str, identifier: object) -> None:
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity} not found: {identifier}")


class InvalidTransitionError(DomainError):
    """An illegal state transition was attempted."""

    def __init__(self, current: object, target: object) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Invalid transition: {current} -> {target}")


class PersistenceError(DomainError):
    """The transactional store rejected or failed a write.  Never swallowed."""


class DuplicateKeyError(PersistenceError):
    """A unique constraint rejected the write; the transaction was rolled back."""


# ---------------------------------------------------------------------------
# Collaborator errors
# ---------------------------------------------------------------------------


class DetectorError(DomainError):
    """The vulnerability detector failed for one file."""

    transient: bool = False


class TransientDetectorError(DetectorError):
    """Network failure, timeout or rate limit; safe to retry."""

    transient = True


class PermanentDetectorError(DetectorError):
    """Malformed response or rejected input; retrying will not help."""


class DiffFetchError(DomainError):
    """A source-control request failed (diff, pull requests or file contents)."""

    transient: bool = False


class TransientDiffFetchError(DiffFetchError):
    transient = True


class PermanentDiffFetchError(DiffFetchError):
    """Pull request or commit not found, or access denied."""


class DeliveryError(DomainError):
    """The mail transport failed to deliver.  Transient by default."""

    def __init__(self, message: str, *, transient: bool = True) -> None:
        self.transient = transient
        super().__init__(message)
