"""
Domain models for blob gateway results.

These models describe what happened to an upload or delete without
depending on the Azure SDK. Callers branch on ``ErrorKind`` rather than
catching vendor exceptions.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Coarse failure categories a caller can act on."""
    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    NETWORK = "network"
    CONFLICT = "conflict"  # Lease held, precondition failed, already exists
    UNKNOWN = "unknown"


class ErrorStrategy(Enum):
    """
    How upload and delete report failures.

    SUPPRESS keeps the historical contract: nothing is raised and the
    failure comes back as a result. RAISE makes them behave like the
    read operations and raise ``StorageError``.
    """
    SUPPRESS = "suppress"
    RAISE = "raise"


@dataclass(frozen=True)
class OperationResult:
    """
    Outcome of a write operation against the container.

    Truthiness mirrors ``succeeded`` so existing boolean checks
    (``if await gateway.upload(...)``) keep working.
    """
    succeeded: bool
    error_kind: Optional[ErrorKind] = None
    error: Optional[str] = None

    def __post_init__(self) -> None:
        if self.succeeded and self.error_kind is not None:
            raise ValueError("A successful result cannot carry an error kind")
        if not self.succeeded and self.error_kind is None:
            raise ValueError("A failed result requires an error kind")

    def __bool__(self) -> bool:
        return self.succeeded

    @classmethod
    def ok(cls) -> "OperationResult":
        return cls(succeeded=True)

    @classmethod
    def failure(cls, kind: ErrorKind, error: str) -> "OperationResult":
        return cls(succeeded=False, error_kind=kind, error=error)


@dataclass(frozen=True)
class DeleteResult(OperationResult):
    """
    Outcome of a delete-if-exists.

    ``existed`` is None when the call failed before the service answered.
    """
    existed: Optional[bool] = None

    @classmethod
    def deleted(cls, existed: bool) -> "DeleteResult":
        return cls(succeeded=True, existed=existed)

    @classmethod
    def failure(cls, kind: ErrorKind, error: str) -> "DeleteResult":
        return cls(succeeded=False, error_kind=kind, error=error)
