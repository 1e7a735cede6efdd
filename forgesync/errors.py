"""Error taxonomy shared by the validation gate, the ingestion engine, and the store."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Outcome classes reported to the calling service layer."""

    BAD_REQUEST = "BAD_REQUEST"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    UNEXPECTED = "UNEXPECTED"


class ForgeSyncError(Exception):
    """Base class for every failure that maps onto an outcome kind."""

    kind: ErrorKind = ErrorKind.UNEXPECTED

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(ForgeSyncError):
    """Malformed input, detected before any write."""

    kind = ErrorKind.BAD_REQUEST

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(message)


class NotFoundError(ForgeSyncError):
    """A referenced repository, language, contributor, commit, or file does not exist."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, subject: str, message: str) -> None:
        self.subject = subject
        super().__init__(message)


class ConflictError(ForgeSyncError):
    """The actor already owns a repository with this name."""

    kind = ErrorKind.CONFLICT


class UnexpectedError(ForgeSyncError):
    """Store or source failure with no defined recovery."""

    kind = ErrorKind.UNEXPECTED

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause


class StoreError(Exception):
    """Wraps driver-level exceptions raised by a persistence store."""

    def __init__(self, operation: str, cause: BaseException) -> None:
        self.operation = operation
        super().__init__(f"store {operation} failed: {cause}")
        self.__cause__ = cause


class IntegrityViolation(StoreError):
    """A unique or foreign-key constraint rejected a write."""

    def __init__(self, entity: str, operation: str, cause: BaseException) -> None:
        self.entity = entity
        super().__init__(operation, cause)
