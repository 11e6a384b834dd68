from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ServiceError(Exception):
    code: str
    message: str
    details: dict | None = None

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict:
        payload = {
            "code": self.code,
            "message": self.message,
        }
        if self.details:
            payload["details"] = self.details
        return payload


class NotFoundError(ServiceError):
    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__("not_found", message, details)


class ConflictError(ServiceError):
    def __init__(self, message: str, details: dict | None = None, *, code: str = "conflict") -> None:
        super().__init__(code, message, details)


class SequenceConflictError(ConflictError):
    """Another writer already claimed the computed sequence value.

    The transaction is unusable afterwards; callers roll back and may retry
    with a fresh read.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(message, details, code="sequence_conflict")


class InvalidInputError(ServiceError):
    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__("validation_failed", message, details)
