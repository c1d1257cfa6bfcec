from __future__ import annotations

from typing import Dict, List, Optional


class DomainError(Exception):
    """
    Base for errors raised by services.
    HTTP mapping lives in app.main; services never build HTTP responses.
    """
    status_code = 500
    public_message: Optional[str] = None

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DomainError):
    status_code = 422

    def __init__(self, message: str, errors: Optional[Dict[str, List[str]]] = None):
        super().__init__(message)
        self.errors = errors or {}

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls(message, errors={field: [message]})


class NotFoundError(DomainError):
    status_code = 404


class ConflictError(DomainError):
    status_code = 409


class PermissionDeniedError(DomainError):
    status_code = 403


class StorageError(DomainError):
    """
    Blob read/write/delete failure. The message stays server-side.
    """
    status_code = 500
    public_message = "A storage error occurred while processing the request."
