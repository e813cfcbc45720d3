"""
RESULT VALUES & ERROR TAXONOMY

Business outcomes travel as ServiceResult values:
- VALIDATION: field-level, user-fixable problems
- NOT_FOUND: a referenced entity is absent
- CONFLICT: duplicate unique key or blocked deletion
- DOCUMENT: an uploaded document could not be processed

Infrastructure failures (persistence, storage) are raised as
ProcurementError subclasses and propagate to the boundary.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorKind(str, Enum):
    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    DOCUMENT = "DOCUMENT"


@dataclass
class FieldError:
    """A single field-level validation problem"""
    field: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"field": self.field, "message": self.message}


@dataclass
class ServiceResult:
    """Success-with-value or failure-with-message"""
    is_success: bool
    data: Any = None
    message: Optional[str] = None
    kind: Optional[ErrorKind] = None
    errors: List[FieldError] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @classmethod
    def ok(cls, data: Any = None, warnings: Optional[List[str]] = None) -> "ServiceResult":
        return cls(is_success=True, data=data, warnings=list(warnings or []))

    @classmethod
    def fail(
        cls,
        kind: ErrorKind,
        message: str,
        errors: Optional[List[FieldError]] = None,
        warnings: Optional[List[str]] = None
    ) -> "ServiceResult":
        return cls(
            is_success=False,
            message=message,
            kind=kind,
            errors=list(errors or []),
            warnings=list(warnings or [])
        )

    @classmethod
    def validation_failed(cls, errors: List[FieldError], message: str = "Validation failed") -> "ServiceResult":
        return cls.fail(ErrorKind.VALIDATION, message, errors)

    @classmethod
    def not_found(cls, message: str) -> "ServiceResult":
        return cls.fail(ErrorKind.NOT_FOUND, message)

    @classmethod
    def conflict(cls, message: str) -> "ServiceResult":
        return cls.fail(ErrorKind.CONFLICT, message)

    def with_warnings(self, warnings: List[str]) -> "ServiceResult":
        self.warnings.extend(w for w in warnings if w not in self.warnings)
        return self

    def error_dicts(self) -> List[Dict[str, str]]:
        return [e.to_dict() for e in self.errors]


# =============================================================================
# EXCEPTIONS
# =============================================================================

class ProcurementError(Exception):
    """Base exception for unexpected (infrastructure) failures."""
    def __init__(self, operation: str, message: str, original_error: Optional[Exception] = None):
        self.operation = operation
        self.original_error = original_error
        self.message = message
        super().__init__(message)


class PersistenceError(ProcurementError):
    """Raised when the database rejects or cannot serve a request."""
    def __init__(self, collection: str, operation: str, original_error: Exception):
        self.collection = collection
        super().__init__(
            operation=operation,
            message=f"Persistence failure on {collection}.{operation}: {original_error}",
            original_error=original_error
        )


class StorageError(ProcurementError):
    """Raised when the document storage collaborator fails."""
    def __init__(self, key: str, operation: str, original_error: Optional[Exception] = None):
        self.key = key
        detail = f": {original_error}" if original_error else ""
        super().__init__(
            operation=operation,
            message=f"Storage {operation} failed for '{key}'{detail}",
            original_error=original_error
        )
