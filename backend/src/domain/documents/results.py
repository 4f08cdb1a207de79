"""Tagged success/error results for document vault operations.

Vault operations return ``Ok(value)`` or ``Err(VaultError)`` instead of raising.
Call sites branch on the tag:

    result = repository.find_by_id(document_id)
    if isinstance(result, Err):
        return result
    document = result.value
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, Optional, TypeVar, Union


T = TypeVar("T")


class ErrorKind(str, Enum):
    """Error taxonomy shared by the repository, gateway and service."""
    NOT_FOUND = "NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    CONFLICT = "CONFLICT"
    DATABASE_ERROR = "DATABASE_ERROR"
    ACCESS_DENIED = "ACCESS_DENIED"
    STORAGE_ERROR = "STORAGE_ERROR"


@dataclass(frozen=True)
class VaultError:
    """Error value carried by ``Err``.

    Attributes:
        kind: Category from the error taxonomy
        message: Human-readable description
        details: Optional structured context (field names, detected types, ...)
    """
    kind: ErrorKind
    message: str
    details: Optional[Dict[str, Any]] = field(default=None)


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def is_ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    error: VaultError

    @property
    def is_ok(self) -> bool:
        return False

    @property
    def kind(self) -> ErrorKind:
        return self.error.kind


Result = Union[Ok[T], Err]


def not_found(message: str, **details: Any) -> Err:
    return Err(VaultError(ErrorKind.NOT_FOUND, message, details or None))


def validation_error(message: str, **details: Any) -> Err:
    return Err(VaultError(ErrorKind.VALIDATION_ERROR, message, details or None))


def conflict(message: str, **details: Any) -> Err:
    return Err(VaultError(ErrorKind.CONFLICT, message, details or None))


def database_error(message: str, **details: Any) -> Err:
    return Err(VaultError(ErrorKind.DATABASE_ERROR, message, details or None))


def access_denied(message: str, **details: Any) -> Err:
    return Err(VaultError(ErrorKind.ACCESS_DENIED, message, details or None))


def storage_error(message: str, **details: Any) -> Err:
    return Err(VaultError(ErrorKind.STORAGE_ERROR, message, details or None))
