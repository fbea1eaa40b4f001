"""Exception hierarchy shared by the cadence scheduling components."""
from __future__ import annotations

from typing import Optional


class CadenceError(RuntimeError):
    """Base exception for cadence scheduling failures."""


class InvalidArgumentError(CadenceError, ValueError):
    """Raised when a caller supplies an argument that cannot be honoured."""


class PersistenceError(CadenceError):
    """Raised when a cadence store operation fails.

    ``operation`` names the store primitive that failed (``find``, ``insert``,
    ``update``, ``delete`` or ``transaction``) and the original exception is
    kept as ``__cause__``.
    """

    def __init__(self, operation: str, message: str, *, cause: Optional[BaseException] = None) -> None:
        super().__init__(f"{operation} failed: {message}")
        self.operation = operation
        if cause is not None:
            self.__cause__ = cause


class ExternalServiceError(CadenceError):
    """Raised when the alert publisher fails or does not answer in time."""


__all__ = [
    "CadenceError",
    "ExternalServiceError",
    "InvalidArgumentError",
    "PersistenceError",
]
