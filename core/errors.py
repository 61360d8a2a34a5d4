"""Error taxonomy shared by the storage layer and the engine facade."""
from __future__ import annotations

from sqlalchemy.exc import IntegrityError, SQLAlchemyError


class StoreError(Exception):
    """Base class for failures reported through the result envelope."""

    code = "StoreError"


class NotFound(StoreError):
    code = "NotFound"


class ValidationError(StoreError):
    code = "ValidationError"


class ConstraintViolation(StoreError):
    code = "ConstraintViolation"


class ExecutionError(StoreError):
    code = "ExecutionError"


class MigrationError(StoreError):
    """Raised when a schema migration fails; aborts engine startup."""

    code = "MigrationError"

    def __init__(self, version: int, message: str):
        super().__init__(f"Migration to version {version} failed: {message}")
        self.version = version


def translate_exception(exc: BaseException) -> StoreError:
    """Map an arbitrary exception onto the store taxonomy."""

    if isinstance(exc, StoreError):
        return exc
    if isinstance(exc, IntegrityError):
        return ConstraintViolation(str(exc.orig) if exc.orig is not None else str(exc))
    if isinstance(exc, SQLAlchemyError):
        orig = getattr(exc, "orig", None)
        return ExecutionError(str(orig) if orig is not None else str(exc))
    return ExecutionError(str(exc) or exc.__class__.__name__)


__all__ = [
    "ConstraintViolation",
    "ExecutionError",
    "MigrationError",
    "NotFound",
    "StoreError",
    "ValidationError",
    "translate_exception",
]
