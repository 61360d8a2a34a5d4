"""Uniform result envelope returned by every engine operation."""
from __future__ import annotations

import functools
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar

from core.errors import translate_exception

T = TypeVar("T")


def _dump(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, list):
        return [_dump(item) for item in value]
    return value


@dataclass
class Result(Generic[T]):
    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    changes: Optional[int] = None
    code: Optional[str] = None

    @classmethod
    def ok(cls, data: Any = None, *, changes: Optional[int] = None) -> "Result":
        return cls(success=True, data=data, changes=changes)

    @classmethod
    def failure(cls, exc: BaseException) -> "Result":
        err = translate_exception(exc)
        return cls(success=False, error=str(err), code=err.code)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": self.success}
        if self.data is not None:
            payload["data"] = _dump(self.data)
        if self.error is not None:
            payload["error"] = self.error
        if self.changes is not None:
            payload["changes"] = self.changes
        if self.code is not None:
            payload["code"] = self.code
        return payload


@dataclass
class BulkResult:
    success: bool
    processed: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def failure(cls, exc: BaseException) -> "BulkResult":
        """Reject a whole batch before any item is processed."""
        err = translate_exception(exc)
        return cls(success=False, errors=[{"id": None, "error": str(err), "code": err.code}])

    def to_dict(self) -> Dict[str, Any]:
        return {"success": self.success, "processed": self.processed, "errors": list(self.errors)}


def enveloped(action: str) -> Callable[[Callable[..., Any]], Callable[..., Result]]:
    """Convert any failure raised by the wrapped operation into a failed ``Result``.

    The wrapped method may return a ``Result`` itself or a bare value, which is
    wrapped as ``Result.ok(value)``.
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Result]:
        @functools.wraps(func)
        def wrapper(self, *args, **kwargs) -> Result:
            try:
                value = func(self, *args, **kwargs)
            except Exception as exc:
                result = Result.failure(exc)
                logger: logging.Logger = getattr(self, "logger", logging.getLogger("taskhold.engine"))
                if result.code in {"NotFound", "ValidationError"}:
                    logger.info("%s: %s", action, result.error)
                else:
                    logger.error("%s: %s", action, result.error, exc_info=exc)
                return result
            if isinstance(value, Result):
                return value
            return Result.ok(value)

        return wrapper

    return decorator


__all__ = ["BulkResult", "Result", "enveloped"]
