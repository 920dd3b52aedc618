"""
Result pattern for error handling without exceptions.
Service methods return Result[T] so handlers never turn business errors into HTTP 500s.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Generic, Optional, TypeVar, cast

from .types import ErrorCode

T = TypeVar("T")
U = TypeVar("U")


@dataclass
class Result(Generic[T]):
    """
    Result pattern for safe error handling.

    Usage:
        def load_listing(path: str) -> Result[dict]:
            if not os.path.isdir(path):
                return Result.Err(ErrorCode.DIR_NOT_FOUND, "Directory not found")
            return Result.Ok({"path": path})
    """
    ok: bool
    data: Optional[T] = None
    error: Optional[str] = None
    code: str = "OK"
    meta: dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def Ok(data: T, **meta: Any) -> "Result[T]":
        """Create a successful result with data and optional metadata."""
        return Result(ok=True, data=data, code="OK", meta=meta)

    @staticmethod
    def Err(code: ErrorCode | str | Enum, error: str, **meta: Any) -> "Result[T]":
        """Create an error result with code, message, and optional metadata."""
        code_value = code.value if isinstance(code, Enum) else code
        return Result(ok=False, error=error, code=str(code_value), meta=meta)

    def map(self, fn: Callable[[T], U]) -> "Result[U]":
        """Map the data if ok, otherwise return self."""
        if self.ok and self.data is not None:
            return Result.Ok(fn(self.data), **self.meta)
        return cast(Result[U], self)

    def unwrap(self) -> T:
        """Get data or raise ValueError if error."""
        if self.ok and self.data is not None:
            return self.data
        raise ValueError(f"[{self.code}] {self.error}")

    def unwrap_or(self, default: T) -> T:
        """Get data or return default if error."""
        return self.data if (self.ok and self.data is not None) else default
