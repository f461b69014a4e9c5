"""Outcome of a pipeline stage that is allowed to degrade instead of failing."""

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass
class StageResult(Generic[T]):
    """
    Value produced by a stage, plus what went wrong if it fell back.

    A failed result still carries a usable value (the fallback), so the
    caller decides explicitly whether to continue or abort.
    """
    value: T
    error: Optional[BaseException] = None
    skipped: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def degraded(self) -> bool:
        return self.error is not None

    @classmethod
    def success(cls, value: T) -> "StageResult[T]":
        return cls(value=value)

    @classmethod
    def skip(cls, value: T) -> "StageResult[T]":
        return cls(value=value, skipped=True)

    @classmethod
    def failure(cls, fallback: T, error: BaseException) -> "StageResult[T]":
        return cls(value=fallback, error=error)
