"""Tagged result variants returned at component boundaries."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Generic, Optional, TypeVar, Union

from .errors import ErrorCategory, YieldAgentError

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    kind: ErrorCategory
    detail: str
    suggestion: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return False

    @classmethod
    def from_exception(cls, error: YieldAgentError) -> "Err":
        return cls(
            kind=error.category,
            detail=error.message,
            suggestion=error.suggestion,
            extra=dict(error.details),
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"kind": self.kind.value, "error": self.detail}
        if self.suggestion:
            payload["suggestion"] = self.suggestion
        payload.update(self.extra)
        return payload


Result = Union[Ok[T], Err]


__all__ = ["Ok", "Err", "Result"]
