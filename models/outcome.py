"""
Best-effort outcome types.

Some wizard side effects are allowed to fail without blocking the user:
fetching discount eligibility and pre-filling the last shipping address.
Instead of swallowing the exception, these return ``Ok`` or
``PartialFailure`` so callers and tests can see what happened.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Generic, Optional, TypeVar, Union


T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Side effect completed; ``value`` is its result."""

    value: T

    @property
    def ok(self) -> bool:
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {"ok": True}


@dataclass(frozen=True)
class PartialFailure(Generic[T]):
    """
    Side effect failed; the wizard carries on with ``fallback``.

    ``reason`` is a short description safe for logs and API responses.
    """

    reason: str
    fallback: Optional[T] = None

    @property
    def ok(self) -> bool:
        return False

    @property
    def value(self) -> Optional[T]:
        return self.fallback

    def to_dict(self) -> Dict[str, Any]:
        return {"ok": False, "reason": self.reason}


Outcome = Union[Ok[T], PartialFailure[T]]
