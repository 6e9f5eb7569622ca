"""
Submission result models.

A SubmissionResult is what the submission worker thread hands back to the
wizard after trying to persist the order and open a checkout session. The
wizard reads it once, under its own lock, and discards it if the safety timer
already fired for that attempt.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Any, Optional

from models.order import Order


class SubmissionStatus(Enum):
    """
    Status of one submission attempt.

    Lifecycle:
        PENDING -> (REDIRECT | SIMULATED | FAILED | TIMED_OUT)
    """

    PENDING = "pending"
    """Worker still running."""

    REDIRECT = "redirect"
    """Checkout session created; caller redirects to ``checkout_url``."""

    SIMULATED = "simulated"
    """No payment backend; local success (demo/offline mode)."""

    FAILED = "failed"
    """Store or gateway raised."""

    TIMED_OUT = "timed_out"
    """Safety timer fired first; result (if any) arrives too late to matter."""

    @property
    def is_success(self) -> bool:
        return self in (SubmissionStatus.REDIRECT, SubmissionStatus.SIMULATED)


@dataclass(frozen=True)
class SubmissionResult:
    """Outcome of a single submit() attempt."""

    attempt: int
    """Attempt number within the wizard session (1-based)."""

    idempotency_key: str
    """Key shared by every attempt for the same order."""

    status: SubmissionStatus
    """Terminal status of the attempt."""

    settled_at: datetime
    """When the attempt settled."""

    order: Optional[Order] = None
    """Persisted order, when creation got that far."""

    checkout_url: Optional[str] = None
    """Redirect target for REDIRECT results."""

    error_message: str = ""
    """User-facing error text for FAILED / TIMED_OUT results."""

    retryable: bool = False
    """Whether the same key can be resubmitted."""

    @classmethod
    def create_redirect(
        cls, attempt: int, idempotency_key: str, order: Order, checkout_url: str
    ) -> "SubmissionResult":
        return cls(
            attempt=attempt,
            idempotency_key=idempotency_key,
            status=SubmissionStatus.REDIRECT,
            settled_at=datetime.now(timezone.utc),
            order=order,
            checkout_url=checkout_url,
        )

    @classmethod
    def create_simulated(
        cls, attempt: int, idempotency_key: str, order: Order
    ) -> "SubmissionResult":
        return cls(
            attempt=attempt,
            idempotency_key=idempotency_key,
            status=SubmissionStatus.SIMULATED,
            settled_at=datetime.now(timezone.utc),
            order=order,
        )

    @classmethod
    def create_failed(
        cls,
        attempt: int,
        idempotency_key: str,
        error_message: str,
        order: Optional[Order] = None,
    ) -> "SubmissionResult":
        """
        Create a result for a failed attempt.

        Failures are always retryable: the user keeps their configuration and
        address and the retry reuses the idempotency key.
        """
        return cls(
            attempt=attempt,
            idempotency_key=idempotency_key,
            status=SubmissionStatus.FAILED,
            settled_at=datetime.now(timezone.utc),
            order=order,
            error_message=error_message,
            retryable=True,
        )

    @classmethod
    def create_timed_out(
        cls, attempt: int, idempotency_key: str, error_message: str
    ) -> "SubmissionResult":
        return cls(
            attempt=attempt,
            idempotency_key=idempotency_key,
            status=SubmissionStatus.TIMED_OUT,
            settled_at=datetime.now(timezone.utc),
            error_message=error_message,
            retryable=True,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attempt": self.attempt,
            "idempotencyKey": self.idempotency_key,
            "status": self.status.value,
            "settledAt": self.settled_at.isoformat(),
            "order": self.order.to_dict() if self.order else None,
            "checkoutUrl": self.checkout_url,
            "errorMessage": self.error_message,
            "retryable": self.retryable,
        }
