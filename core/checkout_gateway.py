"""
Checkout backend client.

Turns a persisted order (or a subscription price id) into an external
payment session URL. This pipeline never processes a payment itself: the
caller redirects the browser to the returned URL.

SIMULATION MODE:
    When no backend is configured, or the backend cannot be reached at all
    (connection refused, DNS failure, connect timeout), create_session()
    returns the SIMULATION sentinel instead of raising. The wizard treats
    that as a local success so demos and offline runs still complete.

    Anything else - a 4xx/5xx answer, a read timeout on a reachable backend,
    malformed JSON, a response without a URL - is a CheckoutGatewayError with
    the underlying cause attached.

Usage:
    gateway = CheckoutGateway(base_url="https://api.example.com", logger=logger)

    url = gateway.create_session("payment", order.id, idempotency_key)
    if url == SIMULATION:
        # local success
    else:
        # redirect to url
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Optional

import requests

from .exceptions import CheckoutGatewayError


SIMULATION = "SIMULATION"

CHECKOUT_MODES = ("payment", "subscription")

IDEMPOTENCY_HEADER = "Idempotency-Key"


def extract_error_detail(response: requests.Response) -> str:
    """
    Extract a human-readable error message from a checkout backend response.

    Handles ``{"error": "msg"}``, ``{"error": {"field": "msg"}}`` and
    non-JSON bodies (returned raw, truncated).
    """
    try:
        body = response.json()
    except ValueError:
        text = getattr(response, "text", "") or ""
        return text[:300] or f"HTTP {response.status_code}"

    if isinstance(body, dict) and "error" in body:
        error = body["error"]
        if isinstance(error, dict):
            return " | ".join(f"{k}: {v}" for k, v in error.items())
        return str(error)

    return str(body)[:300]


class CheckoutGateway:
    """
    HTTP client for ``POST /checkout-session``.

    Safe to share between wizard sessions: the only state is the
    configuration and a requests.Session (one per gateway instance).

    Attributes:
        base_url: Backend root URL; empty means simulation mode
        is_simulation: True when no backend is configured
    """

    def __init__(
        self,
        base_url: str = "",
        timeout_seconds: float = 10.0,
        success_url: str = "",
        cancel_url: str = "",
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.success_url = success_url
        self.cancel_url = cancel_url
        self._session = session or requests.Session()
        self._logger = logger or logging.getLogger("core.checkout_gateway")

        if self.is_simulation:
            self._logger.warning("No checkout backend configured - running in SIMULATION mode")

    @property
    def is_simulation(self) -> bool:
        return not self.base_url

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/checkout-session"

    def create_session(self, mode: str, reference: str, idempotency_key: str) -> str:
        """
        Create a checkout session.

        Args:
            mode: "payment" (print order) or "subscription" (plan upgrade)
            reference: Order id for payments, price id for subscriptions
            idempotency_key: Wizard's per-order key; the backend dedupes on it

        Returns:
            Session URL to redirect to, or SIMULATION

        Raises:
            ValueError: Unknown mode or empty reference
            CheckoutGatewayError: Backend answered with an error or garbage
        """
        if mode not in CHECKOUT_MODES:
            raise ValueError(f"mode must be one of {CHECKOUT_MODES}, got {mode!r}")
        if not reference:
            raise ValueError("reference is required")

        thread_id = threading.get_ident()

        if self.is_simulation:
            self._logger.info(f"[Thread {thread_id}] Checkout SIMULATION for {mode} {reference}")
            return SIMULATION

        payload = self._build_payload(mode, reference, idempotency_key)
        self._logger.debug(f"[Thread {thread_id}] POST {self.endpoint} mode={mode} ref={reference}")

        try:
            response = self._session.post(
                self.endpoint,
                json=payload,
                headers={IDEMPOTENCY_HEADER: idempotency_key},
                timeout=self.timeout_seconds,
            )
        except requests.ConnectionError as e:
            # Covers refused connections, DNS failures and connect timeouts
            self._logger.warning(
                f"[Thread {thread_id}] Checkout backend unreachable, falling back to SIMULATION: {e}"
            )
            return SIMULATION
        except requests.Timeout as e:
            self._logger.error(f"[Thread {thread_id}] Checkout backend timed out: {e}")
            raise CheckoutGatewayError(
                f"Checkout service did not respond within {self.timeout_seconds:.0f}s", cause=e
            )
        except requests.RequestException as e:
            self._logger.error(f"[Thread {thread_id}] Checkout request failed: {e}")
            raise CheckoutGatewayError(f"Checkout request failed: {e}", cause=e)

        return self._parse_response(response, thread_id)

    def _build_payload(self, mode: str, reference: str, idempotency_key: str) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "mode": mode,
            "reference": reference,
            "idempotencyKey": idempotency_key,
        }
        if self.success_url:
            payload["successUrl"] = self.success_url
        if self.cancel_url:
            payload["cancelUrl"] = self.cancel_url
        return payload

    def _parse_response(self, response: requests.Response, thread_id: int) -> str:
        try:
            response.raise_for_status()
        except requests.HTTPError as e:
            detail = extract_error_detail(response)
            self._logger.error(
                f"[Thread {thread_id}] Checkout backend returned {response.status_code}: {detail}"
            )
            raise CheckoutGatewayError(detail, cause=e, status_code=response.status_code)

        try:
            body = response.json()
        except ValueError as e:
            self._logger.error(f"[Thread {thread_id}] Invalid JSON from checkout backend: {e}")
            raise CheckoutGatewayError(
                "Checkout service returned an invalid response", cause=e,
                status_code=response.status_code,
            )

        url = body.get("url") if isinstance(body, dict) else None
        if not url or not isinstance(url, str):
            self._logger.error(f"[Thread {thread_id}] Checkout response missing url: {body!r:.200}")
            raise CheckoutGatewayError(
                "Checkout service response did not include a session URL",
                status_code=response.status_code,
            )

        self._logger.info(f"[Thread {thread_id}] Checkout session created")
        return url
