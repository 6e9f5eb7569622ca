"""
Print order wizard.

One OrderWizard drives one user's print order from configuration to
checkout hand-off. It is an explicit state machine:

    CONFIG -> SHIPPING -> PAYMENT -> (SUCCESS | FAILED)
       ^          |  ^        |                  |
       +--- back -+  +- back -+       retry -----+-> PAYMENT

Guards:
    CONFIG -> SHIPPING   latest image validation is valid, none in flight
    SHIPPING -> PAYMENT  every mandatory address field is filled in
    PAYMENT -> submit    single-flight; guards re-checked at submit time

A guard that fails is a no-op: next() returns False and the step does not
change. can_advance() exposes the same check for a disabled button.

THREADS:
    Validation  - configuration changes schedule a re-validation on a
                  threading.Timer (debounce). Every request bumps a
                  generation counter; a result is applied only if its
                  generation is still the latest, stale ones are dropped.
    Submission  - submit() starts a worker thread that creates the order and
                  the checkout session, then waits on an Event for at most
                  the safety timeout. Whoever settles first under the lock
                  wins; a worker that finishes after the timeout is ignored
                  (not cancelled - the payment flow it started stands).

DATA IS NEVER DISCARDED:
    Back navigation, failures and timeouts all keep the configuration and
    the shipping address. Retries reuse the idempotency key issued on first
    entry to PAYMENT, so the store and the checkout backend can dedupe.

    Configuration and address stay editable after a failed attempt only
    while nothing can exist under the key: once an order was persisted, or
    an attempt timed out, they are locked and a different order needs a
    new wizard.

COMPLETION:
    A submit that reaches SUCCESS calls ``on_complete(wizard)`` after the
    lock is released; WizardService uses it to drop finished sessions.
"""

from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from core.checkout_gateway import SIMULATION, CheckoutGateway
from core.exceptions import (
    PricingError,
    SubmissionTimeoutError,
    VisionPrintError,
)
from models.order import Order, ShippingAddress
from models.outcome import Ok, Outcome
from models.pricing import PriceBreakdown
from models.product import (
    Finish,
    ProductConfig,
    parse_finish,
    parse_product_type,
    parse_size,
    product_label,
)
from models.submission import SubmissionResult, SubmissionStatus
from models.validation import ImageValidationResult
from modules.image_metrics import ImageMetricsError
from modules.image_quality import ImageQualityValidator
from modules.pricing import PricingEngine
from services.order_store import OrderStore
from services.profile_service import ProfileService
from logging_config import get_logger, get_order_logger, set_thread_name


# Module logger
logger = get_logger(__name__)

DEFAULT_SUBMISSION_TIMEOUT = 15.0
GENERIC_FAILURE_MESSAGE = "Failed to place order. Please check your connection."


class WizardStep(Enum):
    """Visible wizard steps. SUCCESS and FAILED end a submission."""

    CONFIG = "config"
    SHIPPING = "shipping"
    PAYMENT = "payment"
    SUCCESS = "success"
    FAILED = "failed"


class WizardEvent(Enum):
    NEXT = "next"
    BACK = "back"
    SUBMIT_SUCCEEDED = "submit_succeeded"
    SUBMIT_FAILED = "submit_failed"
    RETRY = "retry"


# Allowed (step, event) -> step. Guards are checked separately.
TRANSITIONS: Dict[Tuple[WizardStep, WizardEvent], WizardStep] = {
    (WizardStep.CONFIG, WizardEvent.NEXT): WizardStep.SHIPPING,
    (WizardStep.SHIPPING, WizardEvent.NEXT): WizardStep.PAYMENT,
    (WizardStep.SHIPPING, WizardEvent.BACK): WizardStep.CONFIG,
    (WizardStep.PAYMENT, WizardEvent.BACK): WizardStep.SHIPPING,
    (WizardStep.PAYMENT, WizardEvent.SUBMIT_SUCCEEDED): WizardStep.SUCCESS,
    (WizardStep.PAYMENT, WizardEvent.SUBMIT_FAILED): WizardStep.FAILED,
    (WizardStep.FAILED, WizardEvent.RETRY): WizardStep.PAYMENT,
    (WizardStep.FAILED, WizardEvent.BACK): WizardStep.PAYMENT,
}


@dataclass
class WizardSession:
    """
    Transient state owned by exactly one OrderWizard.

    Nothing here is shared with other wizards.
    """

    step: WizardStep = WizardStep.CONFIG
    config: ProductConfig = field(default_factory=ProductConfig)
    poster_finish: Finish = Finish.MATTE
    shipping: ShippingAddress = field(default_factory=ShippingAddress)
    edited_fields: Set[str] = field(default_factory=set)

    validation: Optional[ImageValidationResult] = None
    validation_generation: int = 0
    validation_in_flight: bool = False

    submission_in_flight: bool = False
    idempotency_key: Optional[str] = None
    attempts: int = 0
    key_committed: bool = False
    last_result: Optional[SubmissionResult] = None
    error_message: Optional[str] = None

    order: Optional[Order] = None
    checkout_url: Optional[str] = None
    simulated: bool = False
    closed: bool = False


class _Attempt:
    """One submit() call; settled exactly once, by the worker or the timer."""

    def __init__(self, number: int):
        self.number = number
        self.settled = threading.Event()
        self.result: Optional[SubmissionResult] = None
        self.abandoned = False


class OrderWizard:
    """
    State machine for a single print order.

    Collaborators are injected; the wizard owns no global state. Discount
    eligibility and the shipping prefill are fetched once, here in the
    constructor, and kept as plain data for the life of the session.
    """

    def __init__(
        self,
        *,
        user_id: str,
        image_id: str,
        image_url: str,
        pricing_engine: PricingEngine,
        validator: ImageQualityValidator,
        order_store: OrderStore,
        checkout_gateway: CheckoutGateway,
        profile_service: Optional[ProfileService] = None,
        image_metrics=None,
        image_dimensions: Optional[Tuple[int, int]] = None,
        initial_config: Optional[ProductConfig] = None,
        submission_timeout: float = DEFAULT_SUBMISSION_TIMEOUT,
        validation_debounce: float = 0.0,
        wizard_id: Optional[str] = None,
        on_complete: Optional[Callable[["OrderWizard"], None]] = None,
    ):
        if image_metrics is None and image_dimensions is None:
            raise ValueError("either image_metrics or image_dimensions is required")

        self.wizard_id = wizard_id or str(uuid.uuid4())
        self.user_id = user_id
        self.image_id = image_id
        self.image_url = image_url

        self._pricing = pricing_engine
        self._validator = validator
        self._order_store = order_store
        self._gateway = checkout_gateway
        self._image_metrics = image_metrics
        self._image_dimensions = image_dimensions
        self.submission_timeout = submission_timeout
        self.validation_debounce = validation_debounce
        self._on_complete = on_complete

        self._lock = threading.RLock()
        self._validation_settled = threading.Event()
        self._validation_timer: Optional[threading.Timer] = None

        self._session = WizardSession()
        if initial_config is not None:
            self._session.config = initial_config.normalized()
            if self._session.config.finish is not None:
                self._session.poster_finish = self._session.config.finish

        # Fetched once per session, then read-only
        if profile_service is not None:
            self.eligibility_outcome: Outcome[bool] = profile_service.discount_eligibility(user_id)
            self.prefill_outcome: Outcome[Optional[ShippingAddress]] = (
                profile_service.last_shipping_address(user_id)
            )
        else:
            self.eligibility_outcome = Ok(False)
            self.prefill_outcome = Ok(None)

        self.discount_eligible = bool(self.eligibility_outcome.value)
        if self.prefill_outcome.value is not None:
            self.prefill_shipping(self.prefill_outcome.value)

        logger.info(
            f"Wizard {self.wizard_id[:8]} opened for user {user_id} image {image_id} "
            f"(discount_eligible={self.discount_eligible})"
        )

        self._request_validation()

    # =====================================================================
    # READ-ONLY VIEW
    # =====================================================================

    @property
    def step(self) -> WizardStep:
        return self._session.step

    @property
    def config(self) -> ProductConfig:
        return self._session.config

    @property
    def shipping(self) -> ShippingAddress:
        return self._session.shipping.copy()

    @property
    def validation(self) -> Optional[ImageValidationResult]:
        return self._session.validation

    @property
    def validation_in_flight(self) -> bool:
        return self._session.validation_in_flight

    @property
    def validation_generation(self) -> int:
        """Generation of the most recent validation request."""
        return self._session.validation_generation

    @property
    def submission_in_flight(self) -> bool:
        return self._session.submission_in_flight

    @property
    def idempotency_key(self) -> Optional[str]:
        return self._session.idempotency_key

    @property
    def error_message(self) -> Optional[str]:
        return self._session.error_message

    @property
    def order(self) -> Optional[Order]:
        return self._session.order

    @property
    def checkout_url(self) -> Optional[str]:
        return self._session.checkout_url

    @property
    def last_result(self) -> Optional[SubmissionResult]:
        return self._session.last_result

    @property
    def is_closed(self) -> bool:
        return self._session.closed

    def quote(self) -> PriceBreakdown:
        """
        Fresh price for the current configuration.

        Raises:
            PricingError: the configuration has no price (never priced as zero)
        """
        return self._pricing.price_config(self._session.config, self.discount_eligible)

    def size_quotes(self) -> Dict[str, PriceBreakdown]:
        """Per-size prices for the current product type, for the size picker."""
        config = self._session.config
        return self._pricing.quote_all_sizes(
            config.product_type, config.finish, self.discount_eligible
        )

    # =====================================================================
    # CONFIG STEP
    # =====================================================================

    def update_config(
        self,
        product_type=None,
        size=None,
        finish=None,
        quantity: Optional[int] = None,
    ) -> bool:
        """
        Change product selections on the CONFIG step.

        Any change to size or product type schedules a re-validation; until
        it lands the wizard cannot advance. Returns False when the wizard is
        not on CONFIG or the order has already been dispatched.

        Raises:
            ValueError: unknown product type, size, finish or bad quantity
        """
        with self._lock:
            if not self._editable(WizardStep.CONFIG):
                return False

            current = self._session.config
            ptype = parse_product_type(product_type) if product_type is not None else current.product_type
            psize = parse_size(size) if size is not None else current.size
            qty = int(quantity) if quantity is not None else current.quantity

            requested_finish = parse_finish(finish) if finish is not None else None
            if requested_finish is not None and ptype.has_finish:
                self._session.poster_finish = requested_finish
            # Canvas keeps the poster finish in reserve so switching back restores it
            new_finish = self._session.poster_finish if ptype.has_finish else None

            updated = ProductConfig(ptype, psize, new_finish, qty)
            if updated == current:
                return True

            needs_validation = (ptype, psize) != (current.product_type, current.size)
            self._session.config = updated
            logger.debug(f"Wizard {self.wizard_id[:8]} config -> {updated.to_dict()}")

        if needs_validation:
            self._request_validation()
        return True

    def can_advance(self) -> bool:
        """True when next() from CONFIG would succeed right now."""
        with self._lock:
            return self._config_guard()

    def _config_guard(self) -> bool:
        session = self._session
        result = session.validation
        if session.validation_in_flight or result is None or not result.is_valid:
            return False
        # Verdict must describe the configuration on screen now
        return (
            result.size == session.config.size.value
            and result.product_type == session.config.product_type.value
        )

    # =====================================================================
    # VALIDATION (debounced, latest wins)
    # =====================================================================

    def _request_validation(self) -> int:
        with self._lock:
            self._session.validation_generation += 1
            generation = self._session.validation_generation
            self._session.validation_in_flight = True
            self._validation_settled.clear()
            config = self._session.config

            if self._validation_timer is not None:
                self._validation_timer.cancel()
                self._validation_timer = None

            if self.validation_debounce > 0:
                timer = threading.Timer(
                    self.validation_debounce, self._debounced_validation, args=(generation, config)
                )
                timer.daemon = True
                timer.name = f"Validate-{self.wizard_id[:4]}-{generation}"
                self._validation_timer = timer
                timer.start()
                return generation

        self._run_validation(generation, config)
        return generation

    def _debounced_validation(self, generation: int, config: ProductConfig) -> None:
        set_thread_name(f"Validate-{self.wizard_id[:4]}")
        if self._session.closed:
            return
        self._run_validation(generation, config)

    def _run_validation(self, generation: int, config: ProductConfig) -> None:
        width, height = self._lookup_dimensions()
        result = self._validator.validate(width, height, config.size, config.product_type)
        self.apply_validation(generation, result)

    def _lookup_dimensions(self) -> Tuple[int, int]:
        if self._image_dimensions is not None:
            return self._image_dimensions
        try:
            dimensions = self._image_metrics.get_dimensions(self.image_url)
        except ImageMetricsError as e:
            logger.warning(f"Wizard {self.wizard_id[:8]} could not read image dimensions: {e}")
            return 0, 0
        # Dimensions of an image never change; the verdict is still recomputed per config
        self._image_dimensions = dimensions
        return dimensions

    def apply_validation(self, generation: int, result: ImageValidationResult) -> bool:
        """
        Install a validation result if it belongs to the latest request.

        Returns False (and leaves state untouched) for stale generations.
        """
        with self._lock:
            if generation != self._session.validation_generation:
                logger.debug(
                    f"Wizard {self.wizard_id[:8]} dropped stale validation gen={generation} "
                    f"(latest={self._session.validation_generation})"
                )
                return False
            self._session.validation = result
            self._session.validation_in_flight = False
            self._validation_settled.set()
            logger.debug(
                f"Wizard {self.wizard_id[:8]} validation gen={generation} applied: "
                f"{result.quality_level.value}"
            )
            return True

    def wait_for_validation(self, timeout: Optional[float] = None) -> bool:
        """Block until the latest validation has been applied."""
        return self._validation_settled.wait(timeout)

    # =====================================================================
    # SHIPPING STEP
    # =====================================================================

    def update_shipping(self, **fields: str) -> bool:
        """
        Edit shipping fields on the SHIPPING step.

        Raises:
            ValueError: unknown field name
        """
        unknown = set(fields) - set(ShippingAddress.field_names())
        if unknown:
            raise ValueError(f"Unknown shipping fields: {sorted(unknown)}")

        with self._lock:
            if not self._editable(WizardStep.SHIPPING):
                return False
            self._session.shipping = replace(self._session.shipping, **fields)
            self._session.edited_fields.update(fields)
            return True

    def prefill_shipping(self, address: ShippingAddress) -> List[str]:
        """
        Fill shipping fields from a previous order.

        Fields the user already edited are left alone. Returns the names of
        the fields that were filled.
        """
        with self._lock:
            filled = {}
            for name in ShippingAddress.field_names():
                value = getattr(address, name)
                if name in self._session.edited_fields or not value:
                    continue
                filled[name] = value
            if filled:
                self._session.shipping = replace(self._session.shipping, **filled)
            return sorted(filled)

    def missing_shipping_fields(self) -> List[str]:
        return self._session.shipping.missing_fields()

    # =====================================================================
    # NAVIGATION
    # =====================================================================

    def next(self) -> bool:
        """Advance one step if the current step's guard passes."""
        with self._lock:
            if self._session.closed or self._session.submission_in_flight:
                return False

            step = self._session.step
            if step is WizardStep.CONFIG:
                if not self._config_guard():
                    logger.debug(f"Wizard {self.wizard_id[:8]} blocked at CONFIG (image not valid)")
                    return False
            elif step is WizardStep.SHIPPING:
                missing = self._session.shipping.missing_fields()
                if missing:
                    logger.debug(f"Wizard {self.wizard_id[:8]} blocked at SHIPPING, missing {missing}")
                    return False

            if not self._transition(WizardEvent.NEXT):
                return False

            if self._session.step is WizardStep.PAYMENT and self._session.idempotency_key is None:
                self._session.idempotency_key = str(uuid.uuid4())
                logger.info(
                    f"Wizard {self.wizard_id[:8]} issued idempotency key "
                    f"{self._session.idempotency_key[:8]}"
                )
            return True

    def back(self) -> bool:
        """Go back one step. Never discards entered data."""
        with self._lock:
            if self._session.closed or self._session.submission_in_flight:
                return False
            return self._transition(WizardEvent.BACK)

    def retry(self) -> bool:
        """Return from FAILED to PAYMENT, keeping config, address and key."""
        with self._lock:
            if self._session.closed:
                return False
            if self._transition(WizardEvent.RETRY):
                self._session.error_message = None
                return True
            return False

    def _transition(self, event: WizardEvent) -> bool:
        target = TRANSITIONS.get((self._session.step, event))
        if target is None:
            return False
        logger.debug(f"Wizard {self.wizard_id[:8]} {self._session.step.value} -{event.value}-> {target.value}")
        self._session.step = target
        return True

    def _editable(self, step: WizardStep) -> bool:
        session = self._session
        # An order may already exist under the key
        return (
            not session.closed
            and session.step is step
            and not session.submission_in_flight
            and not session.key_committed
        )

    # =====================================================================
    # SUBMISSION
    # =====================================================================

    def submit(self) -> Optional[SubmissionResult]:
        """
        Create the order and the checkout session.

        Blocks for at most ``submission_timeout`` seconds.

        Returns:
            The attempt's SubmissionResult, or None when the submit was not
            accepted (wrong step, already in flight, guards no longer hold).
        """
        with self._lock:
            session = self._session
            if session.closed or session.step is not WizardStep.PAYMENT:
                return None
            if session.submission_in_flight:
                logger.warning(f"Wizard {self.wizard_id[:8]} ignored submit: already in flight")
                return None

            # Re-check both earlier guards now, not from cached navigation
            if not self._config_guard() or session.shipping.missing_fields():
                session.error_message = "Please review your print options and shipping details."
                return None

            try:
                price = self.quote()
            except PricingError as e:
                logger.error(f"Wizard {self.wizard_id[:8]} cannot price order: {e}")
                session.error_message = "This product is not available right now."
                return None

            session.submission_in_flight = True
            session.error_message = None
            session.attempts += 1
            attempt = _Attempt(session.attempts)
            key = session.idempotency_key

            order = Order(
                user_id=self.user_id,
                image_id=self.image_id,
                image_url=self.image_url,
                shipping=session.shipping.copy(),
                config=session.config,
                price=price,
                discount_applied=price.has_discount,
                idempotency_key=key,
            )

        logger.info(
            f"Wizard {self.wizard_id[:8]} submitting attempt {attempt.number} "
            f"with key {key[:8]} (timeout={self.submission_timeout}s)"
        )

        worker = threading.Thread(
            target=self._submission_main,
            args=(attempt, order),
            name=f"Submit-{key[:8]}",
            daemon=True,
        )
        worker.start()

        attempt.settled.wait(self.submission_timeout)

        with self._lock:
            if attempt.result is None:
                # Safety timer won the race
                attempt.abandoned = True
                timeout_error = SubmissionTimeoutError(self.submission_timeout, key)
                logger.warning(f"Wizard {self.wizard_id[:8]} attempt {attempt.number}: {timeout_error}")
                result = SubmissionResult.create_timed_out(
                    attempt.number, key, timeout_error.user_message
                )
            else:
                result = attempt.result
            self._settle(result)
            completed = self._session.step is WizardStep.SUCCESS

        if completed and self._on_complete is not None:
            self._on_complete(self)
        return result

    def _submission_main(self, attempt: _Attempt, order: Order) -> None:
        """Worker thread: persist the order, then open a checkout session."""
        key = order.idempotency_key
        set_thread_name(f"Submit-{key[:8]}")
        order_logger = get_order_logger(key)

        saved: Optional[Order] = None
        try:
            saved = self._order_store.create(order)
            order_logger.info(f"Order {saved.id[:8]} persisted (status={saved.status.value})")

            checkout_url = self._gateway.create_session("payment", saved.id, key)

            if checkout_url == SIMULATION:
                order_logger.info("Checkout backend unavailable - simulated success")
                result = SubmissionResult.create_simulated(attempt.number, key, saved)
            else:
                order_logger.info("Checkout session ready, handing off to payment page")
                result = SubmissionResult.create_redirect(attempt.number, key, saved, checkout_url)

        except VisionPrintError as e:
            order_logger.error(f"Submission failed: {e}")
            result = SubmissionResult.create_failed(attempt.number, key, e.user_message, order=saved)

        except Exception as e:
            order_logger.error(f"Unexpected submission failure: {e}", exc_info=True)
            result = SubmissionResult.create_failed(
                attempt.number, key, GENERIC_FAILURE_MESSAGE, order=saved
            )

        with self._lock:
            if attempt.abandoned:
                order_logger.warning(
                    f"Attempt {attempt.number} settled as {result.status.value} after the "
                    "safety timeout; ignoring"
                )
                return
            attempt.result = result
            attempt.settled.set()

    def _settle(self, result: SubmissionResult) -> None:
        """Apply an attempt's result to the session. Caller holds the lock."""
        session = self._session
        session.submission_in_flight = False
        session.last_result = result

        if result.order is not None:
            session.order = result.order
            session.key_committed = True

        if result.status.is_success:
            session.checkout_url = result.checkout_url
            session.simulated = result.status is SubmissionStatus.SIMULATED
            self._transition(WizardEvent.SUBMIT_SUCCEEDED)
            logger.info(f"Wizard {self.wizard_id[:8]} completed ({result.status.value})")
        elif result.status is SubmissionStatus.TIMED_OUT:
            # Stay on PAYMENT so the user can retry with the same key
            # The abandoned worker may still persist an order under it
            session.key_committed = True
            session.error_message = result.error_message
        else:
            session.error_message = result.error_message
            self._transition(WizardEvent.SUBMIT_FAILED)

    # =====================================================================
    # LIFECYCLE
    # =====================================================================

    def close(self) -> None:
        """
        Discard the session.

        Pending validation timers are cancelled. A submission already
        dispatched is NOT cancelled; the external payment flow it started is
        the source of truth.
        """
        with self._lock:
            if self._session.closed:
                return
            self._session.closed = True
            if self._validation_timer is not None:
                self._validation_timer.cancel()
                self._validation_timer = None
        logger.info(f"Wizard {self.wizard_id[:8]} closed at step {self._session.step.value}")

    def snapshot(self) -> Dict[str, Any]:
        """JSON-ready view of the session for the API layer."""
        with self._lock:
            session = self._session
            try:
                price = self.quote().to_dict()
                price_error = None
            except PricingError as e:
                logger.error(f"Wizard {self.wizard_id[:8]} refusing to show a price: {e}")
                price, price_error = None, "Price unavailable for this product."

            return {
                "wizardId": self.wizard_id,
                "userId": self.user_id,
                "imageId": self.image_id,
                "imageUrl": self.image_url,
                "step": session.step.value,
                "config": session.config.to_dict(),
                "productLabel": product_label(session.config),
                "shipping": session.shipping.to_dict(),
                "missingShippingFields": session.shipping.missing_fields(),
                "validation": session.validation.to_dict() if session.validation else None,
                "validationInFlight": session.validation_in_flight,
                "canAdvance": self._config_guard(),
                "price": price,
                "priceError": price_error,
                "discountEligible": self.discount_eligible,
                "eligibility": self.eligibility_outcome.to_dict(),
                "prefill": self.prefill_outcome.to_dict(),
                "submissionInFlight": session.submission_in_flight,
                "idempotencyKey": session.idempotency_key,
                "attempts": session.attempts,
                "errorMessage": session.error_message,
                "order": session.order.to_dict() if session.order else None,
                "checkoutUrl": session.checkout_url,
                "simulated": session.simulated,
                "closed": session.closed,
            }
