"""
Registry of open print wizards.

The HTTP layer is stateless; each open wizard lives here, keyed by its id,
until the client closes it or its submit succeeds. Wizards left idle longer
than ``idle_ttl`` seconds are swept when the next one opens.

Every wizard gets the same shared collaborators (pricing engine, validator,
order store, checkout gateway) but its own session state - wizards never
see each other's data.

Thread Safety:
    - One threading.Lock guards the registry dict
    - Each OrderWizard guards its own session with its own lock, so a slow
      submit() on one wizard never blocks requests for another

Usage:
    # At app startup
    wizard_service = WizardService(
        pricing_engine=engine,
        validator=validator,
        order_store=store,
        checkout_gateway=gateway,
        profile_service=profiles,
        image_metrics=metrics,
    )

    # Per request
    wizard = wizard_service.open_wizard(user_id, image_id, image_url)
    wizard = wizard_service.get_wizard(wizard_id)
    wizard_service.close_wizard(wizard_id)

    # At app shutdown
    wizard_service.shutdown()
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Dict, Optional, Tuple

from core.checkout_gateway import CheckoutGateway
from core.exceptions import WizardNotFoundError
from models.product import ProductConfig
from modules.image_quality import ImageQualityValidator
from modules.pricing import PricingEngine
from services.order_store import OrderStore
from services.order_wizard import DEFAULT_SUBMISSION_TIMEOUT, OrderWizard
from services.profile_service import ProfileService
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

DEFAULT_IDLE_TTL = 3600.0


class WizardService:
    """Opens, looks up and closes OrderWizard sessions."""

    def __init__(
        self,
        pricing_engine: PricingEngine,
        validator: ImageQualityValidator,
        order_store: OrderStore,
        checkout_gateway: CheckoutGateway,
        profile_service: Optional[ProfileService] = None,
        image_metrics=None,
        submission_timeout: float = DEFAULT_SUBMISSION_TIMEOUT,
        validation_debounce: float = 0.0,
        idle_ttl: float = DEFAULT_IDLE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._pricing_engine = pricing_engine
        self._validator = validator
        self._order_store = order_store
        self._checkout_gateway = checkout_gateway
        self._profile_service = profile_service or ProfileService(order_store)
        self._image_metrics = image_metrics
        self.submission_timeout = submission_timeout
        self.validation_debounce = validation_debounce
        self.idle_ttl = idle_ttl
        self._clock = clock

        self._wizards: Dict[str, OrderWizard] = {}
        self._last_seen: Dict[str, float] = {}
        self._lock = threading.Lock()

        logger.info(
            f"WizardService initialized (submission_timeout={submission_timeout}s, "
            f"debounce={validation_debounce}s, idle_ttl={idle_ttl}s)"
        )

    def open_wizard(
        self,
        user_id: str,
        image_id: str,
        image_url: str,
        image_dimensions: Optional[Tuple[int, int]] = None,
        initial_config: Optional[ProductConfig] = None,
    ) -> OrderWizard:
        """
        Start a fresh wizard session.

        Args:
            user_id: Owner of the order
            image_id: Vision board image being printed
            image_url: Where the image can be fetched
            image_dimensions: (width_px, height_px) when the caller already
                knows them; otherwise the metrics client is asked
            initial_config: Starting selections (defaults to an 18x24 poster)

        Raises:
            ValueError: No dimensions given and no metrics client configured
        """
        self.sweep_idle()

        wizard = OrderWizard(
            user_id=user_id,
            image_id=image_id,
            image_url=image_url,
            pricing_engine=self._pricing_engine,
            validator=self._validator,
            order_store=self._order_store,
            checkout_gateway=self._checkout_gateway,
            profile_service=self._profile_service,
            image_metrics=self._image_metrics,
            image_dimensions=image_dimensions,
            initial_config=initial_config,
            submission_timeout=self.submission_timeout,
            validation_debounce=self.validation_debounce,
            on_complete=self._on_wizard_complete,
        )
        with self._lock:
            self._wizards[wizard.wizard_id] = wizard
            self._last_seen[wizard.wizard_id] = self._clock()
        return wizard

    def get_wizard(self, wizard_id: str) -> OrderWizard:
        """
        Look up an open wizard and mark it as recently used.

        Raises:
            WizardNotFoundError: Unknown, closed, completed or expired wizard
        """
        with self._lock:
            wizard = self._wizards.get(wizard_id)
            if wizard is not None:
                self._last_seen[wizard_id] = self._clock()
        if wizard is None:
            raise WizardNotFoundError(wizard_id)
        return wizard

    def close_wizard(self, wizard_id: str) -> None:
        """
        Close and forget a wizard.

        Raises:
            WizardNotFoundError: Unknown or already closed wizard
        """
        wizard = self._forget(wizard_id)
        if wizard is None:
            raise WizardNotFoundError(wizard_id)
        wizard.close()

    def sweep_idle(self) -> int:
        """
        Close wizards nobody has touched for ``idle_ttl`` seconds.

        A wizard with a submission in flight is left alone until it settles.

        Returns:
            Number of wizards closed
        """
        if not self.idle_ttl or self.idle_ttl <= 0:
            return 0

        cutoff = self._clock() - self.idle_ttl
        with self._lock:
            expired = [
                wizard_id for wizard_id, seen in self._last_seen.items()
                if seen < cutoff and not self._wizards[wizard_id].submission_in_flight
            ]
            wizards = [self._wizards.pop(wizard_id) for wizard_id in expired]
            for wizard_id in expired:
                del self._last_seen[wizard_id]

        for wizard in wizards:
            logger.info(f"Wizard {wizard.wizard_id[:8]} idle for over {self.idle_ttl}s, closing")
            wizard.close()
        return len(wizards)

    @property
    def open_count(self) -> int:
        with self._lock:
            return len(self._wizards)

    def shutdown(self) -> None:
        """Close every open wizard."""
        with self._lock:
            wizards = list(self._wizards.values())
            self._wizards.clear()
            self._last_seen.clear()

        logger.info(f"Shutting down WizardService ({len(wizards)} open wizards)")
        for wizard in wizards:
            wizard.close()

    def _on_wizard_complete(self, wizard: OrderWizard) -> None:
        # The caller still holds the wizard for its final snapshot
        if self._forget(wizard.wizard_id) is not None:
            logger.info(f"Wizard {wizard.wizard_id[:8]} completed, removed from registry")
            wizard.close()

    def _forget(self, wizard_id: str) -> Optional[OrderWizard]:
        with self._lock:
            self._last_seen.pop(wizard_id, None)
            return self._wizards.pop(wizard_id, None)
