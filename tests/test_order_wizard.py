"""
Unit tests for the OrderWizard state machine and the WizardService registry.

Threads are real (validation timers, submission workers); anything slow is a
gateway MagicMock whose side effect blocks on a threading.Event the test
controls.
"""

import random
import threading
import uuid
from unittest.mock import MagicMock, patch

import pytest
import requests

from core.checkout_gateway import SIMULATION, CheckoutGateway
from core.exceptions import (
    CheckoutGatewayError,
    OrderStoreError,
    PricingError,
    WizardNotFoundError,
)
from models.order import Order, ShippingAddress
from models.outcome import PartialFailure
from models.pricing import PriceBreakdown
from models.product import Finish, PrintSize, ProductConfig, ProductType
from models.submission import SubmissionStatus
from modules.image_metrics import StaticImageMetricsClient
from modules.image_quality import ImageQualityValidator
from modules.pricing import PricingEngine
from modules.rate_table import RateEntry, RateTable
from services.order_store import InMemoryOrderStore
from services.order_wizard import GENERIC_FAILURE_MESSAGE, OrderWizard, WizardStep
from services.profile_service import ProfileService
from services.wizard_service import WizardService


IMAGE_URL = "https://cdn.example.com/boards/img-1.png"
FULL_RES = (7200, 10800)
TINY = (800, 600)

ADDRESS = {
    "name": "Ada Lovelace",
    "line1": "12 St James's Square",
    "city": "London",
    "state": "LDN",
    "postal_code": "SW1Y 4JH",
    "country": "GB",
}


# Fixtures

@pytest.fixture
def store():
    return InMemoryOrderStore()


@pytest.fixture
def gateway():
    """Gateway mock that succeeds with a redirect URL."""
    mock_gateway = MagicMock(spec=CheckoutGateway)
    mock_gateway.create_session.return_value = "https://pay.example.com/cs_123"
    return mock_gateway


@pytest.fixture
def make_wizard(store):
    """Factory for wizards sharing the test's store; closes them afterwards."""
    created = []

    def factory(**overrides):
        kwargs = {
            "user_id": "user-1",
            "image_id": "img-1",
            "image_url": IMAGE_URL,
            "pricing_engine": PricingEngine(),
            "validator": ImageQualityValidator(),
            "order_store": store,
            "checkout_gateway": CheckoutGateway(base_url=""),
            "profile_service": ProfileService(store),
            "image_dimensions": FULL_RES,
            "submission_timeout": 2.0,
        }
        kwargs.update(overrides)
        wizard = OrderWizard(**kwargs)
        created.append(wizard)
        return wizard

    yield factory

    for wizard in created:
        wizard.close()


@pytest.fixture
def slow_gateway():
    """Gateway whose create_session blocks until ``release`` is set."""
    entered = threading.Event()
    release = threading.Event()

    def create_session(mode, reference, idempotency_key):
        entered.set()
        release.wait(5)
        return "https://pay.example.com/late"

    mock_gateway = MagicMock(spec=CheckoutGateway)
    mock_gateway.create_session.side_effect = create_session
    mock_gateway.entered = entered
    mock_gateway.release = release
    yield mock_gateway
    release.set()


def advance_to_payment(wizard):
    assert wizard.next() is True
    assert wizard.update_shipping(**ADDRESS) is True
    assert wizard.next() is True
    assert wizard.step is WizardStep.PAYMENT


def join_submission_threads(timeout=5.0):
    for thread in threading.enumerate():
        if thread.name.startswith("Submit-") and thread is not threading.current_thread():
            thread.join(timeout)


def previous_order(user_id="user-1", city="Paris"):
    return Order(
        user_id=user_id,
        image_id="img-0",
        image_url=IMAGE_URL,
        shipping=ShippingAddress(**{**ADDRESS, "city": city}),
        config=ProductConfig(),
        price=PriceBreakdown(2400, 0, 0, "GLOBAL-PHO-18X24-MATTE"),
        discount_applied=False,
        idempotency_key=str(uuid.uuid4()),
    )


# Tests for the configuration step

class TestConfigStep:
    """CONFIG -> SHIPPING is gated on a valid, current validation verdict."""

    def test_opens_on_config_with_verdict(self, make_wizard):
        wizard = make_wizard()

        assert wizard.step is WizardStep.CONFIG
        assert wizard.validation is not None
        assert wizard.validation_in_flight is False
        assert wizard.can_advance() is True

    def test_invalid_image_blocks_advance(self, make_wizard):
        wizard = make_wizard(image_dimensions=TINY)

        assert wizard.can_advance() is False
        assert wizard.next() is False
        assert wizard.step is WizardStep.CONFIG
        assert wizard.snapshot()["canAdvance"] is False

    def test_smaller_size_unblocks(self, make_wizard):
        wizard = make_wizard(image_dimensions=(2200, 3300))
        assert wizard.can_advance() is False

        assert wizard.update_config(size="12x18") is True

        assert wizard.validation.size == "12x18"
        assert wizard.next() is True
        assert wizard.step is WizardStep.SHIPPING

    @pytest.mark.parametrize("seed", range(10))
    def test_never_advances_on_invalid_verdict(self, make_wizard, seed):
        rng = random.Random(seed)
        width, height = rng.randint(500, 9000), rng.randint(500, 12000)
        wizard = make_wizard(image_dimensions=(width, height))
        validator = ImageQualityValidator()

        for _ in range(60):
            op = rng.choice(["config", "config", "next", "back"])
            before = wizard.step

            if op == "config":
                wizard.update_config(
                    product_type=rng.choice(["poster", "canvas"]),
                    size=rng.choice(["12x18", "18x24", "24x36"]),
                    finish=rng.choice(["matte", "gloss"]),
                )
            elif op == "next":
                verdict = validator.validate(width, height, wizard.config.size, wizard.config.product_type)
                moved = wizard.next()
                if before is WizardStep.CONFIG:
                    assert moved == verdict.is_valid
            else:
                wizard.back()

            if wizard.step is not WizardStep.CONFIG:
                current = validator.validate(width, height, wizard.config.size, wizard.config.product_type)
                assert current.is_valid

    def test_config_locked_after_leaving_step(self, make_wizard):
        wizard = make_wizard()
        wizard.next()

        assert wizard.update_config(size="12x18") is False
        assert wizard.config.size is PrintSize.MEDIUM

    def test_canvas_keeps_poster_finish_in_reserve(self, make_wizard):
        wizard = make_wizard()
        wizard.update_config(finish="gloss")

        wizard.update_config(product_type="canvas")
        assert wizard.config.finish is None

        wizard.update_config(product_type="poster")
        assert wizard.config.finish is Finish.GLOSS

    def test_unknown_values_raise(self, make_wizard):
        wizard = make_wizard()
        with pytest.raises(ValueError):
            wizard.update_config(size="30x40")
        with pytest.raises(ValueError):
            wizard.update_config(quantity=0)

    def test_quantity_change_does_not_revalidate(self, make_wizard):
        wizard = make_wizard()
        generation = wizard.validation_generation

        wizard.update_config(quantity=3)
        wizard.update_config(size="18x24")

        assert wizard.validation_generation == generation
        assert wizard.config.quantity == 3


# Tests for debounced validation

class TestValidationConcurrency:
    """Latest request wins; stale verdicts are dropped."""

    def test_stale_result_is_discarded(self, make_wizard):
        wizard = make_wizard(validation_debounce=30.0)
        first_generation = wizard.validation_generation
        wizard.update_config(size="12x18")
        latest_generation = wizard.validation_generation

        verdict = ImageQualityValidator().validate(*FULL_RES, "12x18", "poster")

        assert wizard.apply_validation(first_generation, verdict) is False
        assert wizard.validation is None
        assert wizard.can_advance() is False

        assert wizard.apply_validation(latest_generation, verdict) is True
        assert wizard.can_advance() is True

    def test_in_flight_validation_blocks_advance(self, make_wizard):
        wizard = make_wizard(validation_debounce=30.0)

        assert wizard.validation_in_flight is True
        assert wizard.next() is False
        assert wizard.step is WizardStep.CONFIG

    def test_debounced_validation_lands(self, make_wizard):
        wizard = make_wizard(validation_debounce=0.01)
        assert wizard.wait_for_validation(2.0)

        wizard.update_config(size="12x18", product_type="canvas")
        assert wizard.wait_for_validation(2.0)

        assert wizard.validation.size == "12x18"
        assert wizard.validation.product_type == "canvas"
        assert wizard.can_advance() is True

    def test_dimensions_from_metrics_client(self, make_wizard):
        metrics = StaticImageMetricsClient({IMAGE_URL: FULL_RES})
        wizard = make_wizard(image_dimensions=None, image_metrics=metrics)

        assert wizard.validation.image_width_px == 7200
        assert wizard.can_advance() is True

    def test_unreadable_image_is_unacceptable(self, make_wizard):
        wizard = make_wizard(image_dimensions=None, image_metrics=StaticImageMetricsClient())

        assert wizard.validation.is_valid is False
        assert wizard.validation.message.startswith("Unable to verify image dimensions")

    def test_requires_dimensions_or_metrics(self, make_wizard):
        with pytest.raises(ValueError):
            make_wizard(image_dimensions=None, image_metrics=None)


# Tests for the shipping step and navigation

class TestShippingAndNavigation:
    def test_missing_fields_block_payment(self, make_wizard):
        wizard = make_wizard()
        wizard.next()

        assert wizard.next() is False
        assert wizard.step is WizardStep.SHIPPING
        assert "name" in wizard.missing_shipping_fields()

    def test_complete_address_reaches_payment_with_key(self, make_wizard):
        wizard = make_wizard()
        assert wizard.idempotency_key is None

        advance_to_payment(wizard)

        assert uuid.UUID(wizard.idempotency_key)

    def test_key_is_stable_across_back_and_forth(self, make_wizard):
        wizard = make_wizard()
        advance_to_payment(wizard)
        key = wizard.idempotency_key

        assert wizard.back() is True
        assert wizard.back() is True
        assert wizard.step is WizardStep.CONFIG
        assert wizard.next() and wizard.next()

        assert wizard.idempotency_key == key

    def test_back_keeps_data(self, make_wizard):
        wizard = make_wizard()
        wizard.update_config(finish="gloss", quantity=2)
        advance_to_payment(wizard)

        wizard.back()
        wizard.back()

        assert wizard.config.finish is Finish.GLOSS
        assert wizard.config.quantity == 2
        assert wizard.shipping.city == "London"

    def test_back_from_config_is_noop(self, make_wizard):
        wizard = make_wizard()
        assert wizard.back() is False
        assert wizard.step is WizardStep.CONFIG

    def test_shipping_only_editable_on_shipping_step(self, make_wizard):
        wizard = make_wizard()
        assert wizard.update_shipping(name="Ada") is False

    def test_unknown_shipping_field(self, make_wizard):
        wizard = make_wizard()
        wizard.next()
        with pytest.raises(ValueError):
            wizard.update_shipping(planet="Mars")


# Tests for eligibility and prefill

class TestProfileData:
    def test_returning_user_gets_prefill_and_no_discount(self, make_wizard, store):
        store.create(previous_order(city="Paris"))
        wizard = make_wizard()

        assert wizard.shipping.city == "Paris"
        assert wizard.discount_eligible is False
        assert wizard.prefill_outcome.ok

    def test_prefill_never_overwrites_edited_fields(self, make_wizard):
        wizard = make_wizard()
        wizard.next()
        wizard.update_shipping(name="Grace Hopper")

        filled = wizard.prefill_shipping(ShippingAddress(**ADDRESS))

        assert wizard.shipping.name == "Grace Hopper"
        assert wizard.shipping.city == "London"
        assert "name" not in filled
        assert "city" in filled

    def test_profile_failures_are_partial(self, make_wizard):
        failing = MagicMock()
        failing.count_orders.side_effect = OrderStoreError("database is locked")
        failing.get_last_shipping_address.side_effect = OrderStoreError("database is locked")

        wizard = make_wizard(profile_service=ProfileService(failing))

        assert isinstance(wizard.eligibility_outcome, PartialFailure)
        assert isinstance(wizard.prefill_outcome, PartialFailure)
        assert wizard.discount_eligible is False
        assert wizard.snapshot()["eligibility"]["ok"] is False
        assert wizard.step is WizardStep.CONFIG


# Tests for live pricing

class TestWizardPricing:
    def test_first_order_quote(self, make_wizard):
        wizard = make_wizard()
        assert wizard.quote().total == 1680

    def test_quote_follows_config(self, make_wizard):
        wizard = make_wizard()
        wizard.update_config(finish="gloss")

        price = wizard.quote()
        assert price.subtotal == 2900
        assert price.total == 2900 - 870

    def test_size_quotes(self, make_wizard):
        wizard = make_wizard()
        assert set(wizard.size_quotes()) == {"12x18", "18x24", "24x36"}

    def test_missing_price_is_never_zero(self, make_wizard, store):
        table = RateTable(rates={
            (ProductType.POSTER, PrintSize.MEDIUM): RateEntry(2400, "GLOBAL-PHO-18X24"),
        })
        wizard = make_wizard(pricing_engine=PricingEngine(table))
        wizard.update_config(product_type="canvas")

        with pytest.raises(PricingError):
            wizard.quote()

        snapshot = wizard.snapshot()
        assert snapshot["price"] is None
        assert snapshot["priceError"]

        advance_to_payment(wizard)
        assert wizard.submit() is None
        assert wizard.error_message
        assert store.count_orders("user-1") == 0


# Tests for submission

class TestSubmission:
    """PAYMENT -> SUCCESS | FAILED, single flight, safety timeout."""

    def test_simulated_success(self, make_wizard, store):
        wizard = make_wizard()
        advance_to_payment(wizard)

        result = wizard.submit()

        assert result.status is SubmissionStatus.SIMULATED
        assert wizard.step is WizardStep.SUCCESS
        assert wizard.checkout_url is None
        saved = store.get(result.order.id)
        assert saved.idempotency_key == wizard.idempotency_key
        assert saved.price.total == 1680
        assert saved.discount_applied is True
        assert saved.shipping.city == "London"

    def test_unreachable_backend_simulates(self, make_wizard):
        with patch("requests.Session.post", side_effect=requests.ConnectionError("refused")):
            wizard = make_wizard(checkout_gateway=CheckoutGateway(base_url="http://127.0.0.1:9"))
            advance_to_payment(wizard)
            result = wizard.submit()

        assert result.status is SubmissionStatus.SIMULATED
        assert wizard.step is WizardStep.SUCCESS

    def test_redirect(self, make_wizard, gateway):
        wizard = make_wizard(checkout_gateway=gateway)
        advance_to_payment(wizard)

        result = wizard.submit()

        assert result.status is SubmissionStatus.REDIRECT
        assert wizard.checkout_url == "https://pay.example.com/cs_123"
        gateway.create_session.assert_called_once_with(
            "payment", result.order.id, wizard.idempotency_key
        )

    def test_gateway_error_then_retry(self, make_wizard, gateway, store):
        gateway.create_session.side_effect = CheckoutGatewayError("Stripe is down", status_code=500)
        wizard = make_wizard(checkout_gateway=gateway)
        advance_to_payment(wizard)
        key = wizard.idempotency_key

        result = wizard.submit()

        assert result.status is SubmissionStatus.FAILED
        assert result.retryable
        assert wizard.step is WizardStep.FAILED
        assert wizard.error_message == "Stripe is down"

        assert wizard.retry() is True
        assert wizard.step is WizardStep.PAYMENT
        assert wizard.error_message is None
        assert wizard.shipping.city == "London"

        gateway.create_session.side_effect = None
        result = wizard.submit()

        assert result.status is SubmissionStatus.REDIRECT
        assert wizard.step is WizardStep.SUCCESS
        assert [c.args[2] for c in gateway.create_session.call_args_list] == [key, key]
        assert store.count_orders("user-1") == 1

    def test_back_from_failed(self, make_wizard, gateway):
        gateway.create_session.side_effect = CheckoutGatewayError("nope")
        wizard = make_wizard(checkout_gateway=gateway)
        advance_to_payment(wizard)
        wizard.submit()

        assert wizard.back() is True
        assert wizard.step is WizardStep.PAYMENT

    def test_store_failure(self, make_wizard, store):
        wizard = make_wizard()
        advance_to_payment(wizard)

        with patch.object(store, "create", side_effect=OrderStoreError("Failed to persist order")):
            result = wizard.submit()

        assert result.status is SubmissionStatus.FAILED
        assert result.order is None
        assert wizard.error_message == "Failed to persist order"

    def test_unexpected_exception(self, make_wizard, gateway):
        gateway.create_session.side_effect = RuntimeError("socket closed")
        wizard = make_wizard(checkout_gateway=gateway)
        advance_to_payment(wizard)

        result = wizard.submit()

        assert result.status is SubmissionStatus.FAILED
        assert wizard.error_message == GENERIC_FAILURE_MESSAGE
        # Order got persisted before the gateway failed
        assert result.order is not None

    def test_timeout_then_retry_reuses_key(self, make_wizard, slow_gateway, store):
        wizard = make_wizard(checkout_gateway=slow_gateway, submission_timeout=0.2)
        advance_to_payment(wizard)
        key = wizard.idempotency_key

        result = wizard.submit()

        assert result.status is SubmissionStatus.TIMED_OUT
        assert result.retryable
        assert wizard.step is WizardStep.PAYMENT
        assert wizard.submission_in_flight is False
        assert wizard.error_message == "Request timed out. Please try again."

        # Late result is ignored
        slow_gateway.release.set()
        join_submission_threads()
        assert wizard.step is WizardStep.PAYMENT
        assert wizard.last_result.status is SubmissionStatus.TIMED_OUT
        assert wizard.checkout_url is None

        slow_gateway.create_session.side_effect = None
        slow_gateway.create_session.return_value = "https://pay.example.com/ok"
        result = wizard.submit()

        assert result.status is SubmissionStatus.REDIRECT
        assert wizard.checkout_url == "https://pay.example.com/ok"
        assert [c.args[2] for c in slow_gateway.create_session.call_args_list] == [key, key]
        assert store.count_orders("user-1") == 1

    def test_single_flight(self, make_wizard, slow_gateway):
        wizard = make_wizard(checkout_gateway=slow_gateway)
        advance_to_payment(wizard)
        results = []

        submitter = threading.Thread(target=lambda: results.append(wizard.submit()))
        submitter.start()
        assert slow_gateway.entered.wait(2.0)

        assert wizard.submission_in_flight is True
        assert wizard.submit() is None
        assert wizard.back() is False
        assert wizard.next() is False

        slow_gateway.release.set()
        submitter.join(5.0)

        assert results[0].status is SubmissionStatus.REDIRECT
        assert slow_gateway.create_session.call_count == 1

    def test_submit_outside_payment_is_rejected(self, make_wizard, store):
        wizard = make_wizard()

        assert wizard.submit() is None
        assert store.count_orders("user-1") == 0

    def test_data_locked_after_first_attempt(self, make_wizard, gateway):
        gateway.create_session.side_effect = CheckoutGatewayError("nope")
        wizard = make_wizard(checkout_gateway=gateway)
        advance_to_payment(wizard)
        wizard.submit()
        wizard.retry()
        wizard.back()

        assert wizard.step is WizardStep.SHIPPING
        assert wizard.update_shipping(city="Paris") is False

    def test_data_editable_when_nothing_was_persisted(self, make_wizard, store):
        wizard = make_wizard()
        advance_to_payment(wizard)
        key = wizard.idempotency_key

        with patch.object(store, "create", side_effect=OrderStoreError("Failed to persist order")):
            wizard.submit()
        wizard.back()
        wizard.back()

        assert wizard.step is WizardStep.SHIPPING
        assert wizard.update_shipping(city="Paris") is True
        assert wizard.next() is True

        result = wizard.submit()

        assert result.status is SubmissionStatus.SIMULATED
        assert result.order.shipping.city == "Paris"
        assert result.order.idempotency_key == key

    def test_data_locked_after_timeout(self, make_wizard, slow_gateway):
        wizard = make_wizard(checkout_gateway=slow_gateway, submission_timeout=0.2)
        advance_to_payment(wizard)

        result = wizard.submit()
        assert result.status is SubmissionStatus.TIMED_OUT
        assert result.order is None

        wizard.back()
        assert wizard.step is WizardStep.SHIPPING
        assert wizard.update_shipping(city="Paris") is False

    def test_on_complete_runs_only_on_success(self, make_wizard, gateway):
        completed = []
        gateway.create_session.side_effect = CheckoutGatewayError("nope")
        wizard = make_wizard(checkout_gateway=gateway, on_complete=completed.append)
        advance_to_payment(wizard)

        wizard.submit()
        assert completed == []

        wizard.retry()
        gateway.create_session.side_effect = None
        wizard.submit()

        assert completed == [wizard]


# Tests for lifecycle

class TestLifecycle:
    def test_closed_wizard_ignores_navigation(self, make_wizard):
        wizard = make_wizard()
        wizard.close()

        assert wizard.is_closed
        assert wizard.next() is False
        assert wizard.snapshot()["closed"] is True

    def test_close_cancels_pending_validation(self, make_wizard):
        wizard = make_wizard(validation_debounce=30.0)
        wizard.close()

        assert wizard.validation is None

    def test_snapshot_is_json_ready(self, make_wizard):
        snapshot = make_wizard().snapshot()

        assert snapshot["step"] == "config"
        assert snapshot["config"] == {
            "productType": "poster", "size": "18x24", "finish": "matte", "quantity": 1,
        }
        assert snapshot["price"]["total"] == 1680
        assert snapshot["validation"]["qualityLevel"] == "excellent"


class TestWizardService:
    @pytest.fixture
    def service(self, store):
        service = WizardService(
            pricing_engine=PricingEngine(),
            validator=ImageQualityValidator(),
            order_store=store,
            checkout_gateway=CheckoutGateway(base_url=""),
        )
        yield service
        service.shutdown()

    def test_open_get_close(self, service):
        wizard = service.open_wizard("user-1", "img-1", IMAGE_URL, image_dimensions=FULL_RES)

        assert service.get_wizard(wizard.wizard_id) is wizard
        assert service.open_count == 1

        service.close_wizard(wizard.wizard_id)

        assert wizard.is_closed
        with pytest.raises(WizardNotFoundError):
            service.get_wizard(wizard.wizard_id)

    def test_close_unknown(self, service):
        with pytest.raises(WizardNotFoundError):
            service.close_wizard("missing")

    def test_wizards_do_not_share_state(self, service):
        first = service.open_wizard("user-1", "img-1", IMAGE_URL, image_dimensions=FULL_RES)
        second = service.open_wizard("user-2", "img-2", IMAGE_URL, image_dimensions=FULL_RES)

        first.update_config(size="12x18")

        assert second.config.size is PrintSize.MEDIUM

    def test_initial_config(self, service):
        wizard = service.open_wizard(
            "user-1", "img-1", IMAGE_URL,
            image_dimensions=FULL_RES,
            initial_config=ProductConfig(ProductType.CANVAS, PrintSize.LARGE, None, 1),
        )
        assert wizard.quote().sku == "GLOBAL-CAN-24X36"

    def test_shutdown_closes_everything(self, service):
        wizard = service.open_wizard("user-1", "img-1", IMAGE_URL, image_dimensions=FULL_RES)
        service.shutdown()

        assert wizard.is_closed
        assert service.open_count == 0

    def test_completed_wizards_are_removed(self, service):
        wizards = [
            service.open_wizard(f"user-{i}", "img-1", IMAGE_URL, image_dimensions=FULL_RES)
            for i in range(5)
        ]

        for wizard in wizards:
            advance_to_payment(wizard)
            assert wizard.submit().status is SubmissionStatus.SIMULATED

        assert service.open_count == 0
        for wizard in wizards:
            assert wizard.is_closed
            assert wizard.snapshot()["step"] == "success"
            with pytest.raises(WizardNotFoundError):
                service.get_wizard(wizard.wizard_id)

    def test_failed_wizard_stays_open(self, store, gateway):
        gateway.create_session.side_effect = CheckoutGatewayError("nope")
        service = WizardService(
            pricing_engine=PricingEngine(),
            validator=ImageQualityValidator(),
            order_store=store,
            checkout_gateway=gateway,
        )
        wizard = service.open_wizard("user-1", "img-1", IMAGE_URL, image_dimensions=FULL_RES)
        advance_to_payment(wizard)

        wizard.submit()

        assert service.get_wizard(wizard.wizard_id) is wizard
        service.shutdown()


class TestIdleSweep:
    """Wizards nobody touches for idle_ttl seconds are closed."""

    @pytest.fixture
    def clock(self):
        now = [1000.0]
        clock = MagicMock(side_effect=lambda: now[0])
        clock.advance = lambda seconds: now.__setitem__(0, now[0] + seconds)
        return clock

    @pytest.fixture
    def service(self, store, clock):
        service = WizardService(
            pricing_engine=PricingEngine(),
            validator=ImageQualityValidator(),
            order_store=store,
            checkout_gateway=CheckoutGateway(base_url=""),
            idle_ttl=60.0,
            clock=clock,
        )
        yield service
        service.shutdown()

    def open(self, service, user_id="user-1"):
        return service.open_wizard(user_id, "img-1", IMAGE_URL, image_dimensions=FULL_RES)

    def test_idle_wizard_is_swept(self, service, clock):
        stale = self.open(service)
        clock.advance(61)

        assert service.sweep_idle() == 1
        assert stale.is_closed
        with pytest.raises(WizardNotFoundError):
            service.get_wizard(stale.wizard_id)

    def test_lookup_keeps_wizard_alive(self, service, clock):
        wizard = self.open(service)
        clock.advance(45)
        service.get_wizard(wizard.wizard_id)
        clock.advance(45)

        assert service.sweep_idle() == 0
        assert service.open_count == 1

    def test_opening_a_wizard_sweeps(self, service, clock):
        stale = self.open(service)
        clock.advance(120)
        fresh = self.open(service, "user-2")

        assert stale.is_closed
        assert service.open_count == 1
        assert service.get_wizard(fresh.wizard_id) is fresh

    def test_in_flight_submission_is_not_swept(self, store, clock, slow_gateway):
        service = WizardService(
            pricing_engine=PricingEngine(),
            validator=ImageQualityValidator(),
            order_store=store,
            checkout_gateway=slow_gateway,
            idle_ttl=60.0,
            clock=clock,
        )
        wizard = self.open(service)
        advance_to_payment(wizard)

        submitter = threading.Thread(target=wizard.submit)
        submitter.start()
        assert slow_gateway.entered.wait(2.0)
        clock.advance(120)

        assert service.sweep_idle() == 0
        assert not wizard.is_closed

        slow_gateway.release.set()
        submitter.join(5.0)
        service.shutdown()

    def test_zero_ttl_disables_sweep(self, store, clock):
        service = WizardService(
            pricing_engine=PricingEngine(),
            validator=ImageQualityValidator(),
            order_store=store,
            checkout_gateway=CheckoutGateway(base_url=""),
            idle_ttl=0,
            clock=clock,
        )
        self.open(service)
        clock.advance(10_000)

        assert service.sweep_idle() == 0
        service.shutdown()


def test_simulation_sentinel_value():
    assert SIMULATION == "SIMULATION"
