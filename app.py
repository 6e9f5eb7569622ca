"""
Vision Print Orders - Flask Application Entry Point.

This is a slim app factory that:
1. Loads configuration (.env via python-dotenv, then a Config class)
2. Opens the order store (SQLAlchemy, or in-memory when DATABASE_URL is empty)
3. Builds the shared services (pricing, image quality, checkout gateway)
4. Creates the wizard registry
5. Registers route blueprints and JSON error handlers

ARCHITECTURE:
    Main Thread
    ├── Flask request handling
    └── Cleanup on shutdown (close open wizards)

    Validation Timer Threads (debounced, one per config change)
    └── Stale results dropped by generation counter

    Submission Threads (one per submit attempt)
    └── Raced against the wizard's safety timeout

Shared services are stateless or lock-guarded; every wizard owns its own
session state.
"""

from __future__ import annotations

import atexit
import logging
import os

from dotenv import load_dotenv
from flask import Flask

from logging_config import setup_logging, get_logger
from core.checkout_gateway import CheckoutGateway
from core.exceptions import VisionPrintError, WizardNotFoundError
from modules.image_metrics import HttpImageMetricsClient, StaticImageMetricsClient
from modules.image_quality import ImageQualityValidator
from modules.pricing import PricingEngine
from modules.rate_table import get_rate_table
from services.order_store import create_order_store
from services.profile_service import ProfileService
from services.wizard_service import WizardService
from routes import register_blueprints


# Module logger (configured after setup_logging)
logger = get_logger(__name__)


def create_app(config_object: str = "config.Config") -> Flask:
    """
    Application factory - creates and configures Flask app.

    Args:
        config_object: Import path of the Config class to load

    Returns:
        Configured Flask application

    Raises:
        OrderStoreError: If the database cannot be opened
    """
    # .env always takes precedence over the shell environment
    load_dotenv(override=True)

    # Create Flask app
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Configure logging
    log_level = logging.DEBUG if app.config.get("DEBUG") else logging.INFO
    enable_file_logging = app.config.get("ENVIRONMENT") == "production"

    root_logger = setup_logging(
        log_level=log_level,
        enable_file_logging=enable_file_logging
    )

    # Set Flask's logger to use our configured logger
    app.logger.handlers = root_logger.handlers
    app.logger.setLevel(log_level)

    logger.info(f"Starting Vision Print Orders in {app.config.get('ENVIRONMENT')} mode")

    # =========================================================================
    # CORE INITIALIZATION
    # =========================================================================

    order_store = create_order_store(app.config.get("DATABASE_URL", ""))
    app.config["ORDER_STORE"] = order_store

    checkout_gateway = CheckoutGateway(
        base_url=app.config.get("CHECKOUT_BACKEND_URL", ""),
        timeout_seconds=app.config.get("CHECKOUT_REQUEST_TIMEOUT", 10.0),
        success_url=app.config.get("CHECKOUT_SUCCESS_URL", ""),
        cancel_url=app.config.get("CHECKOUT_CANCEL_URL", ""),
        logger=get_logger("core.checkout_gateway"),
    )
    app.config["CHECKOUT_GATEWAY"] = checkout_gateway

    # =========================================================================
    # HELPER MODULES
    # =========================================================================

    pricing_engine = PricingEngine(get_rate_table(app.config))
    app.config["PRICING_ENGINE"] = pricing_engine

    validator = ImageQualityValidator(dpi=app.config.get("PRINT_DPI", 300))
    app.config["IMAGE_VALIDATOR"] = validator

    metrics_url = app.config.get("IMAGE_METRICS_URL", "")
    if metrics_url:
        image_metrics = HttpImageMetricsClient(metrics_url)
    else:
        # Callers must then pass widthPx/heightPx when opening a wizard
        image_metrics = StaticImageMetricsClient()
    app.config["IMAGE_METRICS"] = image_metrics

    # =========================================================================
    # SERVICES INITIALIZATION
    # =========================================================================

    wizard_service = WizardService(
        pricing_engine=pricing_engine,
        validator=validator,
        order_store=order_store,
        checkout_gateway=checkout_gateway,
        profile_service=ProfileService(order_store),
        image_metrics=image_metrics,
        submission_timeout=app.config.get("SUBMISSION_TIMEOUT_SECONDS", 15.0),
        validation_debounce=app.config.get("VALIDATION_DEBOUNCE_SECONDS", 0.0),
        idle_ttl=app.config.get("WIZARD_IDLE_TTL_SECONDS", 3600.0),
    )
    app.config["WIZARD_SERVICE"] = wizard_service

    # =========================================================================
    # CLEANUP REGISTRATION
    # =========================================================================

    def cleanup():
        """Cleanup on application shutdown."""
        logger.info("Shutting down...")
        wizard_service.shutdown()
        logger.info("Shutdown complete")

    atexit.register(cleanup)

    # =========================================================================
    # REGISTER BLUEPRINTS
    # =========================================================================

    register_blueprints(app)

    # =========================================================================
    # ERROR HANDLERS
    # =========================================================================

    @app.errorhandler(WizardNotFoundError)
    def handle_wizard_not_found(e):
        return {"error": e.message}, 404

    @app.errorhandler(VisionPrintError)
    def handle_vision_print_error(e):
        logger.error(f"Unhandled application error: {e}")
        return {"error": e.user_message}, 500

    @app.errorhandler(404)
    def handle_not_found(e):
        return {"error": "Not found"}, 404

    @app.errorhandler(405)
    def handle_method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(500)
    def handle_server_error(e):
        logger.error(f"500 error: {e}", exc_info=True)
        return {"error": "An unexpected error occurred. Please try again."}, 500

    logger.info("Application initialized successfully")
    return app


if __name__ == "__main__":
    app = create_app()
    debug_mode = os.environ.get("FLASK_DEBUG", "1") == "1"
    app.run(debug=debug_mode)
