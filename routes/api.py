"""
Service routes.

Handles:
- /health - Health check endpoint
"""

from flask import Blueprint, current_app

from core.exceptions import VisionPrintError
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

api_bp = Blueprint("api", __name__)


@api_bp.route("/health", methods=["GET"])
def health():
    """Health check endpoint with service status."""
    health_status = {
        "status": "ok",
        "environment": current_app.config.get("ENVIRONMENT", "unknown"),
        "checks": {}
    }

    # Check order store
    order_store = current_app.config.get("ORDER_STORE")
    if order_store is None:
        health_status["checks"]["order_store"] = "not_available"
        health_status["status"] = "degraded"
    else:
        try:
            order_store.count_orders("__health__")
            health_status["checks"]["order_store"] = "ok"
        except VisionPrintError as e:
            logger.error(f"Health check: order store failing: {e}")
            health_status["checks"]["order_store"] = "error"
            health_status["status"] = "degraded"

    # Checkout backend (simulation is degraded mode, not a failure)
    gateway = current_app.config.get("CHECKOUT_GATEWAY")
    if gateway is None:
        health_status["checks"]["checkout"] = "not_available"
        health_status["status"] = "degraded"
    else:
        health_status["checks"]["checkout"] = "simulation" if gateway.is_simulation else "configured"

    # Wizard registry
    wizard_service = current_app.config.get("WIZARD_SERVICE")
    if wizard_service:
        health_status["checks"]["open_wizards"] = wizard_service.open_count
    else:
        health_status["checks"]["open_wizards"] = "not_available"
        health_status["status"] = "degraded"

    status_code = 200 if health_status["status"] == "ok" else 503
    return health_status, status_code
