"""
Configuration for Vision Print Orders.

Checkout backend is OPTIONAL - when CHECKOUT_BACKEND_URL is empty the
checkout gateway runs in simulation mode and the wizard completes locally.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env early so the Config class below sees the values
load_dotenv(override=True)

# Base directory (where this file lives)
BASE_DIR = Path(__file__).resolve().parent


class Config:
    """Default configuration for the Flask application."""

    # Flask settings
    ENVIRONMENT = os.environ.get("FLASK_ENV", "development")
    DEBUG = os.environ.get("FLASK_DEBUG", "1") == "1"

    # Persistence
    # SQLAlchemy URL for the orders table. Empty string selects the
    # in-memory store (demo / offline use).
    DATABASE_URL = os.environ.get(
        "DATABASE_URL", f"sqlite:///{BASE_DIR / 'vision_print.db'}"
    )

    # ==========================================================================
    # Checkout backend
    # ==========================================================================
    # POST {CHECKOUT_BACKEND_URL}/checkout-session -> {"url": ...}
    # Leave empty to run in SIMULATION mode.
    CHECKOUT_BACKEND_URL = os.environ.get("CHECKOUT_BACKEND_URL", "")
    CHECKOUT_REQUEST_TIMEOUT = float(
        os.environ.get("CHECKOUT_REQUEST_TIMEOUT", "10")
    )
    CHECKOUT_SUCCESS_URL = os.environ.get(
        "CHECKOUT_SUCCESS_URL", "http://localhost:5000/?session_id={CHECKOUT_SESSION_ID}"
    )
    CHECKOUT_CANCEL_URL = os.environ.get("CHECKOUT_CANCEL_URL", "http://localhost:5000/")

    # Image metrics collaborator: GET {IMAGE_METRICS_URL}?url=... -> {widthPx, heightPx}
    IMAGE_METRICS_URL = os.environ.get("IMAGE_METRICS_URL", "")

    # ==========================================================================
    # Wizard timing
    # ==========================================================================
    # Safety timer raced against order creation + checkout session.
    SUBMISSION_TIMEOUT_SECONDS = float(
        os.environ.get("SUBMISSION_TIMEOUT_SECONDS", "15")
    )
    # Quiet period before a configuration change triggers re-validation.
    VALIDATION_DEBOUNCE_SECONDS = float(
        os.environ.get("VALIDATION_DEBOUNCE_SECONDS", "0.3")
    )
    # Open wizards untouched for this long are closed. 0 disables the sweep.
    WIZARD_IDLE_TTL_SECONDS = float(
        os.environ.get("WIZARD_IDLE_TTL_SECONDS", "3600")
    )

    # ==========================================================================
    # Pricing & print quality policy
    # ==========================================================================
    # Money is in minor currency units (cents).
    # Formula: total = (base + gloss) * qty - discount + shipping
    # ==========================================================================
    GLOSS_SURCHARGE_CENTS = int(os.environ.get("GLOSS_SURCHARGE_CENTS", "500"))
    DISCOUNT_RATE = os.environ.get("DISCOUNT_RATE", "0.30")
    SHIPPING_COST_CENTS = int(os.environ.get("SHIPPING_COST_CENTS", "0"))

    PRINT_DPI = int(os.environ.get("PRINT_DPI", "300"))


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    TESTING = False


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    TESTING = False


class TestingConfig(Config):
    """Testing configuration."""
    DEBUG = False
    TESTING = True
    DATABASE_URL = "sqlite://"
    CHECKOUT_BACKEND_URL = ""
    IMAGE_METRICS_URL = ""
    VALIDATION_DEBOUNCE_SECONDS = 0.0
    SUBMISSION_TIMEOUT_SECONDS = 2.0
