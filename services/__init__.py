"""
Services layer for Vision Print Orders.

This module contains the business logic services:
- OrderStore: Order persistence (in-memory or SQLAlchemy)
- ProfileService: Discount eligibility and shipping prefill lookups
- OrderWizard: Per-order state machine (config -> shipping -> payment)
- WizardService: Registry of open wizards

Thread Model:
    Main Thread (Flask request)
    ├── Validation timer threads (one per debounced config change)
    └── Submission threads (one per submit attempt)

Each wizard owns its own session state; the services it talks to are shared
and thread-safe.
"""

from .order_store import (
    InMemoryOrderStore,
    OrderStore,
    SqlAlchemyOrderStore,
    create_order_store,
)
from .profile_service import ProfileService
from .order_wizard import OrderWizard, WizardStep
from .wizard_service import WizardService

__all__ = [
    "OrderStore",
    "InMemoryOrderStore",
    "SqlAlchemyOrderStore",
    "create_order_store",
    "ProfileService",
    "OrderWizard",
    "WizardStep",
    "WizardService",
]
