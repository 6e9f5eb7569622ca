"""
Flask route blueprints for Vision Print Orders.

All routes are JSON endpoints, organized by functionality:
- wizard: Print order wizard sessions (config, shipping, submit)
- pricing: Live quotes, rate table and image quality checks
- orders: Order history
- api: Health check

Each blueprint is registered with the Flask app in create_app().
"""

from .wizard import wizard_bp
from .pricing import pricing_bp
from .orders import orders_bp
from .api import api_bp

__all__ = [
    "wizard_bp",
    "pricing_bp",
    "orders_bp",
    "api_bp",
]


def register_blueprints(app):
    """
    Register all blueprints with the Flask app.

    Args:
        app: Flask application instance
    """
    app.register_blueprint(wizard_bp)
    app.register_blueprint(pricing_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(api_bp)
