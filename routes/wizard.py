"""
Print wizard routes.

JSON endpoints driving one OrderWizard per client session:
- POST   /api/wizards                 - Open a wizard for an image
- GET    /api/wizards/<id>            - Current state snapshot
- PATCH  /api/wizards/<id>/config     - Change product / size / finish / qty
- PUT    /api/wizards/<id>/shipping   - Edit shipping address fields
- POST   /api/wizards/<id>/next       - Advance (no-op if the guard fails)
- POST   /api/wizards/<id>/back       - Go back one step
- POST   /api/wizards/<id>/submit     - Create order + checkout session
- POST   /api/wizards/<id>/retry      - Failed -> payment, data kept
- DELETE /api/wizards/<id>            - Close the wizard

WizardNotFoundError is turned into a 404 by the app-level error handler.
"""

import bleach
from flask import Blueprint, current_app, request

from models.product import ProductConfig
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

wizard_bp = Blueprint("wizard", __name__, url_prefix="/api/wizards")

# Constants
MAX_FIELD_LENGTH = 200
MAX_ID_LENGTH = 128

# JSON field -> ShippingAddress attribute
SHIPPING_FIELDS = {
    "name": "name",
    "line1": "line1",
    "line2": "line2",
    "city": "city",
    "state": "state",
    "postalCode": "postal_code",
    "country": "country",
}


def _sanitize_text(text, max_length: int = None) -> str:
    """Sanitize user input text."""
    if not text:
        return ""
    text = str(text).strip()
    text = bleach.clean(text, tags=[], strip=True)
    if max_length and len(text) > max_length:
        text = text[:max_length]
    return text


def _wizard_service():
    return current_app.config["WIZARD_SERVICE"]


def _error(message: str, status_code: int = 400):
    return {"error": message}, status_code


def _moved(wizard, moved: bool):
    return {"moved": moved, "wizard": wizard.snapshot()}


@wizard_bp.route("", methods=["POST"])
def open_wizard():
    """
    Open a wizard.

    Body: {userId, imageId, imageUrl, widthPx?, heightPx?, config?}
    """
    data = request.get_json(silent=True) or {}

    user_id = _sanitize_text(data.get("userId"), MAX_ID_LENGTH)
    image_id = _sanitize_text(data.get("imageId"), MAX_ID_LENGTH)
    image_url = (data.get("imageUrl") or "").strip()

    if not user_id or not image_id or not image_url:
        return _error("userId, imageId and imageUrl are required")

    dimensions = None
    if data.get("widthPx") is not None or data.get("heightPx") is not None:
        try:
            dimensions = (int(data.get("widthPx")), int(data.get("heightPx")))
        except (TypeError, ValueError):
            return _error("widthPx and heightPx must both be integers")

    initial_config = None
    if data.get("config"):
        try:
            initial_config = ProductConfig.from_dict(data["config"])
        except (TypeError, ValueError) as e:
            return _error(str(e))

    try:
        wizard = _wizard_service().open_wizard(
            user_id, image_id, image_url,
            image_dimensions=dimensions,
            initial_config=initial_config,
        )
    except ValueError as e:
        return _error(str(e))

    return wizard.snapshot(), 201


@wizard_bp.route("/<wizard_id>", methods=["GET"])
def get_wizard(wizard_id: str):
    wizard = _wizard_service().get_wizard(wizard_id)
    return wizard.snapshot()


@wizard_bp.route("/<wizard_id>/config", methods=["PATCH"])
def update_config(wizard_id: str):
    """
    Change product selections.

    Body: any of {productType, size, finish, quantity}. Responds 409 when the
    wizard is not on the configuration step.
    """
    wizard = _wizard_service().get_wizard(wizard_id)
    data = request.get_json(silent=True) or {}

    try:
        updated = wizard.update_config(
            product_type=data.get("productType"),
            size=data.get("size"),
            finish=data.get("finish"),
            quantity=data.get("quantity"),
        )
    except (TypeError, ValueError) as e:
        return _error(str(e))

    if not updated:
        return {"error": "Configuration can only be changed on the first step", "wizard": wizard.snapshot()}, 409
    return wizard.snapshot()


@wizard_bp.route("/<wizard_id>/shipping", methods=["PUT"])
def update_shipping(wizard_id: str):
    """Edit shipping fields. Unknown keys are rejected, values are sanitized."""
    wizard = _wizard_service().get_wizard(wizard_id)
    data = request.get_json(silent=True) or {}

    unknown = sorted(set(data) - set(SHIPPING_FIELDS))
    if unknown:
        return _error(f"Unknown shipping fields: {', '.join(unknown)}")

    fields = {
        SHIPPING_FIELDS[key]: _sanitize_text(value, MAX_FIELD_LENGTH)
        for key, value in data.items()
    }

    if not wizard.update_shipping(**fields):
        return {"error": "Shipping can only be changed on the shipping step", "wizard": wizard.snapshot()}, 409
    return wizard.snapshot()


@wizard_bp.route("/<wizard_id>/next", methods=["POST"])
def next_step(wizard_id: str):
    wizard = _wizard_service().get_wizard(wizard_id)
    return _moved(wizard, wizard.next())


@wizard_bp.route("/<wizard_id>/back", methods=["POST"])
def previous_step(wizard_id: str):
    wizard = _wizard_service().get_wizard(wizard_id)
    return _moved(wizard, wizard.back())


@wizard_bp.route("/<wizard_id>/retry", methods=["POST"])
def retry(wizard_id: str):
    wizard = _wizard_service().get_wizard(wizard_id)
    return _moved(wizard, wizard.retry())


@wizard_bp.route("/<wizard_id>/submit", methods=["POST"])
def submit(wizard_id: str):
    """
    Submit the order.

    Blocks until the attempt settles or the safety timer fires. Responds 409
    when the submit was not accepted (wrong step or already in flight).
    """
    wizard = _wizard_service().get_wizard(wizard_id)
    result = wizard.submit()

    if result is None:
        message = wizard.error_message or "Order cannot be submitted right now"
        return {"error": message, "wizard": wizard.snapshot()}, 409

    logger.info(f"Wizard {wizard_id[:8]} submit -> {result.status.value}")
    return {"result": result.to_dict(), "wizard": wizard.snapshot()}


@wizard_bp.route("/<wizard_id>", methods=["DELETE"])
def close_wizard(wizard_id: str):
    _wizard_service().close_wizard(wizard_id)
    return "", 204
