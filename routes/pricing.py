"""
Pricing and image check routes.

Read-only helpers for the product picker:
- /api/pricing/quote  - Price one configuration
- /api/pricing/sizes  - Single-unit price for every size of a product type
- /api/pricing/rates  - The active rate table
- /api/images/check   - Quality verdict for known pixel dimensions
"""

from flask import Blueprint, current_app, request

from core.exceptions import ConfigurationError


pricing_bp = Blueprint("pricing", __name__)


def _flag(name: str) -> bool:
    return request.args.get(name, "").strip().lower() in ("1", "true", "yes")


@pricing_bp.route("/api/pricing/quote", methods=["GET"])
def quote():
    """
    Live quote.

    Query: productType, size, finish?, quantity?, discount? (true/false)
    Unknown products or sizes are a 400 here: this endpoint takes raw user
    input, unlike the wizard, which only ever prices catalogue entries.
    """
    engine = current_app.config["PRICING_ENGINE"]

    try:
        quantity = int(request.args.get("quantity", "1"))
    except ValueError:
        return {"error": "quantity must be an integer"}, 400

    try:
        breakdown = engine.price(
            size=request.args.get("size", ""),
            finish=request.args.get("finish") or None,
            product_type=request.args.get("productType", ""),
            quantity=quantity,
            discount_eligible=_flag("discount"),
        )
    except ConfigurationError as e:
        return {"error": e.message}, 400

    return breakdown.to_dict()


@pricing_bp.route("/api/pricing/sizes", methods=["GET"])
def sizes():
    engine = current_app.config["PRICING_ENGINE"]
    try:
        quotes = engine.quote_all_sizes(
            request.args.get("productType", ""),
            request.args.get("finish") or None,
            _flag("discount"),
        )
    except ConfigurationError as e:
        return {"error": e.message}, 400

    return {"sizes": {size: breakdown.to_dict() for size, breakdown in quotes.items()}}


@pricing_bp.route("/api/pricing/rates", methods=["GET"])
def rates():
    return current_app.config["PRICING_ENGINE"].rate_table.to_dict()


@pricing_bp.route("/api/images/check", methods=["GET"])
def check_image():
    """Query: widthPx, heightPx, size, productType"""
    validator = current_app.config["IMAGE_VALIDATOR"]

    try:
        width = int(request.args.get("widthPx", ""))
        height = int(request.args.get("heightPx", ""))
    except ValueError:
        return {"error": "widthPx and heightPx must be integers"}, 400

    try:
        result = validator.validate(
            width, height,
            request.args.get("size", ""),
            request.args.get("productType", "poster"),
        )
    except ConfigurationError as e:
        return {"error": e.message}, 400

    return result.to_dict()
