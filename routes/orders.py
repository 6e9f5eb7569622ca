"""
Order history routes.

- /api/orders?userId=...  - A user's orders, newest first
- /api/orders/<id>        - One order
"""

from flask import Blueprint, current_app, request

from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")

MAX_LIMIT = 200


@orders_bp.route("", methods=["GET"])
def list_orders():
    user_id = (request.args.get("userId") or "").strip()
    if not user_id:
        return {"error": "userId is required"}, 400

    try:
        limit = min(int(request.args.get("limit", "50")), MAX_LIMIT)
    except ValueError:
        return {"error": "limit must be an integer"}, 400
    if limit < 1:
        return {"error": "limit must be positive"}, 400

    store = current_app.config["ORDER_STORE"]
    orders = store.list_orders(user_id, limit=limit)
    return {"orders": [order.to_dict() for order in orders], "count": len(orders)}


@orders_bp.route("/<order_id>", methods=["GET"])
def get_order(order_id: str):
    order = current_app.config["ORDER_STORE"].get(order_id)
    if order is None:
        return {"error": f"Order {order_id} not found"}, 404
    return order.to_dict()
