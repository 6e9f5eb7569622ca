"""
Order persistence.

Orders are permanent records: created once when the wizard submits, read
back for order history and shipping-address prefill, never deleted.

IDEMPOTENCY:
    create() is keyed on the order's idempotency key. Calling it again with
    the same key - a retry after the wizard's safety timer fired, a double
    click that slipped through - returns the order that already exists
    instead of writing a second billable row.

Implementations:
    InMemoryOrderStore   - lock-guarded dict, for tests and offline demos
    SqlAlchemyOrderStore - durable ``orders`` table (SQLite, Postgres, ...)

Usage:
    store = SqlAlchemyOrderStore.from_url("sqlite:///vision_print.db")

    saved = store.create(order)            # status=pending, id assigned
    again = store.create(order)            # same row, same id
    address = store.get_last_shipping_address(user_id)
"""

from __future__ import annotations

import threading
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum as SAEnum,
    JSON,
    String,
    Text,
    create_engine,
    func,
    select,
)
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from core.exceptions import OrderStoreError
from models.order import Order, OrderStatus, ShippingAddress
from models.pricing import PriceBreakdown
from models.product import ProductConfig
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)


def new_order_id() -> str:
    return str(uuid.uuid4())


class OrderStore:
    """
    Interface every order store implements.

    The wizard only ever calls create() and get_last_shipping_address();
    the rest serves order history and discount eligibility.
    """

    def create(self, order: Order) -> Order:
        """Persist ``order`` (or return the existing one for its key)."""
        raise NotImplementedError

    def get(self, order_id: str) -> Optional[Order]:
        raise NotImplementedError

    def get_by_idempotency_key(self, idempotency_key: str) -> Optional[Order]:
        raise NotImplementedError

    def list_orders(self, user_id: str, limit: int = 50) -> List[Order]:
        """Orders for a user, newest first."""
        raise NotImplementedError

    def count_orders(self, user_id: str) -> int:
        raise NotImplementedError

    def get_last_shipping_address(self, user_id: str) -> Optional[ShippingAddress]:
        """Address of the user's most recent order, or None."""
        orders = self.list_orders(user_id, limit=1)
        if not orders:
            return None
        return orders[0].shipping.copy()


# =============================================================================
# IN-MEMORY STORE
# =============================================================================

class InMemoryOrderStore(OrderStore):
    """
    Thread-safe in-process order store.

    Thread Safety:
        - One threading.Lock guards both indexes
        - The check-then-insert in create() happens under the lock, so two
          submissions racing with the same key still produce one order
    """

    def __init__(self):
        self._orders: Dict[str, Order] = {}
        self._by_key: Dict[str, str] = {}
        self._lock = threading.Lock()

    def create(self, order: Order) -> Order:
        if not order.idempotency_key:
            raise OrderStoreError("Order is missing an idempotency key")

        with self._lock:
            existing_id = self._by_key.get(order.idempotency_key)
            if existing_id is not None:
                logger.info(
                    f"Order for key {order.idempotency_key[:8]} already exists ({existing_id[:8]}), "
                    "returning it"
                )
                return self._orders[existing_id]

            stored = order.with_identity(order.id or new_order_id())
            if stored.id in self._orders:
                logger.error(
                    f"Order id {stored.id[:8]} already used by another idempotency key"
                )
                raise OrderStoreError(f"Order id {stored.id} already exists")
            self._orders[stored.id] = stored
            self._by_key[stored.idempotency_key] = stored.id
            logger.info(f"Stored order {stored.id[:8]} for user {stored.user_id}")
            return stored

    def get(self, order_id: str) -> Optional[Order]:
        with self._lock:
            return self._orders.get(order_id)

    def get_by_idempotency_key(self, idempotency_key: str) -> Optional[Order]:
        with self._lock:
            order_id = self._by_key.get(idempotency_key)
            return self._orders.get(order_id) if order_id else None

    def list_orders(self, user_id: str, limit: int = 50) -> List[Order]:
        with self._lock:
            # dict keeps insertion order; reverse it so ties on created_at
            # still come out newest first
            orders = [o for o in reversed(list(self._orders.values())) if o.user_id == user_id]
        orders.sort(key=lambda o: o.created_at, reverse=True)
        return orders[:limit]

    def count_orders(self, user_id: str) -> int:
        with self._lock:
            return sum(1 for o in self._orders.values() if o.user_id == user_id)

    def clear(self) -> int:
        """Remove all orders. Returns the number removed."""
        with self._lock:
            count = len(self._orders)
            self._orders.clear()
            self._by_key.clear()
            logger.info(f"Cleared {count} orders from store")
            return count


# =============================================================================
# SQLALCHEMY STORE
# =============================================================================

class Base(DeclarativeBase):
    pass


class OrderTable(Base):
    """
    ``orders`` table.

    The unique idempotency_key column is what makes create() safe to call
    twice: a concurrent duplicate insert fails on the constraint and the
    store returns the row that won.
    """
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    image_id: Mapped[str] = mapped_column(String(128), nullable=False)
    image_url: Mapped[str] = mapped_column(Text, nullable=False)
    idempotency_key: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)

    shipping_address: Mapped[dict] = mapped_column(JSON, nullable=False)
    product_config: Mapped[dict] = mapped_column(JSON, nullable=False)
    price_breakdown: Mapped[dict] = mapped_column(JSON, nullable=False)
    discount_applied: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    status: Mapped[OrderStatus] = mapped_column(
        SAEnum(
            OrderStatus,
            name="order_status",
            values_callable=lambda enum: [member.value for member in enum],
        ),
        nullable=False,
        default=OrderStatus.PENDING,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)

    @classmethod
    def from_order(cls, order: Order) -> "OrderTable":
        return cls(
            id=order.id,
            user_id=order.user_id,
            image_id=order.image_id,
            image_url=order.image_url,
            idempotency_key=order.idempotency_key,
            shipping_address=order.shipping.to_dict(),
            product_config=order.config.to_dict(),
            price_breakdown=order.price.to_dict(),
            discount_applied=order.discount_applied,
            status=order.status,
            created_at=order.created_at,
        )

    def to_order(self) -> Order:
        created_at = self.created_at
        if created_at.tzinfo is None:
            # SQLite drops tzinfo; values are always written in UTC
            created_at = created_at.replace(tzinfo=timezone.utc)
        return Order(
            id=self.id,
            user_id=self.user_id,
            image_id=self.image_id,
            image_url=self.image_url,
            idempotency_key=self.idempotency_key,
            shipping=ShippingAddress.from_dict(self.shipping_address),
            config=ProductConfig.from_dict(self.product_config),
            price=PriceBreakdown.from_dict(self.price_breakdown),
            discount_applied=self.discount_applied,
            status=self.status,
            created_at=created_at,
        )


class SqlAlchemyOrderStore(OrderStore):
    """Durable order store on top of a SQLAlchemy engine."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    @classmethod
    def from_url(cls, url: str, echo: bool = False) -> "SqlAlchemyOrderStore":
        """
        Create engine + tables and return a store.

        In-memory SQLite (``sqlite://``) uses a single shared connection so
        the submission worker thread sees the same database as the caller.
        """
        engine_kwargs = {"echo": echo}
        if url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if url in ("sqlite://", "sqlite:///:memory:"):
                engine_kwargs["poolclass"] = StaticPool

        engine = create_engine(url, **engine_kwargs)
        Base.metadata.create_all(engine)
        logger.info(f"Order store ready ({engine.url.render_as_string(hide_password=True)})")
        return cls(sessionmaker(engine, expire_on_commit=False))

    def create(self, order: Order) -> Order:
        if not order.idempotency_key:
            raise OrderStoreError("Order is missing an idempotency key")

        existing = self.get_by_idempotency_key(order.idempotency_key)
        if existing is not None:
            logger.info(
                f"Order for key {order.idempotency_key[:8]} already exists ({existing.id[:8]}), "
                "returning it"
            )
            return existing

        stored = order.with_identity(order.id or new_order_id())
        try:
            with self._session_factory() as session:
                with session.begin():
                    session.add(OrderTable.from_order(stored))
        except IntegrityError as e:
            # Lost a race with another create() for the same key
            winner = self.get_by_idempotency_key(order.idempotency_key)
            if winner is None:
                raise OrderStoreError("Failed to persist order", cause=e) from e
            logger.info(f"Concurrent create for key {order.idempotency_key[:8]}; using {winner.id[:8]}")
            return winner
        except SQLAlchemyError as e:
            logger.error(f"Failed to persist order: {e}")
            raise OrderStoreError("Failed to persist order", cause=e) from e

        logger.info(f"Stored order {stored.id[:8]} for user {stored.user_id}")
        return stored

    def get(self, order_id: str) -> Optional[Order]:
        return self._fetch_one(select(OrderTable).where(OrderTable.id == order_id))

    def get_by_idempotency_key(self, idempotency_key: str) -> Optional[Order]:
        return self._fetch_one(
            select(OrderTable).where(OrderTable.idempotency_key == idempotency_key)
        )

    def list_orders(self, user_id: str, limit: int = 50) -> List[Order]:
        stmt = (
            select(OrderTable)
            .where(OrderTable.user_id == user_id)
            .order_by(OrderTable.created_at.desc())
            .limit(limit)
        )
        try:
            with self._session_factory() as session:
                return [row.to_order() for row in session.scalars(stmt)]
        except SQLAlchemyError as e:
            raise OrderStoreError("Failed to list orders", cause=e) from e

    def count_orders(self, user_id: str) -> int:
        stmt = select(func.count()).select_from(OrderTable).where(OrderTable.user_id == user_id)
        try:
            with self._session_factory() as session:
                return int(session.scalar(stmt) or 0)
        except SQLAlchemyError as e:
            raise OrderStoreError("Failed to count orders", cause=e) from e

    def _fetch_one(self, stmt) -> Optional[Order]:
        try:
            with self._session_factory() as session:
                row = session.scalars(stmt).first()
                return row.to_order() if row else None
        except SQLAlchemyError as e:
            raise OrderStoreError("Failed to read order", cause=e) from e


def create_order_store(database_url: str) -> OrderStore:
    """Pick the store implementation for a configured DATABASE_URL."""
    if not database_url:
        logger.warning("DATABASE_URL is empty - orders are kept in memory only")
        return InMemoryOrderStore()
    return SqlAlchemyOrderStore.from_url(database_url)
