"""
SQLAlchemy ORM models  (maps to PostgreSQL).

Tables
------
* ``riders``              -- couriers with availability and active delivery
* ``orders``              -- delivery orders and their current status
* ``order_status_events`` -- append-only audit trail, one row per transition
* ``offers``              -- open (unaccepted) offers with candidate riders

Indexes
-------
* **B-Tree** on ``orders.status``, ``orders.rider_id``,
  ``riders.availability`` and ``offers.expires_at`` for the dashboard,
  eligibility and expiry queries.
"""

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    func,
)
from sqlalchemy.orm import relationship

from .database import Base
from rider_dispatch.domain.enums import OrderStatus, RiderAvailability


class RiderModel(Base):
    __tablename__ = "riders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False, default="")
    availability = Column(
        Enum(RiderAvailability),
        default=RiderAvailability.OFFLINE,
        nullable=False,
    )
    active_order_id = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_riders_availability", "availability"),
        Index("idx_riders_active_order", "active_order_id"),
    )


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    restaurant_name = Column(String(200), nullable=False)
    pickup_address = Column(String(255), nullable=False)
    customer_name = Column(String(120), nullable=False)
    delivery_address = Column(String(255), nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False)

    status = Column(
        Enum(OrderStatus),
        default=OrderStatus.AWAITING_ASSIGNMENT,
        nullable=False,
    )
    rider_id = Column(Integer, ForeignKey("riders.id"), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False)
    assigned_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    events = relationship(
        "OrderStatusEventModel",
        order_by="OrderStatusEventModel.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        Index("idx_orders_status", "status"),
        Index("idx_orders_rider", "rider_id"),
    )


class OrderStatusEventModel(Base):
    __tablename__ = "order_status_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False)
    status = Column(Enum(OrderStatus), nullable=False)
    actor = Column(String(64), nullable=True)
    occurred_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("idx_order_events_order", "order_id"),)


class OfferModel(Base):
    __tablename__ = "offers"

    order_id = Column(Integer, ForeignKey("orders.id"), primary_key=True)
    candidate_rider_ids = Column(JSON, nullable=False, default=list)
    offered_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("idx_offers_expires", "expires_at"),)
