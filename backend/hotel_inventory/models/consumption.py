from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric
from sqlalchemy.orm import relationship

from hotel_inventory.models.tenant import Base


class StayMovement(Base):
    """Billing context of a visit; consumption lines hang off it."""

    __tablename__ = "stay_movements"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    visit_id = Column(Integer, nullable=False, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=True, index=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    registered_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    total_billed = Column(Numeric(10, 2), nullable=False, default=0)
    cancelled = Column(Boolean, nullable=False, default=False)

    consumptions = relationship("Consumption", back_populates="stay_movement")


class Consumption(Base):
    """One consumed article line (mini-bar when is_room, general stock otherwise)."""

    __tablename__ = "consumptions"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    stay_movement_id = Column(Integer, ForeignKey("stay_movements.id"), nullable=False, index=True)
    article_id = Column(Integer, ForeignKey("articles.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False, default=0)
    is_room = Column(Boolean, nullable=False, default=False)
    cancelled = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    stay_movement = relationship("StayMovement", back_populates="consumptions")
    article = relationship("Article")
