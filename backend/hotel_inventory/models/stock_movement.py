from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, event

from hotel_inventory.core.errors import ImmutableRecordError
from hotel_inventory.models.tenant import Base


class StockMovement(Base):
    """
    Secondary stock-in/stock-out log written by the visit consumption workflow.

    Quantity is always absolute; the direction lives in movement_type_id
    (1 = inbound, 2 = outbound).
    """

    __tablename__ = "stock_movements"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    article_id = Column(Integer, ForeignKey("articles.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    movement_type_id = Column(Integer, nullable=False)
    moved_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    registered_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))


@event.listens_for(StockMovement, "before_update")
def _block_stock_movement_update(mapper, connection, target):
    raise ImmutableRecordError("StockMovement", target.id)


@event.listens_for(StockMovement, "before_delete")
def _block_stock_movement_delete(mapper, connection, target):
    raise ImmutableRecordError("StockMovement", target.id)
