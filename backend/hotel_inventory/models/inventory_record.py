from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from hotel_inventory.models.tenant import Base


class InventoryRecord(Base):
    """Quantity on hand of one article at one location (General, Room or Warehouse)."""

    __tablename__ = "inventory_records"
    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "article_id", "location_type", "location_id",
            name="uq_inventory_tenant_article_location",
        ),
        CheckConstraint("quantity >= 0", name="ck_inventory_quantity_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    article_id = Column(Integer, ForeignKey("articles.id", ondelete="CASCADE"), nullable=False, index=True)

    # 0 = General, 1 = Room, 2 = Warehouse (see core.stock_rules.LocationType)
    location_type = Column(Integer, nullable=False, default=0, index=True)
    # Room id for rooms, warehouse id for warehouses, NULL for general stock
    location_id = Column(Integer, nullable=True, index=True)

    quantity = Column(Integer, nullable=False, default=0)
    min_quantity = Column(Integer, nullable=False, default=0)  # reorder threshold
    notes = Column(String(500), nullable=True)

    registered_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    last_updated_at = Column(DateTime(timezone=True), nullable=True)
    registered_by = Column(String(450), nullable=True)

    article = relationship("Article")
    room = relationship(
        "Room",
        primaryjoin="and_(foreign(InventoryRecord.location_id) == Room.id, InventoryRecord.location_type == 1)",
        viewonly=True,
    )
