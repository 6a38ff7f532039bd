from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from hotel_inventory.models.tenant import Base


class AlertConfiguration(Base):
    """Stock thresholds watched for one inventory record."""

    __tablename__ = "alert_configurations"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    inventory_id = Column(
        Integer, ForeignKey("inventory_records.id", ondelete="CASCADE"), nullable=False, unique=True, index=True
    )

    min_stock = Column(Integer, nullable=True)
    max_stock = Column(Integer, nullable=True)
    critical_stock = Column(Integer, nullable=True)

    low_alerts_enabled = Column(Boolean, nullable=False, default=True)
    high_alerts_enabled = Column(Boolean, nullable=False, default=False)
    critical_alerts_enabled = Column(Boolean, nullable=False, default=True)
    active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), nullable=True)
    created_by = Column(String(450), nullable=False)
    updated_by = Column(String(450), nullable=True)


class StockAlert(Base):
    """A threshold crossing on an inventory record; active until resolved."""

    __tablename__ = "stock_alerts"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    inventory_id = Column(
        Integer, ForeignKey("inventory_records.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # StockAgotado | StockCritico | StockBajo | StockAlto (see core.stock_rules.AlertType)
    alert_type = Column(String(30), nullable=False, index=True)
    severity = Column(String(20), nullable=False)
    message = Column(String(500), nullable=False)
    current_quantity = Column(Integer, nullable=False)
    threshold = Column(Integer, nullable=True)

    active = Column(Boolean, nullable=False, default=True, index=True)
    acknowledged = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    acknowledged_at = Column(DateTime(timezone=True), nullable=True)
    acknowledged_by = Column(String(450), nullable=True)
    acknowledgment_notes = Column(String(500), nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    resolved_by = Column(String(450), nullable=True)
    resolution_notes = Column(String(500), nullable=True)

    inventory = relationship("InventoryRecord")
