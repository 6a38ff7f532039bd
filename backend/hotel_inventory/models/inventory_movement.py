from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict
from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String, Text, event
from sqlalchemy.types import TypeDecorator

from hotel_inventory.core.errors import ImmutableRecordError
from hotel_inventory.models.tenant import Base


class MovementMetadata(BaseModel):
    """Structured extra data attached to a movement (stored as JSON text)."""

    model_config = ConfigDict(extra="forbid")

    consumo_id: Optional[int] = None
    details: Optional[str] = None
    transfer_number: Optional[str] = None
    operation: Optional[str] = None
    counterpart_inventory_id: Optional[int] = None


class MovementMetadataType(TypeDecorator):
    impl = Text
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, dict):
            value = MovementMetadata.model_validate(value)
        if not value.model_dump(exclude_none=True):
            return None
        return value.model_dump_json(exclude_none=True)

    def process_result_value(self, value, dialect):
        if not value:
            return None
        return MovementMetadata.model_validate_json(value)


class InventoryMovement(Base):
    """Append-only audit entry for every quantity change of an InventoryRecord."""

    __tablename__ = "inventory_movements"
    __table_args__ = (
        CheckConstraint(
            "quantity_after = quantity_before + quantity_delta",
            name="ck_movement_delta_consistent",
        ),
        CheckConstraint("quantity_after >= 0", name="ck_movement_after_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)

    # No FK: the trail must survive an administrative delete of the stock record
    inventory_id = Column(Integer, nullable=False, index=True)
    article_id = Column(Integer, nullable=False, index=True)

    # Entrada, Salida, Transferencia, Ajuste, Consumo, ... (core.stock_rules.MovementKind)
    movement_type = Column(String(20), nullable=False, index=True)

    quantity_before = Column(Integer, nullable=False)
    quantity_after = Column(Integer, nullable=False)
    quantity_delta = Column(Integer, nullable=False)

    reason = Column(String(500), nullable=True)
    document_number = Column(String(100), nullable=True)
    transfer_id = Column(String(64), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc), index=True)
    user_id = Column(String(450), nullable=False, index=True)
    ip_address = Column(String(45), nullable=True)
    movement_metadata = Column("metadata", MovementMetadataType, nullable=True)


@event.listens_for(InventoryMovement, "before_update")
def _block_movement_update(mapper, connection, target):
    raise ImmutableRecordError("InventoryMovement", target.id)


@event.listens_for(InventoryMovement, "before_delete")
def _block_movement_delete(mapper, connection, target):
    raise ImmutableRecordError("InventoryMovement", target.id)
