from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, UniqueConstraint

from hotel_inventory.models.tenant import Base


class Room(Base):
    __tablename__ = "rooms"
    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_rooms_tenant_name"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    active = Column(Boolean, nullable=False, default=True)
