from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import relationship

from hotel_inventory.models.tenant import Base


class Article(Base):
    """Sellable/consumable item (mini-bar, room service). Reference data for the ledger."""

    __tablename__ = "articles"
    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_articles_tenant_name"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    image_url = Column(String(500), nullable=True)
    category = Column(String(100), nullable=True, index=True)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    tenant = relationship("Tenant")
