from datetime import datetime, timezone

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from hotel_inventory.models.tenant import Base


class TransferDocument(Base):
    """
    Transfer request between two locations, moved through an approval workflow.

    Stock only changes when an approved document is executed; each executed
    line leaves a pair of ``Transferencia`` movements tagged with the
    document's ``transfer_number``.
    """

    __tablename__ = "transfer_documents"
    __table_args__ = (
        UniqueConstraint("tenant_id", "transfer_number", name="uq_transfer_tenant_number"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    transfer_number = Column(String(50), nullable=False, index=True)

    source_location_type = Column(Integer, nullable=False)
    source_location_id = Column(Integer, nullable=True)
    destination_location_type = Column(Integer, nullable=False)
    destination_location_id = Column(Integer, nullable=True)

    # see core.stock_rules.TransferStatus / TransferPriority
    status = Column(String(30), nullable=False, index=True)
    priority = Column(String(20), nullable=False)
    reason = Column(String(500), nullable=True)
    notes = Column(String(1000), nullable=True)
    requires_approval = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    created_by = Column(String(450), nullable=False)
    ip_address = Column(String(45), nullable=True)

    approved_at = Column(DateTime(timezone=True), nullable=True)
    approved_by = Column(String(450), nullable=True)
    approval_comments = Column(String(500), nullable=True)

    rejected_at = Column(DateTime(timezone=True), nullable=True)
    rejected_by = Column(String(450), nullable=True)
    rejection_reason = Column(String(500), nullable=True)

    completed_at = Column(DateTime(timezone=True), nullable=True)
    completed_by = Column(String(450), nullable=True)
    completion_notes = Column(String(500), nullable=True)

    lines = relationship(
        "TransferLine",
        back_populates="document",
        order_by="TransferLine.id",
        cascade="all, delete-orphan",
    )


class TransferLine(Base):
    __tablename__ = "transfer_lines"
    __table_args__ = (
        CheckConstraint("requested_quantity > 0", name="ck_transfer_line_quantity_positive"),
    )

    id = Column(Integer, primary_key=True, index=True)
    transfer_document_id = Column(
        Integer, ForeignKey("transfer_documents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    source_inventory_id = Column(Integer, nullable=False, index=True)
    destination_inventory_id = Column(Integer, nullable=True, index=True)
    article_id = Column(Integer, ForeignKey("articles.id"), nullable=False, index=True)

    requested_quantity = Column(Integer, nullable=False)
    available_quantity = Column(Integer, nullable=True)  # source stock when the document was created
    transferred_quantity = Column(Integer, nullable=True)
    transferred = Column(Boolean, nullable=True)  # NULL until the document is executed
    failure_reason = Column(String(200), nullable=True)
    notes = Column(String(500), nullable=True)

    document = relationship("TransferDocument", back_populates="lines")
