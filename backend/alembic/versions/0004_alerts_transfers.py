from alembic import op
import sqlalchemy as sa


revision = "0004_alerts_transfers"
down_revision = "0003_stay_consumptions"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "alert_configurations",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("tenant_id", sa.Integer(), nullable=False, index=True),
        sa.Column("inventory_id", sa.Integer(), nullable=False, unique=True, index=True),
        sa.Column("min_stock", sa.Integer(), nullable=True),
        sa.Column("max_stock", sa.Integer(), nullable=True),
        sa.Column("critical_stock", sa.Integer(), nullable=True),
        sa.Column("low_alerts_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("high_alerts_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("critical_alerts_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by", sa.String(450), nullable=False),
        sa.Column("updated_by", sa.String(450), nullable=True),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["inventory_id"], ["inventory_records.id"], ondelete="CASCADE"),
    )
    op.create_table(
        "stock_alerts",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("tenant_id", sa.Integer(), nullable=False, index=True),
        sa.Column("inventory_id", sa.Integer(), nullable=False, index=True),
        sa.Column("alert_type", sa.String(30), nullable=False, index=True),
        sa.Column("severity", sa.String(20), nullable=False),
        sa.Column("message", sa.String(500), nullable=False),
        sa.Column("current_quantity", sa.Integer(), nullable=False),
        sa.Column("threshold", sa.Integer(), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true(), index=True),
        sa.Column("acknowledged", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("acknowledged_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("acknowledged_by", sa.String(450), nullable=True),
        sa.Column("acknowledgment_notes", sa.String(500), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolved_by", sa.String(450), nullable=True),
        sa.Column("resolution_notes", sa.String(500), nullable=True),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["inventory_id"], ["inventory_records.id"], ondelete="CASCADE"),
    )

    op.create_table(
        "transfer_documents",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("tenant_id", sa.Integer(), nullable=False, index=True),
        sa.Column("transfer_number", sa.String(50), nullable=False, index=True),
        sa.Column("source_location_type", sa.Integer(), nullable=False),
        sa.Column("source_location_id", sa.Integer(), nullable=True),
        sa.Column("destination_location_type", sa.Integer(), nullable=False),
        sa.Column("destination_location_id", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(30), nullable=False, index=True),
        sa.Column("priority", sa.String(20), nullable=False),
        sa.Column("reason", sa.String(500), nullable=True),
        sa.Column("notes", sa.String(1000), nullable=True),
        sa.Column("requires_approval", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("created_by", sa.String(450), nullable=False),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_by", sa.String(450), nullable=True),
        sa.Column("approval_comments", sa.String(500), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_by", sa.String(450), nullable=True),
        sa.Column("rejection_reason", sa.String(500), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_by", sa.String(450), nullable=True),
        sa.Column("completion_notes", sa.String(500), nullable=True),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("tenant_id", "transfer_number", name="uq_transfer_tenant_number"),
    )
    op.create_table(
        "transfer_lines",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("transfer_document_id", sa.Integer(), nullable=False, index=True),
        sa.Column("source_inventory_id", sa.Integer(), nullable=False, index=True),
        sa.Column("destination_inventory_id", sa.Integer(), nullable=True, index=True),
        sa.Column("article_id", sa.Integer(), nullable=False, index=True),
        sa.Column("requested_quantity", sa.Integer(), nullable=False),
        sa.Column("available_quantity", sa.Integer(), nullable=True),
        sa.Column("transferred_quantity", sa.Integer(), nullable=True),
        sa.Column("transferred", sa.Boolean(), nullable=True),
        sa.Column("failure_reason", sa.String(200), nullable=True),
        sa.Column("notes", sa.String(500), nullable=True),
        sa.ForeignKeyConstraint(["transfer_document_id"], ["transfer_documents.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["article_id"], ["articles.id"]),
        sa.CheckConstraint("requested_quantity > 0", name="ck_transfer_line_quantity_positive"),
    )


def downgrade() -> None:
    op.drop_table("transfer_lines")
    op.drop_table("transfer_documents")
    op.drop_table("stock_alerts")
    op.drop_table("alert_configurations")
