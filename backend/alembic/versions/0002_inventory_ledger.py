from alembic import op
import sqlalchemy as sa


revision = "0002_inventory_ledger"
down_revision = "0001_init"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "inventory_records",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("tenant_id", sa.Integer(), nullable=False, index=True),
        sa.Column("article_id", sa.Integer(), nullable=False, index=True),
        sa.Column("location_type", sa.Integer(), nullable=False, server_default="0", index=True),
        sa.Column("location_id", sa.Integer(), nullable=True, index=True),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("min_quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("notes", sa.String(500), nullable=True),
        sa.Column("registered_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("last_updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("registered_by", sa.String(450), nullable=True),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["article_id"], ["articles.id"], ondelete="CASCADE"),
        sa.UniqueConstraint(
            "tenant_id", "article_id", "location_type", "location_id",
            name="uq_inventory_tenant_article_location",
        ),
        sa.CheckConstraint("quantity >= 0", name="ck_inventory_quantity_non_negative"),
    )

    # inventory_id has no FK on purpose: movements outlive a deleted record
    op.create_table(
        "inventory_movements",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("tenant_id", sa.Integer(), nullable=False, index=True),
        sa.Column("inventory_id", sa.Integer(), nullable=False, index=True),
        sa.Column("article_id", sa.Integer(), nullable=False, index=True),
        sa.Column("movement_type", sa.String(20), nullable=False, index=True),
        sa.Column("quantity_before", sa.Integer(), nullable=False),
        sa.Column("quantity_after", sa.Integer(), nullable=False),
        sa.Column("quantity_delta", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(500), nullable=True),
        sa.Column("document_number", sa.String(100), nullable=True),
        sa.Column("transfer_id", sa.String(64), nullable=True, index=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, index=True),
        sa.Column("user_id", sa.String(450), nullable=False, index=True),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("metadata", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"]),
        sa.CheckConstraint(
            "quantity_after = quantity_before + quantity_delta",
            name="ck_movement_delta_consistent",
        ),
        sa.CheckConstraint("quantity_after >= 0", name="ck_movement_after_non_negative"),
    )

    op.create_table(
        "stock_movements",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("tenant_id", sa.Integer(), nullable=False, index=True),
        sa.Column("article_id", sa.Integer(), nullable=False, index=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("movement_type_id", sa.Integer(), nullable=False),
        sa.Column("moved_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("registered_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"]),
        sa.ForeignKeyConstraint(["article_id"], ["articles.id"]),
    )


def downgrade() -> None:
    op.drop_table("stock_movements")
    op.drop_table("inventory_movements")
    op.drop_table("inventory_records")
