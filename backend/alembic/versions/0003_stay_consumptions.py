from alembic import op
import sqlalchemy as sa


revision = "0003_stay_consumptions"
down_revision = "0002_inventory_ledger"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "stay_movements",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("tenant_id", sa.Integer(), nullable=False, index=True),
        sa.Column("visit_id", sa.Integer(), nullable=False, index=True),
        sa.Column("room_id", sa.Integer(), nullable=True, index=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("registered_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("total_billed", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("cancelled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["room_id"], ["rooms.id"]),
    )
    op.create_table(
        "consumptions",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("tenant_id", sa.Integer(), nullable=False, index=True),
        sa.Column("stay_movement_id", sa.Integer(), nullable=False, index=True),
        sa.Column("article_id", sa.Integer(), nullable=False, index=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("is_room", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("cancelled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["stay_movement_id"], ["stay_movements.id"]),
        sa.ForeignKeyConstraint(["article_id"], ["articles.id"]),
    )


def downgrade() -> None:
    op.drop_table("consumptions")
    op.drop_table("stay_movements")
