"""create charge table

Revision ID: a9e5f0c3d217
Revises: 7c2d4b8e1a53
Create Date: 2026-03-01 10:10:00.000000

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "a9e5f0c3d217"
down_revision = "7c2d4b8e1a53"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "charge",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("amount_pence", sa.BigInteger(), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="GBP"),
        sa.Column("type", sa.String(length=50), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("service_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("invoice_id", sa.String(length=36), nullable=True),
        sa.Column("billed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
            nullable=True,
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["invoice_id"], ["invoices.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_charge_user_id"), "charge", ["user_id"], unique=False)
    op.create_index(op.f("ix_charge_invoice_id"), "charge", ["invoice_id"], unique=False)
    op.create_index(
        "ix_charge_user_status_service_date",
        "charge",
        ["user_id", "status", "service_date"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_charge_user_status_service_date", table_name="charge")
    op.drop_index(op.f("ix_charge_invoice_id"), table_name="charge")
    op.drop_index(op.f("ix_charge_user_id"), table_name="charge")
    op.drop_table("charge")
