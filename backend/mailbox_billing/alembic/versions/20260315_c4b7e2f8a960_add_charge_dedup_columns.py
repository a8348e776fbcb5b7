"""add charge deduplication columns

Revision ID: c4b7e2f8a960
Revises: a9e5f0c3d217
Create Date: 2026-03-15 09:30:00.000000

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "c4b7e2f8a960"
down_revision = "a9e5f0c3d217"
branch_labels = None
depends_on = None


def upgrade() -> None:
    with op.batch_alter_table("charge") as batch_op:
        batch_op.add_column(sa.Column("related_type", sa.String(length=50), nullable=True))
        batch_op.add_column(sa.Column("related_id", sa.BigInteger(), nullable=True))
        batch_op.create_unique_constraint(
            "uq_charge_type_related", ["type", "related_type", "related_id"]
        )


def downgrade() -> None:
    with op.batch_alter_table("charge") as batch_op:
        batch_op.drop_constraint("uq_charge_type_related", type_="unique")
        batch_op.drop_column("related_id")
        batch_op.drop_column("related_type")
