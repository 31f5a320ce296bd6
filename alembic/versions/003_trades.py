"""trades

Revision ID: 003
Revises: 002
Create Date: 2026-10-17

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "003"
down_revision = "002"
branch_labels = None
depends_on = None

RESOURCES = ("manpower", "materials", "fuel", "food")


def upgrade() -> None:
    resource_type = postgresql.ENUM(*RESOURCES, name="resourcetype", create_type=False)
    op.create_table(
        "trades",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("from_player_id", sa.Integer(), nullable=False),
        sa.Column("to_player_id", sa.Integer(), nullable=False),
        sa.Column("offered_resource", resource_type, nullable=False),
        sa.Column("offered_amount", sa.Integer(), nullable=False),
        sa.Column("requested_resource", resource_type, nullable=False),
        sa.Column("requested_amount", sa.Integer(), nullable=False),
        sa.Column(
            "status",
            sa.Enum("pending", "accepted", "rejected", "expired", name="tradestatus"),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["from_player_id"], ["players.id"]),
        sa.ForeignKeyConstraint(["to_player_id"], ["players.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_trades_id"), "trades", ["id"], unique=False)
    op.create_index(op.f("ix_trades_from_player_id"), "trades", ["from_player_id"], unique=False)
    op.create_index(op.f("ix_trades_to_player_id"), "trades", ["to_player_id"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_trades_to_player_id"), table_name="trades")
    op.drop_index(op.f("ix_trades_from_player_id"), table_name="trades")
    op.drop_index(op.f("ix_trades_id"), table_name="trades")
    op.drop_table("trades")
    op.execute("DROP TYPE IF EXISTS tradestatus")
