"""single training batch per plot

Revision ID: 004
Revises: 003
Create Date: 2026-10-17

"""

from alembic import op
import sqlalchemy as sa

revision = "004"
down_revision = "003"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_index(
        "uq_troops_training_plot",
        "troops",
        ["plot_id"],
        unique=True,
        sqlite_where=sa.text("is_training = 1"),
        postgresql_where=sa.text("is_training"),
    )


def downgrade() -> None:
    op.drop_index("uq_troops_training_plot", table_name="troops")
