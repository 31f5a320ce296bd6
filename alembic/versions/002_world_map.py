"""territories and player actions

Revision ID: 002
Revises: 001
Create Date: 2026-10-17

"""

from alembic import op
import sqlalchemy as sa

revision = "002"
down_revision = "001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "territories",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("hex_id", sa.String(length=100), nullable=False),
        sa.Column("q", sa.Integer(), nullable=True),
        sa.Column("r", sa.Integer(), nullable=True),
        sa.Column(
            "controlled_by_nation",
            sa.Enum("union", "dominion", "syndicate", "neutral", name="territorycontrol"),
            nullable=False,
        ),
        sa.Column("controlled_by_player_id", sa.Integer(), nullable=True),
        sa.Column("is_contested", sa.Boolean(), nullable=False),
        sa.Column("under_attack", sa.Boolean(), nullable=False),
        sa.Column("last_battle", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["controlled_by_player_id"], ["players.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_territories_hex_id"), "territories", ["hex_id"], unique=True)
    op.create_index(op.f("ix_territories_id"), "territories", ["id"], unique=False)

    op.create_table(
        "player_actions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.Integer(), nullable=False),
        sa.Column("plot_id", sa.Integer(), nullable=True),
        sa.Column(
            "action_type",
            sa.Enum("move", "attack", "occupy", name="actiontype"),
            nullable=False,
        ),
        sa.Column("from_hex", sa.String(length=100), nullable=True),
        sa.Column("to_hex", sa.String(length=100), nullable=False),
        sa.Column("troop_data", sa.JSON(), nullable=True),
        sa.Column("started_at", sa.DateTime(), nullable=False),
        sa.Column("completes_at", sa.DateTime(), nullable=False),
        sa.Column(
            "status",
            sa.Enum("in_progress", "completed", "cancelled", name="actionstatus"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["player_id"], ["players.id"]),
        sa.ForeignKeyConstraint(["plot_id"], ["plots.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_player_actions_id"), "player_actions", ["id"], unique=False)
    op.create_index(op.f("ix_player_actions_player_id"), "player_actions", ["player_id"], unique=False)
    op.create_index(
        op.f("ix_player_actions_completes_at"), "player_actions", ["completes_at"], unique=False
    )


def downgrade() -> None:
    op.drop_index(op.f("ix_player_actions_completes_at"), table_name="player_actions")
    op.drop_index(op.f("ix_player_actions_player_id"), table_name="player_actions")
    op.drop_index(op.f("ix_player_actions_id"), table_name="player_actions")
    op.drop_table("player_actions")

    op.drop_index(op.f("ix_territories_id"), table_name="territories")
    op.drop_index(op.f("ix_territories_hex_id"), table_name="territories")
    op.drop_table("territories")

    op.execute("DROP TYPE IF EXISTS actionstatus")
    op.execute("DROP TYPE IF EXISTS actiontype")
    op.execute("DROP TYPE IF EXISTS territorycontrol")
