"""initial schema: players, plots, buildings, troops

Revision ID: 001
Revises:
Create Date: 2026-10-17

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None

NATIONS = ("union", "dominion", "syndicate")
RESOURCES = ("manpower", "materials", "fuel", "food")


def upgrade() -> None:
    op.create_table(
        "players",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("username", sa.String(length=100), nullable=False),
        sa.Column("hashed_password", sa.String(length=255), nullable=False),
        sa.Column("nation", sa.Enum(*NATIONS, name="nation"), nullable=True),
        sa.Column("is_ai", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("username"),
    )
    op.create_index(op.f("ix_players_email"), "players", ["email"], unique=True)
    op.create_index(op.f("ix_players_id"), "players", ["id"], unique=False)

    op.create_table(
        "plots",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.Integer(), nullable=False),
        sa.Column(
            "nation",
            postgresql.ENUM(*NATIONS, name="nation", create_type=False),
            nullable=False,
        ),
        sa.Column("hex_id", sa.String(length=100), nullable=False),
        sa.Column(
            "resource_specialization", sa.Enum(*RESOURCES, name="resourcetype"), nullable=False
        ),
        sa.Column("manpower", sa.Integer(), nullable=False),
        sa.Column("materials", sa.Integer(), nullable=False),
        sa.Column("fuel", sa.Integer(), nullable=False),
        sa.Column("food", sa.Integer(), nullable=False),
        sa.Column("population_current", sa.Integer(), nullable=False),
        sa.Column("population_cap", sa.Integer(), nullable=False),
        sa.Column("last_resource_update", sa.DateTime(), nullable=False),
        sa.Column("last_population_update", sa.DateTime(), nullable=False),
        sa.Column("last_collect_time", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["player_id"], ["players.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("player_id"),
    )
    op.create_index(op.f("ix_plots_id"), "plots", ["id"], unique=False)

    op.create_table(
        "buildings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("plot_id", sa.Integer(), nullable=False),
        sa.Column(
            "type",
            sa.Enum(
                "headquarters",
                "barracks",
                "factory",
                "depot",
                "radar",
                "industry",
                "farm",
                "infrastructure",
                "housing",
                "storage",
                "federal",
                name="buildingtype",
            ),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("level", sa.Integer(), nullable=False),
        sa.Column("max_level", sa.Integer(), nullable=False),
        sa.Column("is_under_construction", sa.Boolean(), nullable=False),
        sa.Column("construction_start", sa.DateTime(), nullable=True),
        sa.Column("construction_end", sa.DateTime(), nullable=True),
        sa.Column("is_upgrading", sa.Boolean(), nullable=False),
        sa.Column("upgrade_end", sa.DateTime(), nullable=True),
        sa.Column("can_cancel", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["plot_id"], ["plots.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_buildings_id"), "buildings", ["id"], unique=False)
    op.create_index(op.f("ix_buildings_plot_id"), "buildings", ["plot_id"], unique=False)

    op.create_table(
        "construction_queue",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("plot_id", sa.Integer(), nullable=False),
        sa.Column("building_id", sa.Integer(), nullable=False),
        sa.Column("queue_position", sa.Integer(), nullable=False),
        sa.Column("started_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["plot_id"], ["plots.id"]),
        sa.ForeignKeyConstraint(["building_id"], ["buildings.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("plot_id"),
    )

    op.create_table(
        "troops",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("plot_id", sa.Integer(), nullable=False),
        sa.Column(
            "type",
            sa.Enum("infantry", "armor", "artillery", "air", name="trooptype"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("count", sa.Integer(), nullable=False),
        sa.Column("strength", sa.Integer(), nullable=False),
        sa.Column("morale", sa.Integer(), nullable=False),
        sa.Column("is_training", sa.Boolean(), nullable=False),
        sa.Column("training_start", sa.DateTime(), nullable=True),
        sa.Column("training_end", sa.DateTime(), nullable=True),
        sa.Column("is_deployed", sa.Boolean(), nullable=False),
        sa.Column("deployment_end", sa.DateTime(), nullable=True),
        sa.Column("target_hex", sa.String(length=100), nullable=True),
        sa.Column("upkeep_food", sa.Integer(), nullable=False),
        sa.Column("upkeep_fuel", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["plot_id"], ["plots.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("plot_id", "type", name="uq_troops_plot_type"),
    )
    op.create_index(op.f("ix_troops_id"), "troops", ["id"], unique=False)
    op.create_index(op.f("ix_troops_plot_id"), "troops", ["plot_id"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_troops_plot_id"), table_name="troops")
    op.drop_index(op.f("ix_troops_id"), table_name="troops")
    op.drop_table("troops")

    op.drop_table("construction_queue")

    op.drop_index(op.f("ix_buildings_plot_id"), table_name="buildings")
    op.drop_index(op.f("ix_buildings_id"), table_name="buildings")
    op.drop_table("buildings")

    op.drop_index(op.f("ix_plots_id"), table_name="plots")
    op.drop_table("plots")

    op.drop_index(op.f("ix_players_id"), table_name="players")
    op.drop_index(op.f("ix_players_email"), table_name="players")
    op.drop_table("players")

    op.execute("DROP TYPE IF EXISTS trooptype")
    op.execute("DROP TYPE IF EXISTS buildingtype")
    op.execute("DROP TYPE IF EXISTS resourcetype")
    op.execute("DROP TYPE IF EXISTS nation")
