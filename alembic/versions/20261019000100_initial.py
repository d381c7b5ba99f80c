"""initial league vault schema

Revision ID: 20261019000100
Revises:
Create Date: 2026-10-19 00:01:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20261019000100"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(*, updated: bool = True) -> list[sa.Column]:
    columns = [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=True,
        )
    ]
    if updated:
        columns.append(
            sa.Column(
                "updated_at",
                sa.DateTime(timezone=True),
                server_default=sa.text("CURRENT_TIMESTAMP"),
                nullable=True,
            )
        )
    return columns


def upgrade() -> None:
    op.create_table(
        "leagues",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("sport", sa.String(), nullable=False),
        sa.Column("owner_user_id", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("settings", sa.JSON(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_leagues_id", "leagues", ["id"], unique=False)
    op.create_index("ix_leagues_owner_user_id", "leagues", ["owner_user_id"], unique=False)

    op.create_table(
        "league_members",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("league_id", sa.Integer(), sa.ForeignKey("leagues.id"), nullable=False),
        sa.Column("role", sa.String(), nullable=False),
        *_timestamps(updated=False),
        sa.UniqueConstraint("user_id", "league_id", name="uq_league_members_user_league"),
    )
    op.create_index("ix_league_members_id", "league_members", ["id"], unique=False)

    op.create_table(
        "league_imports",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("provider", sa.String(), nullable=False),
        sa.Column("provider_league_ref", sa.String(), nullable=False),
        sa.Column("provider_league_name", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("seasons_found", sa.Integer(), nullable=False),
        sa.Column("seasons_imported", sa.JSON(), nullable=False),
        sa.Column("progress_pct", sa.Integer(), nullable=False),
        sa.Column("error_log", sa.JSON(), nullable=False),
        sa.Column("canonical_league_id", sa.Integer(), sa.ForeignKey("leagues.id"), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_league_imports_id", "league_imports", ["id"], unique=False)
    op.create_index("ix_league_imports_user_id", "league_imports", ["user_id"], unique=False)

    op.create_table(
        "historical_seasons",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("league_id", sa.Integer(), sa.ForeignKey("leagues.id"), nullable=False),
        sa.Column("import_id", sa.Integer(), sa.ForeignKey("league_imports.id"), nullable=True),
        sa.Column("season_year", sa.Integer(), nullable=False),
        sa.Column("team_name", sa.String(), nullable=False),
        sa.Column("owner_name", sa.String(), nullable=False),
        sa.Column("owner_user_id", sa.String(), nullable=True),
        sa.Column("final_standing", sa.Integer(), nullable=True),
        sa.Column("wins", sa.Integer(), nullable=False),
        sa.Column("losses", sa.Integer(), nullable=False),
        sa.Column("ties", sa.Integer(), nullable=False),
        sa.Column("points_for", sa.Float(), nullable=False),
        sa.Column("points_against", sa.Float(), nullable=False),
        sa.Column("playoff_result", sa.String(), nullable=True),
        sa.Column("draft_data", sa.JSON(), nullable=True),
        sa.Column("roster_data", sa.JSON(), nullable=True),
        sa.Column("weekly_scores", sa.JSON(), nullable=True),
        sa.Column("transactions", sa.JSON(), nullable=True),
        sa.Column("settings", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint(
            "league_id",
            "season_year",
            "owner_name",
            name="uq_historical_seasons_league_year_owner",
        ),
    )
    op.create_index("ix_historical_seasons_id", "historical_seasons", ["id"], unique=False)
    op.create_index("ix_historical_seasons_league_id", "historical_seasons", ["league_id"], unique=False)

    op.create_table(
        "raw_provider_data",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("provider", sa.String(), nullable=False),
        sa.Column("data_type", sa.String(), nullable=False),
        sa.Column("event_ref", sa.String(), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("record_count", sa.Integer(), nullable=True),
        sa.Column(
            "ingested_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=True,
        ),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_raw_provider_data_id", "raw_provider_data", ["id"], unique=False)
    op.create_index("ix_raw_provider_data_provider", "raw_provider_data", ["provider"], unique=False)

    op.create_table(
        "owner_aliases",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("league_id", sa.Integer(), sa.ForeignKey("leagues.id"), nullable=False),
        sa.Column("owner_name", sa.String(), nullable=False),
        sa.Column("canonical_name", sa.String(), nullable=False),
        *_timestamps(updated=False),
        sa.UniqueConstraint("league_id", "owner_name", name="uq_owner_aliases_league_owner"),
    )
    op.create_index("ix_owner_aliases_id", "owner_aliases", ["id"], unique=False)
    op.create_index("ix_owner_aliases_league_id", "owner_aliases", ["league_id"], unique=False)

    op.create_table(
        "provider_tokens",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("provider", sa.String(), nullable=False),
        sa.Column("access_token_enc", sa.Text(), nullable=True),
        sa.Column("refresh_token_enc", sa.Text(), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=True,
        ),
        sa.UniqueConstraint("user_id", "provider", name="uq_provider_tokens_user_provider"),
    )
    op.create_index("ix_provider_tokens_id", "provider_tokens", ["id"], unique=False)


def downgrade() -> None:
    op.drop_table("provider_tokens")
    op.drop_table("owner_aliases")
    op.drop_table("raw_provider_data")
    op.drop_table("historical_seasons")
    op.drop_table("league_imports")
    op.drop_table("league_members")
    op.drop_table("leagues")
