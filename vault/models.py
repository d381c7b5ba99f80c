from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .db import Base


class League(Base):
    __tablename__ = "leagues"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, default="")
    sport = Column(String, nullable=False, default="NFL")
    owner_user_id = Column(String, nullable=False, index=True)
    status = Column(String, nullable=False, default="ACTIVE")
    settings = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    members = relationship("LeagueMember", back_populates="league")


class LeagueMember(Base):
    __tablename__ = "league_members"
    __table_args__ = (
        UniqueConstraint("user_id", "league_id", name="uq_league_members_user_league"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False)
    league_id = Column(Integer, ForeignKey("leagues.id"), nullable=False)
    role = Column(String, nullable=False, default="MEMBER")
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    league = relationship("League", back_populates="members")


class LeagueImport(Base):
    __tablename__ = "league_imports"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    provider = Column(String, nullable=False)
    provider_league_ref = Column(String, nullable=False, default="")
    provider_league_name = Column(String, nullable=True)
    status = Column(String, nullable=False, default="SCANNING")  # SCANNING | IMPORTING | COMPLETE | FAILED
    seasons_found = Column(Integer, nullable=False, default=0)
    seasons_imported = Column(JSON, nullable=False, default=list)
    progress_pct = Column(Integer, nullable=False, default=0)
    error_log = Column(JSON, nullable=False, default=list)
    canonical_league_id = Column(Integer, ForeignKey("leagues.id"), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )


class HistoricalSeason(Base):
    __tablename__ = "historical_seasons"
    __table_args__ = (
        UniqueConstraint(
            "league_id",
            "season_year",
            "owner_name",
            name="uq_historical_seasons_league_year_owner",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    league_id = Column(Integer, ForeignKey("leagues.id"), nullable=False, index=True)
    import_id = Column(Integer, ForeignKey("league_imports.id"), nullable=True)
    season_year = Column(Integer, nullable=False)
    team_name = Column(String, nullable=False, default="")
    owner_name = Column(String, nullable=False, default="")
    owner_user_id = Column(String, nullable=True)
    final_standing = Column(Integer, nullable=True)
    wins = Column(Integer, nullable=False, default=0)
    losses = Column(Integer, nullable=False, default=0)
    ties = Column(Integer, nullable=False, default=0)
    points_for = Column(Float, nullable=False, default=0.0)
    points_against = Column(Float, nullable=False, default=0.0)
    playoff_result = Column(String, nullable=True)  # champion | runner_up | third_place | playoffs | eliminated | missed
    draft_data = Column(JSON, nullable=True)
    roster_data = Column(JSON, nullable=True)
    weekly_scores = Column(JSON, nullable=True)
    transactions = Column(JSON, nullable=True)
    settings = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )


class RawProviderData(Base):
    __tablename__ = "raw_provider_data"

    id = Column(Integer, primary_key=True, index=True)
    provider = Column(String, nullable=False, index=True)
    data_type = Column(String, nullable=False)
    event_ref = Column(String, nullable=False, default="")
    payload = Column(JSON, nullable=True)
    record_count = Column(Integer, nullable=True)
    ingested_at = Column(DateTime(timezone=True), server_default=func.now())
    processed_at = Column(DateTime(timezone=True), nullable=True)


class OwnerAlias(Base):
    __tablename__ = "owner_aliases"
    __table_args__ = (
        UniqueConstraint("league_id", "owner_name", name="uq_owner_aliases_league_owner"),
    )

    id = Column(Integer, primary_key=True, index=True)
    league_id = Column(Integer, ForeignKey("leagues.id"), nullable=False, index=True)
    owner_name = Column(String, nullable=False)
    canonical_name = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class ProviderToken(Base):
    __tablename__ = "provider_tokens"
    __table_args__ = (
        UniqueConstraint("user_id", "provider", name="uq_provider_tokens_user_provider"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False)
    provider = Column(String, nullable=False)
    access_token_enc = Column(Text, nullable=True)
    refresh_token_enc = Column(Text, nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )
