"""Persistence for import jobs, canonical leagues and team-season records."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from vault.ingestion.errors import PersistenceError
from vault.models import (
    HistoricalSeason,
    League,
    LeagueImport,
    LeagueMember,
    OwnerAlias,
)

logger = logging.getLogger(__name__)

# Columns refreshed when an existing (league, year, owner) record is imported again.
UPDATABLE_FIELDS = (
    "import_id",
    "team_name",
    "final_standing",
    "wins",
    "losses",
    "ties",
    "points_for",
    "points_against",
    "playoff_result",
    "draft_data",
    "roster_data",
    "weekly_scores",
    "transactions",
    "settings",
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ImportStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    # Jobs

    def create_job(self, user_id: str, provider: str, league_ref: str) -> LeagueImport:
        job = LeagueImport(
            user_id=user_id,
            provider=provider,
            provider_league_ref=str(league_ref or ""),
            status="SCANNING",
            seasons_found=0,
            seasons_imported=[],
            progress_pct=0,
            error_log=[],
        )
        self.db.add(job)
        self.db.commit()
        self.db.refresh(job)
        return job

    def update_job(self, job: LeagueImport, **fields: Any) -> LeagueImport:
        for name, value in fields.items():
            setattr(job, name, value)
        self.db.commit()
        return job

    def append_error(self, job: LeagueImport, message: str) -> None:
        # JSON columns only persist on reassignment.
        job.error_log = list(job.error_log or []) + [
            {"message": message, "timestamp": _now().isoformat()}
        ]
        self.db.commit()

    def fail_job(self, job: LeagueImport, message: str) -> None:
        self.db.rollback()
        job.status = "FAILED"
        self.append_error(job, message)

    def get_job(self, job_id: int) -> Optional[LeagueImport]:
        return self.db.get(LeagueImport, job_id)

    # Leagues

    def get_league(self, league_id: int) -> Optional[League]:
        return self.db.get(League, league_id)

    def find_or_create_league(
        self,
        user_id: str,
        name: str,
        *,
        sport: str,
        provider: str,
        league_ref: str,
    ) -> League:
        league = (
            self.db.query(League)
            .filter(
                League.owner_user_id == user_id,
                func.lower(League.name) == (name or "").lower(),
            )
            .first()
        )
        if league is not None:
            return league
        league = League(
            name=name or f"Imported from {provider}",
            sport=(sport or "nfl").upper(),
            owner_user_id=user_id,
            status="ACTIVE",
            settings={"importedFrom": provider, "providerLeagueRef": str(league_ref)},
        )
        self.db.add(league)
        self.db.commit()
        self.db.refresh(league)
        logger.info("Created league id=%s name=%s for user=%s", league.id, league.name, user_id)
        return league

    def ensure_membership(self, league_id: int, user_id: str, role: str = "OWNER") -> LeagueMember:
        member = (
            self.db.query(LeagueMember)
            .filter(LeagueMember.league_id == league_id, LeagueMember.user_id == user_id)
            .one_or_none()
        )
        if member is None:
            member = LeagueMember(league_id=league_id, user_id=user_id, role=role)
            self.db.add(member)
            self.db.commit()
        return member

    # Season records

    def upsert_season_record(self, values: dict[str, Any], importer_user_id: Optional[str]) -> str:
        """Insert or update by (league_id, season_year, owner_name); returns "inserted"/"updated"."""
        try:
            existing = (
                self.db.query(HistoricalSeason)
                .filter(
                    HistoricalSeason.league_id == values["league_id"],
                    HistoricalSeason.season_year == values["season_year"],
                    HistoricalSeason.owner_name == values["owner_name"],
                )
                .one_or_none()
            )
            if existing is None:
                self.db.add(HistoricalSeason(**values))
                outcome = "inserted"
            else:
                for name in UPDATABLE_FIELDS:
                    if name in values:
                        setattr(existing, name, values[name])
                claimed = values.get("owner_user_id")
                if claimed:
                    existing.owner_user_id = claimed
                elif importer_user_id and existing.owner_user_id == importer_user_id:
                    existing.owner_user_id = None
                outcome = "updated"
            self.db.commit()
            return outcome
        except Exception as exc:
            self.db.rollback()
            raise PersistenceError(
                f"Failed to save {values.get('owner_name')} ({values.get('season_year')}): {exc}"
            ) from exc

    def count_season_records(self, league_id: int, season_year: int) -> int:
        return (
            self.db.query(func.count(HistoricalSeason.id))
            .filter(
                HistoricalSeason.league_id == league_id,
                HistoricalSeason.season_year == season_year,
            )
            .scalar()
            or 0
        )

    def replace_season(self, league_id: int, season_year: int, records: Iterable[dict[str, Any]]) -> int:
        """Swap one season's records in a single commit; the old rows survive any failure."""
        rows = [HistoricalSeason(**values) for values in records]
        try:
            self.db.query(HistoricalSeason).filter(
                HistoricalSeason.league_id == league_id,
                HistoricalSeason.season_year == season_year,
            ).delete(synchronize_session=False)
            self.db.add_all(rows)
            self.db.commit()
        except Exception as exc:
            self.db.rollback()
            raise PersistenceError(f"Replacing season {season_year} failed: {exc}") from exc
        return len(rows)

    # Imports

    def delete_import(self, job: LeagueImport) -> int:
        """Remove a job and the season records it wrote."""
        import_id = job.id
        try:
            deleted = (
                self.db.query(HistoricalSeason)
                .filter(HistoricalSeason.import_id == import_id)
                .delete(synchronize_session=False)
            )
            self.db.delete(job)
            self.db.commit()
        except Exception as exc:
            self.db.rollback()
            raise PersistenceError(f"Failed to delete import {import_id}: {exc}") from exc
        logger.info("Deleted import %s with %s season records", import_id, deleted)
        return deleted

    # Owner aliases

    def alias_map(self, league_id: int) -> dict[str, str]:
        rows = self.db.query(OwnerAlias).filter(OwnerAlias.league_id == league_id).all()
        return {row.owner_name: row.canonical_name for row in rows}

    def replace_owner_aliases(self, league_id: int, aliases: dict[str, str]) -> int:
        """Swap the league's whole alias set; nothing changes if any row fails."""
        try:
            self.db.query(OwnerAlias).filter(OwnerAlias.league_id == league_id).delete(
                synchronize_session=False
            )
            for owner_name, canonical_name in aliases.items():
                if not owner_name or not canonical_name:
                    raise ValueError("Alias names must be non-empty")
                self.db.add(
                    OwnerAlias(
                        league_id=league_id,
                        owner_name=owner_name,
                        canonical_name=canonical_name,
                    )
                )
            self.db.commit()
        except Exception as exc:
            self.db.rollback()
            raise PersistenceError(f"Failed to replace owner aliases: {exc}") from exc
        return len(aliases)
