"""Run a whole-league import: discover, import every season, verify, repair."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from vault.identity import resolve_owner_match
from vault.ingestion.base import ProviderAdapter
from vault.ingestion.errors import NotFoundError, PersistenceError
from vault.ingestion.normalize import build_season_records, canonical_owner_name
from vault.ingestion.schema import SeasonData, SeasonRef
from vault.ingestion.store import ImportStore
from vault.models import LeagueImport

logger = logging.getLogger(__name__)


@dataclass
class ImportResult:
    import_id: int
    league_id: int
    league_name: str
    seasons_imported: list[int] = field(default_factory=list)
    repaired_seasons: list[int] = field(default_factory=list)
    total_seasons: int = 0


def progress_after(done: int, total: int) -> int:
    return 10 + round(80 * done / total)


def _season_records(
    data: SeasonData,
    *,
    league_id: int,
    import_id: int,
    user_id: str,
    importer_name: Optional[str],
) -> list[dict[str, Any]]:
    owner_names = [canonical_owner_name(roster) for roster in data.rosters]
    match = resolve_owner_match(importer_name, owner_names)
    if match is not None:
        logger.info("Season %s: importer matched owner=%s", data.season_year, match.owner_name)
    return build_season_records(
        data,
        league_id=league_id,
        import_id=import_id,
        owner_match=match,
        importer_user_id=user_id,
    )


def _resolve_league_id(
    store: ImportStore,
    *,
    user_id: str,
    provider: str,
    league_ref: str,
    name: str,
    sport: str,
    target_league_id: Optional[int],
) -> int:
    if target_league_id is not None:
        league = store.get_league(target_league_id)
        if league is None:
            raise NotFoundError("Target league not found")
    else:
        league = store.find_or_create_league(
            user_id,
            name,
            sport=sport,
            provider=provider,
            league_ref=league_ref,
        )
    league_id = league.id
    store.ensure_membership(league_id, user_id)
    return league_id


def _persist_season(store: ImportStore, records: Iterable[dict[str, Any]], user_id: str) -> int:
    saved = 0
    for values in records:
        try:
            store.upsert_season_record(values, user_id)
            saved += 1
        except PersistenceError:
            logger.exception(
                "Skipping team owner=%s season=%s",
                values.get("owner_name"),
                values.get("season_year"),
            )
    return saved


async def _repair_seasons(
    adapter: ProviderAdapter,
    store: ImportStore,
    job: LeagueImport,
    job_id: int,
    league_id: int,
    seasons: list[SeasonRef],
    payload_counts: dict[int, int],
    credentials: Any,
    *,
    user_id: str,
    importer_name: Optional[str],
) -> list[int]:
    minimum = adapter.settings.repair_min_expected_teams
    repaired: list[int] = []
    for season_ref in seasons:
        year = season_ref.year
        expected = season_ref.team_count or payload_counts.get(year) or 0
        if expected < minimum:
            continue
        persisted = await asyncio.to_thread(store.count_season_records, league_id, year)
        if persisted >= expected / 2:
            continue

        logger.warning(
            "Season %s has %s of %s teams, re-importing",
            year,
            persisted,
            expected,
            extra={"import_id": job_id},
        )
        try:
            # Stored rows are only swapped out once a complete replacement is in hand.
            data = await adapter.import_season(season_ref, year, credentials)
            records = _season_records(
                data,
                league_id=league_id,
                import_id=job_id,
                user_id=user_id,
                importer_name=importer_name,
            )
            unique: dict[str, dict[str, Any]] = {}
            for values in records:
                unique.setdefault(values["owner_name"], values)
            await asyncio.to_thread(store.replace_season, league_id, year, list(unique.values()))
            repaired.append(year)
            logger.info(
                "Repaired season %s with %s records", year, len(unique), extra={"import_id": job_id}
            )
        except Exception as exc:
            logger.exception("Repair failed for season %s", year, extra={"import_id": job_id})
            await asyncio.to_thread(store.append_error, job, f"Repair {year}: {exc}")
    return repaired


async def run_full_import(
    adapter: ProviderAdapter,
    league_ref: str,
    user_id: str,
    store: ImportStore,
    credentials: Any = None,
    *,
    target_league_id: Optional[int] = None,
    selected_seasons: Optional[Iterable[int]] = None,
    importer_name: Optional[str] = None,
) -> ImportResult:
    """Import every discovered season of ``league_ref`` into the vault.

    Database work runs in worker threads, one call at a time, so the event loop
    stays free while a long import is in flight.
    """
    job = await asyncio.to_thread(store.create_job, user_id, adapter.provider, league_ref)
    job_id = job.id
    scope = {"import_id": job_id}
    logger.info("Import %s started provider=%s league_ref=%s", job_id, adapter.provider, league_ref, extra=scope)

    try:
        discovery = await adapter.discover(league_ref, credentials)
    except Exception as exc:
        logger.warning("Import %s discovery failed: %s", job_id, exc, extra=scope)
        await asyncio.to_thread(store.fail_job, job, str(exc))
        raise

    await asyncio.to_thread(
        store.update_job,
        job,
        provider_league_name=discovery.name,
        seasons_found=discovery.total_seasons,
        status="IMPORTING",
        progress_pct=10,
    )

    seasons = list(discovery.seasons)
    if selected_seasons is not None:
        wanted = {int(year) for year in selected_seasons}
        seasons = [season for season in seasons if season.year in wanted]

    imported: list[int] = []
    payload_counts: dict[int, int] = {}
    try:
        league_id = await asyncio.to_thread(
            _resolve_league_id,
            store,
            user_id=user_id,
            provider=adapter.provider,
            league_ref=league_ref,
            name=discovery.name,
            sport=discovery.sport,
            target_league_id=target_league_id,
        )
        await asyncio.to_thread(store.update_job, job, canonical_league_id=league_id)

        for done, season_ref in enumerate(seasons, start=1):
            year = season_ref.year
            try:
                data = await adapter.import_season(season_ref, year, credentials)
                payload_counts[year] = len(data.rosters)
                records = _season_records(
                    data,
                    league_id=league_id,
                    import_id=job_id,
                    user_id=user_id,
                    importer_name=importer_name,
                )
                saved = await asyncio.to_thread(_persist_season, store, records, user_id)
                imported.append(year)
                logger.info(
                    "Import %s season %s saved %s/%s teams", job_id, year, saved, len(records), extra=scope
                )
            except Exception as exc:
                logger.exception("Import %s season %s failed", job_id, year, extra=scope)
                await asyncio.to_thread(store.append_error, job, f"Season {year}: {exc}")

            await asyncio.to_thread(
                store.update_job,
                job,
                progress_pct=progress_after(done, len(seasons)),
                seasons_imported=list(imported),
            )

        await asyncio.to_thread(
            store.update_job,
            job,
            status="COMPLETE",
            progress_pct=100,
            completed_at=datetime.now(timezone.utc),
        )
    except Exception as exc:
        logger.exception("Import %s failed", job_id, extra=scope)
        await asyncio.to_thread(store.fail_job, job, str(exc))
        raise

    repaired = await _repair_seasons(
        adapter,
        store,
        job,
        job_id,
        league_id,
        seasons,
        payload_counts,
        credentials,
        user_id=user_id,
        importer_name=importer_name,
    )

    logger.info(
        "Import %s complete league=%s seasons=%s repaired=%s",
        job_id,
        league_id,
        imported,
        repaired,
        extra=scope,
    )
    return ImportResult(
        import_id=job_id,
        league_id=league_id,
        league_name=discovery.name,
        seasons_imported=imported,
        repaired_seasons=repaired,
        total_seasons=discovery.total_seasons,
    )
