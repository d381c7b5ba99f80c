"""CLI entrypoint for a full league history import."""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path

from vault.db import Base, SessionLocal, engine
from vault.ingestion import yahoo_auth
from vault.ingestion.archive import RawArchiveWriter
from vault.ingestion.errors import ProviderError
from vault.ingestion.orchestrator import ImportResult, run_full_import
from vault.ingestion.providers import PROVIDERS, build_adapter, build_credentials
from vault.ingestion.sleeper import build_player_cache
from vault.ingestion.store import ImportStore
from vault.settings import load_settings


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Import every season of a league from one provider into the vault.",
    )
    parser.add_argument("--provider", required=True, help=f"One of: {', '.join(PROVIDERS)}.")
    parser.add_argument("--league-ref", default="", help="Provider league id.")
    parser.add_argument("--user-id", required=True, help="Importing user id.")
    parser.add_argument("--importer-name", help="Display name to match against season owners.")
    parser.add_argument("--seasons", help="Comma-separated years to import (default: all found).")
    parser.add_argument("--target-league-id", type=int, help="Import into this existing league.")
    parser.add_argument("--espn-s2", help="ESPN espn_s2 cookie.")
    parser.add_argument("--swid", help="ESPN SWID cookie.")
    parser.add_argument("--access-token", help="Yahoo OAuth access token (default: stored token).")
    parser.add_argument("--api-key", help="MFL API key.")
    parser.add_argument("--standings-csv", type=Path, help="Fantrax standings CSV file.")
    parser.add_argument("--draft-csv", type=Path, help="Fantrax draft CSV file.")
    parser.add_argument("--season-year", type=int, help="Fantrax season year.")
    parser.add_argument("--league-name", help="Fantrax league name.")
    parser.add_argument(
        "--player-names",
        action="store_true",
        help="Resolve Sleeper player names (downloads the player table).",
    )
    return parser.parse_args()


def _parse_seasons(raw: str | None) -> list[int] | None:
    if not raw:
        return None
    try:
        return [int(part) for part in raw.split(",") if part.strip()]
    except ValueError as exc:
        raise SystemExit(f"--seasons must be comma-separated years: {raw}") from exc


def _read(path: Path | None) -> str | None:
    return path.read_text(encoding="utf-8") if path else None


async def _run(args: argparse.Namespace) -> ImportResult:
    settings = load_settings()
    archive = RawArchiveWriter(SessionLocal)
    name_cache = build_player_cache(settings) if args.player_names else None
    adapter = build_adapter(args.provider, archive=archive, settings=settings, name_cache=name_cache)

    with SessionLocal() as db:
        if args.provider == "yahoo":
            credentials = yahoo_auth.load_credentials(db, SessionLocal, args.user_id, args.access_token)
        else:
            credentials = build_credentials(
                args.provider,
                espn_s2=args.espn_s2,
                swid=args.swid,
                api_key=args.api_key,
                standings_csv=_read(args.standings_csv),
                draft_csv=_read(args.draft_csv),
                season_year=args.season_year,
                league_name=args.league_name,
            )
        try:
            return await run_full_import(
                adapter,
                args.league_ref,
                args.user_id,
                ImportStore(db),
                credentials,
                target_league_id=args.target_league_id,
                selected_seasons=_parse_seasons(args.seasons),
                importer_name=args.importer_name,
            )
        finally:
            await archive.drain()


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    args = _parse_args()
    args.provider = args.provider.strip().lower()
    if args.provider not in PROVIDERS:
        raise SystemExit(f"Unsupported provider: {args.provider}. Supported: {', '.join(PROVIDERS)}")

    Base.metadata.create_all(bind=engine)
    logging.info("Starting import provider=%s league_ref=%s", args.provider, args.league_ref)
    try:
        result = asyncio.run(_run(args))
    except ProviderError as exc:
        logging.error("Import failed: %s", exc)
        raise SystemExit(1) from exc

    logging.info(
        "Done: import=%s league=%s name=%s seasons=%s repaired=%s total=%s",
        result.import_id,
        result.league_id,
        result.league_name,
        result.seasons_imported,
        result.repaired_seasons,
        result.total_seasons,
    )


if __name__ == "__main__":
    main()
