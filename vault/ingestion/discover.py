"""Discovery CLI: list the seasons a provider reports for a league."""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path

from vault.ingestion.errors import ProviderError
from vault.ingestion.providers import PROVIDERS, build_adapter, build_credentials


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run provider discovery for a league and print the seasons found.",
    )
    parser.add_argument("--provider", type=str, default="sleeper", help=f"One of: {', '.join(PROVIDERS)}.")
    parser.add_argument("--league-ref", type=str, default="", help="Provider league id.")
    parser.add_argument("--espn-s2", help="ESPN espn_s2 cookie.")
    parser.add_argument("--swid", help="ESPN SWID cookie.")
    parser.add_argument("--access-token", help="Yahoo OAuth access token.")
    parser.add_argument("--api-key", help="MFL API key.")
    parser.add_argument("--standings-csv", type=Path, help="Fantrax standings CSV file.")
    return parser.parse_args()


def _normalize_provider(raw: str) -> str:
    value = raw.strip().lower()
    if value not in PROVIDERS:
        supported = ", ".join(sorted(PROVIDERS))
        raise SystemExit(f"Unsupported provider: {value}. Supported providers: {supported}")
    return value


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    args = _parse_args()
    provider = _normalize_provider(args.provider)

    adapter = build_adapter(provider)
    credentials = build_credentials(
        provider,
        espn_s2=args.espn_s2,
        swid=args.swid,
        access_token=args.access_token,
        api_key=args.api_key,
        standings_csv=args.standings_csv.read_text(encoding="utf-8") if args.standings_csv else None,
    )
    try:
        discovery = asyncio.run(adapter.discover(args.league_ref, credentials))
    except ProviderError as exc:
        logging.error("%s error: %s", provider, exc)
        raise SystemExit(1) from exc

    logging.info(
        "Found %s seasons for %s league=%s (%s)",
        discovery.total_seasons,
        provider,
        args.league_ref,
        discovery.name,
    )
    for season in discovery.seasons:
        logging.info("  %s  ref=%s  teams=%s  %s", season.year, season.ref, season.team_count, season.name or "")


if __name__ == "__main__":
    main()
