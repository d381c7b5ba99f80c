"""Supported import providers and their adapters."""

from __future__ import annotations

from typing import Any, Optional

from vault.ingestion.archive import RawArchiveWriter
from vault.ingestion.base import ProviderAdapter
from vault.ingestion.cache import TimedCache
from vault.ingestion.espn import EspnAdapter
from vault.ingestion.fantrax import FantraxAdapter
from vault.ingestion.mfl import MflAdapter
from vault.ingestion.schema import EspnCookies, FantraxCsv, MflApiKey, YahooOAuth
from vault.ingestion.sleeper import SleeperAdapter
from vault.ingestion.yahoo import YahooAdapter
from vault.settings import ImportSettings

PROVIDERS: dict[str, type[ProviderAdapter]] = {
    "sleeper": SleeperAdapter,
    "espn": EspnAdapter,
    "yahoo": YahooAdapter,
    "mfl": MflAdapter,
    "fantrax": FantraxAdapter,
}


def get_adapter_class(provider: str) -> type[ProviderAdapter] | None:
    """Return the adapter class for a provider key (e.g., sleeper).

    Returns None when the provider is not supported.
    """

    return PROVIDERS.get((provider or "").strip().lower())


def build_credentials(
    provider: str,
    *,
    espn_s2: Optional[str] = None,
    swid: Optional[str] = None,
    access_token: Optional[str] = None,
    api_key: Optional[str] = None,
    standings_csv: Optional[str] = None,
    draft_csv: Optional[str] = None,
    season_year: Optional[int] = None,
    league_name: Optional[str] = None,
) -> Any:
    """Pack loose credential fields into the shape the provider's adapter expects."""
    key = (provider or "").strip().lower()
    if key == "espn":
        return EspnCookies(espn_s2=espn_s2, swid=swid)
    if key == "yahoo":
        return YahooOAuth(access_token=access_token) if access_token else None
    if key == "mfl":
        return MflApiKey(api_key=api_key) if api_key else None
    if key == "fantrax":
        if not standings_csv:
            return None
        return FantraxCsv(
            standings_csv=standings_csv,
            draft_csv=draft_csv,
            season_year=season_year,
            league_name=league_name,
        )
    return None


def build_adapter(
    provider: str,
    *,
    archive: Optional[RawArchiveWriter] = None,
    settings: Optional[ImportSettings] = None,
    name_cache: Optional[TimedCache] = None,
    **kwargs: Any,
) -> ProviderAdapter:
    adapter_class = get_adapter_class(provider)
    if adapter_class is None:
        raise ValueError(f"Unsupported provider: {provider}")
    if adapter_class is SleeperAdapter:
        kwargs["name_cache"] = name_cache
    return adapter_class(archive=archive, settings=settings, **kwargs)
