from __future__ import annotations

import asyncio
import logging
import os
from collections import defaultdict
from typing import Any, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from sqlalchemy import desc
from sqlalchemy.orm import Session

from vault.db import Base, SessionLocal, engine, get_db
from vault.health import analyze_league_health
from vault.ingestion import yahoo_auth
from vault.ingestion.archive import RawArchiveWriter
from vault.ingestion.errors import (
    AuthError,
    FetchError,
    NotFoundError,
    PersistenceError,
    ProviderError,
    RateLimitError,
)
from vault.ingestion.orchestrator import run_full_import
from vault.ingestion.providers import build_adapter, build_credentials, get_adapter_class
from vault.ingestion.sleeper import build_player_cache
from vault.ingestion.store import ImportStore
from vault.log_buffer import activity_log, install_activity_log
from vault.models import HistoricalSeason, League, LeagueImport, LeagueMember
from vault.schemas import (
    AliasUpdate,
    DiscoveryOut,
    ImportJobOut,
    ImportRequest,
    ImportResultOut,
    LeagueHistoryOut,
    SeasonRecordOut,
    SeasonRefOut,
    YahooTokenIn,
)
from vault.settings import load_settings

app = FastAPI(title="League Vault")
logger = logging.getLogger(__name__)


@app.on_event("startup")
async def startup() -> None:
    install_activity_log()
    Base.metadata.create_all(bind=engine)
    settings = load_settings()
    app.state.settings = settings
    app.state.archive = RawArchiveWriter(SessionLocal)
    app.state.name_cache = build_player_cache(settings)
    logger.info("League Vault starting up")


@app.on_event("shutdown")
async def shutdown() -> None:
    archive: Optional[RawArchiveWriter] = getattr(app.state, "archive", None)
    if archive is not None:
        await archive.drain()


def current_user_id(x_user_id: str = Header(...)) -> str:
    user_id = x_user_id.strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="X-User-Id header is required")
    return user_id


def _provider_http_error(exc: ProviderError) -> HTTPException:
    if isinstance(exc, AuthError):
        return HTTPException(status_code=401, detail=str(exc))
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, RateLimitError):
        headers = {"Retry-After": str(int(exc.retry_after))} if exc.retry_after else None
        return HTTPException(
            status_code=429,
            detail=f"{exc} Wait a minute and retry the import.",
            headers=headers,
        )
    if isinstance(exc, FetchError):
        return HTTPException(status_code=400, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


def _check_provider(provider: str) -> str:
    key = provider.strip().lower()
    if get_adapter_class(key) is None:
        raise HTTPException(status_code=404, detail=f"Unsupported provider: {provider}")
    return key


def _credentials(provider: str, payload: ImportRequest, db: Session, user_id: str) -> Any:
    if provider == "yahoo":
        return yahoo_auth.load_credentials(db, SessionLocal, user_id, payload.access_token)
    return build_credentials(
        provider,
        espn_s2=payload.espn_s2,
        swid=payload.swid,
        api_key=payload.api_key,
        standings_csv=payload.standings_csv,
        draft_csv=payload.draft_csv,
        season_year=payload.season_year,
        league_name=payload.league_name,
    )


def _adapter(request: Request, provider: str):
    state = request.app.state
    return build_adapter(
        provider,
        archive=getattr(state, "archive", None),
        settings=getattr(state, "settings", None),
        name_cache=getattr(state, "name_cache", None),
    )


def _member_league(db: Session, league_id: int, user_id: str) -> League:
    league = db.get(League, league_id)
    if league is None:
        raise HTTPException(status_code=404, detail="League not found")
    member = (
        db.query(LeagueMember)
        .filter(LeagueMember.league_id == league_id, LeagueMember.user_id == user_id)
        .one_or_none()
    )
    if member is None and league.owner_user_id != user_id:
        raise HTTPException(status_code=403, detail="Not a member of this league")
    return league


@app.post("/api/imports/{provider}/discover", response_model=DiscoveryOut)
async def api_discover(
    provider: str,
    payload: ImportRequest,
    request: Request,
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    key = _check_provider(provider)
    try:
        credentials = await asyncio.to_thread(_credentials, key, payload, db, user_id)
        discovery = await _adapter(request, key).discover(payload.league_ref, credentials)
    except ProviderError as exc:
        raise _provider_http_error(exc) from exc
    return DiscoveryOut(
        name=discovery.name,
        sport=discovery.sport,
        total_seasons=discovery.total_seasons,
        seasons=[
            SeasonRefOut(year=s.year, name=s.name, team_count=s.team_count)
            for s in discovery.seasons
        ],
    )


@app.post("/api/imports/{provider}/import", response_model=ImportResultOut)
async def api_import(
    provider: str,
    payload: ImportRequest,
    request: Request,
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    key = _check_provider(provider)
    try:
        credentials = await asyncio.to_thread(_credentials, key, payload, db, user_id)
        result = await run_full_import(
            _adapter(request, key),
            payload.league_ref or payload.league_name or "",
            user_id,
            ImportStore(db),
            credentials,
            target_league_id=payload.target_league_id,
            selected_seasons=payload.selected_seasons,
            importer_name=payload.importer_name,
        )
    except ProviderError as exc:
        raise _provider_http_error(exc) from exc
    return ImportResultOut(
        import_id=result.import_id,
        league_id=result.league_id,
        league_name=result.league_name,
        seasons_imported=result.seasons_imported,
        repaired_seasons=result.repaired_seasons,
        total_seasons=result.total_seasons,
    )


@app.get("/api/imports", response_model=list[ImportJobOut])
def list_imports(
    status: str | None = None,
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    query = db.query(LeagueImport).filter(LeagueImport.user_id == user_id)
    if status:
        query = query.filter(LeagueImport.status == status.upper())
    return query.order_by(desc(LeagueImport.created_at), desc(LeagueImport.id)).limit(100).all()


@app.get("/api/imports/{import_id}", response_model=ImportJobOut)
def get_import(
    import_id: int,
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    job = db.get(LeagueImport, import_id)
    if job is None or job.user_id != user_id:
        raise HTTPException(status_code=404, detail="Import not found")
    return job


@app.delete("/api/imports/{import_id}")
def delete_import(
    import_id: int,
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    store = ImportStore(db)
    job = store.get_job(import_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Import not found")
    if job.user_id != user_id:
        raise HTTPException(status_code=403, detail="Not your import")
    try:
        deleted = store.delete_import(job)
    except PersistenceError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return {"ok": True, "deleted_records": deleted}


@app.get("/api/leagues/{league_id}/history", response_model=LeagueHistoryOut)
def league_history(
    league_id: int,
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    league = _member_league(db, league_id, user_id)
    rows = (
        db.query(HistoricalSeason)
        .filter(HistoricalSeason.league_id == league_id)
        .order_by(HistoricalSeason.season_year, HistoricalSeason.final_standing)
        .all()
    )
    seasons: dict[int, list[SeasonRecordOut]] = defaultdict(list)
    for row in rows:
        seasons[row.season_year].append(SeasonRecordOut.model_validate(row))
    return LeagueHistoryOut(league_id=league.id, name=league.name, seasons=dict(seasons))


@app.get("/api/leagues/{league_id}/health")
def league_health(
    league_id: int,
    current_year: int | None = None,
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    _member_league(db, league_id, user_id)
    return analyze_league_health(db, league_id, current_year=current_year)


@app.put("/api/leagues/{league_id}/aliases")
def replace_aliases(
    league_id: int,
    payload: AliasUpdate,
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    _member_league(db, league_id, user_id)
    try:
        count = ImportStore(db).replace_owner_aliases(league_id, payload.aliases)
    except PersistenceError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    logger.info("Replaced %s owner aliases for league=%s", count, league_id)
    return {"ok": True, "count": count}


@app.post("/api/auth/yahoo/token")
def save_yahoo_token(
    payload: YahooTokenIn,
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    row = yahoo_auth.save_tokens(
        db,
        user_id,
        payload.access_token,
        payload.refresh_token,
        payload.expires_in,
    )
    return {"ok": True, "expires_at": row.expires_at}


@app.get("/api/auth/yahoo")
def yahoo_status(
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return yahoo_auth.token_status(db, user_id)


@app.delete("/api/auth/yahoo")
def yahoo_disconnect(
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    yahoo_auth.delete_tokens(db, user_id)
    return {"ok": True}


@app.get("/api/logs")
def api_logs(limit: int = 100, level: str | None = None, import_id: int | None = None):
    try:
        entries = activity_log().entries(limit, min_level=level, import_id=import_id)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"entries": entries}


def serve() -> None:
    import uvicorn

    host = os.getenv("VAULT_HOST", "127.0.0.1")
    port = int(os.getenv("VAULT_PORT", "8000"))
    logger.info("Starting League Vault API on %s:%d", host, port)
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    serve()
