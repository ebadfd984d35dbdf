from __future__ import annotations

from typing import Annotated

from fastapi import Depends, FastAPI, HTTPException, Query
from loguru import logger

from indexer import MultiChainIndexerService

from . import crud, schemas
from .core.config import settings
from .db import get_db, init_db
from .models import CallStatus, ChainType
from .services.call_service import CallNotFound, CallNotSettled, CallQuery, CallService

app = FastAPI(title="Call Indexer API", version="0.1.0", debug=settings.debug)

_indexer_service: MultiChainIndexerService | None = None


def get_indexer_service() -> MultiChainIndexerService:
    """Process-wide indexer facade, built from settings on first use."""

    global _indexer_service
    if _indexer_service is None:
        _indexer_service = MultiChainIndexerService.from_settings(settings)
    return _indexer_service


@app.on_event("startup")
def on_startup() -> None:
    """Initialize database connections and, if configured, the indexers."""

    init_db()
    if settings.indexer_autostart:
        get_indexer_service().start()


@app.on_event("shutdown")
def on_shutdown() -> None:
    if _indexer_service is not None:
        logger.info("Shutting down indexers")
        _indexer_service.stop()


@app.get("/healthz", tags=["system"])
def healthcheck() -> dict[str, str]:
    """Basic readiness check consumed by infrastructure monitors."""

    return {"status": "ok"}


def _chain(chain: str) -> ChainType:
    try:
        return ChainType(chain.lower())
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=f"Unknown chain {chain}") from exc


def _optional_chain(
    chain: Annotated[str | None, Query(description="Restrict to one chain (base|stellar)")] = None,
) -> ChainType | None:
    return _chain(chain) if chain else None


def _call_service(db=Depends(get_db)) -> CallService:
    return CallService(db)


@app.get("/indexer/status", response_model=schemas.ServiceStatus, tags=["indexer"])
def indexer_status(service: MultiChainIndexerService = Depends(get_indexer_service)):
    return service.status()


@app.get("/indexer/stats", response_model=dict[str, schemas.ChainStatistics], tags=["indexer"])
def indexer_stats(service: MultiChainIndexerService = Depends(get_indexer_service)):
    """Per-chain event counts plus the last ledger/block each indexer completed."""

    return service.statistics()


@app.get("/events", response_model=schemas.ChainEventList, tags=["events"])
def list_events(
    *,
    event_type: Annotated[str, Query(description="Event type", examples=["StakeAdded"])],
    chain: ChainType | None = Depends(_optional_chain),
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
    db=Depends(get_db),
):
    """Most recently indexed events of one type."""

    items = crud.list_events_by_type(db, event_type, chain=chain, limit=limit)
    return schemas.ChainEventList(total=len(items), items=items)


@app.get("/events/contract/{contract_id}", response_model=schemas.ChainEventList, tags=["events"])
def list_contract_events(
    contract_id: str,
    *,
    chain: ChainType | None = Depends(_optional_chain),
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
    db=Depends(get_db),
):
    """Events emitted by one contract, newest ledger/block first."""

    items = crud.list_events_by_contract(db, contract_id, chain=chain, limit=limit)
    return schemas.ChainEventList(total=len(items), items=items)


@app.get("/calls", response_model=schemas.CallList, tags=["calls"])
def list_calls(
    *,
    chain: ChainType | None = Depends(_optional_chain),
    status: CallStatus | None = None,
    limit: Annotated[int, Query(ge=1, le=500)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
    service: CallService = Depends(_call_service),
):
    """Calls ordered by end time, soonest first."""

    items = service.list_calls(CallQuery(chain=chain, status=status, limit=limit, offset=offset))
    return schemas.CallList(total=len(items), items=items)


@app.get("/calls/{chain}/{call_id}", response_model=schemas.Call, tags=["calls"])
def get_call(chain: str, call_id: str, service: CallService = Depends(_call_service)):
    call = service.get_call(_chain(chain), call_id)
    if not call:
        raise HTTPException(status_code=404, detail="Call not found")
    return call


@app.get("/calls/{chain}/{call_id}/payout", response_model=schemas.Payout, tags=["calls"])
def get_payout(
    chain: str,
    call_id: str,
    *,
    stake: Annotated[int, Query(ge=0, description="Amount the user staked, in base units")],
    side: Annotated[bool, Query(description="True for the long/yes side")],
    service: CallService = Depends(_call_service),
):
    """Parimutuel payout for a stake on a settled call."""

    try:
        return service.payout(_chain(chain), call_id, stake=stake, side=side)
    except CallNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except CallNotSettled as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
