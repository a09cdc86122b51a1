"""
FastAPI server.

- GET /v1/supply                 supply metrics, X-Cache: HIT | MISS | STALE
- GET /v1/timestamp/{txid}       transaction timestamp, X-Cache: HIT-BLOCK | HIT-SIG | MISS | UPDATE
- GET /staking/stakers/{url}     staking metadata for an account
- GET /health                    liveness probe
Errors are logged in full and returned as coarse messages.
"""

from __future__ import annotations

import threading
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from acme_metrics import __version__
from acme_metrics.api_server.services import MetricsServices, get_services
from acme_metrics.config import get_settings
from acme_metrics.core.exceptions import MetricsError, NotFound
from acme_metrics.logging import get_logger
from acme_metrics.staking import normalize_account_url

logger = get_logger(__name__)

WARMER_SHUTDOWN_JOIN_SEC = 15.0


# -----------------------------------------------------------------------------
# Response models
# -----------------------------------------------------------------------------


class SupplyResponse(BaseModel):
    """GET /v1/supply response, whole ACME."""

    max: int = Field(..., description="Supply limit")
    total: int = Field(..., description="Issued tokens")
    circulating: int = Field(..., description="Issued minus staked")
    circulatingTokens: int = Field(..., description="Alias of circulating")
    staked: int = Field(..., description="Tokens held by registered staking accounts")


class ChainEntryModel(BaseModel):
    chain: str
    block: int
    time: str


class TimestampResponse(BaseModel):
    """GET /v1/timestamp/{txid} response. Zero/empty status and blocks are omitted."""

    chains: list[ChainEntryModel]
    status: str = ""
    minorBlock: int = 0
    majorBlock: int = 0


class StakerResponse(BaseModel):
    """GET /staking/stakers/{url} response. Empty fields are omitted."""

    url: str
    type: str = ""
    delegate: str = ""
    rewards: str = ""
    identity: str = ""


# -----------------------------------------------------------------------------
# Lifespan: optional background cache warmer
# -----------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the cache warmer thread when CACHE_WARM_INTERVAL_SEC > 0; stop it on shutdown."""
    from acme_metrics.agent_worker.runner import run_cache_warmer

    interval = get_settings().cache_warm_interval_sec
    stop_event = threading.Event()
    thread: threading.Thread | None = None
    if interval > 0:
        thread = threading.Thread(
            target=run_cache_warmer,
            args=(get_services(), stop_event, interval),
            name="cache-warmer",
            daemon=True,
        )
        thread.start()
        logger.info("cache_warmer_started", interval_sec=interval)

    yield

    stop_event.set()
    if thread is not None:
        thread.join(timeout=WARMER_SHUTDOWN_JOIN_SEC)
        if thread.is_alive():
            logger.warning("cache_warmer_shutdown_timeout", timeout_sec=WARMER_SHUTDOWN_JOIN_SEC)
        else:
            logger.info("cache_warmer_stopped")


# -----------------------------------------------------------------------------
# App and routes
# -----------------------------------------------------------------------------

app = FastAPI(
    title="ACME Metrics API",
    description="ACME circulating supply and transaction timestamps for the Accumulate network.",
    version=__version__,
    lifespan=lifespan,
)


@app.get(
    "/v1/supply",
    response_model=SupplyResponse,
)
def get_supply(response: Response, services: MetricsServices = Depends(get_services)) -> SupplyResponse:
    """Circulating supply; served from cache for up to the configured TTL."""
    try:
        cached = services.supply.get_supply()
    except Exception as e:
        logger.exception("supply_fetch_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Failed to fetch metrics") from e
    response.headers["X-Cache"] = cached.state
    return SupplyResponse(**cached.value.to_dict())


@app.get(
    "/v1/timestamp/{txid:path}",
    response_model=TimestampResponse,
    response_model_exclude_defaults=True,
)
def get_timestamp(
    txid: str,
    response: Response,
    services: MetricsServices = Depends(get_services),
) -> TimestampResponse:
    """When a transaction was recorded: block time once executed, earliest signature time before."""
    try:
        lookup = services.timestamps.resolve(txid)
    except NotFound as e:
        logger.info("timestamp_not_found", txid=txid, error=str(e))
        raise HTTPException(status_code=404, detail="Transaction not found") from e
    except Exception as e:
        logger.exception("timestamp_resolve_failed", txid=txid, error=str(e))
        raise HTTPException(status_code=500, detail="Failed to query transaction") from e
    response.headers["X-Cache"] = lookup.cache_state
    return TimestampResponse(**lookup.record.to_public_dict())


@app.get(
    "/staking/stakers/{url:path}",
    response_model=StakerResponse,
    response_model_exclude_defaults=True,
)
def get_staker(url: str, services: MetricsServices = Depends(get_services)) -> StakerResponse:
    """Staking metadata for an account in the registry (acc:// prefix optional)."""
    account_url = normalize_account_url(url)
    try:
        info = services.staking.find_account(account_url)
    except NotFound as e:
        raise HTTPException(status_code=404, detail="Account not found in staking registry") from e
    except MetricsError as e:
        logger.warning("staker_lookup_failed", account=account_url, error=str(e))
        raise HTTPException(status_code=404, detail="Account not found in staking registry") from e
    return StakerResponse(**info.to_dict())


@app.get("/health")
def health() -> dict[str, str]:
    """Liveness probe."""
    return {
        "status": "healthy",
        "time": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
    }


@app.exception_handler(HTTPException)
def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Consistent JSON error body; no internal detail."""
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})
