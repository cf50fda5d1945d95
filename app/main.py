"""
FastAPI Application - Funding Rate Monitor API

Read views over collected perpetual-futures funding rates plus a live update
stream.

Supported Exchanges:
    Binance, Bybit, HTX, Gate.io, Bitget, MEXC, BingX, Bitmart, KuCoin, OKX

Features:
    - Latest funding rate per exchange and symbol
    - Hot rates (largest absolute funding rates)
    - Per-symbol history and per-exchange statistics
    - Live "funding-rates-update" events over WebSocket
    - Collection status per exchange

Usage:
    uvicorn app.main:app --reload --host 0.0.0.0 --port 8000

Docs:
    - Swagger: http://localhost:8000/docs
    - ReDoc: http://localhost:8000/redoc
"""

from fastapi import FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from typing import List, Optional
from contextlib import asynccontextmanager
import asyncio

from core.config import settings, validate_configuration
from core.exchange_manager import AdapterRegistry
from core.fetcher import ResilientFetcher
from core.logging import logger
from core.schemas import Exchange, ExchangeStats, FundingRateFilters, FundingRateWithExchange
from services.alert_monitor import HotRateAlertMonitor
from services.collection_scheduler import CollectionScheduler
from services.update_publisher import UpdatePublisher
from storage import InMemoryStorage


# ============================================
# Pipeline Wiring
# ============================================

storage = InMemoryStorage(retention_hours=settings.history_retention_hours)
publisher = UpdatePublisher.from_settings()
registry = AdapterRegistry(enabled=settings.enabled_exchanges_list)
fetcher = ResilientFetcher.from_settings()
scheduler = CollectionScheduler(registry, fetcher, storage, publisher)
alert_monitor = HotRateAlertMonitor()


# ============================================
# Lifespan Management
# ============================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown."""
    # Startup
    logger.info("=== Application Starting ===")
    try:
        validate_configuration()
        await fetcher.start()
        await scheduler.initialize_exchanges()
        unsubscribe_alerts = alert_monitor.attach(publisher)
        await scheduler.start()
        logger.info("=== Started Successfully ===")
    except Exception as e:
        logger.error(f"Startup failed: {e}")
        raise

    yield

    # Shutdown
    logger.info("=== Shutting Down ===")
    try:
        await scheduler.stop()
        unsubscribe_alerts()
        await fetcher.close()
        logger.info("=== Shutdown Complete ===")
    except Exception as e:
        logger.error(f"Shutdown error: {e}")


# ============================================
# FastAPI Application
# ============================================

app = FastAPI(
    title="Funding Rate Monitor API",
    description=(
        "Perpetual-futures funding rates collected from multiple exchanges.\n\n"
        "## REST Endpoints\n"
        "- `GET /api/exchanges` - Registered exchanges\n"
        "- `GET /api/exchanges/stats` - Symbols tracked and mean absolute rate per exchange\n"
        "- `GET /api/funding-rates` - Filtered funding rates, newest first\n"
        "- `GET /api/funding-rates/latest` - Latest rate per exchange and symbol\n"
        "- `GET /api/funding-rates/hot/{threshold}` - Rates with |rate| >= threshold\n"
        "- `GET /api/funding-rates/history/{symbol}/{exchange_id}/{hours}` - Rate history\n"
        "- `GET /api/collection/status` - Last collection cycle per exchange\n"
        "- `GET /health` - Health check\n\n"
        "## WebSocket\n"
        "- `ws://{host}/ws` - `funding-rates-update` events after every collection cycle.\n"
        "  Send `{\"type\": \"ping\"}` to receive `{\"type\": \"pong\"}`."
    ),
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"]
)


def _parse_ids(raw: Optional[str]) -> Optional[List[int]]:
    if not raw:
        return None
    try:
        return [int(part) for part in raw.split(",") if part.strip()]
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid exchange_ids: {raw}")


# ============================================
# System Endpoints
# ============================================

@app.get("/", tags=["System"])
async def root():
    """API information and registered exchanges."""
    return {
        "name": "Funding Rate Monitor API",
        "version": "1.0.0",
        "status": "operational",
        "docs": "/docs",
        "exchanges": registry.list_exchanges()
    }


@app.get("/health", tags=["System"])
async def health_check():
    """Health check - degraded when the last cycle of any exchange failed."""
    failed = [name for name, result in scheduler.last_results.items() if not result.success]
    return {
        "status": "healthy" if not failed else "degraded",
        "collecting": scheduler.is_running,
        "exchanges": len(registry),
        "failed_exchanges": failed,
        "subscribers": publisher.subscriber_count
    }


@app.get("/api/collection/status", tags=["System"])
async def collection_status():
    """Current state and last cycle result per exchange."""
    return {
        "running": scheduler.is_running,
        "interval_seconds": scheduler.interval,
        "exchanges": {
            name: {
                "state": scheduler.states.get(name).value if name in scheduler.states else None,
                "exchange_id": scheduler.exchange_ids.get(name),
                "last_result": (
                    scheduler.last_results[name].model_dump(mode="json")
                    if name in scheduler.last_results else None
                ),
            }
            for name in registry.list_exchanges()
        }
    }


# ============================================
# Exchange Endpoints
# ============================================

@app.get("/api/exchanges", response_model=List[Exchange], tags=["Exchanges"])
async def list_exchanges():
    """All exchanges known to storage."""
    try:
        return await storage.get_exchanges()
    except Exception as e:
        logger.error(f"Error fetching exchanges: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch exchanges")


@app.get("/api/exchanges/stats", response_model=List[ExchangeStats], tags=["Exchanges"])
async def exchange_stats():
    """Distinct symbols and mean absolute funding rate per exchange."""
    try:
        return await storage.get_exchange_stats()
    except Exception as e:
        logger.error(f"Error fetching exchange stats: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch exchange stats")


# ============================================
# Funding Rate Endpoints
# ============================================

@app.get("/api/funding-rates", response_model=List[FundingRateWithExchange], tags=["Funding Rates"])
async def get_funding_rates(
    exchange_ids: Optional[str] = Query(default=None, description="Comma-separated exchange ids"),
    symbols: Optional[str] = Query(default=None, description="Comma-separated symbols"),
    min_rate: Optional[float] = Query(default=None),
    max_rate: Optional[float] = Query(default=None),
    limit: int = Query(default=25, ge=1, le=1000, description="Number of records"),
    offset: int = Query(default=0, ge=0)
):
    """
    Filtered funding rates, newest first.

    Examples:
        GET /api/funding-rates?symbols=BTCUSDT,ETHUSDT&limit=50
        GET /api/funding-rates?exchange_ids=1,3&min_rate=0.001
    """
    filters = FundingRateFilters(
        exchange_ids=_parse_ids(exchange_ids),
        symbols=[s.strip() for s in symbols.split(",") if s.strip()] if symbols else None,
        min_rate=min_rate,
        max_rate=max_rate,
        limit=limit,
        offset=offset,
    )
    try:
        return await storage.get_funding_rates(filters)
    except Exception as e:
        logger.error(f"Error fetching funding rates: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch funding rates")


@app.get("/api/funding-rates/latest", response_model=List[FundingRateWithExchange], tags=["Funding Rates"])
async def get_latest_funding_rates():
    """Latest funding rate per exchange and symbol, highest rate first."""
    try:
        return await storage.get_latest_funding_rates()
    except Exception as e:
        logger.error(f"Error fetching latest funding rates: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch latest funding rates")


@app.get(
    "/api/funding-rates/hot/{threshold}",
    response_model=List[FundingRateWithExchange],
    tags=["Funding Rates"]
)
async def get_hot_funding_rates(
    threshold: float,
    limit: int = Query(default=50, ge=1, le=1000)
):
    """
    Funding rates whose magnitude is at least `threshold`.

    Examples:
        GET /api/funding-rates/hot/0.002   (0.2%)
    """
    if threshold <= 0:
        raise HTTPException(status_code=400, detail="threshold must be positive")
    try:
        return await storage.get_hot_funding_rates(threshold, limit)
    except Exception as e:
        logger.error(f"Error fetching hot funding rates: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch hot funding rates")


@app.get(
    "/api/funding-rates/history/{symbol}/{exchange_id}/{hours}",
    response_model=List[FundingRateWithExchange],
    tags=["Funding Rates"]
)
async def get_funding_rate_history(symbol: str, exchange_id: int, hours: int):
    """
    Funding rate history for one symbol on one exchange, oldest first.

    Examples:
        GET /api/funding-rates/history/BTCUSDT/2/24
    """
    if hours <= 0:
        raise HTTPException(status_code=400, detail="hours must be positive")
    try:
        return await storage.get_funding_rate_history(symbol, exchange_id, hours)
    except Exception as e:
        logger.error(f"Error fetching funding rate history {symbol}/{exchange_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch funding rate history")


# ============================================
# WebSocket Endpoint
# ============================================

@app.websocket("/ws")
async def websocket_updates(websocket: WebSocket):
    """
    Live funding rate updates.

    Every successful collection cycle pushes
    {"type": "funding-rates-update", "data": [...latest rates...]}.

    Example:
        ws://localhost:8000/ws
    """
    await websocket.accept()
    logger.info("WS connected: funding-rates-update")
    queue = publisher.subscribe_queue()

    async def forward_updates():
        while True:
            event = await queue.get()
            await websocket.send_json(event)

    forward_task = asyncio.create_task(forward_updates(), name="ws_forward_updates")
    try:
        while True:
            message = await websocket.receive_json()
            if isinstance(message, dict) and message.get("type") == "ping":
                await websocket.send_json({"type": "pong"})
    except WebSocketDisconnect:
        logger.info("WS disconnected: funding-rates-update")
    except Exception as e:
        logger.error(f"WS error funding-rates-update: {e}")
        try:
            await websocket.close(code=1011, reason="Internal error")
        except RuntimeError:
            pass
    finally:
        forward_task.cancel()
        await asyncio.gather(forward_task, return_exceptions=True)
        publisher.unsubscribe_queue(queue)
        logger.info("WS ended: funding-rates-update")


# ============================================
# Error Handlers
# ============================================

@app.exception_handler(404)
async def not_found_handler(request, exc):
    """Handle 404 errors."""
    detail = getattr(exc, "detail", None) or "Not found"
    return JSONResponse(status_code=404, content={"detail": detail, "path": str(request.url)})


@app.exception_handler(500)
async def internal_error_handler(request, exc):
    """Handle 500 errors."""
    logger.error(f"Internal error: {exc}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})
