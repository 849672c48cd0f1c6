import time
from typing import Iterator, List, Optional

import structlog
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from xburn_indexer import __version__
from xburn_indexer.api.models import (
    BurnLockItem,
    IndexerStatus,
    LockListResponse,
    TermStatsItem,
    TopBurnerItem,
    WalletStatsResponse,
)
from xburn_indexer.database.connection import Database, get_db
from xburn_indexer.models.state import IndexerState
from xburn_indexer.services.health import HealthService
from xburn_indexer.services.query_service import QueryService

logger = structlog.get_logger()

router = APIRouter(prefix="/v1")


def get_session(request: Request) -> Iterator[Session]:
    yield from get_db(request.app.state.database)


def get_query_service(request: Request, db: Session = Depends(get_session)) -> QueryService:
    return QueryService(db, request.app.state.settings.CHAIN_ID)


@router.get("/indexer/status", response_model=IndexerStatus)
async def get_indexer_status(request: Request, db: Session = Depends(get_session)):
    app_settings = request.app.state.settings
    state = db.get(IndexerState, app_settings.CHAIN_ID)
    if state is None:
        return IndexerStatus(chain_id=app_settings.CHAIN_ID, chain_name=app_settings.CHAIN_NAME)
    return IndexerStatus(
        chain_id=state.chain_id,
        chain_name=app_settings.CHAIN_NAME,
        last_indexed_block=state.last_indexed_block,
        last_indexed_at=state.last_indexed_at,
        batch_size=state.batch_size,
        retry_count=state.retry_count,
    )


@router.get("/locks/active", response_model=LockListResponse)
async def get_active_locks(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    service: QueryService = Depends(get_query_service),
):
    items, total = service.active_locks(limit=limit, offset=offset)
    return LockListResponse(total=total, items=[BurnLockItem.model_validate(item) for item in items])


@router.get("/locks/early-burns", response_model=LockListResponse)
async def get_early_burn_locks(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    service: QueryService = Depends(get_query_service),
):
    items, total = service.early_burn_locks(limit=limit, offset=offset)
    return LockListResponse(total=total, items=[BurnLockItem.model_validate(item) for item in items])


@router.get("/locks/{token_id}", response_model=BurnLockItem)
async def get_lock(token_id: str, service: QueryService = Depends(get_query_service)):
    if not token_id.isdigit():
        raise HTTPException(status_code=400, detail="token_id must be a decimal integer")
    lock = service.get_lock(token_id)
    if lock is None:
        raise HTTPException(status_code=404, detail=f"Lock {token_id} not found")
    return BurnLockItem.model_validate(lock)


@router.get("/wallets/{wallet}/stats", response_model=WalletStatsResponse)
async def get_wallet_stats(wallet: str, service: QueryService = Depends(get_query_service)):
    return WalletStatsResponse(**service.wallet_stats(wallet))


@router.get("/terms/stats", response_model=List[TermStatsItem])
async def get_term_stats(service: QueryService = Depends(get_query_service)):
    return [TermStatsItem(**item) for item in service.term_stats()]


@router.get("/burners/top", response_model=List[TopBurnerItem])
async def get_top_burners(
    limit: int = Query(100, ge=1, le=1000),
    service: QueryService = Depends(get_query_service),
):
    return [TopBurnerItem(**item) for item in service.top_burners(limit)]


def create_app(database: Optional[Database] = None, app_settings=None) -> FastAPI:
    if app_settings is None:
        from xburn_indexer.config import settings as app_settings
    if database is None:
        database = Database(app_settings.DATABASE_URL, pool_size=app_settings.DB_POOL_SIZE)

    app = FastAPI(
        title="XBurn Indexer",
        description="XBurn event indexer API",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.database = database
    app.state.settings = app_settings
    app.state.health = HealthService(database, app_settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router, tags=["XBurn"])

    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        logger.error(
            "Unhandled exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
        )
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    @app.middleware("http")
    async def log_requests(request, call_next):
        start_time = time.time()
        response = await call_next(request)
        process_time = time.time() - start_time

        logger.info(
            "Request completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            process_time=round(process_time, 3),
        )
        return response

    @app.get("/")
    async def root():
        return {"message": "XBurn Indexer API", "version": __version__}

    @app.get("/health")
    async def health():
        report = app.state.health.check()
        return JSONResponse(status_code=200 if report.is_healthy else 503, content=report.to_dict())

    return app
