from fastapi import FastAPI, HTTPException, Request, Body, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from typing import List
import io
import structlog
import time
from contextlib import asynccontextmanager

from models import BatchResponse, ErrorResponse, HealthResponse, Record
from services import get_payment_engine, log_outcome
from storage import format_accounts, read_records
from exceptions import DuplicateTransactionError, RecordParseError
from logging_config import configure_logging
from config import get_settings

settings = get_settings()
configure_logging(settings.log_level, settings.log_format)

logger = structlog.get_logger()

# Rate limiting
limiter = Limiter(key_func=get_remote_address)
RATE_LIMIT = f"{settings.rate_limit_per_minute}/minute"

# Application lifespan
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting Payment Ledger API", duplicate_tx_policy=settings.duplicate_tx_policy.value)
    yield
    # Shutdown
    logger.info("Shutting down Payment Ledger API")

# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Applies ordered transaction streams (deposits, withdrawals and disputes) and reports client balances",
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# Add rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()

    logger.info(
        "Request started",
        method=request.method,
        url=str(request.url),
        client_ip=request.client.host if request.client else None
    )

    response = await call_next(request)

    process_time = time.time() - start_time
    logger.info(
        "Request completed",
        method=request.method,
        url=str(request.url),
        status_code=response.status_code,
        process_time=round(process_time, 4)
    )

    return response

# Health check endpoint
@app.get(
    "/health",
    response_model=HealthResponse,
    summary="Health Check",
    description="Check API health and the active ledger policy"
)
async def health_check():
    return HealthResponse(
        status="healthy",
        version=settings.app_version,
        duplicate_tx_policy=settings.duplicate_tx_policy
    )

# Batch of JSON records
@app.post(
    "/transactions",
    response_model=BatchResponse,
    status_code=status.HTTP_200_OK,
    summary="Process Transactions",
    description="Apply an ordered list of records to a fresh ledger and return the final accounts",
    responses={
        200: {"description": "Records processed"},
        409: {"description": "Duplicate transaction id rejected by policy"},
        422: {"description": "Validation error"},
        429: {"description": "Rate limit exceeded"},
        500: {"description": "Internal server error"}
    }
)
@limiter.limit(RATE_LIMIT)
async def process_transactions(
    request: Request,
    records: List[Record] = Body(..., description="Records in arrival order")
):
    logger.info("Transaction batch received", records=len(records))

    engine = get_payment_engine(settings)
    try:
        summary = engine.process_all(records, observer=log_outcome)
    except DuplicateTransactionError as e:
        logger.warning("Transaction batch rejected", error=str(e), tx=e.tx)
        raise HTTPException(status_code=409, detail=str(e))

    logger.info(
        "Transaction batch completed",
        processed=summary.processed,
        applied=summary.applied,
        ignored=summary.ignored
    )
    return BatchResponse(accounts=engine.snapshots(), summary=summary)

# Raw CSV stream
@app.post(
    "/transactions/csv",
    response_class=PlainTextResponse,
    summary="Process Transaction CSV",
    description="Apply a type,client,tx,amount CSV body and return the account report as CSV",
    responses={
        200: {"description": "Account report", "content": {"text/csv": {}}},
        400: {"description": "Body is not UTF-8 text"},
        409: {"description": "Duplicate transaction id rejected by policy"},
        413: {"description": "Body too large"},
        422: {"description": "Malformed CSV row"},
        429: {"description": "Rate limit exceeded"}
    }
)
@limiter.limit(RATE_LIMIT)
async def process_transactions_csv(request: Request):
    body = await request.body()
    if len(body) > settings.max_request_size:
        raise HTTPException(status_code=413, detail="Request body too large")

    try:
        text = body.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="Request body must be UTF-8 encoded CSV")

    engine = get_payment_engine(settings)
    try:
        summary = engine.process_all(
            read_records(io.StringIO(text, newline=""), strict=settings.strict_parsing),
            observer=log_outcome
        )
    except RecordParseError as e:
        logger.warning("Malformed CSV record", line=e.line, error=e.message)
        raise HTTPException(status_code=422, detail=str(e))
    except DuplicateTransactionError as e:
        logger.warning("Transaction stream rejected", error=str(e), tx=e.tx)
        raise HTTPException(status_code=409, detail=str(e))

    logger.info(
        "Transaction stream completed",
        processed=summary.processed,
        applied=summary.applied,
        ignored=summary.ignored
    )
    return PlainTextResponse(format_accounts(engine.snapshots()), media_type="text/csv")

# Global exception handler
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            detail=exc.detail,
            error_code=f"HTTP_{exc.status_code}"
        ).model_dump(mode="json")
    )

@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(
        "Unhandled exception",
        error=str(exc),
        url=str(request.url),
        method=request.method,
        exc_info=True
    )

    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            detail="Internal server error",
            error_code="INTERNAL_ERROR"
        ).model_dump(mode="json")
    )

# Root endpoint
@app.get("/", include_in_schema=False)
async def root():
    return {"message": settings.app_name, "docs": "/docs"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
