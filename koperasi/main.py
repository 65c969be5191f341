from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from koperasi.api import auth, products, members, savings, product_upgrade, reports
from koperasi.core.config import settings
from koperasi.services.exceptions import ConflictError, KoperasiError, NotFoundError, ValidationError
from koperasi.services.scheduler import get_scheduler_status, start_scheduler, stop_scheduler
import logging

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)

# Get logger for this module
logger = logging.getLogger(__name__)
logger.info("Starting Koperasi Savings API")


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.ENABLE_SCHEDULER:
        start_scheduler()
    yield
    stop_scheduler()


app = FastAPI(
    title="Koperasi Savings API",
    description="Koperasi savings installments, upgrades and reconciliation",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000", "*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


@app.exception_handler(KoperasiError)
async def koperasi_error_handler(request: Request, exc: KoperasiError):
    if isinstance(exc, ValidationError):
        status_code = 400
    elif isinstance(exc, NotFoundError):
        status_code = 404
    elif isinstance(exc, ConflictError):
        status_code = 409
    else:
        status_code = 500
    logger.info("%s %s -> %d: %s", request.method, request.url.path, status_code, exc)
    return _error_response(status_code, str(exc))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ())[1:]) or "request"
        message = f"{field}: {first.get('msg')}"
    else:
        message = "Invalid request"
    return _error_response(400, message)


# Include routers
app.include_router(auth.router)
app.include_router(products.router)
app.include_router(members.router)
app.include_router(savings.router)
app.include_router(product_upgrade.router)
app.include_router(reports.router)


@app.get("/")
def root():
    """Root endpoint."""
    return {"message": "Koperasi Savings API", "version": "1.0.0"}


@app.get("/api/health")
def health_check():
    """Health check endpoint: API, database and scheduler state."""
    from koperasi.db.base import SessionLocal
    from sqlalchemy import text
    from datetime import datetime, timezone

    db_status = "unreachable"
    db_error = None
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        db_status = "connected"
    except Exception as e:
        db_error = str(e)
    finally:
        db.close()

    status = "healthy" if db_status == "connected" else "degraded"

    return {
        "status": status,
        "version": "1.0.0",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "services": {
            "api": "ok",
            "database": db_status,
            "scheduler": get_scheduler_status(),
        },
        **({"database_error": db_error} if db_error else {})
    }
