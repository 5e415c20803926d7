"""FastAPI application entry point."""
import os

# Pin the process to UTC before anything reads local time
os.environ['TZ'] = 'UTC'

import time
import sys

if hasattr(time, "tzset"):
    time.tzset()

for stream in (sys.stdout, sys.stderr):
    if hasattr(stream, "reconfigure"):
        stream.reconfigure(encoding="utf-8", errors="backslashreplace")

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from contextlib import asynccontextmanager

from backend.config import get_settings
from backend.database import engine
from backend.version import APP_VERSION
from backend.routers import health, members, party

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOGS_DIR = Path("logs")


def _rotating_handler(filename: str, max_mb: int, backups: int, fmt: str = LOG_FORMAT) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        LOGS_DIR / filename,
        maxBytes=max_mb * 1024 * 1024,
        backupCount=backups,
        encoding='utf-8',
    )
    handler.setFormatter(logging.Formatter(fmt))
    return handler


class SQLTransactionFilter(logging.Filter):
    """Keep the SQL log to one line per statement, without BEGIN/COMMIT chatter."""

    NOISE = ('ROLLBACK', 'BEGIN', 'COMMIT', 'generated in')
    STATEMENTS = ('SELECT', 'DELETE', 'INSERT', 'UPDATE')

    def filter(self, record):
        if record.levelno != logging.INFO:
            return True

        message = record.getMessage()
        if any(keyword in message for keyword in self.NOISE):
            return False
        if any(keyword in message for keyword in self.STATEMENTS):
            record.msg = ' '.join(message.split())
            record.args = ()
        return True


def configure_logging() -> logging.Logger:
    """Console plus rotating files: general, SQL, and per-request API logs.

    Returns the API request logger.
    """
    LOGS_DIR.mkdir(exist_ok=True)
    general_handler = _rotating_handler("betparty.log", max_mb=1, backups=5)

    # force=True replaces whatever uvicorn configured first
    logging.basicConfig(
        level=logging.INFO,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(), general_handler],
        force=True,
    )

    uvicorn_access = logging.getLogger("uvicorn.access")
    if general_handler not in uvicorn_access.handlers:
        uvicorn_access.addHandler(general_handler)

    sql_logger = logging.getLogger("sqlalchemy.engine.Engine")
    sql_logger.handlers.clear()
    sql_logger.addHandler(_rotating_handler("betparty_sql.log", max_mb=1, backups=5))
    sql_logger.addFilter(SQLTransactionFilter())
    sql_logger.setLevel(logging.INFO)
    sql_logger.propagate = False

    request_logger = logging.getLogger("betparty.api")
    request_logger.handlers.clear()
    request_logger.addHandler(
        _rotating_handler("betparty_api.log", max_mb=2, backups=15, fmt='%(asctime)s - %(levelname)s - %(message)s')
    )
    request_logger.setLevel(logging.INFO)
    request_logger.propagate = False
    return request_logger


api_logger = configure_logging()
logger = logging.getLogger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(app_instance: FastAPI):
    """Log the runtime configuration on startup and release pooled connections on shutdown."""
    database = settings.database_url.split('@')[-1] if '@' in settings.database_url else 'SQLite'
    logger.info(f"Bet Party API starting (environment={settings.environment}, database={database})")
    try:
        yield
    finally:
        await engine.dispose()
        logger.info("Bet Party API stopped")


app = FastAPI(
    title="Bet Party API",
    description="Party lifecycle and bet resolution backend",
    version=APP_VERSION,
    lifespan=lifespan,
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Flatten pydantic errors into field/message pairs."""
    logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")

    errors = [
        {
            "field": " -> ".join(str(part) for part in error.get("loc", [])[1:]) or "unknown field",
            "message": error.get("msg", "Validation error"),
            "type": error.get("type", "unknown"),
        }
        for error in exc.errors()
    ]
    return JSONResponse(status_code=422, content={"detail": "Request validation failed", "errors": errors})


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    label = f"{request.method} {request.url.path}"
    client_ip = request.client.host if request.client else "unknown"

    api_logger.info(f">> {label} | IP: {client_ip}" + (f" | QUERY: {request.query_params}" if request.query_params else ""))
    try:
        response = await call_next(request)
    except Exception as e:
        api_logger.error(f"<< {label} | EXCEPTION | {str(e)[:100]} | {time.perf_counter() - started:.3f}s")
        raise

    api_logger.info(f"<< {label} | {response.status_code} | {time.perf_counter() - started:.3f}s")
    return response


allowed_origins = [origin for origin in os.getenv("ALLOWED_ORIGINS", "").split(",") if origin]
if not allowed_origins:
    allowed_origins = [
        settings.frontend_url,
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
        "http://127.0.0.1:3000",
    ]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(members.router, prefix="/members", tags=["members"])
app.include_router(party.router, prefix="/parties", tags=["parties"])


@app.get("/")
async def root():
    return {
        "message": "Bet Party API",
        "version": APP_VERSION,
        "environment": settings.environment,
        "docs": "/docs",
    }
