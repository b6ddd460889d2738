import logging
from fastapi import FastAPI, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from journalbook.database import get_db, init_db, ping_db
from journalbook.errors import GenerationFailed, JournalError, StoreError, ValidationError
from journalbook.routers import auth, book, entries, internal, profile
from journalbook.services.scheduler import start_scheduler, stop_scheduler
from journalbook.settings.config import settings

logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
logger = logging.getLogger(__name__)

app = FastAPI(title="Journal Book")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ----------------------
# Route Includes
# ----------------------
app.include_router(auth.router)
app.include_router(entries.router)
app.include_router(profile.router)
app.include_router(book.router)
app.include_router(internal.router)


# -----------------------------------------------------
# Error mapping: typed errors -> status + {"error": ...}
# Store and generator failures are logged with the route; clients get
# only the generic message.
# -----------------------------------------------------
@app.exception_handler(JournalError)
async def _journal_error_handler(request: Request, exc: JournalError):
    if isinstance(exc, (StoreError, GenerationFailed)):
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc,
                     exc_info=exc.__cause__ or exc)
    elif exc.status_code >= 500:
        logger.exception("Unhandled %s on %s %s", type(exc).__name__, request.method, request.url.path)
    else:
        logger.info("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.public_message})


@app.exception_handler(SQLAlchemyError)
async def _store_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Store error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=StoreError.status_code, content={"error": StoreError.public_message})


@app.exception_handler(RequestValidationError)
async def _validation_handler(request: Request, exc: RequestValidationError):
    problems = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path"))
        problems.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return await _journal_error_handler(request, ValidationError("; ".join(problems)))


# ----------------------
# Health
# ----------------------
@app.get("/health")
async def health(deep: bool = False, db: AsyncSession = Depends(get_db)):
    if not deep:
        return {"status": "ok"}
    if await ping_db(db):
        return {"status": "ok", "database": "ok"}
    return JSONResponse(status_code=503, content={"status": "degraded", "database": "unavailable"})


@app.on_event("startup")
async def on_startup():
    from journalbook import models  # noqa: F401  Required for SQLAlchemy model detection
    await init_db()
    start_scheduler()


@app.on_event("shutdown")
async def on_shutdown():
    stop_scheduler()
