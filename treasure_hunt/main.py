import asyncio
import logging
import os
from dotenv import load_dotenv  # load .env variables

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sqlalchemy.exc import DBAPIError, OperationalError

import treasure_hunt.database as database

# ----- Load environment variables -----
load_dotenv()

# ----- Logging -----
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s"
)
logger = logging.getLogger("treasure_hunt")

# ----- Routers -----
from treasure_hunt.routes.auth import router as auth_router
from treasure_hunt.routes.drafts import router as drafts_router
from treasure_hunt.routes.hunts import router as hunts_router
from treasure_hunt.routes.game import router as game_router
from treasure_hunt.routes.leaderboard import router as leaderboard_router
from treasure_hunt.routes.upload import router as upload_router

# ----- FastAPI app -----
app = FastAPI(
    title="Treasure Hunt API",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

# ----- CORS (enabled only if ALLOWED_ORIGINS is set) -----
raw_origins = os.getenv("ALLOWED_ORIGINS", "").strip()
if raw_origins:
    allowed_origins = [o.strip() for o in raw_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=[
            "Authorization", "Content-Type", "Accept", "Origin", "X-Requested-With",
            "X-Refresh-Token",
        ],
        max_age=86400,
    )


# ----- Validation errors: 400 with one message per field -----
def _format_validation_error(error: dict) -> str:
    loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
    field = ".".join(loc)
    message = error.get("msg", "Invalid value")
    return f"{field}: {message}" if field else message


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={
            "detail": "Validation error",
            "errors": [_format_validation_error(e) for e in exc.errors()],
        },
    )


# ----- Include routers -----
app.include_router(auth_router, prefix="/auth")
app.include_router(drafts_router)          # /hunts/drafts/... before /hunts/{hunt_id}
app.include_router(hunts_router)
app.include_router(game_router)
app.include_router(leaderboard_router)
app.include_router(upload_router)


def _retry_delay(attempt: int, base_delay: float) -> float:
    # 1x, 2x, 4x, then capped at 8x the base delay.
    return base_delay * min(2 ** (attempt - 1), 8)


async def _ensure_schema(max_attempts: int, base_delay: float) -> None:
    """Create missing tables, waiting for the database to come up if needed."""

    for attempt in range(1, max_attempts + 1):
        try:
            await database.init_models()
            return
        except (OperationalError, DBAPIError, OSError) as exc:  # pragma: no cover - depends on timing
            if attempt == max_attempts:
                logger.error("Database unreachable after %s attempts", attempt)
                raise
            delay = _retry_delay(attempt, base_delay)
            logger.warning(
                "Database not ready (attempt %s/%s): %s. Retrying in %.1f seconds...",
                attempt, max_attempts, exc, delay,
            )
            await asyncio.sleep(delay)


@app.on_event("startup")
async def on_startup():
    await _ensure_schema(
        max_attempts=max(1, int(os.getenv("DB_INIT_MAX_ATTEMPTS", "10"))),
        base_delay=float(os.getenv("DB_INIT_RETRY_SECONDS", "1.0")),
    )
    logger.info("Treasure hunt API started; database tables ensured.")


@app.on_event("shutdown")
async def on_shutdown():
    await database.engine.dispose()


# ----- Health check endpoint -----
@app.get("/health", tags=["meta"])
async def health():
    return {"ok": True}

# Avoid logging secrets like DATABASE_URL / JWT_SECRET; log presence only.
if os.getenv("DATABASE_URL"):
    logger.info("DATABASE_URL loaded.")
if os.getenv("JWT_SECRET"):
    logger.info("JWT_SECRET loaded.")
else:
    logger.warning("JWT_SECRET not set; using the development default.")
