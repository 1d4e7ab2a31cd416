"""
Fruit Merge backend - players, leaderboards and Telegram Stars payments.

Application entry point with FastAPI setup, middleware configuration and
lifecycle management.
"""
import logging
import sys
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from fruitmerge import __version__
from fruitmerge.api.admin import router as admin_router
from fruitmerge.api.dependencies import get_store
from fruitmerge.api.leaderboard import router as leaderboard_router
from fruitmerge.api.payments import router as payments_router
from fruitmerge.api.players import router as players_router
from fruitmerge.api.social import router as social_router
from fruitmerge.config import get_settings
from fruitmerge.errors import GameStoreError
from fruitmerge.middleware import RateLimitMiddleware, SecurityHeadersMiddleware
from fruitmerge.persistence import PersistenceManager
from fruitmerge.repository import build_repository
from fruitmerge.store import GameStore
from fruitmerge.tasks import start_background_tasks, stop_background_tasks
from fruitmerge.telegram_client import TelegramGateway

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout),
        logging.FileHandler(settings.log_file)
    ]
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup loads saved data into a fresh store, connects the Telegram bot
    and starts the flush, presence-sweep and week-rollover loops. Shutdown
    stops the loops and writes a final snapshot.
    """
    logger.info("=" * 60)
    logger.info(f"🍉 Fruit Merge Backend v{__version__} starting up")
    logger.info("=" * 60)

    store = GameStore(presence_ttl=settings.presence_ttl)
    repository = build_repository(settings)
    persistence = PersistenceManager(
        store, repository,
        payments_keep=settings.payments_keep,
        activity_keep=settings.activity_keep,
    )
    persistence.load()

    telegram = TelegramGateway(settings.bot_token, settings.webapp_url)
    try:
        await telegram.start()
    except Exception as e:
        logger.error(f"Telegram bot initialization failed: {str(e)}", exc_info=True)

    app.state.store = store
    app.state.persistence = persistence
    app.state.telegram = telegram

    # Initialize New Relic monitoring if configured
    if settings.new_relic_license_key:
        try:
            import newrelic.agent
            newrelic.agent.initialize()
            logger.info("New Relic agent initialized successfully")
        except ImportError:
            logger.warning("New Relic package not installed. Monitoring disabled.")
        except Exception as e:
            logger.warning(f"New Relic initialization failed: {str(e)}")

    tasks = start_background_tasks([
        ("flush", settings.save_interval, persistence.flush),
        ("presence-sweep", settings.presence_sweep_interval, store.sweep_offline),
        ("week-rollover", settings.week_check_interval, store.check_week_rollover),
    ])

    logger.info(f"📱 WebApp: {settings.webapp_url}")
    logger.info(f"👤 Users: {len(store.users)}")
    logger.info(f"💳 Payments: {len(store.payments)}")
    logger.info(f"📅 Week: {store.current_week}")
    logger.info("=" * 60)

    yield

    logger.info("Shutting down, saving data...")
    await stop_background_tasks(tasks)
    persistence.flush(reason="shutdown")
    await telegram.close()
    logger.info("Application shutdown complete")


app = FastAPI(
    title="Fruit Merge Backend",
    description="""
    Backend for the Fruit Merge Telegram Mini App.

    - Presence tracking through client heartbeats
    - Global, weekly and all-time leaderboards
    - Username registry, friends and referrals
    - Telegram Stars invoices and payment webhook
    - Password-gated admin dashboard API
    """,
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(SecurityHeadersMiddleware)

app.add_middleware(
    RateLimitMiddleware,
    requests_per_window=settings.rate_limit_requests,
    window_seconds=settings.rate_limit_window,
    exempt_paths={"/api/webhook"},
)

# The game is served from another origin (GitHub Pages / Telegram web app)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "X-Admin-Password"],
    max_age=3600,
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Missing or malformed fields are a client error (400)."""
    logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "Validation Error",
            "detail": jsonable_errors(exc),
            "message": "Invalid request data. Please check your input."
        }
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may hold exception instances that are not JSON serializable
    return [
        {key: value for key, value in error.items() if key in ("loc", "msg", "type")}
        for error in exc.errors()
    ]


@app.exception_handler(GameStoreError)
async def game_store_exception_handler(request: Request, exc: GameStoreError):
    logger.info(f"Rejected {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": str(exc), "status_code": status.HTTP_400_BAD_REQUEST}
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions with consistent error format."""
    logger.warning(f"HTTP {exc.status_code}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.detail,
            "status_code": exc.status_code
        }
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions with logging."""
    logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal Server Error",
            "message": "An unexpected error occurred. Please try again later."
        }
    )


app.include_router(players_router)
app.include_router(leaderboard_router)
app.include_router(social_router)
app.include_router(payments_router)
app.include_router(admin_router)


@app.get("/", tags=["root"])
async def root(store: GameStore = Depends(get_store)):
    """Liveness check with live counters."""
    store.sweep_offline()
    return {
        "status": "ok",
        "version": __version__,
        "online": len(store.online),
        "totalUsers": len(store.users),
        "totalPayments": len(store.payments),
        "currentWeek": store.current_week,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "fruitmerge.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level="info",
        access_log=True
    )
