from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
import logging
import time

from api.config.settings import get_settings
from api.database.connection import close_db, get_session, init_db
from api.database.repositories.kv_store import KVStoreRepository
from api.middleware.error_handler import error_handler_middleware, setup_error_handlers
from api.middleware.request_id import RequestIDMiddleware
from api.routers import auth_router, reports_router, users_router
from api.services.auth_service import AuthService
from api.utils.time_utils import utc_now

logger = logging.getLogger("api.main")

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and demo accounts on startup, release the pool on shutdown."""
    current = get_settings()
    if current.db_auto_create:
        await init_db()
    if current.seed_demo_users:
        async with get_session() as session:
            await AuthService(KVStoreRepository(session)).ensure_demo_users()
    yield
    await close_db()


app = FastAPI(
    title="Grofvuil API",
    description="API for reporting and collecting bulky waste",
    version="0.1.0",
    lifespan=lifespan,
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every request with its status and duration."""
    start_time = time.time()
    path = request.url.path
    method = request.method

    # Health probes would drown everything else
    skip_logging = path.endswith("/health")

    if not skip_logging:
        logger.info(f"{method} {path}")

    response = await call_next(request)

    if not skip_logging:
        process_time = time.time() - start_time
        logger.info(f"{method} {path} - {response.status_code} - {process_time:.3f}s")
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.middleware("http")(error_handler_middleware)

# Added last so it wraps everything and the ID is set before any log line
app.add_middleware(RequestIDMiddleware)

setup_error_handlers(app)

app.include_router(auth_router.router, prefix=settings.api_prefix, tags=["Auth"])
app.include_router(users_router.router, prefix=settings.api_prefix, tags=["Users"])
app.include_router(reports_router.router, prefix=settings.api_prefix, tags=["Reports"])


@app.get("/")
async def root():
    return {"message": "Welcome to the Grofvuil API"}


@app.get(f"{settings.api_prefix}/health")
async def health_check():
    return {"status": "ok", "timestamp": utc_now().isoformat()}
