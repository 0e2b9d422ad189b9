from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..config.logging import configure_logging, get_logger
from .cart_api import router as cart_router
from .state import CartSession, get_session

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Poll the provider feeds for the lifetime of the app."""
    configure_logging()
    session = get_session()
    if session.refresher:
        session.refresher.start()
    logger.info("Service cart API started (feeds: %s)", session.service.settings.api_base_url)
    try:
        yield
    finally:
        if session.refresher:
            await session.refresher.stop()
        if session.feed:
            await session.feed.aclose()


app = FastAPI(
    title="Service Cart API",
    description="Cart, provider matching and service request assembly for the service marketplace",
    version="1.0.0",
    lifespan=lifespan,
)

# Enable CORS for frontend development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(cart_router)


@app.get("/")
async def root():
    return {"status": "online", "message": "Service Cart API Active"}


@app.get("/system/status")
async def get_status(session: CartSession = Depends(get_session)):
    service = session.service
    refresher = session.refresher
    return {
        "engine_active": True,
        "catalog_source": (service.catalog_report or {}).get("source", "default"),
        "package_count": len(service.packages),
        "provider_count": len(service.providers),
        "refresh_running": bool(refresher and refresher.running),
        "last_refreshed_at": refresher.last_refreshed_at.isoformat() if refresher and refresher.last_refreshed_at else None,
        "refresh_failures": refresher.failures if refresher else 0,
    }
