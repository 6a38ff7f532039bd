import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from hotel_inventory.core.config import settings
from hotel_inventory.core.database import SessionLocal, init_db
from hotel_inventory.routes.alerts import router as alerts_router
from hotel_inventory.routes.auth import router as auth_router
from hotel_inventory.routes.catalog import router as catalog_router
from hotel_inventory.routes.consumos import router as consumos_router
from hotel_inventory.routes.health import router as health_router
from hotel_inventory.routes.inventory import router as inventory_router
from hotel_inventory.routes.movements import router as movements_router
from hotel_inventory.routes.transfers import router as transfers_router
from hotel_inventory.services.seed import seed_demo


logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(title="Hotel Inventory API", version="0.1.0")

    origins = settings.cors_origins
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(health_router, tags=["health"])
    app.include_router(auth_router, prefix="/auth", tags=["auth"])
    app.include_router(catalog_router, prefix="/catalog", tags=["catalog"])
    app.include_router(inventory_router, prefix="/inventory", tags=["inventory"])
    app.include_router(movements_router, prefix="/movements", tags=["movements"])
    app.include_router(consumos_router, prefix="/consumos", tags=["consumos"])
    app.include_router(transfers_router, prefix="/transfers", tags=["transfers"])
    app.include_router(alerts_router, prefix="/alerts", tags=["alerts"])

    return app


app = create_app()

# Only seed in development or when explicitly requested
if settings.env == "dev" or os.getenv("FORCE_SEED") == "true":
    try:
        init_db()
        with SessionLocal() as db:
            seed_demo(db)
    except Exception:
        logger.exception("Demo seed failed; the API starts without demo data")
