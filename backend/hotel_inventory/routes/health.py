import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from hotel_inventory.core.config import settings
from hotel_inventory.core.database import get_db


router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
def health(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
        database = "ok"
    except Exception:
        logger.exception("Health check could not reach the database")
        database = "unavailable"
    return {"status": "ok" if database == "ok" else "degraded", "database": database, "env": settings.env}
