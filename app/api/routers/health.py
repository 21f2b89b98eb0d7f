# app/api/routers/health.py
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from app.data.database import get_db
from app.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
def health(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
        db_ok, db_msg = True, "ok"
    except Exception as e:
        logger.warning(f"Health check DB failed: {e}")
        db_ok, db_msg = False, str(e)

    return JSONResponse(
        status_code=200 if db_ok else 503,
        content={
            "status": "healthy" if db_ok else "degraded",
            "service": "order-service",
            "dependencies": {"database": {"ok": db_ok, "message": db_msg}},
        },
    )
