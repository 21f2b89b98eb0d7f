# app/tasks/expire.py
import uuid

from app.celery_worker import celery_app
from app.data.database import SessionLocal
from app.services.expiry_service import ExpiryReaper
from app.services.lock_service import LockService, REAPER_LOCK_KEY
from app.utils.settings import REAPER_LOCK_TTL_SECONDS
from app.utils.logging import get_logger

logger = get_logger(__name__)
lock_service = LockService()

@celery_app.task(name="app.tasks.expire.expire_orders_task")
def expire_orders_task():
    logger.info("Expire orders task started")

    owner = str(uuid.uuid4())
    try:
        locked = lock_service.acquire(REAPER_LOCK_KEY, owner, REAPER_LOCK_TTL_SECONDS)
    except Exception as e:
        logger.warning(f"Reaper lock unavailable, skipping tick: {e}")
        return {"status": "skipped"}

    if not locked:
        logger.info("Another reaper sweep is running, skipping tick")
        return {"status": "skipped"}

    db = SessionLocal()
    try:
        summary = ExpiryReaper(db).perform_cleanup()
        logger.info(f"Expire orders task finished: {summary}")
        return {"status": "done", **summary}
    except Exception as e:
        # nastepny tick sprobuje ponownie
        logger.error(f"Error in expire orders task: {e}")
        return {"status": "failed"}
    finally:
        db.close()
        try:
            lock_service.release(REAPER_LOCK_KEY, owner)
        except Exception as e:
            logger.warning(f"Failed to release reaper lock: {e}")
