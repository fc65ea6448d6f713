import asyncio
import logging

from motor.motor_asyncio import AsyncIOMotorDatabase

from coursemart.errors import PlatformError
from coursemart.purchases import ledger
from coursemart.purchases.confirmation import project_enrollment

logger = logging.getLogger(__name__)


async def repair_incomplete_enrollments(db: AsyncIOMotorDatabase, limit: int = 100) -> int:
    """
    Re-apply the enrollment projection for completed purchases that never
    got enrolledAt. Walks every such purchase in pages of `limit`, so rows
    that keep failing never hide the ones behind them.
    Returns how many purchases were repaired.
    """
    repaired = 0
    failed = 0
    last_id = None

    while True:
        purchases = await ledger.find_unprojected_purchases(db, after_id=last_id, limit=limit)
        if not purchases:
            break

        for purchase in purchases:
            last_id = purchase["_id"]
            try:
                await project_enrollment(db, purchase)
                repaired += 1
            except PlatformError as e:
                failed += 1
                logger.error("Enrollment repair failed for purchase %s: %s", purchase["_id"], e.message)
                await ledger.record_repair_failure(db, purchase["_id"])

    if repaired or failed:
        logger.info("Enrollment repair: %d repaired, %d failed", repaired, failed)
    return repaired


async def run_enrollment_repair_loop(db: AsyncIOMotorDatabase, interval_seconds: int):
    """Background worker, started from the app lifespan"""
    while True:
        try:
            await repair_incomplete_enrollments(db)
        except Exception as e:
            logger.error("Enrollment repair pass crashed: %s", e)
        await asyncio.sleep(interval_seconds)
