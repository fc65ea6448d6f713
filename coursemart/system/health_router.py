import logging
from datetime import datetime

import httpx
from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from coursemart.database import get_db

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

# Target servers checked by /health/dependencies
SERVERS = {
    "razorpay": "https://api.razorpay.com",
}


@router.get("/health")
async def health_check():
    return {"status": "ok"}


@router.get("/health/dependencies")
async def dependency_health(db: AsyncIOMotorDatabase = Depends(get_db)):
    """
    Ping MongoDB and the external servers the purchase flow depends on.
    A server counts as UP when it answers at all; 5xx and network errors are DOWN.
    """
    record = {
        "timestamp": datetime.utcnow().isoformat(),
        "status": {},
        "latency_ms": {}
    }

    try:
        start = datetime.utcnow()
        await db.command("ping")
        record["status"]["mongodb"] = "UP"
        record["latency_ms"]["mongodb"] = (datetime.utcnow() - start).total_seconds() * 1000
    except Exception as e:
        logger.warning("MongoDB ping failed: %s", e)
        record["status"]["mongodb"] = "DOWN"

    async with httpx.AsyncClient() as client:
        for name, url in SERVERS.items():
            try:
                start = datetime.utcnow()
                resp = await client.get(url, timeout=5.0)
                record["status"][name] = "UP" if resp.status_code < 500 else "DOWN"
                record["latency_ms"][name] = (datetime.utcnow() - start).total_seconds() * 1000
            except httpx.HTTPError as e:
                logger.warning("%s unreachable: %s", name, e)
                record["status"][name] = "DOWN"

    record["healthy"] = all(status == "UP" for status in record["status"].values())
    return record
