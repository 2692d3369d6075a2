import logging

import certifi
from motor.motor_asyncio import AsyncIOMotorClient

from fleet.core import config

logger = logging.getLogger("fleet.db")

_client = None


def use_client(client):
    """Swap the process-wide client (tests hand in an in-memory one)."""
    global _client
    _client = client


def db():
    global _client
    if _client is None:
        url = config.MONGO_URL
        if not url:
            raise RuntimeError("MONGO_URL not set. Create backend/.env with MONGO_URL=...")
        kwargs = {"tz_aware": True}
        if config.MONGO_TLS or url.startswith("mongodb+srv://"):
            kwargs["tlsCAFile"] = certifi.where()
        _client = AsyncIOMotorClient(url, **kwargs)
    return _client[config.MONGO_DB]


async def ensure_indexes():
    d = db()
    for name in ("identities", "users", "drivers", "vehicles", "jobs", "tracking_data"):
        await d[name].create_index([("id", 1)], unique=True)

    await d.identities.create_index([("email", 1)], unique=True)
    await d.users.create_index([("email", 1)], unique=True)
    await d.drivers.create_index([("license_number", 1)], unique=True)
    await d.drivers.create_index([("user_id", 1)], unique=True)
    await d.vehicles.create_index([("license_plate", 1)], unique=True)

    await d.jobs.create_index([("driver_id", 1), ("status", 1)])
    await d.tracking_data.create_index([("driver_id", 1), ("timestamp", -1)])
    logger.info("Indexes ensured on %s", config.MONGO_DB)
