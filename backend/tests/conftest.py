import asyncio
import os
from uuid import uuid4

os.environ.setdefault("MONGO_URL", "mongodb://localhost:27017")

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from fleet.core.security import create_access_token
from fleet.db import mongo
from fleet.db.drivers import DriverStore
from fleet.db.jobs import JobStore
from fleet.db.users import UserStore
from fleet.db.vehicles import VehicleStore
from fleet.main import app

PICKUP = {"address": "1 Main St", "lat": 40.0, "lon": -75.0}
DROPOFF = {"address": "2 Oak Ave", "lat": 40.1, "lon": -75.1}


def run(coro):
    return asyncio.run(coro)


# motor calls mongomock-motor does not suspend on; these yield first
YIELDING = ("find_one", "find_one_and_update", "update_one", "update_many")


class _YieldingCollection:
    def __init__(self, coll):
        self._coll = coll

    def __getattr__(self, name):
        attr = getattr(self._coll, name)
        if name not in YIELDING:
            return attr

        async def call(*args, **kwargs):
            await asyncio.sleep(0)
            return await attr(*args, **kwargs)
        return call


class InterleavedDb:
    """Hands control back to the event loop before every write or lookup,
    so ``asyncio.gather`` really interleaves two store calls."""

    def __init__(self, database):
        self._db = database

    def __getitem__(self, name):
        return _YieldingCollection(self._db[name])

    def __getattr__(self, name):
        return _YieldingCollection(self._db[name])


def job_body(**extra):
    body = {
        "title": "Deliver pallets",
        "pickup_location": PICKUP,
        "dropoff_location": DROPOFF,
        "scheduled_pickup": "2026-10-20T09:00:00Z",
        "scheduled_delivery": "2026-10-20T12:00:00Z",
    }
    body.update(extra)
    return body


class Seed:
    def user(self, role: str, email: str | None = None) -> dict:
        email = email or f"{role}-{uuid4().hex[:8]}@fleet.io"
        return run(UserStore().provision(email, "secret123", f"{role.title()} Person", role=role))

    def headers(self, user: dict) -> dict:
        token = create_access_token({"sub": user["id"]}, role=user["role"])
        return {"Authorization": f"Bearer {token}"}

    def driver(self, license_number: str | None = None, status: str = "available") -> tuple[dict, dict]:
        user = self.user("driver")
        driver = run(DriverStore().create({
            "user_id": user["id"],
            "license_number": license_number or f"LIC-{uuid4().hex[:6]}",
            "license_expiry": "2028-01-31",
            "status": status,
        }))
        return user, driver

    def vehicle(self, plate: str | None = None, status: str = "available") -> dict:
        return run(VehicleStore().create({
            "license_plate": plate or f"PL-{uuid4().hex[:6]}",
            "make": "Ford",
            "model": "Transit",
            "year": 2022,
            "fuel_capacity": 80.0,
            "mileage": 12000,
            "status": status,
        }))

    def job(self, creator: dict, **fields) -> dict:
        base = {
            "title": "Deliver pallets",
            "priority": "medium",
            "pickup_location": {"address": "1 Main St", "latitude": 40.0, "longitude": -75.0},
            "dropoff_location": {"address": "2 Oak Ave", "latitude": 40.1, "longitude": -75.1},
            "created_by": creator["id"],
        }
        base.update(fields)
        return run(JobStore().create(base))

    def assign(self, job: dict, driver: dict, vehicle: dict | None = None) -> bool:
        return run(JobStore().assign(job["id"], driver["id"], vehicle["id"] if vehicle else None))


@pytest.fixture
def client():
    mongo.use_client(AsyncMongoMockClient(tz_aware=True))
    with TestClient(app) as c:
        yield c
    mongo.use_client(None)


@pytest.fixture
def seed(client):
    return Seed()


@pytest.fixture
def admin(seed):
    return seed.user("admin")


@pytest.fixture
def dispatcher(seed):
    return seed.user("dispatcher")
