"""
Job rows plus the atomic assignment primitive.

Locations are stored flattened (``pickup_address``, ``pickup_latitude`` ...)
and nested again on read. Reads carry ``driver`` (with its ``user``),
``vehicle`` and ``creator`` inline.
"""
import logging
from typing import Optional

from pymongo import ReturnDocument

from fleet.db.drivers import DriverStore
from fleet.db.store import NO_ID, Store, utcnow
from fleet.db.users import UserStore
from fleet.db.vehicles import VehicleStore
from fleet.lifecycle import ACTIVE

logger = logging.getLogger("fleet.db.jobs")

LOCATION_FIELDS = ("address", "latitude", "longitude", "contact_name", "contact_phone", "notes")
ASSIGNABLE = ("pending", "assigned")


def flatten_locations(fields: dict) -> dict:
    out = dict(fields)
    for side in ("pickup", "dropoff"):
        loc = out.pop(f"{side}_location", None)
        if loc is None:
            continue
        for name in LOCATION_FIELDS:
            out[f"{side}_{name}"] = loc.get(name)
    return out


def nest_locations(doc: dict) -> dict:
    for side in ("pickup", "dropoff"):
        loc = {name: doc.pop(f"{side}_{name}", None) for name in LOCATION_FIELDS}
        doc[f"{side}_location"] = loc
    return doc


class JobStore(Store):
    collection = "jobs"

    async def fetch(self, id: str) -> Optional[dict]:
        doc = await super().fetch(id)
        if doc is None:
            return None
        return (await self.join([doc]))[0]

    async def fetch_all(self, filter: Optional[dict] = None, limit: int = 500) -> list[dict]:
        return await self.join(await super().fetch_all(filter, limit))

    async def create(self, fields: dict, id: Optional[str] = None) -> dict:
        fields = {
            "status": "pending",
            "driver_id": None,
            "vehicle_id": None,
            "actual_pickup": None,
            "actual_delivery": None,
            **flatten_locations(fields),
        }
        doc = await super().create(fields, id=id)
        return (await self.join([doc]))[0]

    async def update(self, id: str, fields: dict) -> Optional[dict]:
        doc = await super().update(id, flatten_locations(fields))
        if doc is None:
            return None
        return (await self.join([doc]))[0]

    async def set_status(self, id: str, expected: str, update: dict) -> Optional[dict]:
        """Apply a status move only if nobody moved the job in the meantime."""
        doc = await self.coll.find_one_and_update(
            {"id": id, "status": expected},
            {"$set": {**update, "updated_at": utcnow()}},
            projection=NO_ID,
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            return None
        return (await self.join([doc]))[0]

    async def join(self, docs: list[dict]) -> list[dict]:
        drivers = DriverStore(self.db)
        driver_rows = await drivers.join(list((await drivers.fetch_many(d.get("driver_id") for d in docs)).values()))
        driver_map = {d["id"]: d for d in driver_rows}
        vehicles = await VehicleStore(self.db).fetch_many(d.get("vehicle_id") for d in docs)
        creators = await UserStore(self.db).fetch_many(d.get("created_by") for d in docs)
        for d in docs:
            nest_locations(d)
            d["driver"] = driver_map.get(d.get("driver_id"))
            d["vehicle"] = vehicles.get(d.get("vehicle_id"))
            d["creator"] = creators.get(d.get("created_by"))
        return docs

    # -----------------------------
    # Atomic assignment
    # -----------------------------
    async def assign(self, job_id: str, driver_id: str, vehicle_id: Optional[str] = None) -> bool:
        """Attach driver (and vehicle) to the job, or change nothing.

        Conditional ``find_one_and_update`` locks: only one caller can flip a driver
        ``available -> on_duty`` or a vehicle ``available -> in_use``. Whatever
        was taken is handed back when a later step fails.
        """
        job = await self.coll.find_one({"id": job_id}, NO_ID)
        if not job or job["status"] not in ASSIGNABLE:
            return False

        prev_driver = job.get("driver_id")
        prev_vehicle = job.get("vehicle_id")
        if job["status"] == "assigned" and prev_driver == driver_id and prev_vehicle == vehicle_id:
            return True

        now = utcnow()
        drivers = self.db.drivers
        vehicles = self.db.vehicles
        took_driver = took_vehicle = False

        if driver_id != prev_driver:
            locked = await drivers.find_one_and_update(
                {"id": driver_id, "status": "available"},
                {"$set": {"status": "on_duty", "updated_at": now}},
                projection=NO_ID,
            )
            if not locked:
                logger.info("Assign %s rejected: driver %s not available", job_id, driver_id)
                return False
            took_driver = True

            busy = await self.coll.find_one(
                {"driver_id": driver_id, "status": {"$in": list(ACTIVE)}, "id": {"$ne": job_id}},
                NO_ID,
            )
            if busy:
                logger.info("Assign %s rejected: driver %s holds job %s", job_id, driver_id, busy["id"])
                await self._unlock(driver_id, None)
                return False

        if vehicle_id and vehicle_id != prev_vehicle:
            locked = await vehicles.find_one_and_update(
                {"id": vehicle_id, "status": "available"},
                {"$set": {"status": "in_use", "updated_at": now}},
                projection=NO_ID,
            )
            if not locked:
                logger.info("Assign %s rejected: vehicle %s not available", job_id, vehicle_id)
                await self._unlock(driver_id if took_driver else None, None)
                return False
            took_vehicle = True

            held = await self.coll.find_one(
                {"vehicle_id": vehicle_id, "status": {"$in": list(ACTIVE)}, "id": {"$ne": job_id}},
                NO_ID,
            )
            if held:
                logger.info("Assign %s rejected: vehicle %s held by job %s", job_id, vehicle_id, held["id"])
                # held elsewhere: leave it in_use
                await self._unlock(driver_id if took_driver else None, None)
                return False

        moved = await self.coll.find_one_and_update(
            {"id": job_id, "status": job["status"], "driver_id": prev_driver, "vehicle_id": prev_vehicle},
            {"$set": {
                "driver_id": driver_id,
                "vehicle_id": vehicle_id,
                "status": "assigned",
                "updated_at": now,
            }},
            projection=NO_ID,
        )
        if not moved:
            logger.info("Assign %s rejected: job changed underneath", job_id)
            await self._unlock(
                driver_id if took_driver else None,
                vehicle_id if took_vehicle else None,
            )
            return False

        await self._release(
            prev_driver if prev_driver and prev_driver != driver_id else None,
            prev_vehicle if prev_vehicle and prev_vehicle != vehicle_id else None,
        )
        await drivers.update_one({"id": driver_id}, {"$set": {"vehicle_id": vehicle_id}})
        logger.info("Job %s assigned to driver %s vehicle %s", job_id, driver_id, vehicle_id)
        return True

    async def release(self, job: dict):
        """Hand the job's driver and vehicle back once it is finished."""
        await self._release(job.get("driver_id"), job.get("vehicle_id"))

    async def _release(self, driver_id: Optional[str], vehicle_id: Optional[str]):
        await self._unlock(driver_id, vehicle_id)
        if driver_id:
            await self.db.drivers.update_one({"id": driver_id}, {"$set": {"vehicle_id": None}})

    async def _unlock(self, driver_id: Optional[str], vehicle_id: Optional[str]):
        # flip held driver/vehicle back to available
        now = utcnow()
        if driver_id:
            await self.db.drivers.update_one(
                {"id": driver_id, "status": "on_duty"},
                {"$set": {"status": "available", "updated_at": now}},
            )
        if vehicle_id:
            await self.db.vehicles.update_one(
                {"id": vehicle_id, "status": "in_use"},
                {"$set": {"status": "available", "updated_at": now}},
            )
