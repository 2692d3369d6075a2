from typing import Optional

from fleet.db.store import NO_ID, Store
from fleet.db.users import UserStore
from fleet.db.vehicles import VehicleStore


class DriverStore(Store):
    """Driver rows, always read back with their ``user`` and ``vehicle``."""

    collection = "drivers"
    unique_fields = ("license_number", "user_id")

    async def fetch(self, id: str) -> Optional[dict]:
        doc = await super().fetch(id)
        if doc is None:
            return None
        return (await self.join([doc]))[0]

    async def fetch_by_user(self, user_id: str) -> Optional[dict]:
        doc = await self.coll.find_one({"user_id": user_id}, NO_ID)
        if doc is None:
            return None
        return (await self.join([doc]))[0]

    async def fetch_all(self, filter: Optional[dict] = None, limit: int = 500) -> list[dict]:
        return await self.join(await super().fetch_all(filter, limit))

    async def create(self, fields: dict, id: Optional[str] = None) -> dict:
        doc = await super().create({"status": "available", "vehicle_id": None, **fields}, id=id)
        return (await self.join([doc]))[0]

    async def update(self, id: str, fields: dict) -> Optional[dict]:
        doc = await super().update(id, fields)
        if doc is None:
            return None
        return (await self.join([doc]))[0]

    async def join(self, docs: list[dict]) -> list[dict]:
        users = await UserStore(self.db).fetch_many(d.get("user_id") for d in docs)
        vehicles = await VehicleStore(self.db).fetch_many(d.get("vehicle_id") for d in docs)
        for d in docs:
            d["user"] = users.get(d.get("user_id"))
            d["vehicle"] = vehicles.get(d.get("vehicle_id"))
        return docs

    async def set_location(self, id: str, latitude: float, longitude: float, ts) -> bool:
        res = await self.coll.update_one(
            {"id": id},
            {"$set": {
                "current_location": {"latitude": latitude, "longitude": longitude, "timestamp": ts},
                "updated_at": ts,
            }},
        )
        return res.matched_count > 0
