from typing import Optional

from fleet.db.store import NO_ID, Store
from fleet.lifecycle import ACTIVE


class VehicleStore(Store):
    collection = "vehicles"
    unique_fields = ("license_plate",)

    async def fetch_for_driver(self, driver: Optional[dict]) -> list[dict]:
        """The vehicle a driver currently carries, if any."""
        if not driver or not driver.get("vehicle_id"):
            return []
        doc = await self.coll.find_one({"id": driver["vehicle_id"]}, NO_ID)
        return [doc] if doc else []

    async def active_job(self, vehicle_id: str) -> Optional[dict]:
        return await self.db.jobs.find_one(
            {"vehicle_id": vehicle_id, "status": {"$in": list(ACTIVE)}}, NO_ID
        )

    async def remove(self, vehicle_id: str) -> bool:
        """Delete the vehicle and drop any driver's reference to it."""
        if not await self.delete(vehicle_id):
            return False
        await self.db.drivers.update_many({"vehicle_id": vehicle_id}, {"$set": {"vehicle_id": None}})
        return True
