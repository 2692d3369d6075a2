from typing import Optional

from fleet.db.drivers import DriverStore
from fleet.db.store import NO_ID, Store, utcnow


class TrackingStore(Store):
    collection = "tracking_data"

    async def record(
        self,
        driver_id: str,
        latitude: float,
        longitude: float,
        job_id: Optional[str] = None,
        speed: Optional[float] = None,
        heading: Optional[float] = None,
        accuracy: Optional[float] = None,
        ts=None,
    ) -> dict:
        """Append a tracking row and move the driver's current location."""
        ts = ts or utcnow()
        doc = await self.create({
            "driver_id": driver_id,
            "job_id": job_id,
            "latitude": latitude,
            "longitude": longitude,
            "speed": speed,
            "heading": heading,
            "accuracy": accuracy,
            "timestamp": ts,
        })
        await DriverStore(self.db).set_location(driver_id, latitude, longitude, ts)
        return doc

    async def history(self, driver_id: str, limit: int = 100) -> list[dict]:
        cursor = self.coll.find({"driver_id": driver_id}, NO_ID).sort("timestamp", -1)
        return await cursor.to_list(length=limit)
