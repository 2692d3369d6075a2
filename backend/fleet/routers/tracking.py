from fastapi import APIRouter, Depends, Query

from fleet.auth.deps import get_actor
from fleet.core.errors import NotFound, ValidationFailed
from fleet.db.drivers import DriverStore
from fleet.db.jobs import JobStore
from fleet.db.tracking import TrackingStore
from fleet.policy import Actor, enforce
from fleet.realtime.manager import manager
from fleet.routers.common import envelope
from fleet.schemas.driver import LocationUpdate

router = APIRouter(tags=["tracking"])


@router.post("/drivers/{driver_id}/location")
async def update_location(driver_id: str, loc: LocationUpdate, actor: Actor = Depends(get_actor)):
    driver = await DriverStore().fetch(driver_id)
    if not driver:
        raise NotFound("Driver not found")
    enforce(actor, "driver", "write", owner_id=driver["user_id"])

    if loc.job_id:
        job = await JobStore().fetch(loc.job_id)
        if not job or job.get("driver_id") != driver_id:
            raise ValidationFailed("job_id is not assigned to this driver")

    row = await TrackingStore().record(
        driver_id,
        loc.latitude,
        loc.longitude,
        job_id=loc.job_id,
        speed=loc.speed,
        heading=loc.heading,
        accuracy=loc.accuracy,
        ts=loc.timestamp,
    )

    # broadcast to websocket subscribers
    await manager.broadcast(driver_id, {
        "driver_id": driver_id,
        "job_id": loc.job_id,
        "latitude": loc.latitude,
        "longitude": loc.longitude,
        "speed": loc.speed,
        "heading": loc.heading,
        "timestamp": row["timestamp"].isoformat(),
    })

    return envelope(row, "Location updated")


@router.get("/drivers/{driver_id}/tracking")
async def tracking_history(
    driver_id: str,
    limit: int = Query(100, ge=1, le=500),
    actor: Actor = Depends(get_actor),
):
    driver = await DriverStore().fetch(driver_id)
    if not driver:
        raise NotFound("Driver not found")
    enforce(actor, "driver", "read", owner_id=driver["user_id"])
    return envelope(await TrackingStore().history(driver_id, limit=limit))
