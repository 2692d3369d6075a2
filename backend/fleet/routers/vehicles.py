from typing import Optional

from fastapi import APIRouter, Depends

from fleet.auth.deps import get_actor
from fleet.core.errors import Conflict, DuplicateKey, NotFound, ValidationFailed, conflict_for
from fleet.db.vehicles import VehicleStore
from fleet.policy import Actor, enforce, narrows_listing
from fleet.routers.common import envelope, own_driver
from fleet.schemas.vehicle import VehicleCreate, VehicleStatus, VehicleUpdate

router = APIRouter(tags=["vehicles"])


async def _owner(actor: Actor, vehicle_id: str) -> Optional[str]:
    # a driver "owns" the vehicle their driver record currently carries
    if actor.is_dispatch:
        return None
    driver = await own_driver(actor)
    if driver and driver.get("vehicle_id") == vehicle_id:
        return actor.id
    return None


@router.get("/vehicles")
async def list_vehicles(status: Optional[VehicleStatus] = None, actor: Actor = Depends(get_actor)):
    enforce(actor, "vehicle", "list")
    vehicles = VehicleStore()

    if narrows_listing(actor, "vehicle"):
        rows = await vehicles.fetch_for_driver(await own_driver(actor))
        if status:
            rows = [v for v in rows if v["status"] == status]
        return envelope(rows)

    return envelope(await vehicles.fetch_all({"status": status} if status else None))


@router.post("/vehicles")
async def create_vehicle(body: VehicleCreate, actor: Actor = Depends(get_actor)):
    enforce(actor, "vehicle", "create")
    fields = body.model_dump()
    fields["license_plate"] = fields["license_plate"].strip()
    try:
        vehicle = await VehicleStore().create(fields)
    except DuplicateKey as err:
        raise conflict_for(err)
    return envelope(vehicle, "Vehicle created successfully")


@router.get("/vehicles/{vehicle_id}")
async def get_vehicle(vehicle_id: str, actor: Actor = Depends(get_actor)):
    vehicle = await VehicleStore().fetch(vehicle_id)
    if not vehicle:
        raise NotFound("Vehicle not found")
    enforce(actor, "vehicle", "read", owner_id=await _owner(actor, vehicle_id))
    return envelope(vehicle)


@router.put("/vehicles/{vehicle_id}")
async def update_vehicle(vehicle_id: str, body: VehicleUpdate, actor: Actor = Depends(get_actor)):
    enforce(actor, "vehicle", "write")

    update = {k: v for k, v in body.model_dump(exclude_unset=True).items() if v is not None}
    if not update:
        raise ValidationFailed("Nothing to update")
    if "license_plate" in update:
        update["license_plate"] = update["license_plate"].strip()

    try:
        vehicle = await VehicleStore().update(vehicle_id, update)
    except DuplicateKey as err:
        raise conflict_for(err)
    if not vehicle:
        raise NotFound("Vehicle not found")
    return envelope(vehicle, "Vehicle updated successfully")


@router.delete("/vehicles/{vehicle_id}")
async def delete_vehicle(vehicle_id: str, actor: Actor = Depends(get_actor)):
    enforce(actor, "vehicle", "delete")
    vehicles = VehicleStore()
    job = await vehicles.active_job(vehicle_id)
    if job:
        raise Conflict(f"Vehicle is on active job {job['id']}")
    if not await vehicles.remove(vehicle_id):
        raise NotFound("Vehicle not found")
    return envelope(message="Vehicle deleted successfully")
