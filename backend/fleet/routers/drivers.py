import logging
from typing import Optional

from fastapi import APIRouter, Depends

from fleet.auth.deps import get_actor
from fleet.core.config import DRIVER_TEMP_PASSWORD
from fleet.core.errors import DuplicateKey, Forbidden, NotFound, ValidationFailed, conflict_for
from fleet.db.drivers import DriverStore
from fleet.db.users import UserStore
from fleet.policy import Actor, enforce, narrows_listing
from fleet.routers.common import envelope
from fleet.schemas.driver import DriverCreate, DriverStatus, DriverUpdate

router = APIRouter(tags=["drivers"])

logger = logging.getLogger("fleet.drivers")


@router.get("/drivers")
async def list_drivers(status: Optional[DriverStatus] = None, actor: Actor = Depends(get_actor)):
    enforce(actor, "driver", "list")
    drivers = DriverStore()

    if narrows_listing(actor, "driver"):
        mine = await drivers.fetch_by_user(actor.id)
        rows = [mine] if mine else []
        if status:
            rows = [d for d in rows if d["status"] == status]
        return envelope(rows)

    return envelope(await drivers.fetch_all({"status": status} if status else None))


@router.post("/drivers")
async def create_driver(body: DriverCreate, actor: Actor = Depends(get_actor)):
    enforce(actor, "driver", "create")

    users = UserStore()
    try:
        user = await users.provision(
            body.email, DRIVER_TEMP_PASSWORD, body.full_name, role="driver", phone=body.phone
        )
    except DuplicateKey as err:
        raise conflict_for(err)

    try:
        driver = await DriverStore().create({
            "user_id": user["id"],
            "license_number": body.license_number,
            "license_expiry": body.license_expiry.isoformat(),
        })
    except DuplicateKey as err:
        await users.remove(user["id"])
        raise conflict_for(err)
    except Exception:
        await users.remove(user["id"])
        raise

    logger.info("Driver %s provisioned by %s", driver["id"], actor.id)
    return envelope(driver, "Driver created successfully")


@router.get("/drivers/{driver_id}")
async def get_driver(driver_id: str, actor: Actor = Depends(get_actor)):
    driver = await DriverStore().fetch(driver_id)
    if not driver:
        raise NotFound("Driver not found")
    enforce(actor, "driver", "read", owner_id=driver["user_id"])
    return envelope(driver)


@router.put("/drivers/{driver_id}")
async def update_driver(driver_id: str, body: DriverUpdate, actor: Actor = Depends(get_actor)):
    drivers = DriverStore()
    driver = await drivers.fetch(driver_id)
    if not driver:
        raise NotFound("Driver not found")
    enforce(actor, "driver", "write", owner_id=driver["user_id"])

    update = {k: v for k, v in body.model_dump(exclude_unset=True).items() if v is not None}
    if not actor.is_dispatch and set(update) - {"status"}:
        raise Forbidden("Drivers can only update their status")
    if not update:
        raise ValidationFailed("Nothing to update")
    if "license_expiry" in update:
        update["license_expiry"] = update["license_expiry"].isoformat()

    try:
        updated = await drivers.update(driver_id, update)
    except DuplicateKey as err:
        raise conflict_for(err)
    if not updated:
        raise NotFound("Driver not found")
    return envelope(updated, "Driver updated successfully")
