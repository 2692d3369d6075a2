from typing import Any, Optional

from fleet.db.drivers import DriverStore
from fleet.policy import Actor


def envelope(data: Any = None, message: Optional[str] = None) -> dict:
    body = {}
    if data is not None:
        body["data"] = data
    if message:
        body["message"] = message
    return body


def assignee_of(job: dict) -> Optional[str]:
    """User id behind the job's assigned driver."""
    driver = job.get("driver") or {}
    return driver.get("user_id")


async def own_driver(actor: Actor) -> Optional[dict]:
    return await DriverStore().fetch_by_user(actor.id)
