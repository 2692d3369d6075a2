from fastapi import APIRouter, Depends

from fleet.auth.deps import require_roles
from fleet.db.mongo import db
from fleet.db.stats import dashboard_stats
from fleet.routers.common import envelope

router = APIRouter(tags=["dashboard"])


@router.get("/dashboard/stats")
async def stats(actor=Depends(require_roles("admin", "dispatcher"))):
    return envelope(await dashboard_stats(db()))
