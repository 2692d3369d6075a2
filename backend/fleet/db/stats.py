from datetime import timedelta

from fleet.db.store import utcnow
from fleet.lifecycle import ACTIVE


async def dashboard_stats(database, maintenance_window_days: int = 7) -> dict:
    due_by = utcnow() + timedelta(days=maintenance_window_days)
    return {
        "total_jobs": await database.jobs.count_documents({}),
        "active_jobs": await database.jobs.count_documents({"status": {"$in": list(ACTIVE)}}),
        "completed_jobs": await database.jobs.count_documents({"status": "completed"}),
        "total_drivers": await database.drivers.count_documents({}),
        "available_drivers": await database.drivers.count_documents({"status": "available"}),
        "total_vehicles": await database.vehicles.count_documents({}),
        "available_vehicles": await database.vehicles.count_documents({"status": "available"}),
        "maintenance_due": await database.vehicles.count_documents(
            {"next_maintenance": {"$lte": due_by}}
        ),
    }
