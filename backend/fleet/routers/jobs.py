import logging
from typing import Optional

from fastapi import APIRouter, Depends

from fleet.auth.deps import get_actor
from fleet.core.errors import Conflict, NotFound, ValidationFailed
from fleet.db.jobs import JobStore
from fleet.lifecycle import RELEASING, as_utc, check_transition, validate_field_edit, validate_transition
from fleet.policy import Actor, enforce, narrows_listing
from fleet.routers.common import assignee_of, envelope, own_driver
from fleet.schemas.job import JobCreate, JobStatus, JobUpdate

router = APIRouter(tags=["jobs"])

logger = logging.getLogger("fleet.jobs")

ASSIGN_FAILED = "Failed to assign job. Driver or vehicle may not be available."


async def _load(jobs: JobStore, job_id: str) -> dict:
    job = await jobs.fetch(job_id)
    if not job:
        raise NotFound("Job not found")
    return job


@router.get("/jobs")
async def list_jobs(
    status: Optional[JobStatus] = None,
    driver_id: Optional[str] = None,
    actor: Actor = Depends(get_actor),
):
    enforce(actor, "job", "list")

    filter = {}
    if status:
        filter["status"] = status
    if driver_id:
        filter["driver_id"] = driver_id

    if narrows_listing(actor, "job"):
        mine = await own_driver(actor)
        if not mine or (driver_id and driver_id != mine["id"]):
            return envelope([])
        filter["driver_id"] = mine["id"]

    return envelope(await JobStore().fetch_all(filter))


@router.post("/jobs")
async def create_job(body: JobCreate, actor: Actor = Depends(get_actor)):
    enforce(actor, "job", "create")

    jobs = JobStore()
    fields = body.model_dump(exclude={"driver_id", "vehicle_id"})
    fields["created_by"] = actor.id
    job = await jobs.create(fields)

    if body.driver_id:
        if not await jobs.assign(job["id"], body.driver_id, body.vehicle_id):
            await jobs.delete(job["id"])
            raise Conflict(ASSIGN_FAILED)
        job = await _load(jobs, job["id"])

    logger.info("Job %s created by %s", job["id"], actor.id)
    return envelope(job, "Job created successfully")


@router.get("/jobs/{job_id}")
async def get_job(job_id: str, actor: Actor = Depends(get_actor)):
    job = await _load(JobStore(), job_id)
    enforce(actor, "job", "read", owner_id=assignee_of(job))
    return envelope(job)


@router.put("/jobs/{job_id}")
async def update_job(job_id: str, body: JobUpdate, actor: Actor = Depends(get_actor)):
    jobs = JobStore()
    job = await _load(jobs, job_id)
    sent = body.model_fields_set

    if body.status is not None:
        return await _change_status(jobs, job, body, actor)

    validate_field_edit(actor)
    edits = body.field_edits()
    if not edits and not sent & {"driver_id", "vehicle_id"}:
        raise ValidationFailed("Nothing to update")

    pickup = as_utc(edits.get("scheduled_pickup") or job.get("scheduled_pickup"))
    delivery = as_utc(edits.get("scheduled_delivery") or job.get("scheduled_delivery"))
    if pickup and delivery and delivery < pickup:
        raise ValidationFailed("scheduled_delivery must not be before scheduled_pickup")

    # assignment first: if it is refused nothing else has been written
    if sent & {"driver_id", "vehicle_id"}:
        driver_id = body.driver_id if "driver_id" in sent else job.get("driver_id")
        vehicle_id = body.vehicle_id if "vehicle_id" in sent else job.get("vehicle_id")
        if not driver_id:
            raise ValidationFailed("A driver is required to assign a job")
        if not await jobs.assign(job_id, driver_id, vehicle_id):
            raise Conflict(ASSIGN_FAILED)

    if edits:
        if not await jobs.update(job_id, edits):
            raise NotFound("Job not found")

    return envelope(await _load(jobs, job_id), "Job updated successfully")


async def _change_status(jobs: JobStore, job: dict, body: JobUpdate, actor: Actor) -> dict:
    target = body.status
    sent = body.model_fields_set

    if body.field_edits():
        raise ValidationFailed("A status change cannot be combined with other field edits")

    if target == "assigned":
        if not actor.is_dispatch:
            raise ValidationFailed("Invalid status for driver")
        check_transition(job["status"], target)
        driver_id = body.driver_id or job.get("driver_id")
        vehicle_id = body.vehicle_id if "vehicle_id" in sent else job.get("vehicle_id")
        if not driver_id:
            raise ValidationFailed("A driver is required to assign a job")
        if not await jobs.assign(job["id"], driver_id, vehicle_id):
            raise Conflict(ASSIGN_FAILED)
        return envelope(await _load(jobs, job["id"]), "Job status updated successfully")

    if sent & {"driver_id", "vehicle_id"}:
        raise ValidationFailed("driver_id and vehicle_id can only accompany status 'assigned'")

    update = validate_transition(job, target, actor, assignee_of(job))
    moved = await jobs.set_status(job["id"], job["status"], update)
    if not moved:
        raise Conflict("Job was updated by someone else; reload and retry")

    if target in RELEASING:
        await jobs.release(job)

    logger.info("Job %s moved %s -> %s by %s", job["id"], job["status"], target, actor.id)
    return envelope(await _load(jobs, job["id"]), "Job status updated successfully")
