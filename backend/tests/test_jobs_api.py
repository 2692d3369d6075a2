import asyncio
from datetime import datetime

from conftest import InterleavedDb, job_body, run

from fleet.db import mongo
from fleet.db.drivers import DriverStore
from fleet.db.jobs import JobStore
from fleet.db.vehicles import VehicleStore


def parse(ts: str) -> datetime:
    return datetime.fromisoformat(ts.replace("Z", "+00:00"))


def test_dispatcher_creates_pending_job(client, seed, dispatcher):
    r = client.post("/jobs", json=job_body(), headers=seed.headers(dispatcher))
    assert r.status_code == 200
    job = r.json()["data"]
    assert job["status"] == "pending"
    assert job["priority"] == "medium"
    assert job["pickup_location"]["address"] == "1 Main St"
    assert job["pickup_location"]["latitude"] == 40.0
    assert job["dropoff_location"]["longitude"] == -75.1
    assert job["creator"]["id"] == dispatcher["id"]
    assert job["driver"] is None
    assert job["actual_pickup"] is None and job["actual_delivery"] is None


def test_driver_cannot_create_jobs(client, seed):
    me, _ = seed.driver()
    assert client.post("/jobs", json=job_body(), headers=seed.headers(me)).status_code == 403


def test_create_requires_locations(client, seed, dispatcher):
    body = job_body(pickup_location={"address": "1 Main St"})
    r = client.post("/jobs", json=body, headers=seed.headers(dispatcher))
    assert r.status_code == 400


def test_create_with_assignment(client, seed, dispatcher):
    _, d = seed.driver()
    v = seed.vehicle()
    r = client.post("/jobs", json=job_body(driver_id=d["id"], vehicle_id=v["id"]), headers=seed.headers(dispatcher))
    job = r.json()["data"]
    assert job["status"] == "assigned"
    assert job["driver"]["id"] == d["id"]
    assert job["driver"]["user"]["role"] == "driver"
    assert job["vehicle"]["id"] == v["id"]


def test_create_with_unavailable_driver_leaves_no_job(client, seed, dispatcher):
    _, d = seed.driver(status="off_duty")
    r = client.post("/jobs", json=job_body(driver_id=d["id"]), headers=seed.headers(dispatcher))
    assert r.status_code == 400
    assert r.json()["error"].startswith("Failed to assign job")
    assert run(JobStore().fetch_all()) == []


def test_assign_then_driver_runs_the_job(client, seed, dispatcher):
    me, d = seed.driver()
    v = seed.vehicle()
    job = client.post("/jobs", json=job_body(), headers=seed.headers(dispatcher)).json()["data"]

    r = client.put(f"/jobs/{job['id']}", json={"driver_id": d["id"], "vehicle_id": v["id"]}, headers=seed.headers(dispatcher))
    assert r.status_code == 200
    assert r.json()["data"]["status"] == "assigned"
    assert run(DriverStore().fetch(d["id"]))["status"] == "on_duty"
    assert run(VehicleStore().fetch(v["id"]))["status"] == "in_use"

    h = seed.headers(me)
    r = client.put(f"/jobs/{job['id']}", json={"status": "in_progress"}, headers=h)
    assert r.status_code == 200
    started = r.json()["data"]
    assert started["status"] == "in_progress"
    assert started["actual_pickup"] is not None
    assert started["actual_delivery"] is None

    r = client.put(f"/jobs/{job['id']}", json={"status": "completed"}, headers=h)
    done = r.json()["data"]
    assert done["status"] == "completed"
    assert parse(done["actual_delivery"]) >= parse(done["actual_pickup"])

    # finishing hands driver and vehicle back
    assert run(DriverStore().fetch(d["id"]))["status"] == "available"
    assert run(VehicleStore().fetch(v["id"]))["status"] == "available"

    r = client.put(f"/jobs/{job['id']}", json={"status": "in_progress"}, headers=h)
    assert r.status_code == 400


def test_status_put_to_assigned_uses_the_primitive(client, seed, dispatcher):
    _, d = seed.driver()
    job = seed.job(dispatcher)
    h = seed.headers(dispatcher)
    r = client.put(f"/jobs/{job['id']}", json={"status": "assigned"}, headers=h)
    assert r.status_code == 400
    r = client.put(f"/jobs/{job['id']}", json={"status": "assigned", "driver_id": d["id"]}, headers=h)
    assert r.status_code == 200
    assert r.json()["data"]["driver_id"] == d["id"]


def test_pending_to_in_progress_rejected_for_everyone(client, seed, admin, dispatcher):
    job = seed.job(dispatcher)
    for user in (admin, dispatcher):
        r = client.put(f"/jobs/{job['id']}", json={"status": "in_progress"}, headers=seed.headers(user))
        assert r.status_code == 400
    assert run(JobStore().fetch(job["id"]))["status"] == "pending"


def test_cancel_rules(client, seed, dispatcher):
    me, d = seed.driver()
    h = seed.headers(dispatcher)

    pending = seed.job(dispatcher)
    assert client.put(f"/jobs/{pending['id']}", json={"status": "cancelled"}, headers=h).json()["data"]["status"] == "cancelled"

    running = seed.job(dispatcher)
    seed.assign(running, d)
    client.put(f"/jobs/{running['id']}", json={"status": "in_progress"}, headers=seed.headers(me))
    r = client.put(f"/jobs/{running['id']}", json={"status": "cancelled"}, headers=h)
    assert r.status_code == 400
    assert run(JobStore().fetch(running["id"]))["status"] == "in_progress"


def test_cancelling_assigned_job_releases_driver(client, seed, dispatcher):
    _, d = seed.driver()
    job = seed.job(dispatcher)
    assert seed.assign(job, d)
    client.put(f"/jobs/{job['id']}", json={"status": "cancelled"}, headers=seed.headers(dispatcher))
    assert run(DriverStore().fetch(d["id"]))["status"] == "available"


def test_driver_status_values_are_limited(client, seed, dispatcher):
    me, d = seed.driver()
    job = seed.job(dispatcher)
    seed.assign(job, d)
    r = client.put(f"/jobs/{job['id']}", json={"status": "cancelled"}, headers=seed.headers(me))
    assert r.status_code == 400
    assert r.json()["error"] == "Invalid status for driver"


def test_driver_only_sees_assigned_jobs(client, seed, dispatcher):
    me, d = seed.driver()
    _, other = seed.driver()
    mine = seed.job(dispatcher, title="mine")
    theirs = seed.job(dispatcher, title="theirs")
    unassigned = seed.job(dispatcher, title="open")
    seed.assign(mine, d)
    seed.assign(theirs, other)

    h = seed.headers(me)
    r = client.get("/jobs", headers=h)
    assert [j["id"] for j in r.json()["data"]] == [mine["id"]]
    assert client.get(f"/jobs/{mine['id']}", headers=h).status_code == 200
    for job in (theirs, unassigned):
        assert client.get(f"/jobs/{job['id']}", headers=h).status_code == 403
        assert client.put(f"/jobs/{job['id']}", json={"status": "in_progress"}, headers=h).status_code == 403
    assert client.get(f"/jobs?driver_id={other['id']}", headers=h).json()["data"] == []


def test_job_filters(client, seed, dispatcher):
    _, d = seed.driver()
    a = seed.job(dispatcher)
    seed.job(dispatcher)
    seed.assign(a, d)
    h = seed.headers(dispatcher)
    assert [j["id"] for j in client.get("/jobs?status=assigned", headers=h).json()["data"]] == [a["id"]]
    assert [j["id"] for j in client.get(f"/jobs?driver_id={d['id']}", headers=h).json()["data"]] == [a["id"]]
    assert len(client.get("/jobs", headers=h).json()["data"]) == 2
    assert client.get("/jobs?status=bogus", headers=h).status_code == 400


def test_driver_cannot_edit_job_fields(client, seed, dispatcher):
    me, d = seed.driver()
    job = seed.job(dispatcher)
    seed.assign(job, d)
    r = client.put(f"/jobs/{job['id']}", json={"title": "mine now"}, headers=seed.headers(me))
    assert r.status_code == 403


def test_dispatcher_edits_fields(client, seed, dispatcher):
    job = seed.job(dispatcher)
    r = client.put(
        f"/jobs/{job['id']}",
        json={"priority": "urgent", "dropoff_location": {"address": "9 Elm St", "latitude": 40.2, "longitude": -75.2}},
        headers=seed.headers(dispatcher),
    )
    data = r.json()["data"]
    assert data["priority"] == "urgent"
    assert data["dropoff_location"]["address"] == "9 Elm St"
    assert data["pickup_location"]["address"] == "1 Main St"


def test_status_and_field_edits_cannot_be_mixed(client, seed, dispatcher):
    job = seed.job(dispatcher)
    r = client.put(f"/jobs/{job['id']}", json={"status": "cancelled", "title": "x"}, headers=seed.headers(dispatcher))
    assert r.status_code == 400
    assert run(JobStore().fetch(job["id"]))["status"] == "pending"


def test_busy_driver_cannot_take_second_job(client, seed, dispatcher):
    _, d = seed.driver()
    first = seed.job(dispatcher)
    second = seed.job(dispatcher)
    assert seed.assign(first, d)
    r = client.put(f"/jobs/{second['id']}", json={"driver_id": d["id"]}, headers=seed.headers(dispatcher))
    assert r.status_code == 400
    assert run(JobStore().fetch(second["id"]))["status"] == "pending"


def test_vehicle_in_use_rejects_whole_assignment(client, seed, dispatcher):
    _, d1 = seed.driver()
    _, d2 = seed.driver()
    v = seed.vehicle()
    first = seed.job(dispatcher)
    second = seed.job(dispatcher)
    assert seed.assign(first, d1, v)

    r = client.put(f"/jobs/{second['id']}", json={"driver_id": d2["id"], "vehicle_id": v["id"]}, headers=seed.headers(dispatcher))
    assert r.status_code == 400
    # driver lock taken before the vehicle check was handed back
    assert run(DriverStore().fetch(d2["id"]))["status"] == "available"
    assert run(JobStore().fetch(second["id"]))["driver_id"] is None


def test_vehicle_marked_available_is_still_held_by_its_job(client, seed, dispatcher):
    _, d1 = seed.driver()
    _, d2 = seed.driver()
    v = seed.vehicle()
    first = seed.job(dispatcher)
    second = seed.job(dispatcher)
    assert seed.assign(first, d1, v)
    h = seed.headers(dispatcher)
    assert client.put(f"/vehicles/{v['id']}", json={"status": "available"}, headers=h).status_code == 200

    r = client.put(f"/jobs/{second['id']}", json={"driver_id": d2["id"], "vehicle_id": v["id"]}, headers=h)
    assert r.status_code == 400
    holders = run(JobStore().fetch_all({"vehicle_id": v["id"], "status": {"$in": ["assigned", "in_progress"]}}))
    assert [j["id"] for j in holders] == [first["id"]]
    assert run(DriverStore().fetch(d2["id"]))["status"] == "available"
    assert run(VehicleStore().fetch(v["id"]))["status"] == "in_use"


def test_reassignment_releases_previous_driver(client, seed, dispatcher):
    _, d1 = seed.driver()
    _, d2 = seed.driver()
    job = seed.job(dispatcher)
    assert seed.assign(job, d1)
    r = client.put(f"/jobs/{job['id']}", json={"driver_id": d2["id"]}, headers=seed.headers(dispatcher))
    assert r.json()["data"]["driver"]["id"] == d2["id"]
    assert run(DriverStore().fetch(d1["id"]))["status"] == "available"
    assert run(DriverStore().fetch(d2["id"]))["status"] == "on_duty"


def test_racing_assignments_of_one_driver(client, seed, dispatcher):
    _, d = seed.driver()
    a = seed.job(dispatcher)
    b = seed.job(dispatcher)

    async def race():
        jobs = JobStore(InterleavedDb(mongo.db()))
        return await asyncio.gather(jobs.assign(a["id"], d["id"]), jobs.assign(b["id"], d["id"]))

    results = run(race())
    assert sorted(results) == [False, True]
    statuses = sorted(run(JobStore().fetch(j["id"]))["status"] for j in (a, b))
    assert statuses == ["assigned", "pending"]


def test_racing_vehicle_swaps_on_one_job(client, seed, dispatcher):
    _, d = seed.driver()
    v1, v2, v3 = seed.vehicle(), seed.vehicle(), seed.vehicle()
    job = seed.job(dispatcher)
    assert seed.assign(job, d, v1)

    async def race():
        jobs = JobStore(InterleavedDb(mongo.db()))
        return await asyncio.gather(
            jobs.assign(job["id"], d["id"], v2["id"]),
            jobs.assign(job["id"], d["id"], v3["id"]),
        )

    assert sorted(run(race())) == [False, True]
    held = run(JobStore().fetch(job["id"]))["vehicle_id"]
    assert held in (v2["id"], v3["id"])
    loser = v3 if held == v2["id"] else v2
    vehicles = VehicleStore()
    assert run(vehicles.fetch(held))["status"] == "in_use"
    assert run(vehicles.fetch(loser["id"]))["status"] == "available"
    assert run(vehicles.fetch(v1["id"]))["status"] == "available"
    assert run(DriverStore().fetch(d["id"]))["vehicle_id"] == held


def test_dashboard_stats(client, seed, dispatcher):
    _, d = seed.driver()
    seed.vehicle()
    job = seed.job(dispatcher)
    seed.job(dispatcher)
    seed.assign(job, d)

    r = client.get("/dashboard/stats", headers=seed.headers(dispatcher))
    stats = r.json()["data"]
    assert stats["total_jobs"] == 2
    assert stats["active_jobs"] == 1
    assert stats["total_drivers"] == 1
    assert stats["available_drivers"] == 0
    assert stats["available_vehicles"] == 1

    me, _ = seed.driver()
    assert client.get("/dashboard/stats", headers=seed.headers(me)).status_code == 403
