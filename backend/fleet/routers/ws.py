from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from fleet.auth.deps import decode_token, resolve_actor
from fleet.core.errors import FleetError
from fleet.db.drivers import DriverStore
from fleet.policy import is_allowed
from fleet.realtime.manager import manager

router = APIRouter()


@router.websocket("/ws/drivers/{driver_id}")
async def driver_ws(ws: WebSocket, driver_id: str, token: str = Query("")):
    try:
        actor = await resolve_actor(decode_token(token))
    except FleetError:
        await ws.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    driver = await DriverStore().fetch(driver_id)
    if not driver or not is_allowed(actor, "driver", "read", driver["user_id"]):
        await ws.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await manager.connect(driver_id, ws)
    last = driver.get("current_location")
    if last:
        await ws.send_json({
            "driver_id": driver_id,
            "latitude": last["latitude"],
            "longitude": last["longitude"],
            "timestamp": last["timestamp"].isoformat(),
        })

    try:
        while True:
            # keep connection alive; client can send pings
            await ws.receive_text()
    except WebSocketDisconnect:
        manager.disconnect(driver_id, ws)
