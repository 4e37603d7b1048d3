from fastapi import APIRouter
from fastapi.responses import JSONResponse
from typing import Any, Dict, Optional
from ...models.device import ControlRequest, Device, DeviceCommandBody, HeartbeatRequest
from ...utils.logging import get_logger
from ..dependencies import BearerTokenDependency, RegistryDependency

logger = get_logger(__name__)

device_router = APIRouter()

SIMPLE_STATES = ("ON", "OFF")


'''
# Switch a device from the dashboard
await client.post("/api/device", json={"clientId": "esp32_livingroom", "deviceId": "light1",
                                       "type": "light", "command": {"state": "ON", "brightness": 40}})

# Controller heartbeat
await client.put("/api/device", json={"clientId": "esp32_livingroom", "authKey": "..."})
'''


def requested_value(device: Device, command: DeviceCommandBody) -> Optional[int]:
    """Convert a brightness or speed percentage into the 0-255 device value"""
    if device.features.dimmable and command.brightness is not None:
        percentage = command.brightness
    elif device.features.speed_control and command.speed is not None:
        percentage = command.speed
    else:
        return None
    percentage = max(0.0, min(percentage, 100.0))
    return round(percentage * 255 / 100)


@device_router.post("/device")
async def control_device(body: ControlRequest, registry: RegistryDependency):
    command = body.command
    if not body.client_id or not body.device_id or not body.type or not command or not command.state:
        return JSONResponse(status_code=400, content={"error": "Missing required parameters"})

    if command.state not in SIMPLE_STATES:
        return JSONResponse(status_code=400, content={"error": "Invalid command state"})

    # NotFoundError raised here is answered with 404 by the app handlers
    client = registry.find_client(body.client_id)
    device = client.find_device(body.device_id)
    if device is None:
        return JSONResponse(status_code=404, content={"error": "Device not found"})

    updated = registry.update_device(
        body.client_id,
        body.device_id,
        status=command.state == "ON",
        value=requested_value(device, command),
    )
    logger.info(f"Device {body.client_id}/{body.device_id} switched {command.state}")

    response: Dict[str, Any] = {
        "success": True,
        "command": command.model_dump(exclude_none=True),
        "deviceState": updated.status,
    }
    if updated.value is not None:
        response["deviceValue"] = updated.value
    return response


@device_router.put("/device")
async def update_status(body: HeartbeatRequest, registry: RegistryDependency,
                        bearer_token: BearerTokenDependency):
    if not body.client_id or not (body.auth_key or bearer_token):
        return JSONResponse(status_code=400, content={"error": "Missing authentication parameters"})

    registry.authenticate(body.client_id, auth_key=body.auth_key, bearer_token=bearer_token)

    if body.device_id is not None:
        # a named device must exist even when only checking in
        registry.update_device(body.client_id, body.device_id, status=body.status)
    else:
        registry.heartbeat(body.client_id)

    return {"success": True}


@device_router.get("/device")
async def get_status(registry: RegistryDependency, bearer_token: BearerTokenDependency,
                     clientId: Optional[str] = None):
    if clientId:
        if bearer_token:
            registry.authenticate(clientId, bearer_token=bearer_token)
            # an authenticated poll is as good as a heartbeat
            registry.heartbeat(clientId)
        return {"client": registry.describe_client(clientId)}

    return {"clients": registry.snapshot()}
