from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import Any, Dict, List, Optional
from enum import Enum

from .command import DeviceCategory


class DeviceType(str, Enum):
    LIGHT = "light"
    FAN = "fan"
    SECURITY = "security"
    TEMPERATURE = "temperature"


# Command categories that map onto a registry device type. LED has no
# registry counterpart and is only reachable through direct dispatch.
CATEGORY_DEVICE_TYPES: Dict[DeviceCategory, DeviceType] = {
    DeviceCategory.LIGHT: DeviceType.LIGHT,
    DeviceCategory.FAN: DeviceType.FAN,
    DeviceCategory.SECURITY: DeviceType.SECURITY,
}


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DeviceFeatures(CamelModel):
    dimmable: bool = False
    speed_control: bool = False
    has_timer: bool = False
    has_schedule: bool = False


class Device(CamelModel):
    id: str
    name: str
    type: DeviceType
    status: bool = False
    value: Optional[int] = Field(None, ge=0, le=255)
    features: DeviceFeatures = Field(default_factory=DeviceFeatures)

    @model_validator(mode="after")
    def check_value_capability(self):
        if self.value is not None and not self.supports_value():
            raise ValueError(
                f"Device {self.id} declares a value without a dimmable or speedControl feature"
            )
        return self

    def supports_value(self) -> bool:
        return self.features.dimmable or self.features.speed_control


class Client(CamelModel):
    id: str
    name: str
    location: str
    auth_key: str
    firmware: Optional[str] = None
    devices: List[Device] = Field(default_factory=list)
    is_online: bool = False
    last_seen: datetime = Field(default_factory=datetime.now)

    @model_validator(mode="after")
    def check_unique_devices(self):
        seen = set()
        for device in self.devices:
            if device.id in seen:
                raise ValueError(f"Duplicate device id {device.id} in client {self.id}")
            seen.add(device.id)
        return self

    def find_device(self, device_id: str) -> Optional[Device]:
        return next((d for d in self.devices if d.id == device_id), None)

    def to_public_dict(self, include_secrets: bool = False) -> Dict[str, Any]:
        exclude = None if include_secrets else {"auth_key"}
        return self.model_dump(mode="json", by_alias=True, exclude=exclude)


# Request bodies for the device endpoint. Every field is optional so the
# handlers can answer missing parameters with 400 themselves.

class DeviceCommandBody(BaseModel):
    model_config = ConfigDict(extra="allow")

    state: Optional[str] = None
    brightness: Optional[float] = None
    speed: Optional[float] = None


class ControlRequest(CamelModel):
    client_id: Optional[str] = None
    device_id: Optional[str] = None
    type: Optional[str] = None
    command: Optional[DeviceCommandBody] = None


class HeartbeatRequest(CamelModel):
    client_id: Optional[str] = None
    auth_key: Optional[str] = None
    device_id: Optional[str] = None
    status: Optional[bool] = None
