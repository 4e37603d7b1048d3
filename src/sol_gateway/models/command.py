from pydantic import BaseModel, Field
from typing import Any, Dict, Optional, Union
from enum import Enum


class ActionType(str, Enum):
    CONTROL = "control"


class DeviceCategory(str, Enum):
    LIGHT = "light"
    FAN = "fan"
    SECURITY = "security"
    LED = "led"


class CommandState(str, Enum):
    ON = "ON"
    OFF = "OFF"
    DELAYED_ON = "DELAYED_ON"
    DELAYED_OFF = "DELAYED_OFF"
    BLINK = "BLINK"


class CommandParams(BaseModel):
    """Timing parameters of a command, every field optional until resolved"""
    delay: Optional[float] = None
    times: Optional[int] = None
    duration: Optional[float] = None

    def is_empty(self) -> bool:
        return self.delay is None and self.times is None and self.duration is None

    def is_complete(self) -> bool:
        return self.delay is not None and self.times is not None and self.duration is not None

    def as_payload(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class Command(BaseModel):
    action: ActionType = ActionType.CONTROL
    device_type: DeviceCategory
    location: Optional[str] = None
    name: Optional[str] = None
    state: CommandState
    params: CommandParams = Field(default_factory=CommandParams)


# Tagged results of directive parsing

class ParsedCommand(BaseModel):
    kind: str = "command"
    command: Command
    text: str


class PlainChat(BaseModel):
    kind: str = "chat"
    text: str


class Malformed(BaseModel):
    kind: str = "malformed"
    text: str
    reason: str


ParseResult = Union[ParsedCommand, PlainChat, Malformed]
