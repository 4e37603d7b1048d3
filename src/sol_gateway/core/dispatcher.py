# Command dispatch: resolve, mutate registry, publish
import asyncio
import traceback
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from ..models.command import Command, CommandState, DeviceCategory
from ..models.device import CATEGORY_DEVICE_TYPES
from ..utils.exceptions import CommunicationError, NotFoundError
from ..utils.logging import get_logger
from .device_registry import DeviceRegistry

logger = get_logger(__name__)

DEFAULT_TOPICS = {
    DeviceCategory.LED: "device/led",
    DeviceCategory.LIGHT: "device/light",
    DeviceCategory.FAN: "device/fan",
    DeviceCategory.SECURITY: "device/security",
}

# Boolean status each state leaves the device in once the controller is done.
# BLINK returns the device to where it was, so it is left untouched.
TERMINAL_STATUS = {
    CommandState.ON: True,
    CommandState.OFF: False,
    CommandState.DELAYED_ON: True,
    CommandState.DELAYED_OFF: False,
    CommandState.BLINK: None,
}


class DispatcherConfig(BaseModel):
    mode: Literal["registry", "single"] = "registry"
    direct_categories: List[DeviceCategory] = Field(default_factory=lambda: [DeviceCategory.LED])
    topics: Dict[DeviceCategory, str] = Field(default_factory=lambda: dict(DEFAULT_TOPICS))
    sink_timeout: float = Field(5.0, gt=0)


class DispatchStatus(str, Enum):
    DELIVERED = "DELIVERED"
    DEVICE_RESOLUTION_FAILED = "DEVICE_RESOLUTION_FAILED"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    SINK_ERROR = "SINK_ERROR"


class DispatchResult(BaseModel):
    status: DispatchStatus
    message: str
    topic: Optional[str] = None
    payload: Optional[Dict[str, Any]] = None
    client_id: Optional[str] = None
    device_id: Optional[str] = None

    @property
    def delivered(self) -> bool:
        return self.status == DispatchStatus.DELIVERED


class CommandDispatcher:
    def __init__(self, registry: DeviceRegistry, sink, config: Optional[Dict[str, Any]] = None):
        self.registry = registry
        self.sink = sink
        self.config = DispatcherConfig(**(config or {}))
        # explicit topics override the defaults one category at a time
        self.topics = {**DEFAULT_TOPICS, **self.config.topics}

    def _resolves(self, category: DeviceCategory) -> bool:
        return self.config.mode == "registry" and category not in self.config.direct_categories

    def validate(self, command: Command) -> Optional[str]:
        """Return a reason when the command cannot be dispatched"""
        if not isinstance(command.state, CommandState):
            return f"Unrecognized state: {command.state}"
        if command.state == CommandState.BLINK and not command.params.is_complete():
            return "BLINK requires delay, times and duration"
        if command.device_type not in self.topics:
            return f"No topic configured for {command.device_type.value}"
        return None

    async def dispatch(self, command: Command) -> DispatchResult:
        reason = self.validate(command)
        if reason:
            logger.warning(f"Rejected command {command.model_dump()}: {reason}")
            return DispatchResult(status=DispatchStatus.VALIDATION_FAILED, message=reason)

        client_id = device_id = None
        if self._resolves(command.device_type):
            device_type = CATEGORY_DEVICE_TYPES.get(command.device_type)
            if device_type is None:
                return DispatchResult(
                    status=DispatchStatus.DEVICE_RESOLUTION_FAILED,
                    message=f"{command.device_type.value} devices are not in the registry",
                )
            try:
                client_id, device_id = self.registry.find_device_by_identity(
                    command.location, device_type, command.name
                )
                # Registry lock is held only inside these calls, never across the publish
                self.registry.update_device(client_id, device_id, status=TERMINAL_STATUS[command.state])
            except NotFoundError as e:
                logger.info(f"Device resolution failed: {e}")
                return DispatchResult(status=DispatchStatus.DEVICE_RESOLUTION_FAILED, message=str(e))

        topic = self.topics[command.device_type]
        payload: Dict[str, Any] = {"state": command.state.value, "params": command.params.as_payload()}
        if client_id is not None:
            payload["clientId"] = client_id
            payload["deviceId"] = device_id

        try:
            await asyncio.wait_for(self.sink.publish(topic, payload), timeout=self.config.sink_timeout)
        except asyncio.TimeoutError:
            logger.error(f"Publish to {topic} timed out after {self.config.sink_timeout}s")
            return DispatchResult(status=DispatchStatus.SINK_ERROR, topic=topic, payload=payload,
                                  client_id=client_id, device_id=device_id,
                                  message="Timed out delivering command")
        except CommunicationError as e:
            logger.error(f"Publish to {topic} failed: {e}")
            return DispatchResult(status=DispatchStatus.SINK_ERROR, topic=topic, payload=payload,
                                  client_id=client_id, device_id=device_id, message=str(e))
        except Exception:
            logger.error(f"Unexpected error publishing to {topic}: {traceback.format_exc()}")
            return DispatchResult(status=DispatchStatus.SINK_ERROR, topic=topic, payload=payload,
                                  client_id=client_id, device_id=device_id,
                                  message="Failed to deliver command")

        logger.info(f"Command sent to {topic}: {payload}")
        return DispatchResult(status=DispatchStatus.DELIVERED, topic=topic, payload=payload,
                              client_id=client_id, device_id=device_id, message="Command sent")
