from typing import Dict, Any, Optional
import asyncio
from ..adapters.mqtt import MQTTAdapter
from ..utils.logging import get_logger
from ..utils.exceptions import CommunicationError

logger = get_logger(__name__)

class CommunicationService:
    """Owns the publish sink used to notify physical controllers"""
    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.communication_config = config.get('communication', {})
        self.mqtt: Optional[MQTTAdapter] = None

    @property
    def mqtt_config(self) -> Dict[str, Any]:
        return self.communication_config.get('mqtt') or {}

    @property
    def is_connected(self) -> bool:
        return bool(self.mqtt and self.mqtt.connected.is_set())

    async def _wait_for_mqtt_connection(self) -> None:
        """Wait for MQTT connection to be established"""
        timeout = self.mqtt.config.connection_timeout
        try:
            await asyncio.wait_for(self.mqtt.connected.wait(), timeout=timeout)
            logger.info("MQTT connection established")
        except asyncio.TimeoutError:
            # The adapter keeps retrying; publishes fail until it connects
            logger.warning(f"MQTT connection not established after {timeout} seconds")

    async def initialize(self) -> None:
        logger.info("Initializing Communication Service")
        if not self.mqtt_config.get('enabled', False):
            logger.warning("MQTT disabled, commands will not reach controllers")
            return
        try:
            self.mqtt = MQTTAdapter(self.mqtt_config)
            await self.mqtt.connect()
            logger.info("Mqtt service started")
            await self._wait_for_mqtt_connection()
        except CommunicationError:
            raise
        except Exception as e:
            logger.error(f"Failed to initialize MQTT service: {str(e)}")
            if self.mqtt:
                await self.mqtt.disconnect()
            raise CommunicationError(f"MQTT initialization failed: {str(e)}")

    async def publish(self, topic: str, payload: Dict[str, Any]) -> None:
        if not self.mqtt:
            raise CommunicationError("No publish channel configured")
        await self.mqtt.publish(topic, payload)

    async def shutdown(self) -> None:
        logger.info("Shutting down communication services")
        if self.mqtt:
            await self.mqtt.disconnect()
