import asyncio
from typing import Dict, Any, Optional, Union
from pydantic import BaseModel, Field
import aiomqtt as mqtt
from aiomqtt import Will
import json
import random
import ssl
from ..adapters.base import CommunicationAdapter
from ..utils.logging import get_logger
from ..utils.exceptions import CommunicationError

logger = get_logger(__name__)

'''
usage Examples

await mqtt_adapter.connect()
await mqtt_adapter.connected.wait()

await mqtt_adapter.publish("device/led", {"state": "ON", "params": {}})

await mqtt_adapter.disconnect()

'''


class MQTTConfig(BaseModel):
    """MQTT configuration model"""
    enabled: bool = Field(True, description="Connect to the broker at startup")
    host: str = Field(..., description="MQTT broker hostname")
    port: int = Field(1883, description="MQTT broker port")
    username: Optional[str] = Field(None, description="MQTT username")
    password: Optional[str] = Field(None, description="MQTT password")
    keepalive: int = Field(60, description="Connection keepalive in seconds")
    client_id: str = Field("sol_gateway", description="MQTT client ID")
    ssl: bool = Field(False, description="Enable SSL/TLS")
    reconnect_interval: float = Field(5.0, description="Reconnection interval in seconds")
    max_reconnect_attempts: int = Field(5, description="Maximum reconnection attempts, 0 retries forever")
    connection_timeout: float = Field(30.0, description="Seconds to wait for the first connection")
    ca_cert: Optional[str] = Field(None, description="Custom CA certificate")
    client_cert: Optional[str] = Field(None, description="Client certificate")
    client_key: Optional[str] = Field(None, description="Required if client_cert is set")
    verify_hostname: bool = Field(True, description="Verify broker's hostname")
    tls_version: Optional[str] = Field(None, description="TLS1_2, TLS1_3, etc.")
    publish_qos: int = Field(1, ge=0, le=2, description="qos for published commands")
    clean_session: bool = Field(True, description="Start without a persistent session")


class MQTTAdapter(CommunicationAdapter):
    def __init__(self, config: Dict[str, Any]):
        """Initialize MQTT adapter with configuration"""
        try:
            self.config = MQTTConfig(**config)
            self.config.keepalive = max(30, self.config.keepalive)
        except Exception as e:
            raise CommunicationError(f"Invalid MQTT configuration: {str(e)}")

        self.client: Optional[mqtt.Client] = None
        self.connected = asyncio.Event()
        self._stop_flag = asyncio.Event()
        self._connection_task: Optional[asyncio.Task] = None

    @property
    def status_topic(self) -> str:
        return f"{self.config.client_id}/status"

    def _create_tls_context(self) -> Optional[ssl.SSLContext]:
        """Create SSL context for MQTT connection based on config"""
        if not self.config.ssl:
            return None

        context = ssl.create_default_context()

        if self.config.ca_cert:
            context.load_verify_locations(cafile=self.config.ca_cert)

        if self.config.client_cert:
            if not self.config.client_key:
                raise ValueError("Client key must be provided when using client certificate")
            context.load_cert_chain(
                certfile=self.config.client_cert,
                keyfile=self.config.client_key
            )

        if self.config.tls_version:
            context.minimum_version = getattr(ssl.TLSVersion, self.config.tls_version.upper(),
                                        ssl.TLSVersion.TLSv1_2)

        context.check_hostname = self.config.verify_hostname

        return context

    def _create_client(self) -> mqtt.Client:
        # Last Will and Testament marks the gateway offline if we drop
        will = Will(
            topic=self.status_topic,
            payload="Offline",
            qos=1,
            retain=True)

        return mqtt.Client(
            hostname=self.config.host,
            port=self.config.port,
            username=self.config.username,
            password=self.config.password,
            keepalive=self.config.keepalive,
            identifier=f"{self.config.client_id}_{random.randint(1000, 9999)}",
            clean_session=self.config.clean_session,
            will=will,
            tls_context=self._create_tls_context()
        )

    async def _maintain_connection(self) -> None:
        """Hold the broker connection open, reconnecting with backoff"""
        attempt = 0
        while not self._stop_flag.is_set():
            try:
                async with self._create_client() as client:
                    self.client = client
                    self.connected.set()
                    attempt = 0
                    await client.publish(self.status_topic, payload="Online", qos=1, retain=True)
                    logger.info(f"Connected to MQTT broker {self.config.host}:{self.config.port}")

                    # Nothing is subscribed; iterating only surfaces a dropped connection
                    async for message in client.messages:
                        logger.debug(f"Ignoring message on {message.topic}")
            except asyncio.CancelledError:
                raise
            except mqtt.MqttError as e:
                attempt += 1
                logger.error(f"MQTT connection attempt {attempt} failed: {e}")
                if self.config.max_reconnect_attempts and attempt >= self.config.max_reconnect_attempts:
                    logger.error(f"Giving up on MQTT broker after {attempt} attempts")
                    break

                # Exponential backoff for reconnection attempts
                wait_time = min(self.config.reconnect_interval * (2 ** (attempt - 1)), 60)
                logger.info(f"MQTT Retry will happen after {wait_time} seconds")
                await asyncio.sleep(wait_time)
            finally:
                self.connected.clear()
                self.client = None

    async def connect(self) -> None:
        """Start the background connection task"""
        try:
            self._stop_flag.clear()
            self._connection_task = asyncio.create_task(self._maintain_connection())
        except Exception as e:
            raise CommunicationError(f"Failed to start MQTT adapter: {str(e)}")

    async def disconnect(self) -> None:
        """Disconnect from MQTT broker and cleanup"""
        self._stop_flag.set()
        task = self._connection_task
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._connection_task = None
        self.connected.clear()
        logger.info("MQTT adapter stopped")

    @staticmethod
    def encode_payload(payload: Union[Dict[str, Any], str, bytes]) -> bytes:
        if isinstance(payload, dict):
            payload = json.dumps(payload)
        elif not isinstance(payload, (str, bytes)):
            payload = str(payload)
        if isinstance(payload, str):
            payload = payload.encode()
        return payload

    async def publish(self, topic: str, payload: Union[Dict[str, Any], str, bytes]) -> None:
        """Publish immediately; no queueing and no retry"""
        client = self.client
        if client is None or not self.connected.is_set():
            raise CommunicationError("Not connected to MQTT broker")
        try:
            await client.publish(
                topic=topic,
                payload=self.encode_payload(payload),
                qos=self.config.publish_qos,
            )
            logger.debug(f"Published to {topic}")
        except mqtt.MqttError as e:
            raise CommunicationError(f"Failed to publish to {topic}: {str(e)}")
