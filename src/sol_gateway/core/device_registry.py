# In-memory registry of clients and their devices
import secrets
import threading
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import ValidationError

from ..models.device import Client, Device, DeviceType
from ..utils.exceptions import (
    AuthenticationError,
    ClientNotFoundError,
    ConfigurationError,
    DeviceNotFoundError,
)
from ..utils.logging import get_logger

logger = get_logger(__name__)


class DeviceRegistry:
    """
    Process-wide store of provisioned clients and devices.

    Built once at startup from the static `clients` configuration. All reads
    and writes go through a single lock; callers receive copies, never the
    stored models, so nothing outside the registry mutates its state.
    """

    def __init__(
        self,
        clients: List[Client],
        offline_after: Optional[float] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._clients: Dict[str, Client] = {}
        for client in clients:
            if client.id in self._clients:
                raise ConfigurationError(f"Duplicate client id: {client.id}")
            self._clients[client.id] = client
        self.offline_after = offline_after
        self._clock = clock
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, clients_config: List[Dict[str, Any]], registry_config: Optional[Dict[str, Any]] = None,
                    clock: Callable[[], datetime] = datetime.now) -> 'DeviceRegistry':
        """Validate the static provisioning list and build the registry"""
        registry_config = registry_config or {}
        try:
            clients = [Client.model_validate(entry) for entry in clients_config or []]
        except ValidationError as e:
            raise ConfigurationError(f"Invalid client provisioning: {e}")
        registry = cls(clients, offline_after=registry_config.get('offline_after'), clock=clock)
        logger.info(f"Registry loaded with {len(clients)} clients "
                    f"and {sum(len(c.devices) for c in clients)} devices")
        return registry

    def _get_client(self, client_id: str) -> Client:
        client = self._clients.get(client_id)
        if client is None:
            raise ClientNotFoundError(f"Client not found: {client_id}")
        return client

    def _get_device(self, client: Client, device_id: str) -> Device:
        device = client.find_device(device_id)
        if device is None:
            raise DeviceNotFoundError(f"Device not found: {device_id}")
        return device

    def _mark_seen(self, client: Client) -> None:
        client.is_online = True
        client.last_seen = self._clock()

    def find_client(self, client_id: str) -> Client:
        with self._lock:
            return self._get_client(client_id).model_copy(deep=True)

    def find_device_by_identity(
        self,
        location: Optional[str],
        device_type: DeviceType,
        name: Optional[str] = None,
    ) -> Tuple[str, str]:
        """
        Resolve a (location, type, name) reference to (client_id, device_id).

        Location is an exact match; without one every client is searched.
        Name matches case-insensitively; without one the first device of the
        requested type is the primary device.
        """
        wanted_name = name.casefold() if name else None
        with self._lock:
            for client in self._clients.values():
                if location is not None and client.location != location:
                    continue
                for device in client.devices:
                    if device.type != device_type:
                        continue
                    if wanted_name is None or device.name.casefold() == wanted_name:
                        return client.id, device.id
        raise DeviceNotFoundError(
            f"No {device_type.value} named {name or '(primary)'} at {location or 'any location'}"
        )

    def authenticate(self, client_id: str, auth_key: Optional[str] = None,
                     bearer_token: Optional[str] = None) -> Client:
        """Accept either the body key or a bearer token, compared exactly"""
        with self._lock:
            client = self._clients.get(client_id)
            if client is not None:
                for candidate in (auth_key, bearer_token):
                    if candidate and secrets.compare_digest(candidate.encode(), client.auth_key.encode()):
                        return client.model_copy(deep=True)
        logger.warning(f"Authentication failed for client {client_id}")
        raise AuthenticationError("Authentication failed")

    def update_device(self, client_id: str, device_id: str, status: Optional[bool] = None,
                      value: Optional[int] = None) -> Device:
        """Mutate a device and mark its client online; raises NotFoundError"""
        with self._lock:
            client = self._get_client(client_id)
            device = self._get_device(client, device_id)
            if status is not None:
                device.status = status
            if value is not None and device.supports_value():
                device.value = max(0, min(int(value), 255))
            self._mark_seen(client)
            return device.model_copy(deep=True)

    def set_device_state(self, client_id: str, device_id: str, status: bool) -> bool:
        try:
            self.update_device(client_id, device_id, status=status)
        except (ClientNotFoundError, DeviceNotFoundError):
            return False
        return True

    def heartbeat(self, client_id: str) -> None:
        with self._lock:
            self._mark_seen(self._get_client(client_id))

    def expire_stale(self, now: Optional[datetime] = None) -> List[str]:
        """Mark clients offline when lastSeen is older than offline_after"""
        if self.offline_after is None:
            return []
        cutoff = (now or self._clock()) - timedelta(seconds=self.offline_after)
        expired = []
        with self._lock:
            for client in self._clients.values():
                if client.is_online and client.last_seen < cutoff:
                    client.is_online = False
                    expired.append(client.id)
        for client_id in expired:
            logger.info(f"Client {client_id} marked offline after {self.offline_after}s without contact")
        return expired

    def snapshot(self, include_secrets: bool = False) -> List[Dict[str, Any]]:
        with self._lock:
            return [client.to_public_dict(include_secrets) for client in self._clients.values()]

    def describe_client(self, client_id: str, include_secrets: bool = False) -> Dict[str, Any]:
        with self._lock:
            return self._get_client(client_id).to_public_dict(include_secrets)
