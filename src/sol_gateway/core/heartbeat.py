import asyncio
import traceback
from typing import Dict, Any
from .device_registry import DeviceRegistry
from ..utils.logging import get_logger

logger = get_logger(__name__)

class PresenceMonitor:
    """
    Periodically marks clients offline once their heartbeats go stale.
    Only runs when registry.offline_after is configured; by default clients
    stay online until the process exits.
    """
    def __init__(self, config: Dict[str, Any], registry: DeviceRegistry):
        self.config = config.get('registry') or {}
        self.registry = registry
        self.sweep_interval = self.config.get('sweep_interval', 30)
        self.is_running = False

    @property
    def enabled(self) -> bool:
        return self.registry.offline_after is not None

    async def start_monitoring(self) -> None:
        if not self.enabled:
            logger.info("Presence expiry disabled, clients never go offline automatically")
            return

        logger.info(f"Presence monitoring every {self.sweep_interval}s, "
                    f"offline after {self.registry.offline_after}s")
        self.is_running = True
        while self.is_running:
            try:
                self.registry.expire_stale()
            except Exception:
                logger.error(f"Error while sweeping client presence, {traceback.format_exc()}")
            await asyncio.sleep(self.sweep_interval)

    async def stop(self) -> None:
        self.is_running = False
        logger.info("Presence monitoring stopped")
