import asyncio
import logging
import pytest
from sol_gateway.core.device_registry import DeviceRegistry
from sol_gateway.core.heartbeat import PresenceMonitor
from sol_gateway.utils.logging import setup_logging


@pytest.mark.asyncio
async def test_monitor_returns_immediately_when_disabled(registry):
    monitor = PresenceMonitor({}, registry)
    assert monitor.enabled is False
    await asyncio.wait_for(monitor.start_monitoring(), timeout=1)
    assert monitor.is_running is False


@pytest.mark.asyncio
async def test_monitor_sweeps_stale_clients(clients_config, clock):
    config = {"registry": {"offline_after": 60, "sweep_interval": 0.01}}
    registry = DeviceRegistry.from_config(clients_config, config["registry"], clock=clock)
    registry.heartbeat("esp32_hall")
    clock.advance(120)

    monitor = PresenceMonitor(config, registry)
    task = asyncio.create_task(monitor.start_monitoring())
    await asyncio.sleep(0.05)
    await monitor.stop()
    await asyncio.wait_for(task, timeout=1)

    assert registry.find_client("esp32_hall").is_online is False


def test_setup_logging_writes_to_file(tmp_path):
    log_file = tmp_path / "logs" / "sol_gateway.log"
    setup_logging({"level": "DEBUG", "file": str(log_file), "max_size": 1, "backup_count": 1})
    try:
        logging.getLogger("sol_gateway.test").info("registry loaded")
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert "registry loaded" in log_file.read_text()
        assert logging.getLogger().level == logging.DEBUG
    finally:
        for handler in logging.getLogger().handlers:
            handler.close()
        logging.getLogger().handlers.clear()
