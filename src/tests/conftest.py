import pytest
from datetime import datetime, timedelta
from sol_gateway.core.device_registry import DeviceRegistry

AUTH_KEY = "f1A3n2Vyq7VhDW97oDg06ks+TTAhPMocARCB5u8Wj6I="


class FakeClock:
    """Manually advanced clock for lastSeen assertions"""
    def __init__(self, start: datetime = datetime(2024, 1, 1, 12, 0, 0)):
        self.now = start

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clients_config():
    return [
        {
            "id": "esp32_livingroom",
            "name": "Living Room Controller",
            "location": "Living Room",
            "authKey": AUTH_KEY,
            "firmware": "1.0.0",
            "devices": [
                {"id": "light1", "name": "Main Light", "type": "light",
                 "features": {"hasTimer": True}},
                {"id": "light2", "name": "Reading Light", "type": "light",
                 "features": {"hasTimer": True, "dimmable": True}, "value": 128},
                {"id": "fan1", "name": "Ceiling Fan", "type": "fan",
                 "features": {"speedControl": True}},
            ],
        },
        {
            "id": "esp32_hall",
            "name": "Hall Controller",
            "location": "Hall",
            "authKey": "hall-secret",
            "devices": [
                {"id": "alarm", "name": "House Alarm", "type": "security"},
                {"id": "hall_light", "name": "Main Light", "type": "light"},
            ],
        },
    ]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry(clients_config, clock):
    return DeviceRegistry.from_config(clients_config, clock=clock)


@pytest.fixture
def auth_key():
    return AUTH_KEY
