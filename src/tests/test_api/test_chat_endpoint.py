import pytest
from types import SimpleNamespace
from unittest.mock import AsyncMock
from fastapi.testclient import TestClient
from sol_gateway.api.routes import create_app
from sol_gateway.core.assistant import Assistant
from sol_gateway.core.dispatcher import CommandDispatcher
from sol_gateway.utils.exceptions import CommunicationError


@pytest.fixture
def generator():
    return AsyncMock()


@pytest.fixture
def sink():
    return AsyncMock()


@pytest.fixture
def client(registry, generator, sink):
    dispatcher = CommandDispatcher(registry, sink, {})
    components = SimpleNamespace(
        registry=registry,
        dispatcher=dispatcher,
        assistant=Assistant(generator, dispatcher),
        communication_service=None,
    )
    return TestClient(create_app(components))


def test_prompt_is_required(client):
    assert client.post("/api/chat", json={}).status_code == 400
    assert client.post("/api/chat", json={"prompt": "   "}).status_code == 400


def test_plain_chat(client, generator):
    generator.generate.return_value = "The weather is not something I control."
    response = client.post("/api/chat", json={"prompt": "what's the weather?"})
    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "message": "Chat response",
        "response": "The weather is not something I control.",
    }


def test_command_is_sent(client, generator, sink):
    generator.generate.return_value = "LED on.\n```action:control,device:led,state:ON,duration=30```"
    response = client.post("/api/chat", json={"prompt": "turn on the led for 30 seconds"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Command sent"
    assert body["response"] == "LED on."
    assert body["command"]["params"] == {"delay": None, "times": None, "duration": 30.0}
    sink.publish.assert_awaited_once_with("device/led", {"state": "ON", "params": {"duration": 30.0}})


def test_sink_failure_is_delivery_unconfirmed(client, generator, sink):
    generator.generate.return_value = "```action:control,device:led,state:OFF```"
    sink.publish.side_effect = CommunicationError("Not connected to MQTT broker")
    response = client.post("/api/chat", json={"prompt": "led off"})
    assert response.status_code == 502
    assert response.json()["success"] is False
    assert response.json()["message"] == "Command delivery unconfirmed"


def test_unknown_device_reference(client, generator, sink):
    generator.generate.return_value = "```action:control,device:fan,location:Garage,state:ON```"
    response = client.post("/api/chat", json={"prompt": "garage fan on"})
    assert response.status_code == 404
    assert response.json()["dispatch"]["status"] == "DEVICE_RESOLUTION_FAILED"
    sink.publish.assert_not_awaited()


def test_model_error(client, generator):
    generator.generate.side_effect = CommunicationError("Gemini API key missing")
    response = client.post("/api/chat", json={"prompt": "hello"})
    assert response.status_code == 500
    assert response.json() == {"success": False, "message": "AI error", "response": "AI error."}


def test_assistant_not_configured(registry):
    components = SimpleNamespace(registry=registry, dispatcher=None, assistant=None,
                                 communication_service=None)
    response = TestClient(create_app(components)).post("/api/chat", json={"prompt": "hi"})
    assert response.status_code == 503
