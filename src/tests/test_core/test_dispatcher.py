import asyncio
import pytest
from unittest.mock import AsyncMock
from sol_gateway.core.dispatcher import CommandDispatcher, DispatchStatus
from sol_gateway.core.parameters import prepare_command
from sol_gateway.models.command import Command, CommandParams, CommandState, DeviceCategory
from sol_gateway.utils.exceptions import CommunicationError


def make_command(category, state, location=None, name=None, **params):
    return prepare_command(Command(
        device_type=category,
        state=state,
        location=location,
        name=name,
        params=CommandParams(**params),
    ))


@pytest.fixture
def sink():
    return AsyncMock()


@pytest.fixture
def dispatcher(registry, sink):
    return CommandDispatcher(registry, sink, {"mode": "registry", "sink_timeout": 1})


@pytest.mark.asyncio
async def test_led_blink_is_published_directly(dispatcher, sink):
    command = make_command(DeviceCategory.LED, CommandState.BLINK, duration=10, times=10)
    result = await dispatcher.dispatch(command)

    assert result.status == DispatchStatus.DELIVERED
    sink.publish.assert_awaited_once_with(
        "device/led",
        {"state": "BLINK", "params": {"delay": 0.5, "times": 10, "duration": 10.0}},
    )


@pytest.mark.asyncio
async def test_on_with_duration_is_not_clamped(dispatcher, sink):
    result = await dispatcher.dispatch(make_command(DeviceCategory.LED, CommandState.ON, duration=30))
    assert result.delivered
    assert sink.publish.await_args.args[1] == {"state": "ON", "params": {"duration": 30.0}}


@pytest.mark.asyncio
async def test_unresolved_blink_fails_validation(dispatcher, sink):
    command = Command(device_type=DeviceCategory.LED, state=CommandState.BLINK,
                      params=CommandParams(times=3))
    result = await dispatcher.dispatch(command)
    assert result.status == DispatchStatus.VALIDATION_FAILED
    sink.publish.assert_not_awaited()


@pytest.mark.asyncio
async def test_light_is_resolved_and_registry_updated(dispatcher, registry, sink):
    command = make_command(DeviceCategory.LIGHT, CommandState.ON, location="Living Room", name="Reading Light")
    result = await dispatcher.dispatch(command)

    assert result.status == DispatchStatus.DELIVERED
    assert (result.client_id, result.device_id) == ("esp32_livingroom", "light2")
    assert sink.publish.await_args.args == (
        "device/light",
        {"state": "ON", "params": {}, "clientId": "esp32_livingroom", "deviceId": "light2"},
    )
    client = registry.find_client("esp32_livingroom")
    assert client.find_device("light2").status is True
    assert client.is_online is True


@pytest.mark.asyncio
async def test_delayed_off_sets_terminal_status(dispatcher, registry):
    registry.set_device_state("esp32_livingroom", "fan1", True)
    command = make_command(DeviceCategory.FAN, CommandState.DELAYED_OFF, location="Living Room", delay=60)
    result = await dispatcher.dispatch(command)
    assert result.delivered
    assert result.payload["params"] == {"delay": 60.0}
    assert registry.find_client("esp32_livingroom").find_device("fan1").status is False


@pytest.mark.asyncio
async def test_security_without_location(dispatcher, registry):
    result = await dispatcher.dispatch(make_command(DeviceCategory.SECURITY, CommandState.ON))
    assert result.delivered
    assert result.topic == "device/security"
    assert registry.find_client("esp32_hall").find_device("alarm").status is True


@pytest.mark.asyncio
async def test_unknown_device_is_not_published(dispatcher, registry, sink):
    command = make_command(DeviceCategory.LIGHT, CommandState.ON, location="Garage")
    result = await dispatcher.dispatch(command)
    assert result.status == DispatchStatus.DEVICE_RESOLUTION_FAILED
    sink.publish.assert_not_awaited()
    assert registry.find_client("esp32_livingroom").is_online is False


@pytest.mark.asyncio
async def test_led_needs_direct_dispatch_in_registry_mode(registry, sink):
    dispatcher = CommandDispatcher(registry, sink, {"mode": "registry", "direct_categories": []})
    result = await dispatcher.dispatch(make_command(DeviceCategory.LED, CommandState.OFF))
    assert result.status == DispatchStatus.DEVICE_RESOLUTION_FAILED
    sink.publish.assert_not_awaited()


@pytest.mark.asyncio
async def test_single_mode_bypasses_resolution(registry, sink):
    dispatcher = CommandDispatcher(registry, sink, {"mode": "single"})
    result = await dispatcher.dispatch(make_command(DeviceCategory.LIGHT, CommandState.OFF, location="Garage"))
    assert result.delivered
    assert "clientId" not in result.payload


@pytest.mark.asyncio
async def test_topic_override(registry, sink):
    dispatcher = CommandDispatcher(registry, sink, {"topics": {"led": "home/desk/led"}})
    await dispatcher.dispatch(make_command(DeviceCategory.LED, CommandState.ON))
    assert sink.publish.await_args.args[0] == "home/desk/led"
    assert dispatcher.topics[DeviceCategory.FAN] == "device/fan"


@pytest.mark.asyncio
async def test_sink_failure_is_reported(dispatcher, sink):
    sink.publish.side_effect = CommunicationError("Not connected to MQTT broker")
    result = await dispatcher.dispatch(make_command(DeviceCategory.LED, CommandState.ON))
    assert result.status == DispatchStatus.SINK_ERROR
    assert sink.publish.await_count == 1


@pytest.mark.asyncio
async def test_unexpected_sink_exception_is_reported(dispatcher, sink):
    sink.publish.side_effect = ConnectionResetError("broker went away")
    result = await dispatcher.dispatch(make_command(DeviceCategory.LED, CommandState.ON))
    assert result.status == DispatchStatus.SINK_ERROR
    assert result.delivered is False
    assert result.topic == "device/led"


@pytest.mark.asyncio
async def test_sink_timeout_is_reported(registry):
    class SlowSink:
        async def publish(self, topic, payload):
            await asyncio.sleep(5)

    dispatcher = CommandDispatcher(registry, SlowSink(), {"sink_timeout": 0.05})
    result = await dispatcher.dispatch(make_command(DeviceCategory.LED, CommandState.OFF))
    assert result.status == DispatchStatus.SINK_ERROR
