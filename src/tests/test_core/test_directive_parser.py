import pytest
from sol_gateway.core.directive_parser import parse_directive, strip_directive, tokenize
from sol_gateway.models.command import (
    CommandState,
    DeviceCategory,
    Malformed,
    ParsedCommand,
    PlainChat,
)


def test_response_without_fence_is_plain_chat():
    text = "Hello! I'm Sol, how can I help with your home today?"
    result = parse_directive(text)
    assert isinstance(result, PlainChat)
    assert result.text == text


def test_blink_directive_keeps_raw_params():
    result = parse_directive(
        "Blinking now.\n```action:control,device:led,state:BLINK,duration=10,times=10```"
    )
    assert isinstance(result, ParsedCommand)
    command = result.command
    assert command.device_type == DeviceCategory.LED
    assert command.state == CommandState.BLINK
    assert command.params.duration == 10.0
    assert command.params.times == 10
    # no resolution at parse time
    assert command.params.delay is None


def test_location_and_name_are_captured():
    result = parse_directive(
        "```action:control,type:light,location:Living Room,name:Reading Light,state:ON```"
    )
    assert isinstance(result, ParsedCommand)
    assert result.command.device_type == DeviceCategory.LIGHT
    assert result.command.location == "Living Room"
    assert result.command.name == "Reading Light"
    assert result.command.params.is_empty()


@pytest.mark.parametrize("segment", [
    "action:query,device:led,state:ON",
    "action:status,device:light,state:OFF,location:Hall",
    "device:led,state:ON",
])
def test_non_control_action_yields_no_command(segment):
    result = parse_directive(f"```{segment}```")
    assert isinstance(result, Malformed)


def test_missing_state_is_malformed():
    assert isinstance(parse_directive("```action:control,device:led```"), Malformed)


def test_unknown_state_or_device_is_malformed():
    assert isinstance(parse_directive("```action:control,device:led,state:DIM```"), Malformed)
    assert isinstance(parse_directive("```action:control,device:toaster,state:ON```"), Malformed)


def test_unparsable_numbers_are_treated_as_absent():
    result = parse_directive("```action:control,device:led,state:BLINK,delay=soon,times=many,duration=3```")
    assert isinstance(result, ParsedCommand)
    assert result.command.params.delay is None
    assert result.command.params.times is None
    assert result.command.params.duration == 3.0


def test_times_is_truncated_to_integer():
    result = parse_directive("```action:control,device:led,state:BLINK,times=2.7```")
    assert result.command.params.times == 2


def test_delayed_state_without_timing_is_malformed():
    assert isinstance(parse_directive("```action:control,device:led,state:DELAYED_ON```"), Malformed)
    result = parse_directive("```action:control,device:led,state:DELAYED_OFF,delay=4```")
    assert isinstance(result, ParsedCommand)
    assert result.command.params.delay == 4.0


def test_bare_blink_is_malformed():
    result = parse_directive("```action:control,device:led,state:BLINK```")
    assert isinstance(result, Malformed)
    assert "BLINK" in result.reason


def test_language_tag_line_is_skipped():
    result = parse_directive("Sure.\n```text\naction:control,device:led,state:ON\n```")
    assert isinstance(result, ParsedCommand)
    assert result.command.state == CommandState.ON


def test_only_first_segment_is_used():
    result = parse_directive(
        "```action:control,device:led,state:OFF``` and later ```action:control,device:led,state:ON```"
    )
    assert result.command.state == CommandState.OFF


def test_tokenize_accepts_both_separators():
    assert tokenize("action:control, delay=0.5 ,state : ON") == {
        "action": "control",
        "delay": "0.5",
        "state": "ON",
    }


def test_strip_directive_leaves_natural_text():
    assert strip_directive("Turning it on.\n```action:control,device:led,state:ON```") == "Turning it on."
