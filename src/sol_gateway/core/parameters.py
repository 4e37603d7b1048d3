# Timing parameter resolution for timed commands
from typing import Optional

from ..models.command import Command, CommandParams, CommandState

DEFAULT_DELAY = 0.5
DEFAULT_TIMES = 5
DEFAULT_DURATION = 5.0

DELAY_BOUNDS = (0.1, 10.0)
TIMES_BOUNDS = (1, 50)
DURATION_BOUNDS = (0.2, 60.0)


def _clamp(value, bounds):
    low, high = bounds
    return max(low, min(value, high))


def _per_cycle(duration: float, times: int) -> float:
    cycles = times * 2
    if cycles == 0:
        return float("inf") if duration >= 0 else float("-inf")
    return duration / cycles


def resolve_blink_params(
    delay: Optional[float] = None,
    times: Optional[int] = None,
    duration: Optional[float] = None,
) -> CommandParams:
    """
    Derive the missing blink parameters and clamp all three to safe bounds.

    Precedence is duration, then times, then delay: a supplied delay is only
    honored when no duration is given. Clamping is applied per field and
    does not re-derive the others, so extreme inputs can come back with
    delay * times * 2 != duration.
    """
    if duration is not None:
        times = times if times is not None else DEFAULT_TIMES
        delay = _per_cycle(duration, times)
    elif times is not None:
        delay = delay if delay is not None else DEFAULT_DELAY
        duration = times * delay * 2
    elif delay is not None:
        times = DEFAULT_TIMES
        duration = delay * times * 2
    else:
        delay, times, duration = DEFAULT_DELAY, DEFAULT_TIMES, DEFAULT_DURATION

    return CommandParams(
        delay=float(_clamp(delay, DELAY_BOUNDS)),
        times=int(_clamp(times, TIMES_BOUNDS)),
        duration=float(_clamp(duration, DURATION_BOUNDS)),
    )


def shape_params(state: CommandState, params: CommandParams) -> CommandParams:
    """Keep only the parameters each state carries to the controller"""
    if state == CommandState.BLINK:
        return resolve_blink_params(params.delay, params.times, params.duration)
    if state == CommandState.ON:
        return CommandParams(duration=params.duration)
    if state == CommandState.DELAYED_ON:
        return CommandParams(
            delay=params.delay if params.delay is not None else 0.0,
            duration=params.duration,
        )
    if state == CommandState.DELAYED_OFF:
        return CommandParams(delay=params.delay if params.delay is not None else 0.0)
    return CommandParams()


def prepare_command(command: Command) -> Command:
    """Return a copy of the command with dispatch-ready parameters"""
    return command.model_copy(update={"params": shape_params(command.state, command.params)})
