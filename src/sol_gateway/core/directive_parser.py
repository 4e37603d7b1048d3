"""
Directive parsing for assistant responses.

The language model answers in natural language and, when the user asked for
a device action, embeds a directive inside a fenced code segment:

    Sure, blinking the LED now.
    ```action:control,device:led,state:BLINK,times=10,duration=10```

parse_directive() turns such a response into a tagged result. It never
raises: anything it cannot understand comes back as PlainChat or Malformed
and the caller echoes the natural-language text instead.
"""
import math
import re
from typing import Dict, Optional, Tuple

from ..models.command import (
    ActionType,
    Command,
    CommandParams,
    CommandState,
    DeviceCategory,
    Malformed,
    ParsedCommand,
    ParseResult,
    PlainChat,
)
from ..utils.logging import get_logger

logger = get_logger(__name__)

FENCE_PATTERN = re.compile(r"```([\s\S]*?)```")


def extract_segment(raw_text: str) -> Optional[str]:
    """Return the content of the first fenced segment, or None"""
    match = FENCE_PATTERN.search(raw_text or "")
    if not match:
        return None
    content = match.group(1).strip()
    # Drop a language tag line such as ```text
    lines = content.splitlines()
    if len(lines) > 1 and not _split_pair(lines[0].strip()):
        content = "\n".join(lines[1:])
    return content.strip()


def strip_directive(raw_text: str) -> str:
    """The natural-language part of a response, without the first fenced segment"""
    return FENCE_PATTERN.sub("", raw_text or "", count=1).strip()


def _split_pair(token: str) -> Optional[Tuple[str, str]]:
    positions = [pos for pos in (token.find(":"), token.find("=")) if pos > 0]
    if not positions:
        return None
    pos = min(positions)
    return token[:pos].strip().lower(), token[pos + 1:].strip()


def tokenize(segment: str) -> Dict[str, str]:
    """Split a directive body into key/value pairs, first occurrence wins"""
    pairs: Dict[str, str] = {}
    for token in segment.replace("\n", ",").split(","):
        token = token.strip()
        if not token:
            continue
        pair = _split_pair(token)
        if pair is None:
            logger.debug(f"Ignoring directive token without separator: {token!r}")
            continue
        key, value = pair
        pairs.setdefault(key, value)
    return pairs


def _parse_float(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    try:
        number = float(value)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def _parse_int(value: Optional[str]) -> Optional[int]:
    number = _parse_float(value)
    if number is None:
        return None
    return int(number)


def _optional_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def parse_directive(raw_text: str) -> ParseResult:
    """Parse a model response into ParsedCommand, PlainChat or Malformed"""
    segment = extract_segment(raw_text)
    if segment is None:
        return PlainChat(text=raw_text)

    pairs = tokenize(segment)

    action = (pairs.get("action") or "").lower()
    if action != ActionType.CONTROL.value:
        return Malformed(text=raw_text, reason=f"unsupported action: {action or 'missing'}")

    category_text = (pairs.get("device") or pairs.get("type") or "").lower()
    try:
        category = DeviceCategory(category_text)
    except ValueError:
        return Malformed(text=raw_text, reason=f"unknown device category: {category_text or 'missing'}")

    state_text = (pairs.get("state") or "").upper()
    try:
        state = CommandState(state_text)
    except ValueError:
        return Malformed(text=raw_text, reason=f"unknown state: {state_text or 'missing'}")

    params = CommandParams(
        delay=_parse_float(pairs.get("delay")),
        times=_parse_int(pairs.get("times")),
        duration=_parse_float(pairs.get("duration")),
    )

    # Timed states need at least one timing value from the directive
    if state in (CommandState.DELAYED_ON, CommandState.DELAYED_OFF, CommandState.BLINK) and params.is_empty():
        return Malformed(text=raw_text, reason=f"{state.value} without delay, times or duration")

    command = Command(
        action=ActionType.CONTROL,
        device_type=category,
        location=_optional_text(pairs.get("location")),
        name=_optional_text(pairs.get("name")),
        state=state,
        params=params,
    )
    return ParsedCommand(command=command, text=raw_text)
