# Chat orchestration: model response -> directive -> dispatch
import asyncio
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel

from ..adapters.base import ConversationState, DirectiveGenerator
from ..models.command import Command, Malformed, ParsedCommand
from ..utils.exceptions import CommunicationError
from ..utils.logging import get_logger
from .directive_parser import parse_directive, strip_directive
from .dispatcher import CommandDispatcher, DispatchResult
from .parameters import prepare_command

logger = get_logger(__name__)


class ChatReply(BaseModel):
    kind: Literal["command", "chat", "error"]
    response: str
    command: Optional[Command] = None
    dispatch: Optional[DispatchResult] = None


class Assistant:
    """
    Runs one user prompt through the language model and, when the answer
    carries a directive, through the dispatcher.
    """

    def __init__(self, generator: DirectiveGenerator, dispatcher: CommandDispatcher,
                 config: Optional[Dict[str, Any]] = None):
        config = config or {}
        self.generator = generator
        self.dispatcher = dispatcher
        self.timeout = config.get('timeout', 30)
        self.conversation = ConversationState(max_turns=config.get('max_history', 10))

    async def handle_prompt(self, prompt: str) -> ChatReply:
        try:
            raw = await asyncio.wait_for(
                self.generator.generate(self.conversation, prompt),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.error(f"Language model timed out after {self.timeout}s")
            return ChatReply(kind="error", response="AI error.")
        except CommunicationError as e:
            logger.error(f"Language model failed: {e}")
            return ChatReply(kind="error", response="AI error.")

        self.conversation.add("user", prompt)
        self.conversation.add("model", raw)

        result = parse_directive(raw)
        if not isinstance(result, ParsedCommand):
            if isinstance(result, Malformed):
                logger.info(f"Directive ignored ({result.reason}), answering as chat")
            return ChatReply(kind="chat", response=raw)

        command = prepare_command(result.command)
        dispatch = await self.dispatcher.dispatch(command)
        return ChatReply(
            kind="command",
            response=strip_directive(raw) or dispatch.message,
            command=command,
            dispatch=dispatch,
        )

    async def close(self) -> None:
        await self.generator.close()
