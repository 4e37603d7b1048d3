# Abstract base classes for the external collaborators
# Each adapter implements the interface defined here (mqtt.py, gemini.py)

from abc import ABC, abstractmethod
from typing import Any, List, Tuple

# Protocol Adapters
class CommunicationAdapter(ABC):
    @abstractmethod
    async def connect(self) -> None:
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        pass

    @abstractmethod
    async def publish(self, topic: str, payload: Any) -> None:
        """Deliver a payload to a topic, raise CommunicationError on failure"""
        pass


class ConversationState:
    """Bounded in-memory history of (role, text) chat turns"""
    def __init__(self, max_turns: int = 10):
        self.max_turns = max_turns
        self.turns: List[Tuple[str, str]] = []

    def add(self, role: str, text: str) -> None:
        self.turns.append((role, text))
        if self.max_turns > 0:
            # a turn is one user message plus one model reply
            self.turns = self.turns[-self.max_turns * 2:]

    def clear(self) -> None:
        self.turns = []


class DirectiveGenerator(ABC):
    """
    Language-model collaborator.
    Turns the conversation so far plus the new user text into a raw
    response that may embed a fenced directive.
    """
    @abstractmethod
    async def generate(self, conversation: ConversationState, user_text: str) -> str:
        """Return the raw model text, raise CommunicationError on failure"""
        pass

    async def close(self) -> None:
        """Release client resources. Override if needed."""
        pass
