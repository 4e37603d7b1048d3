"""
Gemini directive generator - Google's GenAI SDK.

Sends the conversation to Gemini with the house-assistant instructions and
returns the raw response text. Parsing of the embedded directive happens in
core.directive_parser, never here.
"""

from typing import Any, Dict, List, Optional

from google import genai
from google.genai import types

from .base import ConversationState, DirectiveGenerator
from ..utils.exceptions import CommunicationError
from ..utils.logging import get_logger

logger = get_logger(__name__)

SYSTEM_PROMPT = """Your name is Sol. You are a home automation assistant. Handle device control requests as follows:

- Devices are led, light, fan and security. Lights and fans live in a room: add location:<room> and, when the user names one, name:<device name>.
- Security is whole-house and has no location.

- **Immediate ON:**
    - "Turn on the LED": ```action:control,device:led,state:ON```
    - "Turn on the LED for [duration] seconds": ```action:control,device:led,state:ON,duration=[duration_seconds]```
    - "Turn on the reading light in the living room": ```action:control,device:light,location:Living Room,name:Reading Light,state:ON```

- **Immediate OFF:**
    - "Turn off the LED": ```action:control,device:led,state:OFF```
    - "Disarm the security system": ```action:control,device:security,state:OFF```

- **Delayed ON:**
    - "Turn on the LED after [delay] seconds": ```action:control,device:led,state:DELAYED_ON,delay=[delay_seconds]```
    - "Turn on the LED after [delay] seconds for [duration] seconds": ```action:control,device:led,state:DELAYED_ON,delay=[delay_seconds],duration=[duration_seconds]```

- **Delayed OFF:**
    - "Turn off the fan in the bedroom after [delay] seconds": ```action:control,device:fan,location:Bedroom,state:DELAYED_OFF,delay=[delay_seconds]```

- **Blinking:**
    - "Blink the LED": ```action:control,device:led,state:BLINK,times=5```
    - "Blink the LED [times] times": ```action:control,device:led,state:BLINK,times=[times]```
    - "Blink the LED with a delay of [delay] seconds": ```action:control,device:led,state:BLINK,delay=[delay]```
    - "Blink the LED for [duration] seconds": ```action:control,device:led,state:BLINK,duration=[duration]```
    - "Blink the LED [times] times for [duration] seconds": ```action:control,device:led,state:BLINK,times=[times],duration=[duration]```

Write one short sentence for the user and at most one code block. For any other request, respond naturally without code blocks."""


class GeminiDirectiveGenerator(DirectiveGenerator):
    def __init__(self, config: Dict[str, Any]):
        self.model = config.get('model', 'gemini-2.0-flash')
        self.api_key = config.get('api_key')
        self.system_prompt = config.get('system_prompt') or SYSTEM_PROMPT
        self.generation_config = types.GenerateContentConfig(
            system_instruction=self.system_prompt,
            temperature=config.get('temperature', 1.0),
            top_p=config.get('top_p', 0.95),
            top_k=config.get('top_k', 40),
            max_output_tokens=config.get('max_output_tokens', 8192),
            response_mime_type="text/plain",
        )

        if self.api_key:
            self._client: Optional[genai.Client] = genai.Client(api_key=self.api_key)
            logger.info(f"Gemini generator initialized with model: {self.model}")
        else:
            self._client = None
            logger.warning("Gemini API key not configured")

    @staticmethod
    def build_contents(conversation: ConversationState, user_text: str) -> List[types.Content]:
        contents = [
            types.Content(role=role, parts=[types.Part(text=text)])
            for role, text in conversation.turns
        ]
        contents.append(types.Content(role="user", parts=[types.Part(text=user_text)]))
        return contents

    async def generate(self, conversation: ConversationState, user_text: str) -> str:
        if not self._client:
            raise CommunicationError("Gemini API key missing")
        try:
            response = await self._client.aio.models.generate_content(
                model=self.model,
                contents=self.build_contents(conversation, user_text),
                config=self.generation_config,
            )
        except Exception as e:
            raise CommunicationError(f"Gemini generation failed: {e}")

        text = response.text
        if not text:
            raise CommunicationError("Gemini returned an empty response")
        logger.debug(f"Gemini Response: {text}")
        return text
