from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from typing import Any, Dict, Optional
from ...core.dispatcher import DispatchStatus
from ...utils.logging import get_logger
from ..dependencies import AssistantDependency

logger = get_logger(__name__)

chat_router = APIRouter()

DISPATCH_RESPONSES = {
    DispatchStatus.DELIVERED: (200, "Command sent"),
    DispatchStatus.DEVICE_RESOLUTION_FAILED: (404, "Device not found"),
    DispatchStatus.VALIDATION_FAILED: (400, "Invalid command"),
    DispatchStatus.SINK_ERROR: (502, "Command delivery unconfirmed"),
}


class ChatRequest(BaseModel):
    prompt: Optional[str] = None


@chat_router.post("/chat")
async def chat(body: ChatRequest, assistant: AssistantDependency):
    if not body.prompt or not body.prompt.strip():
        return JSONResponse(status_code=400, content={"error": "Prompt is required"})

    if assistant is None:
        return JSONResponse(status_code=503, content={"error": "Assistant not available"})

    reply = await assistant.handle_prompt(body.prompt)

    if reply.kind == "error":
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": "AI error", "response": reply.response},
        )

    if reply.kind == "chat":
        return {"success": True, "message": "Chat response", "response": reply.response}

    status_code, message = DISPATCH_RESPONSES[reply.dispatch.status]
    content: Dict[str, Any] = {
        "success": reply.dispatch.delivered,
        "message": message,
        "response": reply.response,
        "command": reply.command.model_dump(mode="json"),
        "dispatch": reply.dispatch.model_dump(mode="json"),
    }
    if not reply.dispatch.delivered:
        logger.warning(f"Chat command not delivered: {reply.dispatch.message}")
    return JSONResponse(status_code=status_code, content=content)
