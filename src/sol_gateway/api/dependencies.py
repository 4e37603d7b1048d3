# src/sol_gateway/api/dependencies.py
from fastapi import Request
from typing import Annotated, Optional
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from ..core.device_registry import DeviceRegistry
from ..core.dispatcher import CommandDispatcher
from ..core.assistant import Assistant
from ..core.communication_service import CommunicationService

bearer_scheme = HTTPBearer(auto_error=False)

async def get_registry(request: Request) -> DeviceRegistry:
    return request.app.state.components.registry

async def get_dispatcher(request: Request) -> CommandDispatcher:
    return request.app.state.components.dispatcher

async def get_assistant(request: Request) -> Optional[Assistant]:
    return request.app.state.components.assistant

async def get_communication_service(request: Request) -> Optional[CommunicationService]:
    return request.app.state.components.communication_service

async def get_bearer_token(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)]
) -> Optional[str]:
    return credentials.credentials if credentials else None

# Type definitions for dependencies
RegistryDependency = Annotated[DeviceRegistry, Depends(get_registry)]
DispatcherDependency = Annotated[CommandDispatcher, Depends(get_dispatcher)]
AssistantDependency = Annotated[Optional[Assistant], Depends(get_assistant)]
CommunicationDependency = Annotated[Optional[CommunicationService], Depends(get_communication_service)]
BearerTokenDependency = Annotated[Optional[str], Depends(get_bearer_token)]
