# src/sol_gateway/api/routes.py
import traceback
from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from .dependencies import CommunicationDependency
from .endpoints.chat import chat_router
from .endpoints.devices import device_router
from ..utils.exceptions import AuthenticationError, ClientNotFoundError, DeviceNotFoundError
from ..utils.logging import get_logger

logger = get_logger(__name__)

health_router = APIRouter()

@health_router.get("/health")
async def health(communication: CommunicationDependency):
    return {
        "status": "ok",
        "mqttConnected": bool(communication and communication.is_connected),
    }


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": "Missing required parameters"})

async def authentication_error_handler(request: Request, exc: AuthenticationError) -> JSONResponse:
    # Same answer for an unknown client and a wrong key
    return JSONResponse(status_code=401, content={"error": "Authentication failed"})

async def client_not_found_handler(request: Request, exc: ClientNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": "Client not found"})

async def device_not_found_handler(request: Request, exc: DeviceNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": "Device not found"})

async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error on {request.url.path}: {traceback.format_exc()}")
    return JSONResponse(status_code=500, content={"error": "Request error", "details": str(exc)})


def create_app(app_state) -> FastAPI:
    """Build the FastAPI application around the shared components"""
    app = FastAPI(
        title="Sol Gateway API",
        description="Natural-language device control, registry and heartbeats",
        version="1.0.0"
    )

    # Store app state for dependency injection
    app.state.components = app_state

    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(AuthenticationError, authentication_error_handler)
    app.add_exception_handler(ClientNotFoundError, client_not_found_handler)
    app.add_exception_handler(DeviceNotFoundError, device_not_found_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)

    app.include_router(chat_router, prefix="/api")
    app.include_router(device_router, prefix="/api")
    app.include_router(health_router)
    return app
