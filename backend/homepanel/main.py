"""
HomePanel FastAPI Application Entry Point.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from homepanel import __version__
from homepanel.api.routes import admin, auth, devices, family, health, logs, rooms, users
from homepanel.api.websocket import BroadcastManager
from homepanel.config import get_settings
from homepanel.core.database import async_session_maker, init_db
from homepanel.core.errors import HomePanelError
from homepanel.core.event_bus import event_bus
from homepanel.core.event_handlers import register_handlers
from homepanel.core.security import resolve_principal

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if get_settings().debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

broadcast_manager = BroadcastManager(event_bus)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings = get_settings()

    # Initialize database
    await init_db()
    logger.info("Database initialized")

    # Register event handlers
    register_handlers(event_bus)
    broadcast_manager.attach()
    logger.info("Event handlers registered")

    # Start event bus
    await event_bus.start()
    logger.info("Event bus started")

    logger.info(f"HomePanel v{__version__} started in {settings.app_env} mode")

    yield

    # Cleanup
    await broadcast_manager.close_all()
    await event_bus.stop()
    logger.info("HomePanel shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="HomePanel API",
    description="Multi-tenant household control panel",
    version=__version__,
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(HomePanelError)
async def homepanel_error_handler(request: Request, exc: HomePanelError):
    if exc.status_code >= 500:
        logger.error(f"{exc.kind} | {request.url} | {exc.message}")
    else:
        logger.info(f"{exc.kind} | {request.method} {request.url.path} | {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    logger.warning(f"Validation error | {request.url} | {errors}")
    return JSONResponse(
        status_code=400,
        content={
            "error": "InvalidInput",
            "message": "Request body is missing or malformed",
            "fields": [".".join(str(p) for p in e.get("loc", ())) for e in errors],
        },
    )


# Include routers
app.include_router(health.router, prefix="/api", tags=["Health"])
app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(devices.router, prefix="/api/devices", tags=["Devices"])
app.include_router(rooms.router, prefix="/api/rooms", tags=["Rooms"])
app.include_router(admin.router, prefix="/api/admin", tags=["Admin"])
app.include_router(family.router, prefix="/api/family", tags=["Family"])
app.include_router(users.router, prefix="/api/users", tags=["Users"])
app.include_router(logs.router, prefix="/api/logs", tags=["Logs"])


@app.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    token: str = Query(...)
):
    """
    WebSocket endpoint for real-time house events.

    Connect with: ws://host/ws?token=<jwt_token>
    """
    async with async_session_maker() as db:
        try:
            principal = await resolve_principal(token, db)
        except HomePanelError as e:
            await websocket.close(code=4001, reason=e.message)
            return

    if not principal.authorized:
        await websocket.close(code=4003, reason="Account pending authorization")
        return

    connection_id = await broadcast_manager.connect(websocket, principal)
    try:
        while True:
            message = await websocket.receive_text()
            await broadcast_manager.handle_message(connection_id, message)
    except WebSocketDisconnect:
        await broadcast_manager.disconnect(connection_id)
    except Exception as e:
        logger.error(f"WebSocket error: {e}")
        await broadcast_manager.disconnect(connection_id)


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(
        "homepanel.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
