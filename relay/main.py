import logging
import sys
from contextlib import asynccontextmanager
from typing import Awaitable, Callable

from fastapi import FastAPI, Request, status
from fastapi.responses import PlainTextResponse
from fastapi.staticfiles import StaticFiles

from relay.api import api_router
from relay.core.env_settings import EnvSettings, load_settings
from relay.core.exceptions import (
    ClientDisconnectedError,
    ConfigurationError,
    DomainError,
    RequestShapeError,
)
from relay.core.log_config import configure_logging
from relay.services.robot import RobotConnection
from relay.utils.dependencies import AppContext

logger = logging.getLogger(__name__)

Connector = Callable[[EnvSettings], Awaitable[RobotConnection]]

# Non-standard status recorded when the client hangs up mid-request
CLIENT_CLOSED_REQUEST = 499


def create_app(settings: EnvSettings, connector: Connector = RobotConnection.connect) -> FastAPI:
    """
    Build the relay application. The robot is dialled in the lifespan, so a
    failed connection aborts startup before the server accepts requests.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        robot = await connector(settings)
        app.state.context = AppContext(settings=settings, robot=robot)
        logger.info("Robot server running...")
        try:
            yield
        finally:
            logger.info("Stopping robot server...")
            await robot.close()
            app.state.context = None
            logger.info("Robot server closed")

    app = FastAPI(title="Relay", description="HTTP relay for remote robot GPIO pins", lifespan=lifespan)

    @app.exception_handler(RequestShapeError)
    async def request_shape_handler(request: Request, exc: RequestShapeError):
        logger.warning(f"Bad relay request on {request.url.path}: {exc}")
        return PlainTextResponse(str(exc), status_code=status.HTTP_400_BAD_REQUEST)

    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError):
        logger.error(f"Relay request on {request.url.path} failed: {exc}")
        return PlainTextResponse(str(exc), status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    @app.exception_handler(ClientDisconnectedError)
    async def client_disconnected_handler(request: Request, exc: ClientDisconnectedError):
        logger.warning(f"Cancelled pin call: {exc}")
        # Never delivered; the client is gone
        return PlainTextResponse(str(exc), status_code=CLIENT_CLOSED_REQUEST)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return PlainTextResponse("Internal server error", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    # Register API routers
    app.include_router(api_router, prefix="/api")

    # Mounted last so it never shadows /api routes
    if settings.SERVE_STATIC:
        app.mount("/", StaticFiles(directory=settings.STATIC_DIR, html=True), name="public")

    return app


def run() -> None:
    """Console entry point: load settings, then serve until SIGINT/SIGTERM."""
    try:
        settings = load_settings()
    except ConfigurationError as e:
        configure_logging()
        logger.critical(f"Invalid configuration: {e}")
        sys.exit(1)

    level = configure_logging(settings.PROFILE)
    app = create_app(settings)

    import uvicorn
    logger.info(f"Starting http server on {settings.HTTP_HOST}:{settings.HTTP_PORT}...")
    uvicorn.run(
        app,
        host=settings.HTTP_HOST,
        port=settings.HTTP_PORT,
        log_level=logging.getLevelName(level).lower(),
        log_config=None,
        lifespan="on",
    )
    logger.info("Stopped http server")


# If running as a script
if __name__ == "__main__":
    run()
