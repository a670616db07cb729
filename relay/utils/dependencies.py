import asyncio
from dataclasses import dataclass
from typing import Awaitable, TypeVar

from fastapi import HTTPException, Request, status

from relay.core.env_settings import EnvSettings
from relay.core.exceptions import ClientDisconnectedError
from relay.services.robot import RobotConnection

T = TypeVar("T")


@dataclass(frozen=True)
class AppContext:
    """Process-wide state, built once in the app lifespan."""
    settings: EnvSettings
    robot: RobotConnection


def get_context(request: Request) -> AppContext:
    """Dependency returning the shared application context."""
    context = getattr(request.app.state, "context", None)
    if context is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Robot connection not ready",
        )
    return context


async def call_while_connected(request: Request, call: Awaitable[T], poll_interval: float) -> T:
    """
    Await a remote call, cancelling it if the client disconnects first.

    The call runs as a task; while it is pending the connection is polled
    every `poll_interval` seconds.

    Raises:
        ClientDisconnectedError: the client left and the call was cancelled.
    """
    task = asyncio.ensure_future(call)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=poll_interval)
            if done:
                return task.result()
            if await request.is_disconnected():
                task.cancel()
                # Let the call unwind and release its lock before returning
                await asyncio.wait({task})
                raise ClientDisconnectedError(f"client disconnected from {request.url.path}")
    finally:
        if not task.done():
            task.cancel()
