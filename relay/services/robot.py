import asyncio
import logging
from contextlib import asynccontextmanager, nullcontext
from typing import Any, Dict, List, Optional

from viam.components.board import Board
from viam.robot.client import RobotClient
from viam.rpc.dial import Credentials, DialOptions

from relay.core.env_settings import CredentialScheme, EnvSettings
from relay.core.exceptions import (
    ConfigurationError,
    PinCallError,
    PinNotFoundError,
    RobotConnectionError,
)
from relay.models.relay import PinState, bool_to_pin_state, pin_state_to_bool
from relay.utils.pretty import pretty

logger = logging.getLogger(__name__)

LOCATION_SECRET_CREDENTIALS = "robot-location-secret"


def build_client_options(settings: EnvSettings) -> RobotClient.Options:
    """Build SDK dial options for the configured credential scheme."""
    if settings.credential_scheme == CredentialScheme.API_KEY:
        return RobotClient.Options.with_api_key(
            api_key=settings.ROBOT_API_KEY,
            api_key_id=settings.ROBOT_API_KEY_ID,
        )
    credentials = Credentials(
        type=LOCATION_SECRET_CREDENTIALS,
        payload=settings.ROBOT_LOCATION_SECRET,
    )
    return RobotClient.Options(dial_options=DialOptions(credentials=credentials))


class RobotConnection:
    """
    RobotConnection holds one session to a remote robot and the board used
    for pin access. It is created once at startup and closed once at shutdown.
    """

    def __init__(
        self,
        client: RobotClient,
        board: Board,
        pin_call_timeout: Optional[float] = None,
        serialize_pin_calls: bool = True,
    ) -> None:
        self.client = client
        self.board = board
        self.pin_call_timeout = pin_call_timeout
        self._lock = asyncio.Lock() if serialize_pin_calls else None
        self._closed = False

    @classmethod
    async def connect(cls, settings: EnvSettings) -> "RobotConnection":
        """
        Dial the robot and resolve the configured board.

        Raises:
            ConfigurationError: host, credentials or board name is empty.
            RobotConnectionError: the dial failed, timed out, or the board is missing.
        """
        hostname = settings.ROBOT_HOSTNAME
        if not hostname:
            raise ConfigurationError("hostname must be provided")
        if not (settings.ROBOT_LOCATION_SECRET or settings.ROBOT_API_KEY):
            raise ConfigurationError("credentials must be provided")
        if not settings.ROBOT_BOARD_NAME:
            raise ConfigurationError("board name must be provided")

        try:
            options = build_client_options(settings)
        except ValueError as e:
            # The SDK rejects an API key id that is not a UUID
            raise ConfigurationError(f"invalid credentials: {e}") from e

        logger.info(f"RDK client connecting to {hostname} using {settings.credential_scheme.value} credentials...")
        try:
            client = await asyncio.wait_for(
                RobotClient.at_address(hostname, options),
                timeout=settings.DIAL_TIMEOUT,
            )
        except asyncio.TimeoutError as e:
            raise RobotConnectionError(
                f"timed out connecting to {hostname} after {settings.DIAL_TIMEOUT:g}s"
            ) from e
        except Exception as e:
            raise RobotConnectionError(f"error connecting to {hostname}: {e}") from e
        logger.info(f"RDK client connected to {hostname}")

        try:
            board = Board.from_robot(client, settings.ROBOT_BOARD_NAME)
        except Exception as e:
            await client.close()
            raise RobotConnectionError(
                f"board {settings.ROBOT_BOARD_NAME!r} not available on {hostname}: {e}"
            ) from e

        connection = cls(
            client,
            board,
            pin_call_timeout=settings.PIN_CALL_TIMEOUT,
            serialize_pin_calls=settings.SERIALIZE_PIN_CALLS,
        )
        logger.debug(f"Robot resources: {pretty(connection.resource_names())}")
        return connection

    def resource_names(self) -> List[str]:
        return [
            f"{rn.namespace}:{rn.type}:{rn.subtype}/{rn.name}"
            for rn in self.client.resource_names
        ]

    async def pin_by_name(self, pin_name: str):
        try:
            return await self.board.gpio_pin_by_name(pin_name)
        except Exception as e:
            raise PinNotFoundError(f"pin {pin_name!r} not found: {e}") from e

    async def get_pin_state(self, pin_num: int, extra: Optional[Dict[str, Any]] = None) -> PinState:
        pin_name = str(pin_num)
        async with self._pin_call(pin_name, "get"):
            pin = await self.pin_by_name(pin_name)
            value = await self._bounded(pin.get(extra=extra, timeout=self.pin_call_timeout))
        return bool_to_pin_state(value)

    async def set_pin_state(
        self, pin_num: int, state: str, extra: Optional[Dict[str, Any]] = None
    ) -> PinState:
        """Set a pin high or low. An invalid state is rejected before any remote call."""
        high = pin_state_to_bool(state)
        pin_name = str(pin_num)
        async with self._pin_call(pin_name, "set"):
            pin = await self.pin_by_name(pin_name)
            await self._bounded(pin.set(high, extra=extra, timeout=self.pin_call_timeout))
        logger.debug(f"Pin {pin_name} set {state}")
        return bool_to_pin_state(high)

    @asynccontextmanager
    async def _pin_call(self, pin_name: str, operation: str):
        async with (self._lock if self._lock is not None else nullcontext()):
            try:
                yield
            except (PinNotFoundError, PinCallError):
                raise
            except Exception as e:
                raise PinCallError(f"error calling {operation} on pin {pin_name}: {e}") from e

    async def _bounded(self, call):
        if self.pin_call_timeout is None:
            return await call
        try:
            return await asyncio.wait_for(call, timeout=self.pin_call_timeout)
        except asyncio.TimeoutError as e:
            raise PinCallError(f"pin call timed out after {self.pin_call_timeout:g}s") from e

    async def close(self) -> None:
        if self._closed or self.client is None:
            return
        self._closed = True
        try:
            await self.client.close()
            logger.info("RDK client closed")
        except Exception as e:
            logger.error(f"Error closing RDK client: {e}")
