import asyncio
import socket
import threading
import time

import httpx
import pytest
import uvicorn

from relay.core.exceptions import ClientDisconnectedError
from relay.main import create_app
from relay.models.relay import PinState
from relay.services.robot import RobotConnection
from relay.utils.dependencies import call_while_connected
from tests.conftest import FakeBoard, FakeClient, FakePin


class FakeRequest:
    def __init__(self, disconnected=False):
        self.disconnected = disconnected
        self.url = type("URL", (), {"path": "/api/relay/state"})()

    async def is_disconnected(self):
        return self.disconnected


class HangingPin(FakePin):
    """A pin whose get never returns on its own."""

    def __init__(self):
        super().__init__()
        self.cancelled = threading.Event()

    async def get(self, extra=None, timeout=None):
        try:
            await asyncio.sleep(30)
        except asyncio.CancelledError:
            self.cancelled.set()
            raise
        return True


def test_call_returns_result_while_connected():
    async def call():
        await asyncio.sleep(0.02)
        return PinState.HIGH

    result = asyncio.run(call_while_connected(FakeRequest(), call(), poll_interval=0.005))
    assert result is PinState.HIGH


def test_call_errors_propagate():
    async def call():
        raise KeyError("pin")

    with pytest.raises(KeyError):
        asyncio.run(call_while_connected(FakeRequest(), call(), poll_interval=0.005))


def test_call_is_cancelled_when_client_leaves():
    pin = HangingPin()

    with pytest.raises(ClientDisconnectedError):
        asyncio.run(
            call_while_connected(FakeRequest(disconnected=True), pin.get(), poll_interval=0.005)
        )
    assert pin.cancelled.is_set()


@pytest.fixture
def free_port():
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def hanging_pin():
    return HangingPin()


@pytest.fixture
def live_server(settings, hanging_pin, free_port):
    """Serve the app with uvicorn in a thread; pin 1 hangs, pin 37 answers."""
    robot = RobotConnection(
        FakeClient(),
        FakeBoard({"1": hanging_pin, "37": FakePin(value=True)}),
        serialize_pin_calls=True,
    )

    async def connector(_settings):
        return robot

    app = create_app(settings.model_copy(update={"DISCONNECT_POLL_INTERVAL": 0.02}), connector=connector)
    server = uvicorn.Server(uvicorn.Config(app, host="127.0.0.1", port=free_port, log_level="warning", log_config=None))
    thread = threading.Thread(target=server.run, daemon=True)
    thread.start()

    deadline = time.monotonic() + 10
    while not server.started:
        assert time.monotonic() < deadline, "server did not start"
        time.sleep(0.01)

    yield f"http://127.0.0.1:{free_port}"

    server.should_exit = True
    thread.join(timeout=10)


def test_client_disconnect_cancels_remote_call(live_server, hanging_pin):
    with pytest.raises(httpx.TimeoutException):
        httpx.post(f"{live_server}/api/relay/state", json={"pin_num": 1}, timeout=0.3)

    assert hanging_pin.cancelled.wait(timeout=3)

    # The serialized pin lock was released with the cancelled call
    resp = httpx.post(f"{live_server}/api/relay/state", json={"pin_num": 37}, timeout=2)
    assert resp.status_code == 200
    assert resp.json() == {"pin_num": 37, "pin_state": "high"}
