import asyncio
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from relay.core.env_settings import load_settings
from relay.main import create_app
from relay.services.robot import RobotConnection


class FakePin:
    def __init__(self, value: bool = False, error: Exception = None, delay: float = 0):
        self.value = value
        self.error = error
        self.delay = delay
        self.get_calls = []
        self.set_calls = []

    async def get(self, extra=None, timeout=None):
        self.get_calls.append(extra)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.value

    async def set(self, high, extra=None, timeout=None):
        self.set_calls.append((high, extra))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        self.value = high


class FakeBoard:
    def __init__(self, pins=None):
        self.pins = pins if pins is not None else {}
        self.lookups = []

    async def gpio_pin_by_name(self, name):
        self.lookups.append(name)
        if name not in self.pins:
            raise KeyError(f"no pin named {name}")
        return self.pins[name]


class FakeClient:
    def __init__(self):
        self.resource_names = [
            SimpleNamespace(namespace="rdk", type="component", subtype="board", name="board"),
        ]
        self.close_calls = 0

    async def close(self):
        self.close_calls += 1


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the host environment out of the settings under test."""
    import os
    for key in list(os.environ):
        if key.startswith("RDK_"):
            monkeypatch.delenv(key)


@pytest.fixture
def settings():
    return load_settings(
        _env_file=None,
        ROBOT_HOSTNAME="robot.local",
        ROBOT_LOCATION_SECRET="secret",
        ROBOT_BOARD_NAME="board",
    )


@pytest.fixture
def pin():
    return FakePin(value=False)


@pytest.fixture
def board(pin):
    return FakeBoard({"37": pin})


@pytest.fixture
def robot(board):
    return RobotConnection(FakeClient(), board)


@pytest.fixture
def app(settings, robot):
    async def connector(_settings):
        return robot
    return create_app(settings, connector=connector)


@pytest.fixture
def client(app):
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
