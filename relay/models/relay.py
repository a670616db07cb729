"""
Relay data models.

This module defines the Pydantic models for the pin relay wire format.
"""
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, ValidationError

from relay.core.exceptions import InvalidPinStateError, RequestShapeError


class PinState(str, Enum):
    HIGH = "high"
    LOW = "low"


def pin_state_to_bool(state: str) -> bool:
    """Map "high" to True and "low" to False; any other value is rejected."""
    if state == PinState.HIGH.value:
        return True
    if state == PinState.LOW.value:
        return False
    raise InvalidPinStateError("invalid pin state")


def bool_to_pin_state(value: bool) -> PinState:
    return PinState.HIGH if value else PinState.LOW


class RelayRequest(BaseModel):
    """Model for pin relay requests"""
    model_config = ConfigDict(extra="ignore")

    action: StrictStr = Field("", description="Advisory action name, not interpreted")
    pin_num: StrictInt = Field(0, description="Board pin number, looked up by its decimal name")
    # Kept as a raw string: an unknown state is a domain error on the set path
    pin_state: StrictStr = Field("", description="Desired pin state: 'high' or 'low'")
    extra: Optional[Dict[str, Any]] = Field(None, description="Passed through to the SDK call")


class RelayResponse(BaseModel):
    """Model for pin relay responses"""
    pin_num: int
    pin_state: PinState


def parse_relay_request(body: bytes) -> RelayRequest:
    """
    Decode a request body into a RelayRequest.

    Raises:
        RequestShapeError: the body is not JSON or does not match the schema.
    """
    if body.strip() == b"null":
        # A JSON null decodes to an all-default request
        return RelayRequest()
    try:
        return RelayRequest.model_validate_json(body or b"")
    except ValidationError as e:
        raise RequestShapeError(_describe(e)) from e


def _describe(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    if location:
        return f"{location}: {first['msg']}"
    return first["msg"]
