import logging

from fastapi import APIRouter, Depends, Request

from relay.models.relay import RelayResponse, parse_relay_request
from relay.utils.dependencies import AppContext, call_while_connected, get_context

logger = logging.getLogger(__name__)

# Any method is accepted; the body decides what happens
RELAY_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

router = APIRouter(
    prefix="/relay",
    tags=["Relay API"],
)


@router.api_route("", methods=RELAY_METHODS, response_model=RelayResponse)
async def set_pin_state(request: Request, context: AppContext = Depends(get_context)) -> RelayResponse:
    """Set a pin high or low and echo the applied state."""
    relay_request = parse_relay_request(await request.body())
    state = await call_while_connected(
        request,
        context.robot.set_pin_state(
            relay_request.pin_num,
            relay_request.pin_state,
            relay_request.extra,
        ),
        poll_interval=context.settings.DISCONNECT_POLL_INTERVAL,
    )
    logger.info(f"Pin {relay_request.pin_num} set to {state.value}")
    return RelayResponse(pin_num=relay_request.pin_num, pin_state=state)


@router.api_route("/state", methods=RELAY_METHODS, response_model=RelayResponse)
async def get_pin_state(request: Request, context: AppContext = Depends(get_context)) -> RelayResponse:
    """Read the current state of a pin."""
    relay_request = parse_relay_request(await request.body())
    state = await call_while_connected(
        request,
        context.robot.get_pin_state(relay_request.pin_num, relay_request.extra),
        poll_interval=context.settings.DISCONNECT_POLL_INTERVAL,
    )
    return RelayResponse(pin_num=relay_request.pin_num, pin_state=state)
