import asyncio
import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from transitmap.map_session import MapSession
from transitmap.map_widget import WebSocketMapWidget
from transitmap.models import Coordinate, Viewport
from transitmap.screens import NavigatorScreen, SimulationScreen

logger = logging.getLogger("transitmap.routes")

router = APIRouter()

SCREENS = ("simulation", "navigator")


def _get_state():
    from transitmap.main import app_state
    return app_state


@router.get("/health")
async def health():
    return {"status": "ok", "service": "transitmap"}


async def _pump(websocket: WebSocket, widget: WebSocketMapWidget) -> None:
    """Forward queued map commands to the client in order."""
    while True:
        message = await widget.next_command()
        await websocket.send_text(json.dumps(message))


@router.websocket("/ws/map/{screen}")
async def map_websocket(websocket: WebSocket, screen: str):
    """Live map WebSocket, one engine per connection.

    Client sends: {"type": "viewport", ...}, {"type": "tap", "x": .., "y": ..},
    {"type": "desired_trips", "trip_ids": [...]}, {"type": "navigate", "origin": .., "destination": ..}
    Server sends: overlay commands (add_marker, add_polyline, move_marker, remove)
    and screen updates (trips, endpoints, solutions, no_route)
    """
    if screen not in SCREENS:
        await websocket.close(code=1008, reason=f"Unknown screen: {screen}")
        return

    state = _get_state()
    oracle = state.get("oracle")
    solver = state.get("solver")
    if oracle is None or solver is None:
        await websocket.close(code=1011, reason="Map service unavailable")
        return

    await websocket.accept()
    logger.info(f"WebSocket connected for {screen} screen")

    widget = WebSocketMapWidget()
    session = MapSession(oracle, solver, widget)
    notify = widget.outbox.put_nowait
    if screen == "simulation":
        controller = SimulationScreen(session, oracle, notify)
    else:
        controller = NavigatorScreen(session, notify)
    sender = asyncio.create_task(_pump(websocket, widget))

    try:
        if isinstance(controller, SimulationScreen):
            await controller.start()

        while True:
            msg = json.loads(await websocket.receive_text())
            msg_type = msg.get("type")

            if msg_type == "viewport":
                widget.update_viewport(Viewport.model_validate(
                    {k: msg[k] for k in ("center", "zoom", "width", "height")}
                ))
            elif msg_type == "tap":
                widget.handle_tap(float(msg["x"]), float(msg["y"]))
            elif msg_type == "desired_trips" and isinstance(controller, SimulationScreen):
                await session.set_desired_trips(int(t) for t in msg.get("trip_ids", []))
            elif msg_type == "navigate" and isinstance(controller, NavigatorScreen):
                await controller.navigate(
                    Coordinate.model_validate(msg["origin"]),
                    Coordinate.model_validate(msg["destination"]),
                )
            else:
                logger.debug(f"Ignoring {msg_type!r} message on {screen} screen")

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected: {screen}")
    except (KeyError, ValueError, ValidationError) as e:
        logger.warning(f"Bad message on {screen} screen: {e}")
        await websocket.close(code=1003, reason="Malformed message")
    finally:
        await controller.dispose()
        sender.cancel()
        try:
            await sender
        except (asyncio.CancelledError, WebSocketDisconnect, RuntimeError):
            pass
        logger.info(f"Map WebSocket closed: {screen}")
