from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import asyncio
import json
import logging
from typing import Any, Dict, Set

from playboard.config import Settings
from playboard.controller import BoardController
from playboard.errors import InvalidSettingError

logger = logging.getLogger(__name__)


def error_payload(message: str) -> dict:
    return {"type": "error", "message": message}


async def broadcast(clients: Set[WebSocket], payload: dict) -> None:
    if not clients:
        return
    msg = json.dumps(payload)
    await asyncio.gather(
        *[ws.send_text(msg) for ws in list(clients)],
        return_exceptions=True,
    )


# ---- Message dispatch ----
def _square(msg: Dict[str, Any], key: str) -> str:
    value = msg.get(key)
    if not isinstance(value, str) or not value:
        raise InvalidSettingError(f"'{key}' must be a square name")
    return value


def _enabled(msg: Dict[str, Any]) -> bool:
    value = msg.get("enabled")
    if not isinstance(value, bool):
        raise InvalidSettingError("'enabled' must be true or false")
    return value


async def handle_message(controller: BoardController, msg: Dict[str, Any]) -> None:
    """Apply one view-layer message. Raises InvalidSettingError on bad input."""
    msg_type = msg.get("type")

    if msg_type == "click":
        controller.click(_square(msg, "square"))
    elif msg_type == "dragStart":
        controller.drag_start(_square(msg, "square"))
    elif msg_type == "drop":
        controller.drop(_square(msg, "from"), _square(msg, "to"))
    elif msg_type == "flip":
        controller.flip()
    elif msg_type == "new":
        controller.new_game()
    elif msg_type == "toggleAi":
        controller.toggle_ai(msg.get("color"))
    elif msg_type == "setDepth":
        controller.set_ai_depth(msg.get("depth"))
    elif msg_type == "showEval":
        await controller.set_show_evaluation(_enabled(msg))
    elif msg_type == "showBestMove":
        await controller.set_show_best_move(_enabled(msg))
    elif msg_type == "triggerAi":
        controller.trigger_ai()
    else:
        raise InvalidSettingError(f"unknown message type {msg_type!r}")


def create_app(controller: BoardController | None = None) -> FastAPI:
    settings = controller.settings if controller is not None else Settings.from_env()
    controller = controller or BoardController(settings)
    clients: Set[WebSocket] = set()
    pending: Set[asyncio.Task] = set()

    def on_change(payload: dict) -> None:
        # Called from controller code running on the event loop
        task = asyncio.get_running_loop().create_task(broadcast(clients, payload))
        pending.add(task)
        task.add_done_callback(pending.discard)

    controller.add_listener(on_change)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.show_evaluation:
            await controller.set_show_evaluation(True)
        controller.trigger_ai()
        yield
        await controller.shutdown()

    app = FastAPI(lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.controller = controller
    app.state.clients = clients
    app.state.broadcasts = pending

    @app.get("/healthz")
    async def healthz() -> dict:
        return {"status": "ok"}

    @app.get("/api/state")
    async def state() -> dict:
        return controller.snapshot()

    # ---- WebSocket endpoint ----
    @app.websocket("/ws/session")
    async def ws_session(websocket: WebSocket) -> None:
        await websocket.accept()
        clients.add(websocket)

        # Send initial state
        await websocket.send_text(json.dumps(controller.snapshot()))

        try:
            while True:
                data = await websocket.receive_text()
                try:
                    msg = json.loads(data)
                    if not isinstance(msg, dict):
                        raise InvalidSettingError("message must be a JSON object")
                    before = controller.version
                    await handle_message(controller, msg)
                except ValueError as exc:
                    # covers JSONDecodeError and InvalidSettingError
                    logger.info("Bad message from view: %s", exc)
                    await websocket.send_text(json.dumps(error_payload(str(exc))))
                    await websocket.send_text(json.dumps(controller.snapshot()))
                    continue

                if controller.version == before:
                    # Ignored input: no broadcast happened, answer the sender
                    await websocket.send_text(json.dumps(controller.snapshot()))

        except WebSocketDisconnect:
            clients.discard(websocket)

    return app


app = create_app()
