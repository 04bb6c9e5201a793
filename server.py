"""
WebSocket server for the kaiju wargame.

Each connection owns one GameSession. Clients send JSON messages such as
{"type": "start_game", "scenario": "midtown_rampage"} or
{"type": "move", "entity": "monster", "target": "E3"} and receive one JSON
reply per message. A plain GET / returns a JSON status document.
"""

import os
import json
import asyncio
import logging
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(__file__).parent / ".env")

import websockets
from websockets.datastructures import Headers
from websockets.http11 import Response

from kaiju import DEFAULT_DATA_PATH
from kaiju.session import COMMANDS, QUERIES, GameSession

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DATA_PATH = Path(os.environ.get("KAIJU_DATA", DEFAULT_DATA_PATH))
DEFAULT_SCENARIO = os.environ.get("KAIJU_SCENARIO", "midtown_rampage")
DEFAULT_SEED = int(os.environ["KAIJU_SEED"]) if os.environ.get("KAIJU_SEED") else None


def available_scenarios(data_path: Path = DATA_PATH) -> list[str]:
    return sorted(p.stem for p in (data_path / "scenarios").glob("*.yaml"))


async def handle_websocket(websocket):
    """Handle a single WebSocket connection (one game session)."""
    session = GameSession(DATA_PATH, seed=DEFAULT_SEED)

    async def send_json(msg_type: str, data: dict):
        await websocket.send(json.dumps({"type": msg_type, **data}, default=str))

    try:
        await send_json("hello", {
            "scenarios": available_scenarios(),
            "default_scenario": DEFAULT_SCENARIO,
            "commands": sorted(COMMANDS),
            "queries": sorted(QUERIES),
        })

        async for raw in websocket:
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                await send_json("error", {"message": "Invalid JSON"})
                continue

            if isinstance(msg, dict) and msg.get("type") == "start_game":
                msg.setdefault("scenario", DEFAULT_SCENARIO)
                logger.info(f"Starting game: scenario={msg['scenario']}")

            reply = session.handle(msg)
            await websocket.send(json.dumps(reply, default=str))

            if reply.get("type") == "action_result" and session.manager is not None:
                gs = session.manager.game_state
                if gs.game_over:
                    await send_json("game_over", {
                        "winner": gs.winner,
                        "reason": gs.end_reason,
                        "final_vp": {"monster": gs.monster_vp, "human": gs.human_vp},
                    })

    except websockets.exceptions.ConnectionClosed:
        logger.info("Client disconnected")


def http_handler(connection, request):
    """Answer plain GET / with a status document (websockets process_request)."""
    if request.headers.get("Upgrade", "").lower() == "websocket":
        return None  # Let websockets handle the upgrade
    if request.path in ("/", ""):
        body = json.dumps({
            "name": "kaiju",
            "scenarios": available_scenarios(),
            "default_scenario": DEFAULT_SCENARIO,
        }).encode()
        return Response(
            200,
            "OK",
            Headers([
                ("Content-Type", "application/json"),
                ("Content-Length", str(len(body))),
            ]),
            body,
        )
    return None


async def main():
    host = os.environ.get("HOST", "0.0.0.0")
    port = int(os.environ.get("PORT", "8080"))

    logger.info(f"Starting server on ws://{host}:{port}")
    logger.info(f"Scenarios: {', '.join(available_scenarios()) or 'none'}")

    async with websockets.serve(
        handle_websocket,
        host,
        port,
        process_request=http_handler,
        max_size=1024 * 1024,
    ):
        await asyncio.Future()  # run forever


if __name__ == "__main__":
    asyncio.run(main())
