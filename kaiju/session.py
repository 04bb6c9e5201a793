"""
Message-level wrapper around one TurnManager.

Both the websocket server and the command-line runner talk to the engine
through plain dicts of the form {"type": <command>, ...fields}. A session
owns exactly one engine; starting a new game replaces it.
"""

import logging
from pathlib import Path
from typing import Any, Optional

from .errors import EngineError
from .map import DEFAULT_DATA_PATH
from .turn import TurnManager

logger = logging.getLogger(__name__)

# message type -> (TurnManager method, required fields, optional fields)
COMMANDS = {
    "move": ("move_entity", ("entity", "target"), ()),
    "attack": ("attempt_attack", ("attacker", "defender"), ()),
    "destroy": ("attempt_destruction", ("monster", "target", "points"), ()),
    "ability": ("use_ability", ("monster", "ability"), ("target",)),
    "extinguish": ("extinguish", ("unit", "target"), ()),
    "end_phase": ("end_phase", (), ()),
    "end_turn": ("end_turn", (), ()),
}

QUERIES = {
    "reachable": ("reachable_from", ("entity",)),
    "path": ("path_between", ("entity", "target")),
    "entities_at": ("entities_at", ("node",)),
    "markers_at": ("markers_at", ("node",)),
    "state": ("current_phase_state", ()),
    "snapshot": ("snapshot", ()),
}


class SessionError(Exception):
    """Malformed message; never reaches the engine."""


class GameSession:
    """One game per session."""

    def __init__(self, data_path: Path | str = DEFAULT_DATA_PATH, seed: Optional[int] = None):
        self.data_path = Path(data_path)
        self.seed = seed
        self.manager: Optional[TurnManager] = None

    def start(self, scenario: str, seed: Optional[int] = None) -> dict:
        self.manager = TurnManager(self.data_path, seed=self.seed if seed is None else seed)
        result = self.manager.start_game(scenario)
        if result:
            logger.info(f"Session started scenario '{scenario}'")
        return self._result("start_game", result)

    def restore(self, snapshot: dict) -> dict:
        """Resume a saved game, keeping the current one if the snapshot is rejected."""
        manager = self.manager or TurnManager(self.data_path, seed=self.seed)
        result = manager.restore(snapshot)
        if result:
            self.manager = manager
            logger.info(f"Session restored scenario '{manager.scenario.name}'")
        return self._result("restore_game", result)

    def handle(self, message: dict) -> dict:
        """Dispatch one message. Always returns a reply dict, never raises."""
        try:
            return self._dispatch(message)
        except SessionError as e:
            return {"type": "error", "message": str(e)}
        except EngineError as e:
            return {"type": "error", "error": e.kind, "message": e.reason}

    def _dispatch(self, message: dict) -> dict:
        if not isinstance(message, dict):
            raise SessionError("Message must be an object")
        msg_type = message.get("type", "")

        if msg_type == "start_game":
            scenario = message.get("scenario")
            if not scenario:
                raise SessionError("start_game needs a 'scenario'")
            seed = message.get("seed")
            return self.start(scenario, self._int(seed, "seed") if seed is not None else None)

        if msg_type == "restore_game":
            snapshot = message.get("snapshot")
            if not isinstance(snapshot, dict):
                raise SessionError("restore_game needs a 'snapshot' object")
            return self.restore(snapshot)

        if msg_type in COMMANDS:
            method, required, optional = COMMANDS[msg_type]
            args = self._fields(message, required) + [message.get(name) for name in optional]
            if msg_type == "destroy":
                args[2] = self._int(args[2], "points")
            result = getattr(self._require_manager(), method)(*args)
            return self._result(msg_type, result)

        if msg_type in QUERIES:
            method, required = QUERIES[msg_type]
            data = getattr(self._require_manager(), method)(*self._fields(message, required))
            return {"type": "query_result", "query": msg_type, "data": data}

        raise SessionError(f"Unknown message type: {msg_type}")

    def _require_manager(self) -> TurnManager:
        if self.manager is None:
            raise SessionError("No game in progress")
        return self.manager

    def _result(self, command: str, result) -> dict:
        reply = {"type": "action_result", "command": command, **result.to_dict()}
        if self.manager is not None:
            reply["state"] = self.manager.current_phase_state()
        return reply

    @staticmethod
    def _fields(message: dict, names: tuple) -> list[Any]:
        missing = [name for name in names if message.get(name) is None]
        if missing:
            raise SessionError(f"Missing field(s): {', '.join(missing)}")
        return [message[name] for name in names]

    @staticmethod
    def _int(value: Any, name: str) -> int:
        try:
            return int(value)
        except (TypeError, ValueError):
            raise SessionError(f"'{name}' must be an integer") from None
