"""
State-change events and the result object returned by engine commands.
"""

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class GameEvent:
    """One state change, e.g. a move, an attack or a fire spreading."""
    type: str
    turn: int
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"type": self.type, "turn": self.turn, **self.data}


@dataclass
class ActionResult:
    """Outcome of one engine command."""
    success: bool
    events: list[GameEvent] = field(default_factory=list)
    error: Optional[str] = None  # error kind when rejected
    reason: str = ""

    def __bool__(self) -> bool:
        return self.success

    def event_types(self) -> list[str]:
        return [e.type for e in self.events]

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "error": self.error,
            "reason": self.reason,
            "events": [e.to_dict() for e in self.events],
        }
