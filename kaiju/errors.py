"""
Error taxonomy for the rules engine.

Play errors are recoverable: the engine rejects the command, leaves state
unchanged and reports the error kind in the ActionResult. ScenarioError is
raised at load time for malformed map, table or scenario data.
"""


class EngineError(Exception):
    """Base class for rejected engine operations."""

    kind = "engine_error"

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class IllegalPhase(EngineError):
    """Operation attempted outside its legal sub-phase."""

    kind = "illegal_phase"


class InsufficientBudget(EngineError):
    """Not enough movement or action points."""

    kind = "insufficient_budget"


class InvalidTarget(EngineError):
    """Unknown node/entity, or adjacency, range, terrain, stacking or ownership failure."""

    kind = "invalid_target"


class RuleViolation(EngineError):
    """A game rule cap was exceeded (destruction points, setup costs, ...)."""

    kind = "rule_violation"


class ScenarioError(ValueError):
    """Malformed map, table or scenario descriptor."""
