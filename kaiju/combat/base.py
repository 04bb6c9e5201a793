"""
Base combat resolution: odds ratios and the odds/die outcome tables.

The tables are the only authority on results. There is no formula
fallback; a missing or incomplete table stops the engine at load.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

import yaml

from ..dice import Dice
from ..errors import ScenarioError
from ..map import DEFAULT_DATA_PATH

logger = logging.getLogger(__name__)

MAX_ODDS = 5
DIE_FACES = 6
ODDS_BUCKETS = [f"1:{n}" for n in range(MAX_ODDS, 1, -1)] + [f"{n}:1" for n in range(1, MAX_ODDS + 1)]


class OutcomeType(Enum):
    NONE = "none"
    RETREAT = "retreat"
    ELIMINATED = "eliminated"
    DAMAGE = "damage"


@dataclass(frozen=True)
class CombatOutcome:
    """Result for one side of an attack. DAMAGE carries the loss count."""
    type: OutcomeType
    amount: int = 0

    @classmethod
    def parse(cls, code: str) -> "CombatOutcome":
        code = str(code).strip().upper()
        if code in ("-", "NE", ""):
            return cls(OutcomeType.NONE)
        if code == "R":
            return cls(OutcomeType.RETREAT)
        if code == "E":
            return cls(OutcomeType.ELIMINATED)
        if code.isdigit() and int(code) > 0:
            return cls(OutcomeType.DAMAGE, int(code))
        raise ScenarioError(f"Unknown outcome code '{code}'")

    @property
    def code(self) -> str:
        return {
            OutcomeType.NONE: "-",
            OutcomeType.RETREAT: "R",
            OutcomeType.ELIMINATED: "E",
        }.get(self.type, str(self.amount))

    def to_dict(self) -> dict:
        return {"type": self.type.value, "amount": self.amount}


NO_EFFECT = CombatOutcome(OutcomeType.NONE)


@dataclass(frozen=True)
class TableCell:
    defender: CombatOutcome
    attacker: CombatOutcome

    @property
    def is_no_effect(self) -> bool:
        return self.defender == NO_EFFECT and self.attacker == NO_EFFECT


def odds_ratio(attack: int, defense: int) -> str:
    """
    Odds bucket for attacker vs defender strength.

    Rounded in the defender's favor: 5 vs 2 is 2:1, 2 vs 5 is 1:3.
    Clamped to 1:5 .. 5:1.
    """
    if defense <= 0:
        return f"{MAX_ODDS}:1"
    if attack <= 0:
        return f"1:{MAX_ODDS}"
    if attack >= defense:
        return f"{min(MAX_ODDS, attack // defense)}:1"
    return f"1:{min(MAX_ODDS, -(-defense // attack))}"


class CombatTables:
    """Combat and destruction lookup tables keyed by (odds bucket, die face)."""

    def __init__(self, data_path: Path | str = DEFAULT_DATA_PATH):
        self.data_path = Path(data_path)
        self.combat: dict[str, list[TableCell]] = {}
        self.destruction: dict[str, list[bool]] = {}
        self._load()

    def _load(self):
        table_path = self.data_path / "schema" / "combat_tables.yaml"
        if not table_path.exists():
            raise ScenarioError(f"Combat tables not found: {table_path}")

        with open(table_path) as f:
            data = yaml.safe_load(f) or {}

        combat = data.get("combat", {})
        destruction = data.get("destruction", {})
        for odds in ODDS_BUCKETS:
            cells = combat.get(odds)
            if not cells or len(cells) != DIE_FACES:
                raise ScenarioError(f"Combat table row {odds} must have {DIE_FACES} entries")
            self.combat[odds] = [self._parse_cell(odds, cell) for cell in cells]

            results = destruction.get(odds)
            if not results or len(results) != DIE_FACES:
                raise ScenarioError(f"Destruction table row {odds} must have {DIE_FACES} entries")
            self.destruction[odds] = [str(r).strip().upper() == "D" for r in results]

        logger.debug(f"Loaded combat tables from {table_path}")

    @staticmethod
    def _parse_cell(odds: str, cell: str) -> TableCell:
        parts = str(cell).split("/")
        if len(parts) != 2:
            raise ScenarioError(f"Combat table {odds}: malformed cell '{cell}'")
        return TableCell(defender=CombatOutcome.parse(parts[0]), attacker=CombatOutcome.parse(parts[1]))

    def lookup(self, odds: str, die: int) -> TableCell:
        return self.combat[odds][die - 1]

    def destroys(self, odds: str, die: int) -> bool:
        return self.destruction[odds][die - 1]


@dataclass
class CombatReport:
    """Report of one resolved attack."""
    attacker_id: str
    defender_id: str
    turn: int
    phase: str
    odds: str
    die: int
    attacker_strength: int
    defender_strength: int
    defender_outcome: CombatOutcome = NO_EFFECT
    attacker_outcome: CombatOutcome = NO_EFFECT
    defender_losses: int = 0
    attacker_losses: int = 0
    retreats: dict[str, str] = field(default_factory=dict)  # entity id -> node
    eliminated: list[str] = field(default_factory=list)
    location: Optional[str] = None
    notes: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "attacker_id": self.attacker_id,
            "defender_id": self.defender_id,
            "turn": self.turn,
            "phase": self.phase,
            "odds": self.odds,
            "die": self.die,
            "attacker_strength": self.attacker_strength,
            "defender_strength": self.defender_strength,
            "defender_outcome": self.defender_outcome.code,
            "attacker_outcome": self.attacker_outcome.code,
            "defender_losses": self.defender_losses,
            "attacker_losses": self.attacker_losses,
            "retreats": dict(self.retreats),
            "eliminated": list(self.eliminated),
            "location": self.location,
            "notes": list(self.notes),
        }


class CombatResolver:
    """Base class for odds/die resolution."""

    def __init__(self, tables: CombatTables, dice: Optional[Dice] = None):
        self.tables = tables
        self.dice = dice or Dice()

    def roll(self) -> int:
        return self.dice.roll(DIE_FACES)

    def resolve_odds(self, attack: int, defense: int) -> tuple[str, int, TableCell]:
        """Roll one die against the combat table."""
        odds = odds_ratio(attack, defense)
        die = self.roll()
        return odds, die, self.tables.lookup(odds, die)
