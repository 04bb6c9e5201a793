"""
Odds/die resolution for attacks and demolition.
"""

from .base import (
    CombatOutcome, CombatReport, CombatResolver, CombatTables, OutcomeType,
    TableCell, ODDS_BUCKETS, odds_ratio,
)
from .ground import GroundCombat
from .demolition import DemolitionCombat, DemolitionReport

__all__ = [
    "CombatOutcome",
    "CombatReport",
    "CombatResolver",
    "CombatTables",
    "OutcomeType",
    "TableCell",
    "ODDS_BUCKETS",
    "odds_ratio",
    "GroundCombat",
    "DemolitionCombat",
    "DemolitionReport",
]
