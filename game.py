"""
Command-line runner for the kaiju wargame.

Loads a scenario, replays a YAML command script through the engine and
prints the final result. Without a script (or with --finish) the remaining
player-turns are simply ended until the game is decided.

Script format:

    commands:
      - {type: ability, monster: monster, ability: flying}
      - {type: move, entity: monster, target: E3}
      - {type: end_phase}
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

import yaml

from kaiju import DEFAULT_DATA_PATH, GameSession, Faction

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class KaijuSimulation:
    """Drives one scripted game."""

    def __init__(
        self,
        data_path: Path | str = DEFAULT_DATA_PATH,
        scenario: str = "midtown_rampage",
        seed: Optional[int] = None,
        log_dir: Optional[str] = None,
    ):
        self.scenario_name = scenario
        self.session = GameSession(data_path, seed=seed)
        self.log_dir = Path(log_dir) if log_dir else None
        self.game_log: list[dict] = []
        self.start_time = None

    def initialize(self):
        self.start_time = datetime.now()
        reply = self.session.start(self.scenario_name)
        self._log_event(reply)
        if not reply["success"]:
            raise SystemExit(f"Could not start scenario: {reply['reason']}")

        manager = self.session.manager
        manager.on_turn_start = self._on_turn_start
        manager.on_turn_end = self._on_turn_end

    def _on_turn_start(self, turn_state):
        logger.info(f"--- Turn {turn_state.turn_number}: {turn_state.side.value} ---")

    def _on_turn_end(self, turn_state):
        gs = self.session.manager.game_state
        logger.info(f"VP after {turn_state.side.value} turn: monster {gs.monster_vp}, human {gs.human_vp}")

    def run_commands(self, commands: list[dict]):
        for command in commands:
            if self.session.manager.game_state.game_over:
                logger.info("Game already decided, skipping remaining commands")
                break
            reply = self.session.handle(command)
            self._log_event(reply)
            if reply["type"] == "error" or not reply.get("success", True):
                logger.warning(f"{command.get('type')}: {reply.get('reason') or reply.get('message')}")

    def finish(self):
        """End player-turns until the game is over."""
        while not self.session.manager.game_state.game_over:
            self._log_event(self.session.handle({"type": "end_turn"}))

    def run_game(self, commands: Optional[list[dict]] = None, finish: bool = True) -> dict:
        self.initialize()
        self.run_commands(commands or [])
        if finish:
            self.finish()

        results = self._compile_results()
        if self.log_dir:
            self._save_game_log(results)
        return results

    def _compile_results(self) -> dict:
        manager = self.session.manager
        game = manager.game_state
        monster = manager.registry.monster or manager.registry.eliminated.get(manager.scenario.monster.id)
        return {
            "scenario": manager.scenario.name,
            "turns_played": min(game.turn, game.max_turns),
            "winner": game.winner,
            "reason": game.end_reason,
            "final_vp": {"monster": game.monster_vp, "human": game.human_vp},
            "monster": monster.to_dict() if monster else None,
            "surviving_units": sum(u.quantity for u in manager.registry.by_faction(Faction.HUMAN)),
            "duration": str(datetime.now() - self.start_time) if self.start_time else None,
        }

    def _log_event(self, reply: dict):
        self.game_log.append({"timestamp": datetime.now().isoformat(), **reply})

    def _save_game_log(self, results: dict):
        self.log_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_path = self.log_dir / f"game_{timestamp}.json"

        with open(log_path, "w") as f:
            json.dump({"results": results, "log": self.game_log}, f, indent=2, default=str)

        logger.info(f"Game log saved to: {log_path}")


def load_script(path: Path | str) -> list[dict]:
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    commands = data.get("commands", []) if isinstance(data, dict) else data
    if not isinstance(commands, list):
        raise SystemExit(f"{path}: 'commands' must be a list")
    return commands


def main():
    """Run a kaiju wargame from the command line."""
    import argparse

    parser = argparse.ArgumentParser(description="Kaiju city wargame")
    parser.add_argument("--scenario", default="midtown_rampage", help="Scenario name or YAML path")
    parser.add_argument("--commands", default=None, help="YAML command script to replay")
    parser.add_argument("--seed", type=int, default=None, help="Dice seed")
    parser.add_argument("--data", default=str(DEFAULT_DATA_PATH), help="Data directory path")
    parser.add_argument("--logs", default=None, help="Write a JSON game log to this directory")
    parser.add_argument("--no-finish", action="store_true", help="Stop after the script instead of playing out")

    args = parser.parse_args()

    sim = KaijuSimulation(
        data_path=args.data,
        scenario=args.scenario,
        seed=args.seed,
        log_dir=args.logs,
    )
    commands = load_script(args.commands) if args.commands else []
    results = sim.run_game(commands, finish=not args.no_finish)

    print("\n" + "="*60)
    print("FINAL RESULTS")
    print("="*60)
    print(f"Scenario: {results['scenario']}")
    print(f"Turns played: {results['turns_played']}")
    print(f"Winner: {results['winner'] or 'undecided'}")
    if results["reason"]:
        print(f"Reason: {results['reason']}")
    print(f"Final VP - Monster: {results['final_vp']['monster']}, Human: {results['final_vp']['human']}")
    print(f"Surviving human units: {results['surviving_units']}")
    print(f"Duration: {results['duration']}")


if __name__ == "__main__":
    main()
