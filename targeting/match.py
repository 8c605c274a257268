import logging
import random
from typing import Dict, Mapping, Optional

from .ai import BattleshipAI
from .core import DEFAULT_RULES, Battle, GameRules
from .qlearning import DEFAULT_HYPERPARAMETERS, Hyperparameters

logger = logging.getLogger(__name__)


def accuracy(hits: int, misses: int) -> int:
    shots = hits + misses
    return round(hits / shots * 100) if shots else 0


def play_battle(model_a: str, model_b: str,
                q_tables: Optional[Mapping[str, Mapping[str, float]]] = None,
                hyperparameters: Optional[Mapping[str, Hyperparameters]] = None,
                rules: GameRules = DEFAULT_RULES,
                rng: Optional[random.Random] = None) -> Dict:
    """Партия движок против движка; стрелки ходят по очереди по одному выстрелу.

    Возвращает сводку в формате сохранения партии, включая все ходы.
    """
    if model_a == model_b:
        raise ValueError("Модели в партии должны различаться")

    rng = rng or random.Random()
    q_tables = q_tables or {}
    hyperparameters = hyperparameters or {}

    battle = Battle(model_a, model_b, rules)
    for board in battle.boards.values():
        board.auto_place_all_ships(rng)

    ai = BattleshipAI(rules, rng)
    moves = []
    current = model_a
    max_turns = 2 * rules.grid_size * rules.grid_size

    for _ in range(max_turns):
        shots = battle.shots[current]
        decision = ai.decide(shots, q_tables.get(current), hyperparameters.get(current, DEFAULT_HYPERPARAMETERS),
                             model=current)
        result = battle.fire(current, decision.row, decision.col)
        moves.append({
            "model": current,
            "move_number": len(shots),
            "row": decision.row,
            "col": decision.col,
            "hit": result["result"] == "hit",
            "was_follow_up": decision.was_follow_up,
            "previous_hits": decision.previous_hits,
        })
        if battle.winner:
            break
        current = battle.opponent(current)

    summary = {"model_a": model_a, "model_b": model_b, "winner": battle.winner, "moves": moves}
    for side, model in (("a", model_a), ("b", model_b)):
        hits = sum(1 for s in battle.shots[model] if s.hit)
        misses = len(battle.shots[model]) - hits
        summary[f"hits_{side}"] = hits
        summary[f"misses_{side}"] = misses
        summary[f"accuracy_{side}"] = accuracy(hits, misses)

    logger.info(f"Battle {model_a} vs {model_b} finished after {len(moves)} shots, winner: {battle.winner}")
    return summary
