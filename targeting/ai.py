import logging
import random
from dataclasses import dataclass
from typing import List, Mapping, Optional, Sequence

from security.validation import validate_suggestion

from .clusters import analyze
from .core import DEFAULT_RULES, GameRules, Shot, validate_shots
from .fleet import estimate_remaining_ships
from .fusion import SOURCE_ADVISOR, FusedCell, combine, legality_gate
from .probability import generate_probability_map
from .qlearning import DEFAULT_HYPERPARAMETERS, Hyperparameters, determine_state, select_action, target_cells_for_action

logger = logging.getLogger(__name__)

RECENT_HITS = 5


@dataclass
class MoveDecision:
    row: int
    col: int
    heatmap: List[List[float]]
    state: str
    action: str
    source: str
    score: float
    fallback: bool
    was_follow_up: bool
    remaining_ships: List[int]
    previous_hits: List[dict]

    def to_dict(self) -> dict:
        return {
            'row': self.row,
            'col': self.col,
            'heatmap': self.heatmap,
            'state': self.state,
            'action': self.action,
            'source': self.source,
            'score': self.score,
            'fallback': self.fallback,
            'wasFollowUp': self.was_follow_up,
            'remainingShips': self.remaining_ships,
            'previousHits': self.previous_hits,
        }


def recent_hits(shots: Sequence[Shot], limit: int = RECENT_HITS) -> List[dict]:
    """Последние попадания стрелка, сохраняются вместе с ходом"""
    return [{'row': s.row, 'col': s.col} for s in shots if s.hit][-limit:]


def hunting_zone(shots: Sequence[Shot], rules: GameRules = DEFAULT_RULES) -> List[tuple]:
    """Необстрелянные соседи всех попаданий"""
    taken = {s.cell for s in shots}
    zone = []
    for shot in shots:
        if not shot.hit:
            continue
        for cell in rules.neighbors(shot.row, shot.col):
            if cell not in taken and cell not in zone:
                zone.append(cell)
    return zone


class BattleshipAI:
    """Движок наведения: поле вероятностей + Q-политика + слияние кандидатов"""

    def __init__(self, rules: GameRules = DEFAULT_RULES, rng: Optional[random.Random] = None, advisor=None):
        self.rules = rules
        self.rng = rng or random.Random()
        self.advisor = advisor

    def decide(self, shots: Sequence[Shot], q_table: Optional[Mapping[str, float]] = None,
               hyperparameters: Hyperparameters = DEFAULT_HYPERPARAMETERS,
               model: str = '', use_advisor: bool = False, strategy_data: Optional[dict] = None) -> MoveDecision:
        """Один ход. Бросает NoAvailableMoves, если поле обстреляно целиком"""
        shots = validate_shots(shots, self.rules)
        q_table = q_table or {}

        remaining = estimate_remaining_ships(shots, self.rules)
        probability_map = generate_probability_map(shots, remaining, self.rules)

        state = determine_state(shots, self.rules)
        action = select_action(state, q_table, hyperparameters.exploration_rate, self.rng)
        q_cells = target_cells_for_action(action, shots, probability_map.top_cells, self.rules)

        ranked = combine(probability_map.top_cells, q_cells)

        if use_advisor and self.advisor is not None:
            suggestion = self._ask_advisor(model, shots, ranked, strategy_data)
            if suggestion is not None:
                ranked.insert(0, FusedCell(suggestion[0], suggestion[1], 1.0, SOURCE_ADVISOR))

        gate = legality_gate(ranked, shots, self.rules, self.rng)
        was_follow_up = (gate.row, gate.col) in hunting_zone(shots, self.rules)

        logger.info(
            f"Move for {model or 'engine'}: ({gate.row}, {gate.col}) state={state.key} "
            f"action={action.value} source={gate.source}"
        )
        return MoveDecision(
            row=gate.row,
            col=gate.col,
            heatmap=probability_map.grid,
            state=state.key,
            action=action.value,
            source=gate.source,
            score=gate.score,
            fallback=gate.fallback,
            was_follow_up=was_follow_up,
            remaining_ships=remaining,
            previous_hits=recent_hits(shots),
        )

    def _ask_advisor(self, model, shots, ranked, strategy_data) -> Optional[tuple]:
        hint = ranked[0].cell if ranked else None
        raw = self.advisor.suggest(model, shots, self.rules, hint=hint, strategy_data=strategy_data,
                                   analysis=analyze(shots, self.rules))
        if raw is None:
            return None

        suggestion = validate_suggestion(raw, shots, self.rules.grid_size)
        if suggestion is None:
            logger.warning(f"Advisor suggestion rejected for {model}: {raw!r}")
        return suggestion
