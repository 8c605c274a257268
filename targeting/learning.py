import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from .clusters import UNKNOWN, detect_hit_direction
from .core import DEFAULT_RULES, GameRules, Shot, validate_shots
from .fleet import is_sinking_shot
from .qlearning import (DEFAULT_HYPERPARAMETERS, Hyperparameters, QAction, QTable, QValueEntry,
                        calculate_reward, determine_state, q_key, split_q_key, update_q_value)

logger = logging.getLogger(__name__)

CENTER_DISTANCE_THRESHOLD = 2.5

# Вес старого значения при слиянии с результатом одной партии
BLEND_OLD = 0.7
BLEND_NEW = 0.3


@dataclass(frozen=True)
class BattleMove:
    row: int
    col: int
    hit: bool
    was_follow_up: bool = False

    def to_shot(self) -> Shot:
        return Shot(self.row, self.col, self.hit)


@dataclass
class QUpdate:
    q_value: float
    visit_count: int


def infer_action(move: BattleMove, previous_shots: Sequence[Shot], rules: GameRules = DEFAULT_RULES) -> QAction:
    """Какому действию соответствует сделанный ход"""
    previous_hits = [s.cell for s in previous_shots if s.hit]

    if not previous_hits:
        if (move.row + move.col) % 2 == 0:
            return QAction.CHECKERBOARD
        distance = math.hypot(move.row - rules.center, move.col - rules.center)
        if distance < CENTER_DISTANCE_THRESHOLD:
            return QAction.CENTER_FOCUS
        return QAction.CHECKERBOARD

    adjacent = any(
        (abs(r - move.row) == 1 and c == move.col) or (abs(c - move.col) == 1 and r == move.row)
        for r, c in previous_hits
    )
    if adjacent:
        if detect_hit_direction(previous_hits) != UNKNOWN:
            return QAction.CONTINUE_DIRECTION
        return QAction.ADJACENT

    return QAction.CHECKERBOARD


def process_battle(moves: Sequence[BattleMove], won: bool,
                   hyperparameters: Hyperparameters = DEFAULT_HYPERPARAMETERS,
                   rules: GameRules = DEFAULT_RULES,
                   detect_sinks: bool = False) -> Dict[str, QUpdate]:
    """Проигрывает ходы одной модели и возвращает Q-дельты партии.

    Обновления идут по пустой таблице партии, а не по боевым значениям;
    слияние с сохраненными значениями - задача хранилища (см. merge_update).
    Бонус за потопление начисляется только при detect_sinks=True.
    Бросает InvalidShotError на ходах вне поля и повторах клеток.
    """
    validate_shots([move.to_shot() for move in moves], rules)

    q_table: QTable = {}
    updates: Dict[str, QUpdate] = {}
    shots: List[Shot] = []

    for i, move in enumerate(moves):
        state_key = determine_state(shots, rules).key
        action = QAction.ADJACENT if move.was_follow_up else infer_action(move, shots, rules)

        shot = move.to_shot()
        sunk = detect_sinks and is_sinking_shot(shots, shot, rules)
        is_last = i == len(moves) - 1
        reward = calculate_reward(move.hit, sunk, is_last and won, is_last and not won)

        shots.append(shot)
        next_state_key = determine_state(shots, rules).key

        new_q = update_q_value(q_table, state_key, action, reward, next_state_key, hyperparameters)

        key = q_key(state_key, action)
        existing = updates.get(key)
        updates[key] = QUpdate(q_value=new_q, visit_count=(existing.visit_count if existing else 0) + 1)

    logger.debug(f"Replay: {len(moves)} moves -> {len(updates)} state-action pairs (won: {won})")
    return updates


def merge_update(old: Optional[QValueEntry], update: QUpdate) -> Tuple[float, int]:
    """Экспоненциальное сглаживание: 0.7 старого значения + 0.3 нового, визиты суммируются"""
    if old is None:
        return update.q_value, update.visit_count
    return old.q_value * BLEND_OLD + update.q_value * BLEND_NEW, old.visit_count + update.visit_count


def format_updates(model: str, updates: Dict[str, QUpdate],
                   hyperparameters: Hyperparameters = DEFAULT_HYPERPARAMETERS) -> List[QValueEntry]:
    entries = []
    for key, update in updates.items():
        state, action = split_q_key(key)
        entries.append(QValueEntry(
            model=model,
            state=state,
            action=action,
            q_value=update.q_value,
            visit_count=update.visit_count,
            learning_rate=hyperparameters.learning_rate,
            discount_factor=hyperparameters.discount_factor,
        ))
    return entries
