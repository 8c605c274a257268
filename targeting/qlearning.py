"""
Табличное Q-обучение поверх грубых состояний партии.

Состояние - чистая функция истории выстрелов, таблица значений передается
явно в каждую функцию: движок ничего не хранит между вызовами.
"""
import math
import random
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .clusters import (HORIZONTAL, VERTICAL, cluster_direction, detect_hit_direction,
                       find_active_hits, hit_clusters, line_extremities)
from .core import DEFAULT_RULES, Cell, GameRules, Shot, available_cells

QTable = Dict[str, float]

REWARDS = {
    'hit': 10,
    'sink': 50,
    'miss': -1,
    'win': 100,
    'lose': -50,
}

HUNT_EARLY_SHOTS = 10
HUNT_MID_SHOTS = 25
ACTION_CELL_LIMIT = 5


class QAction(str, Enum):
    CENTER_FOCUS = 'center_focus'
    CHECKERBOARD = 'checkerboard'
    ADJACENT = 'adjacent'
    CONTINUE_DIRECTION = 'continue_direction'
    RANDOM = 'random'  # только для исследования, в таблицу не попадает


# Порядок важен: при равенстве значений побеждает первое действие
ACTIONS: Tuple[QAction, ...] = (
    QAction.CENTER_FOCUS,
    QAction.CHECKERBOARD,
    QAction.ADJACENT,
    QAction.CONTINUE_DIRECTION,
)


class Mode(str, Enum):
    HUNT_EARLY = 'hunt_early'
    HUNT_MID = 'hunt_mid'
    HUNT_LATE = 'hunt_late'
    TARGET_1HIT = 'target_1hit'
    TARGET_2HIT_H = 'target_2hit_h'
    TARGET_2HIT_V = 'target_2hit_v'


@dataclass(frozen=True)
class QState:
    mode: Mode
    hits_count: int
    active_hits_count: int

    @property
    def key(self) -> str:
        return f"{self.mode.value}:hits={self.hits_count}:active={self.active_hits_count}"


@dataclass(frozen=True)
class Hyperparameters:
    learning_rate: float = 0.1
    discount_factor: float = 0.9
    exploration_rate: float = 0.15

    def __post_init__(self):
        if not 0 < self.learning_rate < 1:
            raise ValueError(f"learning_rate должен лежать в (0, 1), получено {self.learning_rate}")
        if not 0 < self.discount_factor < 1:
            raise ValueError(f"discount_factor должен лежать в (0, 1), получено {self.discount_factor}")
        if not 0 <= self.exploration_rate <= 1:
            raise ValueError(f"exploration_rate должен лежать в [0, 1], получено {self.exploration_rate}")

    def to_dict(self) -> dict:
        return asdict(self)


DEFAULT_HYPERPARAMETERS = Hyperparameters()


def get_hyperparameters(custom: Optional[Mapping] = None) -> Hyperparameters:
    """Значения по умолчанию, перекрытые переданными (None пропускаются)"""
    values = DEFAULT_HYPERPARAMETERS.to_dict()
    for name, value in (custom or {}).items():
        if name in values and value is not None:
            values[name] = float(value)
    return Hyperparameters(**values)


@dataclass
class QValueEntry:
    model: str
    state: str
    action: str
    q_value: float = 0.0
    visit_count: int = 0
    learning_rate: float = DEFAULT_HYPERPARAMETERS.learning_rate
    discount_factor: float = DEFAULT_HYPERPARAMETERS.discount_factor

    @property
    def key(self) -> str:
        return q_key(self.state, self.action)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping) -> 'QValueEntry':
        return cls(
            model=str(data['model']),
            state=str(data['state']),
            action=str(data['action']),
            q_value=float(data.get('q_value', 0.0)),
            visit_count=int(data.get('visit_count', 0)),
            learning_rate=float(data.get('learning_rate', DEFAULT_HYPERPARAMETERS.learning_rate)),
            discount_factor=float(data.get('discount_factor', DEFAULT_HYPERPARAMETERS.discount_factor)),
        )


def _action_value(action) -> str:
    return action.value if isinstance(action, QAction) else str(action)


def q_key(state_key: str, action) -> str:
    return f"{state_key}:{_action_value(action)}"


def split_q_key(key: str) -> Tuple[str, str]:
    """Ключ "<state>:<action>" -> (state, action); состояние само содержит двоеточия"""
    state, _, action = key.rpartition(':')
    return state, action


def load_q_table(entries: Iterable[QValueEntry]) -> QTable:
    return {entry.key: entry.q_value for entry in entries}


# ==============================
# СОСТОЯНИЕ
# ==============================

def determine_state(shots: Sequence[Shot], rules: GameRules = DEFAULT_RULES) -> QState:
    hits_count = sum(1 for s in shots if s.hit)
    active_hits = find_active_hits(shots, rules)

    if not active_hits:
        if len(shots) < HUNT_EARLY_SHOTS:
            mode = Mode.HUNT_EARLY
        elif len(shots) < HUNT_MID_SHOTS:
            mode = Mode.HUNT_MID
        else:
            mode = Mode.HUNT_LATE
    elif len(active_hits) == 1:
        mode = Mode.TARGET_1HIT
    elif detect_hit_direction(active_hits) == HORIZONTAL:
        mode = Mode.TARGET_2HIT_H
    else:
        mode = Mode.TARGET_2HIT_V

    return QState(mode=mode, hits_count=hits_count, active_hits_count=len(active_hits))


# ==============================
# ВЫБОР ДЕЙСТВИЯ
# ==============================

def best_action(state_key: str, q_table: Mapping[str, float]) -> QAction:
    best, best_value = ACTIONS[0], -math.inf
    for action in ACTIONS:
        value = q_table.get(q_key(state_key, action), 0.0)
        if value > best_value:
            best, best_value = action, value
    return best


def select_action(state: QState, q_table: Mapping[str, float],
                  exploration_rate: float = DEFAULT_HYPERPARAMETERS.exploration_rate,
                  rng: Optional[random.Random] = None) -> QAction:
    """ε-жадный выбор: случайное действие с вероятностью ε, иначе лучшее известное"""
    rng = rng or random.Random()
    if rng.random() < exploration_rate:
        return rng.choice(ACTIONS)
    return best_action(state.key, q_table)


# ==============================
# ДЕЙСТВИЕ -> КЛЕТКИ
# ==============================

def _center_focus(shots, top_probability_cells, rules) -> List[Cell]:
    center = rules.center
    cells = available_cells(shots, rules)
    cells.sort(key=lambda cell: math.hypot(cell[0] - center, cell[1] - center))
    return cells[:ACTION_CELL_LIMIT]


def _checkerboard(shots, top_probability_cells, rules) -> List[Cell]:
    cells = [cell for cell in available_cells(shots, rules) if (cell[0] + cell[1]) % 2 == 0]
    return cells[:ACTION_CELL_LIMIT]


def _adjacent(shots, top_probability_cells, rules) -> List[Cell]:
    taken = {s.cell for s in shots}
    cells: List[Cell] = []
    for row, col in find_active_hits(shots, rules):
        for neighbor in rules.neighbors(row, col):
            if neighbor not in taken and neighbor not in cells:
                cells.append(neighbor)

    if cells:
        return cells
    return [(c[0], c[1]) for c in top_probability_cells[:3]]


def _continue_direction(shots, top_probability_cells, rules) -> List[Cell]:
    active = set(find_active_hits(shots, rules))
    if len(active) < 2:
        return _adjacent(shots, top_probability_cells, rules)

    candidates = [
        cluster for cluster in hit_clusters(shots, rules)
        if len(cluster) >= 2
        and cluster_direction(cluster) in (HORIZONTAL, VERTICAL)
        and any(cell in active for cell in cluster)
    ]
    if not candidates:
        return _adjacent(shots, top_probability_cells, rules)

    cluster = max(candidates, key=len)
    direction = cluster_direction(cluster)
    (r1, c1), (r2, c2) = line_extremities(cluster, direction)
    if direction == HORIZONTAL:
        beyond = [(r1, c1 - 1), (r2, c2 + 1)]
    else:
        beyond = [(r1 - 1, c1), (r2 + 1, c2)]

    taken = {s.cell for s in shots}
    cells = [cell for cell in beyond if rules.in_bounds(*cell) and cell not in taken]
    return cells or _adjacent(shots, top_probability_cells, rules)


def _random(shots, top_probability_cells, rules) -> List[Cell]:
    return [(c[0], c[1]) for c in top_probability_cells[:ACTION_CELL_LIMIT]]


ACTION_HANDLERS: Dict[QAction, Callable] = {
    QAction.CENTER_FOCUS: _center_focus,
    QAction.CHECKERBOARD: _checkerboard,
    QAction.ADJACENT: _adjacent,
    QAction.CONTINUE_DIRECTION: _continue_direction,
    QAction.RANDOM: _random,
}


def target_cells_for_action(action: QAction, shots: Sequence[Shot], top_probability_cells: Sequence = (),
                            rules: GameRules = DEFAULT_RULES) -> List[Cell]:
    """Детерминированное отображение действия в конкретные клетки"""
    return ACTION_HANDLERS[QAction(action)](shots, top_probability_cells, rules)


# ==============================
# НАГРАДА И TD-ОБНОВЛЕНИЕ
# ==============================

def calculate_reward(hit: bool, sunk_ship: bool = False, won_game: bool = False, lost_game: bool = False) -> int:
    reward = REWARDS['hit'] if hit else REWARDS['miss']
    if sunk_ship:
        reward += REWARDS['sink']
    if won_game:
        reward += REWARDS['win']
    elif lost_game:
        reward += REWARDS['lose']
    return reward


def max_next_q(q_table: Mapping[str, float], next_state_key: str) -> float:
    # Максимум стартует с нуля: отрицательные значения следующего состояния маскируются
    best = 0.0
    for action in ACTIONS:
        best = max(best, q_table.get(q_key(next_state_key, action), 0.0))
    return best


def update_q_value(q_table: QTable, state_key: str, action, reward: float, next_state_key: str,
                   hyperparameters: Hyperparameters = DEFAULT_HYPERPARAMETERS) -> float:
    """Q(s,a) <- Q(s,a) + α·(R + γ·max Q(s',·) - Q(s,a)); таблица меняется на месте"""
    key = q_key(state_key, action)
    current = q_table.get(key, 0.0)
    target = reward + hyperparameters.discount_factor * max_next_q(q_table, next_state_key)
    new_q = current + hyperparameters.learning_rate * (target - current)
    q_table[key] = new_q
    return new_q
