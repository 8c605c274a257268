import random
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from .core import DEFAULT_RULES, Cell, GameRules, NoAvailableMoves, Shot, available_cells
from .probability import RankedCell

PROBABILITY_WEIGHT = 0.6
Q_WEIGHT = 0.4

SOURCE_PROBABILITY = 'probability'
SOURCE_Q_LEARNING = 'q_learning'
SOURCE_BOTH = 'both'
SOURCE_ADVISOR = 'advisor'
SOURCE_RANDOM = 'random'


@dataclass
class FusedCell:
    row: int
    col: int
    score: float
    source: str

    @property
    def cell(self) -> Cell:
        return (self.row, self.col)


@dataclass(frozen=True)
class GateResult:
    row: int
    col: int
    score: float
    source: str
    fallback: bool


def combine(top_cells: Sequence[RankedCell], q_cells: Iterable[Cell],
            probability_weight: float = PROBABILITY_WEIGHT, q_weight: float = Q_WEIGHT) -> List[FusedCell]:
    """Слияние кандидатов двух оценщиков.

    Клетка из поля вероятностей получает p * 0.6, каждая клетка Q-политики
    добавляет 0.4. Согласие обоих оценщиков дает до 1.0.

    Кандидаты Q-политики - множество клеток: повтор клетки в списке
    не дает второй надбавки.
    """
    scores = {}
    for cell in top_cells:
        scores[(cell.row, cell.col)] = FusedCell(cell.row, cell.col, cell.probability * probability_weight,
                                                 SOURCE_PROBABILITY)

    for row, col in dict.fromkeys(q_cells):
        entry = scores.get((row, col))
        if entry is None:
            scores[(row, col)] = FusedCell(row, col, q_weight, SOURCE_Q_LEARNING)
        else:
            entry.score += q_weight
            entry.source = SOURCE_BOTH

    return sorted(scores.values(), key=lambda c: -c.score)


def is_legal_cell(row, col, shots: Sequence[Shot], rules: GameRules = DEFAULT_RULES) -> bool:
    if isinstance(row, bool) or isinstance(col, bool):
        return False
    if not isinstance(row, int) or not isinstance(col, int):
        return False
    return rules.in_bounds(row, col) and (row, col) not in {s.cell for s in shots}


def legality_gate(candidates: Sequence[FusedCell], shots: Sequence[Shot], rules: GameRules = DEFAULT_RULES,
                  rng: Optional[random.Random] = None) -> GateResult:
    """Первый допустимый кандидат, иначе случайная свободная клетка.

    Кандидаты отбрасываются, если вне поля или уже обстреляны.
    """
    for position, candidate in enumerate(candidates):
        if is_legal_cell(candidate.row, candidate.col, shots, rules):
            return GateResult(candidate.row, candidate.col, candidate.score, candidate.source, position > 0)

    free = available_cells(shots, rules)
    if not free:
        raise NoAvailableMoves("Все клетки поля уже обстреляны")

    rng = rng or random.Random()
    row, col = rng.choice(free)
    return GateResult(row, col, 0.0, SOURCE_RANDOM, True)
