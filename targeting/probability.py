"""
Байесовское поле вероятностей расположения кораблей.

Поле пересчитывается целиком по истории выстрелов при каждом запросе:
  1. подсчет допустимых расстановок оставшихся кораблей через каждую клетку;
  2. смешивание со статическим приором (центр + шахматный порядок), 70/30;
  3. усиление вдоль направлений попаданий, подавление поперек;
  4. ослабление соседей промахов;
  5. усиление соседей активных попаданий;
  6. нормализация по максимуму.
"""
import math
from dataclasses import dataclass
from typing import List, NamedTuple, Optional, Sequence

from .clusters import find_active_hits
from .core import DEFAULT_RULES, GameRules, Shot
from .fleet import estimate_remaining_ships

Grid = List[List[float]]

PLACEMENT_WEIGHT = 0.7
PRIOR_WEIGHT = 0.3
CHECKERBOARD_BONUS = 0.1

LINE_BOOST = 2.5
CROSS_DECAY = 0.3
ISOLATED_HIT_BOOST = 2.0
MISS_DECAY = 0.85
ACTIVE_HIT_BOOST = 1.8

TOP_CELLS = 10


class RankedCell(NamedTuple):
    row: int
    col: int
    probability: float


@dataclass(frozen=True)
class ProbabilityMap:
    grid: Grid
    top_cells: List[RankedCell]


def empty_grid(rules: GameRules = DEFAULT_RULES) -> Grid:
    return [[0.0 for _ in range(rules.grid_size)] for _ in range(rules.grid_size)]


def normalize_grid(grid: Grid) -> Grid:
    """Деление на максимум; нулевое поле возвращается как есть"""
    max_val = max((v for row in grid for v in row), default=0.0)
    if max_val <= 0:
        return [list(row) for row in grid]
    return [[v / max_val for v in row] for row in grid]


def static_prior(rules: GameRules = DEFAULT_RULES) -> Grid:
    """Центр весомее краев, плюс бонус клеткам с четной суммой координат"""
    grid = empty_grid(rules)
    center = rules.center
    spread = max(rules.grid_size - 1, 1)

    for row in range(rules.grid_size):
        for col in range(rules.grid_size):
            distance = math.hypot(row - center, col - center)
            center_weight = 1 - distance / spread
            bonus = CHECKERBOARD_BONUS if (row + col) % 2 == 0 else 0.0
            grid[row][col] = 0.3 + center_weight * 0.4 + bonus

    return normalize_grid(grid)


def placement_counts(shots: Sequence[Shot], remaining_ship_sizes: Sequence[int],
                     rules: GameRules = DEFAULT_RULES) -> Grid:
    """Сколько допустимых расстановок накрывает каждую необстрелянную клетку"""
    grid = empty_grid(rules)
    size = rules.grid_size
    taken = {s.cell for s in shots}
    misses = {s.cell for s in shots if not s.hit}

    for length in remaining_ship_sizes:
        if length <= 0 or length > size:
            continue
        for horizontal in (True, False):
            for row in range(size if horizontal else size - length + 1):
                for col in range(size - length + 1 if horizontal else size):
                    if horizontal:
                        cells = [(row, col + i) for i in range(length)]
                    else:
                        cells = [(row + i, col) for i in range(length)]
                    if any(cell in misses for cell in cells):
                        continue
                    for r, c in cells:
                        if (r, c) not in taken:
                            grid[r][c] += 1

    return normalize_grid(grid)


def _scale(grid: Grid, row: int, col: int, factor: float, rules: GameRules, cap: bool = True):
    if not rules.in_bounds(row, col) or grid[row][col] <= 0:
        return
    value = grid[row][col] * factor
    grid[row][col] = min(1.0, value) if cap else value


def _apply_hit(grid: Grid, shot: Shot, hits: set, rules: GameRules):
    row, col = shot.row, shot.col
    horizontal = (row, col - 1) in hits or (row, col + 1) in hits
    vertical = (row - 1, col) in hits or (row + 1, col) in hits

    if horizontal:
        for dc in (-1, 1):
            _scale(grid, row, col + dc, LINE_BOOST, rules)
        for dr in (-1, 1):
            _scale(grid, row + dr, col, CROSS_DECAY, rules, cap=False)

    if vertical:
        for dr in (-1, 1):
            _scale(grid, row + dr, col, LINE_BOOST, rules)
        for dc in (-1, 1):
            _scale(grid, row, col + dc, CROSS_DECAY, rules, cap=False)

    if not horizontal and not vertical:
        # Первое попадание по неизвестному кораблю - все четыре стороны
        for r, c in rules.neighbors(row, col):
            _scale(grid, r, c, ISOLATED_HIT_BOOST, rules)


def apply_miss_decay(grid: Grid, shot: Shot, taken: set, rules: GameRules = DEFAULT_RULES):
    """Промах обнуляет свою клетку, необстрелянные соседи умножаются на 0.85.

    Гарантия локальна: после итоговой нормализации по максимуму сосед промаха
    может вырасти, если максимум поля тоже уменьшился.
    """
    grid[shot.row][shot.col] = 0.0
    for r, c in rules.neighbors(shot.row, shot.col):
        if (r, c) not in taken:
            grid[r][c] *= MISS_DECAY


def top_cells(grid: Grid, shots: Sequence[Shot], count: int = TOP_CELLS,
              rules: GameRules = DEFAULT_RULES) -> List[RankedCell]:
    """Лучшие клетки по убыванию; при равенстве - порядок строк, затем столбцов"""
    taken = {s.cell for s in shots}
    cells = [
        RankedCell(row, col, grid[row][col])
        for row in range(rules.grid_size)
        for col in range(rules.grid_size)
        if (row, col) not in taken and grid[row][col] > 0
    ]
    # sorted() устойчив, порядок обхода сохраняется для равных значений
    return sorted(cells, key=lambda cell: -cell.probability)[:count]


def generate_probability_map(shots: Sequence[Shot], remaining_ship_sizes: Optional[Sequence[int]] = None,
                             rules: GameRules = DEFAULT_RULES) -> ProbabilityMap:
    if remaining_ship_sizes is None:
        remaining_ship_sizes = estimate_remaining_ships(shots, rules)

    counts = placement_counts(shots, remaining_ship_sizes, rules)
    prior = static_prior(rules)
    grid = [
        [counts[r][c] * PLACEMENT_WEIGHT + prior[r][c] * PRIOR_WEIGHT for c in range(rules.grid_size)]
        for r in range(rules.grid_size)
    ]

    taken = {s.cell for s in shots}
    hits = {s.cell for s in shots if s.hit}

    for shot in shots:
        grid[shot.row][shot.col] = 0.0
        if shot.hit:
            _apply_hit(grid, shot, hits - {shot.cell}, rules)
        else:
            apply_miss_decay(grid, shot, taken, rules)

    for row, col in find_active_hits(shots, rules):
        for r, c in rules.neighbors(row, col):
            if (r, c) not in taken:
                grid[r][c] = min(1.0, grid[r][c] * ACTIVE_HIT_BOOST)

    for row, col in taken:
        grid[row][col] = 0.0

    grid = normalize_grid(grid)
    return ProbabilityMap(grid=grid, top_cells=top_cells(grid, shots, rules=rules))
