import random
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

GRID_SIZE = 8
SHIP_SIZES = (5, 4, 3, 3, 2)  # Всего 17 клеток

Cell = Tuple[int, int]


class InvalidShotError(ValueError):
    """Некорректный выстрел на входе движка"""


class NoAvailableMoves(Exception):
    """На поле не осталось ни одной клетки для выстрела"""


@dataclass(frozen=True)
class Shot:
    row: int
    col: int
    hit: bool

    @property
    def cell(self) -> Cell:
        return (self.row, self.col)

    def to_dict(self) -> dict:
        return {'row': self.row, 'col': self.col, 'hit': self.hit}


@dataclass(frozen=True)
class GameRules:
    grid_size: int = GRID_SIZE
    ship_sizes: Tuple[int, ...] = SHIP_SIZES

    @property
    def center(self) -> float:
        return (self.grid_size - 1) / 2

    @property
    def total_ship_cells(self) -> int:
        return sum(self.ship_sizes)

    def in_bounds(self, row: int, col: int) -> bool:
        return 0 <= row < self.grid_size and 0 <= col < self.grid_size

    def neighbors(self, row: int, col: int) -> List[Cell]:
        """Четыре соседа клетки в пределах поля (вверх, вниз, влево, вправо)"""
        cells = [(row - 1, col), (row + 1, col), (row, col - 1), (row, col + 1)]
        return [(r, c) for r, c in cells if self.in_bounds(r, c)]

    def all_cells(self) -> List[Cell]:
        return [(r, c) for r in range(self.grid_size) for c in range(self.grid_size)]


DEFAULT_RULES = GameRules()


def shot_cells(shots: Iterable[Shot]) -> Set[Cell]:
    return {s.cell for s in shots}


def available_cells(shots: Iterable[Shot], rules: GameRules = DEFAULT_RULES) -> List[Cell]:
    """Все ещё не обстрелянные клетки в порядке строк"""
    taken = shot_cells(shots)
    return [cell for cell in rules.all_cells() if cell not in taken]


def validate_shots(shots: Sequence[Shot], rules: GameRules = DEFAULT_RULES) -> List[Shot]:
    """Проверка истории выстрелов на границе движка.

    Координаты должны лежать в поле, одна клетка не может встречаться дважды.
    """
    seen: Set[Cell] = set()
    for index, shot in enumerate(shots):
        if isinstance(shot.row, bool) or isinstance(shot.col, bool):
            raise InvalidShotError(f"Выстрел #{index + 1}: координаты должны быть целыми числами")
        if not isinstance(shot.row, int) or not isinstance(shot.col, int):
            raise InvalidShotError(f"Выстрел #{index + 1}: координаты должны быть целыми числами")
        if not rules.in_bounds(shot.row, shot.col):
            raise InvalidShotError(
                f"Выстрел #{index + 1}: клетка ({shot.row}, {shot.col}) вне поля {rules.grid_size}x{rules.grid_size}"
            )
        if shot.cell in seen:
            raise InvalidShotError(f"Выстрел #{index + 1}: клетка ({shot.row}, {shot.col}) уже обстреляна")
        seen.add(shot.cell)
    return list(shots)


# ==============================
# МОДЕЛЬ ПАРТИИ ДЛЯ САМОИГРЫ
# ==============================

class Ship:
    def __init__(self, length: int, positions: List[Cell]):
        self.length = length
        self.positions = positions
        self.hits: Set[Cell] = set()

    def is_sunk(self) -> bool:
        return len(self.hits) == len(self.positions)


class Board:
    """Поле одного игрока: корабли и уже принятые выстрелы"""

    def __init__(self, rules: GameRules = DEFAULT_RULES):
        self.rules = rules
        self.ships: List[Ship] = []
        self.shots: Dict[Cell, bool] = {}

    def place_ship(self, positions: List[Cell]) -> Tuple[bool, str]:
        """Ручная расстановка корабля: в пределах поля и без наложения"""
        for row, col in positions:
            if not self.rules.in_bounds(row, col):
                return False, "Корабль выходит за пределы поля"

        occupied = {cell for ship in self.ships for cell in ship.positions}
        if any(cell in occupied for cell in positions):
            return False, "Клетка уже занята"

        self.ships.append(Ship(len(positions), list(positions)))
        return True, "Корабль размещен"

    def auto_place_all_ships(self, rng: Optional[random.Random] = None, max_attempts: int = 100):
        """Случайная расстановка флота. Соприкосновение кораблей разрешено"""
        rng = rng or random.Random()
        size = self.rules.grid_size

        self.ships = []
        for length in self.rules.ship_sizes:
            placed = False
            attempts = 0

            while not placed and attempts < max_attempts:
                attempts += 1
                horizontal = rng.random() > 0.5
                row = rng.randrange(size)
                col = rng.randrange(size)

                if horizontal and col + length > size:
                    continue
                if not horizontal and row + length > size:
                    continue

                if horizontal:
                    positions = [(row, col + i) for i in range(length)]
                else:
                    positions = [(row + i, col) for i in range(length)]

                placed, _ = self.place_ship(positions)

            if not placed:
                # Не удалось разместить - начинаем заново
                return self.auto_place_all_ships(rng, max_attempts)

        return True

    def receive_attack(self, row: int, col: int) -> dict:
        """Обработка выстрела по координатам"""
        if not self.rules.in_bounds(row, col):
            return {'result': 'invalid'}
        if (row, col) in self.shots:
            return {'result': 'repeat'}

        for i, ship in enumerate(self.ships):
            if (row, col) in ship.positions:
                ship.hits.add((row, col))
                self.shots[(row, col)] = True

                result = {
                    'result': 'hit',
                    'sunk': ship.is_sunk(),
                    'ship_id': i,
                    'ship_length': ship.length,
                }
                if ship.is_sunk():
                    result['ship_positions'] = list(ship.positions)
                if self.all_sunk():
                    result['game_over'] = True
                return result

        self.shots[(row, col)] = False
        return {'result': 'miss'}

    def all_sunk(self) -> bool:
        return bool(self.ships) and all(s.is_sunk() for s in self.ships)


@dataclass
class Battle:
    """Партия двух моделей: у каждой своё поле и своя история выстрелов"""
    model_a: str
    model_b: str
    rules: GameRules = DEFAULT_RULES
    boards: Dict[str, Board] = field(default_factory=dict)
    shots: Dict[str, List[Shot]] = field(default_factory=dict)
    winner: Optional[str] = None

    def __post_init__(self):
        for model in (self.model_a, self.model_b):
            self.boards.setdefault(model, Board(self.rules))
            self.shots.setdefault(model, [])

    def opponent(self, model: str) -> str:
        return self.model_b if model == self.model_a else self.model_a

    def fire(self, model: str, row: int, col: int) -> dict:
        """Выстрел модели `model` по полю соперника"""
        target = self.boards[self.opponent(model)]
        result = target.receive_attack(row, col)
        if result['result'] in ('hit', 'miss'):
            self.shots[model].append(Shot(row, col, result['result'] == 'hit'))
        if result.get('game_over'):
            self.winner = model
        return result
