from typing import Optional, Sequence, Tuple


def validate_game_input(row, col, grid_size: int = 8) -> bool:
    """Валидация игровых координат"""
    if isinstance(row, bool) or isinstance(col, bool):
        return False
    return isinstance(row, int) and isinstance(col, int) and 0 <= row < grid_size and 0 <= col < grid_size


def _as_coordinate(value) -> Optional[int]:
    """Целое число или float без дробной части; строки и bool не принимаются"""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def validate_suggestion(raw, shots: Sequence, grid_size: int = 8) -> Optional[Tuple[int, int]]:
    """Проверка внешней подсказки хода {row, col}.

    Возвращает клетку, если оба поля числовые, лежат в поле и клетка ещё
    не обстреляна; иначе None - подсказка отбрасывается.
    """
    if not isinstance(raw, dict):
        return None

    row = _as_coordinate(raw.get('row'))
    col = _as_coordinate(raw.get('col'))
    if row is None or col is None:
        return None
    if not validate_game_input(row, col, grid_size):
        return None
    if any(s.row == row and s.col == col for s in shots):
        return None
    return row, col
