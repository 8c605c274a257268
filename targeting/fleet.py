from typing import List, Sequence

from .clusters import HORIZONTAL, VERTICAL, cluster_direction, hit_clusters, line_extremities
from .core import DEFAULT_RULES, Cell, GameRules, Shot


def _end_blocked(cell: Cell, misses: set, rules: GameRules) -> bool:
    """Конец линии закрыт краем поля или подтвержденным промахом"""
    return not rules.in_bounds(*cell) or cell in misses


def is_cluster_sunk(cluster: Sequence[Cell], shots: Sequence[Shot], rules: GameRules = DEFAULT_RULES) -> bool:
    """Эвристика потопления: линейная группа с закрытыми обоими концами.

    Необстрелянный конец никогда не считается закрытым, поэтому ошибка
    возможна только в сторону переоценки оставшегося флота.
    """
    if len(cluster) < 2:
        return False

    direction = cluster_direction(cluster)
    if direction not in (HORIZONTAL, VERTICAL):
        return False

    misses = {s.cell for s in shots if not s.hit}
    (r1, c1), (r2, c2) = line_extremities(cluster, direction)
    if direction == HORIZONTAL:
        before, after = (r1, c1 - 1), (r2, c2 + 1)
    else:
        before, after = (r1 - 1, c1), (r2 + 1, c2)

    return _end_blocked(before, misses, rules) and _end_blocked(after, misses, rules)


def estimate_remaining_ships(shots: Sequence[Shot], rules: GameRules = DEFAULT_RULES) -> List[int]:
    """Размеры кораблей, которые, по оценке, ещё на плаву.

    Каждая потопленная группа снимает ровно одну запись своей длины.
    """
    remaining = list(rules.ship_sizes)

    for cluster in hit_clusters(shots, rules):
        size = len(cluster)
        if size in remaining and is_cluster_sunk(cluster, shots, rules):
            remaining.remove(size)

    return remaining


def is_sinking_shot(previous_shots: Sequence[Shot], shot: Shot, rules: GameRules = DEFAULT_RULES) -> bool:
    """Уменьшил ли этот выстрел оценку оставшегося флота"""
    before = estimate_remaining_ships(previous_shots, rules)
    after = estimate_remaining_ships(list(previous_shots) + [shot], rules)
    return shot.hit and len(after) < len(before)
