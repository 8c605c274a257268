from collections import deque
from dataclasses import dataclass
from typing import List, Optional, Sequence, Set

from .core import DEFAULT_RULES, Cell, GameRules, Shot

HORIZONTAL = 'horizontal'
VERTICAL = 'vertical'
UNKNOWN = 'unknown'


@dataclass(frozen=True)
class ClusterReport:
    """Результат анализа попаданий одного стрелка"""
    clusters: List[List[Cell]]
    active_hits: List[Cell]
    directions: List[dict]


def cluster_direction(cluster: Sequence[Cell]) -> str:
    """Ориентация группы: все в одной строке - горизонтально, в одном столбце - вертикально"""
    if len(cluster) < 2:
        return UNKNOWN
    if len({r for r, _ in cluster}) == 1:
        return HORIZONTAL
    if len({c for _, c in cluster}) == 1:
        return VERTICAL
    return UNKNOWN


def find_clusters(cells: Sequence[Cell], rules: GameRules = DEFAULT_RULES) -> List[List[Cell]]:
    """Связные (4-соседство) группы клеток, обход в ширину в порядке появления"""
    members = set(cells)
    visited: Set[Cell] = set()
    clusters: List[List[Cell]] = []

    for start in cells:
        if start in visited:
            continue

        cluster: List[Cell] = []
        queue = deque([start])
        visited.add(start)
        while queue:
            current = queue.popleft()
            cluster.append(current)
            for neighbor in rules.neighbors(*current):
                if neighbor in members and neighbor not in visited:
                    visited.add(neighbor)
                    queue.append(neighbor)

        clusters.append(cluster)

    return clusters


def hit_clusters(shots: Sequence[Shot], rules: GameRules = DEFAULT_RULES) -> List[List[Cell]]:
    return find_clusters([s.cell for s in shots if s.hit], rules)


def find_active_hits(shots: Sequence[Shot], rules: GameRules = DEFAULT_RULES) -> List[Cell]:
    """Попадания, у которых есть хотя бы один необстрелянный сосед в пределах поля"""
    taken = {s.cell for s in shots}
    return [
        s.cell for s in shots
        if s.hit and any(n not in taken for n in rules.neighbors(s.row, s.col))
    ]


def detect_hit_direction(hits: Sequence[Cell]) -> str:
    """Направление по первой паре соседних попаданий"""
    for i, (r1, c1) in enumerate(hits):
        for r2, c2 in hits[i + 1:]:
            if r1 == r2 and abs(c1 - c2) == 1:
                return HORIZONTAL
            if c1 == c2 and abs(r1 - r2) == 1:
                return VERTICAL
    return UNKNOWN


def line_extremities(cluster: Sequence[Cell], direction: str) -> Optional[tuple]:
    """Крайние клетки линейной группы вдоль её оси"""
    if direction == HORIZONTAL:
        row = cluster[0][0]
        cols = sorted(c for _, c in cluster)
        return (row, cols[0]), (row, cols[-1])
    if direction == VERTICAL:
        col = cluster[0][1]
        rows = sorted(r for r, _ in cluster)
        return (rows[0], col), (rows[-1], col)
    return None


def analyze(shots: Sequence[Shot], rules: GameRules = DEFAULT_RULES) -> ClusterReport:
    clusters = hit_clusters(shots, rules)
    directions = [
        {'center': cluster[0], 'direction': cluster_direction(cluster), 'size': len(cluster)}
        for cluster in clusters
        if len(cluster) >= 2
    ]
    return ClusterReport(
        clusters=clusters,
        active_hits=find_active_hits(shots, rules),
        directions=directions,
    )
