import json
import logging
import re
from typing import Optional, Sequence

from openai import OpenAI, OpenAIError

from targeting.clusters import ClusterReport
from targeting.core import GameRules, Shot, available_cells

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 15
PRIORITY_LIMIT = 8
# Подсказка дебюта только в начале партии
OPENING_SHOTS = 5
OPENINGS_SHOWN = 3
JSON_PATTERN = re.compile(r"\{[\s\S]*?\}")


def cell_label(row: int, col: int) -> str:
    """(0, 0) -> A1"""
    return f"{chr(65 + col)}{row + 1}"


def build_prompt(shots: Sequence[Shot], rules: GameRules, analysis: ClusterReport,
                 hint: Optional[tuple] = None, strategy_data: Optional[dict] = None) -> str:
    last = rules.grid_size - 1
    free = set(available_cells(shots, rules))

    recent = list(shots)[-HISTORY_LIMIT:]
    offset = len(shots) - len(recent)
    history = "\n".join(
        f"{offset + i + 1}. {cell_label(s.row, s.col)}: {'HIT' if s.hit else 'MISS'}"
        for i, s in enumerate(recent)
    )

    priority = []
    for row, col in analysis.active_hits:
        for cell in rules.neighbors(row, col):
            if cell in free and cell not in priority:
                priority.append(cell)
    priority_text = ", ".join(cell_label(*c) for c in priority[:PRIORITY_LIMIT])

    lines = [
        f"You're playing Battleship on a {rules.grid_size}x{rules.grid_size} grid (rows 0-{last}, cols 0-{last}).",
        f"Ships: {', '.join(str(s) for s in rules.ship_sizes)} cells (total {rules.total_ship_cells} hits to win).",
        "",
        "GAME STATE:",
        f"- Total shots: {len(shots)}",
        f"- Total hits: {sum(1 for s in shots if s.hit)}",
        "",
        "SHOT HISTORY:",
        history or "No shots yet",
    ]

    if analysis.clusters:
        lines += [
            "",
            "CURRENT ANALYSIS:",
            f"- Hit clusters: {len(analysis.clusters)} (sizes: {', '.join(str(len(c)) for c in analysis.clusters)})",
        ]
        for d in analysis.directions:
            lines.append(f"- Ship at {cell_label(*d['center'])} is likely {d['direction']}")
        if priority_text:
            lines.append(f"- HIGH PRIORITY TARGETS (adjacent to hits): {priority_text}")

    if strategy_data and strategy_data.get("totalGames"):
        strategies = strategy_data.get("strategies", {})
        lines += [
            "",
            f"LEARNING FROM {strategy_data['totalGames']} PREVIOUS GAMES "
            f"(Win rate: {strategy_data.get('winRate', 0) * 100:.1f}%):",
            f"- Hunt mode effectiveness: {strategies.get('hunt', {}).get('effectiveness', 0) * 100:.1f}%",
            f"- Target mode effectiveness: {strategies.get('target', {}).get('effectiveness', 0) * 100:.1f}%",
        ]
        openings = opening_hint(shots, strategy_data.get("successfulOpenings") or [], free)
        if openings:
            lines.append(f"- Historically successful opening moves: {', '.join(cell_label(*c) for c in openings)}")

    if hint is not None:
        lines += ["", f"ENGINE RECOMMENDATION: {cell_label(*hint)} (row {hint[0]}, col {hint[1]})"]

    lines += [
        "",
        "Never repeat a coordinate you've already shot.",
        "RESPOND WITH ONLY THIS JSON FORMAT:",
        f'{{"row": <0-{last}>, "col": <0-{last}>}}',
    ]
    return "\n".join(lines)


def opening_hint(shots: Sequence[Shot], openings: Sequence[dict], free: set) -> list:
    """Выигрышные дебютные клетки, которые еще можно обстрелять"""
    if len(shots) >= OPENING_SHOTS:
        return []
    cells = []
    for opening in openings:
        cell = (opening.get("row"), opening.get("col"))
        if cell in free and cell not in cells:
            cells.append(cell)
    return cells[:OPENINGS_SHOWN]


def system_message(strategy_data: Optional[dict] = None) -> str:
    strategy_data = strategy_data or {}
    text = (
        f"You are an expert Battleship AI with {strategy_data.get('totalGames', 0)} games of experience. "
        "You learn from each game and apply winning strategies. "
        "Always respond with valid JSON containing row and col coordinates. "
    )
    if strategy_data.get("winRate", 0) > 0.5:
        return text + "Your current strategies are working well - maintain your approach."
    return text + "Focus on improving hit accuracy by targeting adjacent cells after hits."


def parse_move(text: str) -> Optional[dict]:
    """Первый JSON-объект в ответе модели или None"""
    match = JSON_PATTERN.search(text or "")
    if not match:
        return None
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


class MoveAdvisor:
    """Внешний текстовый советник (OpenAI-совместимый chat completion).

    Ответ - непроверенная подсказка; любые ошибки сводятся к None,
    выбор хода от советника никогда не зависит.
    """

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None,
                 timeout: float = 10.0, client=None):
        self.client = client or OpenAI(api_key=api_key, base_url=base_url, timeout=timeout, max_retries=0)

    def suggest(self, model: str, shots: Sequence[Shot], rules: GameRules, hint: Optional[tuple] = None,
                strategy_data: Optional[dict] = None, analysis: Optional[ClusterReport] = None) -> Optional[dict]:
        if analysis is None:
            analysis = ClusterReport(clusters=[], active_hits=[], directions=[])
        prompt = build_prompt(shots, rules, analysis, hint, strategy_data)

        try:
            response = self.client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": system_message(strategy_data)},
                    {"role": "user", "content": prompt},
                ],
                max_tokens=100,
                temperature=0.6,
            )
        except OpenAIError as e:
            logger.warning(f"Advisor call failed for {model}: {e}")
            return None

        text = response.choices[0].message.content if response.choices else ""
        move = parse_move(text)
        if move is None:
            logger.warning(f"Advisor reply for {model} has no JSON move: {text!r}")
        return move
