import threading
import time
from typing import Dict, List, Optional

from .storage import STORE_SCHEMA, load_json, write_atomic

PATTERN_HUNT = "hunt"
PATTERN_TARGET = "target"
OPENING_MOVES = 5
OPENINGS_LIMIT = 10
FOLLOW_UPS_LIMIT = 15


def _empty_store() -> dict:
    return {"schema": STORE_SCHEMA, "battles": [], "moves": [], "strategies": {}}


class BattleStore:
    """Журнал партий и ходов плюс эффективность стратегий охоты/добивания"""

    def __init__(self, path: Optional[str] = None):
        self.path = path
        self._data = load_json(path, _empty_store)
        self._lock = threading.RLock()

    def record_battle(self, battle: dict, moves: List[dict]) -> int:
        """Сохранить партию и её ходы; возвращает id партии"""
        with self._lock:
            battles = self._data.setdefault("battles", [])
            battle_id = (battles[-1]["id"] + 1) if battles else 1
            battles.append({
                "id": battle_id,
                "model_a": battle["model_a"],
                "model_b": battle["model_b"],
                "winner": battle["winner"],
                "accuracy_a": int(battle.get("accuracy_a", 0)),
                "accuracy_b": int(battle.get("accuracy_b", 0)),
                "hits_a": int(battle.get("hits_a", 0)),
                "hits_b": int(battle.get("hits_b", 0)),
                "misses_a": int(battle.get("misses_a", 0)),
                "misses_b": int(battle.get("misses_b", 0)),
                "created_at": time.time(),
            })

            stored_moves = self._data.setdefault("moves", [])
            for move in moves:
                self._append_move(stored_moves, battle_id, move)

            write_atomic(self.path, self._data)
            return battle_id

    def record_move(self, battle_id: int, move: dict) -> bool:
        """Дописать ход к сохраненной партии; False, если партии нет"""
        with self._lock:
            if not any(b["id"] == battle_id for b in self._data.get("battles", [])):
                return False
            self._append_move(self._data.setdefault("moves", []), battle_id, move)
            write_atomic(self.path, self._data)
            return True

    def _append_move(self, stored_moves: List[dict], battle_id: int, move: dict):
        was_follow_up = bool(move.get("was_follow_up", False))
        stored_moves.append({
            "battle_id": battle_id,
            "model": move["model"],
            "move_number": int(move["move_number"]),
            "row": int(move["row"]),
            "col": int(move["col"]),
            "hit": bool(move["hit"]),
            "was_follow_up": was_follow_up,
            "previous_hits": [
                {"row": int(h["row"]), "col": int(h["col"])} for h in move.get("previous_hits", [])
            ],
        })
        self._update_strategy(move["model"], was_follow_up, bool(move["hit"]))

    def _update_strategy(self, model: str, was_follow_up: bool, hit: bool):
        pattern = PATTERN_TARGET if was_follow_up else PATTERN_HUNT
        strategies = self._data.setdefault("strategies", {}).setdefault(model, {})
        stats = strategies.setdefault(pattern, {"success_count": 0, "total_uses": 0})
        stats["success_count"] += 1 if hit else 0
        stats["total_uses"] += 1

    def recent_battles(self, limit: int = 50) -> List[dict]:
        with self._lock:
            battles = list(self._data.get("battles", []))
        return list(reversed(battles))[:limit]

    def strategy_summary(self, model: str) -> dict:
        """Исторические данные модели для подсказок и диагностики"""
        with self._lock:
            battles = [b for b in self._data.get("battles", []) if model in (b["model_a"], b["model_b"])]
            won_ids = {b["id"] for b in battles if b["winner"] == model}
            strategies = dict(self._data.get("strategies", {}).get(model, {}))
            won_moves = [
                m for m in self._data.get("moves", [])
                if m["model"] == model and m["battle_id"] in won_ids
            ]
            openings = [
                {"row": m["row"], "col": m["col"], "hit": m["hit"]}
                for m in won_moves
                if m["move_number"] <= OPENING_MOVES
            ]
            # Удачные добивания: попадания после предыдущих попаданий в выигранных партиях
            follow_ups = [
                {"row": m["row"], "col": m["col"], "hit": m["hit"],
                 "previousHits": list(m.get("previous_hits", []))}
                for m in won_moves
                if m["was_follow_up"] and m["hit"]
            ]

        def effectiveness(pattern: str) -> dict:
            stats = strategies.get(pattern, {})
            uses = stats.get("total_uses", 0)
            return {
                "effectiveness": stats.get("success_count", 0) / uses if uses else 0,
                "totalUses": uses,
            }

        total = len(battles)
        return {
            "model": model,
            "winRate": len(won_ids) / total if total else 0,
            "totalGames": total,
            "strategies": {
                PATTERN_HUNT: effectiveness(PATTERN_HUNT),
                PATTERN_TARGET: effectiveness(PATTERN_TARGET),
            },
            "successfulOpenings": openings[:OPENINGS_LIMIT],
            "successfulFollowUps": follow_ups[:FOLLOW_UPS_LIMIT],
        }

    def rankings(self) -> List[dict]:
        with self._lock:
            battles = list(self._data.get("battles", []))

        stats: Dict[str, dict] = {}
        for battle in battles:
            for side in ("a", "b"):
                name = battle[f"model_{side}"]
                entry = stats.setdefault(name, {"modelName": name, "totalBattles": 0, "wins": 0,
                                                "accuracy": 0, "totalHits": 0, "totalMisses": 0})
                entry["totalBattles"] += 1
                entry["wins"] += 1 if battle["winner"] == name else 0
                entry["accuracy"] += battle[f"accuracy_{side}"]
                entry["totalHits"] += battle[f"hits_{side}"]
                entry["totalMisses"] += battle[f"misses_{side}"]

        result = []
        for entry in stats.values():
            total = entry["totalBattles"]
            shots = entry["totalHits"] + entry["totalMisses"]
            result.append({
                "modelName": entry["modelName"],
                "totalBattles": total,
                "wins": entry["wins"],
                "losses": total - entry["wins"],
                "winRate": round(entry["wins"] / total * 100) if total else 0,
                "averageAccuracy": round(entry["accuracy"] / total) if total else 0,
                "totalHits": entry["totalHits"],
                "totalMisses": entry["totalMisses"],
                "hitRate": round(entry["totalHits"] / shots * 100) if shots else 0,
            })

        result.sort(key=lambda r: (-r["averageAccuracy"], -r["winRate"]))
        return result
