import logging
import threading
from contextlib import contextmanager
from typing import Dict, List, Mapping, Optional

from targeting.learning import QUpdate, format_updates, merge_update
from targeting.qlearning import (DEFAULT_HYPERPARAMETERS, Hyperparameters, QTable, QValueEntry,
                                 get_hyperparameters, load_q_table, split_q_key)

from .storage import STORE_SCHEMA, load_json, write_atomic

logger = logging.getLogger(__name__)


def _empty_store() -> dict:
    return {"schema": STORE_SCHEMA, "models": {}}


class QValueStore:
    """Q-значения и гиперпараметры по моделям.

    Чтение-слияние-запись для одной модели выполняется под её замком,
    поэтому параллельные партии одной модели не теряют обновления.
    path=None - хранилище только в памяти.
    """

    def __init__(self, path: Optional[str] = None):
        self.path = path
        self._data = load_json(path, _empty_store)
        self._io_lock = threading.RLock()
        self._model_locks: Dict[str, threading.Lock] = {}

    @contextmanager
    def model_lock(self, model: str):
        with self._io_lock:
            lock = self._model_locks.setdefault(model, threading.Lock())
        with lock:
            yield

    def _model(self, model: str) -> dict:
        models = self._data.setdefault("models", {})
        return models.setdefault(model, {"hyperparameters": None, "q_values": {}})

    def models(self) -> List[str]:
        with self._io_lock:
            return sorted(self._data.get("models", {}))

    def load_entries(self, model: str) -> List[QValueEntry]:
        with self._io_lock:
            raw = dict(self._data.get("models", {}).get(model, {}).get("q_values", {}))

        entries = []
        for key, value in raw.items():
            state, action = split_q_key(key)
            try:
                entries.append(QValueEntry.from_dict({"model": model, "state": state, "action": action, **value}))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping broken Q entry {model}/{key}: {e}")
        return entries

    def load_table(self, model: str) -> QTable:
        """Пустая таблица для неизвестной модели - холодный старт"""
        return load_q_table(self.load_entries(model))

    def get_hyperparameters(self, model: str) -> Hyperparameters:
        with self._io_lock:
            raw = self._data.get("models", {}).get(model, {}).get("hyperparameters")
        if not raw:
            return DEFAULT_HYPERPARAMETERS
        try:
            return get_hyperparameters(raw)
        except (TypeError, ValueError) as e:
            logger.warning(f"Invalid hyperparameters for {model}, using defaults: {e}")
            return DEFAULT_HYPERPARAMETERS

    def set_hyperparameters(self, model: str, hyperparameters: Hyperparameters) -> None:
        with self._io_lock:
            self._model(model)["hyperparameters"] = hyperparameters.to_dict()
            write_atomic(self.path, self._data)

    def apply_updates(self, model: str, updates: Mapping[str, QUpdate],
                      hyperparameters: Hyperparameters = DEFAULT_HYPERPARAMETERS) -> List[QValueEntry]:
        """Слияние дельт партии с сохраненными значениями (0.7 старое / 0.3 новое)"""
        with self.model_lock(model):
            existing = {entry.key: entry for entry in self.load_entries(model)}
            merged = {}
            for key, update in updates.items():
                q_value, visit_count = merge_update(existing.get(key), update)
                merged[key] = QUpdate(q_value=q_value, visit_count=visit_count)
            entries = format_updates(model, merged, hyperparameters)

            with self._io_lock:
                stored = self._model(model)["q_values"]
                for entry in entries:
                    stored[entry.key] = {
                        "q_value": entry.q_value,
                        "visit_count": entry.visit_count,
                        "learning_rate": entry.learning_rate,
                        "discount_factor": entry.discount_factor,
                    }
                write_atomic(self.path, self._data)

        logger.info(f"Q-Learning: updated {len(entries)} state-action pairs for {model}")
        return entries
