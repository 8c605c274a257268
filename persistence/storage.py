import json
import logging
import os
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

STORE_SCHEMA = 1


def load_json(path: Optional[str], default: Callable[[], Dict[str, Any]]) -> Dict[str, Any]:
    """Чтение JSON-файла; отсутствующий или поврежденный файл - холодный старт"""
    if not path or not os.path.exists(path):
        return default()
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Cannot read store {path}: {e}")
        return default()
    if not isinstance(data, dict) or data.get("schema") != STORE_SCHEMA:
        logger.warning(f"Store {path} has unexpected format, starting empty")
        return default()
    return data


def write_atomic(path: Optional[str], data: Dict[str, Any]) -> None:
    if not path:
        return
    directory = os.path.dirname(path)
    tmp_path = f"{path}.tmp"
    try:
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except OSError as e:
        logger.error(f"Cannot write store {path}: {e}")
        try:
            os.remove(tmp_path)
        except OSError:
            pass
