import os
from dotenv import load_dotenv

load_dotenv()  # Загружаем переменные из .env


def _flag(name, default='False'):
    return os.getenv(name, default).lower() == 'true'


class Config:
    # Безопасность
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-fallback-key-change-in-production')
    DEBUG = os.getenv('FLASK_ENV') == 'development'

    # CSRF защита
    WTF_CSRF_ENABLED = _flag('CSRF_ENABLED', 'True')

    # Лимиты запросов
    RATELIMIT_ENABLED = _flag('RATELIMIT_ENABLED', 'True')
    RATELIMIT_DEFAULT = os.getenv('RATELIMIT_DEFAULT', "500 per hour;100 per minute;10 per second")
    RATELIMIT_STRATEGY = "moving-window"
    RATELIMIT_HEADERS_ENABLED = True
    RATELIMIT_STORAGE_URI = os.getenv('RATELIMIT_STORAGE_URL', 'memory://')

    # Отключаем сортировку JSON для удобства отладки
    JSON_SORT_KEYS = False

    # Правила игры
    GRID_SIZE = int(os.getenv('GRID_SIZE', '8'))
    SHIP_SIZES = tuple(int(s) for s in os.getenv('SHIP_SIZES', '5,4,3,3,2').split(',') if s.strip())

    # Хранилище Q-значений и журнала партий (пусто - только в памяти)
    DATA_DIR = os.getenv('DATA_DIR', 'data')

    # Внешний текстовый советник
    ADVISOR_ENABLED = _flag('ADVISOR_ENABLED')
    ADVISOR_API_KEY = os.getenv('ADVISOR_API_KEY') or os.getenv('OPENAI_API_KEY')
    ADVISOR_BASE_URL = os.getenv('ADVISOR_BASE_URL') or None
    ADVISOR_TIMEOUT = float(os.getenv('ADVISOR_TIMEOUT', '10'))

    # Бонус за потопление в наградах при обучении
    QL_DETECT_SINKS = _flag('QL_DETECT_SINKS')

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
