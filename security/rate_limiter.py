from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

# Лимиты по умолчанию, стратегия и хранилище задаются в Config (RATELIMIT_*)
limiter = Limiter(key_func=get_remote_address)

# Ход движка дешевле обучения и самоигры
MOVE_LIMIT = "120 per minute"
SAVE_BATTLE_LIMIT = "30 per minute"
SIMULATE_LIMIT = "10 per minute"


def init_rate_limiter(app):
    limiter.init_app(app)
    return limiter
