from flask import Flask, jsonify
from flask_cors import CORS
from config import Config
from api.routes import api_bp, csrf
from advisor.client import MoveAdvisor
from persistence.battles import BattleStore
from persistence.q_values import QValueStore
from security.rate_limiter import init_rate_limiter, limiter
import logging
import os

logger = logging.getLogger(__name__)


def _store_path(app, name):
    data_dir = app.config.get('DATA_DIR')
    return os.path.join(data_dir, name) if data_dir else None


def create_app(config_overrides=None):
    app = Flask(__name__)

    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    logging.basicConfig(level=app.config.get('LOG_LEVEL', 'INFO'))

    # Включаем CORS
    CORS(app, supports_credentials=True, origins="*")

    # Инициализация CSRF защиты
    csrf.init_app(app)

    # Инициализация лимитера запросов
    init_rate_limiter(app)

    advisor = None
    if app.config.get('ADVISOR_ENABLED') and app.config.get('ADVISOR_API_KEY'):
        advisor = MoveAdvisor(
            api_key=app.config['ADVISOR_API_KEY'],
            base_url=app.config.get('ADVISOR_BASE_URL'),
            timeout=app.config.get('ADVISOR_TIMEOUT', 10),
        )

    app.extensions['battleship'] = {
        'q_store': QValueStore(_store_path(app, 'q_values.json')),
        'battle_store': BattleStore(_store_path(app, 'battles.json')),
        'advisor': advisor,
    }

    # Регистрация API blueprint
    app.register_blueprint(api_bp)

    # Обработчик ошибок для 404
    @app.errorhandler(404)
    def not_found(e):
        return jsonify({'error': 'Not found'}), 404

    # Health check endpoint
    @app.route('/health')
    @limiter.exempt
    def health():
        return jsonify({"status": "ok", "message": "Battleship targeting server is running"})

    logger.info(f"Targeting server created (advisor: {'on' if advisor else 'off'})")
    return app


if __name__ == '__main__':
    app = create_app()

    port = int(os.environ.get("PORT", 5002))
    debug = os.environ.get("FLASK_DEBUG", "False").lower() == "true"

    app.run(host='0.0.0.0', port=port, debug=debug, threaded=True)
