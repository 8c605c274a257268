from flask import Blueprint, current_app, request, jsonify
from flask_cors import CORS
from flask_wtf.csrf import CSRFProtect, generate_csrf
from pydantic import ValidationError
import logging
import random

from targeting.ai import BattleshipAI
from targeting.core import GameRules, InvalidShotError, NoAvailableMoves, validate_shots
from targeting.learning import process_battle
from targeting.match import play_battle
from targeting.qlearning import get_hyperparameters
from security.rate_limiter import MOVE_LIMIT, SAVE_BATTLE_LIMIT, SIMULATE_LIMIT, limiter
from api.models import (
    MoveRequest, SaveMoveRequest, SaveBattleRequest, SimulateBattleRequest, HyperparametersRequest
)

logger = logging.getLogger(__name__)

api_bp = Blueprint('api', __name__)
CORS(api_bp, supports_credentials=True)
csrf = CSRFProtect()


def _services():
    return current_app.extensions['battleship']


def _rules(grid_size=None) -> GameRules:
    return GameRules(
        grid_size=grid_size or current_app.config['GRID_SIZE'],
        ship_sizes=tuple(current_app.config['SHIP_SIZES']),
    )


def _validation_error(e: ValidationError):
    details = e.errors(include_url=False, include_context=False, include_input=False)
    return jsonify({'error': 'Некорректные данные запроса', 'details': details}), 400


def _learn_from_battle(data: SaveBattleRequest):
    """Сохранение партии и обновление Q-значений каждой модели.

    Ходы проверяются до записи: InvalidShotError означает, что партия
    не сохранена и обучение не проводилось.
    """
    services = _services()
    rules = _rules()

    # Ходы группируются по модели в порядке номеров
    moves_by_model = {}
    for move in sorted(data.moves, key=lambda m: m.move_number):
        moves_by_model.setdefault(move.model, []).append(move.to_battle_move())
    for moves in moves_by_model.values():
        validate_shots([m.to_shot() for m in moves], rules)

    battle_id = services['battle_store'].record_battle(
        {
            'model_a': data.model_a, 'model_b': data.model_b, 'winner': data.winner,
            'accuracy_a': data.accuracy_a, 'accuracy_b': data.accuracy_b,
            'hits_a': data.hits_a, 'hits_b': data.hits_b,
            'misses_a': data.misses_a, 'misses_b': data.misses_b,
        },
        [m.to_record() for m in data.moves],
    )

    q_store = services['q_store']
    updated = {}
    for model, moves in moves_by_model.items():
        hyperparameters = q_store.get_hyperparameters(model)
        updates = process_battle(
            moves,
            won=data.winner == model,
            hyperparameters=hyperparameters,
            rules=rules,
            detect_sinks=current_app.config['QL_DETECT_SINKS'],
        )
        updated[model] = len(q_store.apply_updates(model, updates, hyperparameters))

    return battle_id, updated


@api_bp.route('/api/csrf-token', methods=['GET'])
def get_csrf_token():
    """Возвращает CSRF-токен для защиты форм"""
    return jsonify({'csrf_token': generate_csrf()})


@api_bp.route('/api/ai-move', methods=['POST'])
@limiter.limit(MOVE_LIMIT)
def ai_move():
    """Следующий ход движка для модели по истории её выстрелов"""
    try:
        data = MoveRequest(**(request.get_json(silent=True) or {}))
    except ValidationError as e:
        return _validation_error(e)

    services = _services()
    model = data.model
    q_store = services['q_store']
    use_advisor = data.use_advisor and services['advisor'] is not None

    ai = BattleshipAI(_rules(data.grid_size), advisor=services['advisor'])
    try:
        decision = ai.decide(
            data.shots(),
            q_store.load_table(model),
            q_store.get_hyperparameters(model),
            model=model,
            use_advisor=use_advisor,
            strategy_data=services['battle_store'].strategy_summary(model) if use_advisor else None,
        )
    except InvalidShotError as e:
        return jsonify({'error': str(e)}), 400
    except NoAvailableMoves as e:
        return jsonify({'error': str(e)}), 409

    response = decision.to_dict()
    response['model'] = model
    return jsonify(response)


@api_bp.route('/api/save-battle', methods=['POST'])
@limiter.limit(SAVE_BATTLE_LIMIT)
def save_battle():
    """Сохранение завершенной партии и обучение по её ходам"""
    try:
        data = SaveBattleRequest(**(request.get_json(silent=True) or {}))
    except ValidationError as e:
        return _validation_error(e)

    try:
        battle_id, updated = _learn_from_battle(data)
    except InvalidShotError as e:
        return jsonify({'error': str(e)}), 400
    return jsonify({'ok': True, 'battleId': battle_id, 'updated': updated}), 201


@api_bp.route('/api/save-move', methods=['POST'])
@limiter.limit(MOVE_LIMIT)
def save_move():
    """Запись одного хода по ходу партии и учет эффективности стратегии"""
    try:
        data = SaveMoveRequest(**(request.get_json(silent=True) or {}))
    except ValidationError as e:
        return _validation_error(e)

    if not _rules().in_bounds(data.row, data.col):
        return jsonify({'error': f"Ход ({data.row}, {data.col}) вне поля"}), 400
    if not _services()['battle_store'].record_move(data.battle_id, data.to_record()):
        return jsonify({'error': f"Партия {data.battle_id} не найдена"}), 404
    return jsonify({'ok': True}), 201


@api_bp.route('/api/battles/simulate', methods=['POST'])
@limiter.limit(SIMULATE_LIMIT)
def simulate_battle():
    """Партия движок против движка с последующим обучением"""
    try:
        data = SimulateBattleRequest(**(request.get_json(silent=True) or {}))
    except ValidationError as e:
        return _validation_error(e)

    q_store = _services()['q_store']
    models = (data.model_a, data.model_b)
    summary = play_battle(
        data.model_a,
        data.model_b,
        q_tables={m: q_store.load_table(m) for m in models},
        hyperparameters={m: q_store.get_hyperparameters(m) for m in models},
        rules=_rules(),
        rng=random.Random(data.seed),
    )

    battle_id, updated = _learn_from_battle(SaveBattleRequest(**summary))
    summary.update({'battleId': battle_id, 'updated': updated})
    return jsonify(summary), 201


@api_bp.route('/api/battles', methods=['GET'])
def get_battles():
    """Последние партии, новые первыми"""
    limit = request.args.get('limit', default=50, type=int)
    limit = max(1, min(limit, 500))
    return jsonify({'battles': _services()['battle_store'].recent_battles(limit)})


@api_bp.route('/api/rankings', methods=['GET'])
def get_rankings():
    return jsonify({'success': True, 'data': _services()['battle_store'].rankings()})


@api_bp.route('/api/strategies', methods=['GET'])
def get_strategies():
    """Эффективность стратегий модели по истории партий"""
    model = request.args.get('model')
    if not model:
        return jsonify({'error': 'Model required'}), 400
    return jsonify(_services()['battle_store'].strategy_summary(model))


@api_bp.route('/api/q-values/<path:model>', methods=['GET'])
def get_q_values(model):
    """Сохраненные Q-значения модели (диагностика)"""
    entries = _services()['q_store'].load_entries(model)
    return jsonify({'model': model, 'entries': [e.to_dict() for e in entries]})


@api_bp.route('/api/hyperparameters/<path:model>', methods=['GET', 'PUT'])
def model_hyperparameters(model):
    q_store = _services()['q_store']

    if request.method == 'GET':
        return jsonify({'model': model, **q_store.get_hyperparameters(model).to_dict()})

    try:
        data = HyperparametersRequest(**(request.get_json(silent=True) or {}))
    except ValidationError as e:
        return _validation_error(e)

    hyperparameters = get_hyperparameters(data.model_dump())
    q_store.set_hyperparameters(model, hyperparameters)
    logger.info(f"Hyperparameters for {model} set to {hyperparameters.to_dict()}")
    return jsonify({'model': model, **hyperparameters.to_dict()})
