import shutil
import tempfile
import unittest
import sys
import os
import json
from unittest import mock

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from app import create_app


class StubAdvisor:
    def __init__(self, reply):
        self.reply = reply
        self.calls = []

    def suggest(self, model, shots, rules, **kwargs):
        self.calls.append((model, list(shots), kwargs))
        return self.reply


class TestAPI(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.app = create_app({
            'TESTING': True,
            'WTF_CSRF_ENABLED': False,
            'RATELIMIT_ENABLED': False,
            'ADVISOR_ENABLED': False,
            'DATA_DIR': self.tmpdir,
        })
        self.client = self.app.test_client()

    def tearDown(self):
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def _move(self, **payload):
        payload.setdefault('model', 'gpt-4o')
        return self.client.post('/api/ai-move', json=payload)

    def test_health(self):
        response = self.client.get('/health')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(json.loads(response.data)['status'], 'ok')

    def test_csrf_endpoint(self):
        response = self.client.get('/api/csrf-token')
        self.assertEqual(response.status_code, 200)
        self.assertIn('csrf_token', json.loads(response.data))

    def test_unknown_route(self):
        response = self.client.get('/api/nothing-here')
        self.assertEqual(response.status_code, 404)
        self.assertIn('error', json.loads(response.data))

    def test_first_move(self):
        response = self._move(previousShots=[])
        self.assertEqual(response.status_code, 200)
        data = json.loads(response.data)
        self.assertTrue(0 <= data['row'] < 8 and 0 <= data['col'] < 8)
        self.assertEqual(data['state'], 'hunt_early:hits=0:active=0')
        self.assertEqual(data['model'], 'gpt-4o')
        self.assertEqual(len(data['heatmap']), 8)
        self.assertEqual(data['remainingShips'], [5, 4, 3, 3, 2])

    def test_move_avoids_shot_cells(self):
        shots = [{'row': r, 'col': c, 'hit': False} for r in range(8) for c in range(8) if (r, c) != (6, 1)]
        response = self._move(previousShots=shots)
        self.assertEqual(response.status_code, 200)
        data = json.loads(response.data)
        self.assertEqual((data['row'], data['col']), (6, 1))

    def test_full_board_conflict(self):
        shots = [{'row': r, 'col': c, 'hit': False} for r in range(8) for c in range(8)]
        self.assertEqual(self._move(previousShots=shots).status_code, 409)

    def test_invalid_move_requests(self):
        self.assertEqual(self.client.post('/api/ai-move', json={'previousShots': []}).status_code, 400)
        self.assertEqual(self._move(previousShots=[{'row': 8, 'col': 0, 'hit': False}]).status_code, 400)
        self.assertEqual(self._move(previousShots=[{'row': '1', 'col': 0, 'hit': False}]).status_code, 400)
        self.assertEqual(self._move(previousShots=[{'row': 1, 'col': 0, 'hit': 'yes'}]).status_code, 400)

        duplicate = [{'row': 1, 'col': 1, 'hit': False}, {'row': 1, 'col': 1, 'hit': True}]
        response = self._move(previousShots=duplicate)
        self.assertEqual(response.status_code, 400)
        self.assertIn('error', json.loads(response.data))

    def test_custom_grid_size(self):
        response = self._move(previousShots=[{'row': 9, 'col': 9, 'hit': False}], gridSize=10)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(json.loads(response.data)['heatmap']), 10)

    def test_advisor_move(self):
        advisor = StubAdvisor({'row': 0, 'col': 7})
        self.app.extensions['battleship']['advisor'] = advisor

        response = self._move(previousShots=[], useAdvisor=True)
        data = json.loads(response.data)
        self.assertEqual((data['row'], data['col']), (0, 7))
        self.assertEqual(data['source'], 'advisor')
        self.assertEqual(len(advisor.calls), 1)

    def test_advisor_not_called_unless_requested(self):
        advisor = StubAdvisor({'row': 0, 'col': 7})
        self.app.extensions['battleship']['advisor'] = advisor
        self._move(previousShots=[])
        self.assertEqual(advisor.calls, [])

    def test_save_battle_updates_q_values(self):
        payload = {
            'modelA': 'alpha', 'modelB': 'beta', 'winner': 'alpha',
            'accuracyA': 50, 'accuracyB': 0, 'hitsA': 1, 'hitsB': 0, 'missesA': 1, 'missesB': 1,
            'moves': [
                {'model': 'alpha', 'moveNumber': 1, 'row': 0, 'col': 0, 'hit': False},
                {'model': 'beta', 'moveNumber': 1, 'row': 4, 'col': 4, 'hit': False},
                {'model': 'alpha', 'moveNumber': 2, 'row': 2, 'col': 2, 'hit': True},
            ],
        }
        response = self.client.post('/api/save-battle', json=payload)
        self.assertEqual(response.status_code, 201)
        data = json.loads(response.data)
        self.assertEqual(data['battleId'], 1)
        self.assertEqual(set(data['updated']), {'alpha', 'beta'})

        entries = json.loads(self.client.get('/api/q-values/alpha').data)['entries']
        keys = {f"{e['state']}:{e['action']}" for e in entries}
        self.assertEqual(keys, {'hunt_early:hits=0:active=0:checkerboard'})
        self.assertEqual(entries[0]['visit_count'], 2)

        self.assertTrue(os.path.exists(os.path.join(self.tmpdir, 'q_values.json')))
        self.assertTrue(os.path.exists(os.path.join(self.tmpdir, 'battles.json')))

    def test_save_battle_validation(self):
        response = self.client.post('/api/save-battle', json={'modelA': 'alpha', 'winner': 'alpha'})
        self.assertEqual(response.status_code, 400)
        self.assertIn('details', json.loads(response.data))

    def _battle(self, **overrides):
        payload = {
            'modelA': 'alpha', 'modelB': 'beta', 'winner': 'alpha',
            'moves': [
                {'model': 'alpha', 'moveNumber': 1, 'row': 3, 'col': 3, 'hit': True},
                {'model': 'alpha', 'moveNumber': 2, 'row': 3, 'col': 4, 'hit': True, 'wasFollowUp': True,
                 'previousHits': [{'row': 3, 'col': 3}]},
                {'model': 'beta', 'moveNumber': 1, 'row': 0, 'col': 0, 'hit': False},
            ],
        }
        payload.update(overrides)
        return payload

    def test_save_battle_rejects_outsiders(self):
        response = self.client.post('/api/save-battle', json=self._battle(winner='gamma'))
        self.assertEqual(response.status_code, 400)

        moves = self._battle()['moves'] + [{'model': 'gamma', 'moveNumber': 1, 'row': 1, 'col': 1, 'hit': False}]
        response = self.client.post('/api/save-battle', json=self._battle(moves=moves))
        self.assertEqual(response.status_code, 400)

        self.assertEqual(json.loads(self.client.get('/api/battles').data)['battles'], [])

    def test_save_battle_rejects_invalid_moves(self):
        outside = [{'model': 'alpha', 'moveNumber': 1, 'row': 9, 'col': 0, 'hit': False}]
        response = self.client.post('/api/save-battle', json=self._battle(moves=outside))
        self.assertEqual(response.status_code, 400)

        repeated = [
            {'model': 'alpha', 'moveNumber': 1, 'row': 2, 'col': 2, 'hit': False},
            {'model': 'alpha', 'moveNumber': 2, 'row': 2, 'col': 2, 'hit': True},
        ]
        response = self.client.post('/api/save-battle', json=self._battle(moves=repeated))
        self.assertEqual(response.status_code, 400)

        self.assertEqual(json.loads(self.client.get('/api/battles').data)['battles'], [])
        self.assertEqual(json.loads(self.client.get('/api/q-values/alpha').data)['entries'], [])

    def test_move_uses_raw_model_name_everywhere(self):
        name = 'llama-3 (8b)'
        response = self.client.post('/api/save-battle', json=self._battle(modelA=name, winner=name, moves=[
            {'model': name, 'moveNumber': 1, 'row': 0, 'col': 0, 'hit': True},
        ]))
        self.assertEqual(response.status_code, 201)

        q_store = self.app.extensions['battleship']['q_store']
        self.assertTrue(q_store.load_table(name))
        with mock.patch.object(q_store, 'load_table', wraps=q_store.load_table) as load_table:
            response = self._move(model=name, previousShots=[])
        self.assertEqual(response.status_code, 200)
        load_table.assert_called_once_with(name)
        self.assertEqual(json.loads(response.data)['model'], name)

    def test_grid_size_defaults_to_config(self):
        app = create_app({
            'TESTING': True,
            'WTF_CSRF_ENABLED': False,
            'RATELIMIT_ENABLED': False,
            'ADVISOR_ENABLED': False,
            'DATA_DIR': self.tmpdir,
            'GRID_SIZE': 10,
        })
        client = app.test_client()
        response = client.post('/api/ai-move', json={'model': 'gpt-4o', 'previousShots': [
            {'row': 9, 'col': 9, 'hit': False},
        ]})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(json.loads(response.data)['heatmap']), 10)

        response = self._move(previousShots=[{'row': 9, 'col': 9, 'hit': False}])
        self.assertEqual(response.status_code, 400)

    def test_move_returns_previous_hits(self):
        shots = [{'row': 3, 'col': 3, 'hit': True}, {'row': 0, 'col': 0, 'hit': False}]
        data = json.loads(self._move(previousShots=shots).data)
        self.assertEqual(data['previousHits'], [{'row': 3, 'col': 3}])

    def test_save_move(self):
        battle_id = json.loads(self.client.post('/api/save-battle', json=self._battle(moves=[])).data)['battleId']

        move = {'battleId': battle_id, 'model': 'alpha', 'moveNumber': 2, 'row': 3, 'col': 4, 'hit': True,
                'wasFollowUp': True, 'previousHits': [{'row': 3, 'col': 3}]}
        response = self.client.post('/api/save-move', json=move)
        self.assertEqual(response.status_code, 201)

        strategies = json.loads(self.client.get('/api/strategies?model=alpha').data)
        self.assertEqual(strategies['strategies']['target']['totalUses'], 1)
        self.assertEqual(strategies['successfulFollowUps'],
                         [{'row': 3, 'col': 4, 'hit': True, 'previousHits': [{'row': 3, 'col': 3}]}])

        move['battleId'] = battle_id + 1
        self.assertEqual(self.client.post('/api/save-move', json=move).status_code, 404)

        move.update(battleId=battle_id, row=8)
        self.assertEqual(self.client.post('/api/save-move', json=move).status_code, 400)
        self.assertEqual(self.client.post('/api/save-move', json={'battleId': battle_id}).status_code, 400)

    def test_simulate_battle(self):
        response = self.client.post('/api/battles/simulate', json={'modelA': 'alpha', 'modelB': 'beta', 'seed': 4})
        self.assertEqual(response.status_code, 201)
        data = json.loads(response.data)
        self.assertIn(data['winner'], ('alpha', 'beta'))
        self.assertEqual(data['battleId'], 1)

        battles = json.loads(self.client.get('/api/battles').data)['battles']
        self.assertEqual(len(battles), 1)

        rankings = json.loads(self.client.get('/api/rankings').data)
        self.assertTrue(rankings['success'])
        self.assertEqual({r['modelName'] for r in rankings['data']}, {'alpha', 'beta'})

        strategies = json.loads(self.client.get('/api/strategies?model=alpha').data)
        self.assertEqual(strategies['totalGames'], 1)

        self.assertTrue(json.loads(self.client.get('/api/q-values/alpha').data)['entries'])

    def test_simulate_same_model_rejected(self):
        response = self.client.post('/api/battles/simulate', json={'modelA': 'alpha', 'modelB': 'alpha'})
        self.assertEqual(response.status_code, 400)

    def test_strategies_require_model(self):
        self.assertEqual(self.client.get('/api/strategies').status_code, 400)

    def test_hyperparameters(self):
        data = json.loads(self.client.get('/api/hyperparameters/alpha').data)
        self.assertEqual(data['learning_rate'], 0.1)
        self.assertEqual(data['exploration_rate'], 0.15)

        response = self.client.put('/api/hyperparameters/alpha',
                                   json={'learningRate': 0.2, 'discountFactor': 0.8, 'explorationRate': 0.0})
        self.assertEqual(response.status_code, 200)
        data = json.loads(self.client.get('/api/hyperparameters/alpha').data)
        self.assertEqual(data['exploration_rate'], 0.0)
        self.assertEqual(data['learning_rate'], 0.2)

        response = self.client.put('/api/hyperparameters/alpha',
                                   json={'learningRate': 1.5, 'discountFactor': 0.8, 'explorationRate': 0.0})
        self.assertEqual(response.status_code, 400)


if __name__ == '__main__':
    unittest.main(verbosity=2)
