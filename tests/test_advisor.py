import unittest
import sys
import os
from types import SimpleNamespace
from unittest.mock import MagicMock

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from openai import OpenAIError

from advisor.client import MoveAdvisor, build_prompt, cell_label, parse_move, system_message
from targeting.clusters import analyze
from targeting.core import DEFAULT_RULES, Shot


def completion(text):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])


class TestPrompt(unittest.TestCase):
    def test_cell_label(self):
        self.assertEqual(cell_label(0, 0), "A1")
        self.assertEqual(cell_label(7, 2), "C8")

    def test_prompt_lists_priority_targets(self):
        shots = [Shot(3, 3, True), Shot(3, 4, True), Shot(0, 0, False)]
        prompt = build_prompt(shots, DEFAULT_RULES, analyze(shots), hint=(3, 2))
        self.assertIn("8x8", prompt)
        self.assertIn("3. A1: MISS", prompt)
        self.assertIn("horizontal", prompt)
        self.assertIn("HIGH PRIORITY TARGETS", prompt)
        self.assertIn("ENGINE RECOMMENDATION: C4", prompt)

    def test_prompt_without_history(self):
        prompt = build_prompt([], DEFAULT_RULES, analyze([]))
        self.assertIn("No shots yet", prompt)
        self.assertNotIn("CURRENT ANALYSIS", prompt)

    def test_prompt_with_strategy_data(self):
        data = {"totalGames": 4, "winRate": 0.5,
                "strategies": {"hunt": {"effectiveness": 0.25}, "target": {"effectiveness": 0.75}}}
        prompt = build_prompt([], DEFAULT_RULES, analyze([]), strategy_data=data)
        self.assertIn("LEARNING FROM 4 PREVIOUS GAMES (Win rate: 50.0%)", prompt)
        self.assertIn("Target mode effectiveness: 75.0%", prompt)

    def test_prompt_lists_unshot_openings_early(self):
        data = {"totalGames": 2, "winRate": 1.0, "strategies": {},
                "successfulOpenings": [{"row": 3, "col": 3, "hit": True}, {"row": 0, "col": 0, "hit": False},
                                       {"row": 2, "col": 5, "hit": True}, {"row": 3, "col": 3, "hit": True},
                                       {"row": 7, "col": 1, "hit": False}, {"row": 6, "col": 6, "hit": True}]}
        shots = [Shot(0, 0, False)]
        prompt = build_prompt(shots, DEFAULT_RULES, analyze(shots), strategy_data=data)
        self.assertIn("- Historically successful opening moves: D4, F3, B8", prompt)

    def test_no_openings_after_five_shots(self):
        data = {"totalGames": 2, "winRate": 1.0, "strategies": {},
                "successfulOpenings": [{"row": 3, "col": 3, "hit": True}]}
        shots = [Shot(0, c, False) for c in range(5)]
        prompt = build_prompt(shots, DEFAULT_RULES, analyze(shots), strategy_data=data)
        self.assertNotIn("opening moves", prompt)

    def test_system_message_follows_win_rate(self):
        winning = system_message({"totalGames": 12, "winRate": 0.75})
        self.assertTrue(winning.startswith("You are an expert Battleship AI with 12 games of experience."))
        self.assertTrue(winning.endswith("maintain your approach."))

        losing = system_message({"totalGames": 3, "winRate": 0.5})
        self.assertTrue(losing.endswith("targeting adjacent cells after hits."))
        self.assertIn("with 0 games of experience", system_message(None))


class TestParseMove(unittest.TestCase):
    def test_json_inside_text(self):
        self.assertEqual(parse_move('I pick {"row": 2, "col": 3} because...'), {"row": 2, "col": 3})

    def test_garbage(self):
        self.assertIsNone(parse_move("B4 looks good"))
        self.assertIsNone(parse_move("{row: 2}"))
        self.assertIsNone(parse_move(None))


class TestMoveAdvisor(unittest.TestCase):
    def test_suggest(self):
        client = MagicMock()
        client.chat.completions.create.return_value = completion('{"row": 5, "col": 1}')
        advisor = MoveAdvisor(client=client)

        self.assertEqual(advisor.suggest("gpt-4o", [], DEFAULT_RULES), {"row": 5, "col": 1})
        kwargs = client.chat.completions.create.call_args.kwargs
        self.assertEqual(kwargs["model"], "gpt-4o")
        self.assertEqual(kwargs["messages"][1]["role"], "user")

    def test_suggest_sends_experience_in_system_message(self):
        client = MagicMock()
        client.chat.completions.create.return_value = completion('{"row": 1, "col": 1}')
        data = {"totalGames": 10, "winRate": 0.8, "strategies": {}}
        MoveAdvisor(client=client).suggest("gpt-4o", [], DEFAULT_RULES, strategy_data=data)

        system = client.chat.completions.create.call_args.kwargs["messages"][0]
        self.assertEqual(system["role"], "system")
        self.assertEqual(system["content"], system_message(data))

    def test_api_error_returns_none(self):
        client = MagicMock()
        client.chat.completions.create.side_effect = OpenAIError("unavailable")
        self.assertIsNone(MoveAdvisor(client=client).suggest("gpt-4o", [], DEFAULT_RULES))

    def test_unparseable_reply_returns_none(self):
        client = MagicMock()
        client.chat.completions.create.return_value = completion("I would shoot B4")
        self.assertIsNone(MoveAdvisor(client=client).suggest("gpt-4o", [], DEFAULT_RULES))


if __name__ == '__main__':
    unittest.main(verbosity=2)
