import asyncio
import unittest
from unittest.mock import AsyncMock, MagicMock

from src.turtle_soup.errors import MalformedResponseError, TransportError, UpstreamError
from src.turtle_soup.game import Game, GameConfig, RoundState
from src.turtle_soup.response_parser import Puzzle

GENERATED = '{"problem": "男はスープを飲んで泣いた。なぜ？", "answer": "本物のウミガメのスープの味を知ったから。"}'


def _oracle(*replies):
    oracle = MagicMock()
    oracle.invoke = AsyncMock(side_effect=list(replies))
    return oracle


def _in_round_state(**kw) -> RoundState:
    return RoundState(puzzle=Puzzle(problem="PROBLEM-TEXT", solution="SOLUTION-TEXT"), phase="in_round", **kw)


class GenerationTests(unittest.IsolatedAsyncioTestCase):
    async def test_generation_resets_round_for_every_tier(self):
        for tier in ("easy", "normal", "hard"):
            state = _in_round_state(question_count=4, yes_count=2, no_count=1, difficulty="easy")
            state.phase = "idle"
            game = Game(_oracle(GENERATED), cfg=GameConfig(difficulty=tier, language="ja"), state=state)
            puzzle = await game.start()
            self.assertIsNotNone(puzzle)
            self.assertEqual(state.phase, "in_round")
            self.assertEqual((state.question_count, state.yes_count, state.no_count), (0, 0, 0))
            self.assertEqual(state.history, [])
            self.assertEqual(state.difficulty, tier)
            self.assertFalse(state.loading)
            prompt, system = game.oracle.invoke.call_args.args
            self.assertIn(game.catalog.tier(tier).rubric, prompt)
            self.assertEqual(system, game.catalog.generation_system)

    async def test_generation_failure_returns_to_idle_untouched(self):
        state = RoundState(puzzle=Puzzle("old", "old truth"), question_count=3, yes_count=1, phase="idle")
        game = Game(_oracle("no json here"), cfg=GameConfig(language="ja"), state=state)
        events = []
        game.subscribe(events.append)

        self.assertIsNone(await game.start())

        self.assertEqual(state.phase, "idle")
        self.assertEqual(state.puzzle, Puzzle("old", "old truth"))
        self.assertEqual(state.question_count, 3)
        self.assertFalse(state.loading)
        errors = [e for e in events if e.kind == "error"]
        self.assertEqual(len(errors), 1)
        self.assertTrue(errors[0].message.startswith("問題の生成に失敗しました。\n理由: "))
        self.assertIsInstance(game.last_error, MalformedResponseError)

    async def test_difficulty_change_only_affects_next_round(self):
        game = Game(_oracle(GENERATED), cfg=GameConfig(difficulty="easy", language="ja"))
        await game.start()
        game.set_difficulty("hard")
        self.assertEqual(game.state.difficulty, "easy")
        self.assertEqual(game.selected_difficulty, "hard")

    async def test_start_ignored_mid_round(self):
        game = Game(_oracle(), cfg=GameConfig(language="ja"), state=_in_round_state())
        self.assertIsNone(await game.start())
        game.oracle.invoke.assert_not_called()


class QuestionTests(unittest.IsolatedAsyncioTestCase):
    def _game(self, *replies):
        self.state = _in_round_state()
        return Game(_oracle(*replies), cfg=GameConfig(language="ja"), state=self.state)

    async def test_yes_no_and_undeterminable_counting(self):
        game = self._game('{"answer": "はい"}', '{"answer": "いいえ"}', '{"answer": "関係ありません"}')

        yes = await game.ask("男は船乗りですか？")
        self.assertEqual((self.state.question_count, self.state.yes_count, self.state.no_count), (1, 1, 0))
        no = await game.ask("スープは冷めていましたか？")
        self.assertEqual((self.state.question_count, self.state.yes_count, self.state.no_count), (2, 1, 1))
        other = await game.ask("天気は晴れでしたか？")
        self.assertEqual((self.state.question_count, self.state.yes_count, self.state.no_count), (3, 1, 1))

        self.assertEqual([yes.kind, no.kind, other.kind], ["yes", "no", "undeterminable"])
        self.assertEqual(other.displayed_answer, "どちらとも言えません")
        # Most recent first
        self.assertEqual(self.state.history, [other, no, yes])
        self.assertEqual(self.state.phase, "in_round")

    async def test_question_prompt_embeds_puzzle_and_question(self):
        game = self._game('{"answer": "はい"}')
        await game.ask("彼は泣きましたか？")
        prompt, system = game.oracle.invoke.call_args.args
        self.assertIn("PROBLEM-TEXT", prompt)
        self.assertIn("SOLUTION-TEXT", prompt)
        self.assertIn("彼は泣きましたか？", prompt)
        self.assertEqual(system, game.catalog.question_system)

    async def test_blank_question_is_noop(self):
        game = self._game()
        for text in ("", "   ", "\n\t"):
            self.assertIsNone(await game.ask(text))
        game.oracle.invoke.assert_not_called()
        self.assertEqual(self.state.question_count, 0)
        self.assertEqual(self.state.history, [])

    async def test_failed_call_leaves_state_and_clears_loading(self):
        for failure in (UpstreamError("boom", status=500), TransportError("down"), '{"verdict": "yes"}'):
            game = self._game(failure)
            events = []
            game.subscribe(events.append)
            self.assertIsNone(await game.ask("男は船乗りですか？"))
            self.assertEqual((self.state.question_count, self.state.yes_count, self.state.no_count), (0, 0, 0))
            self.assertEqual(self.state.history, [])
            self.assertFalse(self.state.loading)
            self.assertEqual(self.state.phase, "in_round")
            self.assertTrue(any(e.kind == "error" and e.message.startswith("回答の取得に失敗しました。") for e in events))

    async def test_second_question_rejected_while_first_pending(self):
        gate = asyncio.Event()

        async def slow_invoke(prompt, system_prompt=""):
            await gate.wait()
            return '{"answer": "はい"}'

        game = self._game()
        game.oracle.invoke = AsyncMock(side_effect=slow_invoke)

        first = asyncio.create_task(game.ask("一つ目"))
        await asyncio.sleep(0)
        self.assertTrue(self.state.loading)

        self.assertIsNone(await game.ask("二つ目"))
        self.assertIsNone(await game.hint())
        self.assertIsNone(await game.guess("推理"))

        gate.set()
        record = await first
        self.assertEqual(record.question, "一つ目")
        self.assertEqual(game.oracle.invoke.call_count, 1)
        self.assertEqual(self.state.question_count, 1)
        self.assertFalse(self.state.loading)


class GuessAndGiveUpTests(unittest.IsolatedAsyncioTestCase):
    def _game(self, *replies):
        self.state = _in_round_state(question_count=2, yes_count=1, no_count=1)
        game = Game(_oracle(*replies), cfg=GameConfig(language="ja"), state=self.state)
        self.events = []
        game.subscribe(self.events.append)
        return game

    async def test_correct_guess_finishes_solved(self):
        game = self._game('{"isCorrect": true, "feedback": "おめでとう！"}')
        judgement = await game.guess("彼は遭難していた")
        self.assertTrue(judgement.is_correct)
        self.assertEqual(self.state.phase, "finished")
        self.assertEqual(self.state.outcome, "solved")
        finished = [e for e in self.events if e.kind == "finished"]
        self.assertEqual(len(finished), 1)
        self.assertEqual(finished[0].data["solution"], "SOLUTION-TEXT")
        self.assertEqual(finished[0].data["question_count"], 2)

    async def test_wrong_guess_records_once_and_stays_in_round(self):
        game = self._game('{"isCorrect": false}')
        judgement = await game.guess("スープが辛かった")
        self.assertFalse(judgement.is_correct)
        self.assertEqual(self.state.phase, "in_round")
        self.assertIsNone(self.state.outcome)
        self.assertEqual(len(self.state.history), 1)
        record = self.state.history[0]
        self.assertTrue(record.is_guess)
        self.assertEqual(record.displayed_answer, "不正解")
        # Guesses are not questions
        self.assertEqual(self.state.question_count, 2)
        feedback = [e for e in self.events if e.kind == "feedback"]
        self.assertEqual(feedback[0].message, "もう少し質問を重ねてみましょう！")

    async def test_give_up_needs_confirmation_and_never_calls_oracle(self):
        game = self._game()
        self.assertFalse(game.give_up(confirmed=False))
        self.assertEqual(self.state.phase, "in_round")
        self.assertTrue(game.give_up(confirmed=True))
        self.assertEqual(self.state.phase, "finished")
        self.assertEqual(self.state.outcome, "gave_up")
        game.oracle.invoke.assert_not_called()
        self.assertEqual(game.summary()["outcome"], "gave_up")

    async def test_restart_generates_next_round(self):
        game = self._game(GENERATED)
        game.give_up(confirmed=True)
        puzzle = await game.restart()
        self.assertIsNotNone(puzzle)
        self.assertEqual(self.state.phase, "in_round")
        self.assertIsNone(self.state.outcome)
        self.assertEqual(self.state.question_count, 0)
        phases = [e.data["phase"] for e in self.events if e.kind == "state"]
        self.assertIn("idle", phases)
        self.assertIn("generating", phases)


class HintTests(unittest.IsolatedAsyncioTestCase):
    async def test_hint_returns_text_without_touching_counters(self):
        state = _in_round_state(question_count=1, yes_count=1)
        game = Game(_oracle("船に乗っていた過去に注目してみましょう。"), cfg=GameConfig(language="ja"), state=state)
        events = []
        game.subscribe(events.append)
        text = await game.hint()
        self.assertEqual(text, "船に乗っていた過去に注目してみましょう。")
        self.assertEqual((state.question_count, state.yes_count, state.history), (1, 1, []))
        self.assertFalse(state.loading)
        self.assertEqual([e.message for e in events if e.kind == "hint"], [text])
        prompt, system = game.oracle.invoke.call_args.args
        self.assertIn("1〜2文", prompt)
        self.assertEqual(system, game.catalog.hint_system)

    async def test_hint_failure_surfaces_error(self):
        state = _in_round_state()
        game = Game(_oracle(TransportError("down")), cfg=GameConfig(language="ja"), state=state)
        events = []
        game.subscribe(events.append)
        self.assertIsNone(await game.hint())
        self.assertFalse(state.loading)
        self.assertEqual(events[-1].kind, "error")
        self.assertTrue(events[-1].message.startswith("ヒントの取得に失敗しました。"))

    async def test_hint_unavailable_outside_round(self):
        game = Game(_oracle(), cfg=GameConfig(language="ja"))
        self.assertIsNone(await game.hint())
        game.oracle.invoke.assert_not_called()


if __name__ == "__main__":
    unittest.main()
