"""
Round state and the game state machine.

- RoundState: the single live round (puzzle, counters, history, phase), injected into Game.
- Game: transitions idle -> generating -> in_round -> (evaluating) -> in_round | finished -> idle.
  - Every oracle-driven action (start, ask, guess, hint) holds the shared `loading` flag for the
    duration of its one call; a second action while it is set is a no-op.
  - Failures are caught at the action boundary, logged, and emitted as "error" events; state is
    only mutated after the whole reply has validated.
  - Presentation layers subscribe to GameEvent callbacks and never touch RoundState directly.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Literal, Optional

from .config import SETTINGS
from .errors import TurtleSoupError
from .prompting import (
    PromptCatalog,
    build_generation_prompt,
    build_guess_prompt,
    build_hint_prompt,
    build_question_prompt,
    failure_message,
    get_catalog,
)
from .response_parser import AnswerKind, Judgement, Puzzle, parse_generation, parse_judgement, parse_verdict

Phase = Literal["idle", "generating", "in_round", "evaluating", "finished"]
Outcome = Literal["solved", "gave_up"]
EventKind = Literal["state", "error", "hint", "feedback", "finished"]


@dataclass(frozen=True)
class QuestionRecord:
    question: str
    displayed_answer: str
    kind: AnswerKind
    is_guess: bool = False
    comment: Optional[str] = None


@dataclass
class RoundState:
    puzzle: Optional[Puzzle] = None
    question_count: int = 0
    yes_count: int = 0
    no_count: int = 0
    history: list[QuestionRecord] = field(default_factory=list)  # most recent first
    difficulty: str = "easy"
    loading: bool = False
    phase: Phase = "idle"
    outcome: Optional[Outcome] = None

    def begin_round(self, puzzle: Puzzle, difficulty: str) -> None:
        self.puzzle = puzzle
        self.difficulty = difficulty
        self.question_count = 0
        self.yes_count = 0
        self.no_count = 0
        self.history = []
        self.outcome = None
        self.phase = "in_round"

    def record_answer(self, record: QuestionRecord) -> None:
        if not record.is_guess:
            self.question_count += 1
            if record.kind == "yes":
                self.yes_count += 1
            elif record.kind == "no":
                self.no_count += 1
        self.history.insert(0, record)


@dataclass(frozen=True)
class GameEvent:
    kind: EventKind
    message: str = ""
    data: dict[str, Any] = field(default_factory=dict)


Listener = Callable[[GameEvent], None]


@dataclass
class GameConfig:
    difficulty: str = SETTINGS.difficulty  # tier used for the next generated round
    language: str = SETTINGS.language


class Game:
    def __init__(self, oracle, cfg: GameConfig | None = None, state: RoundState | None = None):
        self.log = logging.getLogger("Game")
        self.oracle = oracle
        self.cfg = cfg or GameConfig()
        self.catalog: PromptCatalog = get_catalog(self.cfg.language)
        self.catalog.tier(self.cfg.difficulty)  # validate early
        self.state = state if state is not None else RoundState(difficulty=self.cfg.difficulty)
        self.last_error: Optional[TurtleSoupError] = None
        self._listeners: list[Listener] = []

    # ---------------- Events -----------------
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that removes it again."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _emit(self, kind: EventKind, message: str = "", **data: Any) -> None:
        event = GameEvent(kind=kind, message=message, data=data)
        for listener in list(self._listeners):
            listener(event)

    def _set_phase(self, phase: Phase) -> None:
        self.state.phase = phase
        self._emit("state", phase=phase, loading=self.state.loading)

    def _settle(self, transient: Phase, fallback: Phase) -> None:
        # Leave a transient phase if the action did not move on by itself.
        if self.state.phase == transient:
            self._set_phase(fallback)

    def _fail(self, lead_in: str, error: TurtleSoupError) -> None:
        self.last_error = error
        self.log.warning("%s %s", lead_in, error)
        self._emit("error", failure_message(lead_in, self.catalog, error), error=error)

    # ---------------- Loading flag -----------------
    def _acquire(self, action: str) -> bool:
        if self.state.loading:
            self.log.debug("Ignoring %s: another oracle call is in flight", action)
            return False
        self.state.loading = True
        return True

    def _release(self) -> None:
        self.state.loading = False

    # ---------------- Selector -----------------
    @property
    def selected_difficulty(self) -> str:
        return self.cfg.difficulty

    def set_difficulty(self, difficulty: str) -> None:
        """Select the tier for the next generated round; the current round keeps its own."""
        self.catalog.tier(difficulty)
        self.cfg.difficulty = difficulty

    # ---------------- Transitions -----------------
    async def start(self) -> Optional[Puzzle]:
        """Generate a new puzzle. Returns it, or None when rejected or failed."""
        if self.state.phase != "idle":
            self.log.debug("Ignoring start in phase %s", self.state.phase)
            return None
        if not self._acquire("start"):
            return None
        difficulty = self.cfg.difficulty
        try:
            self._set_phase("generating")
            prompt = build_generation_prompt(self.catalog, difficulty)
            raw = await self.oracle.invoke(prompt, self.catalog.generation_system)
            puzzle = parse_generation(raw)
            self.state.begin_round(puzzle, difficulty)
        except TurtleSoupError as e:
            self._fail(self.catalog.generation_failed, e)
            return None
        finally:
            self._release()
            self._settle("generating", "idle")
        self.log.info("New %s round generated", difficulty)
        self._emit("state", phase=self.state.phase, loading=False, puzzle=puzzle)
        return puzzle

    async def ask(self, question: str) -> Optional[QuestionRecord]:
        """Ask one yes/no question. Returns the appended record, or None when rejected or failed."""
        text = question or ""
        if not text.strip():
            return None
        if self.state.phase != "in_round" or self.state.puzzle is None:
            self.log.debug("Ignoring question in phase %s", self.state.phase)
            return None
        if not self._acquire("question"):
            return None
        puzzle = self.state.puzzle
        try:
            self._set_phase("evaluating")
            prompt = build_question_prompt(self.catalog, puzzle.problem, puzzle.solution, text)
            raw = await self.oracle.invoke(prompt, self.catalog.question_system)
            verdict = parse_verdict(raw, self.catalog)
            record = QuestionRecord(
                question=text,
                displayed_answer=verdict.displayed_answer,
                kind=verdict.kind,
                comment=verdict.comment,
            )
            self.state.record_answer(record)
        except TurtleSoupError as e:
            self._fail(self.catalog.answer_failed, e)
            return None
        finally:
            self._release()
            self._settle("evaluating", "in_round")
        self.log.debug("Q%d %s -> %s", self.state.question_count, text, verdict.kind)
        return record

    async def guess(self, text: str) -> Optional[Judgement]:
        """Submit a deduction. A correct one finishes the round; a wrong one is recorded in history."""
        guess = text or ""
        if not guess.strip():
            return None
        if self.state.phase != "in_round" or self.state.puzzle is None:
            self.log.debug("Ignoring guess in phase %s", self.state.phase)
            return None
        if not self._acquire("guess"):
            return None
        puzzle = self.state.puzzle
        try:
            self._set_phase("evaluating")
            prompt = build_guess_prompt(self.catalog, puzzle.problem, puzzle.solution, guess)
            raw = await self.oracle.invoke(prompt, self.catalog.question_system)
            judgement = parse_judgement(raw)
            if not judgement.is_correct:
                self.state.record_answer(QuestionRecord(
                    question=guess,
                    displayed_answer=self.catalog.incorrect_label,
                    kind="undeterminable",
                    is_guess=True,
                ))
        except TurtleSoupError as e:
            self._fail(self.catalog.answer_failed, e)
            return None
        finally:
            self._release()
            self._settle("evaluating", "in_round")
        if judgement.is_correct:
            self._finish("solved")
        else:
            self._emit("feedback", judgement.feedback or self.catalog.default_guess_feedback, judgement=judgement)
        return judgement

    async def hint(self) -> Optional[str]:
        """Ask the oracle for a non-revealing hint. Round state is left untouched."""
        if self.state.phase != "in_round" or self.state.puzzle is None:
            self.log.debug("Ignoring hint in phase %s", self.state.phase)
            return None
        if not self._acquire("hint"):
            return None
        puzzle = self.state.puzzle
        try:
            prompt = build_hint_prompt(self.catalog, puzzle.problem, puzzle.solution)
            text = await self.oracle.invoke(prompt, self.catalog.hint_system)
        except TurtleSoupError as e:
            self._fail(self.catalog.hint_failed, e)
            return None
        finally:
            self._release()
        self._emit("hint", text)
        return text

    def give_up(self, confirmed: bool) -> bool:
        """End the round without the oracle. The caller must have asked the player to confirm."""
        if not confirmed:
            return False
        if self.state.phase != "in_round" or self.state.loading:
            self.log.debug("Ignoring give-up in phase %s (loading=%s)", self.state.phase, self.state.loading)
            return False
        self._finish("gave_up")
        return True

    async def restart(self) -> Optional[Puzzle]:
        """Leave the result screen and immediately generate the next round."""
        if self.state.phase != "finished":
            self.log.debug("Ignoring restart in phase %s", self.state.phase)
            return None
        self._set_phase("idle")
        return await self.start()

    def _finish(self, outcome: Outcome) -> None:
        self.state.outcome = outcome
        self._set_phase("finished")
        self.log.info("Round finished outcome=%s questions=%d", outcome, self.state.question_count)
        self._emit("finished", outcome, **self.summary())

    # ---------------- Metrics -----------------
    def summary(self) -> dict:
        st = self.state
        guesses = sum(1 for r in st.history if r.is_guess)
        return {
            "outcome": st.outcome,
            "difficulty": st.difficulty,
            "difficulty_label": self.catalog.tier(st.difficulty).label,
            "problem": st.puzzle.problem if st.puzzle else None,
            "solution": st.puzzle.solution if st.puzzle else None,
            "question_count": st.question_count,
            "yes_count": st.yes_count,
            "no_count": st.no_count,
            "wrong_guesses": guesses,
        }
