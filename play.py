"""
Terminal front end for Turtle Soup.

Type a yes/no question and press Enter. Commands:
  /hint            ask for a hint
  /guess <text>    submit your deduction of the truth
  /giveup          reveal the truth (asks for confirmation)
  /next            start the next round after a result
  /difficulty <d>  easy | normal | hard (applies to the next round)
  /quit            leave
"""
import argparse
import asyncio
import dataclasses
import logging

from src.turtle_soup.config import DIFFICULTIES, LANGUAGES, SETTINGS
from src.turtle_soup.errors import ConfigurationError
from src.turtle_soup.game import Game, GameConfig, GameEvent
from src.turtle_soup.llm_client import OracleClient


class TerminalView:
    """Renders game events to stdout; owns every prompt shown to the player."""

    def __init__(self, game: Game):
        self.game = game
        game.subscribe(self.on_event)

    def on_event(self, event: GameEvent):
        if event.kind == "state":
            phase = event.data.get("phase")
            if phase == "generating":
                print("... generating a puzzle")
            elif phase == "evaluating":
                print("... thinking")
            puzzle = event.data.get("puzzle")
            if puzzle is not None:
                label = self.game.catalog.tier(self.game.state.difficulty).label
                print(f"\n=== [{label}] ===\n{puzzle.problem}\n")
        elif event.kind == "error":
            print(f"!! {event.message}")
        elif event.kind == "hint":
            print(f"Hint: {event.message}")
        elif event.kind == "feedback":
            print(f"{self.game.catalog.incorrect_label}: {event.message}")
        elif event.kind == "finished":
            d = event.data
            title = "Solved!" if d.get("outcome") == "solved" else "Gave up"
            print(f"\n*** {title} ***")
            print(f"Truth: {d.get('solution')}")
            print(f"Questions: {d.get('question_count')}  yes: {d.get('yes_count')}  no: {d.get('no_count')}")
            print("Type /next for another round or /quit.")

    def show_record(self, record):
        if record is not None:
            print(f"  Q{self.game.state.question_count}: {record.question} -> {record.displayed_answer}")


async def _read(prompt: str) -> str:
    return (await asyncio.to_thread(input, prompt)).strip()


async def run(game: Game, view: TerminalView):
    try:
        await _loop(game, view)
    finally:
        await game.oracle.aclose()


async def _loop(game: Game, view: TerminalView):
    await game.start()
    while True:
        if game.state.phase == "idle":
            again = await _read("Generation failed. Try again? [y/N] ")
            if again.lower() != "y":
                return
            await game.start()
            continue
        line = await _read("> ")
        if not line:
            continue
        if line == "/quit":
            return
        if line == "/hint":
            await game.hint()
        elif line.startswith("/guess"):
            text = line[len("/guess"):].strip() or await _read("Your deduction: ")
            await game.guess(text)
        elif line == "/giveup":
            answer = await _read("Give up and reveal the truth? [y/N] ")
            game.give_up(confirmed=answer.lower() == "y")
        elif line == "/next":
            await game.restart()
        elif line.startswith("/difficulty"):
            tier = line[len("/difficulty"):].strip().lower()
            try:
                game.set_difficulty(tier)
                print(f"Next round difficulty: {tier}")
            except ValueError as e:
                print(e)
        elif line.startswith("/"):
            print(__doc__)
        elif game.state.phase == "finished":
            print("This round is over. Type /next or /quit.")
        else:
            view.show_record(await game.ask(line))


if __name__ == "__main__":
    ap = argparse.ArgumentParser(description="Play turtle soup against an LLM host.")
    ap.add_argument("--difficulty", choices=DIFFICULTIES, default=None, help="Difficulty tier of the first round")
    ap.add_argument("--language", choices=LANGUAGES, default=None, help="Prompt/answer language")
    ap.add_argument("--proxy-url", default=None, help="Relay URL (e.g. http://localhost:8000/api/chat); bypasses the local API key")
    ap.add_argument("--verbose-llm", action="store_true", help="Log raw oracle replies")
    ap.add_argument("--log-level", default="WARNING", help="Python logging level (e.g., INFO, DEBUG)")
    args = ap.parse_args()

    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.WARNING), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    log = logging.getLogger("play")

    settings = dataclasses.replace(
        SETTINGS,
        proxy_url=args.proxy_url if args.proxy_url is not None else SETTINGS.proxy_url,
        verbose_llm=args.verbose_llm or SETTINGS.verbose_llm,
    )
    try:
        oracle = OracleClient.from_settings(settings)
    except ConfigurationError as e:
        raise SystemExit(str(e))

    cfg = GameConfig(difficulty=args.difficulty or settings.difficulty, language=args.language or settings.language)
    game = Game(oracle, cfg=cfg)
    view = TerminalView(game)
    log.info("Starting game: difficulty=%s language=%s proxy=%s", cfg.difficulty, cfg.language, bool(settings.proxy_url))
    print(__doc__)
    try:
        asyncio.run(run(game, view))
    except (KeyboardInterrupt, EOFError):
        print()
