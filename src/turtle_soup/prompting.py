"""
Prompt builders and catalogs for the oracle.

Each catalog bundles the system instructions, the templates with {PLACEHOLDER}
tokens substituted per request, the verdict tokens the answers are matched
against, and the player-facing strings (labels, lead-ins, default feedback).
Templates embed literal JSON, so substitution is a plain replace rather than
str.format.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict

PLACEHOLDER_RE = re.compile(r"\{([A-Z_]+)\}")


@dataclass(frozen=True)
class DifficultyTier:
    """One named difficulty configuration controlling the generation rubric."""

    name: str  # "easy" | "normal" | "hard"
    label: str
    rubric: str


@dataclass(frozen=True)
class PromptCatalog:
    language: str

    generation_system: str
    generation_template: str
    question_system: str
    question_template: str
    guess_template: str
    hint_system: str
    hint_template: str

    # Verdict tokens, matched by substring containment (whole words when whole_word_tokens is set)
    yes_token: str
    no_token: str
    undeterminable_token: str
    incorrect_label: str
    default_guess_feedback: str

    # Error lead-ins shown before the failure reason
    generation_failed: str
    answer_failed: str
    hint_failed: str
    reason_prefix: str

    tiers: Dict[str, DifficultyTier] = field(default_factory=dict)
    whole_word_tokens: bool = False

    def tier(self, name: str) -> DifficultyTier:
        try:
            return self.tiers[name]
        except KeyError:
            raise ValueError(f"Unknown difficulty {name!r}; expected one of {', '.join(self.tiers)}") from None


JA_TIERS = {
    "easy": DifficultyTier(
        name="easy",
        label="初級",
        rubric="""【難易度：初級】
- シンプルで分かりやすい状況
- 論理的な飛躍が少ない
- 5〜10回程度の質問で解ける
- 日常的なシチュエーション""",
    ),
    "normal": DifficultyTier(
        name="normal",
        label="中級",
        rubric="""【難易度：中級】
- やや複雑な状況設定
- 少しひねりのある展開
- 10〜20回程度の質問で解ける
- 意外性のある真相""",
    ),
    "hard": DifficultyTier(
        name="hard",
        label="上級",
        rubric="""【難易度：上級】
- 非常に不可解で複雑な状況
- 大きな発想の転換が必要
- 20回以上の質問が必要になることも
- 驚きの真相、哲学的・心理的な深み""",
    ),
}

JA_GENERATION_TEMPLATE = """あなたは「ウミガメのスープ」（水平思考クイズ）の出題者です。
以下の条件で新しい問題を1つ作成してください：

{DIFFICULTY_RUBRIC}

【共通条件】
- 一見不可解で興味を引く状況を提示
- 論理的に解決可能な謎
- 「はい」「いいえ」の質問で真相に辿り着ける
- 日本語で自然な文章
- ユニークで創造的な設定

以下のJSON形式で回答してください：
{
  "problem": "問題文（不可解な状況の描写）",
  "answer": "真相（なぜその状況が起きたのかの説明）"
}

JSONのみを出力してください。"""

JA_QUESTION_TEMPLATE = """あなたは「ウミガメのスープ」の出題者です。

【問題】
{PROBLEM}

【真相】
{SOLUTION}

【プレイヤーの質問】
{QUESTION}

この質問に対して、真相を踏まえて回答してください。

回答は必ず以下のいずれか：
- 「はい」- 質問の内容が真相において正しい場合
- 「いいえ」- 質問の内容が真相において正しくない場合
- 「どちらとも言えません」- 真相と関係ない、または判断できない場合

以下のJSON形式で回答：
{
  "answer": "はい" または "いいえ" または "どちらとも言えません",
  "comment": "必要に応じて簡潔な補足（オプション）"
}"""

JA_GUESS_TEMPLATE = """あなたは「ウミガメのスープ」の出題者です。

【問題】
{PROBLEM}

【真相】
{SOLUTION}

【プレイヤーの推理】
{GUESS}

プレイヤーの推理が真相と概ね一致しているか判定してください。
完全に同じでなくても、核心的な部分が合っていれば正解とします。

以下のJSON形式で回答：
{
  "isCorrect": true または false,
  "feedback": "正解の場合は祝福の言葉、不正解の場合は「もう少し質問を重ねてみましょう」という励まし"
}"""

JA_HINT_TEMPLATE = """あなたは「ウミガメのスープ」の出題者です。

【問題】
{PROBLEM}

【真相】
{SOLUTION}

プレイヤーにヒントを1つ与えてください。
- 直接答えを言わない
- 考える方向性を示唆する
- 1〜2文程度で簡潔に"""

JA_CATALOG = PromptCatalog(
    language="ja",
    generation_system="あなたは創造的な水平思考クイズの作家です。",
    generation_template=JA_GENERATION_TEMPLATE,
    question_system="あなたは公正で論理的なクイズの出題者です。",
    question_template=JA_QUESTION_TEMPLATE,
    guess_template=JA_GUESS_TEMPLATE,
    hint_system="あなたは親切なクイズの出題者です。",
    hint_template=JA_HINT_TEMPLATE,
    yes_token="はい",
    no_token="いいえ",
    undeterminable_token="どちらとも言えません",
    incorrect_label="不正解",
    default_guess_feedback="もう少し質問を重ねてみましょう！",
    generation_failed="問題の生成に失敗しました。",
    answer_failed="回答の取得に失敗しました。",
    hint_failed="ヒントの取得に失敗しました。",
    reason_prefix="理由: ",
    tiers=JA_TIERS,
)

EN_TIERS = {
    "easy": DifficultyTier(
        name="easy",
        label="Easy",
        rubric="""[Difficulty: Easy]
- A simple, easy-to-follow situation
- Few leaps of logic
- Solvable in about 5-10 questions
- An everyday setting""",
    ),
    "normal": DifficultyTier(
        name="normal",
        label="Normal",
        rubric="""[Difficulty: Normal]
- A somewhat intricate setup
- A story with a small twist
- Solvable in about 10-20 questions
- A surprising truth""",
    ),
    "hard": DifficultyTier(
        name="hard",
        label="Hard",
        rubric="""[Difficulty: Hard]
- A deeply puzzling, complex situation
- Requires a major shift in perspective
- May take more than 20 questions
- A startling truth with philosophical or psychological depth""",
    ),
}

EN_GENERATION_TEMPLATE = """You are the host of a "turtle soup" lateral-thinking puzzle.
Create one new puzzle under the following conditions:

{DIFFICULTY_RUBRIC}

[General conditions]
- Present a situation that seems baffling and draws the player in
- The mystery must be logically solvable
- The truth must be reachable through yes/no questions
- Natural English prose
- A unique, creative setting

Answer in the following JSON format:
{
  "problem": "The puzzle (a description of the baffling situation)",
  "answer": "The truth (why the situation happened)"
}

Output only the JSON."""

EN_QUESTION_TEMPLATE = """You are the host of a "turtle soup" puzzle.

[Puzzle]
{PROBLEM}

[Truth]
{SOLUTION}

[Player's question]
{QUESTION}

Answer the question based on the truth.

Your answer must be exactly one of:
- "Yes" - the question is true given the truth
- "No" - the question is false given the truth
- "Irrelevant" - unrelated to the truth, or cannot be determined

Answer in the following JSON format:
{
  "answer": "Yes" or "No" or "Irrelevant",
  "comment": "A brief remark if needed (optional)"
}"""

EN_GUESS_TEMPLATE = """You are the host of a "turtle soup" puzzle.

[Puzzle]
{PROBLEM}

[Truth]
{SOLUTION}

[Player's deduction]
{GUESS}

Judge whether the player's deduction broadly matches the truth.
It does not have to be identical; if the core of it is right, count it as correct.

Answer in the following JSON format:
{
  "isCorrect": true or false,
  "feedback": "Congratulations if correct; if incorrect, encouragement such as 'Try asking a few more questions'"
}"""

EN_HINT_TEMPLATE = """You are the host of a "turtle soup" puzzle.

[Puzzle]
{PROBLEM}

[Truth]
{SOLUTION}

Give the player one hint.
- Do not state the answer directly
- Suggest a direction to think in
- Keep it to 1-2 sentences"""

EN_CATALOG = PromptCatalog(
    language="en",
    generation_system="You are a creative author of lateral-thinking puzzles.",
    generation_template=EN_GENERATION_TEMPLATE,
    question_system="You are a fair and logical quiz host.",
    question_template=EN_QUESTION_TEMPLATE,
    guess_template=EN_GUESS_TEMPLATE,
    hint_system="You are a kind quiz host.",
    hint_template=EN_HINT_TEMPLATE,
    yes_token="Yes",
    no_token="No",
    undeterminable_token="Irrelevant",
    incorrect_label="Incorrect",
    default_guess_feedback="Try asking a few more questions!",
    generation_failed="Failed to generate a puzzle.",
    answer_failed="Failed to get an answer.",
    hint_failed="Failed to get a hint.",
    reason_prefix="Reason: ",
    tiers=EN_TIERS,
    whole_word_tokens=True,
)

CATALOGS: Dict[str, PromptCatalog] = {
    JA_CATALOG.language: JA_CATALOG,
    EN_CATALOG.language: EN_CATALOG,
}


def get_catalog(language: str | None) -> PromptCatalog:
    key = (language or "ja").lower()
    if key not in CATALOGS:
        raise ValueError(f"Unsupported language {language!r}; expected one of {', '.join(CATALOGS)}")
    return CATALOGS[key]


def render_custom_prompt(template: str, values: Dict[str, str]) -> str:
    """Replace known placeholders in the template. Unknown tokens are left intact.

    Substitution is single-pass, so player text containing "{SOLUTION}" is never expanded.
    """
    def _sub(m: re.Match) -> str:
        key = m.group(1)
        return values[key] if key in values else m.group(0)

    return PLACEHOLDER_RE.sub(_sub, template or "")


def build_generation_prompt(catalog: PromptCatalog, difficulty: str) -> str:
    tier = catalog.tier(difficulty)
    return render_custom_prompt(catalog.generation_template, {"DIFFICULTY_RUBRIC": tier.rubric})


def build_question_prompt(catalog: PromptCatalog, problem: str, solution: str, question: str) -> str:
    return render_custom_prompt(
        catalog.question_template,
        {"PROBLEM": problem, "SOLUTION": solution, "QUESTION": question},
    )


def build_guess_prompt(catalog: PromptCatalog, problem: str, solution: str, guess: str) -> str:
    return render_custom_prompt(
        catalog.guess_template,
        {"PROBLEM": problem, "SOLUTION": solution, "GUESS": guess},
    )


def build_hint_prompt(catalog: PromptCatalog, problem: str, solution: str) -> str:
    return render_custom_prompt(catalog.hint_template, {"PROBLEM": problem, "SOLUTION": solution})


def failure_message(lead_in: str, catalog: PromptCatalog, error: Exception) -> str:
    """Player-facing message: fixed lead-in, then the error's own message."""
    return f"{lead_in}\n{catalog.reason_prefix}{error}"
