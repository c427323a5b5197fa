"""
LLM client used by the AI coach, the conversation summarizer, problem
drafting and gallery approach analysis.
Wraps a single cached OpenAI client built from settings.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from openai import OpenAI, OpenAIError

from pythink.core.config import settings
from pythink.core.errors import AIUnavailableError

logger = logging.getLogger(__name__)

# Global client cache
_client_instance: Optional[OpenAI] = None

AI_LEVEL_GUIDANCE = {
    1: "Only ask guiding questions. Never state the answer or show code.",
    2: "Give conceptual hints about the Python ideas involved. No code.",
    3: "You may explain the approach in pseudocode. No runnable Python.",
    4: "You may show short code examples for a similar, different task.",
}


def reload_client() -> OpenAI:
    """Build a fresh client from the current settings."""
    global _client_instance

    if not settings.OPENAI_API_KEY:
        raise AIUnavailableError("OPENAI_API_KEY is not configured")

    _client_instance = OpenAI(api_key=settings.OPENAI_API_KEY)
    logger.info("LLM client initialised")
    return _client_instance


def _get_client() -> OpenAI:
    global _client_instance

    if _client_instance is None:
        _client_instance = reload_client()

    return _client_instance


def _complete(messages: List[Dict[str, str]], max_tokens: int, json_mode: bool = False) -> str:
    client = _get_client()
    kwargs: Dict[str, Any] = {}
    if json_mode:
        kwargs["response_format"] = {"type": "json_object"}
    response = client.chat.completions.create(
        model=settings.OPENAI_MODEL,
        messages=messages,
        max_tokens=max_tokens,
        **kwargs,
    )
    return (response.choices[0].message.content or "").strip()


def _system_prompt(problem_title: str, problem_description: str, ai_level: int, student_code: str | None) -> str:
    parts = [
        "You are a Python coach for high-school students.",
        AI_LEVEL_GUIDANCE.get(ai_level, AI_LEVEL_GUIDANCE[1]),
        f"Problem: {problem_title}",
        problem_description,
    ]
    if student_code:
        parts.append(f"Student's current code:\n{student_code}")
    return "\n\n".join(parts)


def coach_reply(
    *,
    problem_title: str,
    problem_description: str,
    ai_level: int,
    messages: List[Dict[str, Any]],
    student_code: str | None = None,
) -> str:
    """
    Assistant reply for the conversation so far.

    Raises:
        AIUnavailableError: no API key, or the LLM request failed
    """
    chat = [
        {
            "role": "system",
            "content": _system_prompt(problem_title, problem_description, ai_level, student_code),
        }
    ]
    chat.extend(
        {"role": m["role"], "content": str(m.get("content", ""))}
        for m in messages
        if m.get("role") in ("user", "assistant")
    )

    try:
        return _complete(chat, settings.COACH_MAX_TOKENS)
    except OpenAIError as e:
        logger.error(f"Coach request failed: {e}", exc_info=True)
        raise AIUnavailableError("AI coach request failed") from e


def summarize_conversation(messages: List[Dict[str, Any]], problem_title: str) -> Optional[str]:
    """
    Short teacher-facing summary of a coach conversation, or None when
    there is nothing to summarize.
    """
    if not messages:
        return None

    transcript = "\n\n".join(
        f"{'Student' if m.get('role') == 'user' else 'AI'}: {m.get('content', '')}"
        for m in messages
    )
    prompt = (
        f"Summarize this Python tutoring conversation for the teacher.\n"
        f"Problem: {problem_title}\n"
        f"List: number of questions, main question, concept the student struggled with, "
        f"progress (solved / in progress / stuck), whether the teacher should step in.\n\n"
        f"{transcript}"
    )

    try:
        return _complete([{"role": "user", "content": prompt}], settings.SUMMARY_MAX_TOKENS) or None
    except OpenAIError as e:
        logger.error(f"Summary request failed: {e}", exc_info=True)
        raise AIUnavailableError("summary request failed") from e


# ------------------------------------------------------------
# Problem drafting
# ------------------------------------------------------------

PROBLEM_SYSTEM_PROMPT = """You write Python practice problems for high-school students.

Every problem must admit at least two reasonable solution approaches
(for example a loop versus a built-in, slicing versus indexing), so the
class can compare solutions afterwards.

Rules:
- Students read input with input() and write output with print().
- Give 3 to 5 test cases; input lines are separated by "\\n".
- Give 3 hints, from gentle to specific, none of which reveals the code.
- List the expected approaches as {"tag": ..., "description": ...}.
- difficulty is an integer from 1 to 5.
- category is one of: output, logic, loop, string, list, function, algorithm.

Each problem is a JSON object with the keys: title, description,
difficulty, category, starter_code, test_cases (list of
{"input", "expected_output"}), hints (list of strings),
expected_approaches, and explanation when asked for."""


def _parse_json(text: str) -> Any:
    """json.loads, falling back to the first balanced {...} block."""
    try:
        return json.loads(text)
    except ValueError:
        pass

    start = text.find("{")
    if start == -1:
        return None
    depth = 0
    for idx in range(start, len(text)):
        ch = text[idx]
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                try:
                    return json.loads(text[start : idx + 1])
                except ValueError:
                    return None
    return None


def generate_problems(
    *,
    prompt: str,
    count: int = 3,
    difficulty: int | None = None,
    category: str | None = None,
    reference_problem: Dict[str, Any] | None = None,
    include_explanation: bool = False,
) -> List[Dict[str, Any]]:
    """
    Draft `count` problems from a teacher's request.

    Returns the raw problem objects; callers validate them.

    Raises:
        AIUnavailableError: no API key, the request failed, or the reply
            held no problem list
    """
    lines = [f"Write {count} problem(s) for this request: {prompt}"]
    if difficulty:
        lines.append(f"Difficulty: {difficulty}")
    if category:
        lines.append(f"Category: {category}")
    if reference_problem:
        lines.append(
            "Follow the style and level of this existing problem:\n"
            + json.dumps(reference_problem, ensure_ascii=False, default=str)
        )
    if include_explanation:
        lines.append(
            "Add an \"explanation\" walking through each expected approach "
            "with example code."
        )
    lines.append('Reply with a JSON object {"problems": [...]}.')

    max_tokens = settings.GENERATION_MAX_TOKENS * (2 if include_explanation else 1)
    try:
        raw = _complete(
            [
                {"role": "system", "content": PROBLEM_SYSTEM_PROMPT},
                {"role": "user", "content": "\n\n".join(lines)},
            ],
            max_tokens,
            json_mode=True,
        )
    except OpenAIError as e:
        logger.error(f"Problem generation failed: {e}", exc_info=True)
        raise AIUnavailableError("problem generation request failed") from e

    data = _parse_json(raw)
    if isinstance(data, dict):
        data = data.get("problems")
    if not isinstance(data, list):
        logger.warning(f"Unparseable problem generation reply: {raw[:200]!r}")
        raise AIUnavailableError("AI reply did not contain a problem list")

    return [p for p in data if isinstance(p, dict)][:count]


def revise_problem(problem: Dict[str, Any], feedback: str) -> Dict[str, Any]:
    """
    Rewrite one problem following teacher feedback.

    Raises:
        AIUnavailableError: no API key, the request failed, or the reply
            was not a JSON object
    """
    user_prompt = (
        "Revise this problem according to the teacher's feedback.\n\n"
        f"Problem:\n{json.dumps(problem, ensure_ascii=False, default=str)}\n\n"
        f"Feedback: {feedback}\n\n"
        "Reply with the complete revised problem as one JSON object."
    )
    try:
        raw = _complete(
            [
                {"role": "system", "content": PROBLEM_SYSTEM_PROMPT},
                {"role": "user", "content": user_prompt},
            ],
            settings.GENERATION_MAX_TOKENS,
            json_mode=True,
        )
    except OpenAIError as e:
        logger.error(f"Problem revision failed: {e}", exc_info=True)
        raise AIUnavailableError("problem revision request failed") from e

    data = _parse_json(raw)
    if isinstance(data, dict) and isinstance(data.get("problem"), dict):
        data = data["problem"]
    if not isinstance(data, dict):
        logger.warning(f"Unparseable problem revision reply: {raw[:200]!r}")
        raise AIUnavailableError("AI reply did not contain a problem")
    return data


# ------------------------------------------------------------
# Gallery approach analysis
# ------------------------------------------------------------

def analyze_solutions(codes: List[str], problem_title: str) -> Optional[str]:
    """
    Teacher-facing comparison of the approaches in a set of passing
    solutions. None when there are fewer than two to compare.
    """
    if len(codes) < 2:
        return None

    listing = "\n\n".join(
        f"--- Solution {i} ---\n{code}" for i, code in enumerate(codes, start=1)
    )
    prompt = (
        f"These are students' passing solutions to the Python problem \"{problem_title}\".\n"
        "1. Group them by approach; name each approach and list its solution numbers.\n"
        "2. Compare the approaches: readability, efficiency, Python idioms used.\n"
        "3. Suggest two questions the teacher can use to start a class discussion.\n"
        "Do not name students.\n\n"
        f"{listing}"
    )

    try:
        return _complete([{"role": "user", "content": prompt}], settings.ANALYSIS_MAX_TOKENS) or None
    except OpenAIError as e:
        logger.error(f"Approach analysis failed: {e}", exc_info=True)
        raise AIUnavailableError("approach analysis request failed") from e
