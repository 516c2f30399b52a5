"""evaluate_study_response: grade open answers, plus the local shortcut for closed-form questions."""
from __future__ import annotations

from studycoach.agent.schemas import AgentMessage, system_message, user_message
from studycoach.agent.tools.prompts import build_system_prompt
from studycoach.core.errors import PreconditionError
from studycoach.study.models import (
    CLOSED_FORM_TYPES,
    AnswerOption,
    EvaluateResponseArgs,
    StudyQuestion,
    StudySessionState,
)

TOOL_NAME = "evaluate_study_response"

TOOL = {
    "type": "function",
    "function": {
        "name": TOOL_NAME,
        "description": (
            "Evaluate the user's answer and update mastery levels. Provide clear feedback and determine "
            "whether to continue, change difficulty, or end the session."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "isCorrect": {
                    "type": "string",
                    "description": "Whether the answer is correct",
                    "enum": ["true", "false"],
                },
                "explanation": {
                    "type": "string",
                    "description": "Detailed explanation of why the answer is correct/incorrect, including teaching points",
                },
                "correctAnswer": {
                    "type": "string",
                    "description": "The correct answer (if not already shown)",
                },
                "masteryUpdates": {
                    "type": "array",
                    "description": "Updates to topic mastery levels. Must include an entry for the current topic being tested.",
                    "items": {
                        "type": "object",
                        "properties": {
                            "topic": {
                                "type": "string",
                                "description": "The topic name (must match one of the session topics)",
                            },
                            "newLevel": {
                                "type": "number",
                                "description": "The updated mastery level (0-100). Correct: increase by 10-15. Incorrect: decrease by 5-10.",
                            },
                            "reasoning": {
                                "type": "string",
                                "description": "Why this mastery level was chosen",
                            },
                        },
                        "required": ["topic", "newLevel", "reasoning"],
                    },
                },
                "recommendation": {
                    "type": "string",
                    "description": "What to do next in the session",
                    "enum": ["continue", "change-difficulty", "end-session"],
                },
            },
            "required": ["isCorrect", "explanation", "masteryUpdates", "recommendation"],
        },
    },
}


def build_messages(state: StudySessionState, answer: str) -> list[AgentMessage]:
    question = state.current_question
    if question is None:
        raise PreconditionError("No current question to evaluate")
    request = (
        f"Question: {question.question}\n\n"
        f"User's Answer: {answer}\n\n"
        f"Correct Answer: {question.correct_answer or 'Not provided'}\n\n"
        "Evaluate this answer and update the mastery levels accordingly. "
        "Be forgiving of minor typos in the user's answer."
    )
    return [system_message(build_system_prompt(state)), user_message(request)]


def supports_local_evaluation(question: StudyQuestion) -> bool:
    return question.type in CLOSED_FORM_TYPES and bool(question.options) and bool(question.correct_answer)


def _normalize(text: str) -> str:
    return " ".join(text.split()).casefold()


def _match_option(options: list[AnswerOption], answer: str) -> AnswerOption | None:
    for option in options:
        if option.text == answer:
            return option
    wanted = _normalize(answer)
    for option in options:
        if _normalize(option.text) == wanted:
            return option
    return None


def evaluate_locally(question: StudyQuestion, answer: str) -> EvaluateResponseArgs:
    """Grade a closed-form answer against the stored options without calling the agent.

    Mastery updates are left empty; the counter update owns the final level.
    """
    correct_answer = question.correct_answer or ""
    selected = _match_option(question.options or [], answer)
    if selected is not None:
        is_correct = selected.text == correct_answer or _normalize(selected.text) == _normalize(correct_answer)
        explanation = selected.explanation
    else:
        is_correct = _normalize(answer) == _normalize(correct_answer)
        explanation = ""
    if not explanation:
        explanation = "Correct!" if is_correct else f"The correct answer is: {correct_answer}"
    return EvaluateResponseArgs(
        is_correct=is_correct,
        explanation=explanation,
        correct_answer=correct_answer,
        mastery_updates=[],
        recommendation="continue",
    )
