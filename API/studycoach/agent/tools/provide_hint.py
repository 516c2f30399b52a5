"""provide_hint: the agent either calls the tool or declines in free text.

A decline is expected to look like::

    REASONING: <why no hint>
    MESSAGE: <what to tell the learner>

Parsing is best effort; unmatched content falls back to the default constants.
"""
from __future__ import annotations

import re

from studycoach.agent.schemas import AgentMessage, system_message, user_message
from studycoach.agent.tools.prompts import build_system_prompt
from studycoach.core.errors import PreconditionError
from studycoach.study.models import StudySessionState

TOOL_NAME = "provide_hint"

DEFAULT_DECLINE_REASONING = "AI decided not to provide a hint at this time"
DEFAULT_DECLINE_MESSAGE = "I believe you can solve this without a hint. Give it a try!"

_REASONING_RE = re.compile(r"REASONING:\s*(.+?)(?=MESSAGE:|$)", re.DOTALL)
_MESSAGE_RE = re.compile(r"MESSAGE:\s*(.+)", re.DOTALL)

TOOL = {
    "type": "function",
    "function": {
        "name": TOOL_NAME,
        "description": (
            "Provide a helpful hint when the user genuinely needs guidance. ONLY call this for difficult "
            "questions or when user's mastery is low (<60%). DO NOT call for easy questions or high mastery "
            "topics. The hint should guide thinking without revealing the answer."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "hint": {
                    "type": "string",
                    "description": "A hint that guides the user without directly revealing the answer.",
                },
                "reasoning": {
                    "type": "string",
                    "description": "Why you decided to provide a hint now (difficult topic, low mastery, complex question).",
                },
            },
            "required": ["hint", "reasoning"],
        },
    },
}


def build_messages(state: StudySessionState) -> list[AgentMessage]:
    question = state.current_question
    if question is None:
        raise PreconditionError("No current question for hint")

    mastery = state.mastery_for(question.topic)
    answered = mastery.questions_answered if mastery else 0
    correct = mastery.questions_correct if mastery else 0
    level = mastery.level if mastery else 0
    has_struggled = answered > 0 and correct < answered

    request = (
        "The user has been assigned the following question, and they'd like to request a hint:\n\n"
        f'Question: "{question.question}"\n'
        f"Topic: {question.topic}\n"
        f"Difficulty: {question.difficulty}\n\n"
        "Performance on this topic:\n"
        f"- Questions Answered: {answered}\n"
        f"- Questions Correct: {correct}\n"
        f"- Current Mastery: {level}%\n"
        f"- Has struggled with this topic: {'YES' if has_struggled else 'NO'}\n\n"
        "Decide whether to provide a hint. Call provide_hint ONLY if:\n"
        "- The user has answered questions on this topic incorrectly before (questionsCorrect < questionsAnswered)\n"
        "- A hint would be educational **without giving away the answer**\n\n"
        "DO NOT call provide_hint if:\n"
        "- This is the user's first question on this topic (questionsAnswered = 0)\n"
        "- The user recently answered a question on this topic correctly (within the last 3 questions)\n"
        "- The user has perfect accuracy on this topic\n"
        "- The question is easy and user has good mastery\n"
        "- The user has high mastery (>60%) in this topic\n"
        "- A hint would essentially reveal the answer\n\n"
        "If you choose not to provide a hint, respond without calling any tool, as plain text in this format:\n\n"
        "REASONING: [Why you decided not to provide a hint. Reference mastery level, question difficulty, "
        "or past performance.]\n\n"
        "MESSAGE: [Clearly state that a hint will not be provided. Brief, encouraging message to the user.]"
    )
    return [system_message(build_system_prompt(state)), user_message(request)]


def parse_hint_decline(content: str | None) -> tuple[str, str]:
    """Return ``(reasoning, message)`` extracted from a free-text decline."""
    text = content or ""
    reasoning_match = _REASONING_RE.search(text)
    message_match = _MESSAGE_RE.search(text)
    reasoning = (reasoning_match.group(1).strip() if reasoning_match else "") or text.strip()
    message = message_match.group(1).strip() if message_match else ""
    return reasoning or DEFAULT_DECLINE_REASONING, message or DEFAULT_DECLINE_MESSAGE
