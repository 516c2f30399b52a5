"""get_next_study_step: generate the next question from the session's mastery picture."""
from studycoach.agent.schemas import AgentMessage, system_message, user_message
from studycoach.agent.tools.prompts import build_system_prompt
from studycoach.study.mastery import get_difficulty_for_mastery
from studycoach.study.models import StudySessionState

TOOL_NAME = "get_next_study_step"

TOOL = {
    "type": "function",
    "function": {
        "name": TOOL_NAME,
        "description": (
            "Generate the next study question based on the current mastery levels and session context. "
            "Choose a topic that needs more practice, select appropriate difficulty, and create an engaging question."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "questionType": {
                    "type": "string",
                    "description": "The type of question to generate",
                    "enum": ["multiple-choice", "true-false", "short-answer", "flashcard"],
                },
                "topic": {
                    "type": "string",
                    "description": "The topic this question covers (should match one of the session topics)",
                },
                "difficulty": {
                    "type": "string",
                    "description": "Difficulty level appropriate for current mastery",
                    "enum": ["easy", "medium", "hard"],
                },
                "question": {
                    "type": "string",
                    "description": "The question text to show the user",
                },
                "options": {
                    "type": "array",
                    "description": (
                        "Answer options for multiple-choice and true-false questions. Each option must include "
                        "the answer text and an explanation of why it's correct/incorrect for instant feedback. "
                        "Do NOT add labels like A), B), C), D) to the option text."
                    ),
                    "items": {
                        "type": "object",
                        "properties": {
                            "text": {
                                "type": "string",
                                "description": "The answer option text WITHOUT any labels like A), B), C), D)",
                            },
                            "explanation": {
                                "type": "string",
                                "description": "Why this option is correct or incorrect. Be educational and encouraging.",
                            },
                        },
                        "required": ["text", "explanation"],
                    },
                },
                "correctAnswer": {
                    "type": "string",
                    "description": (
                        "The correct answer text that EXACTLY matches the 'text' field of the correct option. "
                        "Do NOT use labels like A, B, C, D."
                    ),
                },
                "reasoning": {
                    "type": "string",
                    "description": "Internal reasoning for why this question was chosen (mastery gaps, variety, etc.)",
                },
            },
            "required": ["questionType", "topic", "difficulty", "question", "correctAnswer", "reasoning"],
        },
    },
}


def _difficulty_guidance(state: StudySessionState) -> str:
    return "\n".join(
        f"  - {m.topic}: {get_difficulty_for_mastery(m.level)}" for m in state.mastery_levels
    )


def build_messages(state: StudySessionState) -> list[AgentMessage]:
    history = state.question_history
    if not history:
        request = "Start the study session by generating the first question."
    else:
        last = history[-1]
        recent = history[-3:]
        first_index = len(history) - len(recent) + 1
        lines = "\n".join(
            f"  {first_index + i}. {q.topic} ({q.difficulty})" for i, q in enumerate(recent)
        )
        request = (
            "Generate the next question based on the current mastery levels and progress.\n\n"
            f"Recent Question History:\n{lines}"
        )
        # A single-topic session cannot rotate topics.
        if len(state.topics) > 1:
            request += (
                f'\n\nIMPORTANT: The last question was about "{last.topic}". You MUST choose a DIFFERENT topic '
                f"for this next question, even if {last.topic} has the lowest mastery level. "
                "Vary the topics to maintain engagement."
            )
    if state.mastery_levels:
        request += f"\n\nSuggested difficulty by topic:\n{_difficulty_guidance(state)}"
    return [system_message(build_system_prompt(state)), user_message(request)]
