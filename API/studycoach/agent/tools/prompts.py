from studycoach.core.settings import settings
from studycoach.study.models import StudySessionState

_QUESTION_TYPE_LABELS = {
    "multiple-choice": "multiple-choice",
    "true-false": "true/false",
    "short-answer": "short-answer",
    "flashcard": "flashcard",
}


def question_type_guidance() -> str:
    enabled = [t for t in settings.enabled_question_types if t in _QUESTION_TYPE_LABELS]
    if not enabled:
        enabled = list(_QUESTION_TYPE_LABELS)
    if len(enabled) == 1:
        return f"Only use {_QUESTION_TYPE_LABELS[enabled[0]]} questions (questionType={enabled[0]})"
    labels = ", ".join(_QUESTION_TYPE_LABELS[t] for t in enabled)
    return f"Mix question types for variety; allowed types: {labels}"


def format_mastery_table(state: StudySessionState) -> str:
    return "\n".join(
        f"- {m.topic}: {m.level}% ({m.questions_correct}/{m.questions_answered} correct)"
        for m in state.mastery_levels
    )


def build_system_prompt(state: StudySessionState) -> str:
    threshold = settings.mastery_threshold
    easy_max = settings.difficulty_easy_max
    medium_max = settings.difficulty_medium_max
    return (
        "You are an adaptive AI tutor conducting a study session. "
        f"Your goal is to help the student master these topics: {', '.join(state.topics)}.\n\n"
        "Current Mastery Levels:\n"
        f"{format_mastery_table(state)}\n\n"
        "Your responsibilities:\n"
        "1. When calling get_next_study_step:\n"
        "   - Choose topics with lower mastery levels, but vary them; "
        "**DO NOT give the same topic in a row,** even if it has the lowest mastery.\n"
        f"   - {question_type_guidance()}\n"
        "   - Don't give the exact same question with the same answers twice in one session\n"
        f"   - Match difficulty to current mastery (0-{easy_max}% = easy, "
        f"{easy_max + 1}-{medium_max}% = medium, {medium_max + 1}-100% = hard)\n"
        "   - Create clear, educational questions\n"
        "   - **CRITICAL: For multiple-choice questions, ensure that ONLY ONE answer option is correct. "
        "All other options must be clearly wrong.**\n"
        "   - If a question naturally has multiple valid answers, rephrase it or use short-answer instead\n"
        "   - For multiple-choice and true-false questions, provide a helpful explanation for EACH option\n"
        "   - CRITICAL: Do NOT add labels like A), B), C), D) to your questions or answer options.\n"
        "   - CRITICAL: The correctAnswer field must EXACTLY match the 'text' field of the correct option, "
        'not a letter like "A" or "B"\n\n'
        "2. When calling evaluate_study_response:\n"
        "   - Be encouraging but honest in your assessment\n"
        "   - Provide educational explanations that teach the concept\n"
        "   - You can include masteryUpdates but they will be recalculated automatically based on performance\n"
        f"   - Recommend ending when all topics reach {threshold}%+ mastery\n\n"
        "Be supportive and adaptive. Focus on helping the student truly understand the material."
    )
