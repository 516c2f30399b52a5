"""decide_next_action: the autonomous step that runs after every evaluation."""
from studycoach.agent.schemas import AgentMessage, system_message, user_message
from studycoach.agent.tools.prompts import build_system_prompt, format_mastery_table
from studycoach.core.settings import settings
from studycoach.study.models import StudySessionState

TOOL_NAME = "decide_next_action"

RECENT_WINDOW = 5

TOOL = {
    "type": "function",
    "function": {
        "name": TOOL_NAME,
        "description": (
            "Autonomously decide what action to take next in the study session. Analyze the user's performance "
            "patterns, mastery levels, and session context to choose the best next step: continue with more "
            "questions, suggest a hint proactively, or end the session when true mastery is achieved."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "action": {
                    "type": "string",
                    "description": "The autonomous action to take next",
                    "enum": ["continue_session", "suggest_hint", "end_session"],
                },
                "reasoning": {
                    "type": "string",
                    "description": (
                        "Why this action is the best choice right now: the patterns, performance trends, "
                        "or mastery indicators that led to this decision."
                    ),
                },
                "hintText": {
                    "type": "string",
                    "description": "Required if action=suggest_hint. Guides without revealing the answer.",
                },
                "sessionSummary": {
                    "type": "string",
                    "description": "Required if action=end_session. Summary of what the user mastered during this session.",
                },
            },
            "required": ["action", "reasoning"],
        },
    },
}


def build_messages(state: StudySessionState) -> list[AgentMessage]:
    recent_questions = state.question_history[-RECENT_WINDOW:]
    recent_evaluations = state.evaluation_history[-RECENT_WINDOW:]
    questions_by_id = {q.id: q for q in state.question_history}
    recent_correct = sum(1 for e in recent_evaluations if e.is_correct)
    recent_total = len(recent_evaluations)
    success_rate = round(recent_correct / recent_total * 100) if recent_total else 0

    performance_lines = []
    for i, evaluation in enumerate(recent_evaluations):
        question = questions_by_id.get(evaluation.question_id)
        if question is None and i < len(recent_questions):
            question = recent_questions[i]
        label = f"{question.topic} ({question.difficulty})" if question else "unknown"
        verdict = "✓ Correct" if evaluation.is_correct else "✗ Incorrect"
        performance_lines.append(f"  {i + 1}. {label} - {verdict}")

    threshold = settings.mastery_threshold
    request = (
        "The user just completed a question and you've evaluated their answer. "
        "Now you must autonomously decide what to do next.\n\n"
        "## Current Session State\n\n"
        f"Performance Summary:\n{format_mastery_table(state)}\n\n"
        f"Recent Performance (last {recent_total} questions):\n"
        f"{chr(10).join(performance_lines)}\n"
        f"Recent Success Rate: {success_rate}%\n\n"
        f"Total Questions Answered: {len(state.answer_history)}\n\n"
        "## Your Autonomous Decision\n\n"
        "**continue_session** - Continue with another question\n"
        "  Use when: User is progressing well, topics need more practice, normal flow. "
        f"DO NOT use if all topics have reached {threshold}%+ mastery.\n"
        "  Result: Next question loads immediately (no user confirmation needed)\n\n"
        "**suggest_hint** - Proactively suggest a hint for the upcoming question\n"
        "  Use when: You predict the next topic will be challenging based on past performance. "
        "Don't use for their first question on a topic.\n"
        "  Result: User is asked whether they want the hint before seeing the next question\n\n"
        "**end_session** - Recommend ending the study session\n"
        f"  Use when: Strong mastery across all topics (typically {threshold}%+ on all topics), "
        "consistent performance. Consider ending after 8-10 questions if mastery is high.\n"
        "  Result: User sees a session summary and can end or continue\n\n"
        "Make your decision based on patterns, not single data points."
    )
    return [system_message(build_system_prompt(state)), user_message(request)]
