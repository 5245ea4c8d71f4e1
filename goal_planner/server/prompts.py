# server/prompts.py
"""
Prompt templates sent to the model.

Both builders are pure: the same (goal, horizon) always yields the same text.
"""

from typing import Dict

HORIZON_TEXT: Dict[str, str] = {
    "today": "end of today",
    "week": "end of this week",
}

TASK_SCHEMA = (
    "Return ONLY valid JSON matching this shape:\n"
    "{\n"
    '  "tasks": [\n'
    "    {\n"
    '      "id": "string",\n'
    '      "title": "string",\n'
    '      "dueDate": "YYYY-MM-DD",\n'
    '      "priority": "low|medium|high",\n'
    '      "notes": "string (optional)",\n'
    '      "emoji": "string (optional)"\n'
    "    }\n"
    "  ]\n"
    "}\n"
)

TITLES_ONLY_SCHEMA = (
    "Return ONLY valid JSON matching this shape:\n"
    "{\n"
    '  "tasks": [\n'
    '    { "title": "string" }\n'
    "  ]\n"
    "}\n"
)


def build_plan_prompt(goal: str, horizon: str) -> str:
    """Full task-plan prompt: titles, due dates, priorities, notes, emoji."""
    horizon_text = HORIZON_TEXT[horizon]
    return (
        f'Create a concise, actionable task plan for the goal: "{goal}".\n'
        f"Spread tasks between now and the {horizon_text}.\n"
        "Keep 4–10 tasks max.\n"
        "Include realistic due dates.\n"
        f"{TASK_SCHEMA}"
    )


def build_titles_prompt(goal: str, horizon: str) -> str:
    # legacy /plan/stream: the server fills in everything except titles
    horizon_text = HORIZON_TEXT[horizon]
    return (
        f'Break the goal "{goal}" into 4–10 short, concrete tasks '
        f"that can be finished by the {horizon_text}.\n"
        "Only give each task a title.\n"
        f"{TITLES_ONLY_SCHEMA}"
    )
