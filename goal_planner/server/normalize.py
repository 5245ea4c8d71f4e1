# server/normalize.py
"""
Turn raw model text into a clean task list.

The model is asked for JSON but often wraps it in ```json fences, and it
tends to leave out fields. This module:
  - strips fence markers and parses the JSON
  - drops entries that are not usable tasks
  - fills in id / dueDate / priority / notes / emoji so every task the
    client sees has all six fields
"""

import json
import random
import re
from datetime import date, timedelta
from typing import Any, Dict, FrozenSet, Iterable, List, Optional

from .errors import InvalidModelOutput

PRIORITIES = ("low", "medium", "high")

EMOJI_PALETTE = ("📝", "✅", "🚀", "📌", "🎯", "💡", "📅", "⏰", "🔥", "⭐")

HORIZON_DAYS: Dict[str, int] = {"today": 0, "week": 7}

# Fields a pipeline may force to the server-side default
DEFAULTABLE_FIELDS = frozenset({"dueDate", "priority", "emoji"})

_JSON_FENCE = re.compile(r"```json", re.IGNORECASE)


def strip_code_fences(text: str) -> str:
    """Drop the first ```json marker, then every ``` marker, then trim."""
    cleaned = _JSON_FENCE.sub("", text, count=1)
    return cleaned.replace("```", "").strip()


def parse_model_output(raw: str) -> List[Any]:
    """
    Clean and parse model text, returning the raw `tasks` entries.

    A document without `tasks` is an empty plan. Anything that is not JSON,
    not an object, or has a non-list `tasks` raises InvalidModelOutput.
    """
    cleaned = strip_code_fences(raw)
    try:
        data = json.loads(cleaned)
    except (ValueError, RecursionError):
        # deeply nested input raises RecursionError, not JSONDecodeError
        print("[normalize] Invalid JSON from model (first 200 chars):", cleaned[:200])
        raise InvalidModelOutput("Model returned invalid JSON", raw=cleaned)

    if not isinstance(data, dict):
        raise InvalidModelOutput("Model did not return a valid tasks array", raw=data)

    tasks = data.get("tasks")
    if tasks is None:
        return []
    if not isinstance(tasks, list):
        raise InvalidModelOutput("Model did not return a valid tasks array", raw=data)
    return tasks


def default_due_date(idx: int, horizon: str, today: date) -> str:
    """Spread tasks linearly over the horizon window, clamped to its end."""
    horizon_days = HORIZON_DAYS[horizon]
    offset_days = min(int((idx / 6) * horizon_days), horizon_days)
    return (today + timedelta(days=offset_days)).isoformat()


def _title_of(item: Any) -> Optional[str]:
    if not isinstance(item, dict):
        return None
    title = item.get("title")
    if not isinstance(title, str) or not title.strip():
        return None
    return title


def _unique_id(candidate: str, used: set) -> str:
    if candidate not in used:
        return candidate
    n = 2
    while f"{candidate}-{n}" in used:
        n += 1
    return f"{candidate}-{n}"


def normalize_tasks(
    items: Iterable[Any],
    horizon: str,
    rng: Optional[random.Random] = None,
    today: Optional[date] = None,
    forced_defaults: FrozenSet[str] = frozenset(),
) -> List[Dict[str, str]]:
    """
    Fill in every missing task field.

    Entries without a usable title are dropped; `idx` counts the kept tasks,
    so default ids run task-0, task-1, ... without gaps. Fields named in
    `forced_defaults` always take the server-side default.
    """
    rng = rng or random.Random()
    today = today or date.today()

    out: List[Dict[str, str]] = []
    used_ids: set = set()
    for item in items:
        title = _title_of(item)
        if title is None:
            print("[normalize] Dropping task without a title:", repr(item)[:120])
            continue

        idx = len(out)

        raw_id = item.get("id")
        task_id = str(raw_id) if raw_id not in (None, "") else f"task-{idx}"
        task_id = _unique_id(task_id, used_ids)
        used_ids.add(task_id)

        due_date = item.get("dueDate")
        if "dueDate" in forced_defaults or not isinstance(due_date, str) or not due_date:
            due_date = default_due_date(idx, horizon, today)

        priority = item.get("priority")
        priority = priority.lower() if isinstance(priority, str) else None
        if "priority" in forced_defaults or priority not in PRIORITIES:
            priority = rng.choice(PRIORITIES)

        notes = item.get("notes")
        notes = "" if notes is None else str(notes)

        emoji = item.get("emoji")
        if "emoji" in forced_defaults or not isinstance(emoji, str) or not emoji:
            emoji = rng.choice(EMOJI_PALETTE)

        out.append(
            {
                "id": task_id,
                "title": title,
                "dueDate": due_date,
                "priority": priority,
                "notes": notes,
                "emoji": emoji,
            }
        )
    return out


def normalize_model_output(
    raw: str,
    horizon: str,
    rng: Optional[random.Random] = None,
    today: Optional[date] = None,
    forced_defaults: FrozenSet[str] = frozenset(),
) -> List[Dict[str, str]]:
    return normalize_tasks(
        parse_model_output(raw),
        horizon,
        rng=rng,
        today=today,
        forced_defaults=forced_defaults,
    )
