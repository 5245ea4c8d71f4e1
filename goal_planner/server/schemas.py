# server/schemas.py
"""
Pydantic schemas for the plan relay.

- /plan, /plan/stream, /plan/start   (PlanIn)
- /plan?stream=false                 (PlanOut, Task)
- /plan/start                        (PlanStartOut)
- /plan/status/{planId}              (PlanStatusOut)
"""

from typing import List, Literal, Optional

from pydantic import BaseModel


class PlanIn(BaseModel):
    # Both optional here so a missing field becomes our own 400,
    # not FastAPI's generic 422.
    goal: Optional[str] = None
    horizon: Optional[str] = None


class Task(BaseModel):
    id: str
    title: str
    # YYYY-MM-DD
    dueDate: str
    priority: Literal["low", "medium", "high"]
    notes: str = ""
    emoji: str


class PlanOut(BaseModel):
    tasks: List[Task]


class PlanStartOut(BaseModel):
    planId: str
    status: Literal["pending"] = "pending"


class PlanStatusOut(BaseModel):
    status: Literal["pending", "completed", "error"]
    plan: Optional[List[Task]] = None
    error: Optional[str] = None
