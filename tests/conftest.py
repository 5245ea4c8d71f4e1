import asyncio
import json
import os
import random
import sys
from datetime import date
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

# Make `goal_planner` importable without an editable install
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from goal_planner.server import app as app_module  # noqa: E402
from goal_planner.server.status_store import InMemoryPlanStatusStore  # noqa: E402

TODAY = date(2026, 10, 19)

LAUNCH_A_BLOG_FRAGMENTS = [
    '```json\n{"ta',
    'sks":[{"title":"Pick a platform"},{"ti',
    'tle":"Write first post"}]}\n```',
]


class FakeModel:
    """Stands in for the Anthropic model: replays fragments, optionally fails."""

    def __init__(
        self,
        fragments: Optional[List[str]] = None,
        error: Optional[BaseException] = None,
        hang: bool = False,
    ):
        self.fragments = list(fragments or [])
        self.error = error
        self.hang = hang
        self.prompts: List[str] = []
        self.closed = False

    @property
    def calls(self) -> int:
        return len(self.prompts)

    async def stream_text(self, prompt: str):
        self.prompts.append(prompt)
        try:
            for fragment in self.fragments:
                yield fragment
            if self.hang:
                await asyncio.sleep(30)
            if self.error is not None:
                raise self.error
        finally:
            self.closed = True


def parse_sse(body: str) -> List[Dict[str, Any]]:
    events = []
    for frame in body.split("\n\n"):
        frame = frame.strip()
        if not frame:
            continue
        assert frame.startswith("data: "), frame
        events.append(json.loads(frame[len("data: "):]))
    return events


def collect(frames) -> List[Dict[str, Any]]:
    """Drain an async generator of SSE frames into parsed events."""

    async def _drain():
        return [frame async for frame in frames]

    return parse_sse("".join(asyncio.run(_drain())))


@pytest.fixture
def fake_model() -> FakeModel:
    return FakeModel(LAUNCH_A_BLOG_FRAGMENTS)


@pytest.fixture
def status_store() -> InMemoryPlanStatusStore:
    return InMemoryPlanStatusStore(ttl=60, max_entries=10)


@pytest.fixture
def client(fake_model, status_store):
    app = app_module.app
    app.dependency_overrides[app_module.get_model] = lambda: fake_model
    app.dependency_overrides[app_module.get_rng] = lambda: random.Random(7)
    app.dependency_overrides[app_module.get_today] = lambda: TODAY
    app.dependency_overrides[app_module.get_upstream_timeout] = lambda: 0.5
    app.dependency_overrides[app_module.get_status_store] = lambda: status_store
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
