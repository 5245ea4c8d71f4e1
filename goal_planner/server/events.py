# server/events.py
import json
from typing import Any, Dict, List


def sse(payload: Dict[str, Any]) -> str:
    """Frame one JSON payload as a server-sent event."""
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


class EventEmitter:
    """
    Frames the messages of one plan request.

    Any number of `delta` frames, then exactly one terminal frame (`done` or
    `error`). Framing anything after the terminal frame is a bug in the
    caller and raises RuntimeError.
    """

    def __init__(self) -> None:
        self.terminated = False

    def _check_open(self, kind: str) -> None:
        if self.terminated:
            raise RuntimeError(f"cannot emit {kind!r} after a terminal event")

    def delta(self, content: str) -> str:
        self._check_open("delta")
        return sse({"type": "delta", "content": content})

    def done(self, tasks: List[Dict[str, Any]]) -> str:
        self._check_open("done")
        self.terminated = True
        return sse({"type": "done", "tasks": tasks})

    def error(self, message: str) -> str:
        self._check_open("error")
        self.terminated = True
        return sse({"type": "error", "error": message})
