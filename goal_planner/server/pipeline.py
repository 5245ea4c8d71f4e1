# server/pipeline.py
"""
The plan pipeline: prompt -> model stream -> normalized task list.

One PlanPipeline describes a route variant (which prompt to send, which task
fields the server always fills itself). The same consumer drives all of
them, either streaming SSE frames to the client as fragments arrive or
buffering the whole answer.
"""

import asyncio
import random
from contextlib import aclosing
from dataclasses import dataclass
from datetime import date
from typing import Any, AsyncIterator, Callable, Dict, FrozenSet, List, Optional, Protocol, Tuple

from . import config
from .errors import PlanError, PlanValidationError, UpstreamGenerationError
from .events import EventEmitter
from .normalize import DEFAULTABLE_FIELDS, HORIZON_DAYS, normalize_model_output
from .prompts import build_plan_prompt, build_titles_prompt
from .status_store import PlanStatusStore


class PlanModel(Protocol):
    def stream_text(self, prompt: str) -> AsyncIterator[str]: ...


@dataclass(frozen=True)
class PlanPipeline:
    name: str
    build_prompt: Callable[[str, str], str]
    forced_defaults: FrozenSet[str] = frozenset()


FULL_PLAN = PlanPipeline("plan", build_plan_prompt)

# legacy /plan/stream: titles come from the model, the rest from the server
TITLES_ONLY = PlanPipeline("plan/stream", build_titles_prompt, DEFAULTABLE_FIELDS)


def validate_plan_request(goal: Optional[str], horizon: Optional[str]) -> Tuple[str, str]:
    if not isinstance(goal, str) or not goal.strip():
        raise PlanValidationError()
    if horizon not in HORIZON_DAYS:
        raise PlanValidationError()
    return goal.strip(), horizon


async def iter_upstream(
    model: PlanModel,
    prompt: str,
    timeout: float = config.UPSTREAM_TIMEOUT,
) -> AsyncIterator[str]:
    """
    Yield the model's non-empty fragments in order.

    Any upstream failure, or the whole generation running past `timeout`
    seconds, surfaces as UpstreamGenerationError. The upstream stream is
    closed however iteration ends.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    fragments = model.stream_text(prompt)
    try:
        while True:
            try:
                async with asyncio.timeout_at(deadline):
                    fragment = await anext(fragments)
            except StopAsyncIteration:
                return
            except TimeoutError:
                print(f"[plan] Model did not finish within {timeout:g}s")
                raise UpstreamGenerationError(f"Model did not finish within {timeout:g}s")
            except UpstreamGenerationError:
                raise
            except Exception as exc:
                print("[plan] Model stream error:", repr(exc))
                raise UpstreamGenerationError(f"Model generation failed: {exc}") from exc

            if fragment:
                yield fragment
    finally:
        await fragments.aclose()


async def stream_plan_events(
    model: PlanModel,
    pipeline: PlanPipeline,
    goal: str,
    horizon: str,
    rng: Optional[random.Random] = None,
    today: Optional[date] = None,
    timeout: float = config.UPSTREAM_TIMEOUT,
) -> AsyncIterator[str]:
    """
    SSE frames for one request: a delta per fragment, then one done/error.

    Deltas already sent are not retracted when the answer later fails to
    parse. If the client goes away the ASGI server cancels this generator
    and the upstream stream is closed on the way out.
    """
    emitter = EventEmitter()
    buffer: List[str] = []
    prompt = pipeline.build_prompt(goal, horizon)

    try:
        async with aclosing(iter_upstream(model, prompt, timeout)) as fragments:
            async for fragment in fragments:
                buffer.append(fragment)
                yield emitter.delta(fragment)

        tasks = normalize_model_output(
            "".join(buffer),
            horizon,
            rng=rng,
            today=today,
            forced_defaults=pipeline.forced_defaults,
        )
    except PlanError as exc:
        print(f"[plan] /{pipeline.name} failed: {exc.message}")
        yield emitter.error(exc.message)
        return
    except asyncio.CancelledError:
        print(f"[plan] /{pipeline.name} client disconnected; upstream closed")
        raise
    except Exception as exc:
        print(f"[plan] /{pipeline.name} unexpected error:", repr(exc))
        yield emitter.error("Server error")
        return

    yield emitter.done(tasks)


async def generate_plan(
    model: PlanModel,
    pipeline: PlanPipeline,
    goal: str,
    horizon: str,
    rng: Optional[random.Random] = None,
    today: Optional[date] = None,
    timeout: float = config.UPSTREAM_TIMEOUT,
) -> List[Dict[str, Any]]:
    """Buffered variant: consume the whole stream, then normalize."""
    prompt = pipeline.build_prompt(goal, horizon)
    buffer: List[str] = []
    async with aclosing(iter_upstream(model, prompt, timeout)) as fragments:
        async for fragment in fragments:
            buffer.append(fragment)

    return normalize_model_output(
        "".join(buffer),
        horizon,
        rng=rng,
        today=today,
        forced_defaults=pipeline.forced_defaults,
    )


async def run_plan_job(
    store: PlanStatusStore,
    plan_id: str,
    model: PlanModel,
    pipeline: PlanPipeline,
    goal: str,
    horizon: str,
    rng: Optional[random.Random] = None,
    today: Optional[date] = None,
    timeout: float = config.UPSTREAM_TIMEOUT,
) -> None:
    """Background generation for the legacy polling endpoints."""
    try:
        tasks = await generate_plan(
            model, pipeline, goal, horizon, rng=rng, today=today, timeout=timeout
        )
    except PlanError as exc:
        print(f"[status] plan {plan_id} failed: {exc.message}")
        store.fail(plan_id, exc.message)
        return
    except Exception as exc:
        print(f"[status] plan {plan_id} unexpected error:", repr(exc))
        store.fail(plan_id, "Server error")
        return

    store.complete(plan_id, tasks)
