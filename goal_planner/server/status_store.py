# server/status_store.py

from __future__ import annotations

import threading
import time
import uuid
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .errors import PlanNotFound

PENDING = "pending"
COMPLETED = "completed"
ERROR = "error"


@dataclass
class PlanStatus:
    status: str = PENDING
    plan: Optional[List[Dict[str, Any]]] = None
    error: Optional[str] = None
    created_at: float = field(default_factory=time.monotonic)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"status": self.status}
        if self.plan is not None:
            out["plan"] = self.plan
        if self.error is not None:
            out["error"] = self.error
        return out


class PlanStatusStore(ABC):
    """
    Status of background plan generations, keyed by planId.

    Subclasses provide get/set/delete; the lifecycle helpers below enforce
    that an entry leaves `pending` exactly once.
    """

    @abstractmethod
    def get(self, plan_id: str) -> PlanStatus:
        """Return the entry or raise PlanNotFound."""

    @abstractmethod
    def set(self, plan_id: str, status: PlanStatus) -> None:
        ...

    @abstractmethod
    def delete(self, plan_id: str) -> None:
        ...

    def create_pending(self) -> str:
        plan_id = uuid.uuid4().hex
        self.set(plan_id, PlanStatus())
        return plan_id

    def _transition(self, plan_id: str, status: PlanStatus) -> None:
        """
        Replace a pending entry; leave finished ones alone.

        Raises PlanNotFound for unknown or expired ids. Stores shared between
        threads override this so the check and the write are atomic.
        """
        if self.get(plan_id).status == PENDING:
            self.set(plan_id, status)

    def _finish(self, plan_id: str, status: PlanStatus) -> None:
        try:
            self._transition(plan_id, status)
        except PlanNotFound:
            print(f"[status] plan {plan_id} expired before it finished")

    def complete(self, plan_id: str, plan: List[Dict[str, Any]]) -> None:
        self._finish(plan_id, PlanStatus(status=COMPLETED, plan=plan))

    def fail(self, plan_id: str, message: str) -> None:
        self._finish(plan_id, PlanStatus(status=ERROR, error=message))


class InMemoryPlanStatusStore(PlanStatusStore):
    """
    Process-local store with TTL eviction and a size bound.

    Entries older than `ttl` seconds disappear; when more than `max_entries`
    exist the oldest go first. Good for a single instance; several instances
    behind a load balancer need a shared cache instead.
    """

    def __init__(
        self,
        ttl: float = 3600.0,
        max_entries: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: "OrderedDict[str, PlanStatus]" = OrderedDict()

    def _evict(self) -> None:
        now = self._clock()
        # insertion order == creation order, so expired entries sit at the front
        while self._entries:
            plan_id, status = next(iter(self._entries.items()))
            if now - status.created_at < self.ttl:
                break
            del self._entries[plan_id]
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def get(self, plan_id: str) -> PlanStatus:
        with self._lock:
            self._evict()
            try:
                return self._entries[plan_id]
            except KeyError:
                raise PlanNotFound()

    def set(self, plan_id: str, status: PlanStatus) -> None:
        with self._lock:
            existing = self._entries.get(plan_id)
            status.created_at = existing.created_at if existing else self._clock()
            self._entries[plan_id] = status
            self._evict()

    def _transition(self, plan_id: str, status: PlanStatus) -> None:
        with self._lock:
            self._evict()
            current = self._entries.get(plan_id)
            if current is None:
                raise PlanNotFound()
            if current.status != PENDING:
                return
            status.created_at = current.created_at
            self._entries[plan_id] = status

    def delete(self, plan_id: str) -> None:
        with self._lock:
            self._entries.pop(plan_id, None)

    def __len__(self) -> int:
        with self._lock:
            self._evict()
            return len(self._entries)
