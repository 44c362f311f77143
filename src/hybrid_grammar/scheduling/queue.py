"""Priority admission control for analysis requests.

Requests are admitted in ``(tier desc, priority desc, arrival asc)`` order
and at most N may be active at once, where N depends on the tier of the
request at the head of the queue. A request that would push its caller past
the tier's daily cost ceiling is rejected before it is queued; one that waits
longer than its timeout is removed and rejected.

This is bounded concurrent admission on a single event loop, not parallel
execution: the scheduler never runs work itself, it only decides when each
submitted coroutine may start.
"""

from __future__ import annotations

import asyncio
from bisect import insort
from collections.abc import Awaitable, Callable
import dataclasses
import itertools
import logging
import time
import uuid

from hybrid_grammar import constants
from hybrid_grammar.core.types import QueuePriority, Tier
from hybrid_grammar.exceptions import (
    CostThresholdExceededError,
    QueueTimeoutError,
    RequestCancelledError,
)

from .metrics import MetricsRecorder

logger = logging.getLogger(__name__)

_TIER_RANK = {Tier.FREE: 0, Tier.PREMIUM: 1}
_PRIORITY_RANK = {QueuePriority.LOW: 0, QueuePriority.NORMAL: 1, QueuePriority.HIGH: 2}


@dataclasses.dataclass(frozen=True, slots=True)
class SchedulerConfig:
    daily_cost_limit_free: float = constants.DAILY_COST_LIMIT_FREE
    daily_cost_limit_premium: float = constants.DAILY_COST_LIMIT_PREMIUM
    max_concurrent_free: int = constants.MAX_CONCURRENT_FREE
    max_concurrent_premium: int = constants.MAX_CONCURRENT_PREMIUM
    default_timeout_ms: float = constants.QUEUE_TIMEOUT_MS
    health_interval_seconds: float = 30.0

    def daily_limit(self, tier: Tier) -> float:
        if tier is Tier.PREMIUM:
            return self.daily_cost_limit_premium
        return self.daily_cost_limit_free

    def concurrency_cap(self, tier: Tier) -> int:
        if tier is Tier.PREMIUM:
            return self.max_concurrent_premium
        return self.max_concurrent_free


@dataclasses.dataclass(frozen=True, slots=True)
class QueuedRequest:
    """Public view of a request waiting for admission."""

    id: str
    enqueued_at: float
    priority: QueuePriority
    tier: Tier
    estimated_cost: float
    timeout_ms: float
    caller_id: str


@dataclasses.dataclass(slots=True, eq=False)
class _Ticket:
    request: QueuedRequest
    seq: int
    future: asyncio.Future[None]
    timer: asyncio.TimerHandle | None = None

    @property
    def sort_key(self) -> tuple[int, int, int]:
        return (
            -_TIER_RANK[self.request.tier],
            -_PRIORITY_RANK[self.request.priority],
            self.seq,
        )


class RequestScheduler:
    """Admission-controlled priority queue.

    Args:
        config: Limits for cost, concurrency and timeouts.
        recorder: Metrics recorder holding per-caller daily spend; one is
            created when omitted.
        clock: Wall-clock source in seconds, used for enqueue timestamps.
    """

    def __init__(
        self,
        config: SchedulerConfig | None = None,
        recorder: MetricsRecorder | None = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or SchedulerConfig()
        self.recorder = recorder or MetricsRecorder(clock=clock)
        self._clock = clock
        self._queue: list[_Ticket] = []
        self._active = 0
        self._paused = False
        self._seq = itertools.count()
        self._timeouts = 0
        self._health_task: asyncio.Task[None] | None = None

    # --- Introspection ---

    @property
    def active_count(self) -> int:
        return self._active

    @property
    def queue_size(self) -> int:
        return len(self._queue)

    @property
    def timeout_count(self) -> int:
        return self._timeouts

    def queued(self) -> tuple[QueuedRequest, ...]:
        """Waiting requests in the order they would be dispatched."""
        return tuple(t.request for t in self._queue)

    # --- Admission ---

    async def submit[T](
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        priority: QueuePriority = QueuePriority.NORMAL,
        tier: Tier = Tier.FREE,
        estimated_cost: float = 0.0,
        timeout_ms: float | None = None,
        caller_id: str = "anonymous",
    ) -> T:
        """Wait for admission, then run `operation` while holding a slot.

        Raises:
            CostThresholdExceededError: Before queuing, if the caller's daily
                spend plus `estimated_cost` exceeds the tier ceiling.
            QueueTimeoutError: If not dispatched within the timeout.
            RequestCancelledError: If `cancel()` removed the request.
        """
        ticket = self._enqueue(priority, tier, estimated_cost, timeout_ms, caller_id)
        try:
            await ticket.future
        except asyncio.CancelledError:
            if ticket.future.done() and not ticket.future.cancelled():
                self._release()
            else:
                self._remove(ticket)
            raise
        try:
            return await operation()
        finally:
            self._release()

    def cancel(self, request_id: str) -> bool:
        """Remove a waiting request; returns False if it is not queued."""
        for ticket in self._queue:
            if ticket.request.id == request_id:
                self._remove(ticket)
                if not ticket.future.done():
                    ticket.future.set_exception(
                        RequestCancelledError(f"Request {request_id} was cancelled")
                    )
                return True
        return False

    def pause(self) -> None:
        """Stop dispatching; submissions keep queuing and timers keep running."""
        self._paused = True

    def resume(self) -> None:
        self._paused = False
        self._dispatch()

    def _enqueue(
        self,
        priority: QueuePriority,
        tier: Tier,
        estimated_cost: float,
        timeout_ms: float | None,
        caller_id: str,
    ) -> _Ticket:
        priority = QueuePriority(priority)
        tier = Tier(tier)
        limit = self.config.daily_limit(tier)
        projected = self.recorder.daily_cost(caller_id) + estimated_cost
        if projected > limit:
            logger.warning(
                "Rejected request for %r: projected $%.4f over %s limit $%.2f",
                caller_id,
                projected,
                tier.value,
                limit,
            )
            raise CostThresholdExceededError(caller_id, tier.value, projected, limit)

        loop = asyncio.get_running_loop()
        timeout = timeout_ms if timeout_ms is not None else self.config.default_timeout_ms
        ticket = _Ticket(
            request=QueuedRequest(
                id=uuid.uuid4().hex[:12],
                enqueued_at=self._clock(),
                priority=priority,
                tier=tier,
                estimated_cost=estimated_cost,
                timeout_ms=timeout,
                caller_id=caller_id,
            ),
            seq=next(self._seq),
            future=loop.create_future(),
        )
        insort(self._queue, ticket, key=lambda t: t.sort_key)
        ticket.timer = loop.call_later(timeout / 1000, self._expire, ticket)
        logger.debug(
            "Queued %s (%s/%s), queue size %d",
            ticket.request.id,
            tier.value,
            priority.value,
            len(self._queue),
        )
        self._dispatch()
        return ticket

    def _dispatch(self) -> None:
        while self._queue and not self._paused:
            head = self._queue[0]
            if self._active >= self.config.concurrency_cap(head.request.tier):
                return
            self._queue.pop(0)
            if head.timer is not None:
                head.timer.cancel()
            if head.future.done():
                continue
            self._active += 1
            head.future.set_result(None)

    def _expire(self, ticket: _Ticket) -> None:
        if ticket not in self._queue:
            return
        self._queue.remove(ticket)
        self._timeouts += 1
        logger.warning(
            "Request %s timed out after %.0fms in queue",
            ticket.request.id,
            ticket.request.timeout_ms,
        )
        if not ticket.future.done():
            ticket.future.set_exception(
                QueueTimeoutError(ticket.request.id, ticket.request.timeout_ms)
            )

    def _remove(self, ticket: _Ticket) -> None:
        if ticket.timer is not None:
            ticket.timer.cancel()
        if ticket in self._queue:
            self._queue.remove(ticket)

    def _release(self) -> None:
        self._active -= 1
        self._dispatch()

    # --- Health sampling ---

    def sample_health(self) -> None:
        self.recorder.record_system_health(
            active_requests=self._active, queue_size=len(self._queue)
        )

    def start(self) -> None:
        """Begin periodic system-health sampling on the running loop."""
        if self._health_task is not None and not self._health_task.done():
            return
        self._health_task = asyncio.get_running_loop().create_task(
            self._health_loop(), name="scheduler-health"
        )
        logger.info("Scheduler health sampling started")

    async def aclose(self) -> None:
        task, self._health_task = self._health_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Scheduler health sampling stopped")

    async def _health_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.health_interval_seconds)
            self.sample_health()
