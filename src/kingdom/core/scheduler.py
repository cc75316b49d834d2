"""Logical timer queue driven by simulation time."""

from __future__ import annotations

from dataclasses import dataclass, field
import heapq
from typing import Callable


@dataclass(order=True)
class ScheduledCall:
    due: float
    seq: int
    callback: Callable[[], None] = field(compare=False)
    label: str = field(default="", compare=False)
    cancelled: bool = field(default=False, compare=False)


class Scheduler:
    """Deferred callbacks keyed by elapsed simulation seconds.

    Time only moves when ``advance`` is called, so pausing the session simply
    means not advancing it. Pending calls keep their remaining delay.
    """

    def __init__(self) -> None:
        self._queue: list[ScheduledCall] = []
        self._seq = 0
        self.now = 0.0

    def call_later(self, delay: float, callback: Callable[[], None], label: str = "") -> ScheduledCall:
        if delay < 0:
            raise ValueError("delay must be non-negative")
        self._seq += 1
        call = ScheduledCall(due=self.now + delay, seq=self._seq, callback=callback, label=label)
        heapq.heappush(self._queue, call)
        return call

    def cancel(self, call: ScheduledCall) -> None:
        call.cancelled = True

    def cancel_all(self) -> None:
        for call in self._queue:
            call.cancelled = True
        self._queue.clear()

    def advance(self, dt: float) -> int:
        """Move the clock forward by ``dt`` and run every call that came due.

        Calls scheduled by a running callback are run in the same advance when
        they fall inside the window. Returns how many callbacks ran.
        """
        if dt < 0:
            raise ValueError("dt must be non-negative")
        target = self.now + dt
        ran = 0
        while self._queue and self._queue[0].due <= target:
            call = heapq.heappop(self._queue)
            if call.cancelled:
                continue
            self.now = max(self.now, call.due)
            call.callback()
            ran += 1
        self.now = target
        return ran

    @property
    def pending(self) -> int:
        return sum(1 for call in self._queue if not call.cancelled)

    def pending_labels(self) -> list[str]:
        return [call.label for call in sorted(self._queue) if not call.cancelled]
