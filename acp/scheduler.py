from __future__ import annotations

import heapq
import itertools
import time
from concurrent.futures import ThreadPoolExecutor
from threading import Condition, Thread
from typing import Callable

from . import db


class ScheduledTask:
    """Handle for one periodic callable.

    Cancellation only stops future runs; a run already in progress finishes.
    """

    def __init__(self, fn: Callable[[], None], delay_s: float, name: str = ""):
        self.fn = fn
        self.delay_s = max(0.0, float(delay_s))
        self.name = name or getattr(fn, "__name__", "task")
        self.runs = 0
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def run_once(self) -> None:
        if self._cancelled:
            return
        self.runs += 1
        self.fn()


class Scheduler:
    """Fixed-delay scheduler backed by a shared thread pool.

    One dispatcher thread pops due tasks and hands them to the pool. A task is
    re-queued only after its run returns, so the same task never overlaps with
    itself while different tasks run in parallel.
    """

    def __init__(self, workers: int = 4):
        self._pool = ThreadPoolExecutor(max_workers=max(1, int(workers)), thread_name_prefix="acp-worker")
        self._cond = Condition()
        self._queue: list[tuple[float, int, ScheduledTask]] = []
        self._seq = itertools.count()
        self._stop = False
        self._thr: Thread | None = None

    def start(self) -> None:
        with self._cond:
            if self._stop or (self._thr and self._thr.is_alive()):
                return
            self._thr = Thread(target=self._loop, name="acp-dispatcher", daemon=True)
            self._thr.start()

    def schedule_with_fixed_delay(
        self,
        fn: Callable[[], None],
        initial_delay_s: float,
        delay_s: float,
        name: str = "",
    ) -> ScheduledTask:
        task = ScheduledTask(fn, delay_s, name)
        self.start()
        self._push(task, time.monotonic() + max(0.0, float(initial_delay_s)))
        return task

    def pending(self) -> int:
        with self._cond:
            return sum(1 for _, _, t in self._queue if not t.cancelled)

    def shutdown(self, wait: bool = False) -> None:
        with self._cond:
            self._stop = True
            self._queue.clear()
            self._cond.notify_all()
        self._pool.shutdown(wait=wait, cancel_futures=True)

    def _push(self, task: ScheduledTask, due: float) -> None:
        with self._cond:
            if self._stop:
                return
            heapq.heappush(self._queue, (due, next(self._seq), task))
            self._cond.notify()

    def _loop(self) -> None:
        while True:
            with self._cond:
                while not self._stop:
                    if not self._queue:
                        self._cond.wait()
                        continue
                    wait_s = self._queue[0][0] - time.monotonic()
                    if wait_s <= 0:
                        break
                    self._cond.wait(timeout=wait_s)
                if self._stop:
                    return
                _, _, task = heapq.heappop(self._queue)
            if task.cancelled:
                continue
            try:
                self._pool.submit(self._run, task)
            except RuntimeError:
                # pool already shut down
                return

    def _run(self, task: ScheduledTask) -> None:
        try:
            task.run_once()
        except Exception as e:
            db.log_event("ERROR", f"Scheduled task '{task.name}' failed: {type(e).__name__}: {e}")
        finally:
            if not task.cancelled:
                self._push(task, time.monotonic() + task.delay_s)
