from __future__ import annotations

import itertools
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, List, Optional, Tuple

log = logging.getLogger(__name__)

Callback = Callable[[Any], None]


class WorkDispatcher:
    """Run work off the control thread and hand results back to it.

    `submit` starts `work()` on a background thread (a fresh daemon thread per
    call, or a shared pool when `max_workers` is set). Finished results wait in
    a completion list until the control thread calls `drain`, which runs the
    callbacks in the order the results arrived.

    Every submitted unit runs to completion, except queued pool work dropped
    by `shutdown(wait=False)`. A unit that raises is logged and its callback
    never fires. A callback that raises propagates out of `drain`; results
    behind it stay queued.
    """

    def __init__(self, *, max_workers: Optional[int] = None, name: str = "terrain") -> None:
        self.name = name
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._completed: List[Tuple[Callback, Any]] = []
        self._in_flight = 0
        self._failed = 0
        self._ids = itertools.count()
        self._threads: List[threading.Thread] = []
        self._pool: Optional[ThreadPoolExecutor] = None
        if max_workers:
            self._pool = ThreadPoolExecutor(max_workers=int(max_workers), thread_name_prefix=name)

    @property
    def in_flight(self) -> int:
        with self._lock:
            return self._in_flight

    @property
    def failed(self) -> int:
        with self._lock:
            return self._failed

    def submit(self, work: Callable[[], Any], on_complete: Callback) -> None:
        with self._lock:
            self._in_flight += 1
        if self._pool is not None:
            fut = self._pool.submit(self._run, work, on_complete)
            fut.add_done_callback(self._on_pool_done)
            return
        t = threading.Thread(
            target=self._run,
            args=(work, on_complete),
            name=f"{self.name}-{next(self._ids)}",
            daemon=True,
        )
        self._threads = [th for th in self._threads if th.is_alive()]
        self._threads.append(t)
        t.start()

    def _on_pool_done(self, fut: Future) -> None:
        # _run never started for work dropped by shutdown
        if fut.cancelled():
            with self._lock:
                self._in_flight -= 1
                self._idle.notify_all()

    def _run(self, work: Callable[[], Any], on_complete: Callback) -> None:
        try:
            result = work()
        except Exception:
            log.exception("unit of work failed; its request stays pending")
            with self._lock:
                self._in_flight -= 1
                self._failed += 1
                self._idle.notify_all()
            return
        with self._lock:
            self._completed.append((on_complete, result))
            self._in_flight -= 1
            self._idle.notify_all()

    def drain(self) -> int:
        """Deliver every completed result on the calling thread. Returns how many."""
        with self._lock:
            ready, self._completed = self._completed, []
        for i, (cb, result) in enumerate(ready):
            try:
                cb(result)
            except Exception:
                # undelivered results go back to the front for the next drain
                with self._lock:
                    self._completed[:0] = ready[i + 1:]
                raise
        return len(ready)

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until no work is running. Completed results are not drained."""
        with self._idle:
            return self._idle.wait_for(lambda: self._in_flight == 0, timeout=timeout)

    def shutdown(self, *, wait: bool = False, timeout: float = 1.0) -> None:
        if self._pool is not None:
            self._pool.shutdown(wait=wait, cancel_futures=not wait)
            return
        if wait:
            for t in self._threads:
                t.join(timeout=timeout)
