"""Live elapsed time for the running session.

Elapsed time is never accumulated.  Every read, and every tick of the
background ticker, recomputes ``now - start_time`` from the clock, so a
late tick or a restarted process cannot introduce drift.
"""
from __future__ import annotations

import logging
import math
import threading
from datetime import datetime
from typing import Callable, Optional

from daywell import config

logger = logging.getLogger(__name__)


def elapsed_seconds(start_time: datetime, now: datetime) -> int:
    """Whole seconds from ``start_time`` to ``now``, never negative."""
    return max(0, math.floor((now - start_time).total_seconds()))


def session_duration(start_time: datetime, end_time: datetime) -> int:
    """
    Duration to record when closing a session.

    A negative span can only come from clock skew between the start and
    the stop; it is clamped to zero and logged rather than raised.
    """
    seconds = math.floor((end_time - start_time).total_seconds())
    if seconds < 0:
        logger.warning(
            "Clock skew: session ends %ss before it starts (%s -> %s); recording 0",
            -seconds, start_time, end_time,
        )
        return 0
    return seconds


class LiveTimer:
    """
    Elapsed-time view of one running session plus an optional periodic
    callback.

    ``elapsed`` can be read at any time.  ``start`` also launches a daemon
    thread that calls ``on_tick(elapsed)`` every ``interval`` seconds until
    ``reset`` is called or another session is started.
    """

    def __init__(
        self,
        clock,
        interval: Optional[float] = None,
        on_tick: Optional[Callable[[int], None]] = None,
    ) -> None:
        self.clock = clock
        self.interval = interval if interval is not None else config.TICK_SECONDS
        self.on_tick = on_tick
        self._start_time: Optional[datetime] = None
        self._cancel: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def start_time(self) -> Optional[datetime]:
        return self._start_time

    @property
    def running(self) -> bool:
        return self._start_time is not None

    @property
    def ticking(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def elapsed(self) -> int:
        start = self._start_time
        if start is None:
            return 0
        return elapsed_seconds(start, self.clock.now())

    def start(self, start_time: datetime) -> None:
        """Follow a session that began at ``start_time``."""
        with self._lock:
            self._halt()
            self._start_time = start_time
            if self.on_tick is None:
                return
            cancel = threading.Event()
            self._cancel = cancel
            self._thread = threading.Thread(target=self._run, args=(cancel,), daemon=True)
            self._thread.start()
        logger.debug("Live timer following session started at %s", start_time)

    def reset(self) -> None:
        """Stop ticking and report zero elapsed time."""
        with self._lock:
            self._halt()
            self._start_time = None

    def _halt(self) -> None:
        if self._cancel is not None:
            self._cancel.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=max(1.0, self.interval))
        self._cancel = None
        self._thread = None

    def _run(self, cancel: threading.Event) -> None:
        self._emit(cancel)
        while not cancel.wait(self.interval):
            if not self._emit(cancel):
                return

    def _emit(self, cancel: threading.Event) -> bool:
        if cancel.is_set() or self.on_tick is None:
            return False
        try:
            self.on_tick(self.elapsed)
        except Exception:
            logger.exception("Live timer callback failed; stopping ticker")
            cancel.set()
            return False
        return True
