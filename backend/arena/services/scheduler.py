import logging
import time
from typing import Any, Callable, Optional


logger = logging.getLogger(__name__)


class TimerHandle:
    """Cancellable handle for a deferred or repeating callback."""

    def __init__(self) -> None:
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def active(self) -> bool:
        return not self.cancelled and not self.fired


class SocketIOScheduler:
    """Non-blocking timers built on Socket.IO background tasks.

    - `call_later` sleeps in its own background task, so the caller never waits
    - `every` runs at a fixed rate: the next deadline is derived from the
      previous one, not from when the callback finished
    - A repeating callback that raises is logged and the loop keeps going
    """

    def __init__(self, socketio, clock: Callable[[], float] = time.time) -> None:
        self._socketio = socketio
        self._clock = clock

    def now(self) -> float:
        return self._clock()

    def spawn(self, fn: Callable[..., Any], *args: Any):
        return self._socketio.start_background_task(fn, *args)

    def call_later(self, delay: float, fn: Callable[..., Any], *args: Any) -> TimerHandle:
        handle = TimerHandle()

        def _runner():
            self._socketio.sleep(max(0.0, delay))
            if handle.cancelled:
                return
            handle.fired = True
            fn(*args)

        self.spawn(_runner)
        return handle

    def every(self, interval: float, fn: Callable[[], Any], name: Optional[str] = None) -> TimerHandle:
        handle = TimerHandle()
        label = name or getattr(fn, '__name__', 'task')

        def _loop():
            next_at = time.monotonic() + interval
            while not handle.cancelled:
                self._socketio.sleep(max(0.0, next_at - time.monotonic()))
                if handle.cancelled:
                    break
                try:
                    fn()
                except Exception:
                    logger.exception(f"[timer-error] task={label} interval={interval}s")
                next_at += interval

        self.spawn(_loop)
        return handle
