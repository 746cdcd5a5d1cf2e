"""Self-healing supervisor around a single upstream live connection.

The wrapper owns one upstream handle and exposes two signals to its owner:

- `connected(state)`: the initial connection succeeded (reconnects are silent)
- `disconnected(reason)`: terminal; emitted once, after which the session is done

Everything in between (drops, resets, timeouts) is retried with exponential
backoff plus jitter until the attempt budget runs out, the stream ends, or
the owner calls `disconnect()`.
"""

import logging
import random
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol

from ..events import EventEmitter
from ..scheduler import TimerHandle
from .errors import REASONS, ErrorClass, classify_error, describe


@dataclass(frozen=True)
class LiveState:
    room_id: Optional[str]
    is_connected: bool


class LiveConnection(Protocol):
    """Upstream surface the wrapper supervises."""

    def connect(self) -> LiveState: ...

    def disconnect(self) -> None: ...

    def get_state(self) -> LiveState: ...

    def on(self, event: str, handler: Callable[..., Any]) -> Any: ...

    def close(self) -> None: ...


@dataclass(frozen=True)
class ReconnectPolicy:
    max_attempts: int = 10
    initial_backoff_ms: float = 1000
    ceiling_ms: float = 30000
    reset_ceiling_ms: float = 10000
    reset_multiplier: float = 1.5
    multiplier: float = 2.0
    jitter_ms: float = 1000
    stable_threshold_ms: float = 30000
    unknown_error_delay_ms: float = 5000
    force_reconnect_delay_ms: float = 2000

    @classmethod
    def from_config(cls, config) -> 'ReconnectPolicy':
        return cls(
            max_attempts=int(config.get('RECONNECT_MAX_ATTEMPTS', cls.max_attempts)),
            initial_backoff_ms=float(config.get('RECONNECT_INITIAL_MS', cls.initial_backoff_ms)),
            ceiling_ms=float(config.get('RECONNECT_CEILING_MS', cls.ceiling_ms)),
            reset_ceiling_ms=float(config.get('RECONNECT_RESET_CEILING_MS', cls.reset_ceiling_ms)),
            jitter_ms=float(config.get('RECONNECT_JITTER_MS', cls.jitter_ms)),
            stable_threshold_ms=float(config.get('RECONNECT_STABLE_MS', cls.stable_threshold_ms)),
            unknown_error_delay_ms=float(config.get('RECONNECT_UNKNOWN_DELAY_MS', cls.unknown_error_delay_ms)),
            force_reconnect_delay_ms=float(config.get('FORCE_RECONNECT_DELAY_MS', cls.force_reconnect_delay_ms)),
        )

    def next_backoff(self, current_ms: float, error_class: ErrorClass) -> float:
        # Resets are usually the server shedding load; back off more gently
        if error_class is ErrorClass.RESET:
            return min(current_ms * self.reset_multiplier, self.reset_ceiling_ms)
        return min(current_ms * self.multiplier, self.ceiling_ms)


class ConnectionWrapper(EventEmitter):

    def __init__(
        self,
        unique_id: str,
        connection: LiveConnection,
        scheduler,
        policy: Optional[ReconnectPolicy] = None,
        rand: Callable[[], float] = random.random,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        super().__init__()
        self.unique_id = unique_id
        self.connection = connection
        self.policy = policy or ReconnectPolicy()
        self._scheduler = scheduler
        self._rand = rand
        self._logger = logger or logging.getLogger(__name__)
        self._lock = threading.RLock()

        self.client_disconnected = False
        self.reconnect_enabled = True
        self.reconnect_attempt = 0
        self.backoff_ms = self.policy.initial_backoff_ms
        self.last_connected_at: Optional[float] = None
        self.last_wait_ms: Optional[float] = None

        self._connected_since: Optional[float] = None
        self._attempt_in_flight = False
        self._announced = False
        self._terminated = False
        self._reconnect_timer: Optional[TimerHandle] = None
        self._deferred_timer: Optional[TimerHandle] = None

        connection.on('streamEnd', self._on_stream_end)
        connection.on('disconnected', self._on_upstream_disconnected)
        connection.on('error', self._on_upstream_error)

    # ---- public API ----

    def connect(self, is_reconnect: bool = False) -> None:
        with self._lock:
            if self.client_disconnected:
                self._log("[connect-skip] client disconnected, not connecting")
                return
            if self._attempt_in_flight:
                self._log(f"[connect-skip] attempt already in flight reconnect={is_reconnect}")
                return
            self._attempt_in_flight = True
        self._scheduler.spawn(self._attempt, is_reconnect)

    def disconnect(self) -> None:
        self._log("[client-disconnect] client connection disconnected")
        with self._lock:
            self.client_disconnected = True
            self.reconnect_enabled = False
            self._connected_since = None
            self._cancel_timers()
        # Outside the lock: the upstream may call back into us while closing
        if self.connection.get_state().is_connected:
            self.connection.disconnect()

    def schedule_reconnect(self, reason: Any = None, error_class: ErrorClass = ErrorClass.UNKNOWN) -> None:
        reason_text = reason if isinstance(reason, str) else (describe(reason) if reason else 'Upstream disconnected')
        with self._lock:
            if not self.reconnect_enabled:
                return
            if self._reconnect_timer is not None and self._reconnect_timer.active:
                self._log(f"[reconnect-skip] already scheduled reason={reason_text}")
                return
            if self.reconnect_attempt >= self.policy.max_attempts:
                self._log(f"[give-up] max reconnect attempts exceeded attempts={self.reconnect_attempt}")
                terminal = f"Connection lost. {reason_text}"
            else:
                terminal = None
                jitter = self._rand() * self.policy.jitter_ms
                wait_ms = min(self.backoff_ms + jitter, self.policy.ceiling_ms)
                self.last_wait_ms = wait_ms
                self._log(
                    f"[reconnect-set] wait={round(wait_ms)}ms attempt={self.reconnect_attempt + 1}/{self.policy.max_attempts} "
                    f"class={error_class.value} reason={reason_text}"
                )
                self._reconnect_timer = self._scheduler.call_later(wait_ms / 1000.0, self._fire_reconnect, error_class)
        if terminal:
            self._finish(terminal)

    def force_reconnect(self) -> None:
        with self._lock:
            if self.client_disconnected or self._terminated:
                self._log("[force-skip] session is closed")
                return
            self._log("[force] force reconnect requested")
            self._cancel_timers()
            self.reconnect_attempt = 0
            self.backoff_ms = self.policy.initial_backoff_ms
            self.reconnect_enabled = True
            self._connected_since = None
            # Pending timer blocks the reconnect our own close would trigger
            self._reconnect_timer = self._scheduler.call_later(
                self.policy.force_reconnect_delay_ms / 1000.0, self.connect, True
            )
        if self.connection.get_state().is_connected:
            self.connection.disconnect()

    def connection_info(self) -> Dict[str, Any]:
        state = self.connection.get_state()
        return {
            'isConnected': state.is_connected,
            'reconnectCount': self.reconnect_attempt,
            'lastConnected': self.last_connected_at,
            'maxAttempts': self.policy.max_attempts,
            'nextWaitTime': self.backoff_ms,
        }

    @property
    def terminated(self) -> bool:
        return self._terminated

    # ---- internals ----

    def _attempt(self, is_reconnect: bool) -> None:
        label = 'Reconnect' if is_reconnect else 'Connection'
        try:
            state = self.connection.connect()
        except Exception as exc:
            with self._lock:
                self._attempt_in_flight = False
                closed = self.client_disconnected
            self._log(f"[connect-fail] {label} failed, {describe(exc)}")
            if closed:
                return
            if is_reconnect:
                self.schedule_reconnect(exc, classify_error(exc))
            else:
                self._finish(describe(exc))
            return

        with self._lock:
            self._attempt_in_flight = False
            closed = self.client_disconnected
            if not closed:
                now = self._scheduler.now()
                self.last_connected_at = now
                self._connected_since = now
                if not is_reconnect:
                    self.reconnect_attempt = 0
                    self.backoff_ms = self.policy.initial_backoff_ms
                else:
                    self._log(f"[quick-reconnect] keeping backoff={self.backoff_ms}ms attempt={self.reconnect_attempt}")
                announce = not is_reconnect and not self._announced
                if announce:
                    self._announced = True

        if closed:
            self._log(f"[connect-drop] client disconnected during attempt, closing room={state.room_id}")
            self.connection.disconnect()
            return

        self._log(f"[{'reconnected' if is_reconnect else 'connected'}] roomId={state.room_id}")
        if announce:
            self.emit('connected', state)

    def _fire_reconnect(self, error_class: ErrorClass) -> None:
        with self._lock:
            self._reconnect_timer = None
            if not self.reconnect_enabled or self.reconnect_attempt >= self.policy.max_attempts:
                return
            if self.connection.get_state().is_connected:
                self._log("[reconnect-abort] upstream still connected")
                return
            self.reconnect_attempt += 1
            self.backoff_ms = self.policy.next_backoff(self.backoff_ms, error_class)
        self.connect(True)

    def _judge_stability(self) -> None:
        # Called when the link drops; a long-lived link earns a fresh budget
        if self._connected_since is None:
            return
        up_ms = (self._scheduler.now() - self._connected_since) * 1000.0
        self._connected_since = None
        if up_ms > self.policy.stable_threshold_ms:
            self._log(f"[stable] link was up {round(up_ms)}ms, resetting backoff")
            self.reconnect_attempt = 0
            self.backoff_ms = self.policy.initial_backoff_ms

    def _on_stream_end(self, *_: Any) -> None:
        self._log("[stream-end] streamEnd received, giving up connection")
        with self._lock:
            self.reconnect_enabled = False
            self._cancel_timers()
        self._finish('Stream ended')

    def _on_upstream_disconnected(self, *_: Any) -> None:
        self._log("[upstream-disconnect] connection disconnected")
        with self._lock:
            self._judge_stability()
        self.schedule_reconnect('Upstream disconnected')

    def _on_upstream_error(self, exc: BaseException) -> None:
        error_class = classify_error(exc)
        self._log(f"[error] class={error_class.value} {describe(exc)}")
        with self._lock:
            self._judge_stability()
            if error_class is ErrorClass.UNKNOWN:
                if not self.reconnect_enabled:
                    return
                if self._deferred_timer is not None and self._deferred_timer.active:
                    return
                self._deferred_timer = self._scheduler.call_later(
                    self.policy.unknown_error_delay_ms / 1000.0,
                    self.schedule_reconnect,
                    REASONS[ErrorClass.UNKNOWN],
                    ErrorClass.UNKNOWN,
                )
                return
        self.schedule_reconnect(REASONS[error_class], error_class)

    def _finish(self, reason: str) -> None:
        with self._lock:
            if self._terminated:
                return
            self._terminated = True
            self.reconnect_enabled = False
            self._cancel_timers()
            silent = self.client_disconnected
        self._log(f"[terminal] disconnected reason={reason}")
        # The owner already let go of this session
        if silent:
            return
        self.emit('disconnected', reason)

    def _cancel_timers(self) -> None:
        for timer in (self._reconnect_timer, self._deferred_timer):
            if timer is not None:
                timer.cancel()
        self._reconnect_timer = None
        self._deferred_timer = None

    def _log(self, message: str) -> None:
        self._logger.info(f"{message} wrapper=@{self.unique_id} attempt={self.reconnect_attempt}")
