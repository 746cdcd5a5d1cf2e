import logging
import threading
from typing import Callable, Dict, Optional, Set

from .connection import ConnectionWrapper, LiveConnection, ReconnectPolicy


ConnectionFactory = Callable[[str], LiveConnection]


class SessionRegistry:
    """One supervised upstream session per Socket.IO client.

    Owns the process-wide count of live sessions. A session is counted from
    its `connected` signal until its terminal `disconnected` or `close`,
    at most once, so the counter cannot drift.
    """

    def __init__(
        self,
        connection_factory: ConnectionFactory,
        scheduler,
        policy: Optional[ReconnectPolicy] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._factory = connection_factory
        self._scheduler = scheduler
        self._policy = policy or ReconnectPolicy()
        self._logger = logger or logging.getLogger(__name__)
        self._sessions: Dict[str, ConnectionWrapper] = {}
        self._counted: Set[int] = set()
        self._lock = threading.Lock()

    def open(self, sid: str, unique_id: str) -> ConnectionWrapper:
        """Create (but do not connect) a session; replaces any previous one for `sid`."""
        self.close(sid)
        wrapper = ConnectionWrapper(
            unique_id,
            self._factory(unique_id),
            self._scheduler,
            policy=self._policy,
            logger=self._logger,
        )
        wrapper.on('connected', lambda *_: self._acquire(wrapper))
        wrapper.on('disconnected', lambda *_: self._release(wrapper))
        with self._lock:
            self._sessions[sid] = wrapper
        return wrapper

    def close(self, sid: str) -> bool:
        with self._lock:
            wrapper = self._sessions.pop(sid, None)
        if wrapper is None:
            return False
        wrapper.disconnect()
        wrapper.connection.close()
        self._release(wrapper)
        return True

    def get(self, sid: str) -> Optional[ConnectionWrapper]:
        with self._lock:
            return self._sessions.get(sid)

    def close_all(self) -> None:
        with self._lock:
            sids = list(self._sessions)
        for sid in sids:
            self.close(sid)

    @property
    def active_connections(self) -> int:
        with self._lock:
            return len(self._counted)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def _acquire(self, wrapper: ConnectionWrapper) -> None:
        with self._lock:
            self._counted.add(id(wrapper))
            count = len(self._counted)
        self._logger.info(f"[sessions] +@{wrapper.unique_id} active={count}")

    def _release(self, wrapper: ConnectionWrapper) -> None:
        with self._lock:
            if id(wrapper) not in self._counted:
                return
            self._counted.discard(id(wrapper))
            count = len(self._counted)
        self._logger.info(f"[sessions] -@{wrapper.unique_id} active={count}")
