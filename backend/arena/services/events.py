from collections import defaultdict
from typing import Any, Callable, DefaultDict, List, Tuple


Handler = Callable[..., Any]


class EventEmitter:
    """Minimal publish/subscribe surface shared by the live adapters and wrappers."""

    def __init__(self) -> None:
        self._listeners: DefaultDict[str, List[Tuple[Handler, bool]]] = defaultdict(list)

    def on(self, event: str, handler: Handler) -> Handler:
        self._listeners[event].append((handler, False))
        return handler

    def once(self, event: str, handler: Handler) -> Handler:
        self._listeners[event].append((handler, True))
        return handler

    def off(self, event: str, handler: Handler) -> None:
        self._listeners[event] = [entry for entry in self._listeners[event] if entry[0] is not handler]

    def emit(self, event: str, *args: Any) -> int:
        entries = list(self._listeners.get(event, ()))
        if any(once for _, once in entries):
            self._listeners[event] = [entry for entry in self._listeners[event] if not entry[1]]
        for handler, _ in entries:
            handler(*args)
        return len(entries)
