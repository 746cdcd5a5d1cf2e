"""TikTok Live upstream built on the TikTokLive client.

The library is asyncio-based while the relay runs on Socket.IO background
tasks, so each connection gets its own event loop on a daemon thread.
Library events are normalised into plain dict payloads before being emitted.
"""

import asyncio
from concurrent import futures
import logging
import threading
from typing import Any, Dict, Optional

from TikTokLive import TikTokLiveClient
from TikTokLive.events import (
    CommentEvent,
    DisconnectEvent,
    FollowEvent,
    GiftEvent,
    LikeEvent,
    LiveEndEvent,
    ShareEvent,
)

from ..events import EventEmitter
from .connection import LiveState


def _user(event) -> Dict[str, Any]:
    user = getattr(event, 'user', None)
    if user is None:
        return {'user': '?', 'nickname': '?'}
    unique_id = (
        getattr(user, 'unique_id', None)
        or getattr(user, 'display_id', None)
        or getattr(user, 'nickname', None)
        or '?'
    )
    return {'user': unique_id, 'nickname': getattr(user, 'nickname', None) or unique_id}


class TikTokLiveConnection(EventEmitter):

    def __init__(
        self,
        unique_id: str,
        session_id: Optional[str] = None,
        tt_target_idc: Optional[str] = None,
        connect_timeout: float = 30.0,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        super().__init__()
        self.unique_id = unique_id
        self._connect_timeout = connect_timeout
        self._logger = logger or logging.getLogger(__name__)
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._loop.run_forever, name=f"tiktok-{unique_id}", daemon=True)
        self._thread.start()

        self._client = TikTokLiveClient(unique_id=unique_id)
        if session_id:
            self._client.web.set_session(session_id, tt_target_idc)
            self._logger.info(f"[tiktok] using session id for @{unique_id} idc={tt_target_idc}")

        self._client.add_listener(LikeEvent, self._on_like)
        self._client.add_listener(GiftEvent, self._on_gift)
        self._client.add_listener(CommentEvent, self._on_comment)
        self._client.add_listener(FollowEvent, self._on_follow)
        self._client.add_listener(ShareEvent, self._on_share)
        self._client.add_listener(DisconnectEvent, self._on_disconnect)
        self._client.add_listener(LiveEndEvent, self._on_live_end)

    def connect(self) -> LiveState:
        future = asyncio.run_coroutine_threadsafe(self._start(), self._loop)
        try:
            future.result(timeout=self._connect_timeout)
        except futures.TimeoutError as exc:
            future.cancel()
            raise TimeoutError(f"no connection to @{self.unique_id} after {self._connect_timeout}s") from exc
        except futures.CancelledError as exc:
            raise ConnectionAbortedError(f"connection to @{self.unique_id} closed while connecting") from exc
        return self.get_state()

    def disconnect(self) -> None:
        future = asyncio.run_coroutine_threadsafe(self._client.disconnect(), self._loop)
        future.result(timeout=self._connect_timeout)

    def get_state(self) -> LiveState:
        room_id = self._client.room_id
        return LiveState(room_id=str(room_id) if room_id else None, is_connected=bool(self._client.connected))

    def close(self) -> None:
        """Tear down the client and its loop thread; safe to call twice."""
        if self._loop.is_closed():
            return
        if self._thread.is_alive():
            future = asyncio.run_coroutine_threadsafe(self._shutdown(), self._loop)
            try:
                future.result(timeout=self._connect_timeout)
            except Exception as exc:
                self._logger.warning(f"[tiktok] shutdown of @{self.unique_id} incomplete: {exc!r}")
            self._loop.call_soon_threadsafe(self._loop.stop)
            self._thread.join(timeout=self._connect_timeout)
        if not self._loop.is_running():
            self._loop.close()

    # ---- loop-thread coroutines ----

    async def _start(self) -> asyncio.Task:
        task = await self._client.start()
        # Attached here so the callback is registered from the task's own loop
        task.add_done_callback(self._on_task_done)
        return task

    async def _shutdown(self) -> None:
        try:
            await self._client.disconnect(close_client=True)
        finally:
            current = asyncio.current_task()
            pending = [t for t in asyncio.all_tasks() if t is not current]
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

    # ---- library callbacks (run on the loop thread) ----

    def _on_task_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.emit('error', exc)

    async def _on_like(self, event: LikeEvent) -> None:
        self.emit('like', {**_user(event), 'count': int(getattr(event, 'count', 1) or 1)})

    async def _on_gift(self, event: GiftEvent) -> None:
        # Streak steps carry a running repeat_count; only the final one counts
        if event.streaking:
            return
        gift = event.gift
        self.emit('gift', {
            **_user(event),
            'gift_name': getattr(gift, 'name', None),
            'repeat_count': int(getattr(event, 'repeat_count', 1) or 1),
            'diamond_count': int(getattr(gift, 'diamond_count', 0) or 0),
        })

    async def _on_comment(self, event: CommentEvent) -> None:
        self.emit('comment', {**_user(event), 'comment': event.comment or ''})

    async def _on_follow(self, event: FollowEvent) -> None:
        self.emit('follow', _user(event))

    async def _on_share(self, event: ShareEvent) -> None:
        self.emit('share', _user(event))

    async def _on_disconnect(self, _: DisconnectEvent) -> None:
        self.emit('disconnected')

    async def _on_live_end(self, _: LiveEndEvent) -> None:
        self.emit('streamEnd')
