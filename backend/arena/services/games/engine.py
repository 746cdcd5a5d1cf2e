"""Boss-battle state machine.

FEEDING --(feed >= level.feed_required)--> BOSS
BOSS --(boss_hp <= 0)--> FEEDING, next level
BOSS --(tick after deadline)--> FEEDING, same level

Mutations come from the live relay (coins, hits) and from the fixed-rate
tick; they are serialised with a lock because those run on different
threads. Observers only see state through `state:update` broadcasts made on
every tick, plus one-shot `fx:*` effect notifications.
"""

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .levels import LEVELS, LevelConfig


Target = Callable[[str, Dict[str, Any]], Any]

TOP_CONTRIBUTORS = 10


class Phase(str, Enum):
    FEEDING = 'FEEDING'
    BOSS = 'BOSS'


@dataclass(frozen=True)
class GameSnapshot:
    level_index: int
    phase: Phase
    feed: float
    boss_hp: int
    boss_deadline: Optional[float]
    top_contributors: Tuple[Tuple[str, float], ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'levelIdx': self.level_index,
            'phase': self.phase.value,
            'feed': self.feed,
            'bossHp': self.boss_hp,
            # Browser clocks compare against Date.now(), which is in ms
            'bossEnds': int(self.boss_deadline * 1000) if self.boss_deadline else 0,
            'topGifters': [{'user': user, 'coins': coins} for user, coins in self.top_contributors],
        }


class GameEngine:

    def __init__(
        self,
        levels: Sequence[LevelConfig] = LEVELS,
        clock: Callable[[], float] = time.time,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if not levels:
            raise ValueError('at least one level is required')
        self.levels = tuple(levels)
        self._clock = clock
        self._logger = logger or logging.getLogger(__name__)
        self._lock = threading.RLock()
        self._targets: List[Target] = []
        self._tick_handle = None
        self.reset()

    # ---- broadcast targets ----

    def subscribe(self, target: Target) -> Target:
        self._targets.append(target)
        return target

    def unsubscribe(self, target: Target) -> None:
        if target in self._targets:
            self._targets.remove(target)

    def publish(self, event: str, payload: Dict[str, Any]) -> None:
        """Send a one-shot effect that is not part of the durable state."""
        self._publish(event, payload)

    # ---- public API ----

    @property
    def level(self) -> LevelConfig:
        return self.levels[self.level_index]

    def get_state(self) -> GameSnapshot:
        with self._lock:
            ranked = sorted(self.contributor_totals.items(), key=lambda kv: kv[1], reverse=True)
            return GameSnapshot(
                level_index=self.level_index,
                phase=self.phase,
                feed=self.feed,
                boss_hp=self.boss_hp,
                boss_deadline=self.boss_deadline,
                top_contributors=tuple(ranked[:TOP_CONTRIBUTORS]),
            )

    def reset(self) -> None:
        with self._lock:
            self.level_index = 0
            self.phase = Phase.FEEDING
            self.feed = 0
            self.boss_hp = 0
            self.boss_deadline: Optional[float] = None
            self.contributor_totals: Dict[str, float] = {}

    def add_coins(self, contributor: str, amount: float) -> bool:
        """Feed the meter. Returns False when feeding is paused by a boss fight."""
        with self._lock:
            if self.phase is Phase.BOSS:
                self._logger.info(f"[engine] feeding paused, boss battle in progress user={contributor} coins={amount}")
                return False
            self._logger.debug(f"[engine] add coins user={contributor} coins={amount} feed={self.feed}->{self.feed + amount}")
            self.feed += amount
            self.contributor_totals[contributor] = self.contributor_totals.get(contributor, 0) + amount
            self._maybe_start_boss()
            return True

    def boss_hit(self, contributor: str, damage: int = 1) -> bool:
        with self._lock:
            if self.phase is not Phase.BOSS:
                return False
            self.boss_hp -= damage
            self._publish('fx:bossHit', {'user': contributor})
            if self.boss_hp <= 0:
                self._boss_defeated()
            return True

    def tick(self) -> GameSnapshot:
        with self._lock:
            if self.phase is Phase.BOSS and self._clock() > self.boss_deadline:
                self._logger.info(f"[engine] boss timed out level={self.level.level} hp_left={self.boss_hp}")
                self._publish('fx:bossFail', {'level': self.level.level})
                self.phase = Phase.FEEDING
                self.feed = 0
            snapshot = self.get_state()
        self._publish('state:update', snapshot.to_dict())
        return snapshot

    def start(self, scheduler, interval: float) -> None:
        if self._tick_handle is not None and self._tick_handle.active:
            return
        self._tick_handle = scheduler.every(interval, self.tick, name='game-tick')
        self._logger.info(f"[engine] tick started interval={interval}s")

    def stop(self) -> None:
        if self._tick_handle is not None:
            self._tick_handle.cancel()
            self._tick_handle = None

    # ---- internals ----

    def _maybe_start_boss(self) -> None:
        cfg = self.level
        if self.feed >= cfg.feed_required:
            self.phase = Phase.BOSS
            self.boss_hp = cfg.boss_hp
            self.boss_deadline = self._clock() + cfg.boss_time_sec
            self._logger.info(f"[engine] boss started level={cfg.level} hp={cfg.boss_hp} deadline={self.boss_deadline}")
            self._publish('fx:bossStart', {'level': cfg.level})

    def _boss_defeated(self) -> None:
        defeated = self.level.level
        self._publish('fx:bossDefeat', {'level': defeated})
        self.level_index = min(self.level_index + 1, len(self.levels) - 1)
        self.feed = 0
        self.phase = Phase.FEEDING
        self._logger.info(f"[engine] boss defeated level={defeated} next_level={self.level.level}")

    def _publish(self, event: str, payload: Dict[str, Any]) -> None:
        for target in list(self._targets):
            target(event, payload)
