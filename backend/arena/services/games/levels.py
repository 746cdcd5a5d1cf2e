from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class LevelConfig:
    level: int
    feed_required: float
    boss_hp: int
    boss_time_sec: float

    def to_dict(self):
        return {
            'level': self.level,
            'feedRequired': self.feed_required,
            'bossHp': self.boss_hp,
            'bossTimeSec': self.boss_time_sec,
        }


LEVELS: Tuple[LevelConfig, ...] = (
    LevelConfig(level=1, feed_required=1_000, boss_hp=300, boss_time_sec=30),
    LevelConfig(level=2, feed_required=5_000, boss_hp=1_000, boss_time_sec=45),
    LevelConfig(level=3, feed_required=15_000, boss_hp=3_000, boss_time_sec=60),
)
