import csv
from pathlib import Path
from typing import Dict, Optional

GIFTS_CSV = Path(__file__).with_name('data') / 'gifts.csv'

LIKE_COINS = 0.2


def load_gift_table(path: Path = GIFTS_CSV) -> Dict[str, float]:
    """Read `name,coins` rows into a lookup table."""
    with path.open(newline='', encoding='utf-8') as fh:
        return {row['name'].strip(): float(row['coins']) for row in csv.DictReader(fh) if row.get('name')}


GIFT_TABLE: Dict[str, float] = load_gift_table()


def like_to_coins(count: int, rate: float = LIKE_COINS) -> float:
    return max(0, count) * rate


def gift_to_coins(gift_name: Optional[str], repeat_count: int = 1, diamond_count: Optional[float] = None) -> float:
    """Coin value of a gift event.

    Unknown gifts fall back to the diamond value reported by the stream, or 0.
    """
    value = GIFT_TABLE.get((gift_name or '').strip())
    if value is None:
        value = diamond_count or 0
    return value * (repeat_count or 1)
