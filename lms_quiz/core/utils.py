import random
from datetime import datetime, timezone
from typing import List, Optional, Sequence, TypeVar

T = TypeVar("T")


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, the form every timestamp column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize an aware datetime to naive UTC; naive values are assumed UTC already."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def shuffled(items: Sequence[T], rng: random.Random) -> List[T]:
    """Return a uniformly random permutation of ``items`` without touching the input."""
    result = list(items)
    rng.shuffle(result)
    return result


def pick_random(items: Sequence[T], count: int, rng: random.Random) -> List[T]:
    """Draw ``count`` distinct items uniformly; the whole pool if it is smaller."""
    if count >= len(items):
        return shuffled(items, rng)
    return rng.sample(list(items), count)
