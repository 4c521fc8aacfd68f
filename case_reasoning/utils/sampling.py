# case_reasoning/utils/sampling.py

import random
from typing import List, Optional, Sequence, TypeVar

T = TypeVar("T")


def sample_items(items: Sequence[T], limit: int, seed: Optional[int] = 0) -> List[T]:
    """
    Deterministic bounded sample.

    Returns every item (in order) when there are no more than `limit`; otherwise a
    subset chosen by a `random.Random(seed)` instance, kept in original order so
    the same inputs always give the same prompt.
    """
    if limit <= 0:
        return []
    if len(items) <= limit:
        return list(items)
    rng = random.Random(seed)
    chosen = sorted(rng.sample(range(len(items)), limit))
    return [items[i] for i in chosen]
