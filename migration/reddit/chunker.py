from __future__ import annotations

from typing import List, Sequence


def chunk(items: Sequence[str], chunk_size: int) -> List[List[str]]:
    """
    Split items into consecutive groups of chunk_size, keeping order.
    The last group may be shorter; an empty input yields no groups.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    return [list(items[i:i + chunk_size]) for i in range(0, len(items), chunk_size)]
