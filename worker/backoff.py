"""
Exponential backoff for failed sync attempts.

The delay doubles with every failure, starting at the base delay:
retry 1 -> base, retry 2 -> 2 * base, retry 3 -> 4 * base, ...
With the default 60s base a repeatedly failing item waits
60s, 120s, 240s, 480s, 960s before it is marked failed.
"""

DEFAULT_BASE_DELAY = 60.0


def calculate_delay(retry_count: int, base: float = DEFAULT_BASE_DELAY) -> float:
    """
    Delay before the next attempt of an item that has failed *retry_count* times.

    Args:
        retry_count: Failures so far, counting the one that just happened (>= 1)
        base: Delay after the first failure, in seconds

    Returns:
        Delay in seconds: base * 2^(retry_count - 1)
    """
    if retry_count < 1:
        return 0.0
    return base * (2 ** (retry_count - 1))


def next_attempt_time(now: float, retry_count: int, base: float = DEFAULT_BASE_DELAY) -> float:
    """Epoch seconds at which an item with *retry_count* failures becomes eligible again."""
    return now + calculate_delay(retry_count, base)
