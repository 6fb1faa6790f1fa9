"""
Price Curve - Linear descending-price decay.

The clearing price falls linearly from start_price to floor_price over the
auction duration, then collapses to zero:

    price(t) = start - (start - floor) * t // duration     for t <  duration
    price(t) = floor                                        for t == duration
    price(t) = 0                                            for t >  duration

All arithmetic is integer floor division so the curve is reproducible and
monotonically non-increasing.
"""

from typing import List, Tuple

BASIS_POINTS = 10_000


def compute_price(elapsed: int, start_price: int, floor_price: int, duration: int) -> int:
    """
    Current clearing price.

    Args:
        elapsed: Seconds since the auction started
        start_price: Price at elapsed == 0
        floor_price: Price at elapsed == duration
        duration: Decay window in seconds

    Returns:
        Price per unit in PRICE_SCALE fixed point; 0 once fully expired
    """
    if duration <= 0:
        raise ValueError("duration must be > 0")
    if floor_price > start_price:
        raise ValueError(f"floor_price {floor_price} exceeds start_price {start_price}")

    if elapsed > duration:
        return 0
    if elapsed == duration:
        return floor_price

    elapsed = max(elapsed, 0)
    return start_price - (start_price - floor_price) * elapsed // duration


def compute_floor_price(start_price: int, min_price_factor: int) -> int:
    """Floor = start_price * min_price_factor / 10000."""
    return start_price * min_price_factor // BASIS_POINTS


def price_schedule(
    start_price: int,
    floor_price: int,
    duration: int,
    steps: int = 10,
) -> List[Tuple[int, int]]:
    """Sample the curve at `steps` even intervals, plus one point past expiry."""
    if steps <= 0:
        raise ValueError("steps must be > 0")
    points = []
    for i in range(steps + 1):
        t = duration * i // steps
        points.append((t, compute_price(t, start_price, floor_price, duration)))
    points.append((duration + 1, 0))
    return points
