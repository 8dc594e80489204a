"""
Winner selection for a finished cycle.

Rank 1 can be reserved for the top of the ranking (the guaranteed winner).
Every other slot is filled by a weighted lottery without replacement: each
candidate gets the key ``-ln(u) / weight`` for a uniform draw ``u`` and the
smallest keys win (Efraimidis-Spirakis). Sorting by key gives the same
distribution as drawing one winner at a time and removing them from the pool,
so the drawn order is the rank order.
"""
import logging
import math
from dataclasses import dataclass

logger = logging.getLogger(__name__)

WEIGHTING_FUNCTIONS = {
    "proportional": lambda points: points,
    "sqrt": math.sqrt,
    "uniform": lambda points: 1.0,
}


@dataclass(frozen=True)
class WinnerDraft:
    user_id: str
    rank: int
    is_guaranteed_winner: bool
    points_at_selection: float


def lottery_weight(points, weighting="proportional", zero_point_weight=0.1):
    try:
        weight_fn = WEIGHTING_FUNCTIONS[weighting]
    except KeyError:
        raise ValueError(f"Unknown lottery weighting: {weighting}") from None
    if zero_point_weight <= 0:
        raise ValueError("zero_point_weight must be positive")
    weight = weight_fn(max(float(points), 0.0))
    return weight if weight > 0 else zero_point_weight


def weighted_sample(candidates, weights, count, random_source):
    """Draw ``count`` distinct candidates, in draw order."""
    keyed = []
    for index, (candidate, weight) in enumerate(zip(candidates, weights)):
        u = random_source.draw()
        keyed.append((-math.log(u) / weight, index, candidate))
    keyed.sort(key=lambda item: (item[0], item[1]))
    return [candidate for _, _, candidate in keyed[:count]]


def select_winners(
    ranking,
    number_of_winners,
    guarantee_first_place,
    random_source,
    weighting="proportional",
    zero_point_weight=0.1,
):
    """
    Pick at most ``number_of_winners`` winners from ``ranking``.

    ``ranking`` must already be in strict rank order (highest points first).
    Points are copied from the ranking entries, never re-read.
    """
    if number_of_winners < 1:
        raise ValueError("number_of_winners must be at least 1")
    if not ranking:
        return []

    pool = list(ranking)
    winners = []

    if guarantee_first_place:
        top = pool.pop(0)
        winners.append(WinnerDraft(
            user_id=top.user_id,
            rank=1,
            is_guaranteed_winner=True,
            points_at_selection=round(top.total_points, 2),
        ))
        logger.info("Guaranteed winner: user %s with %s points", top.user_id, top.total_points)

    slots_left = number_of_winners - len(winners)
    if slots_left > 0 and pool:
        weights = [lottery_weight(p.total_points, weighting, zero_point_weight) for p in pool]
        drawn = weighted_sample(pool, weights, min(slots_left, len(pool)), random_source)
        for participant in drawn:
            winners.append(WinnerDraft(
                user_id=participant.user_id,
                rank=len(winners) + 1,
                is_guaranteed_winner=False,
                points_at_selection=round(participant.total_points, 2),
            ))
            logger.info(
                "Lottery winner: user %s with %s points", participant.user_id, participant.total_points
            )

    return winners
