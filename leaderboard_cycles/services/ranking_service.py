import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from leaderboard_cycles.extensions import db
from leaderboard_cycles.models.cycle import CycleStatus, LeaderboardCycle
from leaderboard_cycles.repositories.cycle_repository import cycle_repository
from leaderboard_cycles.services.runtime import get_clock, get_points_ledger
from leaderboard_cycles.utils.exceptions import DependencyError, IllegalTransitionError, NotFoundError
from leaderboard_cycles.utils.pagination import paginate_query

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RankedParticipant:
    user_id: str
    total_points: float
    first_participated_at: Optional[datetime]
    rank: int


def _ranking_key(entry):
    # Points descending, then earliest participation, then user id.
    return (
        -entry.total_points,
        entry.first_earned_at is None,
        entry.first_earned_at or datetime.max,
        entry.user_id,
    )


def rank_participants(cycle, ledger=None):
    """Strict total order of the cycle's participants, read from the points ledger."""
    ledger = ledger or get_points_ledger()
    totals = ledger.totals_for_window(cycle.start_date, cycle.end_date)
    ordered = sorted(totals, key=_ranking_key)
    return [
        RankedParticipant(
            user_id=entry.user_id,
            total_points=entry.total_points,
            first_participated_at=entry.first_earned_at,
            rank=position,
        )
        for position, entry in enumerate(ordered, start=1)
    ]


def refresh_participants(cycle, ledger=None, now=None):
    """Re-rank from the ledger and write the snapshot rows. The caller commits."""
    ranking = rank_participants(cycle, ledger)
    cycle_repository.replace_participants(cycle.id, ranking, now or get_clock().now())
    return ranking


def _lock_open_cycle(cycle, now):
    """
    Touch the cycle only while it is still open, so a completion or cancel
    that committed after ``cycle`` was loaded keeps its frozen snapshot.
    On success the cycle is reloaded to pick up the current window.
    """
    if not cycle_repository.update_if_status(cycle.id, CycleStatus.OPEN, {"updated_at": now}):
        db.session.rollback()
        return False
    db.session.refresh(cycle)
    return True


def refresh_cycle_participants(cycle_id):
    cycle = db.session.get(LeaderboardCycle, cycle_id)
    if not cycle:
        raise NotFoundError("Cycle not found", details={"cycle_id": cycle_id})
    if cycle.status not in CycleStatus.OPEN:
        raise IllegalTransitionError(
            f"Participants of a {cycle.status} cycle are a frozen snapshot",
            details={"status": cycle.status},
        )
    now = get_clock().now()
    try:
        if not _lock_open_cycle(cycle, now):
            raise IllegalTransitionError(
                "Cycle left the open states while refreshing; its participants are a frozen snapshot",
                details={"cycle_id": cycle_id},
            )
        ranking = refresh_participants(cycle, now=now)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info("Refreshed %d participant(s) for cycle %s", len(ranking), cycle_id)
    return ranking


def refresh_if_open(cycle):
    """Read-through refresh for open cycles. Falls back to the cached rows if the ledger is down."""
    if cycle.status not in CycleStatus.OPEN:
        return False
    now = get_clock().now()
    try:
        if not _lock_open_cycle(cycle, now):
            logger.debug("Cycle %s closed before its participants were refreshed", cycle.id)
            return False
        refresh_participants(cycle, now=now)
        db.session.commit()
    except (DependencyError, SQLAlchemyError):
        db.session.rollback()
        logger.warning("Participant refresh failed, serving cached participants for cycle %s", cycle.id)
        return False
    return True


def get_participants(cycle_id, page=1, limit=50, positive_only=False):
    """
    Ranked participants of a cycle, one page at a time.

    Open cycles are refreshed from the ledger first; if the ledger is down the
    cached snapshot is served. Terminal cycles always serve the snapshot.
    """
    cycle = db.session.get(LeaderboardCycle, cycle_id)
    if not cycle:
        raise NotFoundError("Cycle not found", details={"cycle_id": cycle_id})

    refresh_if_open(cycle)

    query = cycle_repository.participants_query(cycle_id, positive_only=positive_only)
    return paginate_query(
        query, page, limit, default_limit=50, max_limit=current_app.config["PAGE_MAX_LIMIT"]
    )


def get_user_standing(cycle_id, user_id):
    """(position, points) for ``user_id``; position is None without points."""
    participant = cycle_repository.get_participant(cycle_id, user_id)
    if not participant or (participant.total_points or 0) <= 0:
        return None, 0.0
    return participant.rank, round(participant.total_points, 2)
