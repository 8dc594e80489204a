import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from leaderboard_cycles.extensions import db
from leaderboard_cycles.models.points_history import UserPointsHistory
from leaderboard_cycles.utils.exceptions import DependencyError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerTotal:
    user_id: str
    total_points: float
    first_earned_at: Optional[datetime] = None


class PointsLedger:
    """Read-only view of the points subsystem."""

    def totals_for_window(self, start: datetime, end: datetime) -> List[LedgerTotal]:
        """Per-user totals for points earned in ``[start, end)``. Totals are never negative."""
        raise NotImplementedError


class SqlPointsLedger(PointsLedger):
    """Sums ``user_points_history`` rows in the application database."""

    def totals_for_window(self, start, end):
        try:
            rows = (
                db.session.query(
                    UserPointsHistory.user_id,
                    func.sum(UserPointsHistory.points),
                    func.min(UserPointsHistory.created_at),
                )
                .filter(
                    UserPointsHistory.created_at >= start,
                    UserPointsHistory.created_at < end,
                )
                .group_by(UserPointsHistory.user_id)
                .all()
            )
        except SQLAlchemyError as e:
            logger.error("Points ledger query failed: %s", e)
            raise DependencyError(
                "Points ledger unavailable",
                details={"reason": str(e.__class__.__name__)},
            ) from e

        return [
            LedgerTotal(
                user_id=user_id,
                total_points=max(0.0, round(float(total or 0), 2)),
                first_earned_at=first_at,
            )
            for user_id, total, first_at in rows
        ]


def record_points(user_id, points, action_type, description=None, reference_id=None, created_at=None):
    """Append a ledger row. The caller commits."""
    entry = UserPointsHistory(
        user_id=user_id,
        action_type=action_type,
        points=round(float(points), 2),
        description=description,
        reference_id=reference_id,
        created_at=created_at or datetime.utcnow(),
    )
    db.session.add(entry)
    return entry
