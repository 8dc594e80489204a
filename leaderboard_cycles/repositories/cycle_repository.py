"""
Data access for cycles, participant snapshots and winners.

Every status change goes through a conditional UPDATE guarded by the status
the caller expects (compare-and-set). The repository never commits; services
own the transaction boundary.
"""
import logging

from sqlalchemy import and_, case, func, or_, update

from leaderboard_cycles.extensions import db
from leaderboard_cycles.models.cycle import CycleStatus, LeaderboardCycle
from leaderboard_cycles.models.cycle_participant import CycleParticipant
from leaderboard_cycles.models.cycle_winner import CycleWinner

logger = logging.getLogger(__name__)


class CycleRepository:

    # ------------------------------------------------------------------
    # Cycles
    # ------------------------------------------------------------------
    def get(self, cycle_id):
        return db.session.get(LeaderboardCycle, cycle_id)

    def delete(self, cycle):
        # Not every backend enforces ON DELETE CASCADE (SQLite without the pragma).
        CycleParticipant.query.filter_by(cycle_id=cycle.id).delete(synchronize_session=False)
        CycleWinner.query.filter_by(cycle_id=cycle.id).delete(synchronize_session=False)
        db.session.expire(cycle, ["winners"])
        db.session.delete(cycle)

    def query(self, status=None, date_from=None, date_to=None):
        q = LeaderboardCycle.query
        if status:
            q = q.filter(LeaderboardCycle.status == status)
        if date_from:
            q = q.filter(LeaderboardCycle.end_date >= date_from)
        if date_to:
            q = q.filter(LeaderboardCycle.start_date <= date_to)
        return q.order_by(LeaderboardCycle.start_date.desc(), LeaderboardCycle.id)

    def list_open(self):
        return (
            LeaderboardCycle.query
            .filter(LeaderboardCycle.status.in_(CycleStatus.OPEN))
            .order_by(LeaderboardCycle.start_date.asc(), LeaderboardCycle.id)
            .all()
        )

    def find_overlapping(self, start_date, end_date, exclude_id=None):
        q = LeaderboardCycle.query.filter(
            LeaderboardCycle.status.in_(CycleStatus.OPEN),
            LeaderboardCycle.start_date < end_date,
            LeaderboardCycle.end_date > start_date,
        )
        if exclude_id:
            q = q.filter(LeaderboardCycle.id != exclude_id)
        return q.order_by(LeaderboardCycle.start_date.asc()).first()

    def find_active(self):
        return (
            LeaderboardCycle.query
            .filter_by(status=CycleStatus.ACTIVE)
            .order_by(LeaderboardCycle.start_date.asc())
            .first()
        )

    def find_first_scheduled(self, starting_from=None):
        q = LeaderboardCycle.query.filter_by(status=CycleStatus.SCHEDULED)
        if starting_from is not None:
            q = q.filter(LeaderboardCycle.start_date >= starting_from)
        return q.order_by(LeaderboardCycle.start_date.asc()).first()

    def next_cycle_number(self):
        last = db.session.query(func.max(LeaderboardCycle.cycle_number)).filter(
            LeaderboardCycle.is_auto_generated.is_(True)
        ).scalar()
        return 0 if last is None else last + 1

    def completed_query(self):
        return (
            LeaderboardCycle.query
            .filter_by(status=CycleStatus.COMPLETED)
            .order_by(LeaderboardCycle.completed_at.desc(), LeaderboardCycle.id)
        )

    def status_counts(self):
        rows = (
            db.session.query(LeaderboardCycle.status, func.count(LeaderboardCycle.id))
            .group_by(LeaderboardCycle.status)
            .all()
        )
        counts = {status: 0 for status in CycleStatus.ALL}
        counts.update({status: count for status, count in rows})
        return counts

    # ------------------------------------------------------------------
    # Conditional writes
    # ------------------------------------------------------------------
    def compare_and_set_status(self, cycle_id, expected, new_status, **values):
        """
        UPDATE ... SET status = new_status WHERE id = cycle_id AND status IN expected.

        Returns True when exactly one row changed. False means another caller
        moved the cycle first.
        """
        if isinstance(expected, str):
            expected = (expected,)
        stmt = (
            update(LeaderboardCycle)
            .where(
                LeaderboardCycle.id == cycle_id,
                LeaderboardCycle.status.in_(tuple(expected)),
            )
            .values(status=new_status, **values)
            .execution_options(synchronize_session=False)
        )
        result = db.session.execute(stmt)
        changed = result.rowcount == 1
        logger.debug(
            "CAS %s %s -> %s: %s", cycle_id, "/".join(expected), new_status,
            "applied" if changed else "lost",
        )
        return changed

    def claim_for_completion(self, cycle_id, now, manual=False):
        """
        Move an active cycle (or a scheduled one whose start has passed)
        straight to completed. Winner rows must be written in the same
        transaction, so a rollback leaves the cycle claimable again.

        The automatic path only claims a cycle whose stored ``end_date`` has
        passed. The manual path ends the cycle early and shortens
        ``end_date`` to ``now``; it never lengthens it.
        """
        guards = [
            LeaderboardCycle.id == cycle_id,
            or_(
                LeaderboardCycle.status == CycleStatus.ACTIVE,
                and_(
                    LeaderboardCycle.status == CycleStatus.SCHEDULED,
                    LeaderboardCycle.start_date <= now,
                ),
            ),
        ]
        values = {"status": CycleStatus.COMPLETED, "completed_at": now}
        if manual:
            # start < end must hold after shortening
            guards.append(LeaderboardCycle.start_date < now)
            values["end_date"] = case(
                (LeaderboardCycle.end_date > now, now),
                else_=LeaderboardCycle.end_date,
            )
        else:
            guards.append(LeaderboardCycle.end_date <= now)

        stmt = (
            update(LeaderboardCycle)
            .where(*guards)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return db.session.execute(stmt).rowcount == 1

    def update_if_status(self, cycle_id, expected, values):
        if isinstance(expected, str):
            expected = (expected,)
        stmt = (
            update(LeaderboardCycle)
            .where(
                LeaderboardCycle.id == cycle_id,
                LeaderboardCycle.status.in_(tuple(expected)),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return db.session.execute(stmt).rowcount == 1

    # ------------------------------------------------------------------
    # Participants
    # ------------------------------------------------------------------
    def participants_query(self, cycle_id, positive_only=False):
        q = CycleParticipant.query.filter(CycleParticipant.cycle_id == cycle_id)
        if positive_only:
            q = q.filter(CycleParticipant.total_points > 0)
        return q.order_by(
            CycleParticipant.rank.is_(None),
            CycleParticipant.rank.asc(),
            CycleParticipant.user_id.asc(),
        )

    def count_participants(self, cycle_id, positive_only=False):
        q = db.session.query(func.count(CycleParticipant.id)).filter(
            CycleParticipant.cycle_id == cycle_id
        )
        if positive_only:
            q = q.filter(CycleParticipant.total_points > 0)
        return q.scalar() or 0

    def get_participant(self, cycle_id, user_id):
        return CycleParticipant.query.filter_by(cycle_id=cycle_id, user_id=user_id).first()

    def replace_participants(self, cycle_id, ranking, refreshed_at):
        """Upsert the ranked snapshot; rows for users no longer in the ledger are dropped."""
        existing = {
            p.user_id: p
            for p in CycleParticipant.query.filter_by(cycle_id=cycle_id).all()
        }
        seen = set()
        for entry in ranking:
            seen.add(entry.user_id)
            row = existing.get(entry.user_id)
            if row is None:
                row = CycleParticipant(cycle_id=cycle_id, user_id=entry.user_id)
                db.session.add(row)
            row.total_points = entry.total_points
            row.rank = entry.rank
            row.first_participated_at = entry.first_participated_at
            row.refreshed_at = refreshed_at
        for user_id, row in existing.items():
            if user_id not in seen:
                db.session.delete(row)
        db.session.flush()

    # ------------------------------------------------------------------
    # Winners
    # ------------------------------------------------------------------
    def winners(self, cycle_id):
        return (
            CycleWinner.query
            .filter_by(cycle_id=cycle_id)
            .order_by(CycleWinner.rank.asc())
            .all()
        )

    def add_winners(self, cycle_id, drafts, selected_at):
        rows = [
            CycleWinner(
                cycle_id=cycle_id,
                user_id=draft.user_id,
                rank=draft.rank,
                is_guaranteed_winner=draft.is_guaranteed_winner,
                points_at_selection=draft.points_at_selection,
                selected_at=selected_at,
            )
            for draft in drafts
        ]
        db.session.add_all(rows)
        db.session.flush()
        return rows

    def mark_winners_notified(self, cycle_id, user_ids):
        if not user_ids:
            return 0
        return (
            CycleWinner.query
            .filter(CycleWinner.cycle_id == cycle_id, CycleWinner.user_id.in_(list(user_ids)))
            .update({"notified": True}, synchronize_session=False)
        )


cycle_repository = CycleRepository()
