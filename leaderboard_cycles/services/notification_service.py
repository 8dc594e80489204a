import logging
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError

from leaderboard_cycles.extensions import db
from leaderboard_cycles.models.cycle_participant import CycleParticipant
from leaderboard_cycles.models.notification import Notification
from leaderboard_cycles.repositories.cycle_repository import cycle_repository

logger = logging.getLogger(__name__)


def send_notification_to_users(user_ids, title, message, notif_type="info", details=None):
    """Queue one in-app notification per user. The caller commits."""
    now = datetime.utcnow()
    for user_id in user_ids:
        db.session.add(Notification(
            user_id=user_id,
            type=notif_type,
            title=title,
            message=message,
            details=details,
            created_at=now,
        ))
    return len(user_ids)


def notify_cycle_completion(cycle, winners):
    """
    Tell winners they won and everyone else that the cycle ended, then flag
    the winners as notified. A failure here is logged and leaves the
    completed cycle untouched.
    """
    try:
        participant_ids = [
            user_id for (user_id,) in
            db.session.query(CycleParticipant.user_id).filter(CycleParticipant.cycle_id == cycle.id).all()
        ]
        winner_ids = {w.user_id for w in winners}
        losers = [uid for uid in participant_ids if uid not in winner_ids]
        details = {"cycle_id": cycle.id, "cycle_name": cycle.name_en}

        sent = send_notification_to_users(
            sorted(winner_ids),
            "Congratulations!",
            f'You won a prize in the cycle "{cycle.name_en}"!',
            notif_type="cycle_winner",
            details=details,
        )
        sent += send_notification_to_users(
            losers,
            "Cycle finished!",
            f'The cycle "{cycle.name_en}" has ended. See the winners and join the next cycle!',
            notif_type="cycle_completed",
            details=details,
        )
        cycle_repository.mark_winners_notified(cycle.id, winner_ids)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Failed to notify participants of cycle %s", cycle.id)
        return 0

    logger.info("Sent %d completion notification(s) for cycle %s", sent, cycle.id)
    return sent
