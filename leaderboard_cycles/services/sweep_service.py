"""
Periodic trigger. Invoked by cron (``flask cycles sweep``) or by an operator
("check now"). Stateless and safe to run concurrently with itself and with
operator actions: every transition is a conditional write on ``status``.
"""
import logging

from flask import current_app

from leaderboard_cycles.extensions import db
from leaderboard_cycles.models.cycle import CycleStatus
from leaderboard_cycles.repositories.cycle_repository import cycle_repository
from leaderboard_cycles.services.auto_cycle_service import ensure_cycles_exist
from leaderboard_cycles.services.cycle_service import complete_cycle
from leaderboard_cycles.services.runtime import get_clock
from leaderboard_cycles.utils.exceptions import ConflictError

logger = logging.getLogger(__name__)


def _activate(cycle, now):
    if cycle.status != CycleStatus.SCHEDULED or now < cycle.start_date:
        return False
    if cycle_repository.compare_and_set_status(cycle.id, CycleStatus.SCHEDULED, CycleStatus.ACTIVE):
        db.session.commit()
        logger.info("Activated cycle %s (%s)", cycle.id, cycle.name_en)
        return True
    db.session.rollback()
    logger.debug("Cycle %s already moved out of scheduled", cycle.id)
    return False


def _complete(cycle, now):
    if cycle.status != CycleStatus.ACTIVE or now < cycle.end_date:
        return False
    try:
        result = complete_cycle(cycle.id, manual=False, now=now)
    except ConflictError:
        logger.debug("Cycle %s was completed or cancelled by another caller", cycle.id)
        return False
    return result.claimed


def sweep_cycle(cycle_id, now):
    """Apply due transitions to one cycle. Returns (activated, completed)."""
    cycle = cycle_repository.get(cycle_id)
    if cycle is None:
        return False, False

    activated = _activate(cycle, now)
    if activated:
        cycle = cycle_repository.get(cycle_id)
    completed = _complete(cycle, now)
    return activated, completed


def run_sweep():
    now = get_clock().now()
    result = {"activated": 0, "completed": 0, "created": 0, "failed": 0}

    cycle_ids = [c.id for c in cycle_repository.list_open()]
    logger.info("Cycle sweep at %s: %d open cycle(s)", now.isoformat(), len(cycle_ids))

    for cycle_id in cycle_ids:
        try:
            activated, completed = sweep_cycle(cycle_id, now)
        except Exception:
            # One bad cycle must not stop the sweep; it is retried next run.
            db.session.rollback()
            result["failed"] += 1
            logger.exception("Sweep failed for cycle %s", cycle_id)
            continue
        result["activated"] += int(activated)
        result["completed"] += int(completed)

    if current_app.config["AUTO_CYCLES_ENABLED"]:
        try:
            result["created"] = ensure_cycles_exist(now)
        except Exception:
            db.session.rollback()
            result["failed"] += 1
            logger.exception("Ensuring auto-generated cycles failed")

    logger.info(
        "Cycle sweep finished: %(activated)d activated, %(completed)d completed, "
        "%(created)d created, %(failed)d failed",
        result,
    )
    return result
