"""
Recurring cycles created by the sweep: one active cycle plus one scheduled
successor. Cycle windows end on a fixed weekday and time in the cycle
timezone (Sunday 20:00 by default).
"""
import logging

from dateutil.relativedelta import relativedelta
from flask import current_app
from sqlalchemy.exc import IntegrityError

from leaderboard_cycles.extensions import db
from leaderboard_cycles.models.cycle import CycleStatus, LeaderboardCycle
from leaderboard_cycles.repositories.cycle_repository import cycle_repository
from leaderboard_cycles.utils.timeutils import from_utc_naive, isoformat_z, to_utc_naive

logger = logging.getLogger(__name__)


def next_cycle_end(now, config=None):
    """First configured weekday/time strictly after ``now`` (naive UTC in, naive UTC out)."""
    config = config or current_app.config
    zone = config["CYCLE_TIMEZONE"]
    local_now = from_utc_naive(now, zone)
    target = local_now.replace(
        hour=config["AUTO_CYCLE_END_HOUR"],
        minute=config["AUTO_CYCLE_END_MINUTE"],
        second=0,
        microsecond=0,
    ) + relativedelta(weekday=config["AUTO_CYCLE_END_WEEKDAY"])
    if target <= local_now:
        target += relativedelta(weeks=1)
    return to_utc_naive(target.replace(tzinfo=None), zone)


def successor_end(start_date, config=None):
    config = config or current_app.config
    zone = config["CYCLE_TIMEZONE"]
    local_start = from_utc_naive(start_date, zone)
    local_end = (local_start + relativedelta(days=config["AUTO_CYCLE_DURATION_DAYS"])).replace(
        hour=config["AUTO_CYCLE_END_HOUR"],
        minute=config["AUTO_CYCLE_END_MINUTE"],
        second=0,
        microsecond=0,
    )
    return to_utc_naive(local_end.replace(tzinfo=None), zone)


def create_auto_generated_cycle(cycle_number, start_date, end_date, status=CycleStatus.SCHEDULED):
    """Insert ``Cycle #N``. Returns None if a racing sweep already created that number."""
    config = current_app.config
    cycle = LeaderboardCycle(
        name_en=f"Cycle #{cycle_number}",
        name_hr=f"Ciklus #{cycle_number}",
        start_date=start_date,
        end_date=end_date,
        status=status,
        number_of_winners=config["AUTO_CYCLE_NUMBER_OF_WINNERS"],
        guarantee_first_place=config["AUTO_CYCLE_GUARANTEE_FIRST_PLACE"],
        is_auto_generated=True,
        cycle_number=cycle_number,
    )
    db.session.add(cycle)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        logger.info("Cycle #%d already exists, created by a concurrent sweep", cycle_number)
        return None

    logger.info(
        "Auto-generated cycle %s (%s) | start %s | end %s",
        cycle.name_en, status, isoformat_z(start_date), isoformat_z(end_date),
    )
    return cycle


def ensure_cycles_exist(now):
    """Returns the number of cycles created."""
    created = 0
    active = cycle_repository.find_active()

    if active is None:
        if cycle_repository.find_first_scheduled() is not None:
            # An operator scheduled the next cycle; let activation handle it.
            return 0
        active = create_auto_generated_cycle(
            cycle_repository.next_cycle_number(), now, next_cycle_end(now), CycleStatus.ACTIVE
        )
        if active is None:
            return 0
        created += 1

    if cycle_repository.find_first_scheduled(starting_from=active.end_date) is None:
        start_date = active.end_date
        successor = create_auto_generated_cycle(
            cycle_repository.next_cycle_number(), start_date, successor_end(start_date)
        )
        if successor is not None:
            created += 1

    return created
