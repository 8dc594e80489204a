"""
Cycle lifecycle.

States: scheduled -> active -> completed, and scheduled/active -> cancelled.
Each transition is a compare-and-set on ``status`` so the periodic sweep and
operator actions can race safely across processes. Completion claims the
cycle and writes its winners in one transaction; a failure rolls everything
back and the cycle stays claimable.
"""
import logging
from dataclasses import dataclass, field
from typing import List

from flask import current_app
from marshmallow import ValidationError as SchemaValidationError
from sqlalchemy.exc import SQLAlchemyError

from leaderboard_cycles.extensions import db
from leaderboard_cycles.models.cycle import CycleStatus, LeaderboardCycle
from leaderboard_cycles.repositories.cycle_repository import cycle_repository
from leaderboard_cycles.schemas.cycle_schema import (
    CycleCreateSchema,
    CycleListQuerySchema,
    CycleUpdateSchema,
    SCHEDULE_FIELDS,
)
from leaderboard_cycles.services.notification_service import notify_cycle_completion
from leaderboard_cycles.services.ranking_service import refresh_participants
from leaderboard_cycles.services.runtime import get_clock, get_random_source, lottery_settings
from leaderboard_cycles.services.winner_selection import select_winners
from leaderboard_cycles.utils.exceptions import (
    ConflictError,
    DependencyError,
    IllegalTransitionError,
    NotFoundError,
    ServiceError,
    ValidationError,
)
from leaderboard_cycles.utils.pagination import paginate_query
from leaderboard_cycles.utils.timeutils import isoformat_z, to_utc_naive

logger = logging.getLogger(__name__)


@dataclass
class CompletionResult:
    cycle: LeaderboardCycle
    winners: List = field(default_factory=list)
    # False when the cycle was already completed before this call
    claimed: bool = False

    @property
    def winners_created(self):
        return len(self.winners) if self.claimed else 0

    def serialize(self):
        return {
            "cycle": self.cycle.serialize(),
            "winners": [w.serialize() for w in self.winners],
            "winners_created": self.winners_created,
        }


def _load(schema, payload, partial=False):
    try:
        return schema.load(payload or {}, partial=partial)
    except SchemaValidationError as e:
        raise ValidationError("Invalid cycle payload", details=e.messages) from e


def _normalize_dates(data):
    zone = current_app.config["CYCLE_TIMEZONE"]
    for key in ("start_date", "end_date", "date_from", "date_to"):
        if data.get(key) is not None:
            data[key] = to_utc_naive(data[key], zone)
    return data


def _validate_window(start_date, end_date):
    if end_date <= start_date:
        raise ValidationError(
            "End date must be after start date",
            details={"field": "end_date"},
            code="INVALID_DATE_RANGE",
        )


def _check_overlap(start_date, end_date, exclude_id=None):
    if current_app.config["CYCLE_ALLOW_OVERLAP"]:
        return
    other = cycle_repository.find_overlapping(start_date, end_date, exclude_id=exclude_id)
    if other:
        raise ValidationError(
            f'{other.status.capitalize()} cycle "{other.name_en}" overlaps the requested dates. '
            "Choose dates that do not overlap or cancel the existing cycle.",
            details={
                "cycle_id": other.id,
                "status": other.status,
                "end_date": isoformat_z(other.end_date),
            },
            code="CYCLE_OVERLAP",
        )


def get_cycle(cycle_id):
    cycle = cycle_repository.get(cycle_id)
    if not cycle:
        raise NotFoundError("Cycle not found", details={"cycle_id": cycle_id})
    return cycle


def list_cycles(args):
    params = _normalize_dates(_load(CycleListQuerySchema(), args))
    query = cycle_repository.query(
        status=params.get("status"),
        date_from=params.get("date_from"),
        date_to=params.get("date_to"),
    )
    return paginate_query(
        query,
        params["page"],
        params["limit"],
        default_limit=20,
        max_limit=current_app.config["PAGE_MAX_LIMIT"],
    )


def create_cycle(payload, created_by=None):
    data = _normalize_dates(_load(CycleCreateSchema(), payload))
    now = get_clock().now()

    _validate_window(data["start_date"], data["end_date"])
    if data["end_date"] <= now:
        raise ValidationError(
            "End date must be in the future",
            details={"field": "end_date"},
            code="INVALID_DATE_RANGE",
        )
    _check_overlap(data["start_date"], data["end_date"])

    status = CycleStatus.ACTIVE if data["start_date"] <= now else CycleStatus.SCHEDULED
    cycle = LeaderboardCycle(
        name_en=data["name_en"],
        name_hr=data["name_hr"],
        description_en=data.get("description_en"),
        description_hr=data.get("description_hr"),
        header_image_url=data.get("header_image_url"),
        start_date=data["start_date"],
        end_date=data["end_date"],
        number_of_winners=data["number_of_winners"],
        guarantee_first_place=data["guarantee_first_place"],
        status=status,
        created_by=created_by,
    )
    db.session.add(cycle)
    db.session.commit()

    logger.info(
        "Created cycle %s (%s) %s -> %s, %d winner(s)",
        cycle.id, status, isoformat_z(cycle.start_date), isoformat_z(cycle.end_date),
        cycle.number_of_winners,
    )
    return cycle


def update_cycle(cycle_id, payload):
    """
    Presentation fields can change unless the cycle is cancelled. Schedule and
    winner settings only change while scheduled or active, and never in a way
    that would end the cycle as a side effect.
    """
    data = _normalize_dates(_load(CycleUpdateSchema(), payload, partial=True))
    if not data:
        raise ValidationError("No updatable fields supplied")

    cycle = get_cycle(cycle_id)
    observed = cycle.status

    if observed == CycleStatus.CANCELLED:
        raise IllegalTransitionError("Cancelled cycles cannot be edited", details={"status": observed})

    schedule_changes = sorted(k for k in data if k in SCHEDULE_FIELDS)
    if observed == CycleStatus.COMPLETED and schedule_changes:
        raise ValidationError(
            "Only name, description and header image can change on a completed cycle",
            details={"fields": schedule_changes},
            code="FORBIDDEN_FIELD_EDIT",
        )

    if "start_date" in data or "end_date" in data:
        now = get_clock().now()
        start_date = data.get("start_date", cycle.start_date)
        end_date = data.get("end_date", cycle.end_date)
        _validate_window(start_date, end_date)
        if end_date <= now:
            raise ValidationError(
                "End date must be in the future; use force complete to end a cycle early",
                details={"field": "end_date"},
                code="INVALID_DATE_RANGE",
            )
        if "start_date" in data:
            if observed == CycleStatus.SCHEDULED and start_date <= now:
                raise ValidationError(
                    "Start date must be in the future for scheduled cycles",
                    details={"field": "start_date"},
                    code="INVALID_DATE_RANGE",
                )
            if observed == CycleStatus.ACTIVE and start_date > now:
                raise ValidationError(
                    "An active cycle cannot move its start date into the future",
                    details={"field": "start_date"},
                    code="INVALID_DATE_RANGE",
                )
        _check_overlap(start_date, end_date, exclude_id=cycle.id)

    if not cycle_repository.update_if_status(cycle.id, observed, data):
        db.session.rollback()
        logger.warning("Update of cycle %s lost a race (expected %s)", cycle.id, observed)
        raise ConflictError(
            "Cycle status changed while updating; reload and retry",
            details={"expected_status": observed},
        )
    db.session.commit()

    logger.info("Updated cycle %s: %s", cycle.id, ", ".join(sorted(data)))
    return get_cycle(cycle_id)


def cancel_cycle(cycle_id):
    cycle = get_cycle(cycle_id)
    observed = cycle.status
    if observed in CycleStatus.TERMINAL:
        raise IllegalTransitionError(f"Cannot cancel a {observed} cycle", details={"status": observed})

    if not cycle_repository.compare_and_set_status(cycle.id, CycleStatus.OPEN, CycleStatus.CANCELLED):
        db.session.rollback()
        logger.warning("Cancel of cycle %s lost a race", cycle.id)
        raise ConflictError(
            "Cycle status changed while cancelling; reload and retry",
            details={"expected_status": observed},
        )
    db.session.commit()

    logger.info("Cancelled cycle %s (was %s)", cycle.id, observed)
    return get_cycle(cycle_id)


def delete_cycle(cycle_id):
    cycle = get_cycle(cycle_id)
    if cycle.status != CycleStatus.CANCELLED:
        raise IllegalTransitionError(
            "Only cancelled cycles can be deleted",
            details={"status": cycle.status},
        )
    cycle_repository.delete(cycle)
    db.session.commit()
    logger.info("Deleted cancelled cycle %s", cycle_id)


def complete_cycle(cycle_id, manual=False, now=None):
    """
    Claim the cycle, rank its participants, draw winners and persist them.

    Already completed cycles return their stored winners without writing.
    A lost claim raises ``ConflictError``; the sweep treats that as a no-op.
    """
    now = now or get_clock().now()
    cycle = get_cycle(cycle_id)

    if cycle.status == CycleStatus.COMPLETED:
        return CompletionResult(cycle=cycle, winners=cycle_repository.winners(cycle.id), claimed=False)
    if cycle.status == CycleStatus.CANCELLED:
        raise IllegalTransitionError("Cannot complete a cancelled cycle", details={"status": cycle.status})
    if now < cycle.start_date or (manual and now == cycle.start_date):
        raise IllegalTransitionError("Cycle has not started yet", details={"status": cycle.status})
    if not manual and now < cycle.end_date:
        raise IllegalTransitionError("Cycle has not ended yet", details={"end_date": isoformat_z(cycle.end_date)})

    try:
        # Ending early shortens end_date for good; the claim re-checks the stored window.
        if not cycle_repository.claim_for_completion(cycle.id, now, manual=manual):
            db.session.rollback()
            raise ConflictError(
                "Cycle was completed, cancelled or rescheduled by another operation",
                details={"cycle_id": cycle_id},
            )
        db.session.refresh(cycle)

        ranking = refresh_participants(cycle, now=now)
        settings = lottery_settings()
        drafts = select_winners(
            ranking,
            cycle.number_of_winners,
            cycle.guarantee_first_place,
            get_random_source(),
            weighting=settings["weighting"],
            zero_point_weight=settings["zero_point_weight"],
        )
        winners = cycle_repository.add_winners(cycle.id, drafts, selected_at=now)
        db.session.commit()
    except ServiceError:
        db.session.rollback()
        raise
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error("Persisting completion of cycle %s failed: %s", cycle_id, e)
        raise DependencyError(
            "Could not persist cycle completion; the cycle stays active",
            details={"cycle_id": cycle_id},
        ) from e

    logger.info(
        "Cycle %s completed with %d winner(s) from %d participant(s)",
        cycle_id, len(winners), len(ranking),
    )

    if current_app.config["CYCLE_NOTIFICATIONS_ENABLED"]:
        notify_cycle_completion(cycle, winners)

    return CompletionResult(cycle=cycle, winners=winners, claimed=True)


def force_complete_cycle(cycle_id):
    result = complete_cycle(cycle_id, manual=True)
    if result.claimed:
        logger.info("Cycle %s force completed by operator", cycle_id)
    return result


def get_winners(cycle_id):
    cycle = get_cycle(cycle_id)
    if cycle.status != CycleStatus.COMPLETED:
        return []
    return cycle_repository.winners(cycle.id)


def get_cycle_stats():
    now = get_clock().now()
    active_cycles = (
        LeaderboardCycle.query
        .filter_by(status=CycleStatus.ACTIVE)
        .order_by(LeaderboardCycle.start_date.asc())
        .all()
    )
    return {
        "status_counts": cycle_repository.status_counts(),
        "active_cycles": [
            {
                "id": c.id,
                "name": c.name_en,
                "participant_count": cycle_repository.count_participants(c.id),
                "end_date": isoformat_z(c.end_date),
                "remaining_days": c.remaining_days(now),
            }
            for c in active_cycles
        ],
    }
