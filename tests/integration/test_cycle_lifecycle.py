"""
Integration tests for the cycle lifecycle against an in-memory database.

Covers creation, edits, cancellation, deletion and operator completion.
"""
from datetime import timedelta

import pytest

from leaderboard_cycles.extensions import db
from leaderboard_cycles.models.cycle import CycleStatus
from leaderboard_cycles.models.cycle_winner import CycleWinner
from leaderboard_cycles.models.notification import Notification
from leaderboard_cycles.services import cycle_service
from leaderboard_cycles.utils.exceptions import (
    IllegalTransitionError,
    NotFoundError,
    ValidationError,
)
from tests.conftest import NOW


def iso(value):
    return value.isoformat() + "Z"


def payload(start, end, **extra):
    data = {
        "name_en": "March cycle",
        "name_hr": "Ožujski ciklus",
        "start_date": iso(start),
        "end_date": iso(end),
    }
    data.update(extra)
    return data


class TestCreateCycle:

    def test_future_start_is_scheduled(self, app):
        cycle = cycle_service.create_cycle(payload(NOW + timedelta(days=1), NOW + timedelta(days=8)))
        assert cycle.status == CycleStatus.SCHEDULED
        assert cycle.number_of_winners == 1
        assert cycle.guarantee_first_place is False
        assert cycle.start_date == NOW + timedelta(days=1)

    def test_started_window_is_active(self, app):
        cycle = cycle_service.create_cycle(
            payload(NOW - timedelta(hours=1), NOW + timedelta(days=7), number_of_winners=3,
                    guarantee_first_place=True),
        )
        assert cycle.status == CycleStatus.ACTIVE
        assert cycle.number_of_winners == 3
        assert cycle.guarantee_first_place is True

    def test_naive_dates_read_in_cycle_timezone(self, app):
        data = payload(NOW, NOW)
        data["start_date"] = "2025-03-10T10:00:00"
        data["end_date"] = "2025-03-17T10:00:00"
        cycle = cycle_service.create_cycle(data)
        # Europe/Zagreb is UTC+1 in March before the switch
        assert cycle.start_date.hour == 9
        assert cycle.end_date.hour == 9

    def test_end_before_start_rejected(self, app):
        with pytest.raises(ValidationError) as exc:
            cycle_service.create_cycle(payload(NOW + timedelta(days=5), NOW + timedelta(days=2)))
        assert exc.value.code == "INVALID_DATE_RANGE"

    def test_end_in_past_rejected(self, app):
        with pytest.raises(ValidationError):
            cycle_service.create_cycle(payload(NOW - timedelta(days=5), NOW - timedelta(days=1)))

    def test_zero_winners_rejected(self, app):
        with pytest.raises(ValidationError) as exc:
            cycle_service.create_cycle(
                payload(NOW + timedelta(days=1), NOW + timedelta(days=2), number_of_winners=0)
            )
        assert "number_of_winners" in exc.value.details

    def test_missing_names_rejected(self, app):
        data = payload(NOW + timedelta(days=1), NOW + timedelta(days=2))
        del data["name_hr"]
        with pytest.raises(ValidationError) as exc:
            cycle_service.create_cycle(data)
        assert "name_hr" in exc.value.details

    def test_overlap_with_open_cycle_rejected(self, app, make_cycle):
        make_cycle(NOW - timedelta(days=1), NOW + timedelta(days=6))
        with pytest.raises(ValidationError) as exc:
            cycle_service.create_cycle(payload(NOW + timedelta(days=5), NOW + timedelta(days=12)))
        assert exc.value.code == "CYCLE_OVERLAP"

    def test_back_to_back_cycles_allowed(self, app, make_cycle):
        make_cycle(NOW - timedelta(days=1), NOW + timedelta(days=6))
        cycle = cycle_service.create_cycle(payload(NOW + timedelta(days=6), NOW + timedelta(days=13)))
        assert cycle.status == CycleStatus.SCHEDULED

    def test_overlap_with_cancelled_cycle_allowed(self, app, make_cycle):
        make_cycle(NOW - timedelta(days=1), NOW + timedelta(days=6), status=CycleStatus.CANCELLED)
        cycle = cycle_service.create_cycle(payload(NOW + timedelta(days=1), NOW + timedelta(days=3)))
        assert cycle.id

    def test_overlap_allowed_when_configured(self, app, make_cycle):
        app.config["CYCLE_ALLOW_OVERLAP"] = True
        make_cycle(NOW - timedelta(days=1), NOW + timedelta(days=6))
        cycle = cycle_service.create_cycle(payload(NOW + timedelta(days=1), NOW + timedelta(days=3)))
        assert cycle.status == CycleStatus.SCHEDULED


class TestUpdateCycle:

    def test_presentation_fields_on_completed_cycle(self, app, make_cycle):
        cycle = make_cycle(NOW - timedelta(days=10), NOW - timedelta(days=3), status=CycleStatus.COMPLETED)
        updated = cycle_service.update_cycle(cycle.id, {"description_en": "<p>Thanks!</p>"})
        assert updated.description_en == "<p>Thanks!</p>"

    def test_schedule_fields_on_completed_cycle_rejected(self, app, make_cycle):
        cycle = make_cycle(NOW - timedelta(days=10), NOW - timedelta(days=3), status=CycleStatus.COMPLETED)
        with pytest.raises(ValidationError) as exc:
            cycle_service.update_cycle(cycle.id, {"number_of_winners": 5})
        assert exc.value.code == "FORBIDDEN_FIELD_EDIT"
        assert db.session.get(type(cycle), cycle.id).number_of_winners == 1

    def test_cancelled_cycle_is_frozen(self, app, make_cycle):
        cycle = make_cycle(NOW + timedelta(days=1), NOW + timedelta(days=5), status=CycleStatus.CANCELLED)
        with pytest.raises(IllegalTransitionError):
            cycle_service.update_cycle(cycle.id, {"description_en": "x"})

    def test_names_must_change_together(self, app, make_cycle):
        cycle = make_cycle(NOW + timedelta(days=1), NOW + timedelta(days=5), status=CycleStatus.SCHEDULED)
        with pytest.raises(ValidationError):
            cycle_service.update_cycle(cycle.id, {"name_en": "Renamed"})
        updated = cycle_service.update_cycle(cycle.id, {"name_en": "Renamed", "name_hr": "Preimenovan"})
        assert (updated.name_en, updated.name_hr) == ("Renamed", "Preimenovan")

    def test_extend_active_cycle(self, app, make_cycle):
        cycle = make_cycle(NOW - timedelta(days=1), NOW + timedelta(days=2))
        updated = cycle_service.update_cycle(cycle.id, {"end_date": iso(NOW + timedelta(days=9))})
        assert updated.end_date == NOW + timedelta(days=9)
        assert updated.status == CycleStatus.ACTIVE

    def test_end_date_cannot_move_into_past(self, app, make_cycle):
        cycle = make_cycle(NOW - timedelta(days=3), NOW + timedelta(days=2))
        with pytest.raises(ValidationError):
            cycle_service.update_cycle(cycle.id, {"end_date": iso(NOW - timedelta(hours=1))})

    def test_scheduled_start_must_stay_in_future(self, app, make_cycle):
        cycle = make_cycle(NOW + timedelta(days=1), NOW + timedelta(days=5), status=CycleStatus.SCHEDULED)
        with pytest.raises(ValidationError):
            cycle_service.update_cycle(cycle.id, {"start_date": iso(NOW - timedelta(days=1))})

    def test_empty_update_rejected(self, app, make_cycle):
        cycle = make_cycle(NOW + timedelta(days=1), NOW + timedelta(days=5), status=CycleStatus.SCHEDULED)
        with pytest.raises(ValidationError):
            cycle_service.update_cycle(cycle.id, {})

    def test_unknown_cycle(self, app):
        with pytest.raises(NotFoundError):
            cycle_service.update_cycle("cyc-missing", {"description_en": "x"})


class TestCancelAndDelete:

    def test_cancel_scheduled(self, app, make_cycle):
        cycle = make_cycle(NOW + timedelta(days=1), NOW + timedelta(days=5), status=CycleStatus.SCHEDULED)
        assert cycle_service.cancel_cycle(cycle.id).status == CycleStatus.CANCELLED

    def test_cancel_active(self, app, make_cycle):
        cycle = make_cycle(NOW - timedelta(days=1), NOW + timedelta(days=5))
        assert cycle_service.cancel_cycle(cycle.id).status == CycleStatus.CANCELLED

    def test_cancel_completed_rejected(self, app, make_cycle):
        cycle = make_cycle(NOW - timedelta(days=9), NOW - timedelta(days=1), status=CycleStatus.COMPLETED)
        with pytest.raises(IllegalTransitionError):
            cycle_service.cancel_cycle(cycle.id)

    def test_cancel_twice_rejected(self, app, make_cycle):
        cycle = make_cycle(NOW - timedelta(days=1), NOW + timedelta(days=5))
        cycle_service.cancel_cycle(cycle.id)
        with pytest.raises(IllegalTransitionError):
            cycle_service.cancel_cycle(cycle.id)

    def test_delete_requires_cancelled(self, app, make_cycle):
        cycle = make_cycle(NOW - timedelta(days=1), NOW + timedelta(days=5))
        with pytest.raises(IllegalTransitionError):
            cycle_service.delete_cycle(cycle.id)

    def test_delete_cancelled(self, app, make_cycle, make_user, award):
        user = make_user()
        cycle = make_cycle(NOW - timedelta(days=1), NOW + timedelta(days=5))
        award(user, 10, NOW - timedelta(hours=2))
        from leaderboard_cycles.services.ranking_service import refresh_cycle_participants

        refresh_cycle_participants(cycle.id)
        cycle_service.cancel_cycle(cycle.id)
        cycle_service.delete_cycle(cycle.id)
        with pytest.raises(NotFoundError):
            cycle_service.get_cycle(cycle.id)


class TestCompleteCycle:

    def test_force_complete_active_cycle(self, app, clock, make_cycle, make_user, award):
        alice, bob = make_user(), make_user()
        cycle = make_cycle(NOW - timedelta(days=2), NOW + timedelta(days=5), number_of_winners=2,
                           guarantee_first_place=True)
        award(alice, 40, NOW - timedelta(days=1))
        award(bob, 10, NOW - timedelta(hours=5))

        result = cycle_service.force_complete_cycle(cycle.id)

        assert result.claimed is True
        assert result.cycle.status == CycleStatus.COMPLETED
        assert result.cycle.completed_at == NOW
        # ending early shortens the window
        assert result.cycle.end_date == NOW
        assert [(w.user_id, w.rank, w.is_guaranteed_winner) for w in result.winners] == [
            (alice.id, 1, True),
            (bob.id, 2, False),
        ]
        assert result.winners[0].points_at_selection == 40.0

    def test_force_complete_is_idempotent(self, app, make_cycle, make_user, award):
        user = make_user()
        cycle = make_cycle(NOW - timedelta(days=2), NOW + timedelta(days=5))
        award(user, 5, NOW - timedelta(days=1))

        first = cycle_service.force_complete_cycle(cycle.id)
        second = cycle_service.force_complete_cycle(cycle.id)

        assert first.claimed is True
        assert second.claimed is False
        assert second.winners_created == 0
        assert [w.id for w in second.winners] == [w.id for w in first.winners]
        assert CycleWinner.query.filter_by(cycle_id=cycle.id).count() == 1

    def test_zero_participants_completes_without_winners(self, app, make_cycle):
        cycle = make_cycle(NOW - timedelta(days=2), NOW + timedelta(days=5), number_of_winners=3)
        result = cycle_service.force_complete_cycle(cycle.id)
        assert result.cycle.status == CycleStatus.COMPLETED
        assert result.winners == []

    def test_points_outside_window_ignored(self, app, make_cycle, make_user, award):
        inside, outside = make_user(), make_user()
        cycle = make_cycle(NOW - timedelta(days=2), NOW + timedelta(days=5))
        award(inside, 1, NOW - timedelta(days=1))
        award(outside, 500, NOW - timedelta(days=3))
        result = cycle_service.force_complete_cycle(cycle.id)
        assert [w.user_id for w in result.winners] == [inside.id]

    def test_cancelled_cycle_cannot_complete(self, app, make_cycle):
        cycle = make_cycle(NOW - timedelta(days=2), NOW + timedelta(days=5), status=CycleStatus.CANCELLED)
        with pytest.raises(IllegalTransitionError):
            cycle_service.force_complete_cycle(cycle.id)

    def test_not_started_cycle_cannot_complete(self, app, make_cycle):
        cycle = make_cycle(NOW + timedelta(days=2), NOW + timedelta(days=5), status=CycleStatus.SCHEDULED)
        with pytest.raises(IllegalTransitionError):
            cycle_service.force_complete_cycle(cycle.id)

    def test_scheduled_cycle_past_its_start_can_complete(self, app, make_cycle):
        cycle = make_cycle(NOW - timedelta(days=2), NOW + timedelta(days=5), status=CycleStatus.SCHEDULED)
        assert cycle_service.force_complete_cycle(cycle.id).claimed is True

    def test_force_complete_at_start_instant_rejected(self, app, make_cycle):
        cycle = make_cycle(NOW, NOW + timedelta(days=5))
        with pytest.raises(IllegalTransitionError):
            cycle_service.force_complete_cycle(cycle.id)
        db.session.expire_all()
        cycle = cycle_service.get_cycle(cycle.id)
        assert cycle.status == CycleStatus.ACTIVE
        assert cycle.end_date == NOW + timedelta(days=5)
        assert cycle.completed_at is None

    def test_force_complete_just_after_start_ends_at_completion(self, app, clock, make_cycle):
        cycle = make_cycle(NOW, NOW + timedelta(days=5))
        clock.advance(seconds=1)
        result = cycle_service.force_complete_cycle(cycle.id)
        assert result.cycle.completed_at == NOW + timedelta(seconds=1)
        assert result.cycle.end_date == result.cycle.completed_at

    def test_force_complete_after_end_keeps_end_date(self, app, make_cycle):
        cycle = make_cycle(NOW - timedelta(days=7), NOW - timedelta(hours=1))
        result = cycle_service.force_complete_cycle(cycle.id)
        assert result.cycle.completed_at == NOW
        assert result.cycle.end_date == NOW - timedelta(hours=1)

    def test_natural_completion_waits_for_end(self, app, make_cycle):
        cycle = make_cycle(NOW - timedelta(days=2), NOW + timedelta(days=5))
        with pytest.raises(IllegalTransitionError):
            cycle_service.complete_cycle(cycle.id)

    def test_winners_and_participants_notified(self, app, make_cycle, make_user, award):
        winner, other = make_user(), make_user()
        cycle = make_cycle(NOW - timedelta(days=2), NOW + timedelta(days=5), guarantee_first_place=True)
        award(winner, 50, NOW - timedelta(days=1))
        award(other, 5, NOW - timedelta(days=1))

        cycle_service.force_complete_cycle(cycle.id)

        kinds = {n.user_id: n.type for n in Notification.query.all()}
        assert kinds == {winner.id: "cycle_winner", other.id: "cycle_completed"}
        assert CycleWinner.query.filter_by(cycle_id=cycle.id).one().notified is True

    def test_notifications_can_be_disabled(self, app, make_cycle, make_user, award):
        app.config["CYCLE_NOTIFICATIONS_ENABLED"] = False
        user = make_user()
        cycle = make_cycle(NOW - timedelta(days=2), NOW + timedelta(days=5))
        award(user, 5, NOW - timedelta(days=1))
        cycle_service.force_complete_cycle(cycle.id)
        assert Notification.query.count() == 0

    def test_winners_empty_until_completed(self, app, make_cycle):
        cycle = make_cycle(NOW - timedelta(days=2), NOW + timedelta(days=5))
        assert cycle_service.get_winners(cycle.id) == []

    def test_stats(self, app, make_cycle):
        make_cycle(NOW - timedelta(days=2), NOW + timedelta(days=5))
        make_cycle(NOW + timedelta(days=6), NOW + timedelta(days=9), status=CycleStatus.SCHEDULED)
        stats = cycle_service.get_cycle_stats()
        assert stats["status_counts"] == {"scheduled": 1, "active": 1, "completed": 0, "cancelled": 0}
        assert stats["active_cycles"][0]["remaining_days"] == 5
