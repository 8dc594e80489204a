from flask import current_app

from leaderboard_cycles.extensions import db
from leaderboard_cycles.models.cycle import CycleStatus, LeaderboardCycle
from leaderboard_cycles.models.cycle_participant import CycleParticipant
from leaderboard_cycles.models.cycle_winner import CycleWinner
from leaderboard_cycles.repositories.cycle_repository import cycle_repository
from leaderboard_cycles.services.ranking_service import (
    get_participants,
    get_user_standing,
    refresh_if_open,
)
from leaderboard_cycles.services.runtime import get_clock
from leaderboard_cycles.utils.pagination import paginate_query


def get_active_cycle(user_id=None):
    active = cycle_repository.find_active()
    if not active:
        return {"active_cycle": None, "message": "No active cycle currently"}

    refresh_if_open(active)
    now = get_clock().now()

    position, points = (None, 0.0)
    if user_id:
        position, points = get_user_standing(active.id, user_id)

    return {
        "active_cycle": active.serialize(now=now),
        "user_position": position,
        "user_points": points,
        "total_participants": cycle_repository.count_participants(active.id, positive_only=True),
    }


def get_cycle_leaderboard(cycle_id, page=1, limit=50, user_id=None):
    participants, pagination = get_participants(cycle_id, page, limit, positive_only=True)
    leaderboard = [p.serialize() for p in participants]

    user_stats = None
    if user_id:
        position, points = get_user_standing(cycle_id, user_id)
        user_stats = {
            "position": position,
            "points": points,
            "formatted_points": f"{points:.2f}",
            "is_participating": points > 0,
        }

    return {"leaderboard": leaderboard, "pagination": pagination, "user_stats": user_stats}


def get_cycle_history(page=1, limit=10):
    cycles, pagination = paginate_query(
        cycle_repository.completed_query(),
        page,
        limit,
        default_limit=10,
        max_limit=min(50, current_app.config["PAGE_MAX_LIMIT"]),
    )
    return {
        "cycles": [c.serialize(include_winners=True) for c in cycles],
        "pagination": pagination,
    }


def get_user_cycle_stats(user_id):
    participations = (
        db.session.query(CycleParticipant, LeaderboardCycle)
        .join(LeaderboardCycle, LeaderboardCycle.id == CycleParticipant.cycle_id)
        .filter(
            CycleParticipant.user_id == user_id,
            LeaderboardCycle.status != CycleStatus.CANCELLED,
        )
        .order_by(LeaderboardCycle.start_date.desc())
        .all()
    )
    wins = (
        db.session.query(CycleWinner, LeaderboardCycle)
        .join(LeaderboardCycle, LeaderboardCycle.id == CycleWinner.cycle_id)
        .filter(CycleWinner.user_id == user_id)
        .order_by(CycleWinner.selected_at.desc())
        .all()
    )

    total_participated = len(participations)
    total_won = len(wins)
    total_points = round(sum(p.total_points or 0.0 for p, _ in participations), 2)

    return {
        "stats": {
            "total_cycles_participated": total_participated,
            "total_cycles_won": total_won,
            "total_points_earned": total_points,
            "average_points_per_cycle": round(total_points / total_participated) if total_participated else 0,
            "win_rate": round(total_won / total_participated * 100) if total_participated else 0,
        },
        "participations": [
            {
                "cycle_id": cycle.id,
                "cycle_name": cycle.name_en,
                "status": cycle.status,
                "rank": participant.rank,
                "total_points": round(participant.total_points or 0.0, 2),
                "formatted_points": f"{(participant.total_points or 0.0):.2f}",
            }
            for participant, cycle in participations
        ],
        "wins": [
            dict(winner.serialize(), cycle_name=cycle.name_en)
            for winner, cycle in wins
        ],
    }
