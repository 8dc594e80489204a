from flask import Blueprint, request
from flask_jwt_extended import jwt_required

from leaderboard_cycles.services.cycle_service import (
    cancel_cycle,
    create_cycle,
    delete_cycle,
    force_complete_cycle,
    get_cycle,
    get_cycle_stats,
    get_winners,
    list_cycles,
    update_cycle,
)
from leaderboard_cycles.services.ranking_service import get_participants, refresh_cycle_participants
from leaderboard_cycles.services.runtime import get_clock
from leaderboard_cycles.services.sweep_service import run_sweep
from leaderboard_cycles.utils.auth_utils import current_admin
from leaderboard_cycles.utils.response_formatter import success_response

bp = Blueprint("admin_cycles", __name__, url_prefix="/api/v1/admin/cycles")


@bp.route("", methods=["POST"])
@jwt_required()
def create():
    admin = current_admin()
    cycle = create_cycle(request.get_json(silent=True), created_by=admin.id)
    return success_response(
        {"cycle": cycle.serialize(now=get_clock().now())},
        message="Cycle created",
        status=201,
    )


@bp.route("", methods=["GET"])
@jwt_required()
def list_all():
    current_admin()
    cycles, pagination = list_cycles(request.args.to_dict())
    now = get_clock().now()
    return success_response({"cycles": [c.serialize(now=now) for c in cycles], "pagination": pagination})


@bp.route("/stats", methods=["GET"])
@jwt_required()
def stats():
    current_admin()
    return success_response(get_cycle_stats())


@bp.route("/check", methods=["POST"])
@jwt_required()
def check_now():
    current_admin()
    return success_response({"result": run_sweep()}, message="Cycle check completed")


@bp.route("/<string:cycle_id>", methods=["GET"])
@jwt_required()
def detail(cycle_id):
    current_admin()
    cycle = get_cycle(cycle_id)
    return success_response({"cycle": cycle.serialize(now=get_clock().now(), include_winners=True)})


@bp.route("/<string:cycle_id>", methods=["PATCH"])
@jwt_required()
def update(cycle_id):
    current_admin()
    cycle = update_cycle(cycle_id, request.get_json(silent=True))
    return success_response({"cycle": cycle.serialize(now=get_clock().now())}, message="Cycle updated")


@bp.route("/<string:cycle_id>", methods=["DELETE"])
@jwt_required()
def delete(cycle_id):
    current_admin()
    delete_cycle(cycle_id)
    return success_response(message="Cycle deleted")


@bp.route("/<string:cycle_id>/cancel", methods=["POST"])
@jwt_required()
def cancel(cycle_id):
    current_admin()
    cycle = cancel_cycle(cycle_id)
    return success_response({"cycle": cycle.serialize()}, message="Cycle cancelled")


@bp.route("/<string:cycle_id>/complete", methods=["POST"])
@jwt_required()
def complete(cycle_id):
    current_admin()
    result = force_complete_cycle(cycle_id)
    message = "Cycle completed" if result.claimed else "Cycle was already completed"
    return success_response(result.serialize(), message=message)


@bp.route("/<string:cycle_id>/participants", methods=["GET"])
@jwt_required()
def participants(cycle_id):
    current_admin()
    page = request.args.get("page", 1)
    limit = request.args.get("limit", 50)
    items, pagination = get_participants(cycle_id, page, limit)
    return success_response({"participants": [p.serialize() for p in items], "pagination": pagination})


@bp.route("/<string:cycle_id>/participants/refresh", methods=["POST"])
@jwt_required()
def refresh_participants(cycle_id):
    current_admin()
    ranking = refresh_cycle_participants(cycle_id)
    return success_response({"participant_count": len(ranking)}, message="Participants refreshed")


@bp.route("/<string:cycle_id>/winners", methods=["GET"])
@jwt_required()
def winners(cycle_id):
    current_admin()
    return success_response({"winners": [w.serialize() for w in get_winners(cycle_id)]})
