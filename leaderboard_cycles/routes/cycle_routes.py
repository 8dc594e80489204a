from flask import Blueprint, request
from flask_jwt_extended import get_jwt_identity, jwt_required

from leaderboard_cycles.services.cycle_service import get_winners
from leaderboard_cycles.services.leaderboard_service import (
    get_active_cycle,
    get_cycle_history,
    get_cycle_leaderboard,
    get_user_cycle_stats,
)
from leaderboard_cycles.utils.response_formatter import success_response

bp = Blueprint("cycles", __name__, url_prefix="/api/v1/cycles")


@bp.route("/active", methods=["GET"])
@jwt_required(optional=True)
def active():
    return success_response(get_active_cycle(user_id=get_jwt_identity()))


@bp.route("/history", methods=["GET"])
def history():
    page = request.args.get("page", 1)
    limit = request.args.get("limit", 10)
    return success_response(get_cycle_history(page, limit))


@bp.route("/<string:cycle_id>/leaderboard", methods=["GET"])
@jwt_required(optional=True)
def leaderboard(cycle_id):
    page = request.args.get("page", 1)
    limit = request.args.get("limit", 50)
    return success_response(get_cycle_leaderboard(cycle_id, page, limit, user_id=get_jwt_identity()))


@bp.route("/<string:cycle_id>/winners", methods=["GET"])
def winners(cycle_id):
    return success_response({"winners": [w.serialize() for w in get_winners(cycle_id)]})


@bp.route("/me/stats", methods=["GET"])
@jwt_required()
def my_stats():
    return success_response(get_user_cycle_stats(get_jwt_identity()))
