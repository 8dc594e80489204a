from flask_jwt_extended import get_jwt_identity

from leaderboard_cycles.extensions import db
from leaderboard_cycles.models.user import User
from leaderboard_cycles.utils.exceptions import ForbiddenError


def admin_required(user):
    return user is not None and user.is_admin


def current_admin():
    """Operator issuing the request. Call inside a ``jwt_required`` view."""
    user = db.session.get(User, get_jwt_identity())
    if not admin_required(user):
        raise ForbiddenError()
    return user
