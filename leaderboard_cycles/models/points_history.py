from leaderboard_cycles.extensions import db
from datetime import datetime
import uuid


def gen_points_id():
    return f"pts-{uuid.uuid4().hex[:12]}"


class UserPointsHistory(db.Model):
    """Points ledger rows. Owned by the points subsystem; read-only here."""

    __tablename__ = "user_points_history"

    __table_args__ = (
        db.Index("idx_points_user_created", "user_id", "created_at"),
    )

    id = db.Column(db.String(50), primary_key=True, default=gen_points_id)
    user_id = db.Column(db.String(50), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    action_type = db.Column(db.String(50), nullable=False)
    points = db.Column(db.Float, nullable=False)
    reference_id = db.Column(db.String(50), nullable=True)
    description = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
