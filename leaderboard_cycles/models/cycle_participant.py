from leaderboard_cycles.extensions import db
from leaderboard_cycles.utils.timeutils import isoformat_z
import uuid


def gen_participant_id():
    return f"par-{uuid.uuid4().hex[:12]}"


class CycleParticipant(db.Model):
    """Cached ledger snapshot for one user in one cycle."""

    __tablename__ = "leaderboard_cycle_participants"

    __table_args__ = (
        db.UniqueConstraint("cycle_id", "user_id", name="uq_cycle_participant"),
        db.Index("idx_participants_cycle_points", "cycle_id", "total_points"),
    )

    id = db.Column(db.String(50), primary_key=True, default=gen_participant_id)
    cycle_id = db.Column(
        db.String(50),
        db.ForeignKey("leaderboard_cycles.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id = db.Column(db.String(50), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    total_points = db.Column(db.Float, nullable=False, default=0.0)
    rank = db.Column(db.Integer, nullable=True)
    first_participated_at = db.Column(db.DateTime, nullable=True)
    refreshed_at = db.Column(db.DateTime, nullable=True)

    user = db.relationship("User", lazy="joined")

    def serialize(self):
        data = {
            "cycle_id": self.cycle_id,
            "user_id": self.user_id,
            "rank": self.rank,
            "total_points": round(self.total_points or 0.0, 2),
            "formatted_points": f"{(self.total_points or 0.0):.2f}",
            "first_participated_at": isoformat_z(self.first_participated_at),
        }
        if self.user:
            data["user"] = self.user.to_dict()
        return data
