from leaderboard_cycles.extensions import db
from leaderboard_cycles.utils.timeutils import isoformat_z
import uuid


def gen_winner_id():
    return f"win-{uuid.uuid4().hex[:12]}"


def rank_ordinal(rank):
    if 10 <= rank % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(rank % 10, "th")
    return f"{rank}{suffix}"


class CycleWinner(db.Model):
    """Written once, when the cycle completes. Never updated except ``notified``."""

    __tablename__ = "leaderboard_cycle_winners"

    __table_args__ = (
        db.UniqueConstraint("cycle_id", "user_id", name="uq_winner_cycle_user"),
        db.UniqueConstraint("cycle_id", "rank", name="uq_winner_cycle_rank"),
    )

    id = db.Column(db.String(50), primary_key=True, default=gen_winner_id)
    cycle_id = db.Column(
        db.String(50),
        db.ForeignKey("leaderboard_cycles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = db.Column(db.String(50), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    rank = db.Column(db.Integer, nullable=False)
    is_guaranteed_winner = db.Column(db.Boolean, nullable=False, default=False)
    points_at_selection = db.Column(db.Float, nullable=False)
    selected_at = db.Column(db.DateTime, nullable=False)
    notified = db.Column(db.Boolean, nullable=False, default=False)

    user = db.relationship("User", lazy="joined")

    def rank_ordinal(self):
        return rank_ordinal(self.rank)

    def serialize(self):
        data = {
            "id": self.id,
            "cycle_id": self.cycle_id,
            "user_id": self.user_id,
            "rank": self.rank,
            "rank_ordinal": self.rank_ordinal(),
            "is_guaranteed_winner": self.is_guaranteed_winner,
            "points_at_selection": self.points_at_selection,
            "formatted_points": f"{self.points_at_selection:.2f}",
            "selected_at": isoformat_z(self.selected_at),
            "notified": self.notified,
        }
        if self.user:
            data["user"] = self.user.to_dict()
        return data
