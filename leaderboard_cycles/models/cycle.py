from leaderboard_cycles.extensions import db
from leaderboard_cycles.utils.timeutils import isoformat_z
from datetime import datetime
import math
import uuid


def gen_cycle_id():
    return f"cyc-{uuid.uuid4().hex[:12]}"


class CycleStatus:
    SCHEDULED = "scheduled"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    ALL = (SCHEDULED, ACTIVE, COMPLETED, CANCELLED)
    OPEN = (SCHEDULED, ACTIVE)
    TERMINAL = (COMPLETED, CANCELLED)


class LeaderboardCycle(db.Model):
    __tablename__ = "leaderboard_cycles"

    __table_args__ = (
        db.Index("idx_cycles_status", "status"),
        db.Index("idx_cycles_window", "start_date", "end_date"),
        db.CheckConstraint("number_of_winners >= 1", name="ck_cycles_number_of_winners"),
        db.CheckConstraint("start_date < end_date", name="ck_cycles_window"),
        db.CheckConstraint(
            "status IN ('scheduled', 'active', 'completed', 'cancelled')",
            name="ck_cycles_status",
        ),
    )

    id = db.Column(db.String(50), primary_key=True, default=gen_cycle_id)

    name_en = db.Column(db.String(255), nullable=False)
    name_hr = db.Column(db.String(255), nullable=False)
    # Rich text, stored as given
    description_en = db.Column(db.Text)
    description_hr = db.Column(db.Text)
    header_image_url = db.Column(db.String(1024))

    start_date = db.Column(db.DateTime, nullable=False)
    end_date = db.Column(db.DateTime, nullable=False)

    status = db.Column(db.String(20), nullable=False, default=CycleStatus.SCHEDULED)
    number_of_winners = db.Column(db.Integer, nullable=False, default=1)
    guarantee_first_place = db.Column(db.Boolean, nullable=False, default=False)

    is_auto_generated = db.Column(db.Boolean, nullable=False, default=False)
    cycle_number = db.Column(db.Integer, unique=True, nullable=True)

    created_by = db.Column(db.String(50), nullable=True)
    completed_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    participants = db.relationship(
        "CycleParticipant",
        backref="cycle",
        lazy="dynamic",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    winners = db.relationship(
        "CycleWinner",
        backref="cycle",
        order_by="CycleWinner.rank",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def duration_in_days(self):
        return math.ceil((self.end_date - self.start_date).total_seconds() / 86400)

    def remaining_days(self, now):
        remaining = (self.end_date - now).total_seconds()
        return max(0, math.ceil(remaining / 86400))

    def progress_percentage(self, now):
        if now < self.start_date:
            return 0
        if now > self.end_date:
            return 100
        total = (self.end_date - self.start_date).total_seconds()
        elapsed = (now - self.start_date).total_seconds()
        return round(elapsed / total * 100)

    def serialize(self, now=None, include_winners=False):
        data = {
            "id": self.id,
            "name_en": self.name_en,
            "name_hr": self.name_hr,
            "description_en": self.description_en,
            "description_hr": self.description_hr,
            "header_image_url": self.header_image_url,
            "start_date": isoformat_z(self.start_date),
            "end_date": isoformat_z(self.end_date),
            "status": self.status,
            "number_of_winners": self.number_of_winners,
            "guarantee_first_place": self.guarantee_first_place,
            "is_auto_generated": self.is_auto_generated,
            "cycle_number": self.cycle_number,
            "completed_at": isoformat_z(self.completed_at),
            "created_at": isoformat_z(self.created_at),
        }
        if now is not None:
            data.update({
                "progress_percentage": self.progress_percentage(now),
                "remaining_days": self.remaining_days(now),
                "duration_in_days": self.duration_in_days(),
            })
        if include_winners:
            data["winners"] = [w.serialize() for w in self.winners]
        return data
