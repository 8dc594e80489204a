from leaderboard_cycles.extensions import db
from datetime import datetime
import uuid


def gen_uuid(prefix=None):
    uid = str(uuid.uuid4())
    return f"{prefix}-{uid}" if prefix else uid


ADMIN_ROLES = ("admin", "sysadmin")


class User(db.Model):
    """Identity directory entry. Only read for presentation and operator checks."""

    __tablename__ = "users"

    id = db.Column(db.String(50), primary_key=True, default=lambda: gen_uuid("usr"))
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    full_name = db.Column(db.String(255))
    username = db.Column(db.String(100), nullable=True)
    city = db.Column(db.String(100), nullable=True)
    role = db.Column(db.String(50), nullable=False, default="user")
    profile_image = db.Column(db.String(1024), nullable=True)
    joined_at = db.Column(db.DateTime, default=datetime.utcnow)

    @property
    def is_admin(self):
        return (self.role or "").lower() in ADMIN_ROLES

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "name": self.full_name,
            "username": self.username,
            "city": self.city,
            "profile_image": self.profile_image,
        }
