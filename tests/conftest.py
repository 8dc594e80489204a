"""
Shared fixtures.

Every app is built with a frozen clock and a seeded lottery so sweeps and
completions are reproducible. Times are naive UTC, like the stored columns.
"""
from datetime import datetime, timedelta

import pytest
from flask_jwt_extended import create_access_token

from leaderboard_cycles.config import TestingConfig
from leaderboard_cycles.extensions import db
from leaderboard_cycles.main import create_app
from leaderboard_cycles.models.cycle import CycleStatus, LeaderboardCycle
from leaderboard_cycles.models.user import User
from leaderboard_cycles.services.points_ledger import record_points
from leaderboard_cycles.services.runtime import EXTENSION_KEY
from leaderboard_cycles.utils.random_source import SeededRandomSource

NOW = datetime(2025, 3, 3, 12, 0, 0)  # a Monday


class FakeClock:
    def __init__(self, now=NOW):
        self.current = now

    def now(self):
        return self.current

    def advance(self, **kwargs):
        self.current += timedelta(**kwargs)
        return self.current

    def set(self, value):
        self.current = value


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def app(clock):
    app = create_app("testing", clock=clock, random_source=SeededRandomSource(1234))
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def file_app(tmp_path, monkeypatch, clock):
    """App on a file-backed SQLite database; each app context gets its own connection."""
    monkeypatch.setattr(TestingConfig, "SQLALCHEMY_DATABASE_URI", f"sqlite:///{tmp_path / 'cycles.db'}")
    app = create_app("testing", clock=clock, random_source=SeededRandomSource(99))
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def swap_ledger(app):
    """Replace the points ledger for one test."""

    def _swap(ledger):
        app.extensions[EXTENSION_KEY]["points_ledger"] = ledger

    return _swap


@pytest.fixture
def make_user(app):
    counter = {"n": 0}

    def _make(role="user", **kwargs):
        counter["n"] += 1
        n = counter["n"]
        user = User(
            id=kwargs.pop("id", f"usr-{n:03d}"),
            email=kwargs.pop("email", f"user{n}@example.com"),
            full_name=kwargs.pop("full_name", f"User {n}"),
            role=role,
            **kwargs,
        )
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture
def make_cycle(app):
    def _make(start, end, status=CycleStatus.ACTIVE, number_of_winners=1, guarantee_first_place=False, **kwargs):
        cycle = LeaderboardCycle(
            name_en=kwargs.pop("name_en", "Spring cycle"),
            name_hr=kwargs.pop("name_hr", "Proljetni ciklus"),
            start_date=start,
            end_date=end,
            status=status,
            number_of_winners=number_of_winners,
            guarantee_first_place=guarantee_first_place,
            **kwargs,
        )
        db.session.add(cycle)
        db.session.commit()
        return cycle

    return _make


@pytest.fixture
def award(app):
    def _award(user, points, at, action_type="review_add"):
        record_points(user.id, points, action_type, created_at=at)
        db.session.commit()

    return _award


@pytest.fixture
def auth_headers(app):
    def _headers(user):
        token = create_access_token(identity=user.id)
        return {"Authorization": f"Bearer {token}"}

    return _headers
