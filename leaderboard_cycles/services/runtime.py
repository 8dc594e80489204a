"""Per-app collaborators: clock, lottery randomness and the points ledger."""
from flask import current_app

EXTENSION_KEY = "leaderboard_cycles"


def init_runtime(app, clock, random_source, points_ledger):
    app.extensions[EXTENSION_KEY] = {
        "clock": clock,
        "random_source": random_source,
        "points_ledger": points_ledger,
    }


def _runtime():
    return current_app.extensions[EXTENSION_KEY]


def get_clock():
    return _runtime()["clock"]


def get_random_source():
    return _runtime()["random_source"]


def get_points_ledger():
    return _runtime()["points_ledger"]


def lottery_settings():
    return {
        "weighting": current_app.config["CYCLE_LOTTERY_WEIGHTING"],
        "zero_point_weight": current_app.config["CYCLE_ZERO_POINT_WEIGHT"],
    }
