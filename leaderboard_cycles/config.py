import os
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name, default=False):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name, default=None):
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return int(value)


class Config:
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///leaderboard_cycles.db")
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")

    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:5173")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    PAGE_MAX_LIMIT = _env_int("PAGE_MAX_LIMIT", 100)

    # Naive timestamps sent by operators are read in this zone.
    CYCLE_TIMEZONE = os.getenv("CYCLE_TIMEZONE", "Europe/Zagreb")

    # Lottery for the non-guaranteed winner slots
    CYCLE_LOTTERY_WEIGHTING = os.getenv("CYCLE_LOTTERY_WEIGHTING", "proportional")
    CYCLE_ZERO_POINT_WEIGHT = float(os.getenv("CYCLE_ZERO_POINT_WEIGHT", "0.1"))
    CYCLE_RANDOM_SEED = _env_int("CYCLE_RANDOM_SEED")

    CYCLE_ALLOW_OVERLAP = _env_bool("CYCLE_ALLOW_OVERLAP", False)
    CYCLE_NOTIFICATIONS_ENABLED = _env_bool("CYCLE_NOTIFICATIONS_ENABLED", True)

    AUTO_CYCLES_ENABLED = _env_bool("AUTO_CYCLES_ENABLED", False)
    AUTO_CYCLE_NUMBER_OF_WINNERS = _env_int("AUTO_CYCLE_NUMBER_OF_WINNERS", 2)
    AUTO_CYCLE_GUARANTEE_FIRST_PLACE = _env_bool("AUTO_CYCLE_GUARANTEE_FIRST_PLACE", True)
    AUTO_CYCLE_DURATION_DAYS = _env_int("AUTO_CYCLE_DURATION_DAYS", 14)
    AUTO_CYCLE_END_WEEKDAY = _env_int("AUTO_CYCLE_END_WEEKDAY", 6)  # Monday=0 .. Sunday=6
    AUTO_CYCLE_END_HOUR = _env_int("AUTO_CYCLE_END_HOUR", 20)
    AUTO_CYCLE_END_MINUTE = _env_int("AUTO_CYCLE_END_MINUTE", 0)


class DevelopmentConfig(Config):
    DEBUG = True
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-secret-change-me")


class ProductionConfig(Config):
    DEBUG = False


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    JWT_SECRET_KEY = "test-secret-key-with-enough-length-for-hs256"
    CYCLE_RANDOM_SEED = 1234
    AUTO_CYCLES_ENABLED = False
