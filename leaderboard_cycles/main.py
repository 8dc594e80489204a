import logging
import os

from flask import Flask

from .config import DevelopmentConfig, ProductionConfig, TestingConfig
from .extensions import db, migrate, jwt, ma, cors

CONFIGS = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}


def create_app(config_name=None, clock=None, random_source=None, points_ledger=None):
    app = Flask(__name__, instance_relative_config=False)
    env = config_name or os.getenv("FLASK_ENV", "development")
    app.config.from_object(CONFIGS.get(env, DevelopmentConfig))

    logging.basicConfig(
        level=app.config["LOG_LEVEL"],
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    app.logger.setLevel(app.config["LOG_LEVEL"])

    # initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    ma.init_app(app)
    origins = [o.strip() for o in app.config["CORS_ORIGINS"].split(",")]
    cors.init_app(
        app,
        resources={r"/api/*": {"origins": origins}},
        supports_credentials=True,
        allow_headers=["Content-Type", "Authorization"],
        methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    )

    # models must be imported before migrations / create_all see the metadata
    from leaderboard_cycles.models import (  # noqa: F401
        cycle,
        cycle_participant,
        cycle_winner,
        notification,
        points_history,
        user,
    )

    from leaderboard_cycles.services.points_ledger import SqlPointsLedger
    from leaderboard_cycles.services.runtime import init_runtime
    from leaderboard_cycles.utils.random_source import build_random_source
    from leaderboard_cycles.utils.timeutils import SystemClock

    init_runtime(
        app,
        clock=clock or SystemClock(),
        random_source=random_source or build_random_source(app.config["CYCLE_RANDOM_SEED"]),
        points_ledger=points_ledger or SqlPointsLedger(),
    )

    # register blueprints
    from leaderboard_cycles.routes.admin_cycle_routes import bp as admin_cycles_bp
    from leaderboard_cycles.routes.cycle_routes import bp as cycles_bp

    app.register_blueprint(admin_cycles_bp)
    app.register_blueprint(cycles_bp)

    from leaderboard_cycles.commands import cycles_cli

    app.cli.add_command(cycles_cli)

    # error handlers to match required error format
    from leaderboard_cycles.utils.exceptions import ServiceError
    from leaderboard_cycles.utils.response_formatter import error_response, service_error_response

    @app.errorhandler(ServiceError)
    def service_error(e):
        return service_error_response(e)

    @app.errorhandler(400)
    def bad_request(e):
        return error_response("BAD_REQUEST", str(e), status=400)

    @app.errorhandler(401)
    def unauthorized(e):
        return error_response("UNAUTHORIZED", str(e), status=401)

    @app.errorhandler(404)
    def not_found(e):
        return error_response("NOT_FOUND", "Resource not found", status=404)

    @app.errorhandler(405)
    def method_not_allowed(e):
        return error_response("METHOD_NOT_ALLOWED", str(e), status=405)

    @app.errorhandler(500)
    def server_error(e):
        app.logger.error("Unhandled error: %s", e)
        return error_response("SERVER_ERROR", "Internal server error", status=500)

    return app
