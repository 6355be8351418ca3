from dotenv import load_dotenv
from flask import Flask
from flask_cors import CORS
import os
import logging
import sentry_sdk
import atexit
from cardclock.api.employees import bp as employee_blueprint
from cardclock.api.attendance import bp as attendance_blueprint
from cardclock.api.reader import bp as reader_blueprint
from cardclock.api.events import bp as event_blueprint
from cardclock.api.settings import bp as settings_blueprint
from cardclock.config import settings as app_settings
from cardclock.shared.logger import create_log_handler
from cardclock.services.reader_service import get_reader_service


class EndpointFilter(logging.Filter):
    """Suppress noisy request logs for specific endpoints."""

    def __init__(self, *paths):
        super().__init__()
        self.paths = paths

    def filter(self, record):
        message = record.getMessage()
        return not any(path in message for path in self.paths)

load_dotenv()

def create_app(test_config=None):
    init_sentry()
    app = Flask(__name__)

    # Enable CORS for the local UI
    CORS(app,
         origins=["*"],
         allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
         methods=["GET", "POST", "PUT", "OPTIONS"],
         supports_credentials=True)

    app.config.from_object("cardclock.config.settings")
    if test_config:
        app.config.update(test_config)

    handler = create_log_handler()
    app.logger.addHandler(handler)
    app.logger.setLevel(logging.INFO)

    werkzeug_logger = logging.getLogger('werkzeug')
    werkzeug_logger.addFilter(EndpointFilter('/live-events', '/reader/status'))

    app.register_blueprint(employee_blueprint)
    app.register_blueprint(attendance_blueprint)
    app.register_blueprint(reader_blueprint)
    app.register_blueprint(event_blueprint)
    app.register_blueprint(settings_blueprint)

    # Close database connection at the end of each request
    @app.teardown_appcontext
    def teardown_db(exception=None):
        try:
            from cardclock.database.connection import db_manager
            db_manager.close_connection()
        except Exception as e:
            app.logger.debug(f"Error during database teardown: {e}")

    try:
        from cardclock.repositories import setting_repo
        setting_repo.initialize_defaults()
        app.logger.info("Default settings initialized")
    except Exception as e:
        app.logger.error(f"Failed to initialize default settings: {e}")

    if app.config.get("TESTING") or app_settings.DISABLE_READER:
        app.logger.info("Reader runtime not started (testing or CARDCLOCK_DISABLE_READER)")
        return app

    # With the reloader enabled only the child process (== "true") owns the serial port
    run_main_flag = os.environ.get('WERKZEUG_RUN_MAIN')
    if run_main_flag == 'true' or run_main_flag is None:
        reader_service = get_reader_service()
        try:
            reader_service.start()
        except Exception as e:
            app.logger.error(f"Failed to start reader service: {e}")

        def cleanup_services():
            app.logger.info("Shutting down services...")
            try:
                reader_service.stop()
            except Exception as e:
                app.logger.error(f"Error stopping reader service: {e}")

            try:
                from cardclock.database.connection import db_manager
                db_manager.close_all_connections()
            except Exception as e:
                app.logger.error(f"Error closing database connections: {e}")

            app.logger.info("Services shutdown completed")

        atexit.register(cleanup_services)
    else:
        app.logger.info("Skipping reader start in reloader process")

    return app


def init_sentry():
    """Crash reporting, only when a DSN is configured"""
    dsn = os.getenv("SENTRY_DSN")
    if not dsn:
        return
    sentry_sdk.init(
        dsn=dsn,
        traces_sample_rate=float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0")),
    )
