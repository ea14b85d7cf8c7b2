import os
import sys
import logging
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import uuid4

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# --- Flask specific imports ---
from flask import Flask, request, jsonify, g
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

# --- Import our configuration and the download core ---
from config import Config
from tuberelay.errors import ProvisionError
from tuberelay.settings import AppSettings, load_app_settings
from tuberelay.tooling import ToolProvisioner
from tuberelay.downloads import JobCoordinator, TransferStreamer, WorkspaceManager
from tuberelay.interfaces.http.routes import media_bp, health_bp
from tuberelay.observability import configure_structured_logging, metrics_blueprint


logger = logging.getLogger(__name__)


def configure_logging(log_dir: str) -> str:
    """
    Configure root logging with:
      - FileHandler (INFO+) to a new file per run: log-YYYY-MM-DD-HH-MM-SS
      - StreamHandler (WARNING+) to console when ENABLE_CONSOLE_LOGS is set
      - Werkzeug/Flask loggers routed to root (no extra console spam)

    Returns the path to the created log file.
    """
    os.makedirs(log_dir, exist_ok=True)

    timestamp = datetime.now().strftime("%Y-%m-%d-%H-%M-%S")
    log_filename = f"log-{timestamp}"
    log_path = os.path.join(log_dir, log_filename)

    root = logging.getLogger()
    root.setLevel(logging.INFO)

    # Preserve structured handlers; remove existing FileHandlers to avoid duplicates
    root.handlers = [h for h in root.handlers if not isinstance(h, logging.FileHandler)]

    formatter = logging.Formatter(
        fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    # File: INFO and above
    file_handler = logging.FileHandler(log_path, encoding='utf-8')
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    if Config.ENABLE_CONSOLE_LOGS:
        console_handler = logging.StreamHandler()
        # If console logging is enabled, keep it concise: warnings and above
        console_handler.setLevel(logging.WARNING)
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)

    # Quiet Flask/Werkzeug own console handlers; let them propagate to root
    for name in ("werkzeug", "flask.app"):
        _l = logging.getLogger(name)
        _l.setLevel(logging.INFO)
        _l.handlers = []
        _l.propagate = True

    return log_path


def create_app(
    settings: Optional[AppSettings] = None,
    settings_overrides: Optional[Dict[str, Any]] = None,
    provisioner: Optional[ToolProvisioner] = None,
    coordinator: Optional[JobCoordinator] = None,
):
    """Build the Flask app with explicitly injected download collaborators.

    Provisioning is not triggered here; ``main`` runs it before serving and
    every job re-checks the binary through the coordinator.
    """
    app = Flask(__name__)
    app.config.from_object(Config)
    settings = settings or load_app_settings(settings_overrides)
    app.extensions['settings'] = settings

    configure_structured_logging(app)

    @app.before_request
    def _assign_request_id():
        g.request_id = request.headers.get('X-Request-ID') or uuid4().hex

    @app.after_request
    def _inject_request_id(response):
        if getattr(g, 'request_id', None):
            response.headers.setdefault('X-Request-ID', g.request_id)
        return response

    origins = [o for o in settings.cors_allowed_origins if o]
    CORS(app, origins=origins or "*", expose_headers=["Content-Disposition", "Content-Length", "X-Request-ID"])

    # Build the download core; everything below shares one settings object
    provisioner = provisioner or ToolProvisioner(settings)
    workspaces = WorkspaceManager(base_output_dir=settings.base_output_dir)
    if coordinator is None:
        coordinator = JobCoordinator(
            settings=settings,
            provisioner=provisioner,
            workspaces=workspaces,
            streamer=TransferStreamer(
                chunk_size=settings.stream_chunk_size,
                archive_filename=settings.archive_filename,
            ),
        )
    app.extensions['tool_provisioner'] = provisioner
    app.extensions['workspace_manager'] = workspaces
    app.extensions['job_coordinator'] = coordinator

    # --- Register Blueprints ---
    app.register_blueprint(media_bp)
    app.register_blueprint(health_bp)
    app.register_blueprint(metrics_blueprint)

    @app.errorhandler(Exception)
    def _handle_unexpected(err):
        if isinstance(err, HTTPException):
            return err
        app.logger.error("[SERVER ERROR] %s", err, exc_info=True)
        return jsonify({"error": "Internal server error", "message": str(err)}), 500

    return app


def main() -> int:
    # Ensure the base downloads directory exists when the app starts
    os.makedirs(Config.BASE_OUTPUT_DIR, exist_ok=True)

    # Configure logging:
    # - In debug with reloader: only in the child process to avoid duplicate files
    # - In non-debug: always configure here
    log_dir = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'log')
    if not Config.DEBUG or os.environ.get('WERKZEUG_RUN_MAIN') == 'true':
        log_file_path = configure_logging(log_dir)
        logger.info("File logging initialized at %s", log_file_path)

    logger.info("Initializing YouTube Downloader Backend...")
    app = create_app()
    # Route app.logger through root handlers, keep levels consistent
    app.logger.handlers = []
    app.logger.setLevel(logging.INFO)
    app.logger.propagate = True

    # No partial service: a missing or broken binary aborts startup
    try:
        app.extensions['tool_provisioner'].ensure()
    except ProvisionError as exc:
        logger.critical("Failed to start server: %s", exc)
        return 1

    logger.info("Server running on port %s (environment: %s)", Config.PORT, Config.ENVIRONMENT)
    # Threaded mode so each request runs as its own job
    app.run(debug=Config.DEBUG, host='0.0.0.0', port=Config.PORT, threaded=True)
    return 0


if __name__ == '__main__':
    sys.exit(main())
