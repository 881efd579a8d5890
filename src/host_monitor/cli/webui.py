#!/usr/bin/env python3
"""
Flask application serving the host-monitor API at /host-monitor/api

Usage:
  host-monitor [-c CONFIG] [-p PORT] [-D]

Options:
  -c CONFIG         : CONFIG を設定ファイルとして読み込んで実行します。[default: config.yaml]
  -p PORT           : WEB サーバのポートを指定します。[default: 5000]
  -D                : デバッグモードで動作します。
"""

from __future__ import annotations

import atexit
import logging
import os
import signal

import flask
import flask_cors

from host_monitor.config import Config, SessionConfig
from host_monitor.spec import db
from host_monitor.spec.collector import PeriodicCollector
from host_monitor.spec.dispatcher import ActionDispatcher
from host_monitor.spec.errors import HostMonitorError
from host_monitor.spec.repository import SqliteRepository
from host_monitor.spec.session_pool import SessionPool
from host_monitor.spec.webapi import exception_response, unexpected_error_response
from host_monitor.spec.webapi.alert import alert_api
from host_monitor.spec.webapi.host import host_api
from host_monitor.spec.webapi.webhook import webhook_api

URL_PREFIX = "/host-monitor"

# Resources released on shutdown
_shutdown_hooks: list = []
_term_registered = False


def term() -> None:
    """Terminate the application gracefully."""
    logging.info("Terminating application...")
    while _shutdown_hooks:
        _shutdown_hooks.pop()()
    logging.info("Application terminated.")


def sig_handler(num: int, frame) -> None:  # noqa: ARG001
    """Handle signals for graceful shutdown."""
    logging.warning("Received signal %d", num)

    if num in (signal.SIGTERM, signal.SIGINT):
        term()


def _register_term() -> None:
    global _term_registered

    if not _term_registered:
        atexit.register(term)
        _term_registered = True


def _drain_pool(pool: SessionPool) -> None:
    failures = pool.drain_all()
    if failures:
        logging.warning("%d SSH sessions failed to close cleanly", len(failures))


def create_app(config: Config | None = None, repository: SqliteRepository | None = None) -> flask.Flask:
    # Initialize paths from config
    if config:
        db.init_from_config(config)

    session_config = config.session if config else SessionConfig()
    webhook_config = config.webhook if config else None

    if repository is None:
        repository = SqliteRepository()
    pool = SessionPool()
    dispatcher = ActionDispatcher(
        repository,
        webhook_secret=webhook_config.secret if webhook_config else None,
        require_signature=webhook_config.require_signature if webhook_config else False,
    )

    app = flask.Flask("host-monitor")

    # NOTE: アクセスログは無効にする
    logging.getLogger("werkzeug").setLevel(logging.ERROR)

    flask_cors.CORS(app)

    app.config["REPOSITORY"] = repository
    app.config["SESSION_POOL"] = pool
    app.config["DISPATCHER"] = dispatcher
    app.config["SESSION_CONFIG"] = session_config

    # Register API blueprints
    app.register_blueprint(webhook_api, url_prefix=f"{URL_PREFIX}/api")
    app.register_blueprint(host_api, url_prefix=f"{URL_PREFIX}/api")
    app.register_blueprint(alert_api, url_prefix=f"{URL_PREFIX}/api")

    app.register_error_handler(HostMonitorError, exception_response)
    app.register_error_handler(Exception, unexpected_error_response)

    # Initialize database (required for API to work)
    repository.init_db()

    # Start background workers
    # - In debug mode with reloader: WERKZEUG_RUN_MAIN == "true" in the main worker process
    # - In non-debug mode: WERKZEUG_RUN_MAIN is not set
    werkzeug_run_main = os.environ.get("WERKZEUG_RUN_MAIN")
    if werkzeug_run_main == "true" or werkzeug_run_main is None:
        _shutdown_hooks.append(lambda: _drain_pool(pool))

        if config and config.collector.enabled:
            periodic = PeriodicCollector(
                pool,
                repository,
                session_config,
                interval_sec=config.collector.interval_sec,
                max_workers=config.collector.max_workers,
            )
            periodic.start()
            _shutdown_hooks.append(periodic.stop)

        _register_term()

    return app


def main() -> None:
    import pathlib
    import sys
    import traceback

    import docopt
    import my_lib.logger

    assert __doc__ is not None
    args = docopt.docopt(__doc__)

    config_file = args["-c"]
    port = int(args["-p"])
    debug_mode = args["-D"]

    my_lib.logger.init("host-monitor", level=logging.DEBUG if debug_mode else logging.INFO)

    logging.info("Starting host-monitor webui...")
    logging.info("Config file: %s", config_file)
    logging.info("Port: %s, Debug: %s", port, debug_mode)

    # Use cwd-relative schema path (works for both source and Docker)
    schema_path = pathlib.Path("schema/config.schema")
    if not schema_path.exists():
        schema_path = db.CONFIG_SCHEMA_PATH

    try:
        config = Config.load(pathlib.Path(config_file), schema_path)
        logging.info("Config loaded successfully, collector %s", "enabled" if config.collector.enabled else "disabled")

        app = create_app(config=config)

        signal.signal(signal.SIGTERM, sig_handler)

        app.run(host="0.0.0.0", port=port, debug=debug_mode)  # noqa: S104
    except KeyboardInterrupt:
        logging.info("Received KeyboardInterrupt, shutting down...")
        sig_handler(signal.SIGINT, None)
    except Exception:
        logging.exception("Fatal error during application startup")
        traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
