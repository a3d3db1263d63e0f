"""
Smart Queue Service - Flask application
Customer registration, billing, queue display and exit verification.
"""

import logging
import os
import time

from dotenv import load_dotenv
from flasgger import Swagger
from flask import Flask, g, jsonify, request
from sqlalchemy.exc import InterfaceError, OperationalError
from werkzeug.exceptions import HTTPException

from smartqueue.clock import isoformat, utcnow
from smartqueue.errors import QueueError, StoreUnavailable
from smartqueue.extensions import db
from smartqueue.logging_utils import configure_logging

load_dotenv()

logger = logging.getLogger(__name__)


def _database_uri():
    if os.environ.get('DATABASE_URL'):
        return os.environ['DATABASE_URL']
    db_user = os.environ.get('DB_USER', 'queue_svc_user')
    db_pass = os.environ.get('DB_PASS', 'password')
    db_host = os.environ.get('DB_HOST', 'queue-db')
    db_name = os.environ.get('DB_NAME', 'queue_db')
    return f"postgresql://{db_user}:{db_pass}@{db_host}/{db_name}"


def create_app(config=None):
    app = Flask(__name__)

    # Configuration
    app.config['SQLALCHEMY_DATABASE_URI'] = _database_uri()
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config['AVERAGE_SERVICE_MINUTES'] = int(os.environ.get('AVERAGE_SERVICE_MINUTES', 3))
    app.config['CUSTOMER_ID_PREFIX'] = os.environ.get('CUSTOMER_ID_PREFIX', 'SM')
    app.config['CUSTOMER_ID_START'] = int(os.environ.get('CUSTOMER_ID_START', 1001))
    app.config['LOG_LEVEL'] = os.environ.get('LOG_LEVEL', 'INFO')
    if config:
        app.config.update(config)

    configure_logging(app.config['LOG_LEVEL'])

    # Initialize Extensions
    db.init_app(app)
    from smartqueue import models  # noqa: F401  register models

    # Initialize Swagger
    swagger_config = {
        "headers": [],
        "specs": [
            {
                "endpoint": 'apispec_1',
                "route": '/apispec_1.json',
                "rule_filter": lambda rule: True,  # all in
                "model_filter": lambda tag: True,  # all in
            }
        ],
        "static_url_path": "/flasgger_static",
        "swagger_ui": True,
        "specs_route": "/apidocs/"
    }
    Swagger(app, config=swagger_config)

    # Register Blueprints
    from smartqueue.routes.customer import customer_bp
    app.register_blueprint(customer_bp, url_prefix='/api/customer')

    from smartqueue.routes.queue import queue_bp
    app.register_blueprint(queue_bp, url_prefix='/api/queue')

    from smartqueue.routes.billing import billing_bp
    app.register_blueprint(billing_bp, url_prefix='/api/billing')

    from smartqueue.routes.verification import verification_bp
    app.register_blueprint(verification_bp, url_prefix='/api/verify')

    from smartqueue.routes.admin import admin_bp
    app.register_blueprint(admin_bp, url_prefix='/api/admin')

    from smartqueue.cli import init_db_command, seed_command
    app.cli.add_command(init_db_command)
    app.cli.add_command(seed_command)

    _register_request_logging(app)
    _register_error_handlers(app)

    # --- Health check ---------------------------------------------------
    @app.route('/health')
    def health():
        try:
            db.session.execute(db.text('SELECT 1'))
            return jsonify({
                "status": "healthy",
                "service": "queue-service",
                "timestamp": isoformat(utcnow()),
            }), 200
        except (OperationalError, InterfaceError) as e:
            db.session.rollback()
            return jsonify({"status": "unhealthy", "service": "queue-service", "error": str(e)}), 503

    return app


def _register_request_logging(app):
    access_log = logging.getLogger('smartqueue.access')

    @app.before_request
    def start_timer():
        g.request_started = time.perf_counter()

    @app.after_request
    def log_request(response):
        started = g.pop('request_started', None)
        duration_ms = (time.perf_counter() - started) * 1000 if started is not None else 0.0
        access_log.info(
            "%s %s - %s - %.1fms - IP: %s",
            request.method,
            request.full_path.rstrip('?'),
            response.status_code,
            duration_ms,
            request.remote_addr,
        )
        return response


def _register_error_handlers(app):
    @app.errorhandler(QueueError)
    def handle_queue_error(exc):
        if exc.category == 'infrastructure':
            logger.error("%s %s failed: %s", request.method, request.path, exc)
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(OperationalError)
    @app.errorhandler(InterfaceError)
    def handle_store_error(exc):
        db.session.rollback()
        logger.error("Store unavailable on %s %s: %s", request.method, request.path, exc)
        error = StoreUnavailable()
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def handle_not_found(exc):
        return jsonify({
            "success": False,
            "error_code": "ROUTE_NOT_FOUND",
            "message": "Route not found",
            "requested_url": request.path
        }), 404

    @app.errorhandler(Exception)
    def handle_unexpected(exc):
        if isinstance(exc, HTTPException):
            return exc
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({
            "success": False,
            "error_code": "INTERNAL_ERROR",
            "message": "Internal server error"
        }), 500


if __name__ == '__main__':
    app = create_app()
    app.run(host='0.0.0.0', port=int(os.environ.get('PORT', 5000)))
