from flask import Flask, jsonify, request
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException
import logging
from logging.handlers import RotatingFileHandler
import os
from market_overview.config import Config

# Database
db = SQLAlchemy()


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    # Extensions
    db.init_app(app)

    _configure_logging(app)

    # Server-side sessions and the per-request auth context
    from market_overview.sessions import init_session_gate
    init_session_gate(app)

    _register_error_handlers(app)
    _register_response_headers(app)

    # Blueprints
    from market_overview.routes import credentials_bp, dashboard_bp, status_bp
    app.register_blueprint(credentials_bp, url_prefix='/api')
    app.register_blueprint(dashboard_bp, url_prefix='/api')
    app.register_blueprint(status_bp)

    from market_overview.commands import register_commands
    register_commands(app)

    return app


def _configure_logging(app):
    app.logger.setLevel(app.config['LOG_LEVEL'])
    if not app.config['LOG_TO_FILE']:
        return

    log_dir = app.config['LOG_DIR']
    if not os.path.exists(log_dir):
        os.mkdir(log_dir)
    log_path = os.path.abspath(os.path.join(log_dir, app.config['LOG_FILE']))
    if any(getattr(h, 'baseFilename', None) == log_path for h in app.logger.handlers):
        return

    file_handler = RotatingFileHandler(log_path, maxBytes=10240, backupCount=10)
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
    ))
    file_handler.setLevel(logging.INFO)
    app.logger.addHandler(file_handler)
    app.logger.info('Market Overview startup')


def _register_error_handlers(app):
    from market_overview.errors import MarketOverviewError, StorageError

    @app.errorhandler(MarketOverviewError)
    def handle_service_error(error):
        app.logger.warning(f'{error.code} on {request.method} {request.path}: {error.message}')
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(error):
        db.session.rollback()
        app.logger.error(f'Database error on {request.path}: {str(error)}')
        error = StorageError('A database error occurred, please try again later')
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        response = jsonify({
            'success': False,
            'message': error.name.capitalize(),
            'code': error.name.upper().replace(' ', '_')
        })
        if error.code == 405 and getattr(error, 'valid_methods', None):
            response.headers['Allow'] = ', '.join(error.valid_methods)
        return response, error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        app.logger.exception(f'Unhandled error on {request.method} {request.path}: {str(error)}')
        return jsonify({
            'success': False,
            'message': 'Server error, please try again later',
            'code': 'SERVER_ERROR'
        }), 500


def _register_response_headers(app):
    @app.after_request
    def apply_headers(response):
        # CORS
        response.headers['Access-Control-Allow-Origin'] = app.config['CORS_ALLOWED_ORIGIN']
        response.headers['Access-Control-Allow-Methods'] = 'POST, OPTIONS'
        response.headers['Access-Control-Allow-Headers'] = 'Content-Type, X-Requested-With'
        response.headers['Access-Control-Allow-Credentials'] = 'true'
        response.headers['Access-Control-Max-Age'] = str(app.config['CORS_MAX_AGE'])
        # Hardening
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['X-Frame-Options'] = 'DENY'
        response.headers['X-XSS-Protection'] = '1; mode=block'
        return response
