#!/usr/bin/env python3
"""
QuizCraft - Quiz Authoring and Timed Quiz Platform
Application shell: configuration, logging, security headers, health check, app factory
"""

import os
import logging
from datetime import datetime as dt, timedelta, timezone

from flask import Flask, jsonify

from api_routes import api
from quiz_auth import hash_password
from quiz_storage import MemStorage, SessionStore, get_storage
from web_routes import web

SERVICE_NAME = 'QuizCraft'
SERVICE_VERSION = '1.0.0'
DEV_SECRET_KEY = 'quizcraft-dev-secret'


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


# Configuration Class
class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY', '')
    SESSION_LIFETIME_HOURS = int(os.environ.get('SESSION_LIFETIME_HOURS', '24'))
    SESSION_PRUNE_INTERVAL = int(os.environ.get('SESSION_PRUNE_INTERVAL', '3600'))
    PERMANENT_SESSION_LIFETIME = timedelta(hours=SESSION_LIFETIME_HOURS)
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    SESSION_COOKIE_SECURE = _env_flag('SESSION_COOKIE_SECURE', False)
    SEED_DEMO_USER = _env_flag('SEED_DEMO_USER', True)
    RATELIMIT_ENABLED = _env_flag('RATELIMIT_ENABLED', True)
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_FILE = os.environ.get('LOG_FILE', '')


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = 'quizcraft-test-secret'
    RATELIMIT_ENABLED = False
    SEED_DEMO_USER = False
    LOG_FILE = ''


def configure_logging(config: dict):
    handlers = [logging.StreamHandler()]
    if config.get('LOG_FILE'):
        handlers.append(logging.FileHandler(config['LOG_FILE']))
    logging.basicConfig(
        level=getattr(logging, str(config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
    )


logger = logging.getLogger(__name__)


def seed_demo_user(storage: MemStorage):
    """Create the demo/password account used for local testing"""
    if storage.get_user_by_username('demo'):
        return
    storage.create_user({'username': 'demo', 'password_hash': hash_password('password')})
    logger.info("Seeded demo user 'demo'")


def create_app(config_object=Config) -> Flask:
    app = Flask(__name__)
    app.config.from_object(config_object)
    configure_logging(app.config)

    if not app.config.get('SECRET_KEY'):
        logger.warning("SECRET_KEY is not set; using the development default")
        app.config['SECRET_KEY'] = DEV_SECRET_KEY

    storage = MemStorage()
    app.extensions['quiz_storage'] = storage
    app.extensions['quiz_sessions'] = SessionStore(
        lifetime_seconds=app.config['SESSION_LIFETIME_HOURS'] * 3600,
        prune_interval=app.config['SESSION_PRUNE_INTERVAL'],
    )
    if app.config.get('SEED_DEMO_USER'):
        seed_demo_user(storage)

    app.register_blueprint(api)
    app.register_blueprint(web)

    # Security Headers Middleware
    @app.after_request
    def add_security_headers(response):
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['X-Frame-Options'] = 'DENY'
        response.headers['Referrer-Policy'] = 'same-origin'
        response.headers['Content-Security-Policy'] = (
            "default-src 'self'; "
            "script-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
            "style-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
            "img-src 'self' data:"
        )
        return response

    # Health Check Routes
    @app.route('/health')
    @app.route('/healthz')
    @app.route('/ready')
    def health_check():
        """Health check endpoint for deployment"""
        return jsonify({
            'status': 'healthy',
            'timestamp': dt.now(timezone.utc).isoformat(),
            'service': SERVICE_NAME,
            'version': SERVICE_VERSION,
            'records': get_storage().stats(),
        })

    logger.info(f"{SERVICE_NAME} {SERVICE_VERSION} initialized")
    return app


app = create_app()


if __name__ == '__main__':
    port = int(os.environ.get('PORT', '5000'))
    app.run(host='0.0.0.0', port=port, debug=_env_flag('FLASK_DEBUG', False))
