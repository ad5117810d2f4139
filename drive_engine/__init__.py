"""Placement Drive Engine - Application Factory."""
import logging
import os
from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_jwt_extended import JWTManager
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
import redis

# Initialize extensions
db = SQLAlchemy()
migrate = Migrate()
jwt = JWTManager()
limiter = Limiter(key_func=get_remote_address)

def create_app(config_name: str = None) -> Flask:
    """Application factory pattern."""
    app = Flask(__name__)

    # Load configuration
    from config import get_config
    config_class = get_config(config_name)
    app.config.from_object(config_class)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    limiter.init_app(app)

    # Configure CORS
    CORS(app, origins=app.config.get('CORS_ORIGINS', ["*"]))

    # Optional Redis for per-job locks
    setup_redis(app)

    # Setup logging
    setup_logging(app)

    # Register blueprints
    register_blueprints(app)

    # Register error handlers
    register_error_handlers(app)

    # Setup database
    setup_database(app)

    # Add CLI commands
    register_commands(app)

    # Add health check
    @app.route('/health')
    def health_check():
        return jsonify({
            'status': 'healthy',
            'service': 'Placement Drive Engine',
            'version': '1.0.0'
        })

    return app

def setup_redis(app: Flask) -> None:
    """Attach a Redis client when REDIS_URL is configured."""
    redis_url = app.config.get('REDIS_URL')
    app.extensions['redis'] = redis.Redis.from_url(redis_url) if redis_url else None

def register_blueprints(app: Flask) -> None:
    """Register all application blueprints."""
    from drive_engine.api.auth import auth_bp
    from drive_engine.api.rounds import rounds_bp
    from drive_engine.api.sessions import sessions_bp
    from drive_engine.api.attendance import attendance_bp, attendance_admin_bp
    from drive_engine.utils.swagger import get_swagger_blueprint, generate_swagger_spec, API_URL, SWAGGER_URL

    # Auth
    app.register_blueprint(auth_bp, url_prefix='/api/auth')

    # Admin drive management
    app.register_blueprint(rounds_bp, url_prefix='/api/admin')
    app.register_blueprint(sessions_bp, url_prefix='/api/admin')
    app.register_blueprint(attendance_admin_bp, url_prefix='/api/admin')

    # Student polling and scanner
    app.register_blueprint(attendance_bp, url_prefix='/api/attendance')

    # Swagger UI
    @app.route(API_URL)
    def swagger_spec():
        """Serve Swagger/OpenAPI specification."""
        return jsonify(generate_swagger_spec())

    app.register_blueprint(get_swagger_blueprint(), url_prefix=SWAGGER_URL)

def register_error_handlers(app: Flask) -> None:
    """Register error handlers."""
    from drive_engine.utils.errors import DriveError
    from drive_engine.utils.helpers import handle_error
    from werkzeug.exceptions import HTTPException

    @app.errorhandler(DriveError)
    def handle_drive_error(error):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        return handle_error(error, 500)

    @app.errorhandler(HTTPException)
    def handle_exception(e):
        return handle_error(e.description, e.code)

    # JWT error handlers
    @jwt.expired_token_loader
    def expired_token_callback(jwt_header, jwt_payload):
        return jsonify({
            'error': True,
            'message': 'Token has expired',
            'status_code': 401
        }), 401

    @jwt.invalid_token_loader
    def invalid_token_callback(error):
        return jsonify({
            'error': True,
            'message': 'Invalid token',
            'status_code': 401
        }), 401

    @jwt.unauthorized_loader
    def missing_token_callback(error):
        return jsonify({
            'error': True,
            'message': 'Authorization token required',
            'status_code': 401
        }), 401

def setup_logging(app: Flask) -> None:
    """Setup application logging."""
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    app.logger.setLevel(level)

    if not app.debug and not app.testing:
        log_file = app.config.get('LOG_FILE', 'logs/app.log')
        log_dir = os.path.dirname(log_file)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir)

        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
        ))
        file_handler.setLevel(level)
        app.logger.addHandler(file_handler)

        app.logger.info('Placement Drive Engine startup')

def setup_database(app: Flask) -> None:
    """Import models so metadata knows every table."""
    with app.app_context():
        from drive_engine.models import (  # noqa: F401
            User, Job, Round, DriveSession, RoundAttendance, ScanToken
        )

def register_commands(app: Flask) -> None:
    """Register CLI commands."""
    import click

    @app.cli.command('init-db')
    @click.option('--drop', is_flag=True, help='Drop existing tables')
    def init_db(drop):
        """Initialize the database."""
        if drop:
            db.drop_all()
            click.echo('Dropped all tables.')

        db.create_all()
        click.echo('Created all tables.')

    @app.cli.command('seed-drive')
    def seed_drive():
        """Seed database with a demo drive."""
        from drive_engine.services.seed_service import SeedService

        job = SeedService.seed_all()
        click.echo(f'Seeded demo drive for job {job.id}: {job.title}')

    @app.cli.command('purge-tokens')
    def purge_tokens():
        """Delete expired scan tokens."""
        from drive_engine.services.token_service import TokenService

        deleted = TokenService.purge_stale()
        click.echo(f'Purged {deleted} expired scan tokens.')
