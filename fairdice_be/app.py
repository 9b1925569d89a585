from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from flask import Flask, request, jsonify, current_app, g, has_app_context
import uuid
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from flask_cors import CORS
from flask_socketio import SocketIO
from flask_jwt_extended import JWTManager
from flask_jwt_extended.exceptions import NoAuthorizationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import select
from werkzeug.exceptions import HTTPException as WerkzeugHTTPException
from flask_talisman import Talisman
from datetime import datetime, timezone
from http import HTTPStatus
from pythonjsonlogger import jsonlogger
from marshmallow import ValidationError
import logging
import click
import os
import re

from .exceptions import AppException
from .error_codes import ErrorCodes
from .models import db, User
from .config import Config
from .utils.auth import register_jwt_handlers, purge_expired_tokens
from .utils.chain import DatabaseBlockSource
from .utils.commit_binder import (
    generate_oracle_key, generate_secret, commit_from_secret, load_oracle_private_key,
    oracle_address, private_key_to_hex, sign_commit
)
from .utils.security import is_password_strong, secure_headers
from .utils.security_logger import SecurityLogger
from .services.access_control import DatabaseAccessControl

# Custom Logging Filter for Request ID
class RequestIdFilter(logging.Filter):
    def filter(self, record):
        record.request_id = g.get('request_id', 'N/A') if has_app_context() else 'N/A'
        return True

from .routes.auth import auth_bp
from .routes.dice import dice_bp
from .routes.oracle import oracle_bp
from .routes.admin import admin_bp
from .routes.internal import internal_bp

ROLE_FLAGS = {
    'admin': 'is_admin',
    'funds_controller': 'is_funds_controller',
    'oracle': 'is_oracle',
}

def _error_response(error_code, status_message, status_code, details=None, action_button=None):
    return jsonify({
        'request_id': g.get('request_id', 'N/A'),
        'status': False,
        'error_code': error_code,
        'status_message': status_message,
        'details': details or {},
        'action_button': action_button
    }), status_code

def create_app(config_class=Config):
    """Application factory. Returns (app, socketio)."""
    app = Flask(__name__)
    app.config.from_object(config_class)

    # --- Security Headers with Talisman ---
    csp = {
        'default-src': "'self'",
        'img-src': "'self' data:",
        'connect-src': "'self'",
        'frame-ancestors': "'none'"
    }
    Talisman(app,
             force_https=not (app.debug or app.testing),
             strict_transport_security=True,
             content_security_policy=csp)

    # --- CORS Setup ---
    allowed_origins = []
    if app.debug:
        allowed_origins.extend(["http://localhost:8080", "http://127.0.0.1:8080"])
    if getattr(config_class, 'CORS_ORIGINS_LIST', None):
        allowed_origins.extend(config_class.CORS_ORIGINS_LIST)

    if allowed_origins:
        CORS(app,
             origins=allowed_origins,
             supports_credentials=True,
             methods=['GET', 'POST', 'OPTIONS'],
             allow_headers=['Content-Type', 'Authorization', 'X-CSRF-Token'],
             expose_headers=['X-RateLimit-Limit', 'X-RateLimit-Remaining'],
             max_age=86400)
        app.logger.info(f"CORS configured for origins: {allowed_origins}")
    else:
        app.logger.warning("No CORS origins configured - API will reject cross-origin requests")

    # --- Logging Configuration ---
    if not app.debug:
        logger = app.logger
        handler = logging.StreamHandler()
        formatter = jsonlogger.JsonFormatter(
            '%(asctime)s %(levelname)s %(request_id)s %(module)s %(funcName)s %(lineno)d %(message)s'
        )
        handler.setFormatter(formatter)
        handler.addFilter(RequestIdFilter())
        if logger.hasHandlers():
            logger.handlers.clear()
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    elif not app.logger.handlers:
        logging.basicConfig(level=logging.DEBUG)

    @app.before_request
    def assign_request_id():
        g.request_id = str(uuid.uuid4())
        if request.method in ['POST', 'PUT', 'DELETE', 'PATCH']:
            SecurityLogger.log_security_event('request', severity='low', details={
                'endpoint': request.endpoint,
                'method': request.method,
                'content_length': request.content_length
            })

    @app.after_request
    def security_headers_middleware(response):
        return secure_headers(response)

    log_production_warnings(app)

    # --- Rate Limiter Setup ---
    if app.config.get("TESTING"):
        app.config['RATELIMIT_ENABLED'] = False
        app.config['RATELIMIT_DEFAULT_LIMITS_ENABLED'] = False
    else:
        app.config.setdefault('RATELIMIT_ENABLED', True)
        app.config.setdefault('RATELIMIT_DEFAULT_LIMITS_ENABLED', True)
        app.config.setdefault('RATELIMIT_DEFAULT', "200 per minute")

    limiter = Limiter(key_func=get_remote_address)
    limiter.init_app(app)

    # --- Database Setup ---
    db.init_app(app)
    Migrate(app, db, directory=os.path.join(os.path.dirname(__file__), 'migrations'))

    # --- Engine collaborators ---
    app.extensions['fairdice_access_control'] = DatabaseAccessControl()

    # --- WebSocket Setup ---
    socketio = SocketIO(app,
                        cors_allowed_origins=allowed_origins,
                        async_mode='threading',
                        logger=app.logger,
                        engineio_logger=app.logger)

    from .services.websocket_manager import websocket_manager
    websocket_manager.socketio = socketio
    websocket_manager.init_app(app)
    app.socketio = socketio

    # --- JWT Setup ---
    jwt = JWTManager(app)
    register_jwt_handlers(jwt)

    # --- Error Handlers ---
    @app.errorhandler(ValidationError)
    def handle_validation_error(e):
        current_app.logger.warning(
            f"Request ID: {g.get('request_id', 'N/A')} - Validation error: {e.messages} - Error Code: {ErrorCodes.VALIDATION_ERROR}"
        )
        return _error_response(ErrorCodes.VALIDATION_ERROR, 'Input validation failed.',
                               HTTPStatus.UNPROCESSABLE_ENTITY, {'errors': e.messages})

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(e):
        db.session.rollback()
        current_app.logger.error(
            f"Request ID: {g.get('request_id', 'N/A')} - Database error. Error Code: {ErrorCodes.INTERNAL_SERVER_ERROR}",
            exc_info=True
        )
        return _error_response(ErrorCodes.INTERNAL_SERVER_ERROR, 'A database error occurred. Please try again later.',
                               HTTPStatus.INTERNAL_SERVER_ERROR)

    @app.errorhandler(NoAuthorizationError)
    def handle_no_auth_error(e):
        current_app.logger.warning(
            f"Request ID: {g.get('request_id', 'N/A')} - JWT NoAuthorizationError: {str(e)} - Error Code: {ErrorCodes.UNAUTHENTICATED}"
        )
        return _error_response(ErrorCodes.UNAUTHENTICATED, 'Missing or invalid authorization token.',
                               HTTPStatus.UNAUTHORIZED, {'original_error': str(e)})

    @app.errorhandler(WerkzeugHTTPException)
    def handle_werkzeug_http_exception(e):
        error_code = ErrorCodes.GENERIC_ERROR
        if e.code == 404:
            error_code = ErrorCodes.NOT_FOUND
        elif e.code == 405:
            error_code = ErrorCodes.METHOD_NOT_ALLOWED
        elif e.code == 401:
            error_code = ErrorCodes.UNAUTHENTICATED
        elif e.code == 403:
            error_code = ErrorCodes.FORBIDDEN
        elif e.code >= 500:
            error_code = ErrorCodes.INTERNAL_SERVER_ERROR

        current_app.logger.warning(
            f"Request ID: {g.get('request_id', 'N/A')} - Werkzeug HTTPException: {e.code} - {e.name} - Error Code: {error_code}"
        )
        return _error_response(error_code, e.name, e.code, {'description': e.description})

    @app.errorhandler(Exception)
    def handle_global_exception(e):
        request_id = g.get('request_id', 'N/A')

        if isinstance(e, AppException):
            current_app.logger.log(
                logging.ERROR if e.status_code >= 500 else logging.WARNING,
                f"Request ID: {request_id} - AppException: {e.error_code} - {e.status_message} - Details: {e.details}",
                exc_info=e.status_code >= 500
            )
            return _error_response(e.error_code, e.status_message, e.status_code, e.details, e.action_button)

        if isinstance(e, WerkzeugHTTPException):
            return handle_werkzeug_http_exception(e)

        current_app.logger.critical(
            f"Request ID: {request_id} - Unhandled Critical Exception. Error Code: {ErrorCodes.INTERNAL_SERVER_ERROR}",
            exc_info=True
        )
        return _error_response(ErrorCodes.INTERNAL_SERVER_ERROR,
                               'An unexpected internal server error occurred. Please try again later.',
                               HTTPStatus.INTERNAL_SERVER_ERROR)

    # Register Blueprints
    limiter.limit("10 per minute")(auth_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(dice_bp)
    app.register_blueprint(oracle_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(internal_bp)

    register_cli_commands(app)

    return app, socketio

def register_cli_commands(app):

    @app.cli.command('cleanup-expired-tokens')
    def db_cleanup_expired_tokens_command():
        """Deletes blacklisted tokens that have expired."""
        try:
            count = purge_expired_tokens(datetime.now(timezone.utc))
            click.echo(f"Successfully deleted {count} expired token(s).")
        except Exception as e:
            db.session.rollback()
            click.echo(f"Error during token cleanup: {str(e)}")

    @app.cli.command("create-admin")
    @click.option('-u', '--username', default=None, help='Admin username')
    @click.option('-e', '--email', default=None, help='Admin email')
    @click.option('-p', '--password', default=None, help='Admin password (will be prompted if not provided)')
    @click.option('-b', '--balance', type=int, default=0, help='Initial balance in satoshis (default: 0)')
    def create_admin_command(username, email, password, balance):
        """Creates an admin user with the given credentials and balance."""
        if not username:
            username = click.prompt("Enter admin username")

        if not email:
            while True:
                email_input = click.prompt("Enter admin email")
                if re.match(r"[^@]+@[^@]+\.[^@]+", email_input):
                    email = email_input
                    break
                click.echo("Invalid email format. Please try again.")

        if not password:
            while True:
                password_input = click.prompt("Enter admin password", hide_input=True, confirmation_prompt=True)
                is_strong, message = is_password_strong(password_input)
                if is_strong:
                    password = password_input
                    break
                click.echo(f"Password validation failed: {message}")
        else:
            is_strong, message = is_password_strong(password)
            if not is_strong:
                click.echo(f"Error: The provided password does not meet strength requirements: {message}")
                click.echo("Admin user creation aborted.")
                return

        existing_user = db.session.scalar(select(User).filter((User.username == username) | (User.email == email)))
        if existing_user:
            click.echo(f"Error: User '{existing_user.username}' <{existing_user.email}> already exists.")
            return

        try:
            db.session.add(User(
                username=username,
                email=email,
                password=User.hash_password(password),
                is_admin=True,
                balance=balance
            ))
            db.session.commit()
            click.echo(f"Admin user '{username}' created successfully with email '{email}'.")
        except Exception as e:
            db.session.rollback()
            click.echo(f"Failed to create admin user: {e}")

    @app.cli.command("grant-role")
    @click.argument('username')
    @click.option('-r', '--role', type=click.Choice(sorted(ROLE_FLAGS)), required=True, help='Capability to grant')
    @click.option('--revoke', is_flag=True, default=False, help='Remove the capability instead')
    def grant_role_command(username, role, revoke):
        """Grants (or revokes) admin, funds_controller or oracle capability."""
        user = db.session.scalar(select(User).filter_by(username=username))
        if not user:
            click.echo(f"Error: User '{username}' not found.")
            return
        setattr(user, ROLE_FLAGS[role], not revoke)
        db.session.commit()
        click.echo(f"{'Revoked' if revoke else 'Granted'} role '{role}' {'from' if revoke else 'to'} '{username}'.")

    @app.cli.command("mine-blocks")
    @click.option('-n', '--count', type=int, default=1, help='Number of blocks to seal')
    def mine_blocks_command(count):
        """Advances the chain height by sealing blocks."""
        source = DatabaseBlockSource(horizon=app.config['BLOCKHASH_HORIZON'])
        try:
            blocks = source.mine_blocks(count)
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            click.echo(f"Failed to mine blocks: {e}")
            return
        click.echo(f"Mined {len(blocks)} block(s). Current height: {source.current_height()}")

    @app.cli.command("oracle-keygen")
    def oracle_keygen_command():
        """Generates an oracle key pair; register the address via /api/admin/oracle."""
        private_key = generate_oracle_key()
        click.echo(f"ORACLE_PRIVATE_KEY={private_key_to_hex(private_key)}")
        click.echo(f"ORACLE_ADDRESS={oracle_address(private_key.public_key())}")

    @app.cli.command("oracle-sign")
    @click.option('-k', '--private-key', envvar='ORACLE_PRIVATE_KEY', required=True, help='Oracle private key (hex)')
    @click.option('-d', '--deadline', type=int, default=None,
                  help='Last block height at which the commit may be placed (default: current height + 200)')
    @click.option('-s', '--secret', default=None, help='Reveal secret (hex, 32 bytes); random if omitted')
    def oracle_sign_command(private_key, deadline, secret):
        """Creates a signed commit for a player to bet against."""
        if deadline is None:
            deadline = DatabaseBlockSource(horizon=app.config['BLOCKHASH_HORIZON']).current_height() + 200
        secret = secret or generate_secret()
        commit = commit_from_secret(secret)
        signature = sign_commit(load_oracle_private_key(private_key), deadline, commit)
        click.echo(f"secret={secret}")
        click.echo(f"commit={commit}")
        click.echo(f"commit_deadline={deadline}")
        click.echo(f"signature={signature}")

def log_production_warnings(app):
    if not app.debug:
        if app.config.get('SERVICE_API_TOKEN') == 'default_service_token_please_change':
            app.logger.critical(
                "CRITICAL SECURITY WARNING: Default SERVICE_API_TOKEN is used in a production environment. "
                "Please set a strong, unique SERVICE_API_TOKEN environment variable for internal service authentication."
            )
        if app.config.get('RATELIMIT_STORAGE_URI') == 'memory://':
            app.logger.warning(
                "PERFORMANCE/SCALABILITY WARNING: RATELIMIT_STORAGE_URI is set to 'memory://'. "
                "Consider using a persistent store like Redis (e.g., 'redis://localhost:6379/0')."
            )
        if not app.config.get('ORACLE_ADDRESS') and not app.testing:
            app.logger.warning("ORACLE_ADDRESS is not set; bets cannot be placed until an oracle is registered.")

if __name__ == '__main__':
    app, socketio = create_app()
    socketio.run(app, host='0.0.0.0', port=5000, debug=app.debug)
