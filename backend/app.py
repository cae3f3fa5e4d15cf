# =============================================================================
# AgriMarket Backend
# app.py - Application Factory & Entry Point
#
# Flask application factory pattern implementation with extension
# initialization, blueprint registration, error handlers, role guard and
# rate limit response headers.
# =============================================================================

import os
from flask import Flask, jsonify, request, g
from werkzeug.middleware.proxy_fix import ProxyFix
from flask_jwt_extended import verify_jwt_in_request, get_jwt, get_jwt_identity
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import PyJWTError
from sqlalchemy.exc import SQLAlchemyError

from config import config, get_config
from constants import MESSAGES
from extensions import db, migrate, jwt, bcrypt, cors, limiter
from errors import AppError, AuthorizationError, RateLimitError
from logging_config import setup_logging
from rate_limit import init_rate_limiters
from roles import check_api_access, is_public_path
from utils import app_error_response
from services.security_events import create_security_event


def create_app(config_name=None, config_overrides=None):
    """
    Application factory function.

    Creates and configures the Flask application with all extensions,
    blueprints, and error handlers.

    Args:
        config_name: Configuration environment ('development', 'testing', 'production')
                    Defaults to FLASK_ENV environment variable or 'development'
        config_overrides: Optional mapping applied on top of the config class

    Returns:
        Flask: Configured Flask application instance
    """
    config_class = config[config_name] if config_name else get_config()

    app = Flask(__name__)

    app.config.from_object(config_class)
    if config_overrides:
        app.config.update(config_overrides)

    if app.config.get('PROXY_FIX_X_FOR'):
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=app.config['PROXY_FIX_X_FOR'])

    setup_logging(app)

    init_extensions(app)

    register_blueprints(app)

    register_error_handlers(app)

    setup_request_hooks(app)

    app.logger.info(f"AgriMarket API started with {config_class.__name__}")

    return app


def init_extensions(app):
    """
    Initialize Flask extensions with the application instance.

    Extensions are created in extensions.py without app context,
    then initialized here with the app instance.
    """
    # Database ORM
    db.init_app(app)

    # Database migrations
    migrate.init_app(app, db)

    # JWT authentication
    jwt.init_app(app)

    # Password hashing
    bcrypt.init_app(app)

    # CORS - Cross Origin Resource Sharing
    cors.init_app(
        app,
        origins=app.config.get('CORS_ORIGINS', ['http://localhost:3000']),
        supports_credentials=app.config.get('CORS_SUPPORTS_CREDENTIALS', True),
        allow_headers=['Content-Type', 'Authorization'],
        expose_headers=[
            'X-RateLimit-Limit',
            'X-RateLimit-Remaining',
            'X-RateLimit-Reset',
            'Retry-After',
            'X-User-Id',
            'X-User-Role',
            'X-User-Account-Level'
        ],
        methods=['GET', 'POST', 'PUT', 'PATCH', 'DELETE', 'OPTIONS']
    )

    # Coarse per-route limits
    limiter.init_app(app)

    # Per-action fixed-window limiters
    init_rate_limiters(app)

    app.logger.info("Flask extensions initialized")


def register_blueprints(app):
    """
    Register all API route blueprints.

    All API routes are prefixed with '/api'.
    """
    from routes import auth_bp, security_bp, rate_limit_bp, admin_bp

    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(security_bp, url_prefix='/api/security')
    app.register_blueprint(rate_limit_bp, url_prefix='/api/rate-limit')
    app.register_blueprint(admin_bp, url_prefix='/api/admin')

    @app.route('/health', methods=['GET'])
    def health_check():
        """
        Health check endpoint for monitoring and load balancers.

        Returns:
            JSON response with API status and database connectivity
        """
        try:
            db.session.execute(db.text('SELECT 1'))
            db.session.commit()
            db_healthy = True
        except SQLAlchemyError as e:
            app.logger.error(f"Database health check failed: {e}")
            db.session.rollback()
            db_healthy = False

        return jsonify({
            'status': 'healthy' if db_healthy else 'degraded',
            'message': 'AgriMarket API is running',
            'version': '1.0.0',
            'database': 'connected' if db_healthy else 'error',
            'rate_limiting': {
                'enabled': app.config.get('RATE_LIMIT_ENABLED', True),
                'presets': {
                    name: f"{app.config[f'RATE_LIMIT_{name.upper()}_MAX']}"
                          f"/{app.config[f'RATE_LIMIT_{name.upper()}_INTERVAL']}s"
                    for name in ('strict', 'normal', 'relaxed')
                }
            }
        }), 200 if db_healthy else 503

    @app.route('/', methods=['GET'])
    def index():
        """Root endpoint with API information."""
        return jsonify({
            'name': 'AgriMarket API',
            'description': 'Agricultural marketplace security and access control',
            'version': '1.0.0',
            'health': '/health'
        })

    app.logger.info("Blueprints registered")


def _error_body(status_code, code, message):
    return jsonify({
        'success': False,
        'error': {
            'code': code,
            'message': message
        }
    }), status_code


def register_error_handlers(app):
    """
    Register global error handlers.

    AppError subclasses raised by views are rendered with their own status
    and code; plain HTTP errors get the same JSON envelope.
    """

    @app.errorhandler(RateLimitError)
    def handle_rate_limit_error(error):
        user_id = g.get('user_id')
        try:
            create_security_event(
                user_id,
                'rate_limit_exceeded',
                'blocked',
                severity='medium',
                reason=error.message,
                metadata={'action': error.action, 'retry_after': error.retry_after}
            )
        except SQLAlchemyError as e:
            db.session.rollback()
            app.logger.error(f"Could not record rate limit event: {e}")

        response, status_code = app_error_response(error)
        if error.info is not None:
            response.headers.update(error.info.headers())
        response.headers['Retry-After'] = str(error.retry_after)
        return response, status_code

    @app.errorhandler(AppError)
    def handle_app_error(error):
        if error.status_code >= 500:
            db.session.rollback()
            app.logger.error(f"{error.code}: {error.message}")
        return app_error_response(error)

    @app.errorhandler(400)
    def bad_request(error):
        return _error_body(
            400, 'BAD_REQUEST',
            str(error.description) if hasattr(error, 'description') else 'Invalid request'
        )

    @app.errorhandler(401)
    def unauthorized(error):
        return _error_body(401, 'AUTHENTICATION_ERROR', 'Authentication required')

    @app.errorhandler(403)
    def forbidden(error):
        return _error_body(403, 'AUTHORIZATION_ERROR', MESSAGES['FORBIDDEN'])

    @app.errorhandler(404)
    def not_found(error):
        return _error_body(404, 'NOT_FOUND_ERROR', 'The requested resource was not found')

    @app.errorhandler(405)
    def method_not_allowed(error):
        return _error_body(
            405, 'METHOD_NOT_ALLOWED',
            f'The {request.method} method is not allowed for this endpoint'
        )

    @app.errorhandler(413)
    def request_entity_too_large(error):
        return _error_body(413, 'PAYLOAD_TOO_LARGE', 'The request body is too large')

    @app.errorhandler(429)
    def rate_limit_exceeded(error):
        return _error_body(429, 'RATE_LIMIT_EXCEEDED', MESSAGES['RATE_LIMITED'])

    @app.errorhandler(500)
    def internal_server_error(error):
        db.session.rollback()
        app.logger.error(f"Internal server error: {error}")
        return app_error_response(error, debug=False)

    # JWT Error Handlers
    @jwt.expired_token_loader
    def expired_token_callback(jwt_header, jwt_payload):
        return _error_body(401, 'TOKEN_EXPIRED', 'Your session has expired. Please login again.')

    @jwt.invalid_token_loader
    def invalid_token_callback(error):
        return _error_body(401, 'INVALID_TOKEN', 'Token verification failed')

    @jwt.unauthorized_loader
    def missing_token_callback(error):
        return _error_body(401, 'AUTHENTICATION_ERROR', 'Missing access token')

    app.logger.info("Error handlers registered")


def setup_request_hooks(app):
    """
    Resolve the caller's identity, apply the role guard and decorate
    responses with identity and rate limit headers.
    """

    @app.before_request
    def resolve_identity():
        g.user_id = None
        g.user_role = 'guest'
        g.account_level = None
        g.rate_limit_info = None

        if request.method == 'OPTIONS':
            return None

        try:
            verify_jwt_in_request(optional=True)
        except (JWTExtendedException, PyJWTError):
            # Public routes run their own jwt_required checks
            if is_public_path(request.path):
                return None
            raise

        identity = get_jwt_identity()
        if identity is not None:
            claims = get_jwt()
            g.user_id = int(identity)
            g.user_role = claims.get('role', 'guest')
            g.account_level = claims.get('account_level')

        denial = check_api_access(g.user_role, request.path)
        if denial:
            return app_error_response(AuthorizationError(denial))
        return None

    @app.after_request
    def add_response_headers(response):
        info = g.get('rate_limit_info')
        if info is not None:
            for header, value in info.headers().items():
                response.headers.setdefault(header, value)

        if g.get('user_id') is not None:
            response.headers['X-User-Id'] = str(g.user_id)
        response.headers['X-User-Role'] = g.get('user_role') or 'guest'
        if g.get('account_level'):
            response.headers['X-User-Account-Level'] = g.account_level
        return response

    @app.teardown_appcontext
    def shutdown_session(exception=None):
        """Remove database session at the end of request context."""
        if exception:
            db.session.rollback()
        db.session.remove()


# =============================================================================
# Application Entry Point
# =============================================================================

if __name__ == '__main__':
    app = create_app()

    port = int(os.getenv('PORT', 5000))

    app.run(
        host='0.0.0.0',
        port=port,
        debug=app.config['DEBUG']
    )
