# =============================================================================
# AgriMarket Backend
# decorators.py - Reusable Decorators
#
# Custom decorators for pagination, JSON validation, database error
# translation, request logging and per-action rate limiting.
# =============================================================================

from functools import wraps
from flask import request, current_app, g, make_response
from sqlalchemy.exc import IntegrityError, OperationalError

from extensions import db
from errors import BadRequestError, ValidationError, ConflictError, ServiceUnavailableError
from rate_limit import normal_limiter
from utils import get_client_ip


def paginated_response(default_per_page=20, max_per_page=100):
    """
    Inject validated 'page' and 'per_page' query values into a list view.

    A page below 1 is rejected; per_page falls back to the default when it
    is not positive and is capped at max_per_page.

    Usage:
        @admin_bp.route('/users', methods=['GET'])
        @paginated_response(default_per_page=50)
        def get_all_users(page, per_page):
            ...
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            page = request.args.get('page', 1, type=int)
            if page < 1:
                raise BadRequestError('Page number must be greater than 0')

            per_page = request.args.get('per_page', default_per_page, type=int)
            if per_page < 1:
                per_page = default_per_page

            return f(*args, page=page, per_page=min(per_page, max_per_page), **kwargs)
        return decorated_function
    return decorator


def validate_json(*required_fields):
    """
    Require a JSON object body, optionally with non-null fields.

    The parsed body is passed to the view as 'data'. A non-JSON request or a
    body that is not an object raises BadRequestError; absent or null
    required fields raise ValidationError listing them under
    'missing_fields'.

    Usage:
        @auth_bp.route('/login', methods=['POST'])
        @validate_json('email', 'password')
        def login(data):
            ...
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not request.is_json:
                raise BadRequestError('Content-Type must be application/json')

            body = request.get_json(silent=True)
            if not isinstance(body, dict):
                raise BadRequestError('Invalid JSON or empty request body')

            missing = [name for name in required_fields if body.get(name) is None]
            if missing:
                raise ValidationError(
                    'Missing required fields',
                    details={'missing_fields': missing}
                )

            return f(*args, data=body, **kwargs)
        return decorated_function
    return decorator


def handle_db_errors(f):
    """
    Translate database errors into application errors.

    Rolls back the session and raises ConflictError for unique violations,
    BadRequestError for other constraint failures and
    ServiceUnavailableError when the database cannot be reached.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            return f(*args, **kwargs)

        except IntegrityError as e:
            db.session.rollback()
            current_app.logger.error(f"Database integrity error: {e}")

            error_msg = str(e.orig).lower()
            if 'unique' in error_msg or 'duplicate' in error_msg:
                raise ConflictError(
                    'A record with this value already exists',
                    details={'type': 'duplicate_entry'}
                ) from e
            if 'foreign key' in error_msg:
                raise BadRequestError(
                    'Referenced record does not exist',
                    details={'type': 'foreign_key_violation'}
                ) from e
            raise BadRequestError(
                'Database constraint violation',
                details={'type': 'integrity_error'}
            ) from e

        except OperationalError as e:
            db.session.rollback()
            current_app.logger.error(f"Database operational error: {e}")
            raise ServiceUnavailableError('Database is temporarily unavailable') from e

    return decorated_function


def log_request(f):
    """Log the caller and resulting status code of an admin action."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        response = make_response(f(*args, **kwargs))
        current_app.logger.info(
            f"{request.method} {request.path} by user {g.get('user_id')} "
            f"from {get_client_ip()} -> {response.status_code}"
        )
        return response
    return decorated_function


def action_rate_limit(action, limiter=None, limit=None):
    """
    Apply a per-action rate limit keyed by client IP.

    The bucket snapshot is stored on flask.g so the response carries
    X-RateLimit-* headers. An exhausted bucket raises RateLimitError, which
    the app renders as a 429.

    Args:
        action: Action name used in the bucket key
        limiter: RateLimiter instance (defaults to normal_limiter)
        limit: Optional per-action limit below the limiter's ceiling

    Usage:
        @auth_bp.route('/login', methods=['POST'])
        @action_rate_limit('login', limiter=strict_limiter)
        def login():
            ...
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            active = limiter or normal_limiter
            g.rate_limit_info = active.check(action, get_client_ip(), limit=limit)
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def rate_limit_key_user():
    """
    Flask-Limiter key function that uses user ID if authenticated.

    Falls back to the client IP for unauthenticated requests.

    Usage:
        @limiter.limit("60 per minute", key_func=rate_limit_key_user)
        def my_endpoint():
            ...
    """
    user_id = g.get('user_id')
    if user_id:
        return f"user:{user_id}"
    return get_client_ip()
