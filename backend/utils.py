# =============================================================================
# AgriMarket Backend
# utils.py - Utility Functions
#
# Common utility functions used across the application including
# validation, client detection, authorization and response helpers.
# =============================================================================

import re
from functools import wraps
from flask import request, jsonify, g
from flask_jwt_extended import verify_jwt_in_request, get_jwt_identity
from flask_limiter.util import get_remote_address

from extensions import db
from models import User
from errors import AppError, AuthenticationError, AuthorizationError


# =============================================================================
# Validation Functions
# =============================================================================

def validate_email(email: str) -> bool:
    """
    Validate email format using regex pattern.

    Args:
        email: Email address to validate

    Returns:
        bool: True if valid email format, False otherwise
    """
    pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
    return re.match(pattern, email) is not None


# =============================================================================
# Client Detection
# =============================================================================

def get_client_ip(req=None) -> str:
    """
    Resolve the client IP from the connection address.

    Forwarded headers are only trusted once ProxyFix has rewritten
    REMOTE_ADDR for the configured number of proxy hops.

    Args:
        req: Request to inspect; defaults to the current request
    """
    if req is None:
        return get_remote_address()
    return req.remote_addr or '127.0.0.1'


def detect_device(user_agent: str) -> str:
    """
    Classify a user agent string into a coarse device type.

    Args:
        user_agent: Raw User-Agent header

    Returns:
        str: 'mobile', 'tablet', 'desktop', 'bot' or 'unknown'
    """
    if not user_agent:
        return 'unknown'

    ua = user_agent.lower()
    if any(token in ua for token in ('bot', 'crawler', 'spider')):
        return 'bot'
    if 'ipad' in ua or 'tablet' in ua:
        return 'tablet'
    if 'mobi' in ua or 'iphone' in ua or 'android' in ua:
        return 'mobile'
    if any(token in ua for token in ('windows', 'macintosh', 'linux', 'x11')):
        return 'desktop'
    return 'unknown'


# =============================================================================
# Authorization Helpers
# =============================================================================

def get_current_user():
    """
    Load the authenticated user for the current request.

    Raises:
        AuthenticationError: If the token identity no longer exists
    """
    verify_jwt_in_request()
    user = db.session.get(User, int(get_jwt_identity()))
    if user is None:
        raise AuthenticationError('User not found')
    return user


def roles_required(*roles):
    """
    Decorator to restrict an endpoint to the given roles.

    Usage:
        @admin_bp.route('/users')
        @roles_required('admin')
        def get_all_users():
            ...
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user = get_current_user()

            if not user.is_active:
                raise AuthorizationError('Account is inactive or deactivated')
            if user.role not in roles:
                raise AuthorizationError('Insufficient permissions')

            g.current_user = user
            return fn(*args, **kwargs)
        return wrapper
    return decorator


def admin_required(fn):
    """Decorator to require admin role for endpoint access."""
    return roles_required('admin')(fn)


# =============================================================================
# Response Helpers
# =============================================================================

def success_response(data=None, message=None, status_code=200):
    """
    Create a standardized success response.

    Args:
        data: Response data (dict or list)
        message: Success message
        status_code: HTTP status code (default 200)

    Returns:
        tuple: (response, status_code)
    """
    response = {
        'success': True,
        'status': 'success'
    }

    if data is not None:
        response['data'] = data
    if message:
        response['message'] = message

    return jsonify(response), status_code


def app_error_response(error, debug=False):
    """
    Render an exception as the JSON error envelope.

    AppError subclasses keep their status, code and details. Anything else
    becomes a 500 whose message is only exposed in debug mode.

    Returns:
        tuple: (response, status_code)
    """
    if isinstance(error, AppError):
        return jsonify({
            'success': False,
            'error': error.to_dict()
        }), error.status_code

    return jsonify({
        'success': False,
        'error': {
            'code': 'INTERNAL_SERVER_ERROR',
            'message': str(error) if debug else 'Internal server error'
        }
    }), 500
