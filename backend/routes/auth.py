# =============================================================================
# AgriMarket Backend
# routes/auth.py - Authentication Routes
#
# Handles user registration, login, logout, and profile management.
# Login and registration go through the strict per-action rate limiter and
# emit security events; repeated failed logins lock the account.
# =============================================================================

from flask import Blueprint, jsonify, current_app
from flask_jwt_extended import (
    create_access_token,
    create_refresh_token,
    jwt_required,
    get_jwt_identity
)

from extensions import db, bcrypt
from models import User, utcnow
from constants import MESSAGES
from errors import (
    AuthenticationError,
    AuthorizationError,
    BadRequestError,
    ConflictError,
    NotFoundError,
    ValidationError
)
from utils import validate_email, success_response, get_current_user
from decorators import validate_json, handle_db_errors, action_rate_limit
from rate_limit import strict_limiter
from services.password_policy import validate_password, add_to_password_history
from services.security_events import (
    create_security_event,
    handle_security_event,
    handle_failed_security_event,
    check_security_status
)

# Create blueprint
auth_bp = Blueprint('auth', __name__)

SELF_SERVICE_ROLES = ('buyer', 'seller')


def issue_tokens(user):
    """Create access and refresh tokens carrying the user's role claims."""
    claims = {
        'role': user.role,
        'account_level': user.account_level
    }
    return (
        create_access_token(identity=str(user.id), additional_claims=claims),
        create_refresh_token(identity=str(user.id), additional_claims=claims)
    )


# =============================================================================
# User Registration
# =============================================================================

@auth_bp.route('/register', methods=['POST'])
@action_rate_limit('register', limiter=strict_limiter)
@validate_json('email', 'password')
@handle_db_errors
def register(data):
    """
    Register a new user account.

    Request Body:
        email (str): User's email address (required)
        password (str): User's password (required)
        role (str): 'buyer' or 'seller' (optional, default buyer)
        first_name, last_name, phone (str): Optional profile fields

    Returns:
        201: User registered successfully with tokens
        400: Validation error
        409: Email already exists
        429: Too many registration attempts
    """
    email = str(data.get('email', '')).strip().lower()
    password = str(data.get('password', ''))
    role = data.get('role') or 'buyer'

    if not validate_email(email):
        raise ValidationError('Invalid email format')

    if role not in SELF_SERVICE_ROLES:
        raise ValidationError(
            'Invalid role',
            details={'allowed_roles': list(SELF_SERVICE_ROLES)}
        )

    if User.query.filter_by(email=email).first():
        raise ConflictError('Email already registered')

    is_valid, errors = validate_password(password)
    if not is_valid:
        raise ValidationError('Password does not meet requirements', details={'errors': errors})

    password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    user = User(
        email=email,
        password_hash=password_hash,
        first_name=(data.get('first_name') or '').strip() or None,
        last_name=(data.get('last_name') or '').strip() or None,
        phone=(data.get('phone') or '').strip() or None,
        is_active=True,
        role=role
    )

    db.session.add(user)
    db.session.flush()
    add_to_password_history(user, password_hash)
    db.session.commit()

    handle_security_event(user, 'register', notify=False)

    access_token, refresh_token = issue_tokens(user)

    current_app.logger.info(f"New user registered: {email}")

    return jsonify({
        'success': True,
        'message': 'Registration successful',
        'access_token': access_token,
        'refresh_token': refresh_token,
        'user': user.to_dict()
    }), 201


# =============================================================================
# User Login
# =============================================================================

@auth_bp.route('/login', methods=['POST'])
@action_rate_limit('login', limiter=strict_limiter)
@validate_json('email', 'password')
@handle_db_errors
def login(data):
    """
    Authenticate user and return JWT tokens.

    Request Body:
        email (str): User's email address
        password (str): User's password

    Returns:
        200: Login successful with tokens
        401: Invalid credentials
        403: Account inactive or locked
        429: Too many login attempts
    """
    email = str(data.get('email', '')).strip().lower()
    password = str(data.get('password', ''))

    if not email or not password:
        raise BadRequestError('Email and password are required')

    user = User.query.filter_by(email=email).first()

    if not user:
        create_security_event(
            None, 'failed_login', 'failed', severity='medium',
            reason='Unknown email', metadata={'email': email}
        )
        raise AuthenticationError(MESSAGES['INVALID_CREDENTIALS'])

    allowed, reason = check_security_status(user)
    if not allowed:
        create_security_event(
            user.id, 'failed_login', 'blocked', severity='high', reason=reason
        )
        raise AuthorizationError(reason)

    if not bcrypt.check_password_hash(user.password_hash, password):
        handle_failed_security_event(user, 'failed_login', 'Invalid password')
        if user.is_locked():
            _, reason = check_security_status(user)
            raise AuthorizationError(reason)
        raise AuthenticationError(MESSAGES['INVALID_CREDENTIALS'])

    if not user.is_active:
        raise AuthorizationError(MESSAGES['ACCOUNT_INACTIVE'])

    handle_security_event(user, 'login', update_user=True)

    access_token, refresh_token = issue_tokens(user)

    current_app.logger.info(f"User logged in: {email}")

    return jsonify({
        'success': True,
        'message': 'Login successful',
        'access_token': access_token,
        'refresh_token': refresh_token,
        'user': user.to_dict()
    }), 200


# =============================================================================
# Token Refresh
# =============================================================================

@auth_bp.route('/refresh', methods=['POST'])
@jwt_required(refresh=True)
def refresh():
    """
    Refresh access token using refresh token.

    Headers:
        Authorization: Bearer <refresh_token>

    Returns:
        200: New access token
        401: Invalid or expired refresh token
    """
    user = db.session.get(User, int(get_jwt_identity()))
    if not user or not user.is_active:
        raise AuthenticationError('User not found or inactive')

    access_token, _ = issue_tokens(user)

    return jsonify({
        'success': True,
        'access_token': access_token
    }), 200


# =============================================================================
# Current User Profile
# =============================================================================

@auth_bp.route('/profile', methods=['GET'])
@jwt_required()
def get_profile():
    """
    Get current user's profile information.

    Returns:
        200: User profile data
        401: Not authenticated
        404: User not found
    """
    user = db.session.get(User, int(get_jwt_identity()))

    if not user:
        raise NotFoundError('User')

    return success_response(data=user.to_dict(include_security=True))


@auth_bp.route('/profile', methods=['PUT'])
@jwt_required()
@validate_json()
@handle_db_errors
def update_profile(data):
    """
    Update current user's profile information.

    Request Body:
        first_name, last_name, phone (str): New values (optional)

    Returns:
        200: Profile updated successfully
        404: User not found
    """
    user = db.session.get(User, int(get_jwt_identity()))

    if not user:
        raise NotFoundError('User')

    for field in ('first_name', 'last_name', 'phone'):
        if field in data:
            setattr(user, field, str(data[field] or '').strip() or None)

    db.session.commit()

    return success_response(
        data=user.to_dict(),
        message='Profile updated successfully'
    )


# =============================================================================
# Change Password
# =============================================================================

@auth_bp.route('/change-password', methods=['POST'])
@jwt_required()
@validate_json('current_password', 'new_password')
@handle_db_errors
def change_password(data):
    """
    Change current user's password.

    Request Body:
        current_password (str): Current password
        new_password (str): New password

    Returns:
        200: Password changed successfully
        400: New password rejected by the password policy
        401: Current password incorrect
    """
    user = get_current_user()

    if not bcrypt.check_password_hash(user.password_hash, str(data['current_password'])):
        handle_failed_security_event(
            user, 'password_change', 'Current password is incorrect', update_user=False
        )
        raise AuthenticationError('Current password is incorrect')

    new_password = str(data['new_password'])
    is_valid, errors = validate_password(new_password, user=user)
    if not is_valid:
        raise ValidationError('Password does not meet requirements', details={'errors': errors})

    new_hash = bcrypt.generate_password_hash(new_password).decode('utf-8')
    user.password_hash = new_hash
    user.password_changed_at = utcnow()
    add_to_password_history(user, new_hash)

    handle_security_event(user, 'password_change', severity='medium')

    current_app.logger.info(f"Password changed for user: {user.email}")

    return success_response(message='Password changed successfully')


# =============================================================================
# Logout
# =============================================================================

@auth_bp.route('/logout', methods=['POST'])
@jwt_required()
def logout():
    """
    Logout user (client should discard tokens).

    JWT tokens are stateless; the logout is recorded as a security event.

    Returns:
        200: Logout successful
    """
    user = db.session.get(User, int(get_jwt_identity()))
    handle_security_event(user, 'logout', notify=False)

    return success_response(message='Logged out successfully')
