# =============================================================================
# AgriMarket Backend
# routes/security.py - Security Routes
#
# Security event audit log, account security status, password status,
# preferences and report export for the authenticated user.
# =============================================================================

from datetime import datetime, timedelta
from flask import Blueprint, request, Response

from extensions import db, limiter
from models import SecurityEvent, utcnow
from constants import (
    SECURITY_EVENT_TYPES,
    SECURITY_EVENT_STATUSES,
    SECURITY_EVENT_SEVERITIES,
    PRIVILEGED_EVENT_TYPES
)
from errors import AuthorizationError, NotFoundError, ValidationError
from utils import success_response, roles_required, admin_required, get_current_user
from decorators import validate_json, handle_db_errors, rate_limit_key_user
from services.security_events import (
    create_security_event,
    query_security_events,
    get_activity_summary,
    check_security_status
)
from services.password_policy import (
    check_password_expiry,
    check_password_strength,
    get_password_status_message
)
from services.security_report import prepare_security_report, render_report

# Create blueprint
security_bp = Blueprint('security', __name__)

MEMBER_ROLES = ('buyer', 'seller', 'admin')

PERIODS = {
    '24h': timedelta(hours=24),
    '7d': timedelta(days=7),
    '30d': timedelta(days=30),
    '90d': timedelta(days=90)
}

PREFERENCE_FIELDS = {
    'login_notifications': bool,
    'two_factor_enabled': bool,
    'lockout_threshold': int,
    'password_expiry_days': int
}


def _split_param(name, allowed):
    raw = request.args.get(name, '').strip()
    if not raw:
        return None
    values = [value.strip() for value in raw.split(',') if value.strip()]
    invalid = [value for value in values if value not in allowed]
    if invalid:
        raise ValidationError(f'Invalid {name} filter', details={'invalid': invalid})
    return values


def _date_param(name):
    raw = request.args.get(name)
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        raise ValidationError(f'Invalid {name}; expected ISO 8601 date') from None


# =============================================================================
# Security Events
# =============================================================================

@security_bp.route('/events', methods=['GET'])
@roles_required(*MEMBER_ROLES)
@limiter.limit("60 per minute", key_func=rate_limit_key_user)
def list_events():
    """
    Fetch security events with role-based filtering.

    Query Parameters:
        type (str): Comma separated event types (optional)
        status (str): Comma separated statuses (optional)
        start_date, end_date (str): ISO 8601 bounds (optional)
        limit (int): Max events (default 100, max 500)

    Returns:
        200: events and total count
        400: Invalid filter
    """
    user = get_current_user()

    limit = request.args.get('limit', 100, type=int)
    limit = max(1, min(limit, 500))

    events, total = query_security_events(
        user.id,
        user.role,
        types=_split_param('type', SECURITY_EVENT_TYPES),
        statuses=_split_param('status', SECURITY_EVENT_STATUSES),
        start=_date_param('start_date'),
        end=_date_param('end_date'),
        limit=limit
    )

    return success_response(data={
        'events': [event.to_dict(include_user=True) for event in events],
        'total': total
    })


@security_bp.route('/events', methods=['POST'])
@roles_required(*MEMBER_ROLES)
@validate_json('type', 'status')
@handle_db_errors
def record_event(data):
    """
    Record a security event for the current user.

    Request Body:
        type (str): Event type
        status (str): Event status
        severity (str): Event severity (optional, default low)
        reason (str): Optional reason
        metadata (dict): Optional extra context

    Returns:
        201: Stored event
        400: Invalid event data
        403: Event type reserved for admins
    """
    user = get_current_user()

    field_errors = []
    if data['type'] not in SECURITY_EVENT_TYPES:
        field_errors.append({'field': 'type', 'message': 'Unknown event type'})
    if data['status'] not in SECURITY_EVENT_STATUSES:
        field_errors.append({'field': 'status', 'message': 'Unknown status'})
    severity = data.get('severity') or 'low'
    if severity not in SECURITY_EVENT_SEVERITIES:
        field_errors.append({'field': 'severity', 'message': 'Unknown severity'})
    metadata = data.get('metadata') or {}
    if not isinstance(metadata, dict):
        field_errors.append({'field': 'metadata', 'message': 'Must be an object'})

    if field_errors:
        raise ValidationError('Invalid event data', details=field_errors)

    if user.role != 'admin' and data['type'] in PRIVILEGED_EVENT_TYPES:
        raise AuthorizationError('Unauthorized event type')

    event = create_security_event(
        user.id,
        data['type'],
        data['status'],
        severity=severity,
        reason=data.get('reason'),
        metadata=metadata
    )

    return success_response(data={'event': event.to_dict(include_user=True)}, status_code=201)


@security_bp.route('/events/<int:event_id>', methods=['DELETE'])
@admin_required
@handle_db_errors
def delete_event(event_id):
    """
    Delete a security event (admin only).

    Returns:
        200: Event deleted
        404: Event not found
    """
    event = db.session.get(SecurityEvent, event_id)
    if event is None:
        raise NotFoundError('Security event')

    db.session.delete(event)
    db.session.commit()

    return success_response(message='Event deleted successfully')


# =============================================================================
# Account Status
# =============================================================================

@security_bp.route('/status', methods=['GET'])
@roles_required(*MEMBER_ROLES)
def security_status():
    """
    Current lockout state, preferences and password expiry of the user.

    Returns:
        200: Security status
    """
    user = get_current_user()
    allowed, reason = check_security_status(user)
    expiry = check_password_expiry(user)

    return success_response(data={
        'allowed': allowed,
        'reason': reason,
        'failed_login_attempts': user.failed_login_attempts,
        'locked_until': user.locked_until.isoformat() if user.locked_until else None,
        'last_failed_login': (
            user.last_failed_login.isoformat() if user.last_failed_login else None
        ),
        'preferences': user.security_preferences(),
        'password': {
            'requires_change': expiry['requires_change'],
            'days_until_expiry': expiry['days_until_expiry']
        }
    })


@security_bp.route('/summary', methods=['GET'])
@roles_required(*MEMBER_ROLES)
def activity_summary():
    """Counts of the user's security events over the last day and week."""
    user = get_current_user()
    return success_response(data=get_activity_summary(user.id))


@security_bp.route('/preferences', methods=['PATCH'])
@roles_required(*MEMBER_ROLES)
@validate_json()
@handle_db_errors
def update_preferences(data):
    """
    Update security preferences.

    Request Body (all optional):
        login_notifications (bool)
        two_factor_enabled (bool)
        lockout_threshold (int): 3-20
        password_expiry_days (int): 30-365

    Returns:
        200: Updated preferences
        400: Invalid value
    """
    user = get_current_user()

    updates = {}
    for field, kind in PREFERENCE_FIELDS.items():
        if field not in data:
            continue
        value = data[field]
        if kind is bool and not isinstance(value, bool):
            raise ValidationError(f'{field} must be a boolean')
        if kind is int and (isinstance(value, bool) or not isinstance(value, int)):
            raise ValidationError(f'{field} must be an integer')
        updates[field] = value

    threshold = updates.get('lockout_threshold')
    if threshold is not None and not 3 <= threshold <= 20:
        raise ValidationError('lockout_threshold must be between 3 and 20')
    expiry_days = updates.get('password_expiry_days')
    if expiry_days is not None and not 30 <= expiry_days <= 365:
        raise ValidationError('password_expiry_days must be between 30 and 365')

    for field, value in updates.items():
        setattr(user, field, value)

    if 'two_factor_enabled' in updates:
        create_security_event(
            user.id,
            'two_factor_enabled' if user.two_factor_enabled else 'two_factor_disabled',
            'success',
            severity='medium',
            commit=False
        )

    db.session.commit()

    return success_response(
        data=user.security_preferences(),
        message='Security preferences updated'
    )


# =============================================================================
# Password Status
# =============================================================================

@security_bp.route('/password/status', methods=['GET'])
@roles_required(*MEMBER_ROLES)
def password_status():
    """
    Password expiry status and recommendations for the current user.

    Returns:
        200: expiry dates, status message and recommendations
    """
    user = get_current_user()
    expiry = check_password_expiry(user)

    recommendations = []
    changed = user.password_changed_at or user.created_at
    if changed and utcnow() - changed > timedelta(days=180):
        recommendations.append(
            'Your password is over 6 months old. Consider changing it for better security.'
        )
    if not user.two_factor_enabled:
        recommendations.append('Enable two-factor authentication for additional security.')

    return success_response(data={
        'is_expiring': expiry['is_expiring'],
        'requires_change': expiry['requires_change'],
        'days_until_expiry': expiry['days_until_expiry'],
        'expiry_date': expiry['expiry_date'].isoformat(),
        'last_changed': expiry['last_changed'].isoformat(),
        'message': get_password_status_message(expiry),
        'recommendations': recommendations
    })


@security_bp.route('/password/strength', methods=['POST'])
@validate_json('password')
def password_strength(data):
    """
    Score a candidate password without storing it.

    Returns:
        200: score, strength and feedback
    """
    return success_response(data=check_password_strength(str(data['password'])))


# =============================================================================
# Report Export
# =============================================================================

@security_bp.route('/export', methods=['GET'])
@roles_required(*MEMBER_ROLES)
@limiter.limit("10 per minute", key_func=rate_limit_key_user)
def export_report():
    """
    Download a security report for the current user.

    Query Parameters:
        format (str): csv or json (default json)
        period (str): 24h, 7d, 30d or 90d (default 30d)

    Returns:
        200: Report file
        400: Unsupported format or period
    """
    user = get_current_user()
    export_format = request.args.get('format', 'json').lower()
    period = request.args.get('period', '30d')

    if period not in PERIODS:
        raise ValidationError('Invalid period', details={'allowed': list(PERIODS)})

    events = (
        SecurityEvent.query
        .filter(SecurityEvent.user_id == user.id)
        .filter(SecurityEvent.timestamp >= utcnow() - PERIODS[period])
        .order_by(SecurityEvent.timestamp.desc(), SecurityEvent.id.desc())
        .all()
    )

    report = prepare_security_report(events, period)
    content, mimetype, filename = render_report(report, export_format)

    return Response(
        content,
        mimetype=mimetype,
        headers={'Content-Disposition': f'attachment; filename="{filename}"'}
    )
