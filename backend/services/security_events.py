# =============================================================================
# AgriMarket Backend
# services/security_events.py - Security Event Service
#
# Records security events, applies account lockout after repeated failures,
# delivers login notifications and answers audit queries.
# =============================================================================

import math
import logging
from datetime import timedelta
from flask import request, has_request_context, current_app

from extensions import db
from models import SecurityEvent, utcnow
from constants import (
    PRIVILEGED_EVENT_TYPES,
    DEFAULT_LOCKOUT_THRESHOLD,
    DEFAULT_LOCKOUT_MINUTES
)
from logging_config import log_security, get_security_logger
from utils import get_client_ip, detect_device

logger = logging.getLogger(__name__)

SYSTEM_CLIENT_INFO = {
    'ip_address': 'system',
    'user_agent': 'system',
    'device': 'system',
    'location': None,
    'endpoint': None,
    'method': None
}


def get_client_info(req=None):
    """
    Describe the client of a request.

    Outside a request (CLI, background jobs) a fixed 'system' client is
    returned.

    Args:
        req: Request to describe; defaults to the current request

    Returns:
        dict: ip_address, user_agent, device, location, endpoint, method
    """
    if req is None:
        if not has_request_context():
            return dict(SYSTEM_CLIENT_INFO)
        req = request

    user_agent = req.headers.get('User-Agent', '')
    return {
        'ip_address': get_client_ip(req),
        'user_agent': user_agent[:255] or None,
        'device': detect_device(user_agent),
        'location': req.headers.get('X-Client-Location'),
        'endpoint': req.path,
        'method': req.method
    }


def _lockout_duration():
    return current_app.config.get(
        'LOCKOUT_DURATION', timedelta(minutes=DEFAULT_LOCKOUT_MINUTES)
    )


def _lockout_threshold(user):
    return user.lockout_threshold or current_app.config.get(
        'LOCKOUT_THRESHOLD', DEFAULT_LOCKOUT_THRESHOLD
    )


# =============================================================================
# Event Recording
# =============================================================================

def create_security_event(user_id, event_type, status, severity='low', reason=None,
                          metadata=None, commit=True):
    """
    Persist a security event and mirror it to the security log.

    Args:
        user_id: Affected user, or None for anonymous clients
        event_type: Event type (see constants.SECURITY_EVENT_TYPES)
        status: success, failed, blocked or pending
        severity: low, medium, high or critical
        reason: Optional failure reason
        metadata: Optional extra context stored as JSON
        commit: Commit the session (False when the caller commits)

    Returns:
        SecurityEvent: The stored event
    """
    client = get_client_info()

    event = SecurityEvent(
        user_id=user_id,
        type=event_type,
        status=status,
        severity=severity,
        reason=reason,
        ip_address=client['ip_address'],
        user_agent=client['user_agent'],
        device=client['device'],
        location=client['location'],
        endpoint=client['endpoint'],
        method=client['method'],
        event_metadata=metadata or {},
        timestamp=utcnow()
    )
    db.session.add(event)

    if commit:
        db.session.commit()

    log_security(
        event_type,
        status=status,
        severity=severity,
        user=user_id,
        ip=client['ip_address'],
        endpoint=client['endpoint'],
        reason=reason
    )

    return event


def send_security_notification(user, event_type, severity, metadata=None):
    """
    Notify a user about a security event.

    Delivery goes to the security log; users who turned off login
    notifications are skipped.

    Returns:
        bool: True if a notification was emitted
    """
    if not current_app.config.get('SECURITY_NOTIFICATIONS_ENABLED', True):
        return False
    if not user.login_notifications:
        return False

    get_security_logger().info(
        f"Notification to {user.email}: {event_type} (severity={severity}) "
        f"{metadata or {}}"
    )
    return True


def handle_security_event(user, event_type, notify=True, log=True, update_user=False,
                          severity='low', metadata=None):
    """
    Handle a successful security event.

    Args:
        user: User the event belongs to (None is ignored)
        event_type: Event type
        notify: Send a notification if the user enabled them
        log: Persist the event
        update_user: Reset failure counters (and stamp last_login for logins)
        severity: Event severity
        metadata: Optional extra context
    """
    if user is None:
        return None

    event = None
    if log:
        event = create_security_event(
            user.id, event_type, 'success', severity=severity,
            metadata=metadata, commit=False
        )

    if notify:
        send_security_notification(user, event_type, severity, get_client_info())

    if update_user:
        update_user_security_status(user, event_type)

    db.session.commit()
    return event


def handle_failed_security_event(user, event_type, reason, notify=True, log=True,
                                 update_user=True, severity='medium', metadata=None):
    """
    Handle a failed security event.

    Increments the user's failed attempt counter and locks the account once
    the lockout threshold is reached.

    Args:
        user: User the event belongs to (None is ignored)
        event_type: Event type
        reason: Why the action failed
        notify: Send a notification if the user enabled them
        log: Persist the event
        update_user: Apply failure counters and lockout
        severity: Event severity
        metadata: Optional extra context
    """
    if user is None:
        return None

    event = None
    if log:
        event = create_security_event(
            user.id, event_type, 'failed', severity=severity, reason=reason,
            metadata=metadata, commit=False
        )

    if notify:
        info = get_client_info()
        info['reason'] = reason
        send_security_notification(user, event_type, severity, info)

    if update_user:
        update_user_security_status(user, event_type, is_failed=True)

    db.session.commit()
    return event


def should_lock_account(user):
    """True if one more failure reaches the user's lockout threshold."""
    return (user.failed_login_attempts or 0) + 1 >= _lockout_threshold(user)


def update_user_security_status(user, event_type, is_failed=False):
    """
    Update lockout state after a security event.

    Failures increment the counter and may lock the account; a success
    clears the counter and any lock. The session is not committed.
    """
    now = utcnow()

    if is_failed:
        lock = should_lock_account(user)
        user.failed_login_attempts = (user.failed_login_attempts or 0) + 1
        user.last_failed_login = now
        user.locked_until = now + _lockout_duration() if lock else None

        if lock:
            create_security_event(
                user.id, 'account_locked', 'blocked', severity='high',
                reason=f'{user.failed_login_attempts} failed attempts',
                metadata={'locked_until': user.locked_until.isoformat()},
                commit=False
            )
            logger.warning(f"Account locked: {user.email} until {user.locked_until}")
    else:
        user.failed_login_attempts = 0
        user.last_failed_login = None
        user.locked_until = None
        if event_type == 'login':
            user.last_login = now


def check_security_status(user):
    """
    Check whether a user may perform security-sensitive actions.

    Returns:
        tuple: (allowed: bool, reason: str or None)
    """
    if user is None:
        return False, 'User not found'

    now = utcnow()
    if user.is_locked(now):
        remaining = user.locked_until - now
        minutes = max(1, math.ceil(remaining.total_seconds() / 60))
        return False, f'Account is locked. Try again in {minutes} minutes.'

    return True, None


# =============================================================================
# Queries
# =============================================================================

def query_security_events(user_id, role, types=None, statuses=None,
                          start=None, end=None, limit=100):
    """
    Fetch security events visible to a user.

    Admins see everything. Other roles see their own events plus events that
    are not role or permission changes.

    Args:
        user_id: Requesting user
        role: Requesting user's role
        types: Optional list of event types
        statuses: Optional list of statuses
        start: Optional lower bound on timestamp
        end: Optional upper bound on timestamp
        limit: Maximum number of events returned

    Returns:
        tuple: (events: list[SecurityEvent], total: int)
    """
    query = SecurityEvent.query

    if types:
        query = query.filter(SecurityEvent.type.in_(types))
    if statuses:
        query = query.filter(SecurityEvent.status.in_(statuses))
    if start is not None:
        query = query.filter(SecurityEvent.timestamp >= start)
    if end is not None:
        query = query.filter(SecurityEvent.timestamp <= end)

    if role != 'admin':
        query = query.filter(db.or_(
            SecurityEvent.user_id == user_id,
            SecurityEvent.type.notin_(PRIVILEGED_EVENT_TYPES)
        ))

    total = query.count()
    events = (
        query.order_by(SecurityEvent.timestamp.desc(), SecurityEvent.id.desc())
        .limit(limit)
        .all()
    )
    return events, total


def get_activity_summary(user_id):
    """
    Summarize a user's recent security activity.

    Returns:
        dict: last_24_hours, last_7_days and failed_attempts counts
    """
    now = utcnow()
    base = SecurityEvent.query.filter(SecurityEvent.user_id == user_id)

    return {
        'last_24_hours': base.filter(
            SecurityEvent.timestamp >= now - timedelta(hours=24)
        ).count(),
        'last_7_days': base.filter(
            SecurityEvent.timestamp >= now - timedelta(days=7)
        ).count(),
        'failed_attempts': base.filter(
            SecurityEvent.status == 'failed'
        ).count()
    }
