# =============================================================================
# AgriMarket Backend
# routes/admin.py - Admin Routes
#
# Administrative endpoints for user management, account unlocks and
# security analytics. Requires admin role.
# =============================================================================

from datetime import timedelta
from flask import Blueprint, request, jsonify, current_app, g

from extensions import db, limiter
from models import User, SecurityEvent, utcnow
from constants import ROLES, ACCOUNT_LEVELS
from errors import BadRequestError, NotFoundError, ValidationError
from utils import admin_required, success_response
from decorators import paginated_response, validate_json, handle_db_errors, log_request
from services.security_events import create_security_event

# Create blueprint
admin_bp = Blueprint('admin', __name__)

ASSIGNABLE_ROLES = [role for role in ROLES if role != 'guest']


# =============================================================================
# Get All Users
# =============================================================================

@admin_bp.route('/users', methods=['GET'])
@admin_required
@limiter.limit("30 per minute")
@paginated_response(default_per_page=50)
def get_all_users(page, per_page):
    """
    Get list of all registered users (admin only).

    Query Parameters:
        page (int): Page number
        per_page (int): Items per page
        search (str): Search by email or name
        role (str): Filter by role
        active (bool): Filter by active status
        locked (bool): Only accounts currently locked out

    Returns:
        200: Paginated list of users
    """
    query = User.query

    search = request.args.get('search', '').strip()
    if search:
        query = query.filter(
            db.or_(
                User.email.ilike(f'%{search}%'),
                User.first_name.ilike(f'%{search}%'),
                User.last_name.ilike(f'%{search}%')
            )
        )

    role = request.args.get('role', '').strip()
    if role:
        query = query.filter(User.role == role)

    active = request.args.get('active')
    if active is not None:
        query = query.filter(User.is_active == (active.lower() == 'true'))

    if request.args.get('locked', '').lower() == 'true':
        query = query.filter(User.locked_until > utcnow())

    query = query.order_by(User.created_at.desc(), User.id.desc())

    pagination = query.paginate(page=page, per_page=per_page, error_out=False)

    return jsonify({
        'success': True,
        'data': {
            'users': [user.to_dict(include_security=True) for user in pagination.items],
            'page': pagination.page,
            'per_page': pagination.per_page,
            'total': pagination.total,
            'pages': pagination.pages
        }
    }), 200


# =============================================================================
# Get Single User
# =============================================================================

@admin_bp.route('/users/<int:user_id>', methods=['GET'])
@admin_required
@limiter.limit("60 per minute")
def get_user(user_id):
    """
    Get detailed information about a specific user.

    Returns:
        200: User details with security event count
        404: User not found
    """
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError('User')

    user_data = user.to_dict(include_security=True)
    user_data['security_event_count'] = user.security_events.count()

    return success_response(data=user_data)


# =============================================================================
# Update User
# =============================================================================

@admin_bp.route('/users/<int:user_id>', methods=['PUT'])
@admin_required
@log_request
@limiter.limit("30 per minute")
@validate_json()
@handle_db_errors
def update_user(user_id, data):
    """
    Update account status, role or account level, or clear a lockout.

    Request Body:
        is_active (bool): Account active status
        role (str): buyer, seller or admin
        account_level (str): basic, verified or premium
        unlock (bool): Reset failed attempts and lift the lockout

    Returns:
        200: User updated
        400: Invalid value
        404: User not found
    """
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError('User')

    for field in ('is_active', 'unlock'):
        if field in data and not isinstance(data[field], bool):
            raise ValidationError(f'{field} must be a boolean')

    if 'role' in data and data['role'] not in ASSIGNABLE_ROLES:
        raise ValidationError('Invalid role', details={'allowed_roles': ASSIGNABLE_ROLES})
    if 'account_level' in data and data['account_level'] not in ACCOUNT_LEVELS:
        raise ValidationError(
            'Invalid account level',
            details={'allowed_levels': ACCOUNT_LEVELS}
        )

    if 'is_active' in data:
        user.is_active = data['is_active']

    if 'account_level' in data:
        user.account_level = data['account_level']

    if 'role' in data and data['role'] != user.role:
        previous_role = user.role
        user.role = data['role']
        create_security_event(
            user.id,
            'role_change',
            'success',
            severity='high',
            metadata={
                'from': previous_role,
                'to': user.role,
                'changed_by': g.current_user.id
            },
            commit=False
        )

    if data.get('unlock'):
        user.failed_login_attempts = 0
        user.locked_until = None
        create_security_event(
            user.id,
            'account_unlocked',
            'success',
            severity='medium',
            metadata={'unlocked_by': g.current_user.id},
            commit=False
        )

    db.session.commit()

    current_app.logger.info(f"User {user_id} updated by admin {g.current_user.id}")

    return success_response(
        data=user.to_dict(include_security=True),
        message='User updated successfully'
    )


# =============================================================================
# Delete User
# =============================================================================

@admin_bp.route('/users/<int:user_id>', methods=['DELETE'])
@admin_required
@log_request
@limiter.limit("10 per minute")
@handle_db_errors
def delete_user(user_id):
    """
    Delete a user account and its security history.

    Returns:
        200: User deleted
        400: Cannot delete admin
        404: User not found
    """
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError('User')

    if user.role == 'admin':
        raise BadRequestError('Cannot delete admin accounts')

    db.session.delete(user)
    db.session.commit()

    current_app.logger.info(f"User {user_id} deleted by admin {g.current_user.id}")

    return success_response(message='User deleted successfully')


# =============================================================================
# Security Analytics
# =============================================================================

@admin_bp.route('/analytics', methods=['GET'])
@admin_required
@limiter.limit("30 per minute")
def get_analytics():
    """
    System-wide user and security event statistics.

    Query Parameters:
        days (int): Number of days to analyze (default: 30)

    Returns:
        200: Analytics data
    """
    days = max(1, request.args.get('days', 30, type=int))
    cutoff_date = utcnow() - timedelta(days=days)

    users_by_role = dict(
        db.session.query(User.role, db.func.count(User.id)).group_by(User.role).all()
    )

    recent = SecurityEvent.query.filter(SecurityEvent.timestamp >= cutoff_date)

    events_by_type = dict(
        recent.with_entities(SecurityEvent.type, db.func.count(SecurityEvent.id))
        .group_by(SecurityEvent.type).all()
    )
    events_by_status = dict(
        recent.with_entities(SecurityEvent.status, db.func.count(SecurityEvent.id))
        .group_by(SecurityEvent.status).all()
    )

    top_ips = (
        recent.with_entities(
            SecurityEvent.ip_address,
            db.func.count(SecurityEvent.id).label('count')
        )
        .filter(SecurityEvent.status.in_(['failed', 'blocked']))
        .group_by(SecurityEvent.ip_address)
        .order_by(db.desc('count'))
        .limit(10).all()
    )

    return success_response(data={
        'period_days': days,
        'users': {
            'total': User.query.count(),
            'active': User.query.filter_by(is_active=True).count(),
            'locked': User.query.filter(User.locked_until > utcnow()).count(),
            'new': User.query.filter(User.created_at >= cutoff_date).count(),
            'by_role': users_by_role
        },
        'security_events': {
            'total': recent.count(),
            'by_type': events_by_type,
            'by_status': events_by_status,
            'top_failing_ips': [{'ip_address': ip, 'count': c} for ip, c in top_ips]
        }
    })
