# =============================================================================
# AgriMarket Backend
# models.py - Database Models
#
# SQLAlchemy ORM models for the application database.
# Includes User with account security state, SecurityEvent audit records and
# PasswordHistory for password reuse checks.
# =============================================================================

from datetime import datetime, timezone
from extensions import db
from constants import DEFAULT_ROLE, DEFAULT_ACCOUNT_LEVEL


def utcnow():
    """Current UTC time as a naive datetime (SQLite drops tzinfo)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(db.Model):
    """
    User model for authentication, authorization and account security.

    Tracks failed login attempts and lockout state alongside the profile.
    Related to SecurityEvent and PasswordHistory through one-to-many
    relationships.
    """
    __tablename__ = 'users'

    # Primary Key
    id = db.Column(db.Integer, primary_key=True)

    # Authentication Fields
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)

    # Profile Fields
    first_name = db.Column(db.String(50), nullable=True)
    last_name = db.Column(db.String(50), nullable=True)
    phone = db.Column(db.String(20), nullable=True)

    # Account Status
    is_active = db.Column(db.Boolean, default=True)
    role = db.Column(db.String(20), default=DEFAULT_ROLE)  # buyer, seller, admin
    account_level = db.Column(db.String(20), default=DEFAULT_ACCOUNT_LEVEL)

    # Security State
    failed_login_attempts = db.Column(db.Integer, default=0, nullable=False)
    last_failed_login = db.Column(db.DateTime, nullable=True)
    locked_until = db.Column(db.DateTime, nullable=True)
    password_changed_at = db.Column(db.DateTime, nullable=True)

    # Security Preferences
    login_notifications = db.Column(db.Boolean, default=True)
    two_factor_enabled = db.Column(db.Boolean, default=False)
    lockout_threshold = db.Column(db.Integer, nullable=True)
    password_expiry_days = db.Column(db.Integer, nullable=True)

    # Timestamps
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)
    last_login = db.Column(db.DateTime, nullable=True)

    # Relationships
    security_events = db.relationship(
        'SecurityEvent',
        backref='user',
        lazy='dynamic',
        cascade='all, delete-orphan'
    )
    password_history = db.relationship(
        'PasswordHistory',
        backref='user',
        lazy='dynamic',
        cascade='all, delete-orphan'
    )

    def is_locked(self, now=None):
        now = now or utcnow()
        return self.locked_until is not None and self.locked_until > now

    def security_preferences(self):
        return {
            'login_notifications': bool(self.login_notifications),
            'two_factor_enabled': bool(self.two_factor_enabled),
            'lockout_threshold': self.lockout_threshold,
            'password_expiry_days': self.password_expiry_days
        }

    def to_dict(self, include_email=True, include_security=False):
        """
        Serialize user object to dictionary for API responses.

        Args:
            include_email: Whether to include email in response (privacy)
            include_security: Whether to include lockout state and preferences

        Returns:
            dict: User data dictionary
        """
        data = {
            'id': self.id,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'full_name': f"{self.first_name or ''} {self.last_name or ''}".strip(),
            'role': self.role,
            'account_level': self.account_level,
            'is_active': self.is_active,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'last_login': self.last_login.isoformat() if self.last_login else None
        }

        if include_email:
            data['email'] = self.email

        if include_security:
            data['failed_login_attempts'] = self.failed_login_attempts
            data['locked_until'] = self.locked_until.isoformat() if self.locked_until else None
            data['security_preferences'] = self.security_preferences()

        return data

    def __repr__(self):
        return f'<User {self.email}>'


class SecurityEvent(db.Model):
    """
    Security event audit record.

    One row per login, lockout, password change, rate limit rejection and
    other security-relevant action. user_id is nullable so that events from
    anonymous clients (e.g. rate limited login attempts) are kept.
    """
    __tablename__ = 'security_events'

    # Primary Key
    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(
        db.Integer,
        db.ForeignKey('users.id'),
        nullable=True,
        index=True
    )

    # Classification
    type = db.Column(db.String(40), nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False)
    severity = db.Column(db.String(20), nullable=False, default='low')
    reason = db.Column(db.String(255), nullable=True)

    # Client Information
    ip_address = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)
    device = db.Column(db.String(50), nullable=True)
    location = db.Column(db.String(120), nullable=True)

    # Request Information
    endpoint = db.Column(db.String(255), nullable=True)
    method = db.Column(db.String(10), nullable=True)

    # 'metadata' is reserved on declarative models
    event_metadata = db.Column('metadata', db.JSON, nullable=True)

    timestamp = db.Column(db.DateTime, default=utcnow, index=True)

    __table_args__ = (
        db.Index('idx_security_user_timestamp', 'user_id', 'timestamp'),
    )

    def to_dict(self, include_user=False):
        """
        Serialize security event to dictionary for API responses.

        Args:
            include_user: Whether to embed a short user summary

        Returns:
            dict: Security event data dictionary
        """
        data = {
            'id': self.id,
            'user_id': self.user_id,
            'type': self.type,
            'status': self.status,
            'severity': self.severity,
            'reason': self.reason,
            'ip_address': self.ip_address,
            'user_agent': self.user_agent,
            'device': self.device,
            'location': self.location,
            'endpoint': self.endpoint,
            'method': self.method,
            'metadata': self.event_metadata or {},
            'timestamp': self.timestamp.isoformat() if self.timestamp else None
        }

        if include_user and self.user is not None:
            data['user'] = {
                'id': self.user.id,
                'name': self.user.to_dict()['full_name'],
                'role': self.user.role
            }

        return data

    def __repr__(self):
        return f'<SecurityEvent {self.id}: {self.type} {self.status}>'


class PasswordHistory(db.Model):
    """Previous password hashes of a user, newest first."""
    __tablename__ = 'password_history'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey('users.id'),
        nullable=False,
        index=True
    )
    password_hash = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, index=True)

    def __repr__(self):
        return f'<PasswordHistory user={self.user_id} at={self.created_at}>'
