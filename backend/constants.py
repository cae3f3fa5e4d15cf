# =============================================================================
# AgriMarket Backend
# constants.py - Shared Constants
#
# Roles, security event vocabularies, rate limit presets and API messages
# used across routes and services.
# =============================================================================

# =============================================================================
# User Roles
# =============================================================================
ROLES = ['guest', 'buyer', 'seller', 'admin']
DEFAULT_ROLE = 'buyer'

ACCOUNT_LEVELS = ['basic', 'verified', 'premium']
DEFAULT_ACCOUNT_LEVEL = 'basic'

# =============================================================================
# Security Events
# =============================================================================
SECURITY_EVENT_TYPES = [
    'login',
    'logout',
    'register',
    'password_change',
    'password_expired',
    'failed_login',
    'account_locked',
    'account_unlocked',
    'rate_limit_exceeded',
    'role_change',
    'permission_change',
    'suspicious_activity',
    'two_factor_enabled',
    'two_factor_disabled',
    'session_revoked'
]

# Only admins may record these, and non-admins never see other users' ones
PRIVILEGED_EVENT_TYPES = ['role_change', 'permission_change']

SECURITY_EVENT_STATUSES = ['success', 'failed', 'blocked', 'pending']

SECURITY_EVENT_SEVERITIES = ['low', 'medium', 'high', 'critical']

# =============================================================================
# Account Lockout
# =============================================================================
DEFAULT_LOCKOUT_THRESHOLD = 5
DEFAULT_LOCKOUT_MINUTES = 30

# =============================================================================
# Password Policy
# =============================================================================
PASSWORD_POLICY = {
    'min_length': 8,
    'max_length': 128,
    'min_uppercase': 1,
    'min_lowercase': 1,
    'min_numbers': 1,
    'min_special_chars': 1,
    'prevent_reuse': 3,
    'min_age_days': 1,
    'prevent_common': True
}

COMMON_PASSWORDS = {
    'password',
    'password123',
    '12345678',
    'qwerty123',
    'letmein'
}

PASSWORD_HISTORY_SIZE = 10
DEFAULT_PASSWORD_EXPIRY_DAYS = 90
PASSWORD_EXPIRY_WARN_DAYS = 14

# =============================================================================
# Rate Limit Presets (interval seconds, max requests per interval)
# =============================================================================
RATE_LIMIT_PRESETS = {
    'strict': {'interval': 60, 'max_requests': 5},
    'normal': {'interval': 60, 'max_requests': 60},
    'relaxed': {'interval': 60, 'max_requests': 300}
}

RATE_LIMIT_CLEANUP_INTERVAL = 60

# =============================================================================
# API Response Messages
# =============================================================================
MESSAGES = {
    'RATE_LIMITED': 'Too many requests. Please try again later.',
    'INVALID_CREDENTIALS': 'Invalid email or password',
    'ACCOUNT_INACTIVE': 'Account is deactivated. Please contact support.',
    'FORBIDDEN': 'You do not have permission to access this resource',
    'LOGIN_REQUIRED': 'You must be logged in to perform this action'
}
