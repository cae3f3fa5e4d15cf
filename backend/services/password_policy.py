# =============================================================================
# AgriMarket Backend
# services/password_policy.py - Password Policy
#
# Password validation, strength scoring, reuse history and expiry checks.
# =============================================================================

import re
from datetime import timedelta
from flask import current_app

from extensions import db, bcrypt
from models import PasswordHistory, utcnow
from constants import (
    PASSWORD_POLICY,
    COMMON_PASSWORDS,
    PASSWORD_HISTORY_SIZE,
    DEFAULT_PASSWORD_EXPIRY_DAYS,
    PASSWORD_EXPIRY_WARN_DAYS
)

SEQUENTIAL_LETTERS = re.compile(
    r'(?:abc|bcd|cde|def|efg|fgh|ghi|hij|ijk|jkl|klm|lmn|mno|nop|opq|pqr|qrs'
    r'|rst|stu|tuv|uvw|vwx|wxy|xyz)',
    re.IGNORECASE
)
SEQUENTIAL_NUMBERS = re.compile(r'(?:123|234|345|456|567|678|789|890)')


def _count(pattern, password):
    return len(re.findall(pattern, password))


def validate_password(password, user=None, **options):
    """
    Validate a password against the password policy.

    Args:
        password: Candidate password
        user: Optional user; enables reuse and minimum age checks
        **options: Overrides for PASSWORD_POLICY keys

    Returns:
        tuple: (is_valid: bool, errors: list[str])
    """
    opts = dict(PASSWORD_POLICY, **options)
    errors = []

    if len(password) < opts['min_length']:
        errors.append(f"Password must be at least {opts['min_length']} characters long")
    if len(password) > opts['max_length']:
        errors.append(f"Password cannot be longer than {opts['max_length']} characters")

    if opts['min_uppercase'] > 0 and _count(r'[A-Z]', password) < opts['min_uppercase']:
        errors.append(
            f"Password must contain at least {opts['min_uppercase']} uppercase letter(s)"
        )
    if opts['min_lowercase'] > 0 and _count(r'[a-z]', password) < opts['min_lowercase']:
        errors.append(
            f"Password must contain at least {opts['min_lowercase']} lowercase letter(s)"
        )
    if opts['min_numbers'] > 0 and _count(r'[0-9]', password) < opts['min_numbers']:
        errors.append(f"Password must contain at least {opts['min_numbers']} number(s)")
    if opts['min_special_chars'] > 0 and \
            _count(r'[^A-Za-z0-9]', password) < opts['min_special_chars']:
        errors.append(
            f"Password must contain at least {opts['min_special_chars']} special character(s)"
        )

    if opts['prevent_common'] and password.lower() in COMMON_PASSWORDS:
        errors.append('This password is too common. Please choose a more secure password')

    if user is not None:
        if opts['prevent_reuse'] > 0 and _matches_history(user, password, opts['prevent_reuse']):
            errors.append(f"Cannot reuse any of your last {opts['prevent_reuse']} passwords")

        if opts['min_age_days'] > 0 and user.password_changed_at:
            age = utcnow() - user.password_changed_at
            if age < timedelta(days=opts['min_age_days']):
                errors.append(
                    f"Must wait {opts['min_age_days']} day(s) between password changes"
                )

    return len(errors) == 0, errors


def _matches_history(user, password, depth):
    if bcrypt.check_password_hash(user.password_hash, password):
        return True

    recent = (
        PasswordHistory.query
        .filter_by(user_id=user.id)
        .order_by(PasswordHistory.created_at.desc(), PasswordHistory.id.desc())
        .limit(depth)
        .all()
    )
    return any(bcrypt.check_password_hash(entry.password_hash, password) for entry in recent)


def add_to_password_history(user, password_hash):
    """
    Record a password hash and keep only the newest entries.

    The session is flushed but not committed.
    """
    db.session.add(PasswordHistory(
        user_id=user.id,
        password_hash=password_hash,
        created_at=utcnow()
    ))
    db.session.flush()

    stale = (
        PasswordHistory.query
        .filter_by(user_id=user.id)
        .order_by(PasswordHistory.created_at.desc(), PasswordHistory.id.desc())
        .offset(PASSWORD_HISTORY_SIZE)
        .all()
    )
    for entry in stale:
        db.session.delete(entry)


def check_password_strength(password):
    """
    Score a password from 0 to 100.

    Returns:
        dict: score, strength (very-weak .. very-strong) and feedback list
    """
    score = 0
    feedback = []

    # Length contribution
    score += min(25, len(password) * 2)

    # Character variety
    if re.search(r'[A-Z]', password):
        score += 5
    if re.search(r'[a-z]', password):
        score += 5
    if re.search(r'[0-9]', password):
        score += 5
    if re.search(r'[^A-Za-z0-9]', password):
        score += 10

    # Length bonuses
    if len(password) >= 12:
        score += 10
    if len(password) >= 16:
        score += 15

    # Pattern penalties
    if re.search(r'(.)\1{2,}', password):
        score -= 10
        feedback.append('Avoid repeated characters')
    if re.fullmatch(r'[A-Za-z]+', password):
        score -= 10
        feedback.append('Add numbers or special characters')
    if re.fullmatch(r'[0-9]+', password):
        score -= 10
        feedback.append('Add letters and special characters')
    if SEQUENTIAL_LETTERS.search(password):
        score -= 10
        feedback.append('Avoid sequential letters')
    if SEQUENTIAL_NUMBERS.search(password):
        score -= 10
        feedback.append('Avoid sequential numbers')

    score = max(0, min(100, score))

    if score < 20:
        strength = 'very-weak'
    elif score < 40:
        strength = 'weak'
    elif score < 60:
        strength = 'fair'
    elif score < 80:
        strength = 'strong'
    else:
        strength = 'very-strong'

    if score < 60:
        if not re.search(r'[A-Z]', password):
            feedback.append('Add uppercase letters')
        if not re.search(r'[a-z]', password):
            feedback.append('Add lowercase letters')
        if not re.search(r'[0-9]', password):
            feedback.append('Add numbers')
        if not re.search(r'[^A-Za-z0-9]', password):
            feedback.append('Add special characters')
        if len(password) < 12:
            feedback.append('Make the password longer')

    return {
        'score': score,
        'strength': strength,
        'feedback': feedback
    }


def check_password_expiry(user, now=None):
    """
    Work out when a user's password expires.

    Args:
        user: User to check
        now: Reference time (defaults to current UTC time)

    Returns:
        dict: is_expiring, days_until_expiry, requires_change, expiry_date,
              last_changed
    """
    now = now or utcnow()
    expiry_days = user.password_expiry_days or current_app.config.get(
        'PASSWORD_EXPIRY_DAYS', DEFAULT_PASSWORD_EXPIRY_DAYS
    )

    last_changed = user.password_changed_at or user.created_at or now
    expiry_date = last_changed + timedelta(days=expiry_days)

    seconds_left = (expiry_date - now).total_seconds()
    days_until_expiry = -int(-seconds_left // 86400)  # ceil

    return {
        'is_expiring': days_until_expiry <= PASSWORD_EXPIRY_WARN_DAYS,
        'days_until_expiry': days_until_expiry,
        'requires_change': days_until_expiry <= 0,
        'expiry_date': expiry_date,
        'last_changed': last_changed
    }


def get_password_status_message(result):
    if result['requires_change']:
        return 'Your password has expired. Please change it to continue.'
    if result['is_expiring']:
        return (
            f"Your password will expire in {result['days_until_expiry']} days. "
            f"Please change it soon."
        )
    return f"Your password will expire in {result['days_until_expiry']} days."
