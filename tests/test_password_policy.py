"""Tests for password validation, history, strength and expiry."""

from datetime import timedelta

from extensions import db, bcrypt
from models import PasswordHistory, utcnow
from services.password_policy import (
    validate_password,
    add_to_password_history,
    check_password_strength,
    check_password_expiry,
    get_password_status_message
)


class TestValidatePassword:
    """Policy rules without a user."""

    def test_valid_password(self):
        assert validate_password('Str0ng#Pass') == (True, [])

    def test_weak_password_lists_every_problem(self):
        is_valid, errors = validate_password('short')

        assert not is_valid
        assert 'Password must be at least 8 characters long' in errors
        assert 'Password must contain at least 1 uppercase letter(s)' in errors
        assert 'Password must contain at least 1 number(s)' in errors
        assert 'Password must contain at least 1 special character(s)' in errors
        assert len(errors) == 4

    def test_too_long(self):
        is_valid, errors = validate_password('Aa1!' * 40)
        assert not is_valid
        assert errors == ['Password cannot be longer than 128 characters']

    def test_common_password(self):
        is_valid, errors = validate_password('Password123')
        assert not is_valid
        assert 'This password is too common. Please choose a more secure password' in errors

    def test_options_override_policy(self):
        is_valid, errors = validate_password(
            'abc', min_length=3, min_uppercase=0, min_numbers=0, min_special_chars=0
        )
        assert is_valid
        assert errors == []


class TestPasswordHistory:
    """Reuse prevention and minimum age with a user."""

    def test_current_password_cannot_be_reused(self, buyer):
        is_valid, errors = validate_password('Str0ng#Pass', user=buyer)
        assert not is_valid
        assert 'Cannot reuse any of your last 3 passwords' in errors

    def test_recent_password_cannot_be_reused(self, buyer):
        add_to_password_history(buyer, bcrypt.generate_password_hash('0ld#Secret').decode('utf-8'))
        db.session.commit()

        is_valid, errors = validate_password('0ld#Secret', user=buyer)
        assert not is_valid
        assert 'Cannot reuse any of your last 3 passwords' in errors

    def test_new_password_is_accepted(self, buyer):
        assert validate_password('Brand#New9', user=buyer) == (True, [])

    def test_minimum_age(self, buyer):
        buyer.password_changed_at = utcnow() - timedelta(hours=2)
        db.session.commit()

        is_valid, errors = validate_password('Brand#New9', user=buyer)
        assert not is_valid
        assert errors == ['Must wait 1 day(s) between password changes']

    def test_minimum_age_elapsed(self, buyer):
        buyer.password_changed_at = utcnow() - timedelta(days=2)
        db.session.commit()

        assert validate_password('Brand#New9', user=buyer) == (True, [])

    def test_history_is_trimmed(self, buyer):
        for i in range(12):
            add_to_password_history(buyer, f'hash-{i}')
        db.session.commit()

        entries = PasswordHistory.query.filter_by(user_id=buyer.id).all()
        assert len(entries) == 10
        assert 'hash-11' in {entry.password_hash for entry in entries}
        assert 'hash-0' not in {entry.password_hash for entry in entries}


class TestPasswordStrength:
    """Strength scoring."""

    def test_very_weak(self):
        result = check_password_strength('aaa')
        assert result['score'] == 0
        assert result['strength'] == 'very-weak'
        assert 'Avoid repeated characters' in result['feedback']
        assert 'Add numbers or special characters' in result['feedback']

    def test_sequential_numbers_penalized(self):
        result = check_password_strength('12345678')
        assert 'Avoid sequential numbers' in result['feedback']
        assert 'Add letters and special characters' in result['feedback']

    def test_strong_password(self):
        result = check_password_strength('C0mpl3x!Passw0rd#2024')
        assert result['score'] == 75
        assert result['strength'] == 'strong'
        assert result['feedback'] == []

    def test_score_is_bounded(self):
        result = check_password_strength('Zq9!' * 20)
        assert 0 <= result['score'] <= 100


class TestPasswordExpiry:
    """Expiry dates and status messages."""

    def test_falls_back_to_creation_date(self, buyer):
        now = buyer.created_at + timedelta(days=80)
        result = check_password_expiry(buyer, now=now)

        assert result['last_changed'] == buyer.created_at
        assert result['days_until_expiry'] == 10
        assert result['is_expiring']
        assert not result['requires_change']
        assert get_password_status_message(result) == (
            'Your password will expire in 10 days. Please change it soon.'
        )

    def test_expired(self, buyer):
        buyer.password_changed_at = utcnow() - timedelta(days=100)
        result = check_password_expiry(buyer, now=buyer.password_changed_at + timedelta(days=91))

        assert result['days_until_expiry'] == -1
        assert result['requires_change']
        assert get_password_status_message(result) == (
            'Your password has expired. Please change it to continue.'
        )

    def test_fresh_password(self, buyer):
        buyer.password_changed_at = utcnow()
        result = check_password_expiry(buyer, now=buyer.password_changed_at)

        assert result['days_until_expiry'] == 90
        assert not result['is_expiring']
        assert get_password_status_message(result) == 'Your password will expire in 90 days.'

    def test_user_expiry_preference(self, buyer):
        buyer.password_changed_at = utcnow()
        buyer.password_expiry_days = 30
        result = check_password_expiry(buyer, now=buyer.password_changed_at)

        assert result['days_until_expiry'] == 30
        assert result['expiry_date'] == buyer.password_changed_at + timedelta(days=30)
