"""Tests for the security API."""

import csv
import io

import pytest

from extensions import db
from models import SecurityEvent
from services.security_events import create_security_event


class TestAccessGuard:
    """Role guard in front of the security API."""

    def test_guest_is_denied(self, client):
        response = client.get('/api/security/events')

        assert response.status_code == 403
        assert response.get_json()['error']['code'] == 'AUTHORIZATION_ERROR'
        assert response.headers['X-User-Role'] == 'guest'

    def test_invalid_token(self, client):
        response = client.get(
            '/api/security/events', headers={'Authorization': 'Bearer not-a-token'}
        )

        assert response.status_code == 401
        assert response.get_json()['error']['code'] == 'INVALID_TOKEN'

    def test_deactivated_user(self, client, make_user, auth_headers):
        user = make_user(email='former@example.com')
        headers = auth_headers(user)
        user.is_active = False
        db.session.commit()

        response = client.get('/api/security/events', headers=headers)
        assert response.status_code == 403


class TestListEvents:
    """GET /api/security/events"""

    @pytest.fixture
    def events(self, buyer, seller):
        create_security_event(buyer.id, 'login', 'success')
        create_security_event(buyer.id, 'failed_login', 'failed')
        create_security_event(seller.id, 'role_change', 'success')

    def test_lists_visible_events(self, client, buyer, auth_headers, events):
        response = client.get('/api/security/events', headers=auth_headers(buyer))

        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['total'] == 2
        assert {event['type'] for event in data['events']} == {'login', 'failed_login'}
        assert response.headers['X-User-Role'] == 'buyer'

    def test_admin_sees_role_changes(self, client, admin, auth_headers, events):
        response = client.get('/api/security/events', headers=auth_headers(admin))
        assert response.get_json()['data']['total'] == 3

    def test_filters(self, client, buyer, auth_headers, events):
        response = client.get(
            '/api/security/events?type=login,failed_login&status=failed&limit=10',
            headers=auth_headers(buyer)
        )

        events = response.get_json()['data']['events']
        assert len(events) == 1
        assert events[0]['type'] == 'failed_login'
        assert events[0]['user']['id'] == buyer.id

    def test_invalid_filter(self, client, buyer, auth_headers):
        response = client.get('/api/security/events?type=teleport', headers=auth_headers(buyer))

        assert response.status_code == 400
        assert response.get_json()['error']['details'] == {'invalid': ['teleport']}

    def test_invalid_date(self, client, buyer, auth_headers):
        response = client.get(
            '/api/security/events?start_date=yesterday', headers=auth_headers(buyer)
        )
        assert response.status_code == 400


class TestRecordEvent:
    """POST /api/security/events"""

    def test_record_event(self, client, buyer, auth_headers):
        response = client.post('/api/security/events', headers=auth_headers(buyer), json={
            'type': 'suspicious_activity',
            'status': 'pending',
            'severity': 'high',
            'metadata': {'hint': 'new device'}
        })

        assert response.status_code == 201
        event = response.get_json()['data']['event']
        assert event['user_id'] == buyer.id
        assert event['severity'] == 'high'
        assert event['metadata'] == {'hint': 'new device'}
        assert event['endpoint'] == '/api/security/events'
        assert event['method'] == 'POST'

    def test_privileged_type_needs_admin(self, client, buyer, auth_headers):
        response = client.post('/api/security/events', headers=auth_headers(buyer), json={
            'type': 'role_change',
            'status': 'success'
        })

        assert response.status_code == 403
        assert response.get_json()['error']['message'] == 'Unauthorized event type'
        assert SecurityEvent.query.count() == 0

    def test_admin_records_privileged_type(self, client, admin, auth_headers):
        response = client.post('/api/security/events', headers=auth_headers(admin), json={
            'type': 'permission_change',
            'status': 'success'
        })
        assert response.status_code == 201

    def test_invalid_event(self, client, buyer, auth_headers):
        response = client.post('/api/security/events', headers=auth_headers(buyer), json={
            'type': 'teleport',
            'status': 'maybe',
            'metadata': ['not', 'a', 'dict']
        })

        assert response.status_code == 400
        fields = {item['field'] for item in response.get_json()['error']['details']}
        assert fields == {'type', 'status', 'metadata'}


class TestDeleteEvent:
    """DELETE /api/security/events/<id>"""

    def test_admin_deletes(self, client, admin, buyer, auth_headers):
        event = create_security_event(buyer.id, 'login', 'success')

        response = client.delete(f'/api/security/events/{event.id}', headers=auth_headers(admin))

        assert response.status_code == 200
        assert SecurityEvent.query.count() == 0

    def test_member_cannot_delete(self, client, buyer, auth_headers):
        event = create_security_event(buyer.id, 'login', 'success')

        response = client.delete(f'/api/security/events/{event.id}', headers=auth_headers(buyer))

        assert response.status_code == 403

    def test_missing_event(self, client, admin, auth_headers):
        response = client.delete('/api/security/events/999', headers=auth_headers(admin))

        assert response.status_code == 404
        assert response.get_json()['error']['message'] == 'Security event not found'


class TestStatusAndPreferences:
    """Account status, summary and preferences."""

    def test_status(self, client, buyer, auth_headers):
        response = client.get('/api/security/status', headers=auth_headers(buyer))

        data = response.get_json()['data']
        assert data['allowed'] is True
        assert data['reason'] is None
        assert data['locked_until'] is None
        assert data['preferences']['login_notifications'] is True
        assert data['password']['requires_change'] is False

    def test_summary(self, client, buyer, auth_headers):
        create_security_event(buyer.id, 'failed_login', 'failed')

        response = client.get('/api/security/summary', headers=auth_headers(buyer))

        assert response.get_json()['data'] == {
            'last_24_hours': 1,
            'last_7_days': 1,
            'failed_attempts': 1
        }

    def test_update_preferences(self, client, buyer, auth_headers):
        response = client.patch('/api/security/preferences', headers=auth_headers(buyer), json={
            'login_notifications': False,
            'lockout_threshold': 4,
            'two_factor_enabled': True
        })

        assert response.status_code == 200
        assert response.get_json()['data'] == {
            'login_notifications': False,
            'two_factor_enabled': True,
            'lockout_threshold': 4,
            'password_expiry_days': None
        }
        assert SecurityEvent.query.filter_by(type='two_factor_enabled').count() == 1

    @pytest.mark.parametrize('payload', [
        {'lockout_threshold': 2},
        {'password_expiry_days': 400},
        {'login_notifications': 'no'},
        {'lockout_threshold': True},
    ])
    def test_invalid_preferences(self, client, buyer, auth_headers, payload):
        response = client.patch(
            '/api/security/preferences', headers=auth_headers(buyer), json=payload
        )
        assert response.status_code == 400


class TestPasswordEndpoints:
    """Password status and strength."""

    def test_password_status(self, client, buyer, auth_headers):
        response = client.get('/api/security/password/status', headers=auth_headers(buyer))

        data = response.get_json()['data']
        assert data['days_until_expiry'] == 90
        assert data['message'] == 'Your password will expire in 90 days.'
        assert 'Enable two-factor authentication for additional security.' in (
            data['recommendations']
        )

    def test_strength_is_public(self, client):
        response = client.post('/api/security/password/strength', json={'password': 'aaa'})

        assert response.status_code == 200
        assert response.get_json()['data']['strength'] == 'very-weak'


class TestExport:
    """GET /api/security/export"""

    @pytest.fixture
    def history(self, buyer):
        create_security_event(buyer.id, 'login', 'success')
        create_security_event(buyer.id, 'failed_login', 'failed')

    def test_json_export(self, client, buyer, auth_headers, history):
        response = client.get('/api/security/export?format=json&period=7d',
                              headers=auth_headers(buyer))

        assert response.status_code == 200
        assert response.mimetype == 'application/json'
        assert 'attachment; filename="security-report-' in response.headers['Content-Disposition']

        report = response.get_json()
        assert report['metadata']['period'] == '7d'
        assert report['summary']['total_logins'] == 1
        assert report['summary']['failed_attempts'] == 1
        assert report['summary']['success_rate'] == 50.0
        assert len(report['events']) == 2

    def test_csv_export(self, client, buyer, auth_headers, history):
        response = client.get('/api/security/export?format=csv', headers=auth_headers(buyer))

        assert response.mimetype == 'text/csv'
        rows = list(csv.reader(io.StringIO(response.get_data(as_text=True))))
        assert rows[0] == ['Security Report']
        assert ['Success Rate', '50.00%'] in rows

    def test_unsupported_format(self, client, buyer, auth_headers):
        response = client.get('/api/security/export?format=pdf', headers=auth_headers(buyer))

        assert response.status_code == 400
        assert response.get_json()['error']['details'] == {'supported_formats': ['csv', 'json']}

    def test_invalid_period(self, client, buyer, auth_headers):
        response = client.get('/api/security/export?period=1y', headers=auth_headers(buyer))
        assert response.status_code == 400
