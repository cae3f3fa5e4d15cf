"""Tests for role based access control."""

import pytest

from roles import (
    has_page_access,
    has_feature_access,
    get_accessible_pages,
    get_role_features,
    is_public_path,
    check_marketplace_access,
    check_community_access,
    check_api_access
)


class TestPageAccess:
    """Page access per role."""

    def test_admin_has_everything(self):
        assert has_page_access('admin', 'anything-at-all', 'admin')

    def test_guest_can_view_marketplace(self):
        assert has_page_access('guest', 'marketplace')
        assert not has_page_access('guest', 'marketplace', 'full')

    def test_guest_community_is_view_only(self):
        assert has_page_access('guest', 'community', 'view-only')
        assert not has_page_access('guest', 'community', 'view')

    def test_nested_path_uses_first_segment(self):
        assert has_page_access('buyer', '/security/events')
        assert not has_page_access('guest', '/security/events')

    def test_unknown_role_or_page(self):
        assert not has_page_access('superuser', 'home')
        assert not has_page_access('buyer', 'admin')

    def test_accessible_pages(self):
        pages = get_accessible_pages('seller')
        assert 'security' in pages
        assert 'admin' not in pages
        assert get_accessible_pages('nobody') == []


class TestFeatures:
    """Feature flags per role."""

    def test_role_features(self):
        assert has_feature_access('buyer', 'place-orders')
        assert not has_feature_access('buyer', 'manage-products')
        assert not has_feature_access('guest', 'place-orders')

    def test_admin_gets_union(self):
        features = get_role_features('admin')
        assert 'place-orders' in features
        assert 'manage-products' in features
        assert 'manage-users' in features
        assert len(features) == len(set(features))

    def test_unknown_role_has_no_features(self):
        assert get_role_features('nobody') == []


class TestPathGuards:
    """Guards applied before API requests."""

    @pytest.mark.parametrize('path', [
        '/', '/login', '/api/auth/login', '/health', '/api/security/password/strength'
    ])
    def test_public_paths(self, path):
        assert is_public_path(path)
        assert check_api_access('guest', path) is None

    def test_protected_paths_are_not_public(self):
        assert not is_public_path('/api/security/events')

    def test_guest_denied_security_api(self):
        assert check_api_access('guest', '/api/security/events') is not None

    def test_member_allowed_security_api(self):
        assert check_api_access('buyer', '/api/security/events') is None

    def test_only_admin_reaches_admin_api(self):
        assert check_api_access('seller', '/api/admin/users') is not None
        assert check_api_access('admin', '/api/admin/users') is None

    def test_guest_may_check_rate_limits(self):
        assert check_api_access('guest', '/api/rate-limit/login') is None

    def test_marketplace_buyer_actions(self):
        assert check_marketplace_access('buyer', '/api/marketplace/orders') is None
        assert check_marketplace_access('seller', '/api/marketplace/orders/3') is not None
        assert check_marketplace_access('admin', '/api/marketplace/purchase') is None

    def test_marketplace_seller_actions(self):
        assert check_marketplace_access('seller', '/api/marketplace/products') is None
        assert check_marketplace_access('buyer', '/api/marketplace/listings') is not None

    def test_community_writes_need_login(self):
        assert check_community_access('guest', '/api/community/create') is not None
        assert check_community_access('guest', '/api/community/posts') is None
        assert check_community_access('buyer', '/api/community/delete') is None

    def test_non_api_paths_pass(self):
        assert check_api_access('guest', '/static/app.js') is None
