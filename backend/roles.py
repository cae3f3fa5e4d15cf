# =============================================================================
# AgriMarket Backend
# roles.py - Role Based Access Control
#
# Page/feature access per role and the path-based guards applied to every
# API request before it reaches a blueprint.
# =============================================================================

from constants import MESSAGES

ACCESS_LEVELS = {
    'none': 0,
    'view-only': 1,
    'view': 2,
    'buy-only': 2,
    'sell-only': 2,
    'full': 3,
    'admin': 4
}

ROLES_CONFIG = {
    'guest': {
        'pages': {
            'home': 'view',
            'about': 'view',
            'community': 'view-only',
            'resources': 'view',
            'marketplace': 'view',
            'contact': 'view',
            'login': 'full',
            'signup': 'full',
            'rate-limit': 'view'
        },
        'features': []
    },
    'buyer': {
        'pages': {
            'home': 'full',
            'about': 'full',
            'community': 'full',
            'resources': 'full',
            'marketplace': 'buy-only',
            'chat': 'full',
            'profile': 'full',
            'settings': 'full',
            'contact': 'full',
            'security': 'full',
            'rate-limit': 'full'
        },
        'features': ['place-orders', 'view-products', 'chat-with-sellers']
    },
    'seller': {
        'pages': {
            'home': 'full',
            'about': 'full',
            'community': 'full',
            'resources': 'full',
            'marketplace': 'sell-only',
            'chat': 'full',
            'profile': 'full',
            'settings': 'full',
            'contact': 'full',
            'security': 'full',
            'rate-limit': 'full'
        },
        'features': ['manage-products', 'handle-orders', 'chat-with-buyers']
    },
    'admin': {
        'pages': {
            'home': 'admin',
            'about': 'admin',
            'community': 'admin',
            'resources': 'admin',
            'marketplace': 'admin',
            'chat': 'admin',
            'profile': 'admin',
            'settings': 'admin',
            'contact': 'admin',
            'security': 'admin',
            'rate-limit': 'admin',
            'admin': 'admin'
        },
        'features': [
            'manage-users',
            'moderate-content',
            'view-analytics',
            'manage-system',
            'handle-support'
        ]
    }
}

PUBLIC_PATHS = [
    '/login',
    '/signup',
    '/about',
    '/contact',
    '/api/auth',
    '/api/security/password/strength',
    '/health'
]

BUYER_ACTIONS = {'orders', 'purchase'}
SELLER_ACTIONS = {'products', 'listings'}
COMMUNITY_WRITE_ACTIONS = {'create', 'update', 'delete'}


def _normalize_page(path):
    return path.lstrip('/').split('/')[0]


def has_page_access(role, page_path, required_access='view'):
    """
    Check if a role may access a page or API area.

    Only the first path segment is considered, so 'marketplace/products'
    resolves to the 'marketplace' page.

    Args:
        role: User role
        page_path: Page path or API path without the '/api/' prefix
        required_access: Minimum access level needed

    Returns:
        bool: True if access is granted
    """
    if role == 'admin':
        return True

    config = ROLES_CONFIG.get(role)
    if not config:
        return False

    access = config['pages'].get(_normalize_page(page_path))
    if access is None:
        return False

    return ACCESS_LEVELS[access] >= ACCESS_LEVELS[required_access]


def has_feature_access(role, feature):
    if role == 'admin':
        return True
    config = ROLES_CONFIG.get(role)
    return bool(config) and feature in config['features']


def get_accessible_pages(role):
    config = ROLES_CONFIG.get(role)
    if not config:
        return []
    return [page for page, access in config['pages'].items() if access != 'none']


def get_role_features(role):
    """Features of a role; admin gets every feature of every role."""
    if role == 'admin':
        features = []
        for config in ROLES_CONFIG.values():
            for feature in config['features']:
                if feature not in features:
                    features.append(feature)
        return features

    config = ROLES_CONFIG.get(role)
    return list(config['features']) if config else []


def is_public_path(path):
    if path == '/':
        return True
    return any(path.startswith(public) for public in PUBLIC_PATHS)


def _api_action(path, prefix):
    # '/api/marketplace/products/3' -> 'products'
    remainder = path[len(prefix):].strip('/')
    return remainder.split('/')[0] if remainder else ''


def check_marketplace_access(role, path):
    """
    Buyer-only and seller-only marketplace actions.

    Returns:
        str: Denial message, or None if allowed
    """
    if not path.startswith('/api/marketplace/'):
        return None

    action = _api_action(path, '/api/marketplace/')

    if action in BUYER_ACTIONS and role not in ('buyer', 'admin'):
        return 'You do not have permission to perform this action'
    if action in SELLER_ACTIONS and role not in ('seller', 'admin'):
        return 'You do not have permission to perform this action'
    return None


def check_community_access(role, path):
    """
    Guests may only read community content.

    Returns:
        str: Denial message, or None if allowed
    """
    if not path.startswith('/api/community/'):
        return None

    action = _api_action(path, '/api/community/')
    if role == 'guest' and action in COMMUNITY_WRITE_ACTIONS:
        return MESSAGES['LOGIN_REQUIRED']
    return None


def check_api_access(role, path):
    """
    Run every path guard for an API request.

    Returns:
        str: Denial message for the first failing guard, or None
    """
    if is_public_path(path) or not path.startswith('/api/'):
        return None

    if not has_page_access(role, path[len('/api/'):]):
        return MESSAGES['FORBIDDEN']

    return check_marketplace_access(role, path) or check_community_access(role, path)
