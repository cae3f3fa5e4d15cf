# =============================================================================
# AgriMarket Backend
# routes/__init__.py - Routes Package
#
# This package contains all API route blueprints organized by feature.
# =============================================================================

from .auth import auth_bp
from .security import security_bp
from .rate_limit import rate_limit_bp
from .admin import admin_bp

__all__ = [
    'auth_bp',
    'security_bp',
    'rate_limit_bp',
    'admin_bp'
]
