# =============================================================================
# AgriMarket Backend
# extensions.py - Flask Extensions Initialization
#
# This module initializes Flask extensions without the app instance to prevent
# circular imports. Extensions are initialized with the app in the factory.
# =============================================================================

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_jwt_extended import JWTManager
from flask_bcrypt import Bcrypt
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

# =============================================================================
# Database ORM
# =============================================================================
db = SQLAlchemy()

# =============================================================================
# Database Migrations
# =============================================================================
migrate = Migrate()

# =============================================================================
# JWT Authentication
# =============================================================================
jwt = JWTManager()

# =============================================================================
# Password Hashing
# =============================================================================
bcrypt = Bcrypt()

# =============================================================================
# Cross-Origin Resource Sharing
# =============================================================================
cors = CORS()

# =============================================================================
# Route-level Rate Limiting
# Coarse per-route ceilings; limits and storage come from RATELIMIT_* config.
# Per-action buckets live in rate_limit.py.
# =============================================================================
limiter = Limiter(key_func=get_remote_address)
