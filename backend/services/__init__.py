# =============================================================================
# AgriMarket Backend
# services/__init__.py - Services Package
#
# Business logic for security events, password policy and security reports.
# =============================================================================
