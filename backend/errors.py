# =============================================================================
# AgriMarket Backend
# errors.py - Application Exceptions
#
# Thin exception classes carrying an HTTP status code and a machine-readable
# error code. Views raise them; app.register_error_handlers renders them.
# =============================================================================

from constants import MESSAGES

HTTP_STATUS = {
    'OK': 200,
    'CREATED': 201,
    'NO_CONTENT': 204,
    'BAD_REQUEST': 400,
    'UNAUTHORIZED': 401,
    'FORBIDDEN': 403,
    'NOT_FOUND': 404,
    'CONFLICT': 409,
    'TOO_MANY_REQUESTS': 429,
    'INTERNAL_SERVER': 500,
    'BAD_GATEWAY': 502,
    'SERVICE_UNAVAILABLE': 503
}

ERROR_CODES = {
    'BAD_REQUEST': 'BAD_REQUEST',
    'VALIDATION': 'VALIDATION_ERROR',
    'AUTHENTICATION': 'AUTHENTICATION_ERROR',
    'AUTHORIZATION': 'AUTHORIZATION_ERROR',
    'NOT_FOUND': 'NOT_FOUND_ERROR',
    'CONFLICT': 'CONFLICT_ERROR',
    'RATE_LIMIT': 'RATE_LIMIT_EXCEEDED',
    'DATABASE': 'DATABASE_ERROR',
    'EXTERNAL_SERVICE': 'EXTERNAL_SERVICE_ERROR',
    'SERVICE_UNAVAILABLE': 'SERVICE_UNAVAILABLE',
    'INTERNAL_SERVER': 'INTERNAL_SERVER_ERROR'
}


class AppError(Exception):
    """
    Base class for errors that map directly onto an HTTP response.

    Attributes:
        status_code: HTTP status returned to the client
        message: Human readable message
        code: Stable error code for clients
        details: Optional extra payload (field errors etc.)
    """

    def __init__(self, status_code, message, code, details=None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.code = code
        self.details = details

    def to_dict(self):
        error = {
            'code': self.code,
            'message': self.message
        }
        if self.details:
            error['details'] = self.details
        return error

    def __repr__(self):
        return f'<{type(self).__name__} {self.status_code} {self.code}>'


class BadRequestError(AppError):
    def __init__(self, message='Bad Request', details=None):
        super().__init__(400, message, ERROR_CODES['BAD_REQUEST'], details)


class ValidationError(AppError):
    def __init__(self, message='Validation failed', details=None):
        super().__init__(400, message, ERROR_CODES['VALIDATION'], details)


class AuthenticationError(AppError):
    def __init__(self, message='Authentication failed'):
        super().__init__(401, message, ERROR_CODES['AUTHENTICATION'])


class AuthorizationError(AppError):
    def __init__(self, message='Not authorized'):
        super().__init__(403, message, ERROR_CODES['AUTHORIZATION'])


class NotFoundError(AppError):
    def __init__(self, resource='Resource'):
        super().__init__(404, f'{resource} not found', ERROR_CODES['NOT_FOUND'])


class ConflictError(AppError):
    def __init__(self, message, details=None):
        super().__init__(409, message, ERROR_CODES['CONFLICT'], details)


class RateLimitError(AppError):
    """
    Raised when a rate limit bucket is exhausted.

    Carries the bucket snapshot so the response can expose
    X-RateLimit-* and Retry-After headers.
    """

    def __init__(self, message=MESSAGES['RATE_LIMITED'],
                 info=None, retry_after=0, action=None):
        super().__init__(429, message, ERROR_CODES['RATE_LIMIT'])
        self.info = info
        self.retry_after = retry_after
        self.action = action


class DatabaseError(AppError):
    def __init__(self, message='Database operation failed', details=None):
        super().__init__(500, message, ERROR_CODES['DATABASE'], details)


class ExternalServiceError(AppError):
    def __init__(self, service, message='Service request failed', details=None):
        super().__init__(
            502, f'{service}: {message}', ERROR_CODES['EXTERNAL_SERVICE'], details
        )


class ServiceUnavailableError(AppError):
    def __init__(self, message='Service Unavailable'):
        super().__init__(503, message, ERROR_CODES['SERVICE_UNAVAILABLE'])


def is_app_error(error):
    return isinstance(error, AppError)


def create_error(code, message, details=None):
    """
    Build the exception matching an error code.

    Unknown codes fall back to a plain AppError with status 500.

    Args:
        code: One of the ERROR_CODES values
        message: Error message (resource name for NOT_FOUND_ERROR)
        details: Optional extra payload

    Returns:
        AppError: The exception instance (not raised)
    """
    if code == ERROR_CODES['BAD_REQUEST']:
        return BadRequestError(message, details)
    if code == ERROR_CODES['VALIDATION']:
        return ValidationError(message, details)
    if code == ERROR_CODES['AUTHENTICATION']:
        return AuthenticationError(message)
    if code == ERROR_CODES['AUTHORIZATION']:
        return AuthorizationError(message)
    if code == ERROR_CODES['NOT_FOUND']:
        return NotFoundError(message)
    if code == ERROR_CODES['CONFLICT']:
        return ConflictError(message, details)
    if code == ERROR_CODES['RATE_LIMIT']:
        return RateLimitError(message)
    if code == ERROR_CODES['DATABASE']:
        return DatabaseError(message, details)
    if code == ERROR_CODES['EXTERNAL_SERVICE']:
        return ExternalServiceError('Unknown', message, details)
    if code == ERROR_CODES['SERVICE_UNAVAILABLE']:
        return ServiceUnavailableError(message)
    return AppError(500, message, code, details)
