# =============================================================================
# AgriMarket Backend
# logging_config.py - Logging Setup
#
# Console and rotating file logging for the API, plus a dedicated security
# logger that receives security events, lockouts and rate limit rejections.
# =============================================================================

import logging
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler

SECURITY_LOGGER_NAME = 'agrimarket.security'

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
FILE_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class ColoredFormatter(logging.Formatter):
    """Custom formatter with colors for console output."""

    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
    }
    RESET = '\033[0m'

    def format(self, record):
        message = super().format(record)
        if hasattr(sys.stderr, 'isatty') and sys.stderr.isatty():
            color = self.COLORS.get(record.levelname)
            if color:
                message = f"{color}{message}{self.RESET}"
        return message


def _file_handler(log_dir, filename, level, max_bytes, backup_count):
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    handler = RotatingFileHandler(
        log_path / filename,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding='utf-8'
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
    return handler


def setup_logging(app):
    """
    Configure application logging.

    Sets up logging format, level, and handlers based on environment.
    File handlers are only attached when LOG_TO_FILE is enabled.
    """
    log_level = logging.DEBUG if app.config['DEBUG'] else logging.INFO

    root = logging.getLogger()
    root.setLevel(log_level)

    if not any(getattr(h, '_agrimarket', False) for h in root.handlers):
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(ColoredFormatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        console_handler._agrimarket = True
        root.addHandler(console_handler)

        if app.config.get('LOG_TO_FILE'):
            file_handler = _file_handler(
                app.config['LOG_DIR'],
                app.config['LOG_FILE'],
                log_level,
                app.config['LOG_MAX_BYTES'],
                app.config['LOG_BACKUP_COUNT']
            )
            file_handler._agrimarket = True
            root.addHandler(file_handler)

    security_logger = get_security_logger()
    security_logger.setLevel(logging.INFO)

    if app.config.get('LOG_TO_FILE') and not security_logger.handlers:
        security_logger.addHandler(_file_handler(
            app.config['LOG_DIR'],
            app.config['SECURITY_LOG_FILE'],
            logging.INFO,
            app.config['LOG_MAX_BYTES'],
            app.config['LOG_BACKUP_COUNT']
        ))

    # Flask app logger propagates to the root handlers
    app.logger.setLevel(log_level)

    # SQL statement logging only when echo is on
    if not app.config.get('SQLALCHEMY_ECHO'):
        logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)


def get_security_logger():
    return logging.getLogger(SECURITY_LOGGER_NAME)


SEVERITY_LOG_LEVELS = {
    'low': logging.INFO,
    'medium': logging.WARNING,
    'high': logging.WARNING,
    'critical': logging.ERROR
}


def security_log_level(status=None, severity=None):
    """
    Map an event's status and severity to a log level.

    Failed or blocked events are never logged below WARNING.
    """
    level = SEVERITY_LOG_LEVELS.get(severity, logging.INFO)
    if status in ('failed', 'blocked'):
        level = max(level, logging.WARNING)
    return level


def log_security(event, **details):
    """
    Write a security line to the security logger.

    The level follows the 'status' and 'severity' details, so routine
    successes are INFO and failures WARNING or above.

    Args:
        event: Event name, e.g. 'failed_login'
        **details: Key/value context appended to the line
    """
    level = security_log_level(details.get('status'), details.get('severity'))
    context = ' '.join(f'{key}={value}' for key, value in details.items() if value is not None)
    get_security_logger().log(level, f"Security: {event} {context}".rstrip())
