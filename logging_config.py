"""
Centralized Logging Configuration
Console output plus a size-rotated log file shared by the CRM and auto shop APIs.
"""
import logging
import logging.handlers
from pathlib import Path


def setup_logging(app):
    """
    Setup application-wide logging with file rotation and console output

    Args:
        app: Flask application instance

    Returns:
        The configured root logger
    """
    log_level = getattr(logging, app.config['LOG_LEVEL'].upper(), logging.INFO)
    log_format = app.config['LOG_FORMAT']
    formatter = logging.Formatter(log_format)

    log_dir = Path(app.config.get('LOG_FOLDER', 'logs'))
    log_dir.mkdir(exist_ok=True)
    log_path = log_dir / app.config['LOG_FILE']

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Drop handlers from a previous factory call (tests build many apps)
    for handler in list(root_logger.handlers):
        if getattr(handler, '_pipeline_handler', False):
            root_logger.removeHandler(handler)
            handler.close()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    console_handler._pipeline_handler = True
    root_logger.addHandler(console_handler)

    if not app.config.get('TESTING'):
        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        file_handler._pipeline_handler = True
        root_logger.addHandler(file_handler)

    # Third-party libraries are noisy at INFO
    for noisy in ('werkzeug', 'urllib3', 'requests_oauthlib', 'httpx', 'sqlalchemy.engine'):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    app.logger.info(f"Logging initialized at {logging.getLevelName(log_level)} level")
    app.logger.info(f"Log file: {log_path}")

    return root_logger


def get_logger(name):
    """Get a logger instance for a specific module"""
    return logging.getLogger(name)
