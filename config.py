# Classroom QR Attendance Configuration

import os
import tempfile
from datetime import timedelta
from pathlib import Path

from attendance_app.modules.timeutils import resolve_timezone

# Base directory
BASE_DIR = Path(__file__).parent.absolute()


class Config:
    """Base configuration class"""

    # Flask Configuration
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'qr-attendance-secret-key-2025'
    MAX_CONTENT_LENGTH = 1 * 1024 * 1024  # scan payloads are small

    # Database Configuration
    DATABASE_PATH = os.environ.get('DATABASE_PATH') or str(BASE_DIR / 'database' / 'attendance.db')

    # Report Configuration
    REPORTS_FOLDER = BASE_DIR / 'reports'
    REPORT_CHART_SESSIONS = 5

    # QR Code Configuration
    QR_CODE_BOX_SIZE = 10
    QR_CODE_BORDER = 4
    QR_CODE_ERROR_CORRECT = 'M'  # Medium error correction
    QR_CODE_EXPIRY_MINUTES = 15

    # Timestamps are stored in UTC; this only affects report labels
    DISPLAY_TIMEZONE = os.environ.get('DISPLAY_TIMEZONE') or 'UTC'

    # Session Configuration
    PERMANENT_SESSION_LIFETIME = timedelta(hours=8)

    # Logging Configuration
    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'INFO'
    LOG_FILE = BASE_DIR / 'logs' / 'attendance.log'
    LOG_MAX_BYTES = 10 * 1024 * 1024  # 10MB
    LOG_BACKUP_COUNT = 5

    DEBUG = os.environ.get('DEBUG', 'False').lower() in ['true', 'on', '1']
    TESTING = False

    @classmethod
    def init_app(cls, app):
        """Initialize application configuration"""
        directories = [Path(cls.REPORTS_FOLDER)]
        if cls.DATABASE_PATH != ':memory:':
            directories.append(Path(cls.DATABASE_PATH).parent)

        for directory in directories:
            directory.mkdir(parents=True, exist_ok=True)

        app.config.update({
            'SECRET_KEY': cls.SECRET_KEY,
            'PERMANENT_SESSION_LIFETIME': cls.PERMANENT_SESSION_LIFETIME,
            'MAX_CONTENT_LENGTH': cls.MAX_CONTENT_LENGTH,
            'TESTING': cls.TESTING,
        })


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True

    DATABASE_PATH = os.environ.get('DATABASE_PATH') or str(BASE_DIR / 'database' / 'attendance_dev.db')

    # More verbose logging
    LOG_LEVEL = 'DEBUG'


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    DEBUG = True

    REPORTS_FOLDER = Path(tempfile.gettempdir()) / 'qr_attendance_reports'

    # Use in-memory database for testing
    DATABASE_PATH = ':memory:'

    QR_CODE_BOX_SIZE = 2
    QR_CODE_BORDER = 4


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False

    DATABASE_PATH = os.environ.get('DATABASE_PATH') or str(BASE_DIR / 'database' / 'attendance_prod.db')

    LOG_LEVEL = 'WARNING'

    @classmethod
    def init_app(cls, app):
        super().init_app(app)

        import logging
        from logging.handlers import RotatingFileHandler

        # Setup file logging
        if not app.debug:
            Path(cls.LOG_FILE).parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                cls.LOG_FILE,
                maxBytes=cls.LOG_MAX_BYTES,
                backupCount=cls.LOG_BACKUP_COUNT
            )
            file_handler.setFormatter(logging.Formatter(
                '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
            ))
            file_handler.setLevel(logging.INFO)
            app.logger.addHandler(file_handler)

            app.logger.setLevel(logging.INFO)
            app.logger.info('Classroom QR Attendance startup')


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig
}


def get_config(config_name=None):
    """Get configuration class by name, falling back to FLASK_ENV"""
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'default')
    return config.get(config_name, DevelopmentConfig)


def validate_config(config_class):
    """Validate configuration settings"""
    errors = []

    if config_class.QR_CODE_ERROR_CORRECT.upper() not in ('L', 'M', 'Q', 'H'):
        errors.append(f"Invalid QR_CODE_ERROR_CORRECT: {config_class.QR_CODE_ERROR_CORRECT}")

    if config_class.QR_CODE_EXPIRY_MINUTES is not None and config_class.QR_CODE_EXPIRY_MINUTES < 0:
        errors.append("QR_CODE_EXPIRY_MINUTES must not be negative")

    if config_class.QR_CODE_BORDER < 4:
        errors.append("QR_CODE_BORDER must be at least 4")

    try:
        resolve_timezone(config_class.DISPLAY_TIMEZONE)
    except (KeyError, ValueError) as e:
        errors.append(f"Invalid DISPLAY_TIMEZONE {config_class.DISPLAY_TIMEZONE!r}: {e}")

    return errors


def init_config(app, config_name=None):
    """Initialize application with configuration"""
    config_class = get_config(config_name)
    config_class.init_app(app)

    errors = validate_config(config_class)
    if errors:
        for error in errors:
            app.logger.error(f"Configuration error: {error}")
        raise RuntimeError("Configuration validation failed")

    return config_class
