import logging
import os


logger = logging.getLogger(__name__)


def _int_env(name, default=None):
    """
    Read a non-negative integer setting from the environment.

    A malformed or negative value is logged and the default used.
    """
    value = os.environ.get(name)
    if value is None or value.strip() == '':
        return default
    try:
        number = int(value)
    except ValueError:
        logger.warning(f"Ignoring {name}={value!r}: not an integer, using {default}")
        return default
    if number < 0:
        logger.warning(f"Ignoring {name}={number}: must not be negative, using {default}")
        return default
    return number


class Config:
    """Base configuration"""

    DEBUG = False

    # Logging
    LOG_FILE = os.environ.get('LOG_FILE') or None
    LOG_MAX_BYTES = _int_env('LOG_MAX_BYTES', 10485760)  # 10MB
    LOG_BACKUP_COUNT = _int_env('LOG_BACKUP_COUNT', 10)

    # Remote commands (seconds, None = wait forever)
    COMMAND_TIMEOUT = _int_env('COMMAND_TIMEOUT')

    # Scheduler
    SCHEDULE_CRON = os.environ.get('SCHEDULE_CRON') or None
    SCHEDULER_TIMEZONE = os.environ.get('SCHEDULER_TIMEZONE') or 'UTC'


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'default': ProductionConfig
}


def get_config(config_name=None):
    """
    Resolve a configuration class by name.

    Falls back to the STAGEBACKUP_ENV environment variable, then production.
    """
    if config_name is None:
        config_name = os.environ.get('STAGEBACKUP_ENV', 'production')
    try:
        return config[config_name]
    except KeyError:
        raise ValueError(f"Unknown configuration: {config_name}")
