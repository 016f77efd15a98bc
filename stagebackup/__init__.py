import logging
import os
from logging.handlers import RotatingFileHandler


__version__ = '1.0.0'

LOGGER_NAME = 'stagebackup'


def configure_logging(config, log_file=None):
    """
    Configure application logging.

    Logs go to the console unless a log file is given, in which case they go
    to a rotating file instead.

    Args:
        config: Configuration class
        log_file: Path of the log file (default: config.LOG_FILE)

    Returns:
        The application logger
    """
    log_file = log_file or config.LOG_FILE

    # Set log level based on environment
    log_level = logging.DEBUG if config.DEBUG else logging.INFO

    if log_file:
        log_dir = os.path.dirname(os.path.abspath(log_file))
        os.makedirs(log_dir, exist_ok=True)

        handler = RotatingFileHandler(
            log_file,
            maxBytes=config.LOG_MAX_BYTES,
            backupCount=config.LOG_BACKUP_COUNT
        )
    else:
        handler = logging.StreamHandler()

    handler.setLevel(log_level)
    handler.setFormatter(logging.Formatter(
        '[%(asctime)s] %(levelname)s in %(module)s: %(message)s'
    ))

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(log_level)
    # Reconfiguring replaces handlers from an earlier run in the same process
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
        existing.close()
    logger.addHandler(handler)
    logger.propagate = False

    logger.debug(f"Logging configured (level: {logging.getLevelName(log_level)})")
    return logger


def create_manager(job_paths, config_name=None, log_file=None):
    """
    BackupManager factory.

    Args:
        job_paths: Job files to process, in order
        config_name: 'development' or 'production' (default: STAGEBACKUP_ENV)
        log_file: Log file path overriding the configured one

    Returns:
        BackupManager ready to run
    """
    from stagebackup.config import get_config
    from stagebackup.backup.executor import BackupManager

    config = get_config(config_name)
    logger = configure_logging(config, log_file)

    return BackupManager(job_paths, logger=logger, command_timeout=config.COMMAND_TIMEOUT)
