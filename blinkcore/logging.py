# logging.py
# Unified logging utilities for console and rotating file output

import os
import sys
import logging
from logging.handlers import RotatingFileHandler

DEFAULT_LOGS_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "logs")

FILE_FORMAT = '[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s'
CONSOLE_FORMAT = '%(asctime)s.%(msecs)03d [%(levelname)s] [%(name)s] %(message)s'


def get_logs_dir():
    """Log directory, overridable with BLINKME_LOG_DIR"""
    return os.environ.get('BLINKME_LOG_DIR') or DEFAULT_LOGS_DIR


def setup_logger(name, log_file, level=logging.INFO, console=True):
    """Setup a logger with rotating file handler and optional stdout echo"""
    logs_dir = get_logs_dir()
    os.makedirs(logs_dir, exist_ok=True)

    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False

    # Clear existing handlers to avoid duplicates
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    # 10MB max, keep 5 backup files
    file_handler = RotatingFileHandler(
        os.path.join(logs_dir, log_file),
        maxBytes=10*1024*1024,
        backupCount=5
    )
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
    logger.addHandler(file_handler)

    if console:
        stream_handler = logging.StreamHandler(sys.stdout)
        stream_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt='%H:%M:%S'))
        logger.addHandler(stream_handler)

    return logger


LOGGER_NAMES = ('gpio', 'cycle', 'api', 'system', 'error')


def set_level(level, names=LOGGER_NAMES):
    """Change the level of already configured loggers (e.g. from --log-level)"""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    for name in names:
        logging.getLogger(name).setLevel(level)


def log_event(logger, level, message, **kwargs):
    """Log an event with optional additional context"""
    if kwargs:
        context = ' '.join([f"{k}={v}" for k, v in kwargs.items()])
        message = f"{message} | {context}"

    level = level.upper()
    if level == 'DEBUG':
        logger.debug(message)
    elif level == 'INFO':
        logger.info(message)
    elif level in ('WARN', 'WARNING'):
        logger.warning(message)
    elif level == 'ERROR':
        logger.error(message)
    elif level == 'CRITICAL':
        logger.critical(message)
    else:
        logger.info(message)
