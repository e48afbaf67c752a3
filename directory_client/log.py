"""
This module provides helpers for configuring the package logger and for
writing audit records of directory operations.
"""

import logging
import sys


#: Name of the package logger that all module loggers propagate to
LOGGER_NAME = 'directory_client'

#: Name of the logger that receives audit records
AUDIT_LOGGER_NAME = LOGGER_NAME + '.audit'


def setup_logging(config):
    """
    Configures the package logger from a :py:class:`.config.LoggingConfig`,
    replacing any handlers it already has.

    Records go to stderr and, if the config names a file, to that file. A file
    that cannot be opened is logged as a warning and otherwise ignored.

    Returns:
        The package logger.
    """
    logger = logging.getLogger(LOGGER_NAME)
    level = getattr(logging, config.level)
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    formatter = logging.Formatter(config.format)
    handlers = [logging.StreamHandler(sys.stderr)]
    if config.file:
        try:
            handlers.append(logging.FileHandler(config.file, encoding = 'utf-8'))
        except OSError as e:
            logger.warning('Failed to setup file logging: {}'.format(e))
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    if config.file and len(handlers) > 1:
        logger.info('Logging to file: {}'.format(config.file))
    logger.debug('Logging initialized at level: {}'.format(config.level))
    return logger


def log_operation(operation, dn, success, details = None):
    """
    Writes an audit record for a directory operation. Successes are logged at
    ``INFO`` and failures at ``WARNING``.
    """
    message = 'LDAP {}: {} - DN: {}'.format(
        operation.upper(), 'SUCCESS' if success else 'FAILURE', dn
    )
    if details:
        message += ' - Details: {}'.format(details)
    logging.getLogger(AUDIT_LOGGER_NAME).log(
        logging.INFO if success else logging.WARNING, message
    )
