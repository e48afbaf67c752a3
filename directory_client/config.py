"""
This module provides the configuration models for :py:mod:`directory_client`,
implemented using `pydantic <https://docs.pydantic.dev/>`_, and a loader for
JSON configuration files.
"""

import json
import logging
import os
import typing

from pydantic import BaseModel, Field, field_validator


_log = logging.getLogger(__name__)

#: Environment variable naming the configuration file
CONFIG_ENV_VAR = 'DIRECTORY_CLIENT_CONFIG'

#: Logging levels accepted by :py:class:`LoggingConfig`
LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')

#: ldap3 client strategies accepted by :py:class:`ClientConfig`
CLIENT_STRATEGIES = typing.Literal[
    'SYNC', 'SAFE_SYNC', 'SAFE_RESTARTABLE', 'RESTARTABLE', 'MOCK_SYNC'
]


class LoggingConfig(BaseModel):
    """
    Settings for the package logger (see :py:func:`.log.setup_logging`).
    """
    level: str = Field(default = 'INFO', description = 'Logging level')
    format: str = Field(
        default = '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        description = 'Log message format'
    )
    file: typing.Optional[str] = Field(default = None, description = 'Log file path')

    @field_validator('level')
    @classmethod
    def validate_level(cls, v):
        if v.upper() not in LOG_LEVELS:
            raise ValueError('Level must be one of: {}'.format(', '.join(LOG_LEVELS)))
        return v.upper()


class ClientConfig(BaseModel):
    """
    Connection settings for a single directory server.
    """
    host: str = Field(default = 'localhost', description = 'Server host name or LDAP URL')
    port: int = Field(default = 389, description = 'Server port')
    use_ssl: bool = Field(default = False, description = 'Connect using LDAPS')
    connect_timeout: typing.Optional[float] = Field(
        default = None, description = 'Socket connect timeout in seconds'
    )
    receive_timeout: typing.Optional[float] = Field(
        default = None, description = 'Timeout in seconds for each server response'
    )
    page_size: int = Field(
        default = 0, description = 'Page size for searches (0 disables paged searches)'
    )
    auto_referrals: bool = Field(default = True, description = 'Follow referrals automatically')
    client_strategy: CLIENT_STRATEGIES = Field(default = 'SYNC', description = 'ldap3 client strategy')
    logging: LoggingConfig = Field(default_factory = LoggingConfig)

    @field_validator('port')
    @classmethod
    def validate_port(cls, v):
        if not 0 < v < 65536:
            raise ValueError('Port must be between 1 and 65535')
        return v

    @field_validator('page_size')
    @classmethod
    def validate_page_size(cls, v):
        if v < 0:
            raise ValueError('Page size must not be negative')
        return v

    @field_validator('connect_timeout', 'receive_timeout')
    @classmethod
    def validate_timeout(cls, v):
        if v is not None and v <= 0:
            raise ValueError('Timeout must be positive')
        return v


def load_config(config_path = None):
    """
    Loads client configuration from a JSON file.

    Args:
        config_path: Path to the configuration file (optional, defaults to the
            value of the ``DIRECTORY_CLIENT_CONFIG`` environment variable).

    Returns:
        A validated :py:class:`ClientConfig`.

    Raises:
        ValueError: If no path is available or the configuration is invalid.
        FileNotFoundError: If the configuration file does not exist.
        json.JSONDecodeError: If the configuration file is not valid JSON.
    """
    if config_path is None:
        config_path = os.getenv(CONFIG_ENV_VAR)
        if not config_path:
            raise ValueError(
                'No configuration file specified. Either provide config_path '
                'or set the {} environment variable.'.format(CONFIG_ENV_VAR)
            )
    if not os.path.exists(config_path):
        raise FileNotFoundError('Configuration file not found: {}'.format(config_path))
    _log.info('Loading configuration from {}'.format(config_path))
    try:
        with open(config_path, encoding = 'utf-8') as f:
            config = ClientConfig(**json.load(f))
    except ValueError:
        # Covers both invalid JSON and failed validation
        _log.exception('Invalid configuration in {}'.format(config_path))
        raise
    _log.info('Directory server: {}:{} (ssl={}, page_size={})'.format(
        config.host, config.port, config.use_ssl, config.page_size
    ))
    return config
