"""
This is the main module for the directory client library.
"""

__version__ = "0.1.0"

from .config import ClientConfig, LoggingConfig, load_config
from .core import DirectoryClient
from .entry import DirectoryEntry
from .exceptions import (
    DirectoryError, ConnectionError, NotConnectedError, ProtocolError,
    AuthenticationError, NoSuchObjectError, ObjectAlreadyExistsError,
    PermissionDeniedError, SchemaViolationError, InvalidArgumentError,
)
from .filters import F
from .query import DirectoryQuery, SearchOptions, SearchScope
from .search import SearchResult
