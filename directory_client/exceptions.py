"""
This module defines the exceptions that can be thrown by :py:mod:`directory_client`.
"""

from . import results


class DirectoryError(Exception):
    """
    Raised when a directory error occurs.
    """


class ConnectionError(DirectoryError):
    """
    Raised when there is an error with the connection to the directory server
    itself, as opposed to a problem executing an operation (see
    :py:class:`ProtocolError`).

    Attributes:
        host: The host the client was connecting to.
        port: The port the client was connecting to.
    """
    def __init__(self, host, port, message = None):
        self.host = host
        self.port = port
        super().__init__(message or 'Cannot connect to {}:{}'.format(host, port))


class NotConnectedError(ConnectionError):
    """
    Raised when an operation is attempted on a client that has no open connection.
    """
    def __init__(self, host, port):
        super().__init__(host, port, 'Not connected to {}:{}'.format(host, port))


class ProtocolError(DirectoryError):
    """
    Raised when the server rejected or could not complete a well-formed request,
    i.e. an error that results from the request rather than a problem with the
    connection per-se.

    Attributes:
        code: The numeric LDAP result code.
        description: The result description reported by the library, if any.
        dn: The DN the operation was applied to, if any.
        user: The identity used for a failed bind, if any.
        option: The option identifier for a failed option access, if any.
    """
    def __init__(self, message, code, description = None,
                       dn = None, user = None, option = None):
        self.message = message
        self.code = code
        self.description = description
        self.dn = dn
        self.user = user
        self.option = option
        super().__init__(message, code)

    def __str__(self):
        if self.description:
            return '{} (code {}: {})'.format(self.message, self.code, self.description)
        return '{} (code {})'.format(self.message, self.code)

    @classmethod
    def for_outcome(cls, message, outcome, **context):
        """
        Returns a protocol error for the given failed :py:class:`.results.Outcome`,
        using the most specific subclass known for its result code.
        """
        error_cls = _BY_CODE.get(outcome.code, cls)
        return error_cls(message, outcome.code, outcome.description, **context)


class AuthenticationError(ProtocolError, ValueError):
    """
    Raised when the server rejects the credentials given to a bind.
    """


class NoSuchObjectError(ProtocolError, ValueError):
    """
    Raised when an operation is attempted on a non-existent object.
    """


class ObjectAlreadyExistsError(ProtocolError, ValueError):
    """
    Raised when attempting to create an object that already exists.
    """


class PermissionDeniedError(ProtocolError):
    """
    Raised when the connection does not have permission to perform the requested
    operation.
    """


class SchemaViolationError(ProtocolError, ValueError):
    """
    Raised when a schema violation occurs.
    """


class InvalidArgumentError(DirectoryError, ValueError):
    """
    Raised when a caller-supplied argument is not recognised, before any request
    is sent to the server.
    """


_BY_CODE = {
    results.NO_SUCH_OBJECT: NoSuchObjectError,
    results.ENTRY_ALREADY_EXISTS: ObjectAlreadyExistsError,
    results.INVALID_CREDENTIALS: AuthenticationError,
    results.STRONGER_AUTH_REQUIRED: PermissionDeniedError,
    results.INSUFFICIENT_ACCESS_RIGHTS: PermissionDeniedError,
    results.OBJECT_CLASS_VIOLATION: SchemaViolationError,
    results.NOT_ALLOWED_ON_RDN: SchemaViolationError,
    results.NAMING_VIOLATION: SchemaViolationError,
    results.OBJECT_CLASS_MODS_PROHIBITED: SchemaViolationError,
}
