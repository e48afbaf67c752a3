"""
LDAP result codes and the outcome type returned by every wire operation.

The server-side codes are re-exported from :py:mod:`ldap3.core.results`. The
negative and 8x/9x codes are client-side codes that never travel on the wire.
"""

import collections

from ldap3.core import results as _ldap3_results


SUCCESS = _ldap3_results.RESULT_SUCCESS
TIME_LIMIT_EXCEEDED = _ldap3_results.RESULT_TIME_LIMIT_EXCEEDED
SIZE_LIMIT_EXCEEDED = _ldap3_results.RESULT_SIZE_LIMIT_EXCEEDED
STRONGER_AUTH_REQUIRED = _ldap3_results.RESULT_STRONGER_AUTH_REQUIRED
NO_SUCH_OBJECT = _ldap3_results.RESULT_NO_SUCH_OBJECT
INVALID_CREDENTIALS = _ldap3_results.RESULT_INVALID_CREDENTIALS
INSUFFICIENT_ACCESS_RIGHTS = _ldap3_results.RESULT_INSUFFICIENT_ACCESS_RIGHTS
NAMING_VIOLATION = _ldap3_results.RESULT_NAMING_VIOLATION
OBJECT_CLASS_VIOLATION = _ldap3_results.RESULT_OBJECT_CLASS_VIOLATION
NOT_ALLOWED_ON_RDN = _ldap3_results.RESULT_NOT_ALLOWED_ON_RDN
ENTRY_ALREADY_EXISTS = _ldap3_results.RESULT_ENTRY_ALREADY_EXISTS
OBJECT_CLASS_MODS_PROHIBITED = _ldap3_results.RESULT_OBJECT_CLASS_MODS_PROHIBITED
OTHER = _ldap3_results.RESULT_OTHER

#: Generic client-side failure
CLIENT_FAILURE = -1
#: Client-side code for a bad parameter (e.g. an unknown option)
PARAM_ERROR = -9
#: Client-side code reported when the server has gone away
SERVER_DOWN = 81
#: Client-side code reported when the connection could not be made
CONNECT_ERROR = 91

#: Codes that indicate a transport problem rather than a rejected request
TRANSPORT_CODES = frozenset([CLIENT_FAILURE, SERVER_DOWN, CONNECT_ERROR])

#: Codes for which a search still returns the (partial) entries it has
SEARCH_OK_CODES = frozenset([SUCCESS, TIME_LIMIT_EXCEEDED, SIZE_LIMIT_EXCEEDED])


class Outcome(collections.namedtuple('Outcome',
                                     ['value', 'code', 'description', 'message'])):
    """
    The outcome of a single wire operation, read from the library straight after
    the call returns.

    Attributes:
        value: Whatever the library call returned.
        code: The numeric LDAP result code.
        description: The symbolic description of the result code, if known.
        message: The diagnostic message from the server, if any.
    """
    @property
    def ok(self):
        """
        ``True`` if the operation succeeded.
        """
        return self.code == SUCCESS

    @classmethod
    def from_result(cls, value, result):
        """
        Builds an outcome from the return value of an ldap3 call and the ldap3
        result dictionary for that call.
        """
        if not result:
            return cls(value, OTHER, None, None)
        return cls(
            value,
            result.get('result', OTHER),
            result.get('description'),
            result.get('message')
        )
