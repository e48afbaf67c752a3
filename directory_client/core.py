"""
This module provides :py:class:`DirectoryClient`, a client for a single directory
server implemented as a layer over `ldap3 <https://ldap3.readthedocs.org/>`_.
"""

import collections
import contextlib
import logging
import warnings

import ldap3
from ldap3 import Connection, Server
from ldap3.core import exceptions as ldap3_exceptions

from . import exceptions, results
from .config import ClientConfig
from .entry import as_values
from .filters import Node, compile_filter
from .log import log_operation, setup_logging
from .query import MATCH_ALL, SearchOptions, SearchScope
from .results import Outcome
from .search import SearchResult, server_entries, sort_entries


_log = logging.getLogger(__name__)

# OID of the simple paged results control
_PAGED_RESULTS_OID = '1.2.840.113556.1.4.319'


#: One page of search responses, plus the cookie for the next page (if any)
Page = collections.namedtuple('Page', ['response', 'cookie'])


class DirectoryClient:
    """
    A client for a single directory server.

    The client owns at most one connection at a time. Every operation except
    :py:meth:`connect`, :py:meth:`is_connected` and :py:meth:`close` requires an
    open connection and raises :py:class:`~.exceptions.NotConnectedError` without
    one. The client is not safe for concurrent use.

    Clients can be used in a ``with`` statement to connect and ensure that the
    connection is closed when it is finished with::

        with DirectoryClient('ldap.example.org') as client:
            client.bind()
            for entry in client.search('ou=People,dc=example,dc=org', '(uid=*)'):
                print(entry.dn)

    Args:
        host: Host name or LDAP URL of the server, or an ``ldap3.Server``
            instance if more complex configuration is required.
        port: Port of the server (ignored when ``host`` is an ``ldap3.Server``).
        config: A :py:class:`~.config.ClientConfig` with timeouts, paging and
            strategy settings (optional).
    """
    #: Default host
    DEFAULT_HOST = 'localhost'
    #: Default port
    DEFAULT_PORT = 389

    def __init__(self, host = DEFAULT_HOST, port = DEFAULT_PORT, config = None):
        if isinstance(host, ldap3.Server):
            self._server = host
            host, port = host.host, host.port
        else:
            self._server = None
        self.host = host
        self.port = port
        self.config = config or ClientConfig()
        self._conn = None

    @classmethod
    def from_config(cls, config):
        """
        Creates a client for the server described by a :py:class:`~.config.ClientConfig`,
        applying its logging settings to the package logger.
        """
        setup_logging(config.logging)
        return cls(config.host, config.port, config)

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        # Just attempt to close the connection, but don't supress exceptions from
        # inside the with statement
        self.close()
        return False

    def __repr__(self):
        return 'DirectoryClient({!r}, {!r})'.format(self.host, self.port)

    ############################################################################
    ## Connection lifecycle
    ############################################################################

    def connect(self):
        """
        Opens the connection to the server. Does nothing if the client is
        already connected.

        Returns:
            ``True`` on success (should raise on failure).

        Raises:
            ConnectionError: If the server cannot be reached.
        """
        if self.is_connected():
            return True
        _log.debug('Opening LDAP connection to {}:{}'.format(self.host, self.port))
        server = self._server or Server(
            self.host,
            port = self.port,
            use_ssl = self.config.use_ssl,
            get_info = ldap3.NONE,
            connect_timeout = self.config.connect_timeout,
        )
        try:
            conn = Connection(
                server,
                client_strategy = self.config.client_strategy,
                auto_referrals = self.config.auto_referrals,
                receive_timeout = self.config.receive_timeout,
                raise_exceptions = False,
            )
            conn.open()
        except ldap3_exceptions.LDAPException as e:
            _log.exception('Failed to open connection to {}:{}'.format(self.host, self.port))
            raise exceptions.ConnectionError(self.host, self.port) from e
        self._conn = conn
        return True

    def is_connected(self):
        """
        Returns ``True`` if the client holds an open connection.
        """
        return self._conn is not None and not self._conn.closed

    def close(self):
        """
        Closes the connection. Does nothing if the client is not connected.

        Errors while unbinding are logged and otherwise ignored.

        Returns:
            ``True``
        """
        if self._conn is None:
            return True
        _log.debug('Closing LDAP connection to {}:{}'.format(self.host, self.port))
        try:
            self._conn.unbind()
        except ldap3_exceptions.LDAPException:
            _log.warning('Error unbinding from {}:{}'.format(self.host, self.port), exc_info = True)
        finally:
            self._conn = None
        return True

    def _handle(self):
        if not self.is_connected():
            raise exceptions.NotConnectedError(self.host, self.port)
        return self._conn

    @contextlib.contextmanager
    def _connection(self):
        """
        Context manager for the ldap3 connection that converts transport
        failures into :py:class:`~.exceptions.ConnectionError`.
        """
        conn = self._handle()
        try:
            yield conn
        except ldap3_exceptions.LDAPCommunicationError as e:
            raise exceptions.ConnectionError(
                self.host, self.port,
                'Lost connection to {}:{}'.format(self.host, self.port)
            ) from e

    def _invoke(self, operation, *args, **kwargs):
        """
        Calls the named ldap3 connection method and returns the
        :py:class:`~.results.Outcome` of that call.

        Requests that the library rejects before they reach the server produce
        an outcome with the ``PARAM_ERROR`` code.
        """
        with self._connection() as conn:
            try:
                value = getattr(conn, operation)(*args, **kwargs)
            except ldap3_exceptions.LDAPCommunicationError:
                raise
            except ldap3_exceptions.LDAPException as e:
                _log.debug('ldap3 rejected {} request: {}'.format(operation, e))
                return Outcome(None, results.PARAM_ERROR, type(e).__name__, str(e))
            return Outcome.from_result(value, conn.result)

    ############################################################################
    ## Authentication and options
    ############################################################################

    def bind(self, user = None, password = None):
        """
        Authenticates the session. If no user is given, an anonymous bind is
        performed. A user without a password sends an unauthenticated simple
        bind, which the server accepts or rejects.

        Args:
            user: The DN (or other identity) to bind as (optional).
            password: The password for the user (optional).

        Returns:
            ``True`` on success (should raise on failure).

        Raises:
            ConnectionError: If the server is down or unreachable.
            ProtocolError: If the server rejects the bind.
        """
        conn = self._handle()
        _log.debug('Binding to {}:{} as {}'.format(self.host, self.port, user or '<anonymous>'))
        conn.user = user
        conn.password = password
        conn.authentication = ldap3.SIMPLE if user and password else ldap3.ANONYMOUS
        outcome = self._invoke('bind')
        log_operation('bind', user, outcome.ok, outcome.description)
        if outcome.code in results.TRANSPORT_CODES:
            raise exceptions.ConnectionError(self.host, self.port)
        if not outcome.ok:
            raise exceptions.ProtocolError.for_outcome(
                'Cannot bind for "{}"'.format(user or ''), outcome, user = user
            )
        return True

    def set_option(self, option, value):
        """
        Sets a protocol library option.

        Option identifiers are the names of ldap3 configuration parameters and
        are validated by ldap3 alone.

        Returns:
            ``True`` on success (should raise on failure).

        Raises:
            ProtocolError: If the library rejects the option.
        """
        with self._connection():
            try:
                ldap3.set_config_parameter(option, value)
            except ldap3_exceptions.LDAPConfigurationParameterError as e:
                raise exceptions.ProtocolError(
                    'Cannot set value "{}"'.format(option),
                    results.PARAM_ERROR, str(e), option = option
                ) from e
        return True

    def get_option(self, option):
        """
        Returns the value of a protocol library option.

        Raises:
            ProtocolError: If the library does not know the option.
        """
        with self._connection():
            try:
                return ldap3.get_config_parameter(option)
            except ldap3_exceptions.LDAPConfigurationParameterError as e:
                raise exceptions.ProtocolError(
                    'Cannot get value "{}"'.format(option),
                    results.PARAM_ERROR, str(e), option = option
                ) from e

    ############################################################################
    ## Wire operations - one per search scope
    ############################################################################

    def _scoped_search(self, scope, base_dn, filter_str, options, cookie = None, paged = True):
        """
        Issues a single search request, returning an outcome whose value is a
        :py:class:`Page`.
        """
        kwargs = dict(
            search_base = base_dn,
            search_filter = filter_str,
            search_scope = scope,
            dereference_aliases = options.deref,
            attributes = list(options.attributes) if options.attributes else ldap3.ALL_ATTRIBUTES,
            size_limit = options.size_limit,
            time_limit = options.time_limit,
            types_only = options.attrs_only,
        )
        if paged and self.config.page_size:
            kwargs.update(paged_size = self.config.page_size, paged_cookie = cookie)
        outcome = self._invoke('search', **kwargs)
        response, cookie = [], None
        if outcome.value is not None:
            response = self._conn.response or []
            controls = (self._conn.result or {}).get('controls') or {}
            cookie = controls.get(_PAGED_RESULTS_OID, {}).get('value', {}).get('cookie')
        return outcome._replace(value = Page(response, cookie))

    def _read(self, base_dn, filter_str, options, cookie = None, paged = True):
        return self._scoped_search(ldap3.BASE, base_dn, filter_str, options, cookie, paged)

    def _list(self, base_dn, filter_str, options, cookie = None, paged = True):
        return self._scoped_search(ldap3.LEVEL, base_dn, filter_str, options, cookie, paged)

    def _search(self, base_dn, filter_str, options, cookie = None, paged = True):
        return self._scoped_search(ldap3.SUBTREE, base_dn, filter_str, options, cookie, paged)

    def _operation_for(self, scope):
        """
        Returns the wire operation for the given scope.

        Raises:
            InvalidArgumentError: If the scope is not recognised.
        """
        scope = SearchScope.coerce(scope)
        if scope is SearchScope.BASE:
            return self._read
        elif scope is SearchScope.ONELEVEL:
            return self._list
        elif scope is SearchScope.SUBTREE:
            return self._search
        raise exceptions.InvalidArgumentError('Scope {!r} not supported'.format(scope))

    ############################################################################
    ## Searches
    ############################################################################

    def _start_search(self, operation, base_dn, filter_str, options, quiet = False):
        """
        Runs the first request of a search and returns a lazy iterable of the
        matched entries. Further pages are requested as the iterable is consumed.

        If ``quiet`` is set, Python warnings are suppressed around every page
        request, including the ones made after this method has returned.
        """
        if isinstance(filter_str, Node):
            filter_str = compile_filter(filter_str)
        _log.debug('Performing LDAP search (base_dn: {}, filter: {})'.format(base_dn, filter_str))

        def check(outcome):
            if outcome.code not in results.SEARCH_OK_CODES:
                raise exceptions.ProtocolError.for_outcome('Search failed', outcome, dn = base_dn)
            if not outcome.ok:
                _log.debug('Search returned partial results: {}'.format(outcome.description))
            return outcome.value

        def fetch_page(cookie):
            if quiet:
                with warnings.catch_warnings():
                    warnings.simplefilter('ignore')
                    return check(operation(base_dn, filter_str, options, cookie))
            return check(operation(base_dn, filter_str, options, cookie))

        page = fetch_page(None)
        return server_entries(page.response, page.cookie, fetch_page)

    @staticmethod
    def _search_options(options, kwargs):
        if options is None:
            return SearchOptions(**kwargs)
        if kwargs:
            raise TypeError('Give either options or keyword arguments, not both')
        return options

    def search(self, base_dn, filter_str, options = None, **kwargs):
        """
        Performs a search of the whole subtree under ``base_dn``.

        Args:
            base_dn: The base DN for the search.
            filter_str: The LDAP filter string (or :py:class:`~.filters.Node`).
            options: A :py:class:`~.query.SearchOptions` (optional). Alternatively,
                the fields of :py:class:`~.query.SearchOptions` may be given
                as keyword arguments.

        Returns:
            A :py:class:`~.search.SearchResult`.

        Raises:
            ProtocolError: If the search fails.
        """
        options = self._search_options(options, kwargs)
        return SearchResult(self._start_search(self._search, base_dn, filter_str, options))

    def search_scope(self, scope, base_dn, filter_str, options = None, **kwargs):
        """
        Performs a search with the given scope. :py:attr:`~.query.SearchScope.BASE`
        reads the single entry at ``base_dn``, :py:attr:`~.query.SearchScope.ONELEVEL`
        lists its immediate children and :py:attr:`~.query.SearchScope.SUBTREE`
        searches the whole subtree.

        Other arguments are as for :py:meth:`search`.

        Raises:
            InvalidArgumentError: If the scope is not recognised. No request is
                sent in this case.
            ProtocolError: If the search fails.
        """
        operation = self._operation_for(scope)
        options = self._search_options(options, kwargs)
        return SearchResult(self._start_search(operation, base_dn, filter_str, options))

    def search_by(self, query):
        """
        Performs the search described by a :py:class:`~.query.DirectoryQuery`.

        If the query has sort attributes, the results are fetched in full and
        sorted once per attribute in the order given (see
        :py:func:`~.search.sort_entries`).

        Raises:
            InvalidArgumentError: If the query scope is not recognised. No
                request is sent in this case.
            ProtocolError: If the search fails.
        """
        operation = self._operation_for(query.scope)
        # Failures are reported by raising, not through library warnings
        entries = self._start_search(
            operation, query.base, query.filter_str, query.options, quiet = True
        )
        if query.sort:
            entries = sort_entries(entries, query.sort)
        return SearchResult(entries)

    ############################################################################
    ## Entry operations
    ############################################################################

    def _read_entry(self, dn):
        return self._read(dn, MATCH_ALL, SearchOptions(), paged = False)

    def read(self, entry):
        """
        Reads the entry with the DN of the given entry.

        Args:
            entry: A :py:class:`~.entry.DirectoryEntry` specifying the DN.

        Returns:
            A read-only :py:class:`~.entry.DirectoryEntry` with the attributes
            held by the server.

        Raises:
            ProtocolError: If the read fails, including when the entry does not
                exist (:py:class:`~.exceptions.NoSuchObjectError`).
        """
        _log.debug('Reading LDAP entry at dn {}'.format(entry.dn))
        outcome = self._read_entry(entry.dn)
        message = 'Read "{}" failed'.format(entry.dn)
        if not outcome.ok:
            raise exceptions.ProtocolError.for_outcome(message, outcome, dn = entry.dn)
        found = next(server_entries(outcome.value.response), None)
        if found is None:
            raise exceptions.NoSuchObjectError(message, results.NO_SUCH_OBJECT, dn = entry.dn)
        return found

    def exists(self, entry):
        """
        Checks whether an entry with the DN of the given entry exists.

        Returns:
            ``True`` if the entry exists, ``False`` if the server reports that
            there is no such object.

        Raises:
            ProtocolError: If the check fails for any other reason.
        """
        outcome = self._read_entry(entry.dn)
        if outcome.code == results.NO_SUCH_OBJECT:
            return False
        if not outcome.ok:
            raise exceptions.ProtocolError.for_outcome(
                'Read "{}" failed'.format(entry.dn), outcome, dn = entry.dn
            )
        return True

    def _check(self, operation, outcome, message, dn):
        log_operation(operation, dn, outcome.ok, outcome.description)
        if not outcome.ok:
            raise exceptions.ProtocolError.for_outcome(message.format(dn), outcome, dn = dn)
        return True

    def add(self, entry):
        """
        Creates the given entry. Attributes without values are left out.

        Returns:
            ``True`` on success (should raise on failure).

        Raises:
            ProtocolError: If the server does not report success.
        """
        _log.debug('Creating LDAP entry at dn {}'.format(entry.dn))
        attributes = {
            name : values for name, values in entry.attributes.items()
            if values
        }
        outcome = self._invoke('add', entry.dn, attributes = attributes)
        return self._check('add', outcome, 'Add for "{}" failed', entry.dn)

    def modify(self, entry):
        """
        Overwrites the entry on the server with the given entry.

        This is a complete overwrite, not a diff: every attribute of the given
        entry replaces the attribute on the server, and every attribute on the
        server that the given entry does not have is removed. Use
        :py:meth:`add_attribute`, :py:meth:`delete_attribute` or
        :py:meth:`replace_attribute` for partial updates.

        Returns:
            ``True`` on success (should raise on failure).

        Raises:
            ProtocolError: If the server does not report success.
        """
        _log.debug('Overwriting LDAP entry at dn {}'.format(entry.dn))
        message = 'Modify for "{}" failed'
        current = self._read_entry(entry.dn)
        if not current.ok:
            return self._check('modify', current, message, entry.dn)
        existing = next(server_entries(current.value.response), None)
        changes = {
            name : [(ldap3.MODIFY_REPLACE, values)]
            for name, values in entry.attributes.items()
        }
        supplied = set(name.lower() for name in changes)
        for name in (existing.names() if existing else []):
            if name.lower() not in supplied:
                changes[name] = [(ldap3.MODIFY_REPLACE, [])]
        outcome = self._invoke('modify', entry.dn, changes)
        return self._check('modify', outcome, message, entry.dn)

    def delete(self, entry):
        """
        Deletes the entry with the DN of the given entry.

        Returns:
            ``True`` on success (should raise on failure).

        Raises:
            ProtocolError: If the server does not report success.
        """
        _log.debug('Deleting LDAP entry at dn {}'.format(entry.dn))
        outcome = self._invoke('delete', entry.dn)
        return self._check('delete', outcome, 'Delete for "{}" failed', entry.dn)

    def add_attribute(self, entry, name, value):
        """
        Adds a value (or values) to an attribute of the entry on the server.
        """
        _log.debug('Adding attribute {} to dn {}'.format(name, entry.dn))
        outcome = self._invoke(
            'modify', entry.dn, { name : [(ldap3.MODIFY_ADD, list(as_values(value)))] }
        )
        return self._check('add_attribute', outcome, 'Add attribute for "{}" failed', entry.dn)

    def delete_attribute(self, entry, name):
        """
        Removes an attribute, with all its values, from the entry on the server.
        """
        _log.debug('Deleting attribute {} from dn {}'.format(name, entry.dn))
        outcome = self._invoke('modify', entry.dn, { name : [(ldap3.MODIFY_DELETE, [])] })
        return self._check('delete_attribute', outcome, 'Delete attribute for "{}" failed', entry.dn)

    def replace_attribute(self, entry, name, value):
        """
        Replaces the values of an attribute of the entry on the server, leaving
        all other attributes untouched.
        """
        _log.debug('Replacing attribute {} on dn {}'.format(name, entry.dn))
        outcome = self._invoke(
            'modify', entry.dn, { name : [(ldap3.MODIFY_REPLACE, list(as_values(value)))] }
        )
        return self._check('replace_attribute', outcome, 'Replace attribute for "{}" failed', entry.dn)
