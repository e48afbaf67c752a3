"""
This module provides the search scopes, search options and the structured
query object consumed by :py:meth:`.core.DirectoryClient.search_by`.
"""

import collections
import enum

import ldap3

from .exceptions import InvalidArgumentError
from .filters import F, Node, compile_filter


#: Filter that matches any entry
MATCH_ALL = '(objectClass=*)'


class SearchScope(enum.IntEnum):
    """
    How far a search extends from its base DN.
    """
    #: The base entry itself only
    BASE = 0
    #: The immediate children of the base entry
    ONELEVEL = 1
    #: The base entry and all its descendants
    SUBTREE = 2

    @classmethod
    def coerce(cls, value):
        """
        Returns the scope for the given scope or integer value.

        Raises:
            InvalidArgumentError: If the value is not a recognised scope.
        """
        # bool is an int, but True is not a scope
        if isinstance(value, bool):
            raise InvalidArgumentError('Scope {!r} not supported'.format(value))
        try:
            return cls(value)
        except (ValueError, TypeError):
            raise InvalidArgumentError('Scope {!r} not supported'.format(value))


class SearchOptions(collections.namedtuple('SearchOptions', [
    'attributes', 'attrs_only', 'size_limit', 'time_limit', 'deref'
])):
    """
    The optional parts of a search request.

    Attributes:
        attributes: The attributes to return for each entry. ``None`` (the default)
            returns all user attributes.
        attrs_only: If ``True``, return attribute names without values.
        size_limit: Maximum number of entries the server should return (0 means
            no limit).
        time_limit: Maximum number of seconds the server should spend on the
            search (0 means no limit).
        deref: Alias dereferencing policy, one of the ``ldap3.DEREF_*`` constants
            (defaults to ``ldap3.DEREF_NEVER``).
    """
    def __new__(cls, attributes = None, attrs_only = False,
                     size_limit = 0, time_limit = 0, deref = ldap3.DEREF_NEVER):
        if attributes is not None:
            if isinstance(attributes, str):
                attributes = (attributes, )
            attributes = tuple(attributes)
        return super().__new__(
            cls, attributes, bool(attrs_only), size_limit or 0, time_limit or 0, deref
        )


class DirectoryQuery:
    """
    A structured description of a search: base DN, filter, scope, options and
    the attributes to sort the results by.

    Queries are immutable; each of the builder methods returns a new query::

        from directory_client.filters import F

        query = DirectoryQuery('ou=People,dc=example,dc=org') \\
                    .filter(objectClass = 'inetOrgPerson') \\
                    .exclude(F(mail__endswith = '@old.example.org')) \\
                    .select('uid', 'cn', 'mail') \\
                    .order_by('uid')

    :param base: The base DN for the search
    :param filter: An LDAP filter string or :py:class:`.filters.Node` (optional,
                   defaults to a filter matching any entry)
    :param scope: The :py:class:`SearchScope` (optional, defaults to
                  :py:attr:`SearchScope.SUBTREE`)
    :param options: The :py:class:`SearchOptions` (optional)
    :param sort: An iterable of attribute names to sort results by (optional)
    """
    def __init__(self, base, filter = None, scope = SearchScope.SUBTREE,
                       options = None, sort = ()):
        self._base = base
        if filter is not None and not isinstance(filter, Node):
            filter = F(filter)
        self._filter = filter
        # Scope is validated when the query is run, not when it is built
        self._scope = scope
        self._options = options or SearchOptions()
        self._sort = tuple(sort or ())

    def _clone(self, **changes):
        kwargs = dict(
            base = self._base,
            filter = self._filter,
            scope = self._scope,
            options = self._options,
            sort = self._sort,
        )
        kwargs.update(changes)
        return DirectoryQuery(**kwargs)

    @property
    def base(self):
        return self._base

    @property
    def filter_str(self):
        """
        The compiled LDAP filter string.
        """
        if self._filter is None:
            return MATCH_ALL
        return compile_filter(self._filter)

    @property
    def scope(self):
        return self._scope

    @property
    def options(self):
        return self._options

    @property
    def attributes(self):
        return self._options.attributes

    @property
    def attrs_only(self):
        return self._options.attrs_only

    @property
    def size_limit(self):
        return self._options.size_limit

    @property
    def time_limit(self):
        return self._options.time_limit

    @property
    def deref(self):
        return self._options.deref

    @property
    def sort(self):
        """
        The attributes to sort the results by, in the order they are applied.
        """
        return self._sort

    def filter(self, *args, **kwargs):
        """
        Returns a new query with args combined with this query's filter using AND.

        Positional arguments should be :py:class:`.filters.Node` objects or
        LDAP filter strings.

        Keyword arguments should be of the form ``field__lookuptype = value``,
        similar to the Django ORM. If no lookup type is given, exact is used.
        """
        node = F(*args, **kwargs)
        if self._filter is not None:
            node = self._filter & node
        return self._clone(filter = node)

    def exclude(self, *args, **kwargs):
        """
        Returns a new query with NOT(args) combined with this query using AND.
        """
        return self.filter(~F(*args, **kwargs))

    def with_scope(self, scope):
        """
        Returns a new query with the given scope.
        """
        return self._clone(scope = scope)

    def select(self, *attributes):
        """
        Returns a new query that only requests the given attributes.
        """
        return self._clone(options = self._options._replace(attributes = tuple(attributes)))

    def attributes_only(self, attrs_only = True):
        """
        Returns a new query that requests attribute names without values.
        """
        return self._clone(options = self._options._replace(attrs_only = bool(attrs_only)))

    def limit(self, size_limit = 0, time_limit = 0):
        """
        Returns a new query with the given size and time limits.
        """
        return self._clone(options = self._options._replace(
            size_limit = size_limit or 0, time_limit = time_limit or 0
        ))

    def dereference(self, deref):
        """
        Returns a new query with the given alias dereferencing policy.
        """
        return self._clone(options = self._options._replace(deref = deref))

    def order_by(self, *attributes):
        """
        Returns a new query whose results are sorted by the given attributes.

        The results are sorted once per attribute, in the order given, so the
        **last** attribute determines the final order and earlier attributes
        only decide between entries that the later ones consider equal.
        """
        return self._clone(sort = attributes)

    def __repr__(self):
        return 'DirectoryQuery(base={!r}, filter={!r}, scope={!r}, sort={!r})'.format(
            self._base, self.filter_str, self._scope, self._sort
        )
