"""
This module provides the representation of a single directory entry.
"""

import collections.abc

from ldap3.utils.ciDict import CaseInsensitiveDict


def as_values(value):
    """
    Converts a single value or an iterable of values into a tuple of strings.

    ``None`` becomes an empty tuple and bytes are decoded as UTF-8 where possible.
    """
    if value is None:
        return ()
    if isinstance(value, (str, bytes)) or not isinstance(value, collections.abc.Iterable):
        value = (value, )
    def _f(v):
        if isinstance(v, bytes):
            try:
                return v.decode('utf-8')
            except UnicodeDecodeError:
                return v
        return v if isinstance(v, str) else str(v)
    return tuple(_f(v) for v in value)


class DirectoryEntry:
    """
    A directory entry: a distinguished name plus a mapping of attribute names
    to an ordered sequence of values. Attribute names are case-insensitive.

    Entries created by the caller are mutable, so that they can be built up
    before being passed to :py:meth:`.core.DirectoryClient.add` or
    :py:meth:`.core.DirectoryClient.modify`::

        entry = DirectoryEntry('uid=jbloggs,ou=People,dc=example,dc=org')
        entry.set('objectClass', ['top', 'inetOrgPerson'])
        entry['cn'] = 'Joe Bloggs'

    Entries returned from the server (see :py:meth:`create`) are read-only; use
    :py:meth:`copy` to get a mutable version.

    :param dn: The distinguished name of the entry
    :param attributes: Mapping of attribute name to a value or values (optional)
    """
    def __init__(self, dn, attributes = None, readonly = False):
        self._dn = dn
        self._attributes = CaseInsensitiveDict()
        for name, value in (attributes or {}).items():
            self._attributes[name] = as_values(value)
        self._readonly = readonly

    @classmethod
    def create(cls, dn, attributes):
        """
        Builds a read-only entry from a DN and the attribute data returned by
        the library.
        """
        return cls(dn, attributes, readonly = True)

    @property
    def dn(self):
        """
        The distinguished name of the entry.
        """
        return self._dn

    @property
    def readonly(self):
        return self._readonly

    @property
    def attributes(self):
        """
        A copy of the attribute mapping, name => list of values.
        """
        return { name : list(values) for name, values in self._attributes.items() }

    def names(self):
        """
        Returns the attribute names held by the entry.
        """
        return list(self._attributes.keys())

    def get(self, name, default = None):
        """
        Returns the list of values for the named attribute, or ``default`` if the
        entry does not have the attribute.
        """
        if name not in self._attributes:
            return default
        return list(self._attributes[name])

    def first(self, name, default = None):
        """
        Returns the first value of the named attribute, or ``default``.
        """
        return next(iter(self._attributes.get(name, ())), default)

    def _check_writable(self):
        if self._readonly:
            raise TypeError("Entry '{}' is read-only".format(self._dn))

    def set(self, name, value):
        """
        Sets the values for the named attribute, replacing any existing values.
        """
        self._check_writable()
        self._attributes[name] = as_values(value)

    def add_value(self, name, value):
        """
        Appends a value (or values) to the named attribute.
        """
        self._check_writable()
        self._attributes[name] = self._attributes.get(name, ()) + as_values(value)

    def remove(self, name):
        """
        Removes the named attribute from the entry if present.
        """
        self._check_writable()
        if name in self._attributes:
            del self._attributes[name]

    def copy(self):
        """
        Returns a mutable copy of the entry.
        """
        return DirectoryEntry(self._dn, self._attributes)

    def __getitem__(self, name):
        return list(self._attributes[name])

    def __setitem__(self, name, value):
        self.set(name, value)

    def __delitem__(self, name):
        self._check_writable()
        del self._attributes[name]

    def __contains__(self, name):
        return name in self._attributes

    def __eq__(self, other):
        if not isinstance(other, DirectoryEntry):
            return NotImplemented
        return (
            self._dn.lower() == other._dn.lower() and
            self._normalised() == other._normalised()
        )

    def _normalised(self):
        return { k.lower() : v for k, v in self._attributes.items() }

    def __hash__(self):
        return hash(self._dn.lower())

    def __repr__(self):
        return 'DirectoryEntry({!r}, {!r})'.format(self._dn, self.attributes)
