"""
This module provides the result type for searches and the lazy, server-backed
sequence of entries behind it.
"""

import logging

from .entry import DirectoryEntry


_log = logging.getLogger(__name__)


def server_entries(response, cookie = None, fetch_page = None):
    """
    Generator yielding a :py:class:`.entry.DirectoryEntry` for each entry in an
    ldap3 search response.

    If a paged-results cookie is given, ``fetch_page`` is called with it once the
    current page is exhausted, and must return the next ``(response, cookie)``
    pair. The sequence ends when the server stops returning a cookie.

    Search references and other non-entry responses are skipped.
    """
    while True:
        for item in response or ():
            if item.get('type', 'searchResEntry') != 'searchResEntry':
                continue
            yield DirectoryEntry.create(item['dn'], item.get('attributes') or {})
        if not cookie or fetch_page is None:
            return
        _log.debug('Fetching next page of search results')
        response, cookie = fetch_page(cookie)


def sort_entries(entries, attributes):
    """
    Sorts entries by each of the given attributes in turn.

    Each pass re-sorts the whole list by a single attribute. Because the sort is
    stable, the last attribute decides the final order and earlier attributes
    only order entries that compare equal on all the later ones. Entries without
    the attribute sort first.

    Returns:
        A new list of entries.
    """
    entries = list(entries)
    for attribute in attributes:
        entries.sort(key = lambda e: tuple(e.get(attribute, ())))
    return entries


class SearchResult:
    """
    The entries matched by a single search.

    A search result is a single-pass iterator: entries are produced as they are
    consumed, fetching further pages from the server when required, and cannot
    be restarted without issuing the search again::

        for entry in client.search_scope(SearchScope.SUBTREE, base_dn, '(uid=*)'):
            print(entry.dn)

    :param entries: An iterable of :py:class:`.entry.DirectoryEntry`
    """
    def __init__(self, entries):
        self._entries = iter(entries)

    def __iter__(self):
        return self

    def __next__(self):
        return next(self._entries)

    def next_entry(self):
        """
        Returns the next entry, or ``None`` if the result is exhausted.
        """
        return next(self._entries, None)

    def one(self):
        """
        Returns the next entry, or ``None`` if there is no such entry.
        """
        return self.next_entry()

    def entries(self):
        """
        Returns the remaining entries as a list, exhausting the result.
        """
        return list(self._entries)
