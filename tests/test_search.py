"""Tests for search result handling."""

from directory_client.entry import DirectoryEntry
from directory_client.search import SearchResult, server_entries, sort_entries


def _item(dn, **attributes):
    return {"type": "searchResEntry", "dn": dn, "attributes": attributes}


class TestServerEntries:
    """Test conversion of ldap3 responses to entries."""

    def test_single_page(self):
        """Test entries are produced for each response item."""
        response = [_item("uid=a,dc=x", uid=["a"]), _item("uid=b,dc=x", uid=["b"])]

        entries = list(server_entries(response))

        assert [e.dn for e in entries] == ["uid=a,dc=x", "uid=b,dc=x"]
        assert all(isinstance(e, DirectoryEntry) and e.readonly for e in entries)

    def test_references_are_skipped(self):
        """Test non-entry responses are ignored."""
        response = [
            {"type": "searchResRef", "uri": ["ldap://other/dc=y"]},
            _item("uid=a,dc=x"),
        ]

        assert [e.dn for e in server_entries(response)] == ["uid=a,dc=x"]

    def test_empty_response(self):
        """Test a missing response yields nothing."""
        assert list(server_entries(None)) == []

    def test_pages_fetched_lazily(self):
        """Test the next page is requested only when the current one is used up."""
        pages = {
            b"p2": ([_item("uid=b,dc=x")], b"p3"),
            b"p3": ([_item("uid=c,dc=x")], b""),
        }
        requested = []

        def fetch_page(cookie):
            requested.append(cookie)
            return pages[cookie]

        entries = server_entries([_item("uid=a,dc=x")], b"p2", fetch_page)

        assert requested == []
        assert next(entries).dn == "uid=a,dc=x"
        assert requested == []
        assert next(entries).dn == "uid=b,dc=x"
        assert requested == [b"p2"]
        assert [e.dn for e in entries] == ["uid=c,dc=x"]
        assert requested == [b"p2", b"p3"]

    def test_empty_page_with_cookie(self):
        """Test an empty page that still has a cookie moves on to the next page."""
        entries = server_entries([], b"next", lambda cookie: ([_item("uid=a,dc=x")], None))

        assert [e.dn for e in entries] == ["uid=a,dc=x"]


class TestSortEntries:
    """Test sorting by attributes."""

    def _entries(self):
        return [
            DirectoryEntry.create("uid=c,dc=x", {"uid": ["c"], "cn": ["Ann"]}),
            DirectoryEntry.create("uid=a,dc=x", {"uid": ["a"], "cn": ["Bob"]}),
            DirectoryEntry.create("uid=b,dc=x", {"uid": ["b"], "cn": ["Ann"]}),
        ]

    def test_single_attribute(self):
        """Test sorting by one attribute."""
        entries = sort_entries(self._entries(), ["uid"])

        assert [e.first("uid") for e in entries] == ["a", "b", "c"]

    def test_last_attribute_is_primary(self):
        """Test the last attribute given decides the order."""
        entries = sort_entries(self._entries(), ["uid", "cn"])

        assert [e.first("uid") for e in entries] == ["b", "c", "a"]

    def test_missing_attribute_sorts_first(self):
        """Test entries without the attribute come first."""
        entries = self._entries() + [DirectoryEntry.create("cn=nouid,dc=x", {"cn": ["Zed"]})]

        entries = sort_entries(entries, ["uid"])

        assert entries[0].dn == "cn=nouid,dc=x"

    def test_no_attributes(self):
        """Test no sort attributes keeps the server order."""
        entries = sort_entries(self._entries(), [])

        assert [e.first("uid") for e in entries] == ["c", "a", "b"]


class TestSearchResult:
    """Test the search result iterator."""

    def _result(self):
        return SearchResult(
            DirectoryEntry.create("uid={},dc=x".format(uid), {"uid": [uid]}) for uid in "abc"
        )

    def test_next_entry(self):
        """Test stepping through entries one at a time."""
        result = self._result()

        assert result.next_entry().dn == "uid=a,dc=x"
        assert result.next_entry().dn == "uid=b,dc=x"
        assert result.next_entry().dn == "uid=c,dc=x"
        assert result.next_entry() is None

    def test_one(self):
        """Test one() returns a single entry or None."""
        assert self._result().one().dn == "uid=a,dc=x"
        assert SearchResult([]).one() is None

    def test_entries_returns_remaining(self):
        """Test entries() drains what is left."""
        result = self._result()
        result.next_entry()

        assert [e.dn for e in result.entries()] == ["uid=b,dc=x", "uid=c,dc=x"]
        assert result.entries() == []

    def test_single_pass(self):
        """Test a result cannot be iterated twice."""
        result = self._result()

        assert len(list(result)) == 3
        assert list(result) == []
