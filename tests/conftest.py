"""Shared fixtures: an in-memory stand-in for an ldap3 connection."""

import logging
import re
import warnings

import ldap3
import pytest
from ldap3.core.exceptions import LDAPSocketOpenError

from directory_client.config import ClientConfig
from directory_client.core import DirectoryClient
from directory_client.log import LOGGER_NAME

DESCRIPTIONS = {
    0: "success",
    4: "sizeLimitExceeded",
    16: "noSuchAttribute",
    32: "noSuchObject",
    49: "invalidCredentials",
    50: "insufficientAccessRights",
    66: "notAllowedOnNonLeaf",
    68: "entryAlreadyExists",
    81: "serverDown",
}

PAGED_OID = "1.2.840.113556.1.4.319"

_SIMPLE_FILTER = re.compile(r"^\((?P<attr>[^=()]+)=(?P<value>[^()]*)\)$")


class FakeDirectory:
    """
    Server-side state shared by every FakeConnection created while the fixture
    is active. Records each call as (operation, kwargs).
    """

    def __init__(self):
        self.entries = {}
        self.passwords = {}
        self.calls = []
        self.fail = {}
        self.raise_on = {}
        self.unreachable = False
        self.references = []
        self.warning = None

    def seed(self, dn, attributes, password=None):
        self.entries[dn.lower()] = (dn, {k: list(v) for k, v in attributes.items()})
        if password is not None:
            self.passwords[dn.lower()] = password

    def attributes_of(self, dn):
        return self.entries[dn.lower()][1]

    def operations(self, name=None):
        return [op for op, _ in self.calls if name is None or op == name]

    def connection(self, server, **kwargs):
        return FakeConnection(self, server, **kwargs)


class FakeConnection:
    """Implements the subset of ldap3.Connection used by DirectoryClient."""

    def __init__(self, directory, server, **kwargs):
        self.directory = directory
        self.server = server
        self.kwargs = kwargs
        self.closed = True
        self.result = None
        self.response = None
        self.user = None
        self.password = None
        self.authentication = None

    def _record(self, operation, **kwargs):
        self.directory.calls.append((operation, kwargs))
        if operation in self.directory.raise_on:
            raise self.directory.raise_on.pop(operation)

    def _finish(self, code, operation_type, controls=None):
        self.result = {
            "result": code,
            "description": DESCRIPTIONS.get(code, "other"),
            "message": "",
            "type": operation_type,
        }
        if controls:
            self.result["controls"] = controls
        return code == 0

    def _forced(self, operation):
        return self.directory.fail.pop(operation, None)

    def open(self):
        self._record("open")
        if self.directory.unreachable:
            raise LDAPSocketOpenError("unable to open socket")
        self.closed = False

    def unbind(self):
        self._record("unbind")
        self.closed = True
        return True

    def bind(self):
        self._record("bind", user=self.user, authentication=self.authentication)
        forced = self._forced("bind")
        if forced is not None:
            return self._finish(forced, "bindResponse")
        if self.authentication == ldap3.ANONYMOUS:
            return self._finish(0, "bindResponse")
        expected = self.directory.passwords.get((self.user or "").lower())
        if expected is None or expected != self.password:
            return self._finish(49, "bindResponse")
        return self._finish(0, "bindResponse")

    def _matches(self, attributes, search_filter):
        if search_filter == "(objectClass=*)":
            return True
        match = _SIMPLE_FILTER.match(search_filter)
        if not match:
            return True
        values = {
            v.lower() for k, vs in attributes.items() if k.lower() == match["attr"].lower() for v in vs
        }
        if match["value"] == "*":
            return bool(values)
        return match["value"].lower() in values

    def _in_scope(self, dn, base, scope):
        dn, base = dn.lower(), base.lower()
        if scope == ldap3.BASE:
            return dn == base
        if not dn.endswith("," + base):
            return scope == ldap3.SUBTREE and dn == base
        if scope == ldap3.LEVEL:
            return "," not in dn[: -len(base) - 1]
        return True

    def search(
        self,
        search_base,
        search_filter,
        search_scope=ldap3.SUBTREE,
        dereference_aliases=ldap3.DEREF_ALWAYS,
        attributes=None,
        size_limit=0,
        time_limit=0,
        types_only=False,
        paged_size=None,
        paged_cookie=None,
    ):
        self._record(
            "search",
            search_base=search_base,
            search_filter=search_filter,
            search_scope=search_scope,
            dereference_aliases=dereference_aliases,
            attributes=attributes,
            size_limit=size_limit,
            time_limit=time_limit,
            types_only=types_only,
            paged_size=paged_size,
            paged_cookie=paged_cookie,
        )
        if self.directory.warning:
            warnings.warn(self.directory.warning)
        self.response = []
        forced = self._forced("search")
        if forced is not None:
            return self._finish(forced, "searchResDone")
        if search_base.lower() not in self.directory.entries:
            return self._finish(32, "searchResDone")
        matched = [
            (dn, attrs)
            for dn, attrs in self.directory.entries.values()
            if self._in_scope(dn, search_base, search_scope) and self._matches(attrs, search_filter)
        ]
        code = 0
        if size_limit and len(matched) > size_limit:
            matched, code = matched[:size_limit], 4
        controls = None
        if paged_size:
            offset = int(paged_cookie or 0)
            more = offset + paged_size < len(matched)
            matched = matched[offset : offset + paged_size]
            cookie = str(offset + paged_size).encode() if more else b""
            controls = {PAGED_OID: {"value": {"size": 0, "cookie": cookie}}}
        wanted = None
        if attributes != ldap3.ALL_ATTRIBUTES:
            wanted = {a.lower() for a in attributes}
        response = []
        for dn, attrs in matched:
            response.append(
                {
                    "type": "searchResEntry",
                    "dn": dn,
                    "attributes": {
                        k: ([] if types_only else list(v))
                        for k, v in attrs.items()
                        if wanted is None or k.lower() in wanted
                    },
                }
            )
        for uri in self.directory.references:
            response.append({"type": "searchResRef", "uri": [uri]})
        self.response = response
        self._finish(code, "searchResDone", controls)
        return bool(matched)

    def add(self, dn, object_class=None, attributes=None):
        self._record("add", dn=dn, attributes=attributes)
        forced = self._forced("add")
        if forced is not None:
            return self._finish(forced, "addResponse")
        if dn.lower() in self.directory.entries:
            return self._finish(68, "addResponse")
        self.directory.seed(dn, attributes or {})
        return self._finish(0, "addResponse")

    def modify(self, dn, changes):
        self._record("modify", dn=dn, changes=changes)
        forced = self._forced("modify")
        if forced is not None:
            return self._finish(forced, "modifyResponse")
        if dn.lower() not in self.directory.entries:
            return self._finish(32, "modifyResponse")
        attrs = self.directory.attributes_of(dn)
        for name, operations in changes.items():
            key = next((k for k in attrs if k.lower() == name.lower()), name)
            for operation, values in operations:
                if operation == ldap3.MODIFY_ADD:
                    attrs.setdefault(key, []).extend(values)
                elif operation == ldap3.MODIFY_DELETE:
                    if key not in attrs:
                        return self._finish(16, "modifyResponse")
                    if values:
                        attrs[key] = [v for v in attrs[key] if v not in values]
                    else:
                        del attrs[key]
                elif operation == ldap3.MODIFY_REPLACE:
                    if values:
                        attrs[key] = list(values)
                    else:
                        attrs.pop(key, None)
        return self._finish(0, "modifyResponse")

    def delete(self, dn):
        self._record("delete", dn=dn)
        forced = self._forced("delete")
        if forced is not None:
            return self._finish(forced, "delResponse")
        if dn.lower() not in self.directory.entries:
            return self._finish(32, "delResponse")
        if any(key.endswith("," + dn.lower()) for key in self.directory.entries):
            return self._finish(66, "delResponse")
        del self.directory.entries[dn.lower()]
        return self._finish(0, "delResponse")


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Restore the package logger after each test."""
    logger = logging.getLogger(LOGGER_NAME)
    handlers, level = list(logger.handlers), logger.level
    yield
    for handler in logger.handlers:
        if handler not in handlers:
            handler.close()
    logger.handlers[:] = handlers
    logger.setLevel(level)


BASE_DN = "ou=People,dc=Example,dc=Org"


@pytest.fixture
def directory(monkeypatch):
    """A fake directory that DirectoryClient connections talk to."""
    fake = FakeDirectory()
    monkeypatch.setattr("directory_client.core.Connection", fake.connection)
    fake.seed("dc=Example,dc=Org", {"objectClass": ["top", "domain"], "dc": ["Example"]})
    fake.seed(BASE_DN, {"objectClass": ["top", "organizationalUnit"], "ou": ["People"]})
    fake.seed(
        "cn=admin,dc=Example,dc=Org",
        {"objectClass": ["person"], "cn": ["admin"], "sn": ["admin"]},
        password="secret",
    )
    return fake


@pytest.fixture
def people(directory):
    """Seeds a handful of people under BASE_DN."""
    for uid, cn in [("jdoe", "Jane"), ("abloggs", "Zed"), ("mmouse", "Jane"), ("bsmith", "Bob")]:
        directory.seed(
            f"uid={uid},{BASE_DN}",
            {"objectClass": ["top", "inetOrgPerson"], "uid": [uid], "cn": [cn], "sn": [uid]},
        )
    directory.seed(
        f"cn=team,uid=jdoe,{BASE_DN}",
        {"objectClass": ["groupOfNames"], "cn": ["team"], "uid": ["team"]},
    )
    return directory


@pytest.fixture
def client(directory):
    """A connected client for the fake directory."""
    client = DirectoryClient("ldap.example.org", 389)
    client.connect()
    directory.calls.clear()
    yield client
    client.close()


@pytest.fixture
def paged_client(directory):
    """A connected client that uses paged searches of two entries per page."""
    client = DirectoryClient("ldap.example.org", 389, ClientConfig(page_size=2))
    client.connect()
    directory.calls.clear()
    yield client
    client.close()
