"""
This module provides facilities for building LDAP search filters.

Individual filters use a ``field, lookup type, value`` structure inspired by the
`Django ORM <https://docs.djangoproject.com/en/1.8/topics/db/queries/#field-lookups>`_.

Individual filters can then be combined using logical operators (AND, OR and NOT)
to form filters of arbitrary complexity, and compiled into an LDAP filter string
(:rfc:`4515`) using :py:func:`compile_filter`.
"""

from collections import namedtuple
from functools import reduce
from operator import or_

import ldap3.utils.conv


def F(*args, **kwargs):
    """
    Utility function for easily creating :py:class:`Node` objects.

    Positional arguments should be :py:class:`Node` objects or raw LDAP filter
    strings, which are wrapped in :py:class:`Raw`.

    Keyword arguments should be of the form ``field__lookuptype = value``, similar
    to the Django ORM. If no lookup type is given, ``None`` is used.

    The filters are combined using AND.
    """
    filters = []
    for f in args:
        if isinstance(f, str):
            f = Raw(f)
        if not isinstance(f, Node):
            raise ValueError('Positional arguments must be nodes or filter strings')
        filters.append(f)
    # Turn the keyword args into expressions
    for spec, value in kwargs.items():
        field, lookup_type, *notused = spec.split('__') + [None]
        filters.append(Expression(field, lookup_type, value))
    if not filters:
        raise ValueError('No arguments given')
    if len(filters) == 1:
        return filters[0]
    return AndNode(*filters)


class Node:
    """
    Represents a node in the filter expression tree.

    The ``&`` (AND), ``|`` (OR) and ``~`` (NOT) operators can be used to combine
    nodes into more complex filters.
    """

    def and_(self, other):
        """
        Returns a new node that combines this node and the given node using AND.
        """
        return AndNode(self, other)

    def or_(self, other):
        """
        Returns a new node that combines this node and the given node using OR.
        """
        return OrNode(self, other)

    def not_(self):
        """
        Returns a new node that negates this node using NOT.
        """
        return NotNode(self)

    def __and__(self, other):
        return self.and_(other)

    def __or__(self, other):
        return self.or_(other)

    def __invert__(self):
        return self.not_()

    def __str__(self):
        return compile_filter(self)


class Expression(namedtuple('_Expression',
                            ['field', 'lookup_type', 'value']), Node):
    """
    Node type for a single expression with a field, a lookup type and a value.

    .. py:attribute:: field

        The attribute to which the expression relates.

    .. py:attribute:: lookup_type

        The lookup type associated with the expression, as a plain string. If no
        lookup type is given, this can be ``None``.

    .. py:attribute:: value

        The value associated with the expression.
    """


class Raw(namedtuple('_Raw', ['filter_str']), Node):
    """
    Node type for an LDAP filter string that is used verbatim.

    Surrounding parentheses are added if they are missing.
    """


class AndNode(Node):
    """
    Node type for combining two or more nodes using AND.
    """
    def __init__(self, first, second, *others):
        self._children = (first, second) + tuple(others)

    @property
    def children(self):
        return self._children

    def and_(self, other):
        # Add a child instead of increasing the tree depth
        return AndNode(*(self._children + (other, )))


class OrNode(Node):
    """
    Node type for combining two or more nodes using OR.
    """
    def __init__(self, first, second, *others):
        self._children = (first, second) + tuple(others)

    @property
    def children(self):
        return self._children

    def or_(self, other):
        return OrNode(*(self._children + (other, )))


class NotNode(Node):
    """
    Node type for negating a node using NOT.
    """
    def __init__(self, node):
        self._child = node

    @property
    def child(self):
        return self._child

    def not_(self):
        # Double negation is just the underlying node
        return self._child


# Maps the supported lookup types to an LDAP search filter template
_LOOKUP_TYPES = {
    'exact'       : '({field}={value})',
    'iexact'      : '({field}={value})',
    'contains'    : '({field}=*{value}*)',
    'icontains'   : '({field}=*{value}*)',
    'startswith'  : '({field}={value}*)',
    'istartswith' : '({field}={value}*)',
    'endswith'    : '({field}=*{value})',
    'iendswith'   : '({field}=*{value})',
    'gte'         : '({field}>={value})',
    'lte'         : '({field}<={value})',
    'approx'      : '({field}~={value})',
    'present'     : '({field}=*)',
}


def _escape(value):
    if isinstance(value, bytes):
        return ldap3.utils.conv.escape_bytes(value)
    return ldap3.utils.conv.escape_filter_chars(str(value))


def compile_filter(node):
    """
    Recursively compiles a :py:class:`Node` into an LDAP filter string.

    Values are escaped, so ``F(cn = 'a*b')`` matches the literal value ``a*b``.

    Raises:
        ValueError: If the node uses an unsupported lookup type.
    """
    if isinstance(node, Raw):
        filter_str = node.filter_str.strip()
        if not filter_str.startswith('('):
            filter_str = '({})'.format(filter_str)
        return filter_str
    elif isinstance(node, Expression):
        # Use 'exact' as the default lookup type
        field, lookup, value = node.field, node.lookup_type or 'exact', node.value
        if lookup == 'in':
            # 'in' is an OR of exact matches
            if not value:
                raise ValueError("At least one value required for 'in' lookup")
            expressions = [Expression(field, 'exact', v) for v in value]
            return compile_filter(reduce(or_, expressions))
        elif lookup == 'present' and not value:
            return compile_filter(~Expression(field, 'present', True))
        elif lookup == 'isnull':
            # isnull is the opposite of present
            return compile_filter(Expression(field, 'present', not value))
        try:
            template = _LOOKUP_TYPES[lookup]
        except KeyError:
            raise ValueError("Unsupported lookup type - {}".format(lookup))
        return template.format(field = field, value = _escape(value))
    elif isinstance(node, AndNode):
        return '(&{})'.format(''.join(compile_filter(c) for c in node.children))
    elif isinstance(node, OrNode):
        return '(|{})'.format(''.join(compile_filter(c) for c in node.children))
    elif isinstance(node, NotNode):
        return '(!{})'.format(compile_filter(node.child))
    raise ValueError("Unknown node type '{}'".format(repr(node)))
