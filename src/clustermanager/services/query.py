"""Filtering, ordering, and pagination of list results.

Lists of clusters and templates accept the same query parameters:

``filter``
    Terms of the form ``field=value`` joined by ``OR`` or ``AND``, with
    ``AND`` binding tighter, so an item matches if it matches every term of
    any one ``OR``-separated group. A term matches if its value, with any
    ``*`` removed, is a substring of the field. Spaces around ``=`` are
    ignored and additional words extend the value of the preceding term.
``orderBy``
    Comma-separated clauses of the form ``field [asc|desc]``, most
    significant first.
``pageSize`` and ``offset``
    The page of results to return. A page size of 0 returns everything.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping

from ..exceptions import InvalidRequestError
from ..models.domain.query import FilterTerm, ListFilter, ListQuery, OrderBy

__all__ = [
    "QUERY_FIELDS",
    "apply_query",
    "parse_filter",
    "parse_list_query",
    "parse_order_by",
]

QUERY_FIELDS = frozenset(
    {
        "name",
        "kubernetesVersion",
        "providerStatus",
        "lifecyclePhase",
        "version",
    }
)
"""Field names accepted in filters and orderings of any list."""

type FieldGetters[T] = Mapping[str, Callable[[T], str | None]]
"""Accessors for the fields of a list item that queries can refer to."""

_EQUALS_REGEX = re.compile(r"[ \t]*=[ \t]*")


def parse_filter(filter_param: str) -> ListFilter:
    """Parse a filter expression.

    Parameters
    ----------
    filter_param
        Filter expression from the request.

    Returns
    -------
    ListFilter
        Parsed filter.

    Raises
    ------
    InvalidRequestError
        Raised if the expression is empty or malformed, or refers to an
        unknown field.
    """
    if not filter_param:
        raise InvalidRequestError("invalid filter: cannot be empty")
    words = _EQUALS_REGEX.sub("=", filter_param).split()
    groups: list[list[FilterTerm]] = [[]]
    field: str | None = None
    value = ""
    for index, word in enumerate(words):
        last = index == len(words) - 1
        if "=" in word:
            parts = word.split("=")
            if field is not None or len(parts) != 2 or not all(parts):
                raise InvalidRequestError("invalid filter field")
            field, value = parts
        elif word in ("OR", "AND"):
            if field is None or last:
                raise InvalidRequestError("invalid filter field")
            groups[-1].append(FilterTerm(field=field, value=value))
            field = None
            if word == "OR":
                groups.append([])
        elif field is None:
            raise InvalidRequestError("invalid filter field")
        else:
            value = f"{value} {word}"
    if field is None:
        raise InvalidRequestError("invalid filter field")
    groups[-1].append(FilterTerm(field=field, value=value))
    for group in groups:
        if any(t.field not in QUERY_FIELDS for t in group):
            raise InvalidRequestError("invalid filter field")
    return ListFilter(groups=groups)


def parse_order_by(order_by_param: str) -> list[OrderBy]:
    """Parse an ordering expression.

    Parameters
    ----------
    order_by_param
        Ordering expression from the request.

    Returns
    -------
    list of OrderBy
        Parsed clauses, most significant first.

    Raises
    ------
    InvalidRequestError
        Raised if the expression is empty or malformed, or refers to an
        unknown field.
    """
    if not order_by_param.strip():
        raise InvalidRequestError("invalid orderBy field")
    clauses = []
    for clause in order_by_param.split(","):
        words = clause.split()
        if not words or len(words) > 2 or words[0] not in QUERY_FIELDS:
            raise InvalidRequestError("invalid orderBy field")
        descending = False
        if len(words) == 2:
            if words[1] not in ("asc", "desc"):
                raise InvalidRequestError("invalid orderBy field")
            descending = words[1] == "desc"
        clauses.append(OrderBy(field=words[0], descending=descending))
    return clauses


def parse_list_query(
    *,
    page_size: int,
    offset: int,
    order_by: str | None = None,
    filter_param: str | None = None,
) -> ListQuery:
    """Validate and parse the query parameters of a list request.

    Parameters
    ----------
    page_size
        Maximum number of items to return, or 0 for all of them.
    offset
        Index of the first item to return.
    order_by
        Ordering expression, if given.
    filter_param
        Filter expression, if given.

    Returns
    -------
    ListQuery
        Parsed query.

    Raises
    ------
    InvalidRequestError
        Raised if any of the parameters is invalid.
    """
    if page_size < 0 or (page_size == 0 and offset > 0):
        raise InvalidRequestError("invalid pageSize: must be greater than 0")
    if offset < 0:
        raise InvalidRequestError("invalid offset: must be non-negative")
    clauses = parse_order_by(order_by) if order_by is not None else []
    list_filter = None
    if filter_param is not None:
        list_filter = parse_filter(filter_param)
    return ListQuery(
        page_size=page_size,
        offset=offset,
        order_by=clauses,
        filter=list_filter,
    )


def apply_query[T](
    items: list[T], query: ListQuery, fields: FieldGetters[T]
) -> tuple[list[T], int]:
    """Filter, order, and paginate a list.

    Parameters
    ----------
    items
        Items to query.
    query
        Parsed query.
    fields
        Accessors for the fields of the items. A filter term naming a field
        not in here never matches, and ordering by such a field leaves the
        order unchanged.

    Returns
    -------
    tuple
        The requested page of items and the number of items that matched
        the filter.
    """
    if query.filter:
        items = [i for i in items if _matches(i, query.filter, fields)]
    total = len(items)

    # Sort by the least significant clause first. Sorting is stable, so the
    # more significant clauses then take precedence.
    for clause in reversed(query.order_by):
        getter = fields.get(clause.field)
        if not getter:
            continue
        items = sorted(
            items, key=lambda i: getter(i) or "", reverse=clause.descending
        )

    if query.page_size == 0:
        return items, total
    start = query.offset
    return items[start : start + query.page_size], total


def _matches[T](
    item: T, list_filter: ListFilter, fields: FieldGetters[T]
) -> bool:
    return any(
        all(_term_matches(item, t, fields) for t in group)
        for group in list_filter.groups
    )


def _term_matches[T](
    item: T, term: FilterTerm, fields: FieldGetters[T]
) -> bool:
    getter = fields.get(term.field)
    if not getter:
        return False
    value = getter(item)
    if value is None:
        return False
    return term.value.replace("*", "") in value
