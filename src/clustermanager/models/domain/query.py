"""Parsed form of list query parameters."""

from __future__ import annotations

from dataclasses import dataclass, field

__all__ = [
    "FilterTerm",
    "ListFilter",
    "ListQuery",
    "OrderBy",
]


@dataclass(frozen=True, slots=True)
class FilterTerm:
    """One ``field=value`` term of a filter expression."""

    field: str
    """Name of the field to match."""

    value: str
    """Substring that must appear in the field value."""


@dataclass(frozen=True, slots=True)
class ListFilter:
    """A parsed filter expression.

    The expression is a disjunction of conjunctions: ``AND`` binds tighter
    than ``OR``, so an item matches if every term of any one group matches.
    """

    groups: list[list[FilterTerm]]
    """Groups of terms split at each ``OR``, terms joined by ``AND``."""


@dataclass(frozen=True, slots=True)
class OrderBy:
    """One clause of an ordering expression."""

    field: str
    """Name of the field to sort by."""

    descending: bool = False
    """Whether to sort in descending order."""


@dataclass(frozen=True, slots=True)
class ListQuery:
    """Validated filtering, ordering, and pagination of a list request."""

    page_size: int = 0
    """Maximum number of items to return, or 0 to return all of them."""

    offset: int = 0
    """Index of the first item to return."""

    order_by: list[OrderBy] = field(default_factory=list)
    """Ordering clauses, most significant first."""

    filter: ListFilter | None = None
    """Filter to apply, if any."""
