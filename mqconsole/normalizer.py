"""
Uniform query normalization.

None of the backends filters or sorts server-side, so every listing is
fetched in full and shaped here: filter, then sort, then slice. The same
function runs for all families, which keeps ``total`` and page boundaries
consistent across the console.
"""

from __future__ import annotations

import locale
from collections.abc import Mapping, Sequence
from typing import Any

from mqconsole.schemas import Page, QueryDescriptor


def _matches(value: Any, needle: str) -> bool:
    if not needle:
        return True
    return needle in str(value or "").lower()


def _sort_key(value: Any) -> tuple[Any, ...]:
    # Strings collate case-insensitively by locale, with case only breaking ties.
    # Numbers and everything else compare natively.
    # The rank keeps values of different types from being compared.
    if isinstance(value, str):
        return (0, locale.strxfrm(value.casefold()), locale.strxfrm(value))
    if isinstance(value, (int, float)):
        return (1, value)
    return (2, value)


def sort_items(
    items: Sequence[Mapping[str, Any]],
    order_by: str,
    descending: bool = False,
) -> list[Mapping[str, Any]]:
    """
    Sort items by one field.

    Items without the field (or with None) follow the sorted ones in
    retrieval order, for both directions.
    """
    keyed = [item for item in items if item.get(order_by) is not None]
    unkeyed = [item for item in items if item.get(order_by) is None]

    ordered = sorted(keyed, key=lambda item: _sort_key(item[order_by]), reverse=descending)
    return ordered + unkeyed


def normalize(
    items: Sequence[Mapping[str, Any]],
    query: QueryDescriptor,
    name_field: str = "name",
    child_name_field: str | None = None,
) -> Page:
    """
    Filter, sort and paginate a full backend listing.

    Args:
        items: Every entity the backend returned, in retrieval order
        query: Listing query
        name_field: Field matched by ``query.name_filter``
        child_name_field: Field matched by ``query.subscription_name_filter``
            (hierarchical kinds only)

    Returns:
        Page whose ``total`` counts the filtered set and whose ``items`` are
        the ``[skip, skip + top)`` slice of it. The input is not modified.
    """
    name_filter = query.name_filter.lower()
    child_filter = query.subscription_name_filter.lower() if child_name_field else ""

    filtered = [
        item for item in items
        if _matches(item.get(name_field), name_filter)
        and (not child_name_field or _matches(item.get(child_name_field), child_filter))
    ]

    if query.order_by:
        filtered = sort_items(filtered, query.order_by, descending=query.order == "desc")

    total = len(filtered)
    page = filtered[query.skip:query.skip + query.top]

    return Page(items=[dict(item) for item in page], total=total)
