"""Enumeration of remote collections that sit behind a capped result window.

The Auth0 Management API only ever surfaces the first 1000 matches of a user
search, whichever page is requested. To see every user, the query is narrowed
by the trailing characters of ``user_id`` until each narrowed query fits
under that ceiling, and the narrowed queries are then paginated normally.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from auth0_ingestion.errors import ConfigurationFault

logger = logging.getLogger("ingestion.pagination")

# Auth0 user ids end in hex digits, but "f" is never generated.
DEFAULT_ALPHABET = "0123456789abcde"
DEFAULT_CEILING = 1000
DEFAULT_MAX_DEPTH = 3
MAX_PAGE_SIZE = 100
# Auth0 never pages past this many matches of one search.
RESULT_WINDOW = 1000


@dataclass(frozen=True)
class ResultPage:
    """One page of a query, plus the remote system's count of all matches."""

    items: list[Any] = field(default_factory=list)
    total: int = 0

    @property
    def returned_count(self) -> int:
        return len(self.items)


# (suffix, page, per_page) -> ResultPage with totals included
FetchPage = Callable[[str, int, int], ResultPage]
Consumer = Callable[[Any], None]


def check_settings(
    ceiling: int = DEFAULT_CEILING,
    page_size: int = MAX_PAGE_SIZE,
    alphabet: str = DEFAULT_ALPHABET,
) -> None:
    """Reject settings that would recurse forever or never cover the collection."""
    if ceiling <= 1:
        raise ConfigurationFault(
            f"ceiling must be greater than 1, got {ceiling}", ceiling=ceiling
        )
    if not 1 <= page_size <= MAX_PAGE_SIZE:
        raise ConfigurationFault(
            f"page_size must be between 1 and {MAX_PAGE_SIZE}, got {page_size}"
        )
    if not alphabet or len(set(alphabet)) != len(alphabet):
        raise ConfigurationFault(
            f"alphabet must be non-empty without repeats, got {alphabet!r}"
        )


def enumerate_collection(
    fetch_page: FetchPage,
    consumer: Consumer,
    *,
    max_depth: int = DEFAULT_MAX_DEPTH,
    depth: int = 0,
    suffix: str = "",
    ceiling: int = DEFAULT_CEILING,
    page_size: int = MAX_PAGE_SIZE,
    alphabet: str = DEFAULT_ALPHABET,
) -> int:
    """Hand every record matching ``suffix`` to ``consumer`` exactly once.

    A query whose reported total is below ``ceiling`` is paginated directly.
    Otherwise the query is split into one child per character of
    ``alphabet``, each child constraining one more trailing character of the
    identifier, and the children are enumerated depth-first in alphabet
    order. The first page of a split query is discarded.

    ``consumer`` is called synchronously, so at most one record is in flight.
    Errors from ``fetch_page`` or ``consumer`` propagate unchanged.

    Returns the number of records handed to ``consumer``.
    """
    if depth > max_depth:
        raise ConfigurationFault(
            f"subdivision depth {depth} exceeds max_depth {max_depth} "
            f"(suffix {suffix!r}, ceiling {ceiling})",
            depth=depth,
            max_depth=max_depth,
            ceiling=ceiling,
        )
    check_settings(ceiling=ceiling, page_size=page_size, alphabet=alphabet)

    first = fetch_page(suffix, 0, page_size)

    if first.total >= ceiling:
        logger.debug(
            "Query total %d at or above ceiling %d, subdividing",
            first.total,
            ceiling,
            extra={"suffix": suffix, "depth": depth, "records": first.total},
        )
        visited = 0
        for char in alphabet:
            visited += enumerate_collection(
                fetch_page,
                consumer,
                max_depth=max_depth,
                depth=depth + 1,
                suffix=char + suffix,
                ceiling=ceiling,
                page_size=page_size,
                alphabet=alphabet,
            )
        return visited

    for item in first.items:
        consumer(item)
    visited = first.returned_count
    left_to_get = first.total - first.returned_count

    page = 1
    while left_to_get > 0:
        result = fetch_page(suffix, page, page_size)
        if not result.items:
            # The collection shrank while we were paging through it.
            logger.warning(
                "Page %d came back empty with %d records still expected",
                page,
                left_to_get,
                extra={"suffix": suffix, "depth": depth},
            )
            break
        for item in result.items:
            consumer(item)
        visited += result.returned_count
        left_to_get -= result.returned_count
        page += 1

    return visited


def iterate_pages(
    fetch_page: Callable[[int, int], list[Any]],
    consumer: Consumer,
    *,
    page_size: int = MAX_PAGE_SIZE,
) -> int:
    """Request pages 0, 1, 2, ... until one comes back empty.

    Only for collections that never approach the result-window ceiling.
    """
    check_settings(page_size=page_size)
    visited = 0
    page = 0
    while True:
        items = fetch_page(page, page_size)
        if not items:
            return visited
        for item in items:
            consumer(item)
        visited += len(items)
        page += 1
