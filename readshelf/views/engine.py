"""
Predicate and sort engine.

Turns a snapshot of book records plus a Criteria value into the ordered,
deduplicated listing shown to the user:

    materialize(records, criteria) = sort(dedupe(filter(records)))

Every stage is a pure function over immutable inputs, so the engine can be
called from anywhere without coordination.
"""

import unicodedata
from operator import itemgetter
from typing import Iterable, List, Optional, Sequence, Tuple

from ..criteria import Criteria
from ..models import BookRecord, SortKey


def materialize(records: Iterable[BookRecord], criteria: Criteria) -> List[BookRecord]:
    """
    Evaluate criteria against a snapshot of records.

    Args:
        records: Current records, in collection order (may contain duplicate ids)
        criteria: Filter, search and ordering to apply

    Returns:
        New list of records, one per id, ordered per ``criteria.sort_key``
    """
    needle = normalize_search(criteria.search_text)
    selected = [book for book in records if matches(book, criteria, needle)]
    return sort_records(dedupe(selected), criteria.sort_key, criteria.reverse)


# =========================================================================
# Filtering
# =========================================================================

def normalize_search(text: str) -> str:
    return text.strip().casefold()


def matches(book: BookRecord, criteria: Criteria, needle: Optional[str] = None) -> bool:
    """Single conjunction over search, status and flag filters."""
    if needle is None:
        needle = normalize_search(criteria.search_text)

    if book.status not in criteria.statuses:
        return False
    if criteria.wishlist_only and not book.on_wishlist:
        return False
    if criteria.owned_only and not book.owned:
        return False
    if criteria.favorites_only and not book.favorite:
        return False
    if not needle:
        return True
    return needle in book.title.casefold() or needle in book.author_line.casefold()


def dedupe(books: Iterable[BookRecord]) -> List[BookRecord]:
    """Drop repeated ids; the first occurrence keeps its position."""
    seen = set()
    unique = []
    for book in books:
        if book.id in seen:
            continue
        seen.add(book.id)
        unique.append(book)
    return unique


# =========================================================================
# Ordering
# =========================================================================

def fold_diacritics(text: str) -> str:
    """Strip combining marks: 'Émile' -> 'Emile'."""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(char for char in decomposed if not unicodedata.combining(char))


def collation_key(text: str) -> Tuple[str, str]:
    """
    Case- and accent-insensitive sort key for display strings.

    Accented letters sort with their base letter; the casefolded original
    breaks ties so 'Emile' and 'Émile' still order deterministically.
    """
    folded = text.casefold()
    return fold_diacritics(folded), folded


def _title(book: BookRecord):
    title = book.title.strip()
    return collation_key(title) if title else None


def _author(book: BookRecord):
    author = book.primary_author
    return collation_key(author.strip()) if author else None


# key function, natural direction is descending, key may be missing
_ORDERINGS: dict = {
    SortKey.DATE_ADDED: (lambda book: book.date_added, True, False),
    SortKey.TITLE: (_title, False, True),
    SortKey.AUTHOR: (_author, False, True),
    SortKey.RATING: (lambda book: book.rating or 0, True, False),
    SortKey.STATUS: (lambda book: book.status.ordinal, False, False),
}


def sort_records(
    books: Sequence[BookRecord],
    sort_key: SortKey,
    reverse: bool = False
) -> List[BookRecord]:
    """
    Order records by a sort key.

    Sorting is stable: records with equal keys keep their incoming order.
    Records with no title (or no author, for author ordering) always go
    last, whatever the direction.

    Args:
        books: Records to order
        sort_key: Ordering to apply
        reverse: Flip the natural direction of the sort key
    """
    get_key, descending, may_be_missing = _ORDERINGS[sort_key]
    descending = descending != reverse

    if not may_be_missing:
        return sorted(books, key=get_key, reverse=descending)

    keyed: List[Tuple[object, BookRecord]] = []
    missing: List[BookRecord] = []
    for book in books:
        key = get_key(book)
        if key is None:
            missing.append(book)
        else:
            keyed.append((key, book))

    keyed.sort(key=itemgetter(0), reverse=descending)
    return [book for _, book in keyed] + missing
