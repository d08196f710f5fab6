"""Aggregated reading statistics."""

from typing import Any, Dict, Iterable

from .models import BookRecord, ReadingStatus


def library_stats(books: Iterable[BookRecord]) -> Dict[str, Any]:
    """
    Get reading statistics for a set of books.

    Returns:
        Dictionary with statistics. ``by_status`` and ``percent_by_status``
        list every status, in declaration order, even when its count is 0.
    """
    by_status = {status.value: 0 for status in ReadingStatus}
    total = favorites = wishlist = owned = rated = rating_sum = 0

    for book in books:
        total += 1
        by_status[book.status.value] += 1
        favorites += book.favorite
        wishlist += book.on_wishlist
        owned += book.owned
        if book.rating is not None:
            rated += 1
            rating_sum += book.rating

    percent_by_status = {
        status: (round(count * 100.0 / total, 1) if total else 0.0)
        for status, count in by_status.items()
    }

    return {
        'total': total,
        'by_status': by_status,
        'percent_by_status': percent_by_status,
        'favorites': favorites,
        'wishlist': wishlist,
        'owned': owned,
        'rated': rated,
        'average_rating': round(rating_sum / rated, 2) if rated else None,
    }
