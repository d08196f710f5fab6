"""
Library views for readshelf.

Turns a live, versioned book collection plus user criteria into a stable
listing for display:

- engine: pure filter/dedupe/sort over a snapshot
- fingerprint: cache key from criteria + collection version
- cache: single-slot memoization of the last listing
- transition: animate-or-replace decision between listings
- service: coalesced recomputation and subscriber notification

Example:
    from readshelf.views import LibraryViewService

    service = LibraryViewService(collection)
    service.subscribe(lambda view: render(view.books, view.transition))
    service.set_search_text('dune')
"""

from .engine import materialize
from .fingerprint import fingerprint
from .cache import MemoCache
from .transition import Transition, TransitionPolicy
from .service import LibraryViewService, MaterializedView

__all__ = [
    'materialize',
    'fingerprint',
    'MemoCache',
    'Transition',
    'TransitionPolicy',
    'LibraryViewService',
    'MaterializedView',
]
