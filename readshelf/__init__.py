"""
readshelf - a personal reading-library tracker.

Main API:
    from readshelf import BookCollection, BookRecord, Criteria, LibraryViewService
    from readshelf.coalescer import ManualScheduler

    collection = BookCollection()
    collection.add(BookRecord(id="1", title="The Dispossessed", authors=("Ursula K. Le Guin",)))

    service = LibraryViewService(collection, scheduler=ManualScheduler())
    service.subscribe(lambda view: print(view.count, view.transition))

    # Flag and ordering changes apply immediately
    service.update_criteria(service.criteria.replace(favorites_only=True))

    # Search text and collection writes settle after their debounce windows
    service.set_search_text("le guin")
"""

from .models import BookRecord, ReadingStatus, SortKey
from .criteria import Criteria, CriteriaValidationError
from .collection import BookCollection, CollectionSnapshot, SnapshotUnavailableError
from .views import LibraryViewService, MaterializedView, Transition, materialize

__version__ = "0.1.0"
__all__ = [
    "BookRecord",
    "ReadingStatus",
    "SortKey",
    "Criteria",
    "CriteriaValidationError",
    "BookCollection",
    "CollectionSnapshot",
    "SnapshotUnavailableError",
    "LibraryViewService",
    "MaterializedView",
    "Transition",
    "materialize",
]
