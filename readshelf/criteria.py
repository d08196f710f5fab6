"""
View criteria for readshelf.

A Criteria value captures everything the user chose for the current library
view: free-text search, the status filter, the boolean filter flags and the
ordering. Criteria are immutable; derive new ones with ``replace``.

Example:
    from readshelf.criteria import Criteria, get_builtin_criteria

    criteria = get_builtin_criteria('wishlist').replace(search_text='tolkien')
"""

from dataclasses import dataclass, fields, replace
from typing import Any, Dict, FrozenSet, Optional

from .models import ALL_STATUSES, ReadingStatus, SortKey


class CriteriaValidationError(ValueError):
    """Raised when a criteria value breaks the caller contract."""


@dataclass(frozen=True)
class Criteria:
    """
    Immutable description of what the library view should show.

    Two criteria are equal iff every field is equal.
    """
    search_text: str = ""
    statuses: FrozenSet[ReadingStatus] = ALL_STATUSES
    wishlist_only: bool = False
    owned_only: bool = False
    favorites_only: bool = False
    sort_key: SortKey = SortKey.DATE_ADDED
    reverse: bool = False

    def __post_init__(self):
        if not isinstance(self.search_text, str):
            raise CriteriaValidationError(
                f"search_text must be a string, got {type(self.search_text).__name__}"
            )
        if not isinstance(self.statuses, frozenset):
            try:
                object.__setattr__(self, 'statuses', frozenset(self.statuses))
            except TypeError:
                raise CriteriaValidationError(f"statuses must be a set, got {self.statuses!r}")
        if not self.statuses:
            raise CriteriaValidationError("Status filter must include at least one reading status")
        for status in self.statuses:
            if not isinstance(status, ReadingStatus):
                raise CriteriaValidationError(f"Invalid reading status in filter: {status!r}")
        if not isinstance(self.sort_key, SortKey):
            raise CriteriaValidationError(f"Invalid sort key: {self.sort_key!r}")
        for name in ('wishlist_only', 'owned_only', 'favorites_only', 'reverse'):
            if not isinstance(getattr(self, name), bool):
                raise CriteriaValidationError(f"{name} must be a boolean")

    @property
    def is_active(self) -> bool:
        """True when anything besides the search text narrows or reorders the view."""
        return self.replace(search_text="") != DEFAULT_CRITERIA

    def replace(self, **changes) -> 'Criteria':
        return replace(self, **changes)

    def differs_only_in_search(self, other: 'Criteria') -> bool:
        """True if ``other`` differs from this criteria in search_text alone."""
        return (
            self.search_text != other.search_text
            and self.replace(search_text=other.search_text) == other
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'search_text': self.search_text,
            'statuses': [s.value for s in sorted(self.statuses, key=lambda s: s.ordinal)],
            'wishlist_only': self.wishlist_only,
            'owned_only': self.owned_only,
            'favorites_only': self.favorites_only,
            'sort_key': self.sort_key.value,
            'reverse': self.reverse,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Criteria':
        """
        Build criteria from plain data.

        Missing fields take their defaults. Unknown fields, unknown statuses
        and unknown sort keys are rejected.

        Raises:
            CriteriaValidationError: If the data does not describe valid criteria
        """
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise CriteriaValidationError(f"Criteria must be a mapping, got {type(data).__name__}")

        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise CriteriaValidationError(f"Unknown criteria fields: {', '.join(sorted(unknown))}")

        kwargs: Dict[str, Any] = dict(data)
        try:
            if 'statuses' in kwargs:
                statuses = kwargs['statuses']
                if isinstance(statuses, str):
                    statuses = [statuses]
                kwargs['statuses'] = frozenset(ReadingStatus.parse(s) for s in statuses or ())
            if 'sort_key' in kwargs:
                kwargs['sort_key'] = SortKey.parse(kwargs['sort_key'])
        except ValueError as e:
            raise CriteriaValidationError(str(e)) from e

        if kwargs.get('search_text') is None:
            kwargs.pop('search_text', None)
        return cls(**kwargs)


DEFAULT_CRITERIA = Criteria()


# ============================================================================
# Built-in Presets
# ============================================================================

BUILTIN_CRITERIA: Dict[str, Dict[str, Any]] = {
    'all': {
        'description': 'Every book in the library, newest first',
        'criteria': DEFAULT_CRITERIA,
    },
    'wishlist': {
        'description': 'Books on the wishlist',
        'criteria': Criteria(wishlist_only=True),
    },
    'owned': {
        'description': 'Books you own',
        'criteria': Criteria(owned_only=True),
    },
    'favorites': {
        'description': 'Books marked as favorites',
        'criteria': Criteria(favorites_only=True, sort_key=SortKey.TITLE),
    },
    'reading': {
        'description': 'Books currently being read',
        'criteria': Criteria(statuses=frozenset({ReadingStatus.READING})),
    },
    'to-read': {
        'description': 'Books not yet started',
        'criteria': Criteria(statuses=frozenset({ReadingStatus.TO_READ}), sort_key=SortKey.TITLE),
    },
    'finished': {
        'description': 'Books that have been read',
        'criteria': Criteria(statuses=frozenset({ReadingStatus.READ})),
    },
    'top-rated': {
        'description': 'Books ordered by rating',
        'criteria': Criteria(sort_key=SortKey.RATING),
    },
}


def get_builtin_criteria(name: str) -> Optional[Criteria]:
    """Get a built-in preset by name."""
    preset = BUILTIN_CRITERIA.get(name)
    return preset['criteria'] if preset else None


def is_builtin_criteria(name: str) -> bool:
    """Check if a preset name is a built-in."""
    return name in BUILTIN_CRITERIA
