"""
Core record types for readshelf.

Book records are immutable snapshots. The collection that owns them may
replace a record with an updated copy, but the view engine only ever reads
them.
"""

import re
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class ReadingStatus(Enum):
    """Reading status of a book. Declaration order is the sort order."""
    TO_READ = "to_read"
    READING = "reading"
    READ = "read"
    ON_HOLD = "on_hold"
    DID_NOT_FINISH = "dnf"

    @property
    def ordinal(self) -> int:
        return _STATUS_ORDER[self]

    @property
    def label(self) -> str:
        return _STATUS_LABELS[self]

    @classmethod
    def parse(cls, value: Any) -> 'ReadingStatus':
        """Parse a status from its value, its name or its label."""
        if isinstance(value, cls):
            return value
        text = _normalize(value)
        for status in cls:
            if text in (_normalize(status.value), _normalize(status.name), _normalize(status.label)):
                return status
        raise ValueError(f"Unknown reading status: {value!r}")


def _normalize(value: Any) -> str:
    return re.sub(r'[^a-z]', '', str(value).lower())


_STATUS_ORDER = {status: i for i, status in enumerate(ReadingStatus)}
_STATUS_LABELS = {
    ReadingStatus.TO_READ: "To Read",
    ReadingStatus.READING: "Reading",
    ReadingStatus.READ: "Read",
    ReadingStatus.ON_HOLD: "On Hold",
    ReadingStatus.DID_NOT_FINISH: "Did Not Finish",
}

ALL_STATUSES = frozenset(ReadingStatus)


class SortKey(Enum):
    """Orderings available for a library view."""
    DATE_ADDED = "date_added"
    TITLE = "title"
    AUTHOR = "author"
    RATING = "rating"
    STATUS = "status"

    @classmethod
    def parse(cls, value: Any) -> 'SortKey':
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower().replace('-', '_')
        for key in cls:
            if text in (key.value, key.name.lower()):
                return key
        raise ValueError(f"Unknown sort key: {value!r}")


def normalize_timestamp(value: Any) -> datetime:
    """
    Coerce a timestamp to a naive datetime.

    Accepts datetimes, plain dates (midnight) and ISO-8601 strings, including
    a trailing ``Z``. Aware values are converted to UTC and stripped of their
    zone so every record compares with every other; naive values are kept.

    Raises:
        ValueError: If the value is not a date, datetime or ISO-8601 string
    """
    if isinstance(value, str):
        text = value.strip()
        if text.endswith(('Z', 'z')):
            text = text[:-1] + '+00:00'
        try:
            value = datetime.fromisoformat(text)
        except ValueError:
            raise ValueError(f"Invalid date_added: {value!r}") from None
    elif isinstance(value, date) and not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)
    elif not isinstance(value, datetime):
        raise ValueError(f"date_added must be a datetime, got {value!r}")

    if value.tzinfo is not None and value.utcoffset() is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.replace(tzinfo=None)


@dataclass(frozen=True)
class BookRecord:
    """
    One cataloged book.

    Attributes:
        id: Opaque identifier, stable for the lifetime of the record
        title: Display title (may be empty when unknown)
        authors: Author names in credit order
        status: Current reading status
        on_wishlist: Book is on the wishlist
        owned: Book is owned
        favorite: Book is marked as a favorite
        date_added: When the book was cataloged
        rating: Optional 1-5 rating
    """
    id: str
    title: str = ""
    authors: Tuple[str, ...] = ()
    status: ReadingStatus = ReadingStatus.TO_READ
    on_wishlist: bool = False
    owned: bool = True
    favorite: bool = False
    date_added: datetime = field(default_factory=datetime.now)
    rating: Optional[int] = None

    def __post_init__(self):
        if not self.id:
            raise ValueError("Book record requires a non-empty id")
        if not isinstance(self.authors, tuple):
            object.__setattr__(self, 'authors', tuple(self.authors))
        if not isinstance(self.status, ReadingStatus):
            raise ValueError(f"Invalid reading status: {self.status!r}")
        object.__setattr__(self, 'date_added', normalize_timestamp(self.date_added))
        if self.rating is not None:
            if isinstance(self.rating, bool) or not isinstance(self.rating, int):
                raise ValueError(f"Rating must be an integer, got {self.rating!r}")
            if not 1 <= self.rating <= 5:
                raise ValueError(f"Rating must be between 1 and 5, got {self.rating}")

    @property
    def primary_author(self) -> Optional[str]:
        for name in self.authors:
            if name and name.strip():
                return name
        return None

    @property
    def author_line(self) -> str:
        return " ".join(self.authors)

    def evolve(self, **changes) -> 'BookRecord':
        """Return a copy with the given fields changed."""
        if 'id' in changes and changes['id'] != self.id:
            raise ValueError("Book record id is immutable")
        if 'date_added' in changes and changes['date_added'] != self.date_added:
            raise ValueError("Book record date_added is immutable")
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'title': self.title,
            'authors': list(self.authors),
            'status': self.status.value,
            'wishlist': self.on_wishlist,
            'owned': self.owned,
            'favorite': self.favorite,
            'date_added': self.date_added.isoformat(),
            'rating': self.rating,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BookRecord':
        """Build a record from plain data (as found in YAML/JSON files)."""
        if 'id' not in data:
            raise ValueError(f"Book entry is missing 'id': {data!r}")

        authors = data.get('authors', data.get('author', ()))
        if isinstance(authors, str):
            authors = [authors]

        date_added = data.get('date_added')
        if date_added is None:
            date_added = datetime.now()

        return cls(
            id=str(data['id']),
            title=data.get('title') or "",
            authors=tuple(a for a in (authors or ()) if a is not None),
            status=ReadingStatus.parse(data.get('status', ReadingStatus.TO_READ)),
            on_wishlist=bool(data.get('wishlist', False)),
            owned=bool(data.get('owned', True)),
            favorite=bool(data.get('favorite', False)),
            date_added=date_added,
            rating=data.get('rating'),
        )

    def __repr__(self):
        return f"<BookRecord(id={self.id!r}, title='{self.title[:50]}')>"
