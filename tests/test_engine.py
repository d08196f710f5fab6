"""
Tests for the predicate and sort engine.

Tests cover:
- Filtering (search, status, wishlist/owned/favorites flags)
- Deduplication by id
- Ordering for every sort key, including missing values and reverse
- Determinism
"""

import random
from datetime import date, datetime, timedelta, timezone

import pytest

from readshelf.criteria import Criteria
from readshelf.models import BookRecord, ReadingStatus, SortKey
from readshelf.views.engine import dedupe, matches, materialize, sort_records

BASE_DATE = datetime(2024, 1, 1)


def book(book_id, day=0, **kwargs):
    """Build a record added ``day`` days after BASE_DATE."""
    return BookRecord(id=book_id, date_added=BASE_DATE + timedelta(days=day), **kwargs)


def ids(books):
    return [b.id for b in books]


@pytest.fixture
def shelf():
    """Small library with a mix of statuses, flags and ratings."""
    return [
        book("1", 1, title="The Left Hand of Darkness", authors=("Ursula K. Le Guin",),
             status=ReadingStatus.READ, favorite=True, rating=5),
        book("2", 2, title="Dune", authors=("Frank Herbert",),
             status=ReadingStatus.READING, rating=4),
        book("3", 3, title="Piranesi", authors=("Susanna Clarke",),
             on_wishlist=True, owned=False),
        book("4", 4, title="A Wizard of Earthsea", authors=("Ursula K. Le Guin",),
             status=ReadingStatus.ON_HOLD, favorite=True, rating=3),
        book("5", 5, title="Infinite Jest", authors=("David Foster Wallace",),
             status=ReadingStatus.DID_NOT_FINISH, rating=2),
    ]


# =============================================================================
# Scenarios
# =============================================================================


class TestScenarios:
    """End-to-end materialization scenarios."""

    def test_date_added_newest_first(self):
        """Given A(1), B(3), C(2), when sorted by date added, then B, C, A."""
        records = [book("A", 1), book("B", 3), book("C", 2)]

        result = materialize(records, Criteria(search_text="", sort_key=SortKey.DATE_ADDED))

        assert ids(result) == ["B", "C", "A"]

    def test_duplicate_id_appears_once(self):
        """Given two records with id X, when materialized, then X appears once."""
        records = [book("X", 1, title="First"), book("Y", 2), book("X", 3, title="Second")]

        result = materialize(records, Criteria())

        assert ids(result).count("X") == 1
        assert [b.title for b in result if b.id == "X"] == ["First"]


# =============================================================================
# Filtering
# =============================================================================


class TestFiltering:
    """Single-conjunction filtering."""

    def test_default_criteria_keeps_everything(self, shelf):
        assert len(materialize(shelf, Criteria())) == len(shelf)

    def test_search_matches_title_case_insensitively(self, shelf):
        result = materialize(shelf, Criteria(search_text="EARTHSEA"))
        assert ids(result) == ["4"]

    def test_search_matches_author(self, shelf):
        result = materialize(shelf, Criteria(search_text="le guin"))
        assert set(ids(result)) == {"1", "4"}

    def test_search_matches_across_author_names(self):
        """Author names are joined with spaces before matching."""
        records = [book("1", title="Good Omens", authors=("Terry Pratchett", "Neil Gaiman"))]
        assert ids(materialize(records, Criteria(search_text="pratchett neil"))) == ["1"]

    def test_blank_search_is_vacuous(self, shelf):
        assert len(materialize(shelf, Criteria(search_text="   "))) == len(shelf)

    def test_search_without_match(self, shelf):
        assert materialize(shelf, Criteria(search_text="tolkien")) == []

    def test_status_filter(self, shelf):
        criteria = Criteria(statuses={ReadingStatus.READ, ReadingStatus.READING})
        assert set(ids(materialize(shelf, criteria))) == {"1", "2"}

    def test_wishlist_only(self, shelf):
        assert ids(materialize(shelf, Criteria(wishlist_only=True))) == ["3"]

    def test_owned_only(self, shelf):
        assert "3" not in ids(materialize(shelf, Criteria(owned_only=True)))

    def test_favorites_only(self, shelf):
        assert set(ids(materialize(shelf, Criteria(favorites_only=True)))) == {"1", "4"}

    def test_filters_combine_as_conjunction(self, shelf):
        criteria = Criteria(
            search_text="guin",
            favorites_only=True,
            statuses={ReadingStatus.ON_HOLD},
        )
        assert ids(materialize(shelf, criteria)) == ["4"]

    def test_matches_computes_needle_when_omitted(self, shelf):
        assert matches(shelf[1], Criteria(search_text="dune"))
        assert not matches(shelf[1], Criteria(search_text="piranesi"))


# =============================================================================
# Deduplication
# =============================================================================


class TestDedupe:
    """First occurrence wins; order is preserved."""

    def test_dedupe_keeps_first_position(self):
        records = [book("a"), book("b"), book("a"), book("c"), book("b")]
        assert ids(dedupe(records)) == ["a", "b", "c"]

    def test_dedupe_applies_after_filtering(self):
        """A filtered-out first copy does not hide a matching later copy."""
        records = [
            book("x", 1, title="Hidden", favorite=False),
            book("x", 1, title="Shown", favorite=True),
        ]
        result = materialize(records, Criteria(favorites_only=True))
        assert [b.title for b in result] == ["Shown"]

    def test_output_never_has_duplicates(self):
        rng = random.Random(7)
        records = [book(str(rng.randint(0, 20)), rng.randint(0, 30)) for _ in range(200)]
        for key in SortKey:
            result = materialize(records, Criteria(sort_key=key))
            assert len(ids(result)) == len(set(ids(result)))


# =============================================================================
# Ordering
# =============================================================================


class TestOrdering:
    """Ordering for each sort key."""

    def test_title_ascending_case_insensitive(self):
        records = [book("1", title="banana"), book("2", title="Apple"), book("3", title="cherry")]
        assert ids(sort_records(records, SortKey.TITLE)) == ["2", "1", "3"]

    def test_empty_titles_sort_last(self):
        records = [book("1", title=""), book("2", title="Zebra"), book("3", title="  ")]
        assert ids(sort_records(records, SortKey.TITLE)) == ["2", "1", "3"]

    def test_empty_titles_stay_last_when_reversed(self):
        records = [book("1", title=""), book("2", title="Apple"), book("3", title="Zebra")]
        assert ids(sort_records(records, SortKey.TITLE, reverse=True)) == ["3", "2", "1"]

    def test_author_uses_first_author(self):
        records = [
            book("1", authors=("Zadie Smith", "Aaron Aaronson")),
            book("2", authors=("Mary Shelley",)),
        ]
        assert ids(sort_records(records, SortKey.AUTHOR)) == ["2", "1"]

    def test_missing_author_sorts_last(self):
        records = [book("1"), book("2", authors=("Octavia Butler",)), book("3", authors=("",))]
        assert ids(sort_records(records, SortKey.AUTHOR)) == ["2", "1", "3"]

    def test_rating_descending_missing_as_zero(self):
        records = [book("1", rating=3), book("2"), book("3", rating=5), book("4", rating=1)]
        assert ids(sort_records(records, SortKey.RATING)) == ["3", "1", "4", "2"]

    def test_status_follows_declaration_order(self):
        records = [
            book("dnf", status=ReadingStatus.DID_NOT_FINISH),
            book("read", status=ReadingStatus.READ),
            book("tbr", status=ReadingStatus.TO_READ),
            book("hold", status=ReadingStatus.ON_HOLD),
            book("reading", status=ReadingStatus.READING),
        ]
        assert ids(sort_records(records, SortKey.STATUS)) == ["tbr", "reading", "read", "hold", "dnf"]

    def test_reverse_date_added_is_oldest_first(self):
        records = [book("A", 1), book("B", 3), book("C", 2)]
        assert ids(sort_records(records, SortKey.DATE_ADDED, reverse=True)) == ["A", "C", "B"]

    def test_ties_keep_incoming_order(self):
        records = [book("1", rating=4), book("2", rating=4), book("3", rating=4)]
        assert ids(sort_records(records, SortKey.RATING)) == ["1", "2", "3"]

    def test_accented_titles_sort_with_base_letter(self):
        records = [book("z", title="Zed"), book("e", title="Émile"), book("a", title="apple")]
        assert ids(sort_records(records, SortKey.TITLE)) == ["a", "e", "z"]

    def test_accented_authors_sort_with_base_letter(self):
        records = [
            book("1", authors=("Zola",)),
            book("2", authors=("Özdemir",)),
            book("3", authors=("élodie Roux",)),
        ]
        assert ids(sort_records(records, SortKey.AUTHOR)) == ["3", "2", "1"]

    def test_accent_only_difference_is_deterministic(self):
        records = [book("1", title="Émile"), book("2", title="Emile")]
        assert ids(sort_records(records, SortKey.TITLE)) == ids(sort_records(records[::-1], SortKey.TITLE))

    def test_mixed_naive_and_aware_dates(self):
        """Dates from files with and without a zone sort together."""
        records = [
            BookRecord(id="plain", date_added=date(2024, 3, 1)),
            BookRecord(id="utc", date_added=datetime(2024, 3, 2, 10, tzinfo=timezone.utc)),
            BookRecord(id="offset", date_added="2024-03-01T12:00:00+02:00"),
            BookRecord(id="zulu", date_added="2024-03-03T00:00:00Z"),
        ]
        assert ids(materialize(records, Criteria())) == ["zulu", "utc", "offset", "plain"]


# =============================================================================
# Purity
# =============================================================================


class TestDeterminism:
    """Identical inputs give identical outputs; inputs are untouched."""

    def test_same_inputs_same_output(self, shelf):
        for key in SortKey:
            criteria = Criteria(search_text="a", sort_key=key)
            assert materialize(shelf, criteria) == materialize(shelf, criteria)

    def test_input_sequence_not_modified(self, shelf):
        before = list(shelf)
        materialize(shelf, Criteria(sort_key=SortKey.TITLE))
        assert shelf == before

    def test_accepts_any_iterable(self, shelf):
        assert ids(materialize(iter(shelf), Criteria())) == ids(materialize(shelf, Criteria()))
