"""Unit tests for Reconciler."""
import itertools
from datetime import date

import pytest

from factories import make_raw
from processor.config import PipelineConfig
from processor.models import Source
from processor.reconciler import Reconciler
from processor.signature import generate_signature


@pytest.fixture
def reconciler():
    """Create a Reconciler with default source priority."""
    return Reconciler()


class TestReconciler:
    """Test cases for Reconciler class."""

    def test_merge_by_priority(self, reconciler):
        """Test that Karnet data wins and URLs from both sources are kept."""
        records = [
            make_raw(
                "Jazz Festival",
                source=Source.KARNET,
                event_type="Festiwale",
                date_start=date(2025, 6, 30),
                date_end=date(2025, 9, 7),
                url="u1"
            ),
            make_raw(
                "jazz festival!!",
                source=Source.KRAKOW,
                date_start=date(2025, 7, 1),
                date_end=date(2025, 7, 1),
                url="u2"
            )
        ]

        events = reconciler.reconcile(records)

        assert len(events) == 1
        event = events[generate_signature("Jazz Festival")]
        assert event.title == "Jazz Festival"
        assert event.event_type == "Festiwale"
        assert event.date_start == date(2025, 6, 30)
        assert event.date_end == date(2025, 9, 7)
        assert event.urls == {"u1", "u2"}
        assert event.best_source_rank == 0
        assert event.duration_days == 69

    def test_better_source_arriving_later_overrides(self, reconciler):
        """Test that a higher priority record overwrites earlier fields."""
        records = [
            make_raw("Koncert", source=Source.KRAKOW, time="18:00", url="u2"),
            make_raw(
                "KONCERT",
                source=Source.KARNET,
                event_type="Koncerty",
                time="19:00",
                url="u1"
            )
        ]

        event = reconciler.reconcile(records)[generate_signature("Koncert")]

        assert event.title == "KONCERT"
        assert event.event_type == "Koncerty"
        assert event.time == "19:00"
        assert event.urls == {"u1", "u2"}
        assert event.best_source_rank == 0

    def test_merge_is_order_independent(self, reconciler):
        """Test that every permutation of duplicates gives the same result."""
        records = [
            make_raw(
                "Noc Jazzu",
                source=Source.KARNET,
                date_start=date(2025, 8, 1),
                date_end=date(2025, 8, 3),
                url="u1"
            ),
            make_raw(
                "noc jazzu",
                source=Source.KRAKOW,
                date_start=date(2025, 8, 2),
                url="u2"
            ),
            make_raw(
                "noc jazzu",
                source=Source.KRAKOW,
                date_start=date(2025, 8, 2),
                url="u3"
            )
        ]

        results = [
            reconciler.reconcile(list(order))
            for order in itertools.permutations(records)
        ]

        first = results[0]
        for result in results[1:]:
            assert result == first
        event = first[generate_signature("Noc Jazzu")]
        assert event.title == "Noc Jazzu"
        assert event.urls == {"u1", "u2", "u3"}

    def test_equal_rank_first_seen_wins(self, reconciler):
        """Test that among equal ranks the first record keeps its fields."""
        records = [
            make_raw("Opera", source=Source.KRAKOW, time="18:00", url="u1"),
            make_raw("opera", source=Source.KRAKOW, time="20:00", url="u2")
        ]

        event = reconciler.reconcile(records)[generate_signature("Opera")]

        assert event.title == "Opera"
        assert event.time == "18:00"
        assert event.urls == {"u1", "u2"}

    def test_duplicate_url_not_repeated(self, reconciler):
        """Test that the same URL seen twice appears once."""
        records = [
            make_raw("Opera", url="u1"),
            make_raw("Opera", url="u1")
        ]

        event = reconciler.reconcile(records)[generate_signature("Opera")]

        assert event.urls == {"u1"}

    def test_custom_priority(self):
        """Test that the declared priority, not call order, decides."""
        config = PipelineConfig(source_priority=(Source.KRAKOW, Source.KARNET))
        records = [
            make_raw("Opera", source=Source.KARNET, time="18:00", url="u1"),
            make_raw("Opera", source=Source.KRAKOW, time="20:00", url="u2")
        ]

        event = Reconciler(config).reconcile(records)[generate_signature("Opera")]

        assert event.time == "20:00"
        assert event.best_source_rank == 0

    def test_malformed_records_skipped(self, reconciler):
        """Test that empty titles and reversed dates are rejected."""
        records = [
            make_raw("   "),
            make_raw(
                "Backwards",
                date_start=date(2025, 8, 20),
                date_end=date(2025, 8, 10)
            ),
            make_raw("Valid Event")
        ]

        result = reconciler.fold(records)

        assert result.skipped == 2
        assert list(result.events) == [generate_signature("Valid Event")]

    def test_rejected_record_is_not_merged(self, reconciler):
        """Test that a malformed duplicate does not contribute its URL."""
        records = [
            make_raw("Opera", url="u1"),
            make_raw(
                "Opera",
                url="u2",
                date_start=date(2025, 8, 20),
                date_end=date(2025, 8, 1)
            )
        ]

        event = reconciler.reconcile(records)[generate_signature("Opera")]

        assert event.urls == {"u1"}

    def test_input_records_not_mutated(self, reconciler):
        """Test that earlier canonical values are not changed by merging."""
        first = reconciler.reconcile([make_raw("Opera", url="u1")])
        event_before = first[generate_signature("Opera")]

        reconciler.reconcile([make_raw("Opera", url="u1"), make_raw("Opera", url="u2")])

        assert event_before.urls == {"u1"}

    def test_empty_input(self, reconciler):
        """Test that no records produce no canonical events."""
        result = reconciler.fold([])

        assert result.events == {}
        assert result.skipped == 0


class TestCanonicalEvent:
    """Test cases for CanonicalEvent helpers."""

    def test_preferred_url_favours_karnet(self):
        """Test that a Karnet link is chosen over other sources."""
        event = Reconciler().reconcile([
            make_raw("Opera", source=Source.KRAKOW, url="https://www.krakow.pl/opera"),
            make_raw("Opera", source=Source.KARNET, url="https://karnet.krakowculture.pl/opera")
        ])[generate_signature("Opera")]

        assert event.preferred_url() == "https://karnet.krakowculture.pl/opera"

    def test_preferred_url_falls_back_to_first(self):
        """Test that without a Karnet link the first sorted URL is used."""
        event = Reconciler().reconcile([
            make_raw("Opera", source=Source.KRAKOW, url="https://www.krakow.pl/b"),
            make_raw("Opera", source=Source.KRAKOW, url="https://www.krakow.pl/a")
        ])[generate_signature("Opera")]

        assert event.preferred_url() == "https://www.krakow.pl/a"
