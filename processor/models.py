"""Data models for event reconciliation."""
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Dict, List, Optional, Set


class Source(str, Enum):
    """Listing sites that feed raw events."""
    KARNET = 'karnet'
    KRAKOW = 'krakow'


DEFAULT_SOURCE_PRIORITY = (Source.KARNET, Source.KRAKOW)


@dataclass(frozen=True)
class RawEvent:
    """Unreconciled event observation from a single source."""
    source: Source
    title: str
    date_start: date
    date_end: date
    url: str
    event_type: Optional[str] = None
    time: Optional[str] = None

    def is_well_formed(self) -> bool:
        """True when the record has a title, a URL and start <= end."""
        return (
            bool(self.title and self.title.strip())
            and bool(self.url)
            and self.date_end >= self.date_start
        )


@dataclass
class CanonicalEvent:
    """Deduplicated event merged across sources."""
    signature: str
    title: str
    date_start: date
    date_end: date
    urls: Set[str]
    best_source_rank: int
    event_type: Optional[str] = None
    time: Optional[str] = None

    @property
    def duration_days(self) -> int:
        """Whole days between start and end (0 for a single-day event)."""
        return (self.date_end - self.date_start).days

    def preferred_url(self) -> Optional[str]:
        """
        Pick the URL to show for this event.

        Karnet links win since they carry the richest description;
        otherwise the first URL in sorted order.

        Returns:
            URL string or None if the event has no URLs
        """
        if not self.urls:
            return None
        ordered = sorted(self.urls)
        for url in ordered:
            if 'karnet' in url:
                return url
        return ordered[0]


@dataclass
class CategoryPartition:
    """Disjoint grouping of canonical events into display buckets."""
    theater: List[CanonicalEvent] = field(default_factory=list)
    ongoing: List[CanonicalEvent] = field(default_factory=list)
    multiday: List[CanonicalEvent] = field(default_factory=list)
    daily: Dict[date, List[CanonicalEvent]] = field(default_factory=dict)

    def daily_events(self) -> List[CanonicalEvent]:
        """
        Flatten the daily buckets into one list.

        Returns:
            Daily events ordered by date, then by order within each date
        """
        return [
            event
            for day in sorted(self.daily)
            for event in self.daily[day]
        ]

    def upcoming(self) -> List[CanonicalEvent]:
        """Events that belong on the upcoming listing (multi-day and daily)."""
        return self.multiday + self.daily_events()

    def all_events(self) -> List[CanonicalEvent]:
        """Every canonical event in the partition, each exactly once."""
        return self.theater + self.ongoing + self.upcoming()

    def counts(self) -> Dict[str, int]:
        """
        Count events per category.

        Returns:
            Dictionary with theater, ongoing, multiday and daily counts
        """
        return {
            'theater': len(self.theater),
            'ongoing': len(self.ongoing),
            'multiday': len(self.multiday),
            'daily': len(self.daily_events())
        }

    def ongoing_by_type(self, other_label: str = 'Other') -> Dict[str, List[CanonicalEvent]]:
        """
        Group ongoing events by event type for presentation.

        Args:
            other_label: Group name used for events without a type

        Returns:
            Dictionary of type name to events, keys in alphabetical order
        """
        groups: Dict[str, List[CanonicalEvent]] = {}
        for event in self.ongoing:
            groups.setdefault(event.event_type or other_label, []).append(event)
        return {
            name: sorted(groups[name], key=lambda e: e.title)
            for name in sorted(groups)
        }


@dataclass
class RolloverResult:
    """Persisted active events split into still-active and archived."""
    active: List[CanonicalEvent]
    archived: List[CanonicalEvent]


@dataclass
class ReconcileResult:
    """Canonical events keyed by signature plus count of rejected records."""
    events: Dict[str, CanonicalEvent]
    skipped: int


@dataclass
class PipelineResult:
    """Outcome of one reconciliation run."""
    partition: CategoryPartition
    new_ongoing: List[CanonicalEvent]
    active_upcoming: List[CanonicalEvent]
    archived: List[CanonicalEvent]
    skipped: int


@dataclass
class SyncResult:
    """Result of sync operation."""
    added: int
    updated: int
    deleted: int
    errors: list[str]
