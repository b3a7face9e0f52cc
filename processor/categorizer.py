"""Partition canonical events into display categories."""
import logging
from operator import attrgetter
from typing import Iterable, Optional

from processor.config import PipelineConfig
from processor.models import CanonicalEvent, CategoryPartition

logger = logging.getLogger(__name__)


def is_theater(event: CanonicalEvent, marker: str) -> bool:
    """
    Check whether an event carries the theater type marker.

    Args:
        event: Canonical event
        marker: Theater event type, compared case-insensitively

    Returns:
        True if the event type matches the marker
    """
    return bool(event.event_type) and event.event_type.casefold() == marker.casefold()


def categorize(
    events: Iterable[CanonicalEvent],
    config: Optional[PipelineConfig] = None
) -> CategoryPartition:
    """
    Split canonical events into theater, ongoing, multi-day and daily buckets.

    Rules are applied in order and the first match wins: theater type,
    longer than the ongoing threshold, longer than one day, otherwise
    daily keyed by start date.

    Args:
        events: Canonical events to categorize
        config: Pipeline configuration with threshold and theater marker

    Returns:
        CategoryPartition containing every input event exactly once
    """
    config = config or PipelineConfig()
    partition = CategoryPartition()

    for event in events:
        if is_theater(event, config.theater_event_type):
            partition.theater.append(event)
        elif event.duration_days > config.ongoing_threshold_days:
            partition.ongoing.append(event)
        elif event.duration_days > 0:
            partition.multiday.append(event)
        else:
            partition.daily.setdefault(event.date_start, []).append(event)

    by_date = attrgetter('date_start', 'title', 'signature')
    by_title = attrgetter('title', 'signature')
    partition.theater.sort(key=by_date)
    partition.ongoing.sort(key=by_title)
    partition.multiday.sort(key=by_date)
    partition.daily = {
        day: sorted(partition.daily[day], key=by_title)
        for day in sorted(partition.daily)
    }

    counts = partition.counts()
    logger.info(
        f"Categorized events: theater={counts['theater']}, "
        f"ongoing={counts['ongoing']}, multiday={counts['multiday']}, "
        f"daily={counts['daily']}"
    )
    return partition
