"""Move expired persisted events into the archive."""
import logging
from datetime import date
from typing import Iterable

from processor.models import CanonicalEvent, RolloverResult

logger = logging.getLogger(__name__)


def rollover(active_store: Iterable[CanonicalEvent], now: date) -> RolloverResult:
    """
    Split previously persisted active events into current and past.

    Events that ended before ``now`` are archived; an event ending on
    ``now`` stays active.

    Args:
        active_store: Events loaded from the active store
        now: Reference date for this run

    Returns:
        RolloverResult with the remaining active events and the archived delta
    """
    active = []
    archived = []

    for event in active_store:
        if event.date_end < now:
            logger.debug(f"Moving to archive: {event.title} (ended {event.date_end})")
            archived.append(event)
        else:
            active.append(event)

    if archived:
        logger.info(f"Moved {len(archived)} past events to archive")
    else:
        logger.debug("No past events to archive")

    return RolloverResult(active=active, archived=archived)
