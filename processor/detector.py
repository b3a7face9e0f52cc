"""Detect events that were not present in the previous run."""
import logging
from typing import Iterable, List

from processor.models import CanonicalEvent
from processor.signature import generate_signature

logger = logging.getLogger(__name__)


def detect_new(
    current: Iterable[CanonicalEvent],
    baseline: Iterable[CanonicalEvent]
) -> List[CanonicalEvent]:
    """
    Return events in ``current`` whose signature is absent from ``baseline``.

    Baseline signatures are recomputed from titles so events reloaded from
    storage compare the same way as freshly reconciled ones. An empty
    baseline means a first run and every current event is new.

    Args:
        current: Freshly categorized events for one bucket
        baseline: Previously persisted events for the same bucket

    Returns:
        New events sorted by title
    """
    known = {generate_signature(event.title) for event in baseline}

    new_events = []
    for event in current:
        if generate_signature(event.title) not in known:
            logger.debug(f"New event detected: {event.title}")
            new_events.append(event)

    if not known:
        logger.info(f"No baseline found, reporting all {len(new_events)} events as new")
    else:
        logger.info(f"Found {len(new_events)} new events against {len(known)} known")

    return sorted(new_events, key=lambda e: (e.title, e.signature))
