"""Reconciliation pipeline tying the processing stages together."""
import logging
from datetime import date
from typing import Iterable, Optional

from processor.categorizer import categorize
from processor.config import PipelineConfig
from processor.detector import detect_new
from processor.models import CanonicalEvent, PipelineResult, RawEvent
from processor.reconciler import Reconciler
from processor.rollover import rollover

logger = logging.getLogger(__name__)


def run_pipeline(
    records: Iterable[RawEvent],
    upcoming_store: Iterable[CanonicalEvent],
    ongoing_store: Iterable[CanonicalEvent],
    now: date,
    config: Optional[PipelineConfig] = None
) -> PipelineResult:
    """
    Run one reconciliation pass over freshly scraped records.

    Persisted upcoming events are rolled over first, then the records are
    reconciled and categorized, and the ongoing bucket is diffed against
    the persisted ongoing events.

    Args:
        records: Raw events from all sources
        upcoming_store: Previously persisted upcoming events
        ongoing_store: Previously persisted ongoing events
        now: Reference date for rollover
        config: Pipeline configuration

    Returns:
        PipelineResult for the storage layer and the response summary
    """
    config = config or PipelineConfig()

    rolled = rollover(upcoming_store, now)

    reconciled = Reconciler(config).fold(records)
    partition = categorize(reconciled.events.values(), config)

    new_ongoing = detect_new(partition.ongoing, ongoing_store)

    logger.info(
        f"Pipeline finished: {len(reconciled.events)} canonical events, "
        f"{len(new_ongoing)} new ongoing, {len(rolled.archived)} archived, "
        f"{reconciled.skipped} skipped"
    )

    return PipelineResult(
        partition=partition,
        new_ongoing=new_ongoing,
        active_upcoming=rolled.active,
        archived=rolled.archived,
        skipped=reconciled.skipped
    )
