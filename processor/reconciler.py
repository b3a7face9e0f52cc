"""Reconciler for merging raw events from several sources."""
import logging
from typing import Dict, Iterable, Optional

from processor.config import PipelineConfig
from processor.models import CanonicalEvent, RawEvent, ReconcileResult
from processor.signature import generate_signature

logger = logging.getLogger(__name__)


class Reconciler:
    """Folds raw events into canonical events keyed by signature."""

    def __init__(self, config: Optional[PipelineConfig] = None):
        """
        Initialize the reconciler.

        Args:
            config: Pipeline configuration providing the source priority
        """
        self.config = config or PipelineConfig()

    def reconcile(self, records: Iterable[RawEvent]) -> Dict[str, CanonicalEvent]:
        """
        Merge raw events into canonical events.

        Args:
            records: Raw events from any number of sources, in any order

        Returns:
            Dictionary mapping signature to CanonicalEvent
        """
        return self.fold(records).events

    def fold(self, records: Iterable[RawEvent]) -> ReconcileResult:
        """
        Merge raw events and report how many were rejected.

        The most trusted source supplies the scalar fields of each
        canonical event, every contributing record adds its URL. Among
        records of equal rank the first one seen keeps its fields.

        Args:
            records: Raw events from any number of sources

        Returns:
            ReconcileResult with canonical events and skipped count
        """
        events: Dict[str, CanonicalEvent] = {}
        total = 0
        skipped = 0

        for record in records:
            total += 1
            if not self._validate_record(record):
                skipped += 1
                continue

            signature = generate_signature(record.title)
            existing = events.get(signature)
            if existing is None:
                events[signature] = self._seed(signature, record)
            else:
                events[signature] = self._merge(existing, record)

        logger.info(
            f"Reconciled {total - skipped} valid records into {len(events)} "
            f"canonical events ({skipped} skipped)"
        )
        return ReconcileResult(events=events, skipped=skipped)

    def _validate_record(self, record: RawEvent) -> bool:
        """
        Check the invariants a raw event must satisfy before merging.

        Args:
            record: Raw event to validate

        Returns:
            True if valid, False otherwise
        """
        if not record.title or not record.title.strip():
            logger.warning(f"Skipping record from {record.source.value} with empty title")
            return False

        if record.date_end < record.date_start:
            logger.warning(
                f"Skipping '{record.title}' from {record.source.value}: "
                f"end date {record.date_end} before start date {record.date_start}"
            )
            return False

        if not record.url:
            logger.warning(f"Skipping '{record.title}' from {record.source.value}: no url")
            return False

        return True

    def _seed(self, signature: str, record: RawEvent) -> CanonicalEvent:
        """
        Start a canonical event from the first valid record for a signature.

        Args:
            signature: Identity key of the record title
            record: Validated raw event

        Returns:
            New CanonicalEvent carrying the record's fields and URL
        """
        return CanonicalEvent(
            signature=signature,
            title=record.title,
            date_start=record.date_start,
            date_end=record.date_end,
            urls={record.url},
            best_source_rank=self.config.rank(record.source),
            event_type=record.event_type,
            time=record.time
        )

    def _merge(self, existing: CanonicalEvent, record: RawEvent) -> CanonicalEvent:
        """
        Combine a duplicate record into an existing canonical event.

        Returns a new CanonicalEvent; the existing one is left untouched.
        """
        urls = existing.urls | {record.url}
        rank = self.config.rank(record.source)

        if rank < existing.best_source_rank:
            logger.debug(
                f"Merged duplicate '{record.title}': {record.source.value} "
                f"(rank {rank}) overrides rank {existing.best_source_rank}"
            )
            return CanonicalEvent(
                signature=existing.signature,
                title=record.title,
                date_start=record.date_start,
                date_end=record.date_end,
                urls=urls,
                best_source_rank=rank,
                event_type=record.event_type,
                time=record.time
            )

        logger.debug(f"Merged duplicate '{record.title}': added url {record.url}")
        return CanonicalEvent(
            signature=existing.signature,
            title=existing.title,
            date_start=existing.date_start,
            date_end=existing.date_end,
            urls=urls,
            best_source_rank=existing.best_source_rank,
            event_type=existing.event_type,
            time=existing.time
        )
