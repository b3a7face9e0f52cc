"""Conversion of adapter payloads into raw events."""
import logging
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from processor.durations import infer_end_date
from processor.models import RawEvent, Source

logger = logging.getLogger(__name__)

DATE_FORMATS = [
    '%Y-%m-%d',      # ISO 8601
    '%d.%m.%Y',      # Polish format
    '%d-%m-%Y',      # Polish format with dashes
    '%Y/%m/%d',      # Alternative ISO format
]


def parse_date(value: Any) -> Optional[date]:
    """
    Parse a date from a payload value.

    Args:
        value: date instance or string in one of DATE_FORMATS

    Returns:
        date or None if parsing fails
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value.strip(), fmt).date()
        except ValueError:
            continue

    return None


def parse_raw_event(item: Dict[str, Any]) -> Optional[RawEvent]:
    """
    Build a RawEvent from one adapter record.

    A missing end date is synthesized from the title and description,
    which is how long-running exhibitions get their span.

    Args:
        item: Adapter record dictionary

    Returns:
        RawEvent or None if a field cannot be interpreted
    """
    title = str(item.get('title') or '').strip()

    try:
        source = Source(str(item.get('source', '')).strip().lower())
    except ValueError:
        logger.warning(f"Unknown source {item.get('source')!r} for event '{title}'")
        return None

    date_start = parse_date(item.get('date_start'))
    if date_start is None:
        logger.warning(
            f"Invalid start date for event '{title}': {item.get('date_start')!r}"
        )
        return None

    if item.get('date_end'):
        date_end = parse_date(item['date_end'])
        if date_end is None:
            logger.warning(
                f"Invalid end date for event '{title}': {item.get('date_end')!r}"
            )
            return None
    else:
        date_end = infer_end_date(title, item.get('description'), date_start)

    url = str(item.get('url') or '').strip()

    return RawEvent(
        source=source,
        title=title,
        date_start=date_start,
        date_end=date_end,
        url=url,
        event_type=str(item.get('event_type') or '').strip() or None,
        time=str(item.get('time') or '').strip() or None
    )


def parse_raw_events(items: Iterable[Dict[str, Any]]) -> Tuple[List[RawEvent], int]:
    """
    Convert adapter records into raw events.

    Records with empty titles or reversed dates are passed through so the
    reconciler can reject them; only records that cannot be represented
    as a RawEvent at all are dropped here.

    Args:
        items: Adapter record dictionaries

    Returns:
        Tuple of (raw events, count of unparseable records)
    """
    events = []
    skipped = 0

    for item in items:
        if not isinstance(item, dict):
            logger.warning(f"Skipping non-object record: {item!r}")
            skipped += 1
            continue

        event = parse_raw_event(item)
        if event is None:
            skipped += 1
            continue
        events.append(event)

    logger.info(f"Parsed {len(events)} raw events ({skipped} unparseable)")
    return events, skipped


def filter_by_date_range(
    records: Iterable[RawEvent],
    start: date,
    end: date
) -> List[RawEvent]:
    """
    Keep raw events whose span overlaps the given range.

    Records that are not well formed are kept regardless of their dates
    so the reconciler rejects and counts them.

    Args:
        records: Raw events
        start: First day of the range
        end: Last day of the range

    Returns:
        Raw events overlapping [start, end], plus malformed records
    """
    kept = []
    filtered_out = []

    for record in records:
        if not record.is_well_formed():
            kept.append(record)
        elif record.date_start <= end and record.date_end >= start:
            kept.append(record)
        else:
            filtered_out.append(record)

    if filtered_out:
        logger.info(
            f"Filtered out {len(filtered_out)} events outside range {start} - {end}"
        )
        for record in filtered_out:
            logger.debug(
                f"Filtered out {record.title} ({record.date_start} - "
                f"{record.date_end}) from {record.source.value}"
            )

    return kept
