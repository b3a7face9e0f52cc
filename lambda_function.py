"""AWS Lambda handler for the Kraków event checker."""
import json
import logging
import os
import time
from datetime import date
from typing import Any, Dict, List

from processor.config import ConfigError, PipelineConfig
from processor.ingest import filter_by_date_range, parse_date, parse_raw_events
from processor.models import CanonicalEvent
from processor.pipeline import run_pipeline
from storage.event_store import (
    ONGOING_STORE,
    THEATER_STORE,
    UPCOMING_STORE,
    EventStore,
)


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def _response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    """
    Build a Lambda response with a JSON body.

    Args:
        status_code: HTTP status code
        body: Response payload

    Returns:
        Response dict with statusCode and serialized body
    """
    return {
        'statusCode': status_code,
        'body': json.dumps(body, ensure_ascii=False)
    }


def _summarize_new_events(events: List[CanonicalEvent], limit: int) -> List[str]:
    """Format up to ``limit`` new events as 'type: title' lines."""
    lines = []
    for event in events[:limit]:
        prefix = f"{event.event_type}: " if event.event_type else ""
        lines.append(f"{prefix}{event.title}")
    return lines


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler function for the event checker.

    The invocation payload carries the raw records produced by the site
    adapters::

        {
            "records": [{"source": "karnet", "title": "...", ...}],
            "date_range": {"start": "2025-08-18", "end": "2025-08-25"},
            "run_date": "2025-08-18"
        }

    ``date_range`` and ``run_date`` are optional.

    Args:
        event: Invocation payload
        context: Lambda context object

    Returns:
        Response dict with statusCode and summary statistics
    """
    # Read configuration from environment variables
    table_name = os.environ.get('TABLE_NAME', 'krakow-events')
    log_level = os.environ.get('LOG_LEVEL', 'INFO')

    setup_logging(log_level)
    logger = logging.getLogger(__name__)

    start_time = time.time()

    try:
        config = PipelineConfig.from_env()
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}", exc_info=True)
        return _response(500, {
            'message': 'Invalid configuration',
            'error': str(e),
            'error_type': type(e).__name__
        })

    logger.info(
        "Lambda execution started",
        extra={
            'table_name': table_name,
            'ongoing_threshold_days': config.ongoing_threshold_days
        }
    )

    items = event.get('records', [])
    if not isinstance(items, list):
        logger.error(f"Payload 'records' must be a list, got {type(items).__name__}")
        return _response(400, {'message': "Payload 'records' must be a list"})

    run_date = parse_date(event.get('run_date')) if event.get('run_date') else date.today()
    if run_date is None:
        logger.error(f"Invalid run_date: {event.get('run_date')!r}")
        return _response(400, {'message': 'Invalid run_date'})

    date_range = event.get('date_range')
    range_start = range_end = None
    if date_range:
        range_start = parse_date(date_range.get('start')) if isinstance(date_range, dict) else None
        range_end = parse_date(date_range.get('end')) if isinstance(date_range, dict) else None
        if range_start is None or range_end is None or range_end < range_start:
            logger.error(f"Invalid date_range: {date_range!r}")
            return _response(400, {'message': 'Invalid date_range'})

    try:
        store = EventStore(table_name=table_name)

        # Read persisted state once, before any processing
        existing_upcoming = store.load_baseline(UPCOMING_STORE)
        existing_ongoing = store.load_baseline(ONGOING_STORE)

        raw_events, unparseable = parse_raw_events(items)
        if range_start is not None:
            raw_events = filter_by_date_range(raw_events, range_start, range_end)

        result = run_pipeline(
            raw_events,
            upcoming_store=existing_upcoming,
            ongoing_store=existing_ongoing,
            now=run_date,
            config=config
        )

        # Archive is appended before the active stores are replaced
        archive_result = store.append_archive(result.archived, run_date)
        partition = result.partition
        upcoming_events = partition.upcoming()
        if archive_result.errors:
            # Expired events stay active until they are safely archived
            logger.warning(
                f"Archiving failed, keeping {len(result.archived)} expired events "
                f"in '{UPCOMING_STORE}'"
            )
            upcoming_events = result.archived + upcoming_events

        sync_results = {
            UPCOMING_STORE: store.replace_store(UPCOMING_STORE, upcoming_events),
            ONGOING_STORE: store.replace_store(ONGOING_STORE, partition.ongoing),
            THEATER_STORE: store.replace_store(THEATER_STORE, partition.theater)
        }

        errors = list(archive_result.errors)
        for sync_result in sync_results.values():
            errors.extend(sync_result.errors)

        duration = time.time() - start_time
        skipped = unparseable + result.skipped
        display_limit = config.max_new_events_display

        logger.info(
            "Lambda execution completed successfully",
            extra={
                'duration_seconds': round(duration, 2),
                'new_ongoing': len(result.new_ongoing),
                'archived': len(result.archived),
                'skipped_records': skipped,
                'errors': errors
            }
        )

        return _response(200, {
            'message': 'Event check completed successfully',
            'statistics': {
                'raw_records_received': len(items),
                'skipped_records': skipped,
                'canonical_events': len(partition.all_events()),
                'categories': partition.counts(),
                'archived_events': archive_result.added,
                'retained_upcoming': len(result.active_upcoming),
                'stores': {
                    name: {
                        'added': sync_result.added,
                        'updated': sync_result.updated,
                        'deleted': sync_result.deleted
                    }
                    for name, sync_result in sync_results.items()
                },
                'duration_seconds': round(duration, 2)
            },
            'new_ongoing_events': {
                'count': len(result.new_ongoing),
                'titles': _summarize_new_events(result.new_ongoing, display_limit),
                'links': [
                    new_event.preferred_url()
                    for new_event in result.new_ongoing[:display_limit]
                ]
            },
            'ongoing_by_type': {
                name: len(events)
                for name, events in partition.ongoing_by_type(config.other_type_label).items()
            },
            'errors': errors
        })

    except Exception as e:
        duration = time.time() - start_time

        logger.error(
            f"Lambda execution failed: {str(e)}",
            extra={
                'duration_seconds': round(duration, 2),
                'error_type': type(e).__name__
            },
            exc_info=True
        )

        return _response(500, {
            'message': 'Event check failed',
            'error': str(e),
            'error_type': type(e).__name__,
            'duration_seconds': round(duration, 2)
        })
