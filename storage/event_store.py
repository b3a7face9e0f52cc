"""DynamoDB-backed persisted stores for canonical events."""
import logging
from datetime import date
from typing import Dict, List, Optional

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError

from processor.models import CanonicalEvent, SyncResult
from processor.signature import generate_signature

logger = logging.getLogger(__name__)

UPCOMING_STORE = 'upcoming'
ONGOING_STORE = 'ongoing'
THEATER_STORE = 'theater'
ARCHIVE_STORE = 'archive'

ACTIVE_STORES = (UPCOMING_STORE, ONGOING_STORE, THEATER_STORE)


class EventStore:
    """Persisted event stores sharing one DynamoDB table.

    Items are keyed by ``store`` (partition key) and ``item_key`` (sort
    key). Active stores use the event signature as item key and are
    replaced wholesale on every run; the archive prefixes the key with
    the archive date and is only ever appended to.
    """

    BATCH_SIZE = 25  # DynamoDB batch operation limit

    def __init__(self, table_name: str):
        """
        Initialize DynamoDB client and table reference.

        Args:
            table_name: Name of the DynamoDB table
        """
        self.table_name = table_name
        self.dynamodb = boto3.resource('dynamodb')
        self.table = self.dynamodb.Table(table_name)
        logger.info(f"Initialized EventStore for table: {table_name}")

    def load_events(self, store: str) -> List[CanonicalEvent]:
        """
        Load all events persisted in one store.

        Args:
            store: Store name (upcoming, ongoing, theater, archive)

        Returns:
            List of CanonicalEvent objects; unreadable items are skipped

        Raises:
            ClientError: If the table cannot be queried
        """
        logger.info(f"Loading events from store '{store}'")
        events = []

        for item in self._query_items(store):
            event = self._item_to_event(item)
            if event:
                events.append(event)

        logger.info(f"Loaded {len(events)} events from store '{store}'")
        return events

    def load_baseline(self, store: str) -> List[CanonicalEvent]:
        """
        Load a store for diffing, treating an unreadable store as empty.

        Args:
            store: Store name

        Returns:
            List of CanonicalEvent objects, empty if the store cannot be read
        """
        try:
            return self.load_events(store)
        except ClientError as e:
            logger.error(
                f"Could not read store '{store}', treating it as empty: {e}"
            )
            return []

    def replace_store(self, store: str, events: List[CanonicalEvent]) -> SyncResult:
        """
        Replace the contents of an active store with the given events.

        Items missing from ``events`` are deleted, changed items are
        rewritten and new items are added.

        Args:
            store: Active store name
            events: Events making up the new store contents

        Returns:
            SyncResult with counts of added, updated, deleted items
        """
        if store == ARCHIVE_STORE:
            raise ValueError("The archive store is append-only")

        logger.info(f"Replacing store '{store}' with {len(events)} events")
        errors = []

        try:
            existing_items = {
                item['item_key']: item for item in self._query_items(store)
            }
        except ClientError as e:
            error_msg = f"Error reading store '{store}' before replace: {e}"
            logger.error(error_msg)
            errors.append(error_msg)
            return SyncResult(added=0, updated=0, deleted=0, errors=errors)

        new_events = {event.signature: event for event in events}

        events_to_add = [
            event for key, event in new_events.items()
            if key not in existing_items
        ]

        events_to_update = [
            event for key, event in new_events.items()
            if key in existing_items and
            self._events_differ(event, existing_items[key])
        ]

        keys_to_delete = [
            key for key in existing_items
            if key not in new_events
        ]

        logger.info(
            f"Replace plan for '{store}': {len(events_to_add)} to add, "
            f"{len(events_to_update)} to update, "
            f"{len(keys_to_delete)} to delete"
        )

        added_count = 0
        updated_count = 0
        deleted_count = 0

        if events_to_add or events_to_update:
            items = [
                self._event_to_item(store, event.signature, event)
                for event in events_to_add + events_to_update
            ]
            write_count = self.batch_write_items(items, errors)
            added_count = min(write_count, len(events_to_add))
            updated_count = write_count - added_count

        if keys_to_delete:
            deleted_count = self.batch_delete_items(store, keys_to_delete, errors)

        logger.info(
            f"Replaced store '{store}': {added_count} added, "
            f"{updated_count} updated, {deleted_count} deleted"
        )

        return SyncResult(
            added=added_count,
            updated=updated_count,
            deleted=deleted_count,
            errors=errors
        )

    def append_archive(
        self,
        events: List[CanonicalEvent],
        archived_on: date
    ) -> SyncResult:
        """
        Append events to the archive store.

        Args:
            events: Events moved out of an active store
            archived_on: Date of the run that archived them

        Returns:
            SyncResult with the count of appended events
        """
        errors = []
        if not events:
            return SyncResult(added=0, updated=0, deleted=0, errors=errors)

        items = [
            self._event_to_item(
                ARCHIVE_STORE,
                f"{archived_on.isoformat()}#{event.signature}",
                event
            )
            for event in events
        ]
        added_count = self.batch_write_items(items, errors)

        logger.info(f"Appended {added_count} events to archive")
        return SyncResult(added=added_count, updated=0, deleted=0, errors=errors)

    def batch_write_items(self, items: List[dict], errors: Optional[List[str]] = None) -> int:
        """
        Write items to DynamoDB in batches of 25 items.

        Args:
            items: DynamoDB items to write
            errors: Optional list collecting error messages

        Returns:
            Count of successfully written items
        """
        if not items:
            return 0

        logger.info(f"Writing {len(items)} items to DynamoDB")
        success_count = 0

        # Process in batches of 25 (DynamoDB limit)
        for i in range(0, len(items), self.BATCH_SIZE):
            batch = items[i:i + self.BATCH_SIZE]

            try:
                with self.table.batch_writer() as writer:
                    for item in batch:
                        writer.put_item(Item=item)
                success_count += len(batch)

            except ClientError as e:
                error_msg = f"Error writing batch {i // self.BATCH_SIZE + 1}: {e}"
                logger.error(error_msg)
                if errors is not None:
                    errors.append(error_msg)
                # Continue processing remaining batches
                continue

        logger.info(f"Successfully wrote {success_count} items")
        return success_count

    def batch_delete_items(
        self,
        store: str,
        item_keys: List[str],
        errors: Optional[List[str]] = None
    ) -> int:
        """
        Delete items from one store in batches of 25 items.

        Args:
            store: Store the items belong to
            item_keys: Sort keys of the items to delete
            errors: Optional list collecting error messages

        Returns:
            Count of successfully deleted items
        """
        if not item_keys:
            return 0

        logger.info(f"Deleting {len(item_keys)} items from store '{store}'")
        success_count = 0

        for i in range(0, len(item_keys), self.BATCH_SIZE):
            batch = item_keys[i:i + self.BATCH_SIZE]

            try:
                with self.table.batch_writer() as writer:
                    for item_key in batch:
                        writer.delete_item(Key={'store': store, 'item_key': item_key})
                success_count += len(batch)

            except ClientError as e:
                error_msg = f"Error deleting batch {i // self.BATCH_SIZE + 1}: {e}"
                logger.error(error_msg)
                if errors is not None:
                    errors.append(error_msg)
                continue

        logger.info(f"Successfully deleted {success_count} items")
        return success_count

    def _query_items(self, store: str) -> List[dict]:
        """
        Query every raw item in one store, following pagination.

        Args:
            store: Store name (partition key value)

        Returns:
            List of DynamoDB items

        Raises:
            ClientError: If a query fails
        """
        response = self.table.query(
            KeyConditionExpression=Key('store').eq(store)
        )
        items = response.get('Items', [])

        # Handle pagination
        while 'LastEvaluatedKey' in response:
            response = self.table.query(
                KeyConditionExpression=Key('store').eq(store),
                ExclusiveStartKey=response['LastEvaluatedKey']
            )
            items.extend(response.get('Items', []))

        return items

    def _item_to_event(self, item: dict) -> Optional[CanonicalEvent]:
        """
        Convert DynamoDB item to CanonicalEvent object.

        The signature is recomputed from the stored title.

        Args:
            item: DynamoDB item dictionary

        Returns:
            CanonicalEvent object or None if conversion fails
        """
        try:
            title = item['title']
            date_start = date.fromisoformat(item['date_start'])
            date_end = date.fromisoformat(item['date_end'])
            urls = set(item['urls'])
            if not title or not urls or date_end < date_start:
                raise ValueError(f"invalid stored event '{title}'")
            return CanonicalEvent(
                signature=generate_signature(title),
                title=title,
                date_start=date_start,
                date_end=date_end,
                urls=urls,
                best_source_rank=int(item.get('best_source_rank', 0)),
                event_type=item.get('event_type'),
                time=item.get('time')
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Failed to convert item to CanonicalEvent: {e}")
            return None

    def _event_to_item(self, store: str, item_key: str, event: CanonicalEvent) -> dict:
        """
        Convert CanonicalEvent object to DynamoDB item.

        Args:
            store: Store name (partition key)
            item_key: Sort key within the store
            event: CanonicalEvent object

        Returns:
            DynamoDB item dictionary
        """
        item = {
            'store': store,
            'item_key': item_key,
            'signature': event.signature,
            'title': event.title,
            'date_start': event.date_start.isoformat(),
            'date_end': event.date_end.isoformat(),
            'urls': sorted(event.urls),
            'best_source_rank': event.best_source_rank
        }

        # Add optional fields if present
        if event.event_type:
            item['event_type'] = event.event_type
        if event.time:
            item['time'] = event.time

        return item

    def _events_differ(self, event: CanonicalEvent, item: dict) -> bool:
        """
        Compare an event with its stored item.

        Args:
            event: Freshly computed CanonicalEvent
            item: Stored DynamoDB item for the same signature

        Returns:
            True if the stored item is out of date, False otherwise
        """
        return (
            event.title != item.get('title') or
            event.event_type != item.get('event_type') or
            event.time != item.get('time') or
            event.date_start.isoformat() != item.get('date_start') or
            event.date_end.isoformat() != item.get('date_end') or
            sorted(event.urls) != sorted(item.get('urls', [])) or
            event.best_source_rank != int(item.get('best_source_rank', -1))
        )
