"""Unit tests for the DynamoDB event store."""
from datetime import date

import boto3
import pytest
from moto import mock_aws

from factories import make_canonical
from storage.event_store import (
    ARCHIVE_STORE,
    ONGOING_STORE,
    UPCOMING_STORE,
    EventStore,
)

TABLE_NAME = 'test-krakow-events'


@pytest.fixture
def dynamodb_table():
    """Create a mock DynamoDB table for testing."""
    with mock_aws():
        dynamodb = boto3.resource('dynamodb', region_name='us-east-1')

        table = dynamodb.create_table(
            TableName=TABLE_NAME,
            KeySchema=[
                {'AttributeName': 'store', 'KeyType': 'HASH'},
                {'AttributeName': 'item_key', 'KeyType': 'RANGE'}
            ],
            AttributeDefinitions=[
                {'AttributeName': 'store', 'AttributeType': 'S'},
                {'AttributeName': 'item_key', 'AttributeType': 'S'}
            ],
            BillingMode='PAY_PER_REQUEST'
        )

        yield table


@pytest.fixture
def event_store(dynamodb_table):
    """Create EventStore instance with mock table."""
    return EventStore(TABLE_NAME)


@pytest.fixture
def sample_event():
    """Create a sample CanonicalEvent for testing."""
    return make_canonical(
        'Jazz Festival',
        date_start=date(2025, 6, 30),
        date_end=date(2025, 9, 7),
        urls={'https://karnet.krakowculture.pl/1', 'https://www.krakow.pl/1'},
        event_type='Festiwale',
        time='19:00'
    )


def test_load_events_empty_store(event_store):
    """Test load_events returns empty list for an empty store."""
    assert event_store.load_events(UPCOMING_STORE) == []


def test_replace_store_round_trip(event_store, sample_event):
    """Test that replaced events load back unchanged."""
    result = event_store.replace_store(ONGOING_STORE, [sample_event])

    assert result.added == 1
    assert result.errors == []
    assert event_store.load_events(ONGOING_STORE) == [sample_event]


def test_optional_fields_omitted(event_store):
    """Test events without type or time survive a round trip."""
    event = make_canonical('Koncert')

    event_store.replace_store(UPCOMING_STORE, [event])
    loaded = event_store.load_events(UPCOMING_STORE)

    assert loaded[0].event_type is None
    assert loaded[0].time is None


def test_stores_are_isolated(event_store, sample_event):
    """Test that stores sharing the table do not see each other's items."""
    event_store.replace_store(ONGOING_STORE, [sample_event])

    assert event_store.load_events(UPCOMING_STORE) == []


def test_replace_store_adds_updates_and_deletes(event_store):
    """Test that replace_store makes the store match the new events exactly."""
    keep = make_canonical('Keep', time='18:00')
    drop = make_canonical('Drop')
    event_store.replace_store(UPCOMING_STORE, [keep, drop])

    changed = make_canonical('Keep', time='20:00')
    added = make_canonical('Added')
    result = event_store.replace_store(UPCOMING_STORE, [changed, added])

    assert result.added == 1
    assert result.updated == 1
    assert result.deleted == 1
    loaded = {e.title: e for e in event_store.load_events(UPCOMING_STORE)}
    assert set(loaded) == {'Keep', 'Added'}
    assert loaded['Keep'].time == '20:00'


def test_replace_store_unchanged_is_noop(event_store, sample_event):
    """Test that identical contents produce no writes."""
    event_store.replace_store(ONGOING_STORE, [sample_event])

    result = event_store.replace_store(ONGOING_STORE, [sample_event])

    assert (result.added, result.updated, result.deleted) == (0, 0, 0)


def test_replace_store_large_batch(event_store):
    """Test replace_store with more than 25 events (batch limit)."""
    events = [make_canonical(f'Event {i}') for i in range(30)]

    result = event_store.replace_store(UPCOMING_STORE, events)

    assert result.added == 30
    assert len(event_store.load_events(UPCOMING_STORE)) == 30


def test_replace_archive_rejected(event_store, sample_event):
    """Test that the archive cannot be replaced."""
    with pytest.raises(ValueError):
        event_store.replace_store(ARCHIVE_STORE, [sample_event])


def test_append_archive_is_append_only(event_store, sample_event):
    """Test that archiving on different days keeps earlier entries."""
    event_store.append_archive([sample_event], date(2025, 9, 8))
    event_store.append_archive([make_canonical('Other')], date(2025, 9, 9))

    titles = sorted(e.title for e in event_store.load_events(ARCHIVE_STORE))

    assert titles == ['Jazz Festival', 'Other']


def test_append_archive_empty(event_store):
    """Test that appending nothing writes nothing."""
    result = event_store.append_archive([], date(2025, 9, 8))

    assert result.added == 0
    assert event_store.load_events(ARCHIVE_STORE) == []


def test_corrupt_items_skipped(event_store, dynamodb_table, sample_event):
    """Test that unreadable items are skipped while valid ones load."""
    event_store.replace_store(ONGOING_STORE, [sample_event])
    dynamodb_table.put_item(Item={
        'store': ONGOING_STORE,
        'item_key': 'broken',
        'title': 'Broken',
        'date_start': 'not-a-date'
    })

    loaded = event_store.load_events(ONGOING_STORE)

    assert [e.title for e in loaded] == ['Jazz Festival']


def test_load_baseline_missing_table_is_empty(dynamodb_table):
    """Test that an unreadable store is treated as a cold start."""
    store = EventStore('missing-table')

    assert store.load_baseline(ONGOING_STORE) == []


def test_signature_recomputed_on_load(event_store, dynamodb_table):
    """Test that the loaded signature is derived from the stored title."""
    event = make_canonical('Jazz Festival')
    event_store.replace_store(ONGOING_STORE, [event])
    dynamodb_table.update_item(
        Key={'store': ONGOING_STORE, 'item_key': event.signature},
        UpdateExpression='SET #sig = :s',
        ExpressionAttributeNames={'#sig': 'signature'},
        ExpressionAttributeValues={':s': 'stale'}
    )

    loaded = event_store.load_events(ONGOING_STORE)

    assert loaded[0].signature == event.signature
