from datetime import datetime

from data_processing.loaders import SOURCE_SCHEMAS, Source
from data_processing.record_store import RecordStore


def test_new_store_has_every_source_unavailable_and_empty():
    store = RecordStore()
    assert set(store.snapshots) == set(Source)
    for source in Source:
        assert not store.is_ok(source)
        df = store.collection(source)
        assert df.empty
        assert set(SOURCE_SCHEMAS[source].columns) <= set(df.columns)


def test_replace_swaps_the_whole_collection(wards_payload):
    store = RecordStore()
    first = datetime(2024, 5, 15, 9, 0)
    second = datetime(2024, 5, 15, 9, 5)
    store.replace(Source.WARDS, wards_payload, first)
    assert len(store.collection(Source.WARDS)) == 2

    store.replace(Source.WARDS, wards_payload[:1], second)
    assert len(store.collection(Source.WARDS)) == 1
    assert store.snapshots[Source.WARDS].last_updated == second


def test_failed_source_reads_empty_but_keeps_last_success(wards_payload):
    store = RecordStore()
    fetched = datetime(2024, 5, 15, 9, 0)
    store.replace(Source.WARDS, wards_payload, fetched)
    store.mark_failed(Source.WARDS, "Server error occurred. Please try again later.")

    assert store.collection(Source.WARDS).empty
    snapshot = store.snapshots[Source.WARDS]
    assert snapshot.last_updated == fetched
    assert snapshot.error == "Server error occurred. Please try again later."
    assert Source.WARDS in store.failed_sources()


def test_success_clears_previous_error(wards_payload):
    store = RecordStore()
    store.mark_failed(Source.WARDS, "Network error. Please check your connection.")
    store.replace(Source.WARDS, wards_payload, datetime(2024, 5, 15, 9, 0))
    assert store.is_ok(Source.WARDS)
    assert store.snapshots[Source.WARDS].error is None


def test_statuses_report_per_source(make_store):
    store = make_store(failed={Source.PATIENTS})
    statuses = store.statuses()
    assert statuses["patients"]["ok"] is False
    assert statuses["patients"]["record_count"] == 0
    assert statuses["wards"]["ok"] is True
    assert statuses["wards"]["record_count"] == 2
