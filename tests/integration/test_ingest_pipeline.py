"""
Integration tests for the ingestion pipeline.

Runs CSV files through the real reader, reconciler and detector against the
in-memory remote store.
"""

import threading
from pathlib import Path

import pytest

from leadsync.core.models import SyncMode
from leadsync.ingest import CsvRecordSource, IngestPipeline, Reconciler
from leadsync.remote import DuplicateDetector

from tests.conftest import ADDRESS_FIELD, PHONE1_FIELD, InMemoryRemoteStore


def build_pipeline(store, resolver, payloads, mode=SyncMode.IMPORT, **options):
    detector = DuplicateDetector(store)
    reconciler = Reconciler(store, detector, resolver, payloads, mode=mode)
    return IngestPipeline(reconciler, **options)


def lead(address, phone="", city="Springfield"):
    return {"Address": address, "City": city, "Beds": "3", "Phone1_Number": phone}


@pytest.mark.integration
class TestImportRun:
    """Tests for IMPORT runs"""

    def test_first_run_creates_every_new_address(self, store, resolver, payloads, write_csv):
        write_csv("leads.csv", [lead("123 Main St"), lead("9 Elm St"), lead("44 Oak Ave")])
        summary = build_pipeline(store, resolver, payloads).run(write_csv.directory)
        assert summary.totals()["created"] == 3
        assert summary.files_failed == 0
        assert len(store.items) == 3

    def test_second_run_creates_nothing(self, store, resolver, payloads, write_csv):
        write_csv("leads.csv", [lead("123 Main St"), lead("9 Elm St")])
        pipeline = build_pipeline(store, resolver, payloads)
        pipeline.run(write_csv.directory)
        creates_after_first_run = len(store.calls_to("create"))

        summary = pipeline.run(write_csv.directory)

        assert summary.totals()["created"] == 0
        assert summary.totals()["skipped"] == 2
        assert len(store.calls_to("create")) == creates_after_first_run

    def test_existing_remote_address_is_skipped(self, store, resolver, payloads, write_csv):
        store.seed("123 Main St")
        write_csv("leads.csv", [lead("123 Main St")])
        summary = build_pipeline(store, resolver, payloads).run(write_csv.directory)
        assert summary.totals()["skipped"] == 1
        assert store.calls_to("create") == []

    def test_rows_without_address_are_always_created(self, store, resolver, payloads, write_csv):
        write_csv("leads.csv", [lead(""), lead("  ")])
        summary = build_pipeline(store, resolver, payloads).run(write_csv.directory)
        assert summary.totals()["created"] == 2

    def test_invalid_rows_do_not_stop_the_file(self, store, resolver, payloads, write_csv):
        rows = [lead("1 Elm St"), dict(lead("2 Elm St"), Beds="many"), lead("3 Elm St")]
        write_csv("a.csv", rows)
        summary = build_pipeline(store, resolver, payloads).run(write_csv.directory)
        totals = summary.totals()
        assert totals["created"] == 2
        assert totals["invalid"] == 1

    def test_create_failure_is_isolated(self, store, resolver, payloads, write_csv):
        store.fail_create_addresses.add("2 Elm St")
        write_csv("a.csv", [lead("1 Elm St"), lead("2 Elm St"), lead("3 Elm St")])
        summary = build_pipeline(store, resolver, payloads).run(write_csv.directory)
        assert summary.totals()["created"] == 2
        assert summary.totals()["create_failed"] == 1

    def test_unreadable_file_does_not_stop_the_run(self, store, resolver, payloads, write_csv):
        write_csv("a.csv", [lead("1 Elm St")])
        (write_csv.directory / "b.csv").write_bytes("Address\nCalle Ñandú 5\n".encode("latin-1"))
        write_csv("c.csv", [lead("3 Elm St")])

        summary = build_pipeline(store, resolver, payloads).run(write_csv.directory)

        assert [f.completed for f in summary.files] == [True, False, True]
        assert summary.files_failed == 1
        assert summary.totals()["created"] == 2

    def test_non_csv_entries_are_skipped(self, store, resolver, payloads, write_csv):
        write_csv("a.csv", [lead("1 Elm St")])
        (write_csv.directory / "readme.txt").write_text("not leads")
        (write_csv.directory / "archive").mkdir()
        summary = build_pipeline(store, resolver, payloads).run(write_csv.directory)
        assert [Path(f.path).name for f in summary.files] == ["a.csv"]

    def test_detector_outage_degrades_and_is_counted(self, store, resolver, payloads, write_csv):
        store.seed("123 Main St")
        store.fail_queries = True
        write_csv("a.csv", [lead("123 Main St")])
        summary = build_pipeline(store, resolver, payloads).run(write_csv.directory)
        assert summary.totals()["created"] == 1
        assert summary.totals()["detector_degraded"] == 1

    def test_semicolon_delimited_source(self, store, resolver, payloads, tmp_path):
        (tmp_path / "a.csv").write_text("Address;City\n1 Elm St;Springfield\n")
        pipeline = build_pipeline(store, resolver, payloads, source=CsvRecordSource(delimiter=";"))
        assert pipeline.run(tmp_path).totals()["created"] == 1


@pytest.mark.integration
class TestBackfillRun:
    """Tests for BACKFILL runs"""

    def test_phones_are_merged_onto_existing_items(self, store, resolver, payloads, write_csv):
        a = store.seed("123 Main St")
        b = store.seed("123 Main St")
        write_csv("a.csv", [lead("123 Main St", phone="555-1000"), lead("9 Elm St", phone="555-2000")])

        summary = build_pipeline(store, resolver, payloads, mode=SyncMode.BACKFILL).run(write_csv.directory)

        assert summary.totals()["merged"] == 1
        assert summary.totals()["created"] == 1
        for item_id in (a.item_id, b.item_id):
            assert store.items[item_id].first_value(PHONE1_FIELD) == "555-1000"
        updated_fields = {field_id for _, payload in store.calls_to("update") for field_id in payload}
        assert updated_fields == {PHONE1_FIELD}


@pytest.mark.integration
class TestConcurrency:
    """Tests for bounded concurrency and draining"""

    def test_in_flight_rows_never_exceed_limit(self, resolver, payloads, write_csv):
        store = InMemoryRemoteStore(delay=0.01)
        write_csv("a.csv", [lead(f"{i} Main St") for i in range(40)])
        pipeline = build_pipeline(store, resolver, payloads, max_workers=4, max_in_flight=4)

        summary = pipeline.run(write_csv.directory)

        assert summary.totals()["created"] == 40
        assert 1 <= store.max_active <= 4

    def test_reader_blocks_on_backpressure(self, resolver, payloads, write_csv):
        """The reader never runs more than max_in_flight rows ahead of the workers"""
        store = InMemoryRemoteStore(delay=0.01)
        write_csv("a.csv", [lead(f"{i} Main St") for i in range(30)])
        pipeline = build_pipeline(store, resolver, payloads, max_workers=2, max_in_flight=3)

        lock = threading.Lock()
        counts = {"read": 0, "done": 0}
        ahead = []

        iter_rows = pipeline.source.iter_rows
        process = pipeline.reconciler.process

        def tracking_rows(path):
            for item in iter_rows(path):
                with lock:
                    ahead.append(counts["read"] - counts["done"])
                    counts["read"] += 1
                yield item

        def tracking_process(row_number, row):
            try:
                return process(row_number, row)
            finally:
                with lock:
                    counts["done"] += 1

        pipeline.source.iter_rows = tracking_rows
        pipeline.reconciler.process = tracking_process
        summary = pipeline.run(write_csv.directory)

        assert summary.totals()["created"] == 30
        assert max(ahead) <= 3
        assert counts["done"] == 30

    def test_file_summary_waits_for_every_row(self, resolver, payloads, write_csv):
        store = InMemoryRemoteStore(delay=0.005)
        path = write_csv("a.csv", [lead(f"{i} Main St") for i in range(25)])
        pipeline = build_pipeline(store, resolver, payloads, max_workers=5, max_in_flight=10)

        summary = pipeline.process_file(path)

        assert summary.rows == 25
        assert len(store.items) == 25
        assert store.calls_to("create")
        assert all(record.first_value(ADDRESS_FIELD) for record in store.items.values())

    def test_unexpected_row_error_is_counted(self, store, resolver, payloads, write_csv):
        path = write_csv("a.csv", [lead("1 Elm St"), lead("2 Elm St")])
        pipeline = build_pipeline(store, resolver, payloads, max_workers=1, max_in_flight=1)
        process = pipeline.reconciler.process

        def flaky(row_number, row):
            if row["Address"] == "2 Elm St":
                raise RuntimeError("boom")
            return process(row_number, row)

        pipeline.reconciler.process = flaky
        summary = pipeline.process_file(path)
        assert summary.created == 1
        assert summary.failed == 1

    @pytest.mark.parametrize("workers,in_flight", [(0, 4), (4, 2)])
    def test_invalid_limits(self, store, resolver, payloads, workers, in_flight):
        with pytest.raises(ValueError):
            build_pipeline(store, resolver, payloads, max_workers=workers, max_in_flight=in_flight)


@pytest.mark.integration
def test_fallback_address_rows_are_idempotent(store, resolver, payloads, write_csv):
    write_csv("a.csv", [{"Address": "", "Property Address": "44 Oak Ave", "City": "Springfield"}])
    pipeline = build_pipeline(store, resolver, payloads)

    first = pipeline.run(write_csv.directory)
    second = pipeline.run(write_csv.directory)

    assert first.totals()["created"] == 1
    assert second.totals()["skipped"] == 1
    [record] = store.items.values()
    assert record.first_value(ADDRESS_FIELD) == "44 Oak Ave"
