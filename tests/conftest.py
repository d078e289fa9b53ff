"""
Pytest configuration and fixtures for leadsync tests

Provides an in-memory remote store, a small field mapping and CSV helpers
shared by unit, integration and E2E tests.
"""
import csv
import threading
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

from leadsync.core.errors import RemoteUnavailable
from leadsync.core.mapping import FieldMappingBuilder, PayloadBuilder, build_resolver
from leadsync.core.models import RemoteRecord

ADDRESS_FIELD = 101
CITY_FIELD = 102
STATE_FIELD = 103
BEDS_FIELD = 104
PHONE1_FIELD = 201
PHONE2_FIELD = 202
EMAIL_FIELD = 301
STATUS_FIELD = 401

T0 = datetime(2024, 10, 9, 15, 0, 0, tzinfo=timezone.utc)


# =======================
# PYTEST CONFIGURATION
# =======================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests that don't require external services"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that run the pipeline against an in-memory store"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests that exercise the CLI"
    )


# =======================
# REMOTE STORE FAKE
# =======================

class InMemoryRemoteStore:
    """
    Thread-safe RemoteStore double.

    Items are kept in Podio's shape (field id -> list of value dicts). Calls
    are recorded, failures can be injected per operation, and the highest
    number of concurrent calls is tracked for backpressure tests.
    """

    def __init__(self, delay: float = 0.0):
        self._lock = threading.Lock()
        self.items: dict[int, RemoteRecord] = {}
        self.calls: list[tuple[str, Any]] = []
        self.delay = delay
        self._next_id = 1000
        self._clock = T0
        self._active = 0
        self.max_active = 0

        self.fail_queries = False
        self.fail_create_addresses: set[str] = set()
        self.fail_update_ids: set[int] = set()
        self.fail_delete_ids: set[int] = set()

    # ---- helpers ----

    def seed(
        self,
        address: str | None,
        *,
        item_id: int | None = None,
        created_on: datetime | None = None,
        revision: int = 0,
        extra_fields: dict[int, Any] | None = None,
    ) -> RemoteRecord:
        """Put an item in the store without recording a call."""
        with self._lock:
            if item_id is None:
                item_id = self._allocate_id()
            fields = {}
            if address is not None:
                fields[ADDRESS_FIELD] = [{"value": address}]
            for field_id, value in (extra_fields or {}).items():
                fields[field_id] = self._to_values(value)
            record = RemoteRecord(
                item_id=item_id,
                fields=fields,
                created_on=created_on or self._tick(),
                revision=revision,
            )
            self.items[item_id] = record
            return record

    def calls_to(self, operation: str) -> list[Any]:
        return [args for op, args in self.calls if op == operation]

    def _allocate_id(self) -> int:
        self._next_id += 1
        return self._next_id

    def _tick(self) -> datetime:
        self._clock += timedelta(seconds=1)
        return self._clock

    @staticmethod
    def _to_values(value: Any) -> list[Any]:
        if isinstance(value, list):
            return list(value)
        return [{"value": value}]

    def _enter(self, operation: str, args: Any) -> None:
        with self._lock:
            self.calls.append((operation, args))
            self._active += 1
            self.max_active = max(self.max_active, self._active)
        if self.delay:
            time.sleep(self.delay)

    def _leave(self) -> None:
        with self._lock:
            self._active -= 1

    # ---- RemoteStore ----

    def create(self, payload: dict[int, Any]) -> RemoteRecord:
        self._enter("create", dict(payload))
        try:
            address = payload.get(ADDRESS_FIELD)
            if address in self.fail_create_addresses:
                raise RemoteUnavailable("create", "injected failure", status_code=500)
            with self._lock:
                item_id = self._allocate_id()
                record = RemoteRecord(
                    item_id=item_id,
                    fields={fid: self._to_values(v) for fid, v in payload.items()},
                    created_on=self._tick(),
                    revision=0,
                )
                self.items[item_id] = record
            return record
        finally:
            self._leave()

    def query(self, filters: dict[int, Any] | None, limit: int, offset: int) -> list[RemoteRecord]:
        self._enter("query", {"filters": dict(filters or {}), "limit": limit, "offset": offset})
        try:
            if self.fail_queries:
                raise RemoteUnavailable("query", "injected failure", status_code=503)
            with self._lock:
                matches = [
                    record
                    for _, record in sorted(self.items.items())
                    if all(record.first_value(fid) == value for fid, value in (filters or {}).items())
                ]
            return matches[offset:offset + limit]
        finally:
            self._leave()

    def update(self, item_id: int, payload: dict[int, Any]) -> int:
        self._enter("update", (item_id, dict(payload)))
        try:
            if item_id in self.fail_update_ids:
                raise RemoteUnavailable("update", "injected failure", status_code=500, item_id=item_id)
            with self._lock:
                record = self.items.get(item_id)
                if record is None:
                    raise RemoteUnavailable("update", "not found", status_code=404, item_id=item_id)
                fields = dict(record.fields)
                fields.update({fid: self._to_values(v) for fid, v in payload.items()})
                updated = record.model_copy(update={"fields": fields, "revision": record.revision + 1})
                self.items[item_id] = updated
                return updated.revision
        finally:
            self._leave()

    def delete(self, item_id: int) -> None:
        self._enter("delete", item_id)
        try:
            if item_id in self.fail_delete_ids:
                raise RemoteUnavailable("delete", "injected failure", status_code=500, item_id=item_id)
            with self._lock:
                if self.items.pop(item_id, None) is None:
                    raise RemoteUnavailable("delete", "not found", status_code=404, item_id=item_id)
        finally:
            self._leave()


# =======================
# FIXTURES
# =======================

@pytest.fixture
def store() -> InMemoryRemoteStore:
    return InMemoryRemoteStore()


@pytest.fixture
def mapping():
    """Small mapping with two backfill phone fields."""
    return (
        FieldMappingBuilder("Address", ADDRESS_FIELD)
        .with_fallback("Property Address")
        .add_text("Address", ADDRESS_FIELD, fallback_column="Property Address")
        .add_text("City", CITY_FIELD)
        .add_text("State", STATE_FIELD)
        .add_integer("Beds", BEDS_FIELD)
        .add_phone("Phone1_Number", PHONE1_FIELD)
        .add_phone("Phone2_Number", PHONE2_FIELD)
        .add_email("Email", EMAIL_FIELD)
        .add_constant(STATUS_FIELD, 1)
        .build()
    )


@pytest.fixture
def resolver(mapping):
    return build_resolver(mapping)


@pytest.fixture
def payloads(mapping) -> PayloadBuilder:
    return PayloadBuilder(mapping)


@pytest.fixture
def make_record():
    """Factory for RemoteRecords carrying an address."""

    def _make(item_id: int, address: str | None, created_on: datetime = T0, revision: int = 0) -> RemoteRecord:
        fields = {ADDRESS_FIELD: [{"value": address}]} if address is not None else {}
        return RemoteRecord(item_id=item_id, fields=fields, created_on=created_on, revision=revision)

    return _make


@pytest.fixture
def write_csv(tmp_path):
    """Write rows to a CSV file under a temporary input directory."""
    input_dir = tmp_path / "paste_csv_here"
    input_dir.mkdir()

    def _write(name: str, rows: list[dict[str, str]], columns: list[str] | None = None) -> Path:
        path = input_dir / name
        columns = columns or list(rows[0].keys())
        with open(path, "w", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=columns)
            writer.writeheader()
            writer.writerows(rows)
        return path

    _write.directory = input_dir
    return _write


@pytest.fixture(scope="session")
def test_data_dir() -> Path:
    """Path to tests/fixtures"""
    return Path(__file__).parent / "fixtures"
