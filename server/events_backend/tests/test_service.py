import os
import shutil
import tempfile
import unittest
from datetime import datetime, timezone
from concurrent.futures import ThreadPoolExecutor
from itertools import permutations
from unittest.mock import patch

from events_backend import dependencies
from events_backend.db import EventRecord, InMemoryDbClient, UserRecord
from events_backend.errors import (
    EventNotFoundError,
    EventValidationError,
    NotAuthorizedError,
)
from events_backend.service import (
    EventDraft,
    EventPatch,
    EventService,
    ImageUpload,
    is_owner,
)
from events_backend.storage import (
    InMemoryStorageClient,
    LocalStorageClient,
    upload_filename,
)
from shared.types import EventStatus, EventType


def _draft(**overrides) -> EventDraft:
    values = dict(
        title="  Hack Night  ",
        description="Build something",
        event_type="workshop",
        date="2025-01-01",
        location="Lab 1",
    )
    values.update(overrides)
    return EventDraft(**values)


class EventServiceTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.storage = InMemoryStorageClient()
        self.service = EventService(self.db, self.storage)
        self.db.save_user(UserRecord("u1", "Ada", "ada@example.com"))

    def test_create_sets_organizer_and_defaults(self):
        view = self.service.create_event("u1", _draft())
        record = view.record
        self.assertEqual(record.organizer_id, "u1")
        self.assertEqual(record.title, "Hack Night")
        self.assertEqual(record.event_type, EventType.WORKSHOP)
        self.assertEqual(record.status, EventStatus.UPCOMING)
        self.assertEqual(record.date, datetime(2025, 1, 1, tzinfo=timezone.utc))
        self.assertEqual(record.max_participants, 0)
        self.assertEqual(view.organizer.name, "Ada")

    def test_create_without_caller(self):
        with self.assertRaisesRegex(NotAuthorizedError, "Authentication required"):
            self.service.create_event(None, _draft())

    def test_create_rejects_blank_title(self):
        with self.assertRaises(EventValidationError):
            self.service.create_event("u1", _draft(title="   "))
        self.assertEqual(self.db.events, {})

    def test_only_title_is_trimmed(self):
        view = self.service.create_event(
            "u1", _draft(description="   ", location=" Lab 1 ")
        )
        self.assertEqual(view.record.description, "   ")
        self.assertEqual(view.record.location, " Lab 1 ")

        updated = self.service.update_event(
            "u1", view.record.event_id, EventPatch(location="  ")
        )
        self.assertEqual(updated.record.location, "  ")

    def test_create_converts_offsets_to_utc(self):
        view = self.service.create_event("u1", _draft(date="2025-01-01T10:00:00+02:00"))
        self.assertEqual(
            view.record.date, datetime(2025, 1, 1, 8, 0, tzinfo=timezone.utc)
        )

    def test_create_rejects_bad_max_participants(self):
        with self.assertRaises(EventValidationError):
            self.service.create_event("u1", _draft(max_participants="lots"))

    def test_list_sorted_for_any_insertion_order(self):
        dates = ["2025-03-01", "2025-01-01", "2025-02-01"]
        for order in permutations(dates):
            self.db.reset()
            for date in order:
                self.service.create_event("u1", _draft(title=date, date=date))
            titles = [view.record.title for view in self.service.list_events()]
            self.assertEqual(titles, sorted(dates))

    def test_non_organizer_update_leaves_record_unchanged(self):
        created = self.service.create_event("u1", _draft()).record
        before = self.db.get_event(created.event_id)

        with self.assertRaisesRegex(NotAuthorizedError, created.event_id):
            self.service.update_event(
                "u2",
                created.event_id,
                EventPatch(title="Mine now", status="cancelled"),
                ImageUpload("x.png", b"data"),
            )
        self.assertEqual(self.db.get_event(created.event_id), before)
        self.assertEqual(self.storage.stored_objects, {})

    def test_empty_patch_changes_nothing_but_timestamp(self):
        created = self.service.create_event("u1", _draft()).record
        updated = self.service.update_event("u1", created.event_id, EventPatch()).record
        self.assertEqual(updated.title, created.title)
        self.assertEqual(updated.date, created.date)
        self.assertEqual(updated.image, created.image)
        self.assertGreaterEqual(updated.updated_at, created.updated_at)

    def test_update_replaces_image_only_when_uploaded(self):
        created = self.service.create_event(
            "u1", _draft(), ImageUpload("first.jpg", b"1")
        ).record
        self.assertTrue(created.image.endswith(".jpg"))

        kept = self.service.update_event("u1", created.event_id, EventPatch()).record
        self.assertEqual(kept.image, created.image)

        replaced = self.service.update_event(
            "u1", created.event_id, EventPatch(), ImageUpload("second.gif", b"2")
        ).record
        self.assertTrue(replaced.image.endswith(".gif"))

    def test_update_rejects_unknown_status(self):
        created = self.service.create_event("u1", _draft()).record
        with self.assertRaises(EventValidationError):
            self.service.update_event(
                "u1", created.event_id, EventPatch(status="postponed")
            )

    def test_get_and_delete_missing(self):
        with self.assertRaises(EventNotFoundError):
            self.service.get_event("missing")
        with self.assertRaises(EventNotFoundError):
            self.service.delete_event("u1", "missing")

    def test_search_is_literal_substring(self):
        self.service.create_event("u1", _draft(title="C++ (advanced)"))
        self.service.create_event("u1", _draft(title="Poetry", event_type="cultural"))
        results = self.service.search_events("c++ (")
        self.assertEqual([v.record.title for v in results], ["C++ (advanced)"])
        results = self.service.search_events("CULT")
        self.assertEqual([v.record.title for v in results], ["Poetry"])

    def test_is_owner(self):
        record = EventRecord(
            title="t",
            description="d",
            event_type=EventType.OTHER,
            date=datetime(2025, 1, 1, tzinfo=timezone.utc),
            location="l",
            organizer_id="u1",
        )
        self.assertTrue(is_owner(record, "u1"))
        self.assertFalse(is_owner(record, "u2"))
        self.assertFalse(is_owner(record, None))


class DependencyTests(unittest.TestCase):
    def setUp(self):
        dependencies._db_client = None
        dependencies._storage_client = None

    def tearDown(self):
        dependencies._db_client = None
        dependencies._storage_client = None

    @patch("events_backend.dependencies.get_settings")
    def test_concurrent_first_calls_share_one_client(self, mock_settings):
        mock_settings.return_value = type(
            "Settings", (), {"use_in_memory_backends": True, "database_url": None}
        )()
        with ThreadPoolExecutor(max_workers=8) as pool:
            db_clients = list(pool.map(lambda _: dependencies.get_db_client(), range(32)))
            storage_clients = list(
                pool.map(lambda _: dependencies.get_storage_client(), range(32))
            )
        self.assertEqual(len({id(client) for client in db_clients}), 1)
        self.assertEqual(len({id(client) for client in storage_clients}), 1)


class StorageTests(unittest.TestCase):
    def setUp(self):
        self.upload_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.upload_dir, ignore_errors=True)

    def test_upload_filename(self):
        self.assertEqual(upload_filename("poster.PNG", now=1700000000.5), "1700000000500.PNG")
        self.assertEqual(upload_filename(None, now=1.0), "1000")

    def test_local_storage_writes_file(self):
        storage = LocalStorageClient(upload_dir=self.upload_dir)
        path = storage.save_upload("flyer.pdf", b"%PDF")
        self.assertTrue(path.startswith(self.upload_dir))
        self.assertTrue(path.endswith(".pdf"))
        with open(path, "rb") as f:
            self.assertEqual(f.read(), b"%PDF")
        self.assertEqual(os.listdir(self.upload_dir), [os.path.basename(path)])


if __name__ == "__main__":
    unittest.main()
