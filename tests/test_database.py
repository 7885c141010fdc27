"""Tests for the OfflineDatabase facade."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from pathlib import Path

import pytest

from offline_store import (
    Article,
    Business,
    ManualConnectivitySource,
    OfflineDatabase,
    StoreConfig,
    SyncState,
    field_equals,
)
from offline_store.exceptions import (
    ConflictError,
    StoreClosedError,
    UnknownKindError,
    ValidationError,
)
from offline_store.logging_utils import ROOT_LOGGER_NAME, StructuredJsonFormatter


@pytest.fixture
async def database(
    data_dir: Path, connectivity: ManualConnectivitySource, fake_remote
) -> AsyncIterator[OfflineDatabase]:
    _, url = fake_remote
    config = StoreConfig(data_dir=data_dir, sync_endpoint=url, sync_timeout=5)
    db = await OfflineDatabase.create(config, connectivity=connectivity)
    yield db
    await db.close()


class TestCollections:
    """Tests for per-kind collection handles."""

    async def test_insert_models_and_dicts(self, database: OfflineDatabase) -> None:
        """Collections accept both model objects and dicts."""
        acme = Business.create("Acme")

        await database.businesses.insert(acme)
        await database.articles.insert(
            {"id": "a1", "name": "Widget", "qty": 5, "selling_price": 9.99, "business_id": acme.id}
        )

        assert await database.businesses.get(acme.id) == acme.to_dict()
        assert len(await database.articles.get_all()) == 1

    async def test_errors_surface_to_caller(self, database: OfflineDatabase) -> None:
        """Validation and conflict errors reach the caller."""
        await database.businesses.insert({"id": "b1", "name": "Acme"})

        with pytest.raises(ConflictError):
            await database.businesses.insert({"id": "b1", "name": "Acme"})
        with pytest.raises(ValidationError):
            await database.businesses.insert({"id": "b2", "name": ""})

        assert len(await database.businesses.get_all()) == 1

    async def test_unknown_collection(self, database: OfflineDatabase) -> None:
        """Asking for an unregistered collection fails."""
        with pytest.raises(UnknownKindError):
            database.collection("customers")

    async def test_live_articles_for_business(self, database: OfflineDatabase) -> None:
        """A business_id subscription sees only that business's articles."""
        acme = Business.create("Acme")
        await database.businesses.insert(acme)
        subscription = database.articles.subscribe(field_equals("business_id", acme.id))

        widget = Article.create("Widget", 5, 9.99, acme.id)
        await database.articles.insert(widget)
        await database.articles.insert(Article.create("Other", 1, 1.0, "someone-else"))

        snapshot = await asyncio.wait_for(subscription.get(), 1)
        assert snapshot == (widget.to_dict(),)
        assert subscription.pending == 0

    async def test_replace_through_collection(self, database: OfflineDatabase) -> None:
        """Replacing a model updates the stored document."""
        widget = Article.create("Widget", 5, 9.99, "b1")
        await database.articles.insert(widget)

        widget.qty = 2
        await database.articles.replace(widget)

        assert (await database.articles.get(widget.id))["qty"] == 2

    async def test_delete_business_keeps_articles(self, database: OfflineDatabase) -> None:
        """Deleting a business leaves its articles in place."""
        acme = Business.create("Acme")
        widget = Article.create("Widget", 5, 9.99, acme.id)
        await database.businesses.insert(acme)
        await database.articles.insert(widget)

        assert await database.businesses.delete(acme.id) is True
        assert await database.businesses.delete(acme.id) is False

        assert await database.articles.get_all() == [widget.to_dict()]


class TestSyncTriggers:
    """Tests for automatic and on-demand sync."""

    async def test_mutation_triggers_background_sync(
        self, database: OfflineDatabase, fake_remote
    ) -> None:
        """A successful insert pushes local state in the background."""
        remote, _ = fake_remote

        await database.businesses.insert({"id": "b1", "name": "Acme"})
        await database.wait_for_background_sync()

        assert remote.calls >= 1
        assert remote.payloads[-1]["businesses"] == [{"id": "b1", "name": "Acme"}]
        assert database.last_sync_report is not None
        assert database.sync_state == SyncState.IDLE

    async def test_noop_delete_does_not_trigger(
        self, database: OfflineDatabase, fake_remote
    ) -> None:
        """Deleting a missing id does not start a sync."""
        remote, _ = fake_remote

        await database.businesses.delete("missing")
        await database.wait_for_background_sync()

        assert remote.calls == 0

    async def test_offline_mutation_does_not_sync(
        self,
        database: OfflineDatabase,
        connectivity: ManualConnectivitySource,
        fake_remote,
    ) -> None:
        """Offline mutations and syncs make no network calls."""
        remote, _ = fake_remote
        connectivity.set_online(False)

        await database.businesses.insert({"id": "b1", "name": "Acme"})
        await database.wait_for_background_sync()
        report = await database.sync()

        assert remote.calls == 0
        assert report.skipped
        assert database.is_online is False
        assert database.sync_state == SyncState.OFFLINE

    async def test_reconnect_triggers_sync(
        self,
        database: OfflineDatabase,
        connectivity: ManualConnectivitySource,
        fake_remote,
    ) -> None:
        """Coming back online pushes writes made while offline."""
        remote, _ = fake_remote
        connectivity.set_online(False)
        await database.businesses.insert({"id": "b1", "name": "Acme"})

        connectivity.set_online(True)
        await database.wait_for_background_sync()

        assert remote.calls == 1
        assert remote.payloads[0]["businesses"] == [{"id": "b1", "name": "Acme"}]

    async def test_background_failure_does_not_fail_mutation(
        self, database: OfflineDatabase, fake_remote
    ) -> None:
        """A rejected background push is recorded without failing the insert."""
        remote, _ = fake_remote
        remote.status = 500

        document = await database.businesses.insert({"id": "b1", "name": "Acme"})
        await database.wait_for_background_sync()

        assert document["id"] == "b1"
        assert await database.businesses.get("b1") is not None
        assert database.last_sync_error is not None
        assert database.last_sync_error.status == 500
        assert database.sync_state == SyncState.ERROR

    async def test_unexpected_background_error_is_logged(
        self, database: OfflineDatabase, fake_remote, monkeypatch, caplog
    ) -> None:
        """A non-sync error in a background sync is logged, not left on the task."""
        remote, _ = fake_remote

        async def closed_store():
            raise StoreClosedError("get_all")

        monkeypatch.setattr(database.coordinator, "_build_payload", closed_store)

        with caplog.at_level(logging.ERROR, logger="offline_store.database"):
            await database.businesses.insert({"id": "b1", "name": "Acme"})
            await database.wait_for_background_sync()

        assert remote.calls == 0
        assert not database.is_syncing
        assert "Unexpected error in background sync after insert businesses/b1" in caplog.text
        assert await database.businesses.get("b1") is not None

    async def test_auto_sync_disabled(
        self, data_dir: Path, connectivity: ManualConnectivitySource, fake_remote
    ) -> None:
        """With auto_sync off only explicit sync() pushes."""
        remote, url = fake_remote
        config = StoreConfig(data_dir=data_dir, sync_endpoint=url, auto_sync=False)

        async with await OfflineDatabase.create(config, connectivity=connectivity) as db:
            await db.businesses.insert({"id": "b1", "name": "Acme"})
            await db.wait_for_background_sync()
            assert remote.calls == 0

            report = await db.sync()
            assert report.business_count == 1
            assert remote.calls == 1

    async def test_end_to_end_sync_report(
        self, data_dir: Path, connectivity: ManualConnectivitySource, fake_remote
    ) -> None:
        """Acme and Widget present locally produce a 1/1 report."""
        remote, url = fake_remote
        config = StoreConfig(data_dir=data_dir, sync_endpoint=url, auto_sync=False)

        async with await OfflineDatabase.create(config, connectivity=connectivity) as db:
            await db.businesses.insert({"id": "b1", "name": "Acme"})
            await db.articles.insert(
                {"id": "a1", "name": "Widget", "qty": 5, "selling_price": 9.99, "business_id": "b1"}
            )

            report = await db.sync()

        assert remote.payloads == [
            {
                "businesses": [{"id": "b1", "name": "Acme"}],
                "articles": [
                    {
                        "id": "a1",
                        "name": "Widget",
                        "qty": 5,
                        "selling_price": 9.99,
                        "business_id": "b1",
                    }
                ],
            }
        ]
        assert (report.business_count, report.article_count) == (1, 1)


class TestLifecycle:
    """Tests for opening and closing the database."""

    async def test_data_survives_restart(
        self, data_dir: Path, connectivity: ManualConnectivitySource
    ) -> None:
        """Documents persist across database instances."""
        config = StoreConfig(data_dir=data_dir)

        async with await OfflineDatabase.create(config, connectivity=connectivity) as db:
            await db.businesses.insert({"id": "b1", "name": "Acme"})

        async with await OfflineDatabase.create(config, connectivity=connectivity) as db:
            assert await db.businesses.get_all() == [{"id": "b1", "name": "Acme"}]

    async def test_close_cancels_subscriptions(
        self, data_dir: Path, connectivity: ManualConnectivitySource
    ) -> None:
        """Closing the database cancels subscriptions and closes the store."""
        db = await OfflineDatabase.create(StoreConfig(data_dir=data_dir), connectivity=connectivity)
        subscription = db.businesses.subscribe()

        await db.close()

        assert subscription.cancelled
        assert db.store.is_open is False

    async def test_without_endpoint_sync_is_skipped(
        self, data_dir: Path, connectivity: ManualConnectivitySource
    ) -> None:
        """Without a sync endpoint, sync() returns a skipped report."""
        async with await OfflineDatabase.create(
            StoreConfig(data_dir=data_dir), connectivity=connectivity
        ) as db:
            await db.businesses.insert({"id": "b1", "name": "Acme"})
            report = await db.sync()

        assert report.skipped
        assert db.is_syncing is False

    async def test_structured_logging_from_config(
        self, data_dir: Path, connectivity: ManualConnectivitySource
    ) -> None:
        """structured_logging installs the JSON handler on the package logger."""
        package_logger = logging.getLogger(ROOT_LOGGER_NAME)
        saved = (list(package_logger.handlers), package_logger.level, package_logger.propagate)
        config = StoreConfig(data_dir=data_dir, structured_logging=True, log_level="DEBUG")

        try:
            async with await OfflineDatabase.create(config, connectivity=connectivity):
                pass

            assert len(package_logger.handlers) == 1
            assert isinstance(package_logger.handlers[0].formatter, StructuredJsonFormatter)
            assert package_logger.level == logging.DEBUG
        finally:
            package_logger.handlers[:] = saved[0]
            package_logger.setLevel(saved[1])
            package_logger.propagate = saved[2]
