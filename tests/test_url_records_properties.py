"""
Property-based tests for the URL Record Manager module.

Uses Hypothesis to check the moderation workflow against the in-memory
document store: append-only error logs, the coupling between status and
error log, and failure handling at the operation boundary.
"""

import asyncio
from datetime import datetime, timezone
from io import StringIO

from hypothesis import given, settings
from hypothesis import strategies as st

from url_moderator.audit_logger import AuditLogger
from url_moderator.cache import ModerationCache
from url_moderator.document_store import MemoryDocumentStore
from url_moderator.domain_order import DOMAIN_ORDER_ID, SETTINGS_COLLECTION, DomainOrderManager
from url_moderator.enums import LogLevel, StoreErrorCode, UrlStatus
from url_moderator.exceptions import RemoteUnavailableError
from url_moderator.i18n import get_message
from url_moderator.models import ErrorEntry
from url_moderator.url_records import URLS_COLLECTION, UrlRecordManager


FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def run_async(coro):
    """Helper to run async code in tests."""
    return asyncio.new_event_loop().run_until_complete(coro)


class FailingWriteStore(MemoryDocumentStore):
    """Memory store whose write calls fail as if the remote were down."""

    def _unavailable(self):
        return RemoteUnavailableError(
            code=StoreErrorCode.NETWORK_ERROR.value,
            message="connection refused",
        )

    async def create(self, collection, data):
        raise self._unavailable()

    async def update(self, collection, doc_id, fields):
        raise self._unavailable()

    async def set(self, collection, doc_id, data):
        raise self._unavailable()


def make_manager(store=None, logger=None):
    store = store if store is not None else MemoryDocumentStore()
    cache = ModerationCache(language="en")
    order = DomainOrderManager(store, cache, logger)
    manager = UrlRecordManager(store, cache, order, logger, clock=lambda: FIXED_NOW)
    return store, cache, order, manager


def pending_record(name="Shop", original="https://shop.example.com/x") -> dict:
    return {
        "name": name,
        "original": original,
        "createdAt": FIXED_NOW,
        "status": "pending",
        "errorMessages": [],
        "visits": 0,
        "visitDetails": [],
    }


# Strategies for generating test data

reason_text_strategy = st.text(
    alphabet=st.characters(whitelist_categories=("L", "N", "P", "Z")),
    min_size=1,
    max_size=40,
).filter(lambda s: s.strip())


@st.composite
def reject_batches_strategy(draw) -> list[list[ErrorEntry]]:
    """Generate several non-empty batches of rejection reasons."""
    batches = draw(st.lists(
        st.lists(reason_text_strategy, min_size=1, max_size=4),
        min_size=1,
        max_size=5,
    ))
    return [
        [ErrorEntry(text=text, timestamp=FIXED_NOW) for text in batch]
        for batch in batches
    ]


@st.composite
def workflow_strategy(draw) -> list[tuple]:
    """Generate a sequence of moderation operations on one record."""
    return draw(st.lists(
        st.one_of(
            st.just(("approve",)),
            st.tuples(st.just("reject"), st.integers(min_value=1, max_value=3)),
            st.tuples(st.just("remove_error"), st.integers(min_value=-1, max_value=4)),
        ),
        min_size=1,
        max_size=12,
    ))


class TestAppendOnlyErrorLogProperty:
    """Rejections only ever append to the persisted error log."""

    @given(batches=reject_batches_strategy())
    @settings(max_examples=50, deadline=None)
    def test_error_log_length_is_sum_of_batches(self, batches: list[list[ErrorEntry]]) -> None:
        """
        *For any* sequence of rejections of one record, the persisted error
        log holds exactly the sum of the staged entries, in order.
        """
        store = MemoryDocumentStore({URLS_COLLECTION: {"u1": pending_record()}})
        _, cache, _, manager = make_manager(store)
        run_async(manager.fetch_all())

        for batch in batches:
            assert run_async(manager.reject("u1", batch)) is True

        persisted = store.snapshot(URLS_COLLECTION)["u1"]["errorMessages"]
        expected = [entry.text for batch in batches for entry in batch]
        assert [entry["text"] for entry in persisted] == expected
        assert [entry.text for entry in cache.find("u1").error_messages] == expected

    def test_existing_reasons_are_kept(self) -> None:
        """Reasons persisted before the rejection stay first."""
        seeded = pending_record()
        seeded["status"] = "rejected"
        seeded["errorMessages"] = [{"text": "old", "imageUrl": None, "legacy": True}]
        store = MemoryDocumentStore({URLS_COLLECTION: {"u1": seeded}})
        _, _, _, manager = make_manager(store)

        assert run_async(manager.reject("u1", [ErrorEntry(text="new")])) is True

        persisted = store.snapshot(URLS_COLLECTION)["u1"]["errorMessages"]
        assert [entry["text"] for entry in persisted] == ["old", "new"]
        # Unknown keys of stored entries survive the read-modify-write
        assert persisted[0]["legacy"] is True

    def test_reject_with_no_entries_fails(self) -> None:
        store = MemoryDocumentStore({URLS_COLLECTION: {"u1": pending_record()}})
        _, cache, _, manager = make_manager(store)
        writes = store.write_count

        assert run_async(manager.reject("u1", [])) is False
        assert cache.error == get_message("annotation.nothing_staged", "en")
        assert store.write_count == writes


class TestStatusCouplingProperty:
    """A record is rejected exactly when its error log is non-empty."""

    @given(operations=workflow_strategy())
    @settings(max_examples=50, deadline=None)
    def test_rejected_iff_error_log_non_empty(self, operations: list[tuple]) -> None:
        """
        *For any* sequence of approve / reject / remove_error calls, the
        persisted status is rejected if and only if the error log is
        non-empty.
        """
        store = MemoryDocumentStore({URLS_COLLECTION: {"u1": pending_record()}})
        _, cache, _, manager = make_manager(store)
        run_async(manager.fetch_all())

        for operation in operations:
            if operation[0] == "approve":
                run_async(manager.approve("u1"))
            elif operation[0] == "reject":
                entries = [ErrorEntry(text=f"reason {i}") for i in range(operation[1])]
                run_async(manager.reject("u1", entries))
            else:
                run_async(manager.remove_error("u1", operation[1]))

            document = store.snapshot(URLS_COLLECTION)["u1"]
            is_rejected = document["status"] == UrlStatus.REJECTED.value
            assert is_rejected == bool(document["errorMessages"])

            cached = cache.find("u1")
            assert cached.status.value == document["status"]
            assert len(cached.error_messages) == len(document["errorMessages"])

    def test_approve_clears_error_log(self) -> None:
        seeded = pending_record()
        seeded["status"] = "rejected"
        seeded["errorMessages"] = [{"text": "broken"}]
        store = MemoryDocumentStore({URLS_COLLECTION: {"u1": seeded}})
        _, _, _, manager = make_manager(store)

        assert run_async(manager.approve("u1")) is True

        document = store.snapshot(URLS_COLLECTION)["u1"]
        assert document["status"] == "approved"
        assert document["errorMessages"] == []


class TestSubmitAndModerateScenario:
    """End-to-end submission and moderation of a URL."""

    def test_add_creates_pending_record_and_prepends_domain(self) -> None:
        store = MemoryDocumentStore({
            URLS_COLLECTION: {"old": pending_record("Blog", "https://blog.example.org/")},
        })
        _, cache, order, manager = make_manager(store)
        run_async(manager.fetch_all())
        assert order.order == ["blog.example.org"]

        record_id = run_async(manager.add("Shop", "https://shop.example.com/x"))

        assert record_id is not None
        assert cache.records[0].id == record_id
        assert cache.records[0].status == UrlStatus.PENDING
        assert cache.records[0].created_at == FIXED_NOW
        assert "shop.example.com" in manager.get_unique_domains()
        assert order.order == ["shop.example.com", "blog.example.org"]

        persisted = store.snapshot(SETTINGS_COLLECTION)[DOMAIN_ORDER_ID]["order"]
        assert persisted == ["shop.example.com", "blog.example.org"]

        document = store.snapshot(URLS_COLLECTION)[record_id]
        assert document["status"] == "pending"
        assert document["errorMessages"] == []
        assert document["visits"] == 0
        assert document["visitDetails"] == []
        assert "siteName" not in document

    def test_add_known_domain_keeps_order(self) -> None:
        store = MemoryDocumentStore({
            URLS_COLLECTION: {"old": pending_record()},
            SETTINGS_COLLECTION: {DOMAIN_ORDER_ID: {"order": ["a.example", "shop.example.com"]}},
        })
        _, _, order, manager = make_manager(store)
        run_async(manager.fetch_all())

        run_async(manager.add("Again", "https://shop.example.com/other", site_name="Shop"))

        assert order.order == ["a.example", "shop.example.com"]

    def test_add_url_without_hostname_still_creates_record(self) -> None:
        store, cache, order, manager = make_manager()

        record_id = run_async(manager.add("Odd", "not a url"))

        assert record_id is not None
        assert cache.count == 1
        assert order.order == []

    def test_reject_then_remove_last_reason_resets_to_pending(self) -> None:
        store = MemoryDocumentStore({URLS_COLLECTION: {"u1": pending_record()}})
        _, cache, _, manager = make_manager(store)
        run_async(manager.fetch_all())

        assert run_async(manager.reject("u1", [ErrorEntry(text="broken link")])) is True
        document = store.snapshot(URLS_COLLECTION)["u1"]
        assert document["status"] == "rejected"
        assert len(document["errorMessages"]) == 1
        assert document["errorMessages"][0]["imageUrl"] is None

        assert run_async(manager.remove_error("u1", 0)) is True
        document = store.snapshot(URLS_COLLECTION)["u1"]
        assert document["errorMessages"] == []
        assert document["status"] == "pending"
        assert cache.find("u1").status == UrlStatus.PENDING

    def test_remove_error_out_of_range(self) -> None:
        store = MemoryDocumentStore({URLS_COLLECTION: {"u1": pending_record()}})
        _, cache, _, manager = make_manager(store)
        writes = store.write_count

        assert run_async(manager.remove_error("u1", 0)) is False
        assert cache.error == get_message("url.error_index_out_of_range", "en", index=0)
        assert store.write_count == writes

    def test_operations_on_missing_record(self) -> None:
        _, cache, _, manager = make_manager()
        not_found = get_message("url.not_found", "en")

        assert run_async(manager.reject("nope", [ErrorEntry(text="x")])) is False
        assert cache.error == not_found
        assert run_async(manager.remove_error("nope", 0)) is False
        assert cache.error == not_found
        assert run_async(manager.approve("nope")) is False
        assert cache.error == not_found


class TestQueriesProperty:
    """Read-only helpers over the cache and the store."""

    def test_fetch_by_status_leaves_cache_alone(self) -> None:
        rejected = pending_record("B", "https://b.example/")
        rejected["status"] = "rejected"
        rejected["errorMessages"] = [{"text": "x"}]
        store = MemoryDocumentStore({
            URLS_COLLECTION: {"a": pending_record("A", "https://a.example/"), "b": rejected},
        })
        _, cache, _, manager = make_manager(store)

        records = run_async(manager.fetch_by_status(UrlStatus.REJECTED))

        assert [record.id for record in records] == ["b"]
        assert cache.records == []

    def test_group_by_domain(self) -> None:
        store = MemoryDocumentStore({
            URLS_COLLECTION: {
                "a": pending_record("A", "https://Shop.Example.com/a"),
                "b": pending_record("B", "https://blog.example.org/"),
                "c": pending_record("C", "https://shop.example.com:8443/c"),
                "d": pending_record("D", "garbage"),
            },
        })
        _, _, _, manager = make_manager(store)
        run_async(manager.fetch_all())

        assert manager.get_unique_domains() == ["shop.example.com", "blog.example.org"]
        assert [r.id for r in manager.get_by_domain("shop.example.com")] == ["a", "c"]
        assert manager.get_by_domain("unknown.example") == []


class TestStoreFailureProperty:
    """Failed store calls leave the cache untouched and set the error slot."""

    @given(text=reason_text_strategy)
    @settings(max_examples=20, deadline=None)
    def test_failed_writes_keep_last_known_good(self, text: str) -> None:
        seed = MemoryDocumentStore({URLS_COLLECTION: {"u1": pending_record()}})
        store = FailingWriteStore({URLS_COLLECTION: seed.snapshot(URLS_COLLECTION)})
        stream = StringIO()
        logger = AuditLogger(output_format="json", output_stream=stream)
        _, cache, _, manager = make_manager(store, logger)
        run_async(manager.fetch_all())

        assert run_async(manager.reject("u1", [ErrorEntry(text=text)])) is False
        assert cache.find("u1").status == UrlStatus.PENDING
        assert cache.find("u1").error_messages == []
        assert cache.error == get_message("url.reject_failed", "en", error="connection refused")
        assert cache.loading is False

        assert run_async(manager.add("X", "https://x.example/")) is None
        assert cache.count == 1

        errors = [entry for entry in logger.entries if entry.level == LogLevel.ERROR]
        assert errors
        assert errors[-1].data["error_code"] == StoreErrorCode.NETWORK_ERROR.value

    def test_successful_operation_clears_previous_error(self) -> None:
        store = MemoryDocumentStore({URLS_COLLECTION: {"u1": pending_record()}})
        _, cache, _, manager = make_manager(store)

        run_async(manager.remove_error("u1", 5))
        assert cache.error is not None

        run_async(manager.approve("u1"))
        assert cache.error is None
