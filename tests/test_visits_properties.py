"""
Property-based tests for the Visit Recorder module.

Uses Hypothesis to check counting, sanitizing and timestamp ordering of
recorded visits.
"""

import asyncio
import math
import warnings
from datetime import datetime, timezone

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from url_moderator.cache import ModerationCache
from url_moderator.document_store import MemoryDocumentStore
from url_moderator.i18n import get_message
from url_moderator.models import UrlRecord, VisitorInfo
from url_moderator.url_records import URLS_COLLECTION
from url_moderator.visits import GEO_DEFAULTS, VisitRecorder, sanitize_value


FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def run_async(coro):
    """Helper to run async code in tests."""
    return asyncio.new_event_loop().run_until_complete(coro)


def make_recorder(visits: int = 0, clock=lambda: FIXED_NOW):
    store = MemoryDocumentStore({
        URLS_COLLECTION: {
            "u1": {
                "name": "Shop",
                "original": "https://shop.example.com/",
                "status": "pending",
                "errorMessages": [],
                "visits": visits,
                "visitDetails": [],
            }
        }
    })
    cache = ModerationCache(language="en")
    cache.replace_records([UrlRecord(id="u1", name="Shop", original="https://shop.example.com/", visits=visits)])
    return store, cache, VisitRecorder(store, cache, clock=clock)


# Strategies for generating test data

json_leaf_strategy = st.one_of(
    st.none(),
    st.booleans(),
    st.integers(min_value=-1000, max_value=1000),
    st.floats(allow_nan=True, allow_infinity=True),
    st.text(max_size=10),
)

json_tree_strategy = st.recursive(
    json_leaf_strategy,
    lambda children: st.one_of(
        st.lists(children, max_size=4),
        st.dictionaries(st.text(min_size=1, max_size=6), children, max_size=4),
    ),
    max_leaves=15,
)


def assert_storable(value) -> None:
    if isinstance(value, float):
        assert math.isfinite(value)
    elif isinstance(value, dict):
        for item in value.values():
            assert_storable(item)
    elif isinstance(value, list):
        for item in value:
            assert_storable(item)
    else:
        assert value is None or isinstance(value, (bool, int, str))


class TestVisitWithoutMetadataProperty:
    """A bare visit bumps the counter and logs only a timestamp."""

    @given(visits=st.integers(min_value=0, max_value=10_000))
    @settings(max_examples=50, deadline=None)
    def test_counter_incremented_and_timestamp_only_entry(self, visits: int) -> None:
        """
        *For any* record with ``visits = n``, recording a visit without
        visitor metadata yields ``visits = n + 1`` and exactly one new entry
        holding only a timestamp.
        """
        store, cache, recorder = make_recorder(visits)

        assert run_async(recorder.record("u1")) is True

        document = store.snapshot(URLS_COLLECTION)["u1"]
        assert document["visits"] == visits + 1
        assert len(document["visitDetails"]) == 1
        assert list(document["visitDetails"][0].keys()) == ["timestamp"]
        assert cache.find("u1").visits == visits + 1
        assert len(cache.find("u1").visit_details) == 1

    def test_missing_record_is_not_created(self) -> None:
        store, cache, recorder = make_recorder()

        assert run_async(recorder.record("missing")) is False
        assert "missing" not in store.snapshot(URLS_COLLECTION)
        assert cache.error == get_message("url.not_found", "en")

    def test_success_clears_previous_error(self) -> None:
        _, cache, recorder = make_recorder()
        run_async(recorder.record("missing"))
        assert cache.error is not None

        assert run_async(recorder.record("u1")) is True

        assert cache.error is None
        assert cache.loading is False


class TestVisitSanitizeProperty:
    """Visitor metadata is stored with every key and only storable values."""

    def test_nested_nulls_are_kept_as_explicit_nulls(self) -> None:
        store, _, recorder = make_recorder()

        run_async(recorder.record("u1", {"browserInfo": {"a": None, "b": {"c": None}}}))

        entry = store.snapshot(URLS_COLLECTION)["u1"]["visitDetails"][0]
        assert entry["browserInfo"] == {"a": None, "b": {"c": None}}

    @given(browser_info=st.dictionaries(st.text(min_size=1, max_size=6), json_tree_strategy, max_size=5))
    @settings(max_examples=50, deadline=None)
    def test_every_key_kept_and_values_storable(self, browser_info: dict) -> None:
        """
        *For any* browser metadata tree, the stored tree has the same keys
        at every level and no value the store cannot hold.
        """
        store, _, recorder = make_recorder()

        run_async(recorder.record("u1", VisitorInfo(browser_info=browser_info)))

        stored = store.snapshot(URLS_COLLECTION)["u1"]["visitDetails"][0]["browserInfo"]
        assert set(stored.keys()) == set(browser_info.keys())
        assert_storable(stored)
        assert stored == sanitize_value(browser_info)

    def test_geo_placeholders_fill_missing_location(self) -> None:
        store, _, recorder = make_recorder()

        run_async(recorder.record("u1", {"userAgent": "Mozilla/5.0", "city": "Lima", "campaign": "x"}))

        entry = store.snapshot(URLS_COLLECTION)["u1"]["visitDetails"][0]
        assert entry["userAgent"] == "Mozilla/5.0"
        assert entry["city"] == "Lima"
        assert entry["country"] == GEO_DEFAULTS["country"]
        assert entry["ip"] == GEO_DEFAULTS["ip"]
        assert entry["campaign"] == "x"

    def test_supplied_nulls_are_written_as_explicit_nulls(self) -> None:
        store, cache, recorder = make_recorder()

        run_async(recorder.record("u1", {
            "referrer": None,
            "isp": None,
            "browserInfo": {"a": None},
            "custom": None,
        }))

        entry = store.snapshot(URLS_COLLECTION)["u1"]["visitDetails"][0]
        assert "referrer" in entry and entry["referrer"] is None
        assert "isp" in entry and entry["isp"] is None
        assert entry["browserInfo"] == {"a": None}
        assert "custom" in entry and entry["custom"] is None
        assert entry["country"] == GEO_DEFAULTS["country"]
        # Fields the caller never mentioned stay absent
        assert "userAgent" not in entry
        assert "email" not in entry
        # The cached copy keeps the same keys
        assert cache.find("u1").visit_details[0].to_document() == entry

    @given(field_name=st.sampled_from(["referrer", "userAgent", "screenSize", "isp", "email", "acceptedTerms"]))
    @settings(max_examples=20, deadline=None)
    def test_no_supplied_key_is_omitted(self, field_name: str) -> None:
        """
        *For any* known visit field passed as null, the stored entry still
        carries that key.
        """
        store, _, recorder = make_recorder()

        run_async(recorder.record("u1", {field_name: None}))

        entry = store.snapshot(URLS_COLLECTION)["u1"]["visitDetails"][0]
        assert field_name in entry
        assert entry[field_name] is None

    def test_unstorable_value_becomes_null(self) -> None:
        store, _, recorder = make_recorder()

        run_async(recorder.record("u1", VisitorInfo(latitude=float("nan"), longitude=2.5)))

        entry = store.snapshot(URLS_COLLECTION)["u1"]["visitDetails"][0]
        assert "latitude" in entry and entry["latitude"] is None
        assert entry["longitude"] == 2.5

    def test_caller_timestamp_is_ignored(self) -> None:
        store, _, recorder = make_recorder()

        run_async(recorder.record("u1", {"timestamp": "1999-01-01T00:00:00", "referrer": "r"}))

        entry = store.snapshot(URLS_COLLECTION)["u1"]["visitDetails"][0]
        assert entry["timestamp"] == FIXED_NOW.isoformat()


class TestSequentialVisitsScenario:
    """Sequential visits of one record."""

    def test_two_visits_count_and_order(self) -> None:
        # Same clock reading twice: the second timestamp must still be later
        store, _, recorder = make_recorder()

        assert run_async(recorder.record("u1")) is True
        assert store.snapshot(URLS_COLLECTION)["u1"]["visits"] == 1
        assert run_async(recorder.record("u1")) is True

        document = store.snapshot(URLS_COLLECTION)["u1"]
        assert document["visits"] == 2
        details = document["visitDetails"]
        assert len(details) == 2
        first = datetime.fromisoformat(details[0]["timestamp"])
        second = datetime.fromisoformat(details[1]["timestamp"])
        assert first < second

    @given(count=st.integers(min_value=1, max_value=8))
    @settings(max_examples=20, deadline=None)
    def test_timestamps_strictly_increase(self, count: int) -> None:
        store, _, recorder = make_recorder()

        for _ in range(count):
            run_async(recorder.record("u1"))

        details = store.snapshot(URLS_COLLECTION)["u1"]["visitDetails"]
        stamps = [datetime.fromisoformat(entry["timestamp"]) for entry in details]
        assert len(stamps) == count
        assert all(a < b for a, b in zip(stamps, stamps[1:]))

    def test_deprecated_entry_point_delegates(self) -> None:
        store, _, recorder = make_recorder(visits=3)

        with pytest.warns(DeprecationWarning):
            assert run_async(recorder.increment_only("u1")) is True

        document = store.snapshot(URLS_COLLECTION)["u1"]
        assert document["visits"] == 4
        assert len(document["visitDetails"]) == 1

    def test_record_emits_no_warning(self) -> None:
        _, _, recorder = make_recorder()

        with warnings.catch_warnings():
            warnings.simplefilter("error", DeprecationWarning)
            assert run_async(recorder.record("u1")) is True
