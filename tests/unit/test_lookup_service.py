"""
Lookup provider and cache tests.

Run with: pytest tests/unit/test_lookup_service.py -v
"""

from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine

from repositories.schema import corporate_accounts, subcategory_products
from services.lookup_service import (
    CachedLookupProvider,
    LookupProvider,
    LookupSnapshot,
    build_lookup_map,
)
from utils.cache_service import TTLCache
from utils.error_handling import LookupLoadError


class TestBuildLookupMap:
    """Key normalization and immutability."""

    def test_keys_are_trimmed_and_lowercased(self):
        lookup = build_lookup_map([("  Internet Lambat ", "connectivity")])
        assert lookup == {"internet lambat": "connectivity"}

    def test_last_row_wins(self):
        lookup = build_lookup_map([("Internet", "connectivity"), ("INTERNET ", "solution")])
        assert lookup["internet"] == "solution"

    def test_non_string_and_blank_keys_are_skipped(self):
        lookup = build_lookup_map([(None, "x"), (42, "y"), ("   ", "z")])
        assert dict(lookup) == {}

    def test_missing_value_becomes_empty(self):
        assert build_lookup_map([("Internet", None)])["internet"] == ""

    def test_map_is_read_only(self):
        lookup = build_lookup_map([("Internet", "connectivity")])
        with pytest.raises(TypeError):
            lookup["other"] = "x"


class TestLookupSnapshot:
    """Lookups by raw field values."""

    def test_lookup_normalizes_query(self):
        snapshot = LookupSnapshot(
            products=build_lookup_map([("Internet", "connectivity")]),
            account_tiers=build_lookup_map([("PT Maju", "P1")]),
        )
        assert snapshot.product_for(" INTERNET ") == "connectivity"
        assert snapshot.tier_for("pt maju") == "P1"

    def test_missing_key_is_none(self):
        snapshot = LookupSnapshot()
        assert snapshot.product_for("Internet") is None
        assert snapshot.tier_for(None) is None


class TestLookupProvider:
    """Loading both reference tables."""

    def test_load_from_database(self, sqlite_engine):
        with sqlite_engine.begin() as conn:
            conn.execute(
                subcategory_products.insert(),
                [
                    {"sub_category": "Internet", "product": "connectivity"},
                    {"sub_category": "Aplikasi", "product": "solution"},
                ],
            )
            conn.execute(
                corporate_accounts.insert(),
                [{"corporate_name": "PT Maju", "account_tier": "P1"}],
            )

        snapshot = LookupProvider(sqlite_engine).load()

        assert snapshot.product_for("aplikasi") == "solution"
        assert snapshot.tier_for("PT Maju") == "P1"

    def test_load_failure_is_fatal(self):
        """Missing tables raise LookupLoadError."""
        engine = create_engine("sqlite://")
        with pytest.raises(LookupLoadError):
            LookupProvider(engine).load()


class TestCachedLookupProvider:
    """Per-process snapshot reuse."""

    def test_snapshot_is_reused(self):
        provider = MagicMock()
        provider.load.return_value = LookupSnapshot()
        cached = CachedLookupProvider(provider, refresh_seconds=900)

        assert cached.current() is cached.current()
        provider.load.assert_called_once()

    def test_load_errors_propagate_and_are_not_cached(self):
        provider = MagicMock()
        provider.load.side_effect = [LookupLoadError("db down"), LookupSnapshot()]
        cached = CachedLookupProvider(provider)

        with pytest.raises(LookupLoadError):
            cached.current()
        assert isinstance(cached.current(), LookupSnapshot)


class TestTTLCache:
    """Expiry driven by an injectable clock."""

    def test_entries_expire(self):
        now = [0.0]
        cache = TTLCache(ttl_seconds=10, clock=lambda: now[0])
        cache.set("k", "v")
        assert cache.get("k") == "v"

        now[0] = 11.0
        assert cache.get("k") is None

    def test_get_or_load_reloads_after_expiry(self):
        now = [0.0]
        cache = TTLCache(ttl_seconds=10, clock=lambda: now[0])
        loader = MagicMock(side_effect=["first", "second"])

        assert cache.get_or_load("k", loader) == "first"
        assert cache.get_or_load("k", loader) == "first"
        now[0] = 20.0
        assert cache.get_or_load("k", loader) == "second"

    def test_clear(self):
        cache = TTLCache()
        cache.set("k", "v")
        cache.clear()
        assert cache.get("k") is None
