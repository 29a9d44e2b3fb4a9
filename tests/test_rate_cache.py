# tests/test_rate_cache.py
"""
Rate Cache Tests - Live Rates, Validity Window and Fallback

Files that USE this module:
- pytest (test runner executes these tests)

Files that this module USES:
- jewelrate.application.rate_cache (RateCache)
- tests.conftest (FakeProvider, FixedClock, seeded store)
"""
import threading
from datetime import timedelta
from decimal import Decimal
from unittest.mock import Mock

from conftest import FakeProvider

from jewelrate.application.rate_cache import TROY_OUNCE_GRAMS, RateCache
from jewelrate.domain.errors import MalformedUpstreamData, UpstreamTimeout
from jewelrate.domain.models import RateOrigin, SpotPrices


class TestConversion:
    def test_troy_ounce_to_gram(self, rate_cache):
        rates = rate_cache.to_per_gram(SpotPrices(TROY_OUNCE_GRAMS * 100, TROY_OUNCE_GRAMS * 2))
        assert rates == {"gold": Decimal("100"), "silver": Decimal("2")}

    def test_calibration_applied_per_metal(self, provider, clock):
        cache = RateCache(provider, calibration={"gold": Decimal("1.5")}, clock=clock)
        rates = cache.live_rates()
        assert rates["gold"] == Decimal("9000")
        assert rates["silver"] == Decimal("80")


class TestValidityWindow:
    def test_cold_start_fetches(self, rate_cache, provider):
        assert rate_cache.live_rates() == {"gold": Decimal("6000"), "silver": Decimal("80")}
        assert provider.calls == 1

    def test_reuses_cached_rates_within_window(self, rate_cache, provider, clock):
        rate_cache.live_rates()
        clock.advance(minutes=4, seconds=59)
        rate_cache.live_rates()
        assert provider.calls == 1

    def test_refreshes_after_window(self, rate_cache, provider, clock):
        rate_cache.live_rates()
        clock.advance(minutes=5)
        rate_cache.live_rates()
        assert provider.calls == 2

    def test_invalidate_forces_refresh(self, rate_cache, provider):
        rate_cache.live_rates()
        rate_cache.invalidate()
        rate_cache.live_rates()
        assert provider.calls == 2

    def test_failed_refresh_does_not_serve_expired_rates(self, rate_cache, provider, clock):
        rate_cache.live_rates()
        clock.advance(minutes=6)
        provider.error = UpstreamTimeout("slow")
        assert rate_cache.live_rates() is None

    def test_snapshot_pairs_rates_with_their_fetch_time(self, rate_cache, provider, clock):
        started = clock.now
        rates, fetched_at = rate_cache.live_snapshot()
        assert rates["gold"] == Decimal("6000")
        assert fetched_at == started

        clock.advance(minutes=1)
        assert rate_cache.live_snapshot()[1] == started

        clock.advance(minutes=5)
        provider.spot = SpotPrices(TROY_OUNCE_GRAMS * 6100, TROY_OUNCE_GRAMS * 81)
        rates, fetched_at = rate_cache.live_snapshot()
        assert rates["gold"] == Decimal("6100")
        assert fetched_at == clock.now

    def test_snapshot_when_feed_down(self, rate_cache, provider):
        provider.error = UpstreamTimeout("slow")
        assert rate_cache.live_snapshot() == (None, None)

    def test_entries_carry_fetch_time_of_cached_rates(self, rate_cache, store, clock):
        started = clock.now
        rate_cache.get_entries(store)
        clock.advance(minutes=2)

        entries = rate_cache.get_entries(store)

        assert entries["gold"].fetched_at == started
        assert entries["silver"].fetched_at == started


class TestMergedTable:
    def test_live_metals_win_and_platinum_comes_from_store(self, rate_cache, store):
        entries = rate_cache.get_entries(store)

        assert entries["gold"].price_per_gram == Decimal("6000")
        assert entries["gold"].source is RateOrigin.LIVE
        assert entries["silver"].source is RateOrigin.LIVE
        assert entries["platinum"].price_per_gram == Decimal("3000")
        assert entries["platinum"].source is RateOrigin.STORED

    def test_falls_back_to_stored_rates_on_feed_failure(self, failing_provider, clock, store):
        cache = RateCache(failing_provider, clock=clock)

        rates = cache.get_rates(store)

        assert rates == {"gold": Decimal("5500"), "silver": Decimal("75"), "platinum": Decimal("3000")}

    def test_malformed_feed_falls_back(self, provider, clock, store):
        provider.error = MalformedUpstreamData("bad")
        cache = RateCache(provider, clock=clock)
        entries = cache.get_entries(store)
        assert all(e.source is RateOrigin.STORED for e in entries.values())

    def test_unexpected_provider_error_falls_back(self, provider, clock, store):
        provider.error = RuntimeError("boom")
        cache = RateCache(provider, clock=clock)
        assert cache.get_rates(store)["gold"] == Decimal("5500")

    def test_non_positive_stored_rate_is_skipped(self, failing_provider, clock, store):
        store.upsert_metal_rate("platinum", Decimal("0"))
        rates = RateCache(failing_provider, clock=clock).get_rates(store)
        assert "platinum" not in rates
        assert rates["gold"] == Decimal("5500")

    def test_store_failure_keeps_live_rates(self, rate_cache):
        broken_store = Mock()
        broken_store.list_metal_rates.side_effect = RuntimeError("db down")

        rates = rate_cache.get_rates(broken_store)

        assert rates == {"gold": Decimal("6000"), "silver": Decimal("80")}

    def test_everything_down_returns_empty_table(self, failing_provider, clock):
        broken_store = Mock()
        broken_store.list_metal_rates.side_effect = RuntimeError("db down")
        assert RateCache(failing_provider, clock=clock).get_rates(broken_store) == {}


class BlockingProvider(FakeProvider):
    def __init__(self):
        super().__init__()
        self.started = threading.Event()
        self.release = threading.Event()

    def fetch_spot(self):
        self.started.set()
        self.release.wait(5)
        return super().fetch_spot()


class TestSingleFlight:
    def test_concurrent_expired_readers_share_one_fetch(self, clock):
        provider = BlockingProvider()
        cache = RateCache(provider, ttl=timedelta(minutes=5), clock=clock)
        results = []

        def read():
            results.append(cache.live_rates())

        leader = threading.Thread(target=read)
        leader.start()
        assert provider.started.wait(5)

        followers = [threading.Thread(target=read) for _ in range(4)]
        for t in followers:
            t.start()
        provider.release.set()
        for t in [leader] + followers:
            t.join(5)

        assert provider.calls == 1
        assert len(results) == 5
        assert all(r == {"gold": Decimal("6000"), "silver": Decimal("80")} for r in results)
