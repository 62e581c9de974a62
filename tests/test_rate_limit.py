"""
Tests for the in-memory rate limit store and rule matching.
"""

from claimsdesk.rate_limit import RateLimitStore, match_rule


class TestRateLimitStore:
    """Sliding window counting per key."""

    def test_limits_after_max_requests(self):
        store = RateLimitStore()
        results = [store.is_rate_limited("1.2.3.4:/sign", 3, 60, now=100.0) for _ in range(4)]
        assert results == [False, False, False, True]

    def test_window_slides(self):
        store = RateLimitStore()
        for _ in range(3):
            store.is_rate_limited("1.2.3.4:/sign", 3, 60, now=100.0)

        assert store.is_rate_limited("1.2.3.4:/sign", 3, 60, now=159.0) is True
        assert store.is_rate_limited("1.2.3.4:/sign", 3, 60, now=161.0) is False

    def test_keys_are_independent(self):
        store = RateLimitStore()
        store.is_rate_limited("1.2.3.4:/sign", 1, 60, now=100.0)
        assert store.is_rate_limited("5.6.7.8:/sign", 1, 60, now=100.0) is False

    def test_idle_keys_are_dropped(self):
        store = RateLimitStore(sweep_interval=30.0)
        for i in range(50):
            store.is_rate_limited(f"10.0.0.{i}:/sign", 30, 60, now=100.0)
        assert len(store) == 50

        store.is_rate_limited("10.0.1.1:/sign", 30, 60, now=200.0)
        assert len(store) == 1

    def test_sweep_keeps_live_keys(self):
        store = RateLimitStore()
        store.is_rate_limited("old:/sign", 30, 60, now=100.0)
        store.is_rate_limited("new:/sign", 30, 60, now=150.0)

        store.sweep(now=170.0)
        assert len(store) == 1
        assert store.is_rate_limited("new:/sign", 1, 60, now=170.0) is True


class TestMatchRule:

    def test_portal_link(self):
        assert match_rule("/sign/abc") == ("/sign", (30, 60))

    def test_prefix_must_end_at_segment(self):
        assert match_rule("/signatures") is None

    def test_unlimited_path(self):
        assert match_rule("/health") is None
