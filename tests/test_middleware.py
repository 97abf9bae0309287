"""
Tests for the rate limiter.
"""

from contract_pdf_service.middleware import RateLimiter


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestRateLimiter:
    def test_allows_up_to_limit(self):
        limiter = RateLimiter(requests_per_minute=3, clock=FakeClock())
        assert [limiter.is_allowed("10.0.0.1") for _ in range(4)] == [True, True, True, False]

    def test_identifiers_are_independent(self):
        limiter = RateLimiter(requests_per_minute=1, clock=FakeClock())
        assert limiter.is_allowed("a")
        assert limiter.is_allowed("b")
        assert not limiter.is_allowed("a")

    def test_window_resets(self):
        clock = FakeClock()
        limiter = RateLimiter(requests_per_minute=1, clock=clock)
        assert limiter.is_allowed("a")

        clock.now += 30
        allowed, retry_after = limiter.hit("a")
        assert not allowed
        assert retry_after == 30

        clock.now += 30
        assert limiter.is_allowed("a")

    def test_cleanup_drops_expired_windows(self):
        clock = FakeClock()
        limiter = RateLimiter(requests_per_minute=5, clock=clock)
        limiter.is_allowed("old")
        clock.now += 61
        limiter.is_allowed("new")

        limiter.cleanup()
        assert list(limiter.requests) == ["new"]

    def test_expired_windows_are_dropped_while_counting(self):
        """Stale identifiers do not accumulate without an explicit cleanup call."""
        clock = FakeClock()
        limiter = RateLimiter(requests_per_minute=5, clock=clock)
        for index in range(500):
            limiter.is_allowed(f"10.0.{index // 256}.{index % 256}")
        assert len(limiter.requests) == 500

        clock.now += 3600
        limiter.is_allowed("192.168.1.1")
        assert list(limiter.requests) == ["192.168.1.1"]

    def test_live_windows_survive_pruning(self):
        clock = FakeClock()
        limiter = RateLimiter(requests_per_minute=1, clock=clock)
        limiter.is_allowed("old")
        clock.now += 40
        limiter.is_allowed("recent")
        clock.now += 30
        limiter.is_allowed("other")

        assert set(limiter.requests) == {"recent", "other"}
        assert not limiter.is_allowed("recent")
