from app.nexus.ratelimit import RateLimiter


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_window_allows_up_to_limit():
    limiter = RateLimiter(clock=FakeClock())
    results = [limiter.hit("login:1.2.3.4", limit=3, window_seconds=60).allowed for _ in range(4)]
    assert results == [True, True, True, False]


def test_window_resets_after_expiry():
    clock = FakeClock()
    limiter = RateLimiter(clock=clock)
    for _ in range(3):
        limiter.hit("k", limit=2, window_seconds=60)
    clock.now += 61
    result = limiter.hit("k", limit=2, window_seconds=60)
    assert result.allowed is True
    assert result.remaining == 1


def test_keys_are_independent_and_reset():
    limiter = RateLimiter(clock=FakeClock())
    limiter.hit("a", limit=1, window_seconds=60)
    assert limiter.hit("b", limit=1, window_seconds=60).allowed is True
    assert limiter.hit("a", limit=1, window_seconds=60).allowed is False
    limiter.reset("a")
    assert limiter.hit("a", limit=1, window_seconds=60).allowed is True


def test_cleanup_drops_expired_windows():
    clock = FakeClock()
    limiter = RateLimiter(clock=clock)
    limiter.hit("a", limit=1, window_seconds=10)
    limiter.hit("b", limit=1, window_seconds=100)
    clock.now += 50
    assert limiter.cleanup() == 1


def test_hit_sweeps_expired_windows():
    clock = FakeClock()
    limiter = RateLimiter(clock=clock, sweep_interval=30)
    for i in range(10):
        limiter.hit(f"otp:10.0.0.{i}", limit=2, window_seconds=20)
    assert limiter.size() == 10
    clock.now += 31
    limiter.hit("otp:10.0.0.99", limit=2, window_seconds=20)
    assert limiter.size() == 1
