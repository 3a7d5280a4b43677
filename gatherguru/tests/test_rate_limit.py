import threading

from gatherguru.gateway.rate_limit import FixedWindowRateLimiter


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_allows_up_to_limit_then_rejects():
    limiter = FixedWindowRateLimiter(limit=3, window=60, clock=FakeClock())

    results = [limiter.hit("1.2.3.4") for _ in range(4)]

    assert [r.allowed for r in results] == [True, True, True, False]
    assert [r.remaining for r in results] == [2, 1, 0, 0]


def test_window_resets():
    clock = FakeClock()
    limiter = FixedWindowRateLimiter(limit=1, window=60, clock=clock)

    assert limiter.hit("a").allowed
    assert not limiter.hit("a").allowed

    clock.now += 60
    assert limiter.hit("a").allowed


def test_keys_are_independent():
    limiter = FixedWindowRateLimiter(limit=1, window=60, clock=FakeClock())

    assert limiter.hit("a").allowed
    assert limiter.hit("b").allowed
    assert not limiter.hit("a").allowed


def test_reset_clears_counters():
    limiter = FixedWindowRateLimiter(limit=1, window=60, clock=FakeClock())
    limiter.hit("a")

    limiter.reset()

    assert limiter.hit("a").allowed


def test_concurrent_hits_never_exceed_limit():
    limiter = FixedWindowRateLimiter(limit=50, window=900)
    allowed = []

    def worker():
        for _ in range(20):
            allowed.append(limiter.hit("shared").allowed)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert allowed.count(True) == 50
    assert len(allowed) == 160
