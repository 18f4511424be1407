from chesslog.chess_clients.rate_limiter import MinIntervalPacer, SlidingWindowRateLimiter
from tests.http_fakes import ManualClock


def _max_in_any_window(timestamps: list[float], window_s: float) -> int:
    return max(
        sum(1 for other in timestamps if end - window_s < other <= end) for end in timestamps
    )


def test_trailing_window_never_exceeds_limit():
    clock = ManualClock()
    limiter = SlidingWindowRateLimiter(
        max_requests=3, window_s=10.0, margin_s=0.1, clock=clock, sleep=clock.sleep
    )
    recorded = []
    for index in range(10):
        limiter.acquire()
        limiter.record()
        recorded.append(clock.now)
        clock.now += 0.5 * (index % 2)

    assert _max_in_any_window(recorded, 10.0) <= 3
    assert clock.sleeps
    assert all(wait > 0 for wait in clock.sleeps)


def test_acquire_does_not_sleep_below_limit():
    clock = ManualClock()
    limiter = SlidingWindowRateLimiter(max_requests=5, window_s=60.0, clock=clock, sleep=clock.sleep)
    for _ in range(5):
        assert limiter.acquire() == 0.0
        limiter.record()
    assert clock.sleeps == []
    assert len(limiter.recorded) == 5


def test_acquire_waits_for_oldest_to_leave_window():
    clock = ManualClock(start=0.0)
    limiter = SlidingWindowRateLimiter(
        max_requests=2, window_s=60.0, margin_s=0.5, clock=clock, sleep=clock.sleep
    )
    limiter.acquire()
    limiter.record()
    clock.now = 20.0
    limiter.acquire()
    limiter.record()
    clock.now = 30.0

    slept = limiter.acquire()

    assert slept == 30.5
    assert clock.now == 60.5
    assert limiter.recorded == [20.0]


def test_min_interval_pacer():
    clock = ManualClock(start=0.0)
    pacer = MinIntervalPacer(interval_s=1.0, clock=clock, sleep=clock.sleep)
    assert pacer.wait() == 0.0
    clock.now += 0.25
    assert pacer.wait() == 0.75
    clock.now += 5
    assert pacer.wait() == 0.0
    assert clock.sleeps == [0.75]
