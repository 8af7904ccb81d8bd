# tests/test_ratelimit.py
import time

import pytest

from academy.ratelimit import IdentifierRateLimiter


def test_limit_is_enforced_per_key():
    limiter = IdentifierRateLimiter("3 per minute", "test")
    assert [limiter.hit("phone", "a") for _ in range(4)] == [True, True, True, False]
    assert limiter.hit("phone", "b")
    assert limiter.hit("email", "a")


def test_namespaces_do_not_share_budget():
    first = IdentifierRateLimiter("1 per minute", "one")
    second = IdentifierRateLimiter("1 per minute", "two", storage=first._storage)
    assert first.hit("a")
    assert second.hit("a")
    assert not first.hit("a")


def test_remaining_counts_down():
    limiter = IdentifierRateLimiter("5 per minute", "test")
    assert limiter.remaining("a") == 5
    limiter.hit("a")
    limiter.hit("a")
    assert limiter.remaining("a") == 3


def test_window_moves_on():
    limiter = IdentifierRateLimiter("2 per second", "test")
    assert limiter.hit("a") and limiter.hit("a")
    assert not limiter.hit("a")
    time.sleep(1.1)
    assert limiter.hit("a")


def test_clear_and_reset():
    limiter = IdentifierRateLimiter("1 per minute", "test")
    limiter.hit("a")
    limiter.hit("b")
    limiter.clear("a")
    assert limiter.hit("a")
    assert not limiter.hit("b")
    limiter.reset()
    assert limiter.hit("b")


def test_unparseable_limit_rejected():
    with pytest.raises(ValueError):
        IdentifierRateLimiter("often", "test")
