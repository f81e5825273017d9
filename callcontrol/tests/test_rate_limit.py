from unittest.mock import MagicMock

from redis.exceptions import ConnectionError

from callcontrol.services.rate_limit import RateLimiter


def test_first_hit_starts_the_window():
    client = MagicMock()
    client.incr.return_value = 1
    limiter = RateLimiter(prefix="login", limit=5, window_seconds=300, client=client)
    assert limiter.hit("10.0.0.1") is True
    client.expire.assert_called_once_with("callcontrol:login:10.0.0.1", 300)


def test_attempts_over_the_limit_are_blocked():
    client = MagicMock()
    client.incr.return_value = 6
    assert RateLimiter(limit=5, client=client).hit("10.0.0.1") is False
    client.expire.assert_not_called()


def test_unreachable_redis_lets_requests_through():
    client = MagicMock()
    client.incr.side_effect = ConnectionError("refused")
    client.delete.side_effect = ConnectionError("refused")
    limiter = RateLimiter(client=client)
    assert limiter.hit("10.0.0.1") is True
    limiter.reset("10.0.0.1")
