"""Tests for the per-action fixed-window rate limiter."""

import threading

import pytest

from errors import RateLimitError
from rate_limit import (
    RateLimiter,
    RateLimitInfo,
    PRESET_LIMITERS,
    strict_limiter,
    normal_limiter,
    relaxed_limiter,
    get_limiter
)


@pytest.fixture
def limiter(clock):
    return RateLimiter('test', interval=60, max_requests=2, clock=clock)


class TestBucketWindow:
    """Counting within a window and resetting after it."""

    def test_remaining_decreases(self, limiter, clock):
        first = limiter.check('login', '10.0.0.1')
        second = limiter.check('login', '10.0.0.1')

        assert first.limit == 2
        assert first.remaining == 1
        assert second.remaining == 0
        assert first.reset == clock.now + 60

    def test_blocks_when_exhausted(self, limiter, clock):
        limiter.check('login', '10.0.0.1')
        limiter.check('login', '10.0.0.1')

        with pytest.raises(RateLimitError) as exc_info:
            limiter.check('login', '10.0.0.1')

        error = exc_info.value
        assert error.status_code == 429
        assert error.code == 'RATE_LIMIT_EXCEEDED'
        assert error.message == 'Too many requests. Please try again later.'
        assert error.action == 'login'
        assert error.info.remaining == 0
        assert error.info.limit == 2
        assert error.retry_after == 60

    def test_retry_after_counts_down(self, limiter, clock):
        limiter.check('login', '10.0.0.1')
        limiter.check('login', '10.0.0.1')
        clock.advance(45.5)

        with pytest.raises(RateLimitError) as exc_info:
            limiter.check('login', '10.0.0.1')

        assert exc_info.value.retry_after == 15

    def test_window_boundary_is_exclusive(self, limiter, clock):
        limiter.check('login', '10.0.0.1')
        limiter.check('login', '10.0.0.1')

        clock.advance(60)
        with pytest.raises(RateLimitError):
            limiter.check('login', '10.0.0.1')

        clock.advance(0.001)
        info = limiter.check('login', '10.0.0.1')
        assert info.remaining == 1
        assert info.reset == clock.now + 60

    def test_rejected_requests_do_not_consume(self, clock):
        limiter = RateLimiter('test', interval=60, max_requests=5, clock=clock)
        limiter.check('upload', '10.0.0.1', limit=2)
        limiter.check('upload', '10.0.0.1', limit=2)

        for _ in range(3):
            with pytest.raises(RateLimitError):
                limiter.check('upload', '10.0.0.1', limit=2)

        # Count is still 2, so a higher limit lets one more through
        info = limiter.check('upload', '10.0.0.1', limit=3)
        assert info.remaining == 0


class TestBucketKeys:
    """Bucket separation by action and client IP."""

    def test_ips_are_independent(self, limiter):
        limiter.check('login', '10.0.0.1')
        limiter.check('login', '10.0.0.1')

        info = limiter.check('login', '10.0.0.2')
        assert info.remaining == 1

    def test_actions_are_independent(self, limiter):
        limiter.check('login', '10.0.0.1')
        limiter.check('login', '10.0.0.1')

        info = limiter.check('register', '10.0.0.1')
        assert info.remaining == 1

    def test_missing_ip_shares_unknown_bucket(self, limiter):
        assert RateLimiter.make_key('login', None) == 'login:unknown'
        assert RateLimiter.make_key('login', '') == 'login:unknown'

        limiter.check('login')
        limiter.check('login', None)
        with pytest.raises(RateLimitError):
            limiter.check('login', '')

    def test_key_format(self):
        assert RateLimiter.make_key('login', '192.168.1.9') == 'login:192.168.1.9'


class TestLimits:
    """Per-action limits against the limiter-wide ceiling."""

    def test_per_action_limit_below_ceiling(self, clock):
        limiter = RateLimiter('test', interval=60, max_requests=5, clock=clock)
        info = limiter.check('search', '10.0.0.1', limit=2)
        assert info.limit == 2
        assert info.remaining == 1

    def test_ceiling_caps_per_action_limit(self, clock):
        limiter = RateLimiter('test', interval=60, max_requests=3, clock=clock)
        info = limiter.check('search', '10.0.0.1', limit=10)
        assert info.limit == 3
        assert info.remaining == 2


class TestStatus:
    """Non-consuming bucket inspection."""

    def test_status_of_unknown_bucket(self, limiter, clock):
        info = limiter.status('login', '10.0.0.1')
        assert info.limit == 2
        assert info.remaining == 2
        assert info.reset == clock.now + 60
        assert len(limiter) == 0

    def test_status_does_not_consume(self, limiter):
        limiter.check('login', '10.0.0.1')

        for _ in range(5):
            info = limiter.status('login', '10.0.0.1')
        assert info.remaining == 1

        assert limiter.check('login', '10.0.0.1').remaining == 0

    def test_status_after_window(self, limiter, clock):
        limiter.check('login', '10.0.0.1')
        limiter.check('login', '10.0.0.1')
        clock.advance(61)

        assert limiter.status('login', '10.0.0.1').remaining == 2

    def test_reset_drops_bucket(self, limiter):
        limiter.check('login', '10.0.0.1')
        limiter.check('login', '10.0.0.1')

        limiter.reset('login', '10.0.0.1')

        assert limiter.check('login', '10.0.0.1').remaining == 1


class TestCleanup:
    """Sweeping expired buckets."""

    def test_cleanup_removes_only_expired(self, limiter, clock):
        limiter.check('login', '10.0.0.1')
        clock.advance(30)
        limiter.check('login', '10.0.0.2')
        clock.advance(31)

        assert limiter.cleanup() == 1
        assert len(limiter) == 1
        assert limiter.status('login', '10.0.0.2').remaining == 1

    def test_cleanup_with_nothing_expired(self, limiter):
        limiter.check('login', '10.0.0.1')
        assert limiter.cleanup() == 0
        assert len(limiter) == 1

    def test_start_and_stop_cleanup(self, clock):
        limiter = RateLimiter('test', cleanup_interval=3600, clock=clock)
        assert not limiter.cleanup_running

        limiter.start_cleanup()
        limiter.start_cleanup()
        assert limiter.cleanup_running

        limiter.stop_cleanup()
        assert not limiter.cleanup_running

    def test_scheduled_run_reschedules(self, clock):
        limiter = RateLimiter('test', cleanup_interval=0.01, clock=clock)
        limiter.check('login', '10.0.0.1')
        clock.advance(120)

        limiter.start_cleanup()
        try:
            fired = limiter._timer
            fired.join(timeout=2)

            assert len(limiter) == 0
            assert limiter.cleanup_running
            assert limiter._timer is not fired
        finally:
            limiter.stop_cleanup()

    def test_orphaned_sweep_does_not_reschedule(self, clock):
        limiter = RateLimiter('test', cleanup_interval=3600, clock=clock)
        limiter.start_cleanup()
        limiter.stop_cleanup()
        limiter.start_cleanup()
        current = limiter._timer

        orphan = threading.Thread(target=limiter._run_cleanup)
        orphan.start()
        orphan.join(timeout=2)

        assert limiter._timer is current
        limiter.stop_cleanup()
        current.join(timeout=2)
        assert not current.is_alive()
        assert not limiter.cleanup_running


class TestDisabled:
    """Disabled limiters never reject."""

    def test_disabled_limiter_allows_everything(self, limiter):
        limiter.enabled = False

        for _ in range(10):
            info = limiter.check('login', '10.0.0.1')

        assert info.remaining == 2
        assert len(limiter) == 0


class TestConcurrency:
    """Bucket updates are serialized."""

    def test_parallel_checks_respect_limit(self, clock):
        limiter = RateLimiter('test', interval=60, max_requests=50, clock=clock)
        allowed = []
        rejected = []

        def worker():
            for _ in range(10):
                try:
                    limiter.check('login', '10.0.0.1')
                    allowed.append(1)
                except RateLimitError:
                    rejected.append(1)

        threads = [threading.Thread(target=worker) for _ in range(10)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(allowed) == 50
        assert len(rejected) == 50


class TestRateLimitInfo:
    """Client-facing snapshot."""

    def test_to_dict_rounds_reset_up(self):
        info = RateLimitInfo(5, 3, 1000.2)
        assert info.to_dict() == {'total': 5, 'remaining': 3, 'reset': 1001}

    def test_headers(self):
        info = RateLimitInfo(5, 0, 1000.0)
        assert info.headers() == {
            'X-RateLimit-Limit': '5',
            'X-RateLimit-Remaining': '0',
            'X-RateLimit-Reset': '1000'
        }


class TestPresets:
    """Preset limiters and their Flask initialization."""

    def test_preset_defaults(self, app):
        assert (strict_limiter.max_requests, strict_limiter.interval) == (5, 60)
        assert (normal_limiter.max_requests, normal_limiter.interval) == (60, 60)
        assert (relaxed_limiter.max_requests, relaxed_limiter.interval) == (300, 60)

    def test_presets_registered_on_app(self, app):
        for name, preset in PRESET_LIMITERS.items():
            assert app.extensions[f'rate_limiter.{name}'] is preset
            assert get_limiter(name) is preset

    def test_unknown_preset(self):
        with pytest.raises(KeyError):
            get_limiter('extreme')

    def test_testing_config_keeps_sweep_off(self, app):
        assert not any(preset.cleanup_running for preset in PRESET_LIMITERS.values())

    def test_init_app_reads_config(self, app, clock):
        app.config.update({
            'RATE_LIMIT_CUSTOM_INTERVAL': 10,
            'RATE_LIMIT_CUSTOM_MAX': 3,
            'RATE_LIMIT_CLEANUP_INTERVAL': 5
        })
        limiter = RateLimiter('custom', clock=clock)
        limiter.init_app(app)

        assert limiter.interval == 10
        assert limiter.max_requests == 3
        assert limiter.cleanup_interval == 5
        assert app.extensions['rate_limiter.custom'] is limiter

    def test_init_app_clears_buckets(self, app, clock):
        limiter = RateLimiter('custom', clock=clock)
        limiter.check('login', '10.0.0.1')

        limiter.init_app(app)

        assert len(limiter) == 0


class TestPresetOverrides:
    """Preset limits come from app config."""

    @pytest.fixture
    def config_overrides(self):
        return {'RATE_LIMIT_STRICT_MAX': 2, 'RATE_LIMIT_STRICT_INTERVAL': 30}

    def test_overridden_strict_preset(self, app):
        assert strict_limiter.max_requests == 2
        assert strict_limiter.interval == 30
