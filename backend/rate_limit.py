# =============================================================================
# AgriMarket Backend
# rate_limit.py - Per-action Rate Limiter
#
# In-memory fixed-window buckets keyed by action name and client IP, with a
# periodic sweep that drops expired buckets. Preset limiters are initialized
# with the app like any other Flask extension.
# =============================================================================

import math
import logging
import threading
import time

from constants import RATE_LIMIT_PRESETS, RATE_LIMIT_CLEANUP_INTERVAL
from errors import RateLimitError

logger = logging.getLogger(__name__)


class Bucket:
    """Request counter for one action/IP pair within the current window."""

    __slots__ = ('count', 'last_reset')

    def __init__(self, count, last_reset):
        self.count = count
        self.last_reset = last_reset

    def __repr__(self):
        return f'<Bucket count={self.count} last_reset={self.last_reset}>'


class RateLimitInfo:
    """
    Snapshot of a bucket as seen by the client.

    Attributes:
        limit: Effective ceiling for the bucket
        remaining: Requests left in the current window
        reset: Epoch seconds at which the window ends
    """

    __slots__ = ('limit', 'remaining', 'reset')

    def __init__(self, limit, remaining, reset):
        self.limit = limit
        self.remaining = remaining
        self.reset = reset

    def to_dict(self):
        return {
            'total': self.limit,
            'remaining': self.remaining,
            'reset': int(math.ceil(self.reset))
        }

    def headers(self):
        return {
            'X-RateLimit-Limit': str(self.limit),
            'X-RateLimit-Remaining': str(self.remaining),
            'X-RateLimit-Reset': str(int(math.ceil(self.reset)))
        }

    def __repr__(self):
        return f'<RateLimitInfo {self.remaining}/{self.limit} reset={self.reset}>'


class RateLimiter:
    """
    Fixed-window rate limiter with one bucket per (action, IP) key.

    A bucket is reset once more than `interval` seconds have passed since its
    last reset. A check is rejected while the bucket count has reached either
    the per-action limit passed to check() or the limiter-wide max_requests.
    Rejected checks do not consume quota.

    Usage:
        limiter = RateLimiter('strict', interval=60, max_requests=5)
        info = limiter.check('login', request.remote_addr)
    """

    def __init__(self, name, interval=60, max_requests=60,
                 cleanup_interval=RATE_LIMIT_CLEANUP_INTERVAL, clock=time.time):
        self.name = name
        self.interval = interval
        self.max_requests = max_requests
        self.cleanup_interval = cleanup_interval
        self.enabled = True
        self._clock = clock
        self._buckets = {}
        self._lock = threading.Lock()
        self._timer = None

    # -------------------------------------------------------------------------
    # Flask integration
    # -------------------------------------------------------------------------

    def init_app(self, app):
        """
        Load limits from app config and start the cleanup sweep.

        Reads RATE_LIMIT_<NAME>_INTERVAL and RATE_LIMIT_<NAME>_MAX, plus the
        shared RATE_LIMIT_ENABLED, RATE_LIMIT_CLEANUP_INTERVAL and
        RATE_LIMIT_CLEANUP_ENABLED settings.
        """
        prefix = f'RATE_LIMIT_{self.name.upper()}'
        self.interval = app.config.get(f'{prefix}_INTERVAL', self.interval)
        self.max_requests = app.config.get(f'{prefix}_MAX', self.max_requests)
        self.enabled = app.config.get('RATE_LIMIT_ENABLED', True)
        self.cleanup_interval = app.config.get(
            'RATE_LIMIT_CLEANUP_INTERVAL', self.cleanup_interval
        )

        self.stop_cleanup()
        self.clear()

        app.extensions[f'rate_limiter.{self.name}'] = self

        if self.enabled and app.config.get('RATE_LIMIT_CLEANUP_ENABLED', True):
            self.start_cleanup()

    # -------------------------------------------------------------------------
    # Bucket operations
    # -------------------------------------------------------------------------

    @staticmethod
    def make_key(action, ip):
        return f'{action}:{ip or "unknown"}'

    def _ceiling(self, limit):
        if limit is None:
            return self.max_requests
        return min(limit, self.max_requests)

    def _expired(self, bucket, now):
        return now - bucket.last_reset > self.interval

    def check(self, action, ip=None, limit=None):
        """
        Consume one request from the bucket for action and ip.

        Args:
            action: Action name, e.g. 'login'
            ip: Client IP address
            limit: Optional per-action limit, capped by max_requests

        Returns:
            RateLimitInfo: Bucket state after this request

        Raises:
            RateLimitError: If the bucket is exhausted for this window
        """
        ceiling = self._ceiling(limit)
        now = self._clock()

        if not self.enabled:
            return RateLimitInfo(ceiling, ceiling, now + self.interval)

        key = self.make_key(action, ip)

        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None or self._expired(bucket, now):
                bucket = Bucket(0, now)
                self._buckets[key] = bucket

            reset_at = bucket.last_reset + self.interval

            if bucket.count >= ceiling:
                retry_after = max(1, int(math.ceil(reset_at - now)))
                logger.warning(
                    f"Rate limit exceeded: {key} ({bucket.count}/{ceiling}) "
                    f"on '{self.name}' limiter"
                )
                raise RateLimitError(
                    info=RateLimitInfo(ceiling, 0, reset_at),
                    retry_after=retry_after,
                    action=action
                )

            bucket.count += 1
            return RateLimitInfo(ceiling, ceiling - bucket.count, reset_at)

    def status(self, action, ip=None, limit=None):
        """Return the bucket state for action and ip without consuming quota."""
        ceiling = self._ceiling(limit)
        now = self._clock()

        with self._lock:
            bucket = self._buckets.get(self.make_key(action, ip))
            if not self.enabled or bucket is None or self._expired(bucket, now):
                return RateLimitInfo(ceiling, ceiling, now + self.interval)
            remaining = max(0, ceiling - bucket.count)
            return RateLimitInfo(ceiling, remaining, bucket.last_reset + self.interval)

    def reset(self, action, ip=None):
        with self._lock:
            self._buckets.pop(self.make_key(action, ip), None)

    def clear(self):
        with self._lock:
            self._buckets.clear()

    def __len__(self):
        with self._lock:
            return len(self._buckets)

    # -------------------------------------------------------------------------
    # Expired bucket sweep
    # -------------------------------------------------------------------------

    def cleanup(self):
        """
        Delete every bucket whose window has expired.

        Returns:
            int: Number of buckets removed
        """
        now = self._clock()
        with self._lock:
            expired = [
                key for key, bucket in self._buckets.items()
                if self._expired(bucket, now)
            ]
            for key in expired:
                del self._buckets[key]

        if expired:
            logger.debug(f"Rate limiter '{self.name}' swept {len(expired)} buckets")
        return len(expired)

    def _schedule_cleanup(self):
        # Caller holds self._lock
        self._timer = threading.Timer(self.cleanup_interval, self._run_cleanup)
        self._timer.daemon = True
        self._timer.start()

    def _run_cleanup(self):
        # Only the live timer reschedules itself
        try:
            self.cleanup()
        finally:
            with self._lock:
                if self._timer is threading.current_thread():
                    self._schedule_cleanup()

    def start_cleanup(self):
        with self._lock:
            if self._timer is None:
                self._schedule_cleanup()

    def stop_cleanup(self):
        with self._lock:
            timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()

    @property
    def cleanup_running(self):
        return self._timer is not None

    def __repr__(self):
        return (
            f'<RateLimiter {self.name} {self.max_requests}/{self.interval}s '
            f'buckets={len(self._buckets)}>'
        )


# =============================================================================
# Preset Limiters
# =============================================================================
strict_limiter = RateLimiter('strict', **RATE_LIMIT_PRESETS['strict'])
normal_limiter = RateLimiter('normal', **RATE_LIMIT_PRESETS['normal'])
relaxed_limiter = RateLimiter('relaxed', **RATE_LIMIT_PRESETS['relaxed'])

PRESET_LIMITERS = {
    'strict': strict_limiter,
    'normal': normal_limiter,
    'relaxed': relaxed_limiter
}


def init_rate_limiters(app):
    """Initialize all preset limiters with the application instance."""
    for preset in PRESET_LIMITERS.values():
        preset.init_app(app)


def get_limiter(name):
    """
    Look up a preset limiter by name.

    Raises:
        KeyError: If no preset with that name exists
    """
    return PRESET_LIMITERS[name]
