"""
Shared client instances — Redis and the RQ queue.

redis.from_url() does not connect until the first command, so importing this
module is always safe (even with no Redis running during tests).
"""

import redis

from fivmatch.config import REDIS_URL


# ── Redis ─────────────────────────────────────────────────────────────────────
redis_client = redis.from_url(REDIS_URL, decode_responses=True)

# ── RQ (lazy, avoids import-time queue setup) ────────────────────────────────
_queue = None


def get_queue():
    """Return the default RQ queue bound to the shared Redis client."""
    global _queue
    if _queue is None:
        from rq import Queue
        _queue = Queue('intake', connection=redis.from_url(REDIS_URL))
    return _queue
