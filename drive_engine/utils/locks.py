"""Per-job locking for round reordering."""
from contextlib import contextmanager

import redis
from flask import current_app

from drive_engine.utils.errors import ConflictError


def get_redis():
    """Redis client configured for this app, or None."""
    return current_app.extensions.get('redis')


@contextmanager
def job_lock(job_id: int, purpose: str = 'reorder'):
    """Serialize structural changes to a job's rounds.

    With Redis configured this holds a distributed lock; without it the
    partial unique index on (job_id, order) is what rejects a lost race.
    """
    client = get_redis()
    if client is None:
        yield
        return
    
    lock = client.lock(
        f'drive:job:{job_id}:{purpose}',
        timeout=current_app.config.get('REORDER_LOCK_TIMEOUT', 5),
        blocking_timeout=current_app.config.get('REORDER_LOCK_WAIT', 3)
    )
    try:
        acquired = lock.acquire()
    except redis.RedisError as e:
        raise ConflictError(f"Could not lock job {job_id}: {e}")
    if not acquired:
        raise ConflictError(f"Another {purpose} is in progress for job {job_id}")
    try:
        yield
    finally:
        try:
            lock.release()
        except redis.exceptions.LockError:
            current_app.logger.warning('Lock for job %s expired before release', job_id)
