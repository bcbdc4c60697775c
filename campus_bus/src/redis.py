from contextlib import contextmanager
from typing import Iterator, Optional
from redis import Redis
from redis.lock import Lock

from campus_bus.src import exceptions
from campus_bus.src.constants import (
    REDIS_HOST,
    REDIS_PORT,
    REDIS_PASSWORD,
    MUTEX_LOCK_TIMEOUT,
    MUTEX_LOCK_MAX_WAIT_TIME,
)

# Redis client (single connection)
redisClient = Redis(
    host=REDIS_HOST,
    port=REDIS_PORT,
    password=REDIS_PASSWORD,
    decode_responses=True,
)


def lockName(resource: str, key: Optional[int | str] = None) -> str:
    """Build the Redis key of a mutex, `lock:<resource>` or `lock:<resource>:<key>`."""
    return f"lock:{resource}" if key is None else f"lock:{resource}:{key}"


def acquireLock(
    resource: str,
    key: Optional[int | str] = None,
    timeOut: int = MUTEX_LOCK_TIMEOUT,
    blockingTimeOut: int = MUTEX_LOCK_MAX_WAIT_TIME,
) -> Lock:
    """
    Acquire a Redis-based mutex lock for a table or a specific row.

    Args:
        resource (str): Name of the table/resource to lock.
        key (Optional[int | str]): Optional primary key for row-level locking.
        timeOut (int): Lock expiration in seconds (auto-released after this).
        blockingTimeOut (int): Maximum time (in seconds) to wait for lock acquisition.

    Returns:
        Lock: A Redis lock object if successfully acquired.

    Raises:
        exceptions.LockAcquireTimeout: If the lock could not be acquired within
            blockingTimeOut. The caller may retry the whole operation.
    """
    try:
        lock = redisClient.lock(lockName(resource, key), timeout=timeOut)
        if lock.acquire(blocking=True, blocking_timeout=blockingTimeOut):
            return lock
        raise exceptions.LockAcquireTimeout()
    except Exception as e:
        exceptions.handle(e)


def releaseLock(lock: Optional[Lock]) -> None:
    """
    Release a previously acquired Redis lock.

    Args:
        lock (Lock | None): The Redis lock object to release. Does nothing if None.

    Notes:
        - Ensures only the owner can release the lock.
        - Silently ignores invalid/unowned locks (e.g. expired after `timeOut`).
    """
    if lock and lock.locked() and lock.owned():
        lock.release()


@contextmanager
def mutex(resource: str, key: Optional[int | str] = None) -> Iterator[Lock]:
    """
    Hold a row-level mutex for the duration of a `with` block.

    Example:
        >>> with mutex(Trip.__tablename__, trip.id):
        ...     ledger.reserve(session, trip.id)
    """
    lock = acquireLock(resource, key)
    try:
        yield lock
    finally:
        releaseLock(lock)
