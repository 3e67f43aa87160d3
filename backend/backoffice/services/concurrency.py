# Overview: Row locking, retry, and per-key in-process locks used by settlement.

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from typing import Hashable, Iterable

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import SettlementTimeout
from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_immediate() covers it there.
    """
    return query.with_for_update()


def begin_immediate() -> None:
    """Take the SQLite write lock up front so check-and-decrement cannot interleave."""
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, busy database) and StaleDataError
    (optimistic version_id conflicts). The session is rolled back before each
    retry, so func must start its own work from scratch.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


class KeyedLockRegistry:
    """
    One mutex per key, created on first use.

    Settlement keys are ("stock", product_id, size) and ("customer", id) or
    ("customer-phone", phone). Unrelated keys never contend. Locks are not
    evicted; the key space is bounded by sizes and customers.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[Hashable, threading.Lock] = {}

    def _lock_for(self, key: Hashable) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, keys: Iterable[Hashable], timeout: float):
        """
        Acquire every key (sorted, so two holders never deadlock) within
        `timeout` seconds overall, or raise SettlementTimeout holding nothing.
        """
        ordered = sorted(set(keys))
        deadline = time.monotonic() + timeout
        acquired: list[threading.Lock] = []
        try:
            for key in ordered:
                lock = self._lock_for(key)
                remaining = max(deadline - time.monotonic(), 0)
                if not lock.acquire(timeout=remaining):
                    raise SettlementTimeout(
                        "Timed out waiting for a settlement lock",
                        details={"key": list(key) if isinstance(key, tuple) else key, "timeout_seconds": timeout},
                    )
                acquired.append(lock)
            yield ordered
        finally:
            for lock in reversed(acquired):
                lock.release()


def get_lock_registry() -> KeyedLockRegistry:
    return current_app.extensions["settlement_locks"]
