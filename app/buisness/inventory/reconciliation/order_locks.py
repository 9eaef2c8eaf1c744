"""
In-process lock registry keyed by order tag

Serializes the read-baseline / compute-delta / write sequence for one order
lineage inside a single process. Cross-process safety comes from the version
columns on the order and material rows.

A tag's lock lives only while some thread holds it or waits for it; the last
one out removes it, so the registry does not grow with every order ever seen.
"""

import threading
from contextlib import contextmanager


class _TagLock:
    __slots__ = ('lock', 'users')

    def __init__(self):
        self.lock = threading.RLock()
        self.users = 0


class OrderLockRegistry:
    _locks = {}
    _guard = threading.Lock()

    @classmethod
    def active_tags(cls):
        with cls._guard:
            return set(cls._locks)

    @classmethod
    def _enter(cls, order_tag):
        with cls._guard:
            entry = cls._locks.get(order_tag)
            if entry is None:
                entry = cls._locks[order_tag] = _TagLock()
            entry.users += 1
            return entry

    @classmethod
    def _leave(cls, order_tag, entry):
        with cls._guard:
            entry.users -= 1
            if entry.users == 0 and cls._locks.get(order_tag) is entry:
                del cls._locks[order_tag]

    @classmethod
    @contextmanager
    def hold(cls, order_tag):
        entry = cls._enter(order_tag)
        try:
            with entry.lock:
                yield entry.lock
        finally:
            cls._leave(order_tag, entry)
