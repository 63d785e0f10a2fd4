"""
Reader/writer locking for the model registry.

Synthesis requests only read the registry (look up a model, read its style
table); loading and unloading models mutate it. Lookups vastly outnumber
mutations, so readers share the lock and a writer waits until the readers
in flight have left.

Writer preference: once a writer is waiting, new readers queue behind it,
so a steady stream of synthesis calls cannot starve ``load``/``unload``.

Usage:
    lock = ReadWriteLock()

    with lock.read():
        model = registry[ident]

    with lock.write():
        registry[ident] = model
"""
from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator


@dataclass
class LockStats:
    """Snapshot of a ReadWriteLock."""
    active_readers: int
    waiting_writers: int
    writer_active: bool


class ReadWriteLock:
    """
    Condition-based shared/exclusive lock.

    Not reentrant: a thread holding the write side must not take the read
    side again, and vice versa.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._condition = threading.Condition(self._lock)
        self._readers = 0
        self._writers_waiting = 0
        self._writer_active = False

    @property
    def active_readers(self) -> int:
        with self._lock:
            return self._readers

    @property
    def writer_active(self) -> bool:
        with self._lock:
            return self._writer_active

    def stats(self) -> LockStats:
        with self._lock:
            return LockStats(
                active_readers=self._readers,
                waiting_writers=self._writers_waiting,
                writer_active=self._writer_active,
            )

    def acquire_read(self) -> None:
        with self._condition:
            while self._writer_active or self._writers_waiting:
                self._condition.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._condition:
            self._readers -= 1
            if self._readers == 0:
                self._condition.notify_all()

    def acquire_write(self) -> None:
        with self._condition:
            self._writers_waiting += 1
            try:
                while self._writer_active or self._readers:
                    self._condition.wait()
            finally:
                self._writers_waiting -= 1
            self._writer_active = True

    def release_write(self) -> None:
        with self._condition:
            self._writer_active = False
            self._condition.notify_all()

    @contextmanager
    def read(self) -> Iterator[None]:
        """Shared access."""
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write(self) -> Iterator[None]:
        """Exclusive access."""
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()
