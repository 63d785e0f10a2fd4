"""Tests for registry locking and concurrent synthesis."""
from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor

import numpy as np

from sbv2_tts.tts.concurrency import ReadWriteLock
from sbv2_tts.tts.holder import TTSModelHolder

from conftest import FakeRuntime, StubAnalyzer, StubEncoder, StubTokenizer, style_json


def _holder(runtime):
    return TTSModelHolder(StubAnalyzer(), StubTokenizer(), StubEncoder(), runtime)


class TestReadWriteLock:
    """ReadWriteLock basic functionality."""

    def test_readers_share(self):
        lock = ReadWriteLock()
        lock.acquire_read()
        lock.acquire_read()
        assert lock.active_readers == 2
        lock.release_read()
        lock.release_read()
        assert lock.active_readers == 0

    def test_writer_is_exclusive(self):
        lock = ReadWriteLock()
        with lock.write():
            assert lock.writer_active is True
            stats = lock.stats()
            assert stats.active_readers == 0
        assert lock.writer_active is False

    def test_writer_waits_for_readers(self):
        """A writer cannot enter while a reader holds the lock."""
        lock = ReadWriteLock()
        entered = threading.Event()

        def writer():
            with lock.write():
                entered.set()

        lock.acquire_read()
        t = threading.Thread(target=writer)
        t.start()
        assert not entered.wait(0.1)
        lock.release_read()
        assert entered.wait(2.0)
        t.join()

    def test_waiting_writer_blocks_new_readers(self):
        """Writer preference: readers queue behind a waiting writer."""
        lock = ReadWriteLock()
        order = []

        lock.acquire_read()

        def writer():
            with lock.write():
                order.append("writer")

        def reader():
            with lock.read():
                order.append("reader")

        w = threading.Thread(target=writer)
        w.start()
        deadline = time.time() + 2.0
        while lock.stats().waiting_writers == 0 and time.time() < deadline:
            time.sleep(0.005)

        r = threading.Thread(target=reader)
        r.start()
        time.sleep(0.05)
        assert order == []

        lock.release_read()
        w.join(2.0)
        r.join(2.0)
        assert order == ["writer", "reader"]


class TestConcurrentSynthesis:
    """Synthesis on different identifiers is independent."""

    def test_two_models_in_parallel(self):
        runtime = FakeRuntime(delay=0.02)
        holder = _holder(runtime)
        holder.load("a", style_json([[0.0, 0.0]]), b"A")
        holder.load("b", style_json([[0.0, 0.0]]), b"B")

        def synth(ident):
            return holder.synthesize_text(ident, "ab", style_id=0)

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(synth, ["a", "b"] * 8))

        for ident, audio in zip(["a", "b"] * 8, results):
            expected = np.full(runtime.samples, float(ord(ident.upper())), dtype=np.float32)
            assert audio == expected.tobytes()

    def test_per_model_guard_serializes_unsafe_runtime(self):
        runtime = FakeRuntime(concurrent_safe=False, delay=0.01)
        holder = _holder(runtime)
        holder.load("a", style_json([[0.0]]), b"A")

        with ThreadPoolExecutor(max_workers=4) as pool:
            list(pool.map(lambda _: holder.synthesize_text("a", "ab"), range(8)))

        assert holder.find_model("a").session.max_active == 1

    def test_concurrent_safe_runtime_not_serialized(self):
        runtime = FakeRuntime(concurrent_safe=True, delay=0.05)
        holder = _holder(runtime)
        holder.load("a", style_json([[0.0]]), b"A")
        barrier = threading.Barrier(4)

        def synth(_):
            barrier.wait()
            return holder.synthesize_text("a", "ab")

        with ThreadPoolExecutor(max_workers=4) as pool:
            list(pool.map(synth, range(4)))

        assert holder.find_model("a").guard is None
        assert holder.find_model("a").session.max_active > 1

    def test_unload_during_synthesis(self):
        """An in-flight request finishes on the model it already fetched."""
        runtime = FakeRuntime(delay=0.1)
        holder = _holder(runtime)
        holder.load("a", style_json([[0.0]]), b"A")

        with ThreadPoolExecutor(max_workers=1) as pool:
            future = pool.submit(holder.synthesize_text, "a", "ab")
            time.sleep(0.03)
            assert holder.unload("a") is True
            audio = future.result(timeout=2.0)

        assert len(audio) == runtime.samples * 4
        assert holder.models() == []

    def test_concurrent_loads_of_same_ident(self):
        """Racing loads of one identifier create exactly one session."""
        runtime = FakeRuntime()
        holder = _holder(runtime)

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(lambda _: holder.load("a", style_json([[0.0]]), b"A"), range(16)))

        assert holder.models() == ["a"]
        assert runtime.loads == [b"A"]
