"""Threads that share one address space, with stacks drawn from a user heap."""

from __future__ import annotations

import queue
import sys
import threading
import time
from dataclasses import dataclass, field

from .locks import UserLock
from .mmu import PGSIZE, pgroundup
from .strings import atoi
from .umalloc import Heap

ARRN = 16
MAX_T = 32

_USAGE = "usage: uthread basic|showcase|stress [nthreads [loops]]"


def _emit(line):
    sys.stdout.write(line + "\n")


class ThreadGroup:
    """Creates threads with their own stacks and reaps them as they finish."""

    def __init__(self, heap=None, stack_size=PGSIZE):
        if stack_size <= 0:
            raise ValueError("stack size must be positive")
        self.heap = heap if heap is not None else Heap()
        self.stack_size = stack_size
        self._lock = threading.Lock()
        self._next_pid = 1
        self._running = {}
        self._finished = queue.Queue()

    def __len__(self):
        with self._lock:
            return len(self._running)

    def _run(self, pid, fn, arg1, arg2):
        try:
            fn(arg1, arg2)
        finally:
            self._finished.put(pid)

    def create(self, fn, arg1=None, arg2=None):
        """Start fn(arg1, arg2) on a new stack and return the thread's id."""
        with self._lock:
            raw = self.heap.malloc(self.stack_size)
            stack = pgroundup(raw)
            pid = self._next_pid
            self._next_pid += 1
            thread = threading.Thread(
                target=self._run,
                args=(pid, fn, arg1, arg2),
                name=f"thread-{pid}",
                daemon=True,
            )
            self._running[pid] = (thread, raw, stack)
        try:
            thread.start()
        except RuntimeError:
            with self._lock:
                del self._running[pid]
                self.heap.free(raw)
            raise
        return pid

    def join(self):
        """Wait for any thread to finish, free its stack and return its id."""
        with self._lock:
            if not self._running:
                raise ChildProcessError("no threads to join")
        pid = self._finished.get()
        with self._lock:
            thread, raw, _stack = self._running.pop(pid)
        thread.join()
        with self._lock:
            self.heap.free(raw)
        return pid


@dataclass
class _Shared:
    counter: int = 0
    arr: list = field(default_factory=lambda: [0] * ARRN)


def run_basic():
    """Two threads each bump a shared counter once under a lock; returns the counter."""
    lock = UserLock()
    shared = _Shared()

    def worker(_a1, _a2):
        with lock:
            before = shared.counter
            time.sleep(0)
            shared.counter = before + 1

    group = ThreadGroup()
    for _ in range(2):
        try:
            group.create(worker)
        except MemoryError:
            _emit("thread_create failed")
            break
    while len(group):
        group.join()
    _emit(f"counter={shared.counter} (expect 2)")
    return shared.counter


def run_showcase(nthreads=4, loops=1000):
    """Many threads increment a shared counter and mark a shared array."""
    n = max(nthreads, 1)
    loops = max(loops, 1)
    expected = n * loops
    _emit(f"t_thread_showcase: nthreads={n}, loops={loops} (expect counter={expected})")

    lock = UserLock()
    shared = _Shared()

    def worker(tid, count):
        _emit(f"[T{tid}] start (loops={count})")
        if tid < ARRN:
            shared.arr[tid] = 1
        for i in range(count):
            with lock:
                before = shared.counter
                shared.counter = before + 1
                if tid < ARRN:
                    shared.arr[tid] += 1
            if i & 31 == 0:
                time.sleep(0)
        _emit(f"[T{tid}] done")

    group = ThreadGroup()
    ok = True
    for i in range(n):
        try:
            group.create(worker, i, loops)
        except MemoryError:
            _emit(f"t_thread_showcase: thread_create failed at i={i}")
            ok = False
            break

    if not ok:
        _emit("t_thread_showcase: aborting due to create error")
        while len(group):
            group.join()
        return {"nthreads": n, "loops": loops, "counter": shared.counter,
                "expected": expected, "seen": 0, "bumped": 0, "ok": False}

    for _ in range(n):
        group.join()

    marks = shared.arr[:min(n, ARRN)]
    seen = sum(1 for v in marks if v > 0)
    bumped = sum(1 for v in marks if v > 1)

    _emit(f"t_thread_showcase: FINAL counter={shared.counter} (expect {expected})")
    _emit(f"t_thread_showcase: shared_arr seen={seen}/{min(n, ARRN)}, bumped={bumped}")
    matched = shared.counter == expected
    if matched:
        _emit("[OK] counter matches expectation.")
    else:
        _emit("[FAIL] counter mismatch!")
    return {"nthreads": n, "loops": loops, "counter": shared.counter,
            "expected": expected, "seen": seen, "bumped": bumped, "ok": matched}


def run_stress(nthreads=6, loops=2000):
    """Up to MAX_T threads on two-page stacks hammer a locked counter."""
    n = min(max(nthreads, 1), MAX_T)
    loops = max(loops, 0)
    _emit(f"t_thread_stress: nthreads={n}, loops={loops}")

    lock = UserLock()
    shared = _Shared()

    def worker(tid, count):
        _emit(f"[T{tid}] start; loops={count}")
        for _ in range(count):
            with lock:
                before = shared.counter
                shared.counter = before + 1
        _emit(f"[T{tid}] done")

    group = ThreadGroup(stack_size=2 * PGSIZE)
    created = 0
    for i in range(n):
        try:
            group.create(worker, i, loops)
        except MemoryError:
            _emit(f"clone skipped: stack alloc failed at i={i}")
            break
        created += 1

    for j in range(created):
        try:
            group.join()
        except ChildProcessError:
            _emit(f"join failed at j={j}")

    expected = created * loops
    _emit(f"t_thread_stress: FINAL counter={shared.counter} (expect {expected})")
    return {"nthreads": n, "loops": loops, "created": created,
            "counter": shared.counter, "expected": expected}


def main(argv=None):
    """Run one of the thread demonstrations: basic, showcase or stress."""
    if argv is None:
        argv = sys.argv[1:]
    argv = list(argv)
    if not argv or argv[0] not in ("basic", "showcase", "stress"):
        print(_USAGE, file=sys.stderr)
        return 2
    program, rest = argv[0], argv[1:]
    if program == "basic":
        run_basic()
        return 0
    n, loops = (4, 1000) if program == "showcase" else (6, 2000)
    if len(rest) >= 1:
        n = atoi(rest[0])
    if len(rest) >= 2:
        loops = atoi(rest[1])
    if program == "showcase":
        run_showcase(n, loops)
    else:
        run_stress(n, loops)
    return 0