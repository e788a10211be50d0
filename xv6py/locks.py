"""Spin locks with interrupt nesting, sleeping locks and user-space locks."""

from __future__ import annotations

import threading
from dataclasses import dataclass


class LockError(RuntimeError):
    """A lock or interrupt-nesting rule was broken."""


@dataclass
class Cpu:
    """Per-processor interrupt state used by spin locks."""

    id: int = 0
    interrupts: bool = True
    ncli: int = 0
    intena: bool = False

    def push_cli(self):
        """Disable interrupts, remembering whether they were on at the outermost level."""
        enabled = self.interrupts
        self.interrupts = False
        if self.ncli == 0:
            self.intena = enabled
        self.ncli += 1

    def pop_cli(self):
        """Undo one push_cli; interrupts come back on after the last one if they were on."""
        if self.interrupts:
            raise LockError("popcli - interruptible")
        self.ncli -= 1
        if self.ncli < 0:
            self.ncli = 0
            raise LockError("popcli")
        if self.ncli == 0 and self.intena:
            self.interrupts = True


class SpinLock:
    """A mutual-exclusion lock held by a processor with interrupts off."""

    def __init__(self, name):
        self.name = name
        self.cpu = None
        self._lock = threading.Lock()

    @property
    def locked(self):
        """Whether any processor holds the lock."""
        return self._lock.locked()

    def acquire(self, cpu):
        """Take the lock on behalf of cpu, waiting while another holds it."""
        cpu.push_cli()
        if self.holding(cpu):
            cpu.pop_cli()
            raise LockError(f"acquire: {self.name} already held")
        self._lock.acquire()
        self.cpu = cpu

    def release(self, cpu):
        """Give up the lock held by cpu."""
        if not self.holding(cpu):
            raise LockError(f"release: {self.name} not held")
        self.cpu = None
        self._lock.release()
        cpu.pop_cli()

    def holding(self, cpu):
        """Whether cpu holds the lock."""
        cpu.push_cli()
        try:
            return self._lock.locked() and self.cpu is cpu
        finally:
            cpu.pop_cli()


class SleepLock:
    """A long-term lock whose waiters sleep instead of spinning."""

    def __init__(self, name):
        self.name = name
        self.locked = False
        self.pid = 0
        self._cond = threading.Condition()

    def acquire(self, pid):
        """Take the lock for process pid, sleeping until it is free."""
        with self._cond:
            while self.locked:
                self._cond.wait()
            self.locked = True
            self.pid = pid

    def release(self):
        """Free the lock and wake every sleeper."""
        with self._cond:
            self.locked = False
            self.pid = 0
            self._cond.notify_all()

    def holding(self, pid):
        """Whether process pid holds the lock."""
        with self._cond:
            return self.locked and self.pid == pid


class UserLock:
    """A test-and-set lock for threads sharing an address space."""

    def __init__(self):
        self._lock = threading.Lock()

    @property
    def locked(self):
        """Whether the lock is held."""
        return self._lock.locked()

    def acquire(self):
        """Wait until the lock is free and take it."""
        self._lock.acquire()

    def release(self):
        """Clear the lock; clearing a free lock leaves it free."""
        if self._lock.locked():
            self._lock.release()

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, *exc):
        self.release()
        return False