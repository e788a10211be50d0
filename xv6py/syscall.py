"""System call numbers, argument fetching from user memory, and dispatch."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from enum import IntEnum

_MASK32 = 0xFFFFFFFF


class Syscall(IntEnum):
    """System call numbers."""

    FORK = 1
    EXIT = 2
    WAIT = 3
    PIPE = 4
    READ = 5
    KILL = 6
    EXEC = 7
    FSTAT = 8
    CHDIR = 9
    DUP = 10
    GETPID = 11
    SBRK = 12
    SLEEP = 13
    UPTIME = 14
    OPEN = 15
    WRITE = 16
    MKNOD = 17
    UNLINK = 18
    LINK = 19
    MKDIR = 20
    CLOSE = 21
    GETPROCS = 22
    CLONE = 23
    JOIN = 24


class SyscallError(Exception):
    """A system call argument lies outside the process's memory."""


@dataclass
class Process:
    """The parts of a process a system call sees: its memory and saved registers."""

    pid: int
    name: str
    memory: bytearray = field(default_factory=bytearray)
    esp: int = 0
    eax: int = 0

    def __post_init__(self):
        self.memory = bytearray(self.memory)

    @property
    def sz(self):
        """Size of the process's address space in bytes."""
        return len(self.memory)


def fetch_int(proc, addr):
    """The signed 32-bit integer at addr in the process's memory."""
    addr &= _MASK32
    if addr >= proc.sz or addr + 4 > proc.sz:
        raise SyscallError(f"int at {addr:#x} outside process memory")
    return int.from_bytes(proc.memory[addr:addr + 4], "little", signed=True)


def fetch_str(proc, addr):
    """The NUL-terminated string at addr, without its NUL."""
    addr &= _MASK32
    if addr >= proc.sz:
        raise SyscallError(f"string at {addr:#x} outside process memory")
    end = proc.memory.find(0, addr)
    if end < 0:
        raise SyscallError(f"string at {addr:#x} is not terminated")
    return bytes(proc.memory[addr:end])


def arg_int(proc, n):
    """The nth 32-bit system call argument."""
    return fetch_int(proc, (proc.esp + 4 + 4 * n) & _MASK32)


def arg_ptr(proc, n, size):
    """The nth argument as the address of a size-byte block within the process."""
    addr = arg_int(proc, n) & _MASK32
    if size < 0 or addr >= proc.sz or addr + size > proc.sz:
        raise SyscallError(f"block {addr:#x}+{size} outside process memory")
    return addr


def arg_str(proc, n):
    """The nth argument as a NUL-terminated string."""
    return fetch_str(proc, arg_int(proc, n))


class SyscallTable:
    """Maps system call numbers to handlers and runs them for a process."""

    def __init__(self, console=None):
        self.console = console
        self._handlers = {}

    def register(self, num, handler):
        """Install handler(proc) for system call num."""
        self._handlers[Syscall(num)] = handler

    def __contains__(self, num):
        return num in self._handlers

    def dispatch(self, proc, num):
        """Run system call num; its result, or -1, goes to proc.eax and is returned."""
        handler = self._handlers.get(num) if num > 0 else None
        if handler is None:
            print(f"{proc.pid} {proc.name}: unknown sys call {num}",
                  file=self.console or sys.stdout)
            result = -1
        else:
            try:
                result = handler(proc)
            except SyscallError:
                result = -1
        proc.eax = result
        return result