"""Model of a small teaching Unix kernel: paging, locks, syscalls, shell parsing, threads and tools."""

__version__ = "0.1.0"

__all__ = [
    "mmu",
    "elf",
    "strings",
    "umalloc",
    "vm",
    "locks",
    "shell",
    "syscall",
    "uthread",
    "tools",
]