# xv6py

A pure-Python model of the core pieces of a small teaching Unix kernel and
its user programs. Each module can be imported and used on its own.

## Modules

- `xv6py.mmu`: x86 address arithmetic (`pdx`, `ptx`, `pgaddr`,
  `pgroundup`, `pgrounddown`, `pte_addr`, `pte_flags`, `v2p`, `p2v`), the
  memory-layout and page-table flag constants, and segment and gate
  descriptors (`seg`, `seg16`, `SegDesc` with `pack`/`unpack`, `make_gate`,
  `GateDesc.pack`, `seg_asm`, `seg_nullasm`).
- `xv6py.elf`: reads 32-bit ELF headers (`ElfHeader.parse`,
  `ElfHeader.program_headers`, `ProgramHeader.parse`) and raises
  `ElfFormatError` on truncated data or a bad magic number.
- `xv6py.strings`: NUL-terminated string and byte helpers (`memcmp`,
  `strncmp`, `strcmp`, `strncpy`, `safestrcpy`, `atoi`, `gets`). They take
  `str` or `bytes`, and the copying functions return `bytes`.
- `xv6py.umalloc`: `Heap`, a first-fit, address-ordered free-list allocator.
  Addresses are byte offsets into the heap. When the free list runs short,
  the heap moves its break with `sbrk`, at least 4096 header units at a time.
  It raises `MemoryError` when the break would pass `limit`, and
  `free_blocks()` lists the free list.
- `xv6py.vm`: two-level page tables over simulated physical memory.
  `PhysicalMemory` provides `kalloc`, `kfree`, `read` and `write`.
  `PageTable` provides `walk`, `map_pages`, `init_uvm`, `load_uvm`,
  `alloc_uvm`, `dealloc_uvm`, `copy`, `uva2ka`, `copy_out`, `clear_pteu` and
  `free`. Misuse raises `VmError`, and running out of pages raises
  `MemoryError`.
- `xv6py.locks`: per-processor interrupt nesting (`Cpu.push_cli`,
  `Cpu.pop_cli`) and spin locks held by a `Cpu` (`SpinLock`). It also has
  sleep locks held by a process id (`SleepLock`) and a user-space lock that
  is also a context manager (`UserLock`). Broken rules raise `LockError`.
- `xv6py.shell`: the shell's tokenizer and parser (`tokenize`,
  `parse_cmd`). They produce trees of `ExecCmd`, `RedirCmd`, `PipeCmd`,
  `ListCmd` and `BackCmd`, and raise `ShellSyntaxError`, with the unparsed
  text in `leftovers` where there is any. The module also has `History`,
  which keeps the last 20 command lines, and whose `show()` returns them
  numbered.
- `xv6py.syscall`: system-call numbers (`Syscall`) and argument fetching
  from a `Process`'s memory (`fetch_int`, `fetch_str`, `arg_int`, `arg_ptr`,
  `arg_str`, which raise `SyscallError`). `SyscallTable` registers handlers
  and dispatches them; an unknown number, or a handler that raises
  `SyscallError`, gives -1 in `proc.eax`.
- `xv6py.uthread`: `ThreadGroup` creates threads with stacks from a `Heap`,
  and `join` reaps whichever finishes first. The module also holds the
  thread demonstrations `run_basic`, `run_showcase` and `run_stress`.
- `xv6py.tools`: `wc` returns `WcCounts`, `diff_lines` yields the lines
  that differ, and `tree` yields the lines of an indented directory listing.

## Install

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Library use

```python
from xv6py.shell import parse_cmd, PipeCmd
from xv6py.umalloc import Heap

cmd = parse_cmd("cat README | wc\n")
assert isinstance(cmd, PipeCmd)

heap = Heap(1 << 20)
addr = heap.malloc(100)
heap.free(addr)
```

## Commands

```
xv6py-threads basic
xv6py-threads showcase [NTHREADS [LOOPS]]   # defaults 4 and 1000
xv6py-threads stress [NTHREADS [LOOPS]]     # defaults 6 and 2000, at most 32 threads
xv6py-wc [FILE ...]
xv6py-diff FILE1 FILE2
xv6py-tree [PATH]
```

- `xv6py-threads` with no program name, or an unknown one, prints a usage
  line and exits with status 2.
- `xv6py-wc` prints lines, words and bytes for each file. With no file, it
  reads standard input.
- `xv6py-diff` prints `Line N differs:` for each differing line and stops
  once either file ends.
- `xv6py-tree` lists directories with a trailing `/`, with entries sorted
  by name. With no path, it starts from the current directory.

## What it does not do

This package models individual parts of a kernel; it is not a running
system.

- It has no file system, no process table or scheduler, no interrupt or
  trap handling, and no program loader beyond header parsing.
- `SyscallTable` starts empty; no system calls come built in.
- The shell module parses command lines but does not run them.
- The tools work on the host's files through Python's own I/O.