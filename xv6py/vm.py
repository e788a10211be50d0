"""Two-level x86 page tables over a simulated physical memory."""

from __future__ import annotations

from .mmu import (
    KERNBASE,
    NPDENTRIES,
    PDXSHIFT,
    PGSIZE,
    PTE_P,
    PTE_U,
    PTE_W,
    pdx,
    pgroundup,
    pgrounddown,
    pte_addr,
    pte_flags,
    ptx,
)

_ENTRY_SIZE = 4
_JUNK = 1


class VmError(Exception):
    """A page-table operation was used wrongly or hit an inconsistent table."""


class PhysicalMemory:
    """A pool of physical pages handed out one page at a time.

    Physical addresses start at PGSIZE so that address 0 never names a page.
    """

    def __init__(self, npages):
        if npages < 1:
            raise ValueError("physical memory needs at least one page")
        self.npages = npages
        self.base = PGSIZE
        self.end = self.base + npages * PGSIZE
        self._data = bytearray(npages * PGSIZE)
        self._free = list(range(self.base, self.end, PGSIZE))
        self._allocated = set()

    @property
    def free_pages(self):
        """Number of pages not currently allocated."""
        return len(self._free)

    def kalloc(self):
        """Allocate one page and return its physical address."""
        if not self._free:
            raise MemoryError("out of physical memory")
        pa = self._free.pop()
        self._allocated.add(pa)
        return pa

    def kfree(self, pa):
        """Return a page obtained from kalloc; its contents are filled with junk."""
        if pa % PGSIZE or pa not in self._allocated:
            raise VmError(f"kfree: {pa:#x} is not an allocated page")
        self._allocated.remove(pa)
        start = pa - self.base
        self._data[start:start + PGSIZE] = bytes([_JUNK]) * PGSIZE
        self._free.append(pa)

    def _offset(self, pa, n):
        if n < 0 or pa < self.base or pa + n > self.end:
            raise VmError(f"physical access {pa:#x}+{n} out of range")
        return pa - self.base

    def read(self, pa, n):
        """Read n bytes at physical address pa."""
        start = self._offset(pa, n)
        return bytes(self._data[start:start + n])

    def write(self, pa, data):
        """Write data at physical address pa."""
        data = bytes(data)
        start = self._offset(pa, len(data))
        self._data[start:start + len(data)] = data


class PageTable:
    """A user address space: a page directory with its page tables and pages."""

    def __init__(self, mem):
        self.mem = mem
        self.pgdir = mem.kalloc()
        mem.write(self.pgdir, bytes(PGSIZE))

    def _load(self, addr):
        return int.from_bytes(self.mem.read(addr, _ENTRY_SIZE), "little")

    def _store(self, addr, value):
        self.mem.write(addr, value.to_bytes(_ENTRY_SIZE, "little"))

    def _check_live(self):
        if self.pgdir is None:
            raise VmError("page table has been freed")

    def walk(self, va, alloc=False):
        """Physical address of the PTE for va, creating its page table if alloc.

        Returns None when the page table is absent and alloc is false.
        """
        self._check_live()
        pde_at = self.pgdir + _ENTRY_SIZE * pdx(va)
        pde = self._load(pde_at)
        if pde & PTE_P:
            pgtab = pte_addr(pde)
        else:
            if not alloc:
                return None
            pgtab = self.mem.kalloc()
            self.mem.write(pgtab, bytes(PGSIZE))
            self._store(pde_at, pgtab | PTE_P | PTE_W | PTE_U)
        return pgtab + _ENTRY_SIZE * ptx(va)

    def map_pages(self, va, size, pa, perm):
        """Map the pages covering [va, va+size) to physical pages from pa on."""
        if size <= 0:
            raise ValueError("mapping size must be positive")
        a = pgrounddown(va)
        last = pgrounddown(va + size - 1)
        while True:
            pte = self.walk(a, True)
            if self._load(pte) & PTE_P:
                raise VmError(f"remap of {a:#x}")
            self._store(pte, pa | perm | PTE_P)
            if a == last:
                break
            a += PGSIZE
            pa += PGSIZE

    def init_uvm(self, code):
        """Load code, smaller than a page, at address 0."""
        code = bytes(code)
        if len(code) >= PGSIZE:
            raise VmError("inituvm: more than a page")
        page = self.mem.kalloc()
        self.mem.write(page, bytes(PGSIZE))
        self.map_pages(0, PGSIZE, page, PTE_W | PTE_U)
        self.mem.write(page, code)

    def load_uvm(self, addr, reader, offset, sz):
        """Fill already mapped pages from addr with sz bytes from reader(offset, n)."""
        if addr % PGSIZE:
            raise VmError("loaduvm: addr must be page aligned")
        for i in range(0, sz, PGSIZE):
            pte = self.walk(addr + i)
            if pte is None:
                raise VmError("loaduvm: address should exist")
            pa = pte_addr(self._load(pte))
            n = min(sz - i, PGSIZE)
            chunk = bytes(reader(offset + i, n))
            if len(chunk) != n:
                raise VmError(f"loaduvm: short read at offset {offset + i}")
            self.mem.write(pa, chunk)

    def alloc_uvm(self, oldsz, newsz):
        """Grow the address space from oldsz to newsz and return the new size."""
        if newsz >= KERNBASE:
            raise VmError("allocuvm: size reaches kernel space")
        if newsz < oldsz:
            return oldsz
        for a in range(pgroundup(oldsz), newsz, PGSIZE):
            try:
                page = self.mem.kalloc()
            except MemoryError:
                self.dealloc_uvm(newsz, oldsz)
                raise
            self.mem.write(page, bytes(PGSIZE))
            try:
                self.map_pages(a, PGSIZE, page, PTE_W | PTE_U)
            except MemoryError:
                self.dealloc_uvm(newsz, oldsz)
                self.mem.kfree(page)
                raise
        return newsz

    def dealloc_uvm(self, oldsz, newsz):
        """Shrink the address space from oldsz to newsz and return the new size."""
        if newsz >= oldsz:
            return oldsz
        a = pgroundup(newsz)
        while a < oldsz:
            pte = self.walk(a)
            if pte is None:
                a = ((pdx(a) + 1) << PDXSHIFT) - PGSIZE
            else:
                entry = self._load(pte)
                if entry & PTE_P:
                    pa = pte_addr(entry)
                    if pa == 0:
                        raise VmError("kfree of page 0")
                    self.mem.kfree(pa)
                    self._store(pte, 0)
            a += PGSIZE
        return newsz

    def copy(self, sz):
        """A new address space holding a copy of the first sz bytes of this one."""
        self._check_live()
        child = PageTable(self.mem)
        try:
            for i in range(0, sz, PGSIZE):
                pte = self.walk(i)
                if pte is None:
                    raise VmError("copyuvm: pte should exist")
                entry = self._load(pte)
                if not entry & PTE_P:
                    raise VmError("copyuvm: page not present")
                page = self.mem.kalloc()
                self.mem.write(page, self.mem.read(pte_addr(entry), PGSIZE))
                try:
                    child.map_pages(i, PGSIZE, page, pte_flags(entry))
                except MemoryError:
                    self.mem.kfree(page)
                    raise
        except Exception:
            child.free()
            raise
        return child

    def uva2ka(self, uva):
        """Physical page backing the user page at uva, or None if not user-accessible."""
        pte = self.walk(uva)
        if pte is None:
            return None
        entry = self._load(pte)
        if not entry & PTE_P or not entry & PTE_U:
            return None
        return pte_addr(entry)

    def copy_out(self, va, data):
        """Copy data into user memory starting at va."""
        data = bytes(data)
        pos = 0
        while pos < len(data):
            va0 = pgrounddown(va)
            pa0 = self.uva2ka(va0)
            if pa0 is None:
                raise VmError(f"copyout: {va0:#x} is not a user page")
            n = min(PGSIZE - (va - va0), len(data) - pos)
            self.mem.write(pa0 + (va - va0), data[pos:pos + n])
            pos += n
            va = va0 + PGSIZE

    def clear_pteu(self, uva):
        """Make the page at uva inaccessible to user code."""
        pte = self.walk(uva)
        if pte is None:
            raise VmError("clearpteu: no page table")
        self._store(pte, self._load(pte) & ~PTE_U)

    def free(self):
        """Release every user page, every page table and the directory."""
        if self.pgdir is None:
            raise VmError("freevm: no pgdir")
        self.dealloc_uvm(KERNBASE, 0)
        for i in range(NPDENTRIES):
            pde = self._load(self.pgdir + _ENTRY_SIZE * i)
            if pde & PTE_P:
                self.mem.kfree(pte_addr(pde))
        self.mem.kfree(self.pgdir)
        self.pgdir = None