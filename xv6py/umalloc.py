"""A first-fit, address-ordered free-list allocator over a growable heap."""

from __future__ import annotations

from .mmu import KERNBASE

HEADER_SIZE = 8
MIN_GROW_UNITS = 4096

_BASE = -HEADER_SIZE  # the empty sentinel block lies below every heap address


class Heap:
    """A heap that grows by moving its break, handing out blocks from a circular free list.

    Addresses are byte offsets from the start of the heap; each block is
    preceded by a header of HEADER_SIZE bytes and sizes are kept in header units.
    """

    def __init__(self, limit=KERNBASE):
        if limit < 0:
            raise ValueError("heap limit must not be negative")
        self.limit = limit
        self._brk = 0
        self._next = {}
        self._size = {}
        self._freep = None
        self._allocated = set()

    def sbrk(self, n):
        """Move the break by n bytes and return the old break."""
        old = self._brk
        new = old + n
        if new < 0 or new > self.limit:
            raise MemoryError(f"cannot move heap break to {new}")
        self._brk = new
        return old

    def malloc(self, nbytes):
        """Allocate nbytes and return the address of the block."""
        if nbytes < 0:
            raise ValueError("cannot allocate a negative size")
        nunits = (nbytes + HEADER_SIZE - 1) // HEADER_SIZE + 1
        nxt, size = self._next, self._size
        if self._freep is None:
            nxt[_BASE] = _BASE
            size[_BASE] = 0
            self._freep = _BASE
        prevp = self._freep
        p = nxt[prevp]
        while True:
            if size[p] >= nunits:
                if size[p] == nunits:
                    nxt[prevp] = nxt.pop(p)
                else:
                    size[p] -= nunits
                    p += size[p] * HEADER_SIZE
                    size[p] = nunits
                self._freep = prevp
                self._allocated.add(p)
                return p + HEADER_SIZE
            if p == self._freep:
                p = self._morecore(nunits)
            prevp, p = p, nxt[p]

    def free(self, addr):
        """Return a block obtained from malloc to the free list."""
        bp = addr - HEADER_SIZE
        if bp not in self._allocated:
            raise ValueError(f"address {addr} was not allocated")
        self._allocated.remove(bp)
        self._release(bp)

    def free_blocks(self):
        """Free blocks in address order as (header address, size in bytes)."""
        if self._freep is None:
            return []
        blocks = []
        p = self._next[_BASE]
        while p != _BASE:
            blocks.append((p, self._size[p] * HEADER_SIZE))
            p = self._next[p]
        return blocks

    def _morecore(self, nunits):
        nunits = max(nunits, MIN_GROW_UNITS)
        hp = self.sbrk(nunits * HEADER_SIZE)
        self._size[hp] = nunits
        self._release(hp)
        return self._freep

    def _release(self, bp):
        nxt, size = self._next, self._size
        p = self._freep
        while not (p < bp < nxt[p]):
            if p >= nxt[p] and (bp > p or bp < nxt[p]):
                break
            p = nxt[p]
        succ = nxt[p]
        if bp + size[bp] * HEADER_SIZE == succ:
            size[bp] += size.pop(succ)
            nxt[bp] = nxt.pop(succ)
        else:
            nxt[bp] = succ
        if p + size[p] * HEADER_SIZE == bp:
            size[p] += size.pop(bp)
            nxt[p] = nxt.pop(bp)
        else:
            nxt[p] = bp
        self._freep = p