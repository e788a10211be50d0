"""x86 memory-management definitions: memory layout, paging helpers and descriptors."""

from __future__ import annotations

import struct
from dataclasses import dataclass

_MASK32 = 0xFFFFFFFF

# Eflags register
FL_IF = 0x00000200

# Control register flags
CR0_PE = 0x00000001
CR0_WP = 0x00010000
CR0_PG = 0x80000000
CR4_PSE = 0x00000010

# Segment selectors
SEG_KCODE = 1
SEG_KDATA = 2
SEG_UCODE = 3
SEG_UDATA = 4
SEG_TSS = 5
NSEGS = 6

DPL_USER = 0x3

# Application segment type bits
STA_X = 0x8
STA_W = 0x2
STA_R = 0x2

# System segment type bits
STS_T32A = 0x9
STS_IG32 = 0xE
STS_TG32 = 0xF

# Paging
NPDENTRIES = 1024
NPTENTRIES = 1024
PGSIZE = 4096
PTXSHIFT = 12
PDXSHIFT = 22

# Page table / directory entry flags
PTE_P = 0x001
PTE_W = 0x002
PTE_U = 0x004
PTE_PS = 0x080

# Memory layout
EXTMEM = 0x100000
PHYSTOP = 0xE000000
DEVSPACE = 0xFE000000
KERNBASE = 0x80000000
KERNLINK = KERNBASE + EXTMEM

_DESC = struct.Struct("<II")


def pdx(va):
    """Page directory index of a virtual address."""
    return ((va & _MASK32) >> PDXSHIFT) & 0x3FF


def ptx(va):
    """Page table index of a virtual address."""
    return ((va & _MASK32) >> PTXSHIFT) & 0x3FF


def pgaddr(d, t, o):
    """Build a virtual address from directory index, table index and offset."""
    return ((d << PDXSHIFT) | (t << PTXSHIFT) | o) & _MASK32


def pgroundup(sz):
    """Round up to a page boundary (32-bit wrap-around)."""
    return (sz + PGSIZE - 1) & ~(PGSIZE - 1) & _MASK32


def pgrounddown(a):
    """Round down to a page boundary."""
    return a & ~(PGSIZE - 1) & _MASK32


def pte_addr(pte):
    """Physical address held in a page table entry."""
    return pte & ~0xFFF & _MASK32


def pte_flags(pte):
    """Flag bits of a page table entry."""
    return pte & 0xFFF


def v2p(a):
    """Kernel virtual address to physical address."""
    return (a - KERNBASE) & _MASK32


def p2v(a):
    """Physical address to kernel virtual address."""
    return (a + KERNBASE) & _MASK32


@dataclass(frozen=True)
class SegDesc:
    """A segment descriptor as laid out in the GDT."""

    lim_15_0: int
    base_15_0: int
    base_23_16: int
    type: int
    s: int
    dpl: int
    p: int
    lim_19_16: int
    avl: int
    rsv1: int
    db: int
    g: int
    base_31_24: int

    def pack(self):
        """Encode as the 8 bytes the processor reads."""
        low = (self.lim_15_0 & 0xFFFF) | ((self.base_15_0 & 0xFFFF) << 16)
        high = (
            (self.base_23_16 & 0xFF)
            | ((self.type & 0xF) << 8)
            | ((self.s & 1) << 12)
            | ((self.dpl & 3) << 13)
            | ((self.p & 1) << 15)
            | ((self.lim_19_16 & 0xF) << 16)
            | ((self.avl & 1) << 20)
            | ((self.rsv1 & 1) << 21)
            | ((self.db & 1) << 22)
            | ((self.g & 1) << 23)
            | ((self.base_31_24 & 0xFF) << 24)
        )
        return _DESC.pack(low, high)

    @classmethod
    def unpack(cls, data):
        """Decode 8 descriptor bytes."""
        data = bytes(data)
        if len(data) != _DESC.size:
            raise ValueError(f"segment descriptor needs {_DESC.size} bytes, got {len(data)}")
        low, high = _DESC.unpack(data)
        return cls(
            lim_15_0=low & 0xFFFF,
            base_15_0=low >> 16,
            base_23_16=high & 0xFF,
            type=(high >> 8) & 0xF,
            s=(high >> 12) & 1,
            dpl=(high >> 13) & 3,
            p=(high >> 15) & 1,
            lim_19_16=(high >> 16) & 0xF,
            avl=(high >> 20) & 1,
            rsv1=(high >> 21) & 1,
            db=(high >> 22) & 1,
            g=(high >> 23) & 1,
            base_31_24=(high >> 24) & 0xFF,
        )


def seg(type, base, lim, dpl):
    """Normal 32-bit segment with a limit in 4 KiB units."""
    base &= _MASK32
    lim &= _MASK32
    return SegDesc(
        lim_15_0=(lim >> 12) & 0xFFFF,
        base_15_0=base & 0xFFFF,
        base_23_16=(base >> 16) & 0xFF,
        type=type & 0xF,
        s=1,
        dpl=dpl & 3,
        p=1,
        lim_19_16=(lim >> 28) & 0xF,
        avl=0,
        rsv1=0,
        db=1,
        g=1,
        base_31_24=(base >> 24) & 0xFF,
    )


def seg16(type, base, lim, dpl):
    """Segment with a byte-granular limit."""
    base &= _MASK32
    lim &= _MASK32
    return SegDesc(
        lim_15_0=lim & 0xFFFF,
        base_15_0=base & 0xFFFF,
        base_23_16=(base >> 16) & 0xFF,
        type=type & 0xF,
        s=1,
        dpl=dpl & 3,
        p=1,
        lim_19_16=(lim >> 16) & 0xF,
        avl=0,
        rsv1=0,
        db=1,
        g=0,
        base_31_24=(base >> 24) & 0xFF,
    )


@dataclass(frozen=True)
class GateDesc:
    """An interrupt or trap gate descriptor."""

    off_15_0: int
    cs: int
    args: int
    rsv1: int
    type: int
    s: int
    dpl: int
    p: int
    off_31_16: int

    def pack(self):
        """Encode as the 8 bytes of an IDT entry."""
        low = (self.off_15_0 & 0xFFFF) | ((self.cs & 0xFFFF) << 16)
        high = (
            (self.args & 0x1F)
            | ((self.rsv1 & 0x7) << 5)
            | ((self.type & 0xF) << 8)
            | ((self.s & 1) << 12)
            | ((self.dpl & 3) << 13)
            | ((self.p & 1) << 15)
            | ((self.off_31_16 & 0xFFFF) << 16)
        )
        return _DESC.pack(low, high)


def make_gate(istrap, sel, off, dpl):
    """Build an interrupt gate, or a trap gate when istrap is true."""
    off &= _MASK32
    return GateDesc(
        off_15_0=off & 0xFFFF,
        cs=sel & 0xFFFF,
        args=0,
        rsv1=0,
        type=STS_TG32 if istrap else STS_IG32,
        s=0,
        dpl=dpl & 3,
        p=1,
        off_31_16=off >> 16,
    )


def seg_asm(type, base, lim):
    """Descriptor bytes as emitted by the boot-time assembler macro."""
    return struct.pack(
        "<HHBBBB",
        (lim >> 12) & 0xFFFF,
        base & 0xFFFF,
        (base >> 16) & 0xFF,
        0x90 | type,
        0xC0 | ((lim >> 28) & 0xF),
        (base >> 24) & 0xFF,
    )


def seg_nullasm():
    """The all-zero null descriptor."""
    return bytes(_DESC.size)