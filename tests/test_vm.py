import pytest

from xv6py.mmu import KERNBASE, PGSIZE, PTE_P, PTE_U, PTE_W, pte_addr, pte_flags
from xv6py.vm import PageTable, PhysicalMemory, VmError


@pytest.fixture
def mem():
    return PhysicalMemory(64)


def read_user(pt, va, n):
    out = bytearray()
    while n:
        va0 = va - va % PGSIZE
        pa = pt.uva2ka(va0)
        assert pa is not None
        k = min(PGSIZE - (va - va0), n)
        out += pt.mem.read(pa + (va - va0), k)
        va += k
        n -= k
    return bytes(out)


def entry_at(pt, va):
    pte = pt.walk(va)
    return int.from_bytes(pt.mem.read(pte, 4), "little")


def test_kalloc_kfree_roundtrip(mem):
    pa = mem.kalloc()
    assert pa % PGSIZE == 0
    assert mem.free_pages == 63
    mem.kfree(pa)
    assert mem.free_pages == 64


def test_kalloc_exhaustion():
    small = PhysicalMemory(2)
    small.kalloc()
    small.kalloc()
    with pytest.raises(MemoryError):
        small.kalloc()


def test_kfree_rejects_bad_pages(mem):
    pa = mem.kalloc()
    with pytest.raises(VmError):
        mem.kfree(pa + 1)
    mem.kfree(pa)
    with pytest.raises(VmError):
        mem.kfree(pa)


def test_physical_access_out_of_range(mem):
    with pytest.raises(VmError):
        mem.read(0, 4)
    with pytest.raises(VmError):
        mem.write(mem.end - 2, b"abcd")


def test_walk_without_alloc_on_empty_table(mem):
    pt = PageTable(mem)
    assert pt.walk(0x5000) is None


def test_map_pages_sets_entry(mem):
    pt = PageTable(mem)
    pa = mem.kalloc()
    pt.map_pages(0x5000, PGSIZE, pa, PTE_W | PTE_U)
    entry = entry_at(pt, 0x5000)
    assert pte_addr(entry) == pa
    assert pte_flags(entry) == PTE_P | PTE_W | PTE_U


def test_remap_raises(mem):
    pt = PageTable(mem)
    pa = mem.kalloc()
    pt.map_pages(0, PGSIZE, pa, PTE_W)
    with pytest.raises(VmError):
        pt.map_pages(0, PGSIZE, pa, PTE_W)


def test_map_pages_unaligned_covers_two_pages(mem):
    pt = PageTable(mem)
    pa = mem.kalloc()
    pt.map_pages(PGSIZE + PGSIZE // 2, PGSIZE, pa, PTE_U)
    assert pte_addr(entry_at(pt, PGSIZE)) == pa
    assert pte_addr(entry_at(pt, 2 * PGSIZE)) == pa + PGSIZE


def test_alloc_uvm_grows_with_zeroed_user_pages(mem):
    pt = PageTable(mem)
    assert pt.alloc_uvm(0, 3 * PGSIZE) == 3 * PGSIZE
    assert read_user(pt, 0, 3 * PGSIZE) == bytes(3 * PGSIZE)
    for va in range(0, 3 * PGSIZE, PGSIZE):
        assert pte_flags(entry_at(pt, va)) == PTE_P | PTE_W | PTE_U
    assert pt.uva2ka(3 * PGSIZE) is None


def test_alloc_uvm_smaller_request_keeps_size(mem):
    pt = PageTable(mem)
    pt.alloc_uvm(0, 2 * PGSIZE)
    assert pt.alloc_uvm(2 * PGSIZE, PGSIZE) == 2 * PGSIZE


def test_alloc_uvm_into_kernel_space_raises(mem):
    pt = PageTable(mem)
    with pytest.raises(VmError):
        pt.alloc_uvm(0, KERNBASE)


def test_dealloc_uvm_releases_pages(mem):
    pt = PageTable(mem)
    before = mem.free_pages
    pt.alloc_uvm(0, 3 * PGSIZE)
    assert mem.free_pages == before - 4  # three pages and one page table
    assert pt.dealloc_uvm(3 * PGSIZE, 0) == 0
    assert mem.free_pages == before - 1
    assert pt.uva2ka(0) is None


def test_dealloc_larger_newsz_is_noop(mem):
    pt = PageTable(mem)
    pt.alloc_uvm(0, PGSIZE)
    assert pt.dealloc_uvm(PGSIZE, 2 * PGSIZE) == PGSIZE
    assert pt.uva2ka(0) is not None


def test_reallocated_page_is_zeroed(mem):
    pt = PageTable(mem)
    pt.alloc_uvm(0, PGSIZE)
    pt.copy_out(0, b"xyz")
    pt.dealloc_uvm(PGSIZE, 0)
    pt.alloc_uvm(0, PGSIZE)
    assert read_user(pt, 0, 3) == bytes(3)


def test_alloc_failure_rolls_back():
    small = PhysicalMemory(4)
    pt = PageTable(small)
    with pytest.raises(MemoryError):
        pt.alloc_uvm(0, 10 * PGSIZE)
    assert pt.uva2ka(0) is None
    pt.free()
    assert small.free_pages == 4


def test_free_returns_all_memory(mem):
    pt = PageTable(mem)
    pt.alloc_uvm(0, 5 * PGSIZE)
    pt.map_pages(0x800000, PGSIZE, mem.kalloc(), PTE_W | PTE_U)
    pt.free()
    assert mem.free_pages == mem.npages


def test_free_twice_raises(mem):
    pt = PageTable(mem)
    pt.free()
    with pytest.raises(VmError):
        pt.free()


def test_init_uvm_loads_code_at_zero(mem):
    pt = PageTable(mem)
    code = b"\x90\xcd\x40"
    pt.init_uvm(code)
    assert read_user(pt, 0, len(code)) == code
    assert read_user(pt, len(code), 5) == bytes(5)


def test_init_uvm_rejects_full_page(mem):
    pt = PageTable(mem)
    with pytest.raises(VmError):
        pt.init_uvm(bytes(PGSIZE))


def test_copy_out_across_page_boundary(mem):
    pt = PageTable(mem)
    pt.alloc_uvm(0, 2 * PGSIZE)
    data = bytes(range(200))
    va = PGSIZE - 50
    pt.copy_out(va, data)
    assert read_user(pt, va, len(data)) == data


def test_copy_out_to_unmapped_raises(mem):
    pt = PageTable(mem)
    pt.alloc_uvm(0, PGSIZE)
    with pytest.raises(VmError):
        pt.copy_out(PGSIZE - 2, b"abcd")


def test_clear_pteu_hides_page(mem):
    pt = PageTable(mem)
    pt.alloc_uvm(0, 2 * PGSIZE)
    pt.clear_pteu(PGSIZE)
    assert pt.uva2ka(PGSIZE) is None
    assert pt.uva2ka(0) is not None
    assert entry_at(pt, PGSIZE) & PTE_P
    with pytest.raises(VmError):
        pt.copy_out(PGSIZE, b"a")


def test_clear_pteu_unmapped_raises(mem):
    pt = PageTable(mem)
    with pytest.raises(VmError):
        pt.clear_pteu(0x400000)


def test_copy_duplicates_contents_independently(mem):
    pt = PageTable(mem)
    pt.alloc_uvm(0, 2 * PGSIZE)
    pt.copy_out(10, b"parent")
    child = pt.copy(2 * PGSIZE)
    assert read_user(child, 10, 6) == b"parent"
    assert child.uva2ka(0) != pt.uva2ka(0)
    child.copy_out(10, b"CHILD!")
    assert read_user(pt, 10, 6) == b"parent"
    assert read_user(child, 10, 6) == b"CHILD!"


def test_copy_of_unmapped_range_frees_child(mem):
    pt = PageTable(mem)
    pt.alloc_uvm(0, PGSIZE)
    before = mem.free_pages
    with pytest.raises(VmError):
        pt.copy(3 * PGSIZE)
    assert mem.free_pages == before


def test_load_uvm_fills_pages(mem):
    pt = PageTable(mem)
    pt.alloc_uvm(0, 2 * PGSIZE)
    image = bytes(range(256)) * 20

    def reader(off, n):
        return image[off:off + n]

    pt.load_uvm(0, reader, 0, len(image))
    assert read_user(pt, 0, len(image)) == image


def test_load_uvm_with_offset(mem):
    pt = PageTable(mem)
    pt.alloc_uvm(0, PGSIZE)
    image = b"headerPAYLOAD"
    pt.load_uvm(0, lambda off, n: image[off:off + n], 6, 7)
    assert read_user(pt, 0, 7) == b"PAYLOAD"


def test_load_uvm_errors(mem):
    pt = PageTable(mem)
    pt.alloc_uvm(0, PGSIZE)
    with pytest.raises(VmError):
        pt.load_uvm(1, lambda off, n: bytes(n), 0, 10)
    with pytest.raises(VmError):
        pt.load_uvm(0, lambda off, n: b"short", 0, 10)
    with pytest.raises(VmError):
        pt.load_uvm(0x400000, lambda off, n: bytes(n), 0, 10)