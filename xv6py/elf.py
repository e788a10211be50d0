"""Parsing of 32-bit ELF executable headers."""

from __future__ import annotations

import struct
from dataclasses import dataclass

ELF_MAGIC = 0x464C457F  # "\x7fELF" read little-endian

ELF_PROG_LOAD = 1

ELF_PROG_FLAG_EXEC = 1
ELF_PROG_FLAG_WRITE = 2
ELF_PROG_FLAG_READ = 4

_ELFHDR = struct.Struct("<I12sHHIIIIIHHHHHH")
_PROGHDR = struct.Struct("<8I")

ELFHDR_SIZE = _ELFHDR.size
PROGHDR_SIZE = _PROGHDR.size


class ElfFormatError(ValueError):
    """The data is not a well-formed ELF image."""


@dataclass(frozen=True)
class ProgramHeader:
    """One program section header."""

    type: int
    off: int
    vaddr: int
    paddr: int
    filesz: int
    memsz: int
    flags: int
    align: int

    @classmethod
    def parse(cls, data):
        """Decode a program header from the start of data."""
        data = bytes(data)
        if len(data) < PROGHDR_SIZE:
            raise ElfFormatError("truncated program header")
        return cls(*_PROGHDR.unpack_from(data))


@dataclass(frozen=True)
class ElfHeader:
    """The ELF file header."""

    magic: int
    elf: bytes
    type: int
    machine: int
    version: int
    entry: int
    phoff: int
    shoff: int
    flags: int
    ehsize: int
    phentsize: int
    phnum: int
    shentsize: int
    shnum: int
    shstrndx: int

    @classmethod
    def parse(cls, data):
        """Decode and check the file header at the start of data."""
        data = bytes(data)
        if len(data) < ELFHDR_SIZE:
            raise ElfFormatError("truncated ELF header")
        header = cls(*_ELFHDR.unpack_from(data))
        if header.magic != ELF_MAGIC:
            raise ElfFormatError("bad ELF magic")
        return header

    def program_headers(self, data):
        """Decode the program headers that this header points at in data."""
        data = bytes(data)
        return [
            ProgramHeader.parse(data[off:off + PROGHDR_SIZE])
            for off in range(self.phoff, self.phoff + self.phnum * PROGHDR_SIZE, PROGHDR_SIZE)
        ]