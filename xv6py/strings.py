"""NUL-terminated string and byte helpers."""

from __future__ import annotations


def _bytes(s):
    return s.encode() if isinstance(s, str) else bytes(s)


def _cstr(s):
    data = _bytes(s)
    end = data.find(0)
    return data if end < 0 else data[:end]


def _diff(p, q):
    longest = max(len(p), len(q))
    for a, b in zip(p.ljust(longest, b"\0"), q.ljust(longest, b"\0")):
        if a != b:
            return a - b
    return 0


def memcmp(a, b, n):
    """Compare the first n bytes; return the difference at the first mismatch."""
    a, b = _bytes(a), _bytes(b)
    if n < 0 or len(a) < n or len(b) < n:
        raise ValueError("memcmp: buffers shorter than n")
    for x, y in zip(a[:n], b[:n]):
        if x != y:
            return x - y
    return 0


def strncmp(p, q, n):
    """Compare at most n characters of two NUL-terminated strings."""
    if n <= 0:
        return 0
    return _diff(_cstr(p)[:n], _cstr(q)[:n])


def strcmp(p, q):
    """Compare two NUL-terminated strings."""
    return _diff(_cstr(p), _cstr(q))


def strncpy(src, n):
    """Copy at most n bytes of src, padding with NULs to exactly n bytes."""
    if n <= 0:
        return b""
    return _cstr(src)[:n].ljust(n, b"\0")


def safestrcpy(src, n):
    """Copy at most n-1 bytes of src, always followed by a NUL."""
    if n <= 0:
        return b""
    return _cstr(src)[:n - 1] + b"\0"


def atoi(s):
    """Value of the leading decimal digits of s (no sign, no whitespace)."""
    digits = bytearray()
    for c in _bytes(s):
        if not 0x30 <= c <= 0x39:
            break
        digits.append(c)
    return int(digits) if digits else 0


def gets(stream, max):
    """Read one line of at most max-1 characters, stopping after '\\n' or '\\r'."""
    chunks = []
    while len(chunks) + 1 < max:
        c = stream.read(1)
        if not c:
            break
        chunks.append(c)
        if c in (b"\n", b"\r", "\n", "\r"):
            break
    if chunks:
        return chunks[0][:0].join(chunks)
    return stream.read(0)