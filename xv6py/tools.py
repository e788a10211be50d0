"""Small file utilities: word count, line-by-line diff and a directory tree."""

from __future__ import annotations

import os
import stat
import sys
from dataclasses import dataclass

from .strings import strcmp

MAX_LINE = 128
_CHUNK = 512
# A NUL byte also separates words.
_WHITESPACE = frozenset(b" \r\t\n\v\0")


@dataclass(frozen=True)
class WcCounts:
    """Line, word and byte counts of a stream."""

    lines: int
    words: int
    chars: int


def wc(stream):
    """Count lines, words and bytes read from stream."""
    lines = words = chars = 0
    inword = False
    while True:
        chunk = stream.read(_CHUNK)
        if not chunk:
            break
        if isinstance(chunk, str):
            chunk = chunk.encode()
        for c in chunk:
            chars += 1
            if c == 0x0A:
                lines += 1
            if c in _WHITESPACE:
                inword = False
            elif not inword:
                words += 1
                inword = True
    return WcCounts(lines, words, chars)


def _report(counts, name):
    return f"{counts.lines} {counts.words} {counts.chars} {name}"


def wc_main(argv=None):
    """Print counts for each named file, or for standard input."""
    if argv is None:
        argv = sys.argv[1:]
    argv = list(argv)
    try:
        if not argv:
            print(_report(wc(sys.stdin.buffer), ""))
            return 0
        for name in argv:
            try:
                f = open(name, "rb")
            except OSError:
                print(f"wc: cannot open {name}")
                return 1
            with f:
                print(_report(wc(f), name))
    except OSError:
        print("wc: read error")
        return 1
    return 0


def diff_lines(a, b):
    """Yield (line number, line from a, line from b) wherever the two streams differ.

    Lines longer than MAX_LINE-1 characters are compared in pieces, each piece
    counting as a line; comparison stops once either stream is exhausted.
    """
    line = 1
    while True:
        buf1 = a.readline(MAX_LINE - 1)
        buf2 = b.readline(MAX_LINE - 1)
        if not buf1 and not buf2:
            return
        if strcmp(buf1, buf2) != 0:
            yield line, buf1, buf2
        line += 1
        if not buf1 or not buf2:
            return


def diff_main(argv=None):
    """Print the differing lines of two files."""
    if argv is None:
        argv = sys.argv[1:]
    argv = list(argv)
    if len(argv) != 2:
        print("Usage: diff file1 file2")
        return 1
    try:
        f1 = open(argv[0], encoding="utf-8", errors="replace", newline="")
    except OSError:
        print("diff: cannot open files")
        return 1
    try:
        f2 = open(argv[1], encoding="utf-8", errors="replace", newline="")
    except OSError:
        f1.close()
        print("diff: cannot open files")
        return 1
    with f1, f2:
        for line, l1, l2 in diff_lines(f1, f2):
            sys.stdout.write(f"Line {line} differs:\n< {l1}> {l2}\n")
    return 0


def _tree(path, level):
    indent = "  " * level
    try:
        st = os.stat(path)
        if stat.S_ISDIR(st.st_mode):
            names = sorted(os.listdir(path))
        else:
            with open(path, "rb"):
                pass
            names = None
    except OSError:
        yield f"tree: cannot open {path}"
        return
    if names is None:
        yield f"{indent}{path}"
        return
    yield f"{indent}{path}/"
    for name in names:
        child = f"{path}/{name}"
        try:
            child_st = os.stat(child)
        except OSError:
            continue
        if stat.S_ISDIR(child_st.st_mode):
            yield from _tree(child, level + 1)
        else:
            yield f"{'  ' * (level + 1)}{name}"


def tree(path):
    """Yield the lines of an indented listing of path and everything below it."""
    yield from _tree(path, 0)


def tree_main(argv=None):
    """Print the tree of the named directory, or of the current one."""
    if argv is None:
        argv = sys.argv[1:]
    argv = list(argv)
    for line in tree(argv[0] if argv else "."):
        print(line)
    return 0