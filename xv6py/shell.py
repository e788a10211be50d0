"""Command-line parsing for a small Unix-style shell, plus its command history."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Union

# Open modes
O_RDONLY = 0x000
O_WRONLY = 0x001
O_RDWR = 0x002
O_CREATE = 0x200

WHITESPACE = " \t\r\n\v"
SYMBOLS = "<|>&;()"
MAXARGS = 10

MAX_HISTORY = 20
MAX_CMD_LEN = 100

WORD = "word"


class ShellSyntaxError(ValueError):
    """A command line could not be parsed."""

    def __init__(self, message, leftovers=None):
        super().__init__(message)
        self.leftovers = leftovers


@dataclass(frozen=True)
class Token:
    """One lexical token: a symbol such as '|' or '>>', or a word."""

    kind: str
    text: str
    start: int
    end: int


@dataclass(frozen=True)
class ExecCmd:
    """Run a program with arguments; argv may be empty."""

    argv: tuple


@dataclass(frozen=True)
class RedirCmd:
    """Run cmd with file descriptor fd reopened on file in the given mode."""

    cmd: "Command"
    file: str
    mode: int
    fd: int


@dataclass(frozen=True)
class PipeCmd:
    """Connect the output of left to the input of right."""

    left: "Command"
    right: "Command"


@dataclass(frozen=True)
class ListCmd:
    """Run left, wait for it, then run right."""

    left: "Command"
    right: "Command"


@dataclass(frozen=True)
class BackCmd:
    """Run cmd in the background."""

    cmd: "Command"


Command = Union[ExecCmd, RedirCmd, PipeCmd, ListCmd, BackCmd]


def _cut_at_nul(s):
    end = s.find("\0")
    return s if end < 0 else s[:end]


def tokenize(s):
    """Split a command line into tokens; '>>' is a single token."""
    s = _cut_at_nul(s)
    separators = WHITESPACE + SYMBOLS
    tokens = []
    i, n = 0, len(s)
    while True:
        while i < n and s[i] in WHITESPACE:
            i += 1
        if i >= n:
            return tokens
        start = i
        c = s[i]
        if c == ">":
            i += 1
            if i < n and s[i] == ">":
                i += 1
                kind = ">>"
            else:
                kind = ">"
        elif c in SYMBOLS:
            i += 1
            kind = c
        else:
            while i < n and s[i] not in separators:
                i += 1
            kind = WORD
        tokens.append(Token(kind, s[start:i], start, i))


class _Parser:
    def __init__(self, text):
        self.text = _cut_at_nul(text)
        self.tokens = tokenize(self.text)
        self.pos = 0

    def _current(self):
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def peek(self, kinds):
        tok = self._current()
        return tok is not None and tok.kind in kinds

    def next(self):
        tok = self._current()
        if tok is not None:
            self.pos += 1
        return tok

    def parse(self):
        cmd = self.parse_line()
        tok = self._current()
        if tok is not None:
            raise ShellSyntaxError("syntax", leftovers=self.text[tok.start:])
        return cmd

    def parse_line(self):
        cmd = self.parse_pipe()
        while self.peek({"&"}):
            self.next()
            cmd = BackCmd(cmd)
        if self.peek({";"}):
            self.next()
            cmd = ListCmd(cmd, self.parse_line())
        return cmd

    def parse_pipe(self):
        cmd = self.parse_exec()
        if self.peek({"|"}):
            self.next()
            cmd = PipeCmd(cmd, self.parse_pipe())
        return cmd

    def parse_redirs(self, cmd):
        while self.peek({"<", ">", ">>"}):
            op = self.next().kind
            target = self.next()
            if target is None or target.kind != WORD:
                raise ShellSyntaxError("missing file for redirection")
            if op == "<":
                cmd = RedirCmd(cmd, target.text, O_RDONLY, 0)
            else:
                cmd = RedirCmd(cmd, target.text, O_WRONLY | O_CREATE, 1)
        return cmd

    def parse_block(self):
        if not self.peek({"("}):
            raise ShellSyntaxError("parseblock")
        self.next()
        cmd = self.parse_line()
        if not self.peek({")"}):
            raise ShellSyntaxError("syntax - missing )")
        self.next()
        return self.parse_redirs(cmd)

    def parse_exec(self):
        if self.peek({"("}):
            return self.parse_block()
        argv = []
        redirs = []
        self._collect_redirs(redirs)
        while not self.peek({"|", ")", "&", ";"}):
            tok = self.next()
            if tok is None:
                break
            if tok.kind != WORD:
                raise ShellSyntaxError("syntax")
            argv.append(tok.text)
            if len(argv) >= MAXARGS:
                raise ShellSyntaxError("too many args")
            self._collect_redirs(redirs)
        cmd = ExecCmd(tuple(argv))
        for file, mode, fd in redirs:
            cmd = RedirCmd(cmd, file, mode, fd)
        return cmd

    def _collect_redirs(self, redirs):
        # Redirections wrap the command in the order they appear.
        wrapped = self.parse_redirs(None)
        found = []
        while isinstance(wrapped, RedirCmd):
            found.append((wrapped.file, wrapped.mode, wrapped.fd))
            wrapped = wrapped.cmd
        redirs.extend(reversed(found))


def parse_cmd(s):
    """Parse a whole command line into a command tree."""
    return _Parser(s).parse()


class History:
    """The most recent command lines, oldest first."""

    def __init__(self, capacity=MAX_HISTORY):
        if capacity < 1:
            raise ValueError("history capacity must be positive")
        self._entries = deque(maxlen=capacity)

    def add(self, cmd):
        """Remember a command line; empty lines are ignored."""
        if not cmd:
            return
        self._entries.append(cmd[:MAX_CMD_LEN - 1])

    def show(self):
        """The numbered listing of remembered command lines."""
        return "".join(f"{i} {cmd}" for i, cmd in enumerate(self._entries, 1))

    def __len__(self):
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)