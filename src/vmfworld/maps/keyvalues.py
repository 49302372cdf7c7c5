"""Valve KeyValues text parser (the container format of ``.vmf`` files).

Turns the brace-delimited text into a generic nested tree of plain ``dict``,
``list`` and ``str`` values::

    world
    {
        "id" "1"
        solid { side { "plane" "(0 0 0) (0 64 0) (64 64 0)" } }
    }

becomes ``{"world": {"id": "1", "solid": [{"side": [{"plane": "..."}]}]}}``.

Keys that recur as siblings are collected into an ordered list instead of
being overwritten.  ``solid``, ``side`` and ``entity`` are always lists, even
when they occur once, so the semantic layer never has to special-case a
single brush.

The parser never raises on malformed input.  It returns whatever tree it
managed to build plus :class:`~vmfworld.common.diagnostics.Diagnostic`
entries describing each structural problem it stepped over.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

from vmfworld.common.diagnostics import DiagnosticLog

KeyValue = Union[str, "KeyValueBlock", list]
KeyValueBlock = dict[str, KeyValue]

#: Block names that always map to a list of blocks.
REPEATABLE_KEYS: frozenset[str] = frozenset({"solid", "side", "entity"})

_WHITESPACE = " \t\r\n\v\f"


@dataclass(frozen=True)
class Token:
    text: str
    quoted: bool
    line: int

    @property
    def is_open(self) -> bool:
        return not self.quoted and self.text == "{"

    @property
    def is_close(self) -> bool:
        return not self.quoted and self.text == "}"


@dataclass
class KeyValuesDocument:
    root: KeyValueBlock = field(default_factory=dict)
    diagnostics: DiagnosticLog = field(default_factory=DiagnosticLog)


# ---------------------------------------------------------------------------
# Tokeniser
# ---------------------------------------------------------------------------

def tokenize(text: str, *, diagnostics: DiagnosticLog | None = None) -> list[Token]:
    """Split KeyValues text into tokens.

    ``//`` comments outside quoted strings run to the end of the line and are
    dropped.  Quoted strings lose their quotes and may contain spaces and
    braces.  An unterminated quote swallows the rest of the input and is
    reported.
    """

    diag = diagnostics if diagnostics is not None else DiagnosticLog()
    tokens: list[Token] = []
    i = 0
    line = 1
    n = len(text)

    while i < n:
        ch = text[i]
        if ch == "\n":
            line += 1
            i += 1
            continue
        if ch in _WHITESPACE:
            i += 1
            continue
        if ch == "/" and i + 1 < n and text[i + 1] == "/":
            while i < n and text[i] != "\n":
                i += 1
            continue
        if ch in "{}":
            tokens.append(Token(text=ch, quoted=False, line=line))
            i += 1
            continue
        if ch == '"':
            start_line = line
            end = text.find('"', i + 1)
            if end == -1:
                diag.parse(context=f"line {start_line}", message="unterminated quoted string")
                value = text[i + 1 :]
                line += value.count("\n")
                tokens.append(Token(text=value, quoted=True, line=start_line))
                break
            value = text[i + 1 : end]
            line += value.count("\n")
            tokens.append(Token(text=value, quoted=True, line=start_line))
            i = end + 1
            continue

        start = i
        while i < n and text[i] not in _WHITESPACE and text[i] not in '{}"':
            if text[i] == "/" and i + 1 < n and text[i + 1] == "/":
                break
            i += 1
        tokens.append(Token(text=text[start:i], quoted=False, line=line))

    return tokens


# ---------------------------------------------------------------------------
# Tree builder
# ---------------------------------------------------------------------------

def _store(parent: KeyValueBlock, key: str, value: KeyValue) -> None:
    existing = parent.get(key)
    if existing is None:
        parent[key] = [value] if key in REPEATABLE_KEYS else value
    elif isinstance(existing, list):
        existing.append(value)
    else:
        parent[key] = [existing, value]


def parse_keyvalues(text: str, *, diagnostics: DiagnosticLog | None = None) -> KeyValuesDocument:
    """Parse KeyValues *text* into a :class:`KeyValuesDocument`."""

    diag = diagnostics if diagnostics is not None else DiagnosticLog()
    tokens = tokenize(text, diagnostics=diag)
    root: KeyValueBlock = {}
    stack: list[tuple[str, KeyValueBlock, int]] = [("<root>", root, 0)]

    i = 0
    total = len(tokens)
    while i < total:
        tok = tokens[i]

        if tok.is_close:
            if len(stack) == 1:
                diag.parse(context=f"line {tok.line}", message="unexpected '}' at top level")
            else:
                stack.pop()
            i += 1
            continue

        if tok.is_open:
            diag.parse(context=f"line {tok.line}", message="block opened without a name")
            block: KeyValueBlock = {}
            _store(stack[-1][1], "", block)
            stack.append(("", block, tok.line))
            i += 1
            continue

        nxt = tokens[i + 1] if i + 1 < total else None
        if nxt is None:
            diag.parse(context=f"line {tok.line}", message=f"key {tok.text!r} has no value")
            i += 1
            continue
        if nxt.is_open:
            block = {}
            _store(stack[-1][1], tok.text, block)
            stack.append((tok.text, block, tok.line))
            i += 2
            continue
        if nxt.is_close:
            diag.parse(context=f"line {tok.line}", message=f"key {tok.text!r} has no value")
            i += 1
            continue

        _store(stack[-1][1], tok.text, nxt.text)
        i += 2

    for name, _block, opened_at in reversed(stack[1:]):
        diag.parse(context=f"line {opened_at}", message=f"block {name!r} is never closed")

    return KeyValuesDocument(root=root, diagnostics=diag)


def as_list(value: object) -> list:
    """Normalise a missing, single or repeated tree value to a list."""

    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def first_scalar(value: object, default: str | None = None) -> str | None:
    """Return the first string in *value* (a scalar or repeated scalar)."""

    for item in as_list(value):
        if isinstance(item, str):
            return item
    return default
