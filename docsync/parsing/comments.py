"""Doc comment cleanup: marker stripping and de-indentation."""

from __future__ import annotations

import re
from typing import Iterable, List, Optional

_BLOCK_DECORATION = re.compile(r"^\s*\*(?!/) ?")
_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "0": "\0",
    "\\": "\\",
    '"': '"',
    "'": "'",
}
_RAW_LITERAL = re.compile(r'^[bc]?r(#*)"(.*)"\1$', re.DOTALL)
_UNICODE_ESCAPE = re.compile(r"u\{([0-9a-fA-F_]+)\}")


def block_comment_lines(body: str) -> List[str]:
    """Split a ``/** ... */`` body into lines, dropping ``*`` decoration."""
    lines = body.split("\n")
    rest = lines[1:]
    decorated = [line for line in rest if line.strip()]
    if decorated and all(_BLOCK_DECORATION.match(line) for line in decorated):
        lines = [lines[0]] + [_BLOCK_DECORATION.sub("", line, count=1) for line in rest]
    return lines


def literal_value(literal: str) -> Optional[str]:
    """Return the value of a string literal token, or ``None`` for other literals."""
    raw = _RAW_LITERAL.match(literal)
    if raw:
        return raw.group(2)
    text = literal
    if text[:1] in {"b", "c"}:
        text = text[1:]
    if len(text) < 2 or not (text.startswith('"') and text.endswith('"')):
        return None
    return _unescape(text[1:-1])


def _unescape(value: str) -> str:
    result: List[str] = []
    index = 0
    while index < len(value):
        char = value[index]
        if char != "\\" or index + 1 >= len(value):
            result.append(char)
            index += 1
            continue
        nxt = value[index + 1]
        if nxt == "\n":
            # Line continuation swallows the newline and leading whitespace.
            index += 2
            while index < len(value) and value[index] in " \t\n":
                index += 1
            continue
        if nxt == "u":
            unicode = _UNICODE_ESCAPE.match(value, index + 1)
            if unicode:
                result.append(chr(int(unicode.group(1).replace("_", ""), 16)))
                index = unicode.end()
                continue
        if nxt == "x" and index + 3 < len(value):
            try:
                result.append(chr(int(value[index + 2 : index + 4], 16)))
                index += 4
                continue
            except ValueError:
                pass
        result.append(_ESCAPES.get(nxt, nxt))
        index += 2
    return "".join(result)


def clean_doc_lines(lines: Iterable[str]) -> str:
    """Join stripped doc lines, removing shared indentation and blank edges."""
    stripped = [line.rstrip() for line in lines]
    indents = [len(line) - len(line.lstrip()) for line in stripped if line.strip()]
    margin = min(indents) if indents else 0
    dedented = [line[margin:] if line.strip() else "" for line in stripped]

    while dedented and not dedented[0]:
        dedented.pop(0)
    while dedented and not dedented[-1]:
        dedented.pop()
    return "\n".join(dedented)


__all__ = ["block_comment_lines", "clean_doc_lines", "literal_value"]
