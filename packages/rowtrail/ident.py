"""Qualified SQL identifier splitting, quoting and history-name derivation.

Identifiers arrive as raw text lifted out of user SQL, so they may be
schema-qualified, double-quoted, mixed-case, or contain dots and quote
characters inside quoted parts. Everything rendered back into SQL goes through
``quote``; nothing here ever interpolates an unquoted name.
"""

from __future__ import annotations

from collections.abc import Sequence

_QUOTE = '"'


def split_qualified(identifier: str) -> list[str]:
    """Split a possibly schema-qualified identifier into its unquoted parts.

    A ``"``..``"`` pair delimits a quoted segment in which ``.`` is literal and
    ``""`` stands for one quote character. Unquoted dots separate parts. Each
    part is trimmed. Blank input yields an empty list.
    """
    identifier = identifier.strip()
    if not identifier:
        return []

    parts: list[str] = []
    buf: list[str] = []
    in_quotes = False
    index = 0
    while index < len(identifier):
        char = identifier[index]
        if char == _QUOTE:
            if (
                in_quotes
                and index + 1 < len(identifier)
                and identifier[index + 1] == _QUOTE
            ):
                buf.append(_QUOTE)
                index += 2
                continue
            in_quotes = not in_quotes
        elif char == "." and not in_quotes:
            parts.append("".join(buf).strip())
            buf = []
        else:
            buf.append(char)
        index += 1
    parts.append("".join(buf).strip())
    return parts


def strip_alias(text: str) -> str:
    """Reduce captured target text to the table identifier alone.

    Drops one trailing comma and cuts at the first whitespace outside quotes,
    so ``orders o`` becomes ``orders`` while ``"Order Detail"`` survives.
    """
    text = text.strip()
    if text.endswith(","):
        text = text[:-1]
    in_quotes = False
    for index, char in enumerate(text):
        if char == _QUOTE:
            in_quotes = not in_quotes
        elif not in_quotes and char.isspace():
            return text[:index].strip()
    return text


def quote(part: str) -> str:
    """Quote one identifier part, doubling embedded quotes."""
    return _QUOTE + part.replace(_QUOTE, _QUOTE * 2) + _QUOTE


def quote_qualified(parts: Sequence[str]) -> str:
    """Render identifier parts as a dotted, fully quoted SQL identifier."""
    return ".".join(quote(part) for part in parts)


def history_parts(base: str, suffix: str) -> list[str]:
    """Return the history-table parts for ``base``.

    The suffix is appended to the table part only; schema parts are kept.
    """
    parts = split_qualified(base)
    if not parts:
        return [suffix] if suffix else []
    return [*parts[:-1], parts[-1] + suffix]


def regclass_literal(parts: Sequence[str]) -> str:
    """Render parts as a single-quoted literal suitable for ``to_regclass``."""
    if not parts:
        return "''"
    return "'" + quote_qualified(parts).replace("'", "''") + "'"


def base_table_name(identifier: str) -> str:
    """Return the table part of a qualified identifier."""
    parts = split_qualified(identifier)
    if not parts:
        return identifier.strip()
    return parts[-1]


def escape_colons(sql_fragment: str) -> str:
    """Escape ``:`` so SQLAlchemy ``text()`` does not read binds out of names."""
    return sql_fragment.replace(":", r"\:")
