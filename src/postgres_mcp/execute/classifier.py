"""Cheap statement classification used by the guardrail policy.

A small scanner, not a SQL parser: it extracts the leading keyword
(skipping whitespace and comments) and counts statement separators.
Semicolons inside string or quoted-identifier literals are not special-cased.
"""

from __future__ import annotations

import re

_RETURNING = re.compile(r"\bRETURNING\b", re.IGNORECASE)


def _skip_leading_comments(sql: str) -> str | None:
    """Strip leading whitespace and comments, or return None if a comment is unterminated."""
    s = sql.strip()
    while True:
        if s.startswith("--"):
            newline = s.find("\n")
            if newline < 0:
                return None
            s = s[newline + 1 :].strip()
        elif s.startswith("/*"):
            end = s.find("*/")
            if end < 0:
                return None
            s = s[end + 2 :].strip()
        else:
            return s


def first_keyword(sql: str) -> str:
    """Return the first keyword of ``sql`` uppercased, or ``""`` when none is found.

    Leading ``--`` line comments and ``/* */`` block comments are skipped. A
    keyword is the run of letters and underscores starting at the first
    non-comment character.
    """
    s = _skip_leading_comments(sql)
    if not s:
        return ""

    chars: list[str] = []
    for ch in s:
        if ch.isalpha() or ch == "_":
            chars.append(ch.upper())
            continue
        if not chars and ch.isspace():
            continue
        break
    return "".join(chars)


def is_single_statement(sql: str) -> bool:
    """Return True when ``sql`` holds at most one statement.

    Zero semicolons is a single statement, as is exactly one semicolon that
    terminates non-empty content. Anything else, including a lone ``;``, is
    rejected.
    """
    text = sql.strip()
    if not text:
        return False

    semicolons = text.count(";")
    if semicolons == 0:
        return True
    if semicolons > 1:
        return False
    if text.endswith(";"):
        return bool(text[:-1].strip())
    return False


def has_returning_clause(sql: str) -> bool:
    """Return True when the word ``RETURNING`` appears anywhere in ``sql``.

    Used to decide whether a mutating statement yields rows. Matches inside
    literals or comments are accepted as false positives.
    """
    return _RETURNING.search(sql) is not None
