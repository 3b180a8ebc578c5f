"""Identifier and path splitting into natural-language words."""

from __future__ import annotations

import re

# Word split regex: camelCase / PascalCase / snake_case → words
_CAMEL_SPLIT = re.compile(r"[A-Z]?[a-z]+|[A-Z]+(?=[A-Z][a-z]|\d|\b)|[0-9]+")

_PATH_PREFIXES = ("src/", "lib/", "app/", "pkg/", "internal/")


def word_split(name: str) -> list[str]:
    """Split an identifier into lowercase natural words.

    Handles camelCase, PascalCase, snake_case, and mixed styles.
    Example: ``getUserById`` → ``["get", "user", "by", "id"]``
    """
    words: list[str] = []
    for part in re.split(r"[_\-$]", name):
        if not part:
            continue
        camel = _CAMEL_SPLIT.findall(part)
        if camel:
            words.extend(w.lower() for w in camel)
        else:
            words.append(part.lower())
    return words


def path_to_phrase(file_path: str) -> str:
    """Convert a file path into a natural-language phrase.

    Example: ``src/auth/middleware/rate_limiter.py``
    → ``"auth middleware rate limiter"``
    """
    p = file_path.replace("\\", "/").removeprefix("./")
    for prefix in _PATH_PREFIXES:
        if p.startswith(prefix):
            p = p[len(prefix) :]
            break
    dot = p.rfind(".")
    if dot > p.rfind("/") + 1:
        p = p[:dot]
    parts: list[str] = []
    for segment in p.split("/"):
        parts.extend(word_split(segment))
    return " ".join(parts)
