# CUI // SP-CTI
"""Minimal glob matching for governance paths.

Only ``*`` (any run of characters except ``/``) and ``**`` (anything,
including ``/``) are special. Everything else matches literally and the
pattern must cover the whole path.
"""

import re
from functools import lru_cache
from typing import Pattern

_GLOB_TOKEN = re.compile(r"\*\*|\*")


@lru_cache(maxsize=512)
def glob_to_regex(pattern: str) -> Pattern:
    parts = []
    pos = 0
    for token in _GLOB_TOKEN.finditer(pattern):
        parts.append(re.escape(pattern[pos:token.start()]))
        parts.append(".*" if token.group() == "**" else "[^/]*")
        pos = token.end()
    parts.append(re.escape(pattern[pos:]))
    return re.compile("^" + "".join(parts) + "$")


def glob_match(path: str, pattern: str) -> bool:
    """Return True when ``path`` matches ``pattern`` in full."""
    if path == pattern:
        return True
    return glob_to_regex(pattern).match(path) is not None


def literal_prefix(pattern: str) -> str:
    """The part of a pattern before its first wildcard."""
    star = pattern.find("*")
    return pattern if star < 0 else pattern[:star]
