"""Songwriter/producer credit name normalization.

Hey future me - credit text from scraped pages is a MESS. Names arrive glued
together ("Christopher BoysMcKinley Languedoc"), separated by anything from
commas to pipes, duplicated, and in random case. This module turns that into a
clean, deduplicated list of names.

Examples:
    >>> normalize_credit_list("John Smith / Jane Doe")
    ['John Smith', 'Jane Doe']
    >>> normalize_credit_list("Christopher BoysMcKinley Languedoc")
    ['Christopher Boys', 'Mckinley Languedoc']
"""

import re
from collections.abc import Iterable

_SEPARATORS = re.compile(r"[&/|;\n]")
_MULTISPACE = re.compile(r"\s{2,}")
_GLUED = re.compile(r"([a-z])([A-Z])")

# Surname prefixes where lower→Upper is part of ONE name (McDonald, MacLeod, ...)
_SURNAME_PREFIXES: tuple[str, ...] = ("Mc", "Mac", "O'", "St.", "Van", "De", "Von", "La", "Le")


def _split_glued(text: str) -> str:
    def replace(match: re.Match[str]) -> str:
        # Walk back to the capital letter that starts the current chunk
        seg = match.start()
        while seg > 0 and not text[seg].isupper() and (
            text[seg - 1].isalpha() or text[seg - 1] in "'."
        ):
            seg -= 1
        if text[seg : match.start() + 1] in _SURNAME_PREFIXES:
            return match.group(0)
        return f"{match.group(1)}, {match.group(2)}"

    return _GLUED.sub(replace, text)


def _title_case(name: str) -> str:
    words = []
    for word in name.split(" "):
        if not word:
            continue
        if word.startswith("O'") and len(word) > 2:
            words.append("O'" + word[2].upper() + word[3:].lower())
        else:
            words.append(word[0].upper() + word[1:].lower())
    return " ".join(words)


def normalize_credit_list(raw_text: str | None) -> list[str]:
    """Normalize a raw credit string into individual names.

    Args:
        raw_text: Credit text as scraped (may be None)

    Returns:
        Title-cased names, deduplicated case-insensitively, in first-seen order
    """
    if not raw_text or not raw_text.strip():
        return []

    text = _SEPARATORS.sub(",", raw_text.strip())
    text = _MULTISPACE.sub(" ", text)
    text = _split_glued(text)

    result: list[str] = []
    seen: set[str] = set()
    for part in text.split(","):
        name = " ".join(part.split())
        if not name:
            continue
        name = _title_case(name)
        # Single-word entries need at least 3 characters ("Jo" is noise, "Joe" is fine)
        if len(name) < 2 or (" " not in name and len(name) < 3):
            continue
        key = name.lower()
        if key not in seen:
            seen.add(key)
            result.append(name)
    return result


def process_credits(raw_entries: Iterable[str]) -> list[str]:
    """Normalize several credit strings and deduplicate across all of them."""
    result: list[str] = []
    seen: set[str] = set()
    for entry in raw_entries:
        for name in normalize_credit_list(entry):
            if name.lower() not in seen:
                seen.add(name.lower())
                result.append(name)
    return result


def normalize_songwriter_key(name: str) -> str:
    """Key used to group tracks into songwriter contacts."""
    return " ".join(name.lower().split())
