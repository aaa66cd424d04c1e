"""
Name and identity formatting shared by the schema and asset compilers.

Category paths are always assembled root-to-leaf. The catalog returns a term's
``category_path`` nearest-category-first, so it is reversed exactly once, in
:func:`category_names`, and every path or identity is built from that.
"""
import re
from collections.abc import Iterable

from ..models.catalog import Term

IDENTITY_SEPARATOR = "::"

_PATH_HOSTILE = re.compile(r"[/()]")
_CHUNK_SEPARATOR = re.compile(r"[\W_]+")
_ID_SEPARATOR = re.compile(r"[\\/]")


def _is_boundary(prev: str, char: str, following: str) -> bool:
    if prev.isdigit() != char.isdigit():
        return True
    if char.isupper() and not prev.isupper():
        return True
    # Last capital of an acronym starts the next word, e.g. XML|Http
    return char.isupper() and following.islower()

def _split_words(text: str) -> list[str]:
    words: list[str] = []
    for chunk in _CHUNK_SEPARATOR.split(text):
        current = ""
        for position, char in enumerate(chunk):
            following = chunk[position + 1:position + 2]
            if current and _is_boundary(current[-1], char, following):
                words.append(current)
                current = ""
            current += char
        if current:
            words.append(current)
    return words

def _merge_initials(words: list[str]) -> list[str]:
    """Joins runs of single-letter words, so "A/B" becomes "Ab" rather than "AB".

    Two capitals in a row would be read back as one acronym word on the next
    pass, so emitting them would break idempotence.
    """
    merged: list[str] = []
    in_run = False
    for word in words:
        initial = len(word) == 1 and word.isalpha()
        if initial and in_run:
            merged[-1] += word
        else:
            merged.append(word)
        in_run = initial
    return merged

def format_name(raw: str) -> str:
    """Converts a display name into a camelCase token safe for ids and file names.

    ``/`` and parentheses are treated as word breaks, as is any other
    non-alphanumeric character. The result is idempotent under re-formatting.
    """
    if not isinstance(raw, str):
        raise TypeError(f"format_name expects a string, got {type(raw).__name__}")
    words = _split_words(_PATH_HOSTILE.sub("-", raw))
    if not words:
        return ""
    head, *tail = words
    return head.lower() + "".join(w[:1].upper() + w[1:].lower() for w in _merge_initials(tail))

def build_path(ordered_names: Iterable[str]) -> str:
    """Joins already-formatted names into '/a/b/c', keeping the given order."""
    return "".join(f"/{name}" for name in ordered_names)

def category_names(term: Term) -> list[str]:
    """Display names of a term's categories, root first."""
    return [item.name for item in reversed(term.category_path.items)]

def schema_id_for_term(namespace: str, term: Term) -> str:
    path = build_path(format_name(name) for name in category_names(term))
    return f"{namespace}{path}/{format_name(term.name)}"

def identity_for_term(term: Term) -> str:
    """Human-readable identity, e.g. 'Finance::Orders::Order'."""
    return "".join(f"{name}{IDENTITY_SEPARATOR}" for name in category_names(term)) + term.name

def local_name(schema_id: str) -> str:
    """Last path segment of a schema id (the formatted term name)."""
    return _ID_SEPARATOR.split(schema_id)[-1]
