"""
Resolve a partial character name or id against the catalog.

Rules run in priority order and stop at the first one that narrows the
catalog to a single entry:

1. exact id
2. exact name
3. id prefix
4. name prefix (only if no id prefixed the query)
5. substring of id or name (only if no name prefixed the query)

Comparison is case-insensitive after trimming. More than one hit at steps
3-5 is ambiguous: the caller is told every candidate and nothing is chosen.
"""

from typing import Iterable

from ..errors import AmbiguousMatchError, CharacterNotFoundError
from ..state.schema import CharacterInfo


def _fold(text: str) -> str:
    return text.strip().casefold()


def _narrow(query: str, hits: list[CharacterInfo]) -> CharacterInfo | None:
    """One hit wins, several are ambiguous, none falls through."""
    if len(hits) == 1:
        return hits[0]
    if len(hits) > 1:
        raise AmbiguousMatchError(query, [info.label for info in hits])
    return None


def resolve(query: str, catalog: Iterable[CharacterInfo]) -> CharacterInfo:
    """
    Find the single catalog entry `query` refers to.

    Raises:
        CharacterNotFoundError: nothing matches, or the catalog is empty
        AmbiguousMatchError: a prefix or substring rule matched several entries
    """
    query = query.strip()
    entries = list(catalog)
    needle = _fold(query)
    if not entries or not needle:
        raise CharacterNotFoundError(query)

    for info in entries:
        if _fold(info.id) == needle:
            return info
    for info in entries:
        if _fold(info.name) == needle:
            return info

    match = _narrow(query, [i for i in entries if _fold(i.id).startswith(needle)])
    if match:
        return match

    match = _narrow(query, [i for i in entries if _fold(i.name).startswith(needle)])
    if match:
        return match

    match = _narrow(
        query,
        [i for i in entries if needle in _fold(i.id) or needle in _fold(i.name)],
    )
    if match:
        return match

    raise CharacterNotFoundError(query)
