"""Text normalisation shared by the vocabulary matchers."""

import re
import unicodedata
from typing import Iterable, List, Tuple


def normalize_text(text: str) -> str:
    """Lowercase, strip accents and collapse whitespace."""
    decomposed = unicodedata.normalize("NFKD", text.lower())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return re.sub(r"\s+", " ", stripped).strip()


def term_pattern(term: str) -> str:
    """Word-boundary regex for a vocabulary term; a trailing ``*`` makes it a prefix."""
    if term.endswith("*"):
        return r"\b" + re.escape(normalize_text(term[:-1])) + r"\w*"
    return r"\b" + re.escape(normalize_text(term)) + r"\b"


def find_terms(normalized_text: str, terms: Iterable[str]) -> List[str]:
    """Return the terms found in already-normalised text, matched on word boundaries.

    Terms ending in ``*`` match any word starting with the prefix
    (``sintom*`` matches "sintoma" and "sintomas").
    """
    return [term for term in terms if re.search(term_pattern(term), normalized_text)]


def find_terms_longest_first(normalized_text: str, terms: Iterable[str]) -> List[str]:
    """Like :func:`find_terms`, but text already claimed by a longer term is not
    matched again ("febre alta" does not also count as "febre")."""
    claimed: List[Tuple[int, int]] = []
    found = []
    for term in sorted(terms, key=len, reverse=True):
        spans = [
            match.span()
            for match in re.finditer(term_pattern(term), normalized_text)
            if not any(
                start <= match.start() and match.end() <= end for start, end in claimed
            )
        ]
        if spans:
            found.append(term)
            claimed.extend(spans)
    return found
