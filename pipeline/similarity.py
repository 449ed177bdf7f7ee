"""Trigram similarity with pg_trgm semantics.

Each word (a run of alphanumerics) is lower-cased and padded with two
spaces in front and one behind, then cut into three-character windows.
Similarity is the number of shared trigrams over the number of distinct
trigrams in either string, so identical strings score 1.0 and strings
with no word in common score 0.0.
"""

import re

_WORD_RE = re.compile(r"[^\W_]+", re.UNICODE)
_PUNCT_RE = re.compile(r"[^\w\s]", re.UNICODE)


def clean_title(title: str | None) -> str:
    """Lower-case, trim and drop punctuation before comparing titles."""
    if not title:
        return ""
    return _PUNCT_RE.sub("", title.strip().lower())


def trigrams(value: str | None) -> set[str]:
    """Return the set of padded word trigrams for a string."""
    result: set[str] = set()
    if not value:
        return result
    for word in _WORD_RE.findall(value.lower()):
        padded = f"  {word} "
        for i in range(len(padded) - 2):
            result.add(padded[i:i + 3])
    return result


def similarity(a: str | None, b: str | None) -> float:
    """pg_trgm-style similarity between two strings, 0.0 to 1.0."""
    ta = trigrams(a)
    tb = trigrams(b)
    if not ta or not tb:
        return 0.0
    shared = len(ta & tb)
    return shared / len(ta | tb)


def title_similarity(a: str | None, b: str | None) -> float:
    """Similarity between two article titles after cleaning."""
    return round(similarity(clean_title(a), clean_title(b)), 4)
