"""
Search-result excerpts with highlighted query terms.

Pure functions with no I/O. Terms of two characters or fewer are ignored so
short words do not light up half the text.
"""
import re
from typing import List, Optional, Pattern

MARK_OPEN = "<mark>"
MARK_CLOSE = "</mark>"
ELLIPSIS = "..."
LEFT_CONTEXT = 50
MIN_TERM_LENGTH = 3


def query_terms(query: str) -> List[str]:
    """Lowercased, de-duplicated word tokens long enough to match on."""
    terms = []
    for term in re.findall(r"\w+", (query or "").lower()):
        if len(term) >= MIN_TERM_LENGTH and term not in terms:
            terms.append(term)
    return terms


def _terms_pattern(terms: List[str]) -> Optional[Pattern]:
    if not terms:
        return None
    # Longest first so "beaches" wins over "beach" at the same position
    alternatives = "|".join(re.escape(t) for t in sorted(terms, key=len, reverse=True))
    return re.compile(f"({alternatives})", re.IGNORECASE)


def _mark(pattern: Pattern, text: str) -> str:
    """Wrap every case-insensitive occurrence of every term in a marker."""
    return pattern.sub(lambda m: f"{MARK_OPEN}{m.group(0)}{MARK_CLOSE}", text)


def highlight(text: str, query: str, max_length: int = 200) -> str:
    """
    Excerpt of `text` around the first matching term, with terms marked.

    The window is `max_length` characters starting 50 characters before the
    first match. An ellipsis is added on each side the window cuts off. With
    no usable terms, or no match, a plain truncation is returned.
    """
    text = text or ""
    pattern = _terms_pattern(query_terms(query))
    if pattern is None:
        return text[:max_length]

    match = pattern.search(text)
    if match is None:
        return text[:max_length]

    start = max(0, match.start() - LEFT_CONTEXT)
    end = min(len(text), start + max_length)
    excerpt = _mark(pattern, text[start:end])

    if start > 0:
        excerpt = ELLIPSIS + excerpt
    if end < len(text):
        excerpt = excerpt + ELLIPSIS
    return excerpt


def extract_snippets(
    text: str,
    query: str,
    snippet_length: int = 100,
    max_snippets: int = 3
) -> List[str]:
    """
    Up to `max_snippets` non-overlapping windows, one per match location.

    Windows are centred on each match and returned in text order. Matches
    that fall inside an already-taken window do not produce another snippet.
    """
    text = text or ""
    pattern = _terms_pattern(query_terms(query))
    if pattern is None or max_snippets <= 0:
        return []

    half = snippet_length // 2
    snippets = []
    taken_until = -1

    for match in pattern.finditer(text):
        if len(snippets) >= max_snippets:
            break
        if match.start() < taken_until:
            continue

        start = max(0, match.start() - half, taken_until)
        end = min(len(text), match.start() + half)
        end = max(end, min(len(text), match.end()))
        snippet = text[start:end]

        if start > 0:
            snippet = ELLIPSIS + snippet
        if end < len(text):
            snippet = snippet + ELLIPSIS
        snippets.append(snippet)
        taken_until = end

    return snippets
