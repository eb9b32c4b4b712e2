"""
Full-text search over journal entries.

Query text is normalized into terms and compiled into the database's own
full-text predicate: MATCH ... AGAINST on MySQL, tsvector/tsquery on
PostgreSQL, and case-insensitive LIKE conjunctions elsewhere (SQLite in
tests). Tokenization and stemming stay in the database.
"""
import logging
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional
from sqlalchemy import Float, and_, func, literal
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.orm import Session
from sqlalchemy.sql.expression import ColumnElement
from app.core.config import settings
from app.core.utils import as_end_bound, as_start_bound
from app.models.entry import JournalEntry, MoodType
from app.services.highlight import extract_snippets, highlight

logger = logging.getLogger(__name__)

SORT_RECENT = "recent"
SORT_RELEVANCE = "relevance"
SORT_OPTIONS = (SORT_RECENT, SORT_RELEVANCE)
RANKED_DIALECTS = ("mysql", "postgresql")

MIN_TERM_LENGTH = 3
STOP_WORDS = frozenset({
    "the", "and", "for", "are", "but", "not", "you", "all", "any", "can", "was",
    "our", "out", "has", "have", "this", "that", "with", "from", "they", "were",
    "been", "what", "when", "where", "which", "who", "will", "would", "there",
    "their", "about", "into", "than", "then", "them", "these", "those", "its",
})

EXCERPT_LENGTH = 200


def normalize_query(query: Optional[str]) -> List[str]:
    """
    Split a raw query into search terms.

    Whitespace-separated tokens are reduced to word characters, lowercased,
    and dropped when short (<= 2 chars) or a stop-word. An empty result
    means "no text predicate".
    """
    terms: List[str] = []
    for token in (query or "").split():
        for word in re.findall(r"\w+", token.lower()):
            if len(word) >= MIN_TERM_LENGTH and word not in STOP_WORDS and word not in terms:
                terms.append(word)
    return terms


# ----------------------------------------------------------------------
# Full-text SQL constructs
# ----------------------------------------------------------------------

class _FullTextExpression(ColumnElement):
    inherit_cache = False

    def __init__(self, column, terms: List[str]):
        self.column = column
        self.terms = list(terms)


class FullTextMatch(_FullTextExpression):
    """Predicate: the column matches every term.

    Left untyped so it renders verbatim in WHERE (no `= 1` on MySQL).
    """
    inherit_cache = False


class FullTextRank(_FullTextExpression):
    """Relevance score of the column for the terms."""
    inherit_cache = False
    type = Float()


def _mysql_boolean_query(terms: List[str]) -> str:
    return " ".join(f"+{t}*" for t in terms)


def _pg_tsquery(terms: List[str]) -> str:
    return " & ".join(terms)


@compiles(FullTextMatch)
def _compile_match_default(element, compiler, **kw):
    clauses = [func.lower(element.column).contains(t, autoescape=True) for t in element.terms]
    return compiler.process(and_(*clauses), **kw)


@compiles(FullTextMatch, "mysql")
def _compile_match_mysql(element, compiler, **kw):
    return "MATCH (%s) AGAINST (%s IN BOOLEAN MODE)" % (
        compiler.process(element.column, **kw),
        compiler.process(literal(_mysql_boolean_query(element.terms)), **kw),
    )


@compiles(FullTextMatch, "postgresql")
def _compile_match_postgresql(element, compiler, **kw):
    # A query made only of dictionary stop-words parses to an empty tsquery; match everything then
    return "(numnode(to_tsquery('english', %s)) = 0 OR to_tsvector('english', %s) @@ to_tsquery('english', %s))" % (
        compiler.process(literal(_pg_tsquery(element.terms)), **kw),
        compiler.process(element.column, **kw),
        compiler.process(literal(_pg_tsquery(element.terms)), **kw),
    )


@compiles(FullTextRank)
def _compile_rank_default(element, compiler, **kw):
    # Constant score; a bare "0" would be read as a column position in ORDER BY
    return compiler.process(literal(0.0), **kw)


@compiles(FullTextRank, "mysql")
def _compile_rank_mysql(element, compiler, **kw):
    return _compile_match_mysql(element, compiler, **kw)


@compiles(FullTextRank, "postgresql")
def _compile_rank_postgresql(element, compiler, **kw):
    return "ts_rank(to_tsvector('english', %s), to_tsquery('english', %s))" % (
        compiler.process(element.column, **kw),
        compiler.process(literal(_pg_tsquery(element.terms)), **kw),
    )


# ----------------------------------------------------------------------
# Search
# ----------------------------------------------------------------------

@dataclass
class SearchResult:
    """One ranked hit; `rank` is the 1-based position across all pages."""
    entry: JournalEntry
    rank: int
    highlights: Dict[str, str] = field(default_factory=dict)
    snippets: List[str] = field(default_factory=list)


@dataclass
class SearchPage:
    results: List[SearchResult]
    total: int
    page: int
    limit: int
    has_more: bool


class SearchEngine:
    """Builds filtered, paginated, ranked entry queries for one user."""

    def __init__(self, db: Session):
        self.db = db

    def search(
        self,
        user_id: str,
        query: Optional[str] = None,
        mood: Optional[MoodType] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        page: int = 0,
        limit: int = None,
        sort: str = SORT_RECENT
    ) -> SearchPage:
        """
        Search a user's entries.

        Args:
            user_id: Owner; results never include other users' entries
            query: Raw query text; empty or all-noise queries browse instead
            mood: Exact mood filter
            start_date: Inclusive lower created-at bound (date or datetime)
            end_date: Inclusive upper created-at bound; a bare date covers the day
            page: Zero-based page number
            limit: Page size, 1..SEARCH_MAX_PAGE_SIZE
            sort: "recent" (default) or "relevance"

        Raises:
            ValueError: Invalid page, limit or sort
        """
        limit = settings.SEARCH_DEFAULT_PAGE_SIZE if limit is None else limit
        if limit < 1 or limit > settings.SEARCH_MAX_PAGE_SIZE:
            raise ValueError(f"limit must be between 1 and {settings.SEARCH_MAX_PAGE_SIZE}")
        if page < 0:
            raise ValueError("page must be >= 0")
        if sort not in SORT_OPTIONS:
            raise ValueError(f"sort must be one of {', '.join(SORT_OPTIONS)}")

        terms = normalize_query(query)

        q = self.db.query(JournalEntry).filter(JournalEntry.user_id == user_id)
        if terms:
            q = q.filter(FullTextMatch(JournalEntry.content, terms))
        if mood is not None:
            q = q.filter(JournalEntry.mood == mood)
        lower = as_start_bound(start_date)
        if lower is not None:
            q = q.filter(JournalEntry.created_at >= lower)
        upper = as_end_bound(end_date)
        if upper is not None:
            q = q.filter(JournalEntry.created_at <= upper)

        total = q.count()

        # id breaks created_at ties so pages never overlap or skip rows
        ordering = [JournalEntry.created_at.desc(), JournalEntry.id.desc()]
        if terms and sort == SORT_RELEVANCE and self.db.get_bind().dialect.name in RANKED_DIALECTS:
            ordering.insert(0, FullTextRank(JournalEntry.content, terms).desc())

        entries = q.order_by(*ordering).offset(page * limit).limit(limit).all()

        results = [
            SearchResult(
                entry=entry,
                rank=page * limit + position + 1,
                highlights={"content": highlight(entry.content, query or "", EXCERPT_LENGTH)},
                snippets=extract_snippets(entry.content, query or "")
            )
            for position, entry in enumerate(entries)
        ]

        logger.debug(
            f"Search for user {user_id}: terms={terms} mood={mood} "
            f"page={page} limit={limit} -> {len(results)}/{total}"
        )
        return SearchPage(
            results=results,
            total=total,
            page=page,
            limit=limit,
            has_more=(page + 1) * limit < total
        )
