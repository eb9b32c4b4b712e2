"""
Tests for entry search: scoping, filters, pagination and highlighting.
"""
from datetime import date, datetime, timedelta
import pytest
from sqlalchemy import select
from sqlalchemy.dialects import mysql, postgresql, sqlite
from app.models.entry import JournalEntry, MoodType
from app.services.search_service import FullTextMatch, FullTextRank, SearchEngine, normalize_query
from app.tests.conftest import auth_headers, make_entry

BASE = datetime(2026, 3, 2, 9, 0, 0)


@pytest.fixture
def journal(db):
    """A small journal for two users, oldest first."""
    rows = [
        ("user-1", "Walked on the beach at sunrise", MoodType.CALM, BASE - timedelta(days=3)),
        ("user-1", "Stressful meeting, skipped lunch", MoodType.STRESSED, BASE - timedelta(days=2)),
        ("user-1", "Back to the BEACH with friends", MoodType.HAPPY, BASE - timedelta(days=1)),
        ("user-1", "Quiet evening with a novel", MoodType.HAPPY, BASE),
        ("user-2", "My own beach trip", MoodType.HAPPY, BASE),
    ]
    return [make_entry(db, *row) for row in rows]


def ids(page):
    return [r.entry.id for r in page.results]


def test_normalize_query():
    assert normalize_query("The Beach, at sunrise!") == ["beach", "sunrise"]
    assert normalize_query("beach BEACH beach") == ["beach"]
    assert normalize_query("to be or not") == []
    assert normalize_query(None) == []
    assert normalize_query("   ") == []


def test_results_are_scoped_to_user(db, journal):
    page = SearchEngine(db).search("user-1", "beach")

    assert page.total == 2
    assert ids(page) == [journal[2].id, journal[0].id]
    assert all(r.entry.user_id == "user-1" for r in page.results)


def test_term_match_is_case_insensitive_and_conjunctive(db, journal):
    engine = SearchEngine(db)
    assert ids(engine.search("user-1", "BEACH friends")) == [journal[2].id]
    assert engine.search("user-1", "beach meeting").total == 0


def test_empty_query_browses_with_filters(db, journal):
    page = SearchEngine(db).search("user-1", "", mood=MoodType.HAPPY)

    assert ids(page) == [journal[3].id, journal[2].id]
    assert all(r.entry.mood == MoodType.HAPPY for r in page.results)
    assert page.results[0].highlights["content"] == journal[3].content
    assert page.results[0].snippets == []


def test_noise_only_query_behaves_like_browse(db, journal):
    engine = SearchEngine(db)
    browse = engine.search("user-1")
    noise = engine.search("user-1", "the at on")

    assert noise.total == browse.total == 4
    assert ids(noise) == ids(browse)


def test_date_range_includes_whole_end_day(db, journal):
    page = SearchEngine(db).search(
        "user-1",
        start_date=date(2026, 2, 28),
        end_date=date(2026, 3, 1)
    )
    assert ids(page) == [journal[2].id, journal[1].id]


def test_pagination_has_no_gaps_or_duplicates(db):
    # Identical timestamps make id the only tiebreaker
    entries = [make_entry(db, "user-1", f"note {i}", None, BASE) for i in range(5)]
    engine = SearchEngine(db)

    first = engine.search("user-1", page=0, limit=2)
    second = engine.search("user-1", page=1, limit=2)
    third = engine.search("user-1", page=2, limit=2)

    seen = ids(first) + ids(second) + ids(third)
    assert sorted(seen) == sorted(e.id for e in entries)
    assert len(set(seen)) == 5
    assert first.has_more and second.has_more
    assert not third.has_more
    assert [r.rank for r in second.results] == [3, 4]


def test_page_past_end_is_empty(db, journal):
    page = SearchEngine(db).search("user-1", page=5, limit=2)
    assert page.results == []
    assert page.total == 4
    assert page.has_more is False


@pytest.mark.parametrize("kwargs", [
    {"limit": 0},
    {"limit": 101},
    {"page": -1},
    {"sort": "oldest"},
])
def test_invalid_arguments_raise(db, kwargs):
    with pytest.raises(ValueError):
        SearchEngine(db).search("user-1", **kwargs)


def test_results_carry_highlights_and_snippets(db, journal):
    page = SearchEngine(db).search("user-1", "beach")
    top = page.results[0]

    assert "<mark>BEACH</mark>" in top.highlights["content"]
    assert top.snippets
    assert all("<mark>" not in s for s in top.snippets)
    assert "<mark>beach</mark>" in page.results[1].highlights["content"]


def test_relevance_sort_falls_back_to_recency_without_index(db, journal):
    page = SearchEngine(db).search("user-1", "beach", sort="relevance")
    assert ids(page) == [journal[2].id, journal[0].id]


def test_like_wildcards_in_query_are_literal(db):
    make_entry(db, "user-1", "Scored 100% on the quiz", None, BASE)
    make_entry(db, "user-1", "Scored 100 points", None, BASE)

    page = SearchEngine(db).search("user-1", "100%")
    # "%" is not a word character, so the term is just "100"
    assert page.total == 2
    assert SearchEngine(db).search("user-1", "quiz_").total == 0


def test_punctuated_query_is_highlighted(db, journal):
    page = SearchEngine(db).search("user-1", "beach!")
    assert page.total == 2
    assert "<mark>BEACH</mark>" in page.results[0].highlights["content"]


def compile_sql(stmt, dialect):
    return str(stmt.compile(dialect=dialect))


def test_mysql_full_text_sql():
    terms = ["beach", "friends"]
    stmt = select(JournalEntry.id).where(
        FullTextMatch(JournalEntry.content, terms),
        JournalEntry.user_id == "user-1"
    ).order_by(FullTextRank(JournalEntry.content, terms).desc())

    sql = compile_sql(stmt, mysql.dialect())
    where = sql.split("WHERE", 1)[1].split("ORDER BY", 1)[0]
    assert "MATCH (entries.content) AGAINST (%s IN BOOLEAN MODE)" in where
    assert "= 1" not in where
    assert "ORDER BY MATCH (entries.content) AGAINST (%s IN BOOLEAN MODE) DESC" in sql
    assert stmt.compile(dialect=mysql.dialect()).params["param_1"] == "+beach* +friends*"


def test_postgresql_full_text_sql():
    terms = ["beach", "friends"]
    stmt = select(JournalEntry.id).where(FullTextMatch(JournalEntry.content, terms)).order_by(
        FullTextRank(JournalEntry.content, terms).desc()
    )

    compiled = stmt.compile(dialect=postgresql.dialect())
    sql = str(compiled)
    # An all-stop-word tsquery is empty and must not filter rows out
    assert "numnode(to_tsquery('english', %(param_1)s)) = 0 OR " in sql
    assert "to_tsvector('english', entries.content) @@ to_tsquery('english', %(param_2)s)" in sql
    assert "ts_rank(to_tsvector('english', entries.content)" in sql
    assert compiled.params["param_1"] == "beach & friends"


def test_default_dialect_rank_is_not_a_column_position():
    stmt = select(JournalEntry.id).order_by(FullTextRank(JournalEntry.content, ["beach"]).desc())
    sql = compile_sql(stmt, sqlite.dialect())
    assert "ORDER BY 0 DESC" not in sql


def test_relevance_sort_through_api(client, session_factory):
    with session_factory() as db:
        make_entry(db, "user-1", "Beach walk", None, BASE - timedelta(days=1))
        make_entry(db, "user-1", "Another beach day", None, BASE)

    response = client.get(
        "/api/search",
        params={"q": "beach", "sort": "relevance"},
        headers=auth_headers()
    )
    assert response.status_code == 200
    assert [r["entry"]["content"] for r in response.json()["results"]] == ["Another beach day", "Beach walk"]
