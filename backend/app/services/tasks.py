"""
Detached background work.

Units scheduled here run after the response is sent, on FastAPI's
BackgroundTasks runner. Each unit opens its own session and has its own
error boundary, so nothing it does can reach the request that queued it.
"""
import logging
from typing import Callable, List
from fastapi import BackgroundTasks
from sqlalchemy.orm import Session
from app.services import entry_service
from app.services.llm_client import LanguageModelClient
from app.services.sentiment_service import SentimentAnalyzer, SentimentFallback

logger = logging.getLogger(__name__)


async def run_sentiment_analysis(
    session_factory: Callable[[], Session],
    client: LanguageModelClient,
    user_id: str,
    entry_id: int
) -> None:
    """Analyze one entry and store its sentiment. Never raises."""
    db = session_factory()
    try:
        outcome = await SentimentAnalyzer(db, client).analyze_entry(user_id, entry_id)
        if isinstance(outcome, SentimentFallback):
            logger.info(f"Sentiment for entry {entry_id} left empty ({outcome.reason})")
    except Exception as e:
        logger.error(f"Background sentiment analysis failed for entry {entry_id}: {e}", exc_info=True)
        db.rollback()
    finally:
        db.close()


async def run_batch_sentiment_analysis(
    session_factory: Callable[[], Session],
    client: LanguageModelClient,
    user_id: str,
    entry_ids: List[int]
) -> None:
    """Analyze several entries in rate-limited groups. Never raises."""
    db = session_factory()
    try:
        entries = [entry_service.get_entry(user_id, entry_id, db) for entry_id in entry_ids]
        entries = [e for e in entries if e is not None and e.content.strip()]
        await SentimentAnalyzer(db, client).analyze_batch(user_id, entries)
    except Exception as e:
        logger.error(f"Background batch sentiment failed for user {user_id}: {e}", exc_info=True)
        db.rollback()
    finally:
        db.close()


def dispatch_sentiment_analysis(
    background_tasks: BackgroundTasks,
    session_factory: Callable[[], Session],
    client: LanguageModelClient,
    user_id: str,
    entry_id: int
) -> bool:
    """
    Queue sentiment analysis for a freshly written entry.

    Returns False (and queues nothing) when AI is not configured.
    """
    if not client.is_available():
        return False
    background_tasks.add_task(run_sentiment_analysis, session_factory, client, user_id, entry_id)
    return True


def dispatch_batch_sentiment_analysis(
    background_tasks: BackgroundTasks,
    session_factory: Callable[[], Session],
    client: LanguageModelClient,
    user_id: str,
    entry_ids: List[int]
) -> bool:
    """Queue a batch run over `entry_ids`."""
    if not client.is_available() or not entry_ids:
        return False
    background_tasks.add_task(run_batch_sentiment_analysis, session_factory, client, user_id, entry_ids)
    return True
