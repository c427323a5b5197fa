"""
Background tasks executed by rq workers.
"""

import logging

from pythink.core.errors import AIUnavailableError, NotFoundError
from pythink.db.session import SessionLocal
from pythink.services.conversation_service import summarize_and_store

logger = logging.getLogger(__name__)


def summarize_conversation_task(conversation_id: int) -> dict:
    """
    Generate and store the teacher summary of one AI coach conversation.

    Args:
        conversation_id: ID of the conversation to summarize

    Returns:
        Dictionary with the task outcome
    """
    db = SessionLocal()
    try:
        logger.info(f"Starting summary task for conversation {conversation_id}")

        summary = summarize_and_store(db, conversation_id)

        return {
            "status": "success" if summary else "empty",
            "conversation_id": conversation_id,
            "summary": summary,
        }

    except (NotFoundError, AIUnavailableError) as e:
        logger.error(f"Summary failed for conversation {conversation_id}: {e}")
        return {
            "status": "error",
            "conversation_id": conversation_id,
            "error": str(e),
        }

    finally:
        db.close()
