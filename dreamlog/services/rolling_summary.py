# dreamlog/services/rolling_summary.py
"""
Rolling summaries of block conversations.

A thread gets its first summary once it holds two turns. After that the
summary is rewritten from the previous one plus the new turns whenever at
least six turns have accumulated since it was last saved.
"""
import logging
from typing import Optional

from dreamlog.services import completion
from dreamlog.services.completion import CompletionClient, CompletionError
from dreamlog.services.dialog_repository import DialogRepository

logger = logging.getLogger(__name__)

SUMMARY_UPDATE_THRESHOLD = 6
MIN_MESSAGES_FOR_FIRST_SUMMARY = 2


async def refresh_rolling_summary(
    client: CompletionClient,
    dialogs: DialogRepository,
    user: str,
    dream_id: str,
    block_id: str,
    block_text: Optional[str],
) -> str:
    """
    Fold unprocessed turns into the stored summary and save it.

    An existing summary with fewer than ``SUMMARY_UPDATE_THRESHOLD`` new
    turns behind it is returned as is. An empty reply keeps the previous
    summary text but still marks the turns as processed.
    """
    current = await dialogs.get_summary(user, dream_id, block_id)
    previous = current.summary if current else ""
    processed = current.last_message_count if current else 0

    turns = await dialogs.turns(user, dream_id, block_id)
    new_turns = turns[processed:]
    if previous and len(new_turns) < SUMMARY_UPDATE_THRESHOLD:
        return previous

    messages = completion.build_rolling_summary_messages(block_text, previous, new_turns)
    updated = await completion.update_rolling_summary(client, messages) or previous
    await dialogs.save_summary(user, dream_id, block_id, updated, len(turns))
    logger.info("Rolling summary for %s/%s now covers %d messages", dream_id, block_id, len(turns))
    return updated


async def summary_for_analysis(
    client: CompletionClient,
    dialogs: DialogRepository,
    user: str,
    dream_id: str,
    block_id: str,
    block_text: Optional[str],
) -> Optional[str]:
    """
    Summary to put in front of an analyze call, refreshed first when due.

    A failed refresh is logged and the stored summary (if any) is used; the
    analyze call itself still goes ahead.
    """
    current = await dialogs.get_summary(user, dream_id, block_id)
    stored = current.summary if current and current.summary else None
    count = await dialogs.count_messages(user, dream_id, block_id)

    if current is None:
        due = count >= MIN_MESSAGES_FOR_FIRST_SUMMARY
    else:
        due = count - current.last_message_count >= SUMMARY_UPDATE_THRESHOLD
    if not due:
        return stored

    try:
        return await refresh_rolling_summary(client, dialogs, user, dream_id, block_id, block_text) or None
    except CompletionError as exc:
        logger.warning("Rolling summary refresh failed for %s/%s: %s", dream_id, block_id, exc)
        return stored
