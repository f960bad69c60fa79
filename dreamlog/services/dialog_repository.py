# dreamlog/services/dialog_repository.py
"""
Per-block conversation storage and its rolling summaries.

A thread is identified by ``(user, dream_id, block_id)``; like dreams, every
statement filters on the caller, so another user's thread reads as empty.
Turns come back oldest first.
"""
import json
import logging
import uuid
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dreamlog.core import clock
from dreamlog.models.dialog import DialogMessage, DialogSummary
from dreamlog.schemas.dialog import ChatMessage

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 12000

Turn = Dict[str, str]


def decode_meta(raw: Optional[str], message_id: str = "") -> Optional[Dict[str, Any]]:
    if not raw:
        return None
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Undecodable meta on message %s, dropping it", message_id)
        return None
    return value if isinstance(value, dict) else None


def to_chat_message(message: DialogMessage) -> ChatMessage:
    return ChatMessage(
        id=message.id,
        role=message.role,
        content=message.content,
        created_at=message.created_at,
        meta=decode_meta(message.meta, message.id),
    )


class DialogRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    def _thread(self, model, user: str, dream_id: str, block_id: str):
        return (model.user == user, model.dream_id == dream_id, model.block_id == block_id)

    async def _rows(self, user: str, dream_id: str, block_id: str) -> List[DialogMessage]:
        result = await self.db.execute(
            select(DialogMessage)
            .where(*self._thread(DialogMessage, user, dream_id, block_id))
            .order_by(DialogMessage.created_at, DialogMessage.seq)
        )
        return list(result.scalars().all())

    async def list_messages(self, user: str, dream_id: str, block_id: str) -> List[ChatMessage]:
        return [to_chat_message(row) for row in await self._rows(user, dream_id, block_id)]

    async def turns(self, user: str, dream_id: str, block_id: str) -> List[Turn]:
        """The thread as ``{"role", "content"}`` pairs, oldest first."""
        return [{"role": row.role, "content": row.content} for row in await self._rows(user, dream_id, block_id)]

    async def count_messages(self, user: str, dream_id: str, block_id: str) -> int:
        result = await self.db.execute(
            select(func.count())
            .select_from(DialogMessage)
            .where(*self._thread(DialogMessage, user, dream_id, block_id))
        )
        return result.scalar_one()

    async def append_message(
        self,
        user: str,
        dream_id: str,
        block_id: str,
        role: str,
        content: str,
        meta: Optional[Dict[str, Any]] = None,
        message_id: Optional[str] = None,
    ) -> Optional[ChatMessage]:
        """
        Store one turn. Content beyond ``MAX_MESSAGE_LENGTH`` characters is
        cut off. Returns None when ``message_id`` is already taken.
        """
        message = DialogMessage(
            id=message_id or str(uuid.uuid4()),
            user=user,
            dream_id=dream_id,
            block_id=block_id,
            role=role,
            content=content[:MAX_MESSAGE_LENGTH],
            created_at=clock.now_ms(),
            meta=json.dumps(meta, ensure_ascii=False) if meta else None,
        )
        self.db.add(message)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            logger.info("Message id %s already exists", message.id)
            return None
        return to_chat_message(message)

    async def clear(self, user: str, dream_id: str, block_id: str) -> None:
        """Drop the thread together with its rolling summary."""
        await self.db.execute(delete(DialogMessage).where(*self._thread(DialogMessage, user, dream_id, block_id)))
        await self.db.execute(delete(DialogSummary).where(*self._thread(DialogSummary, user, dream_id, block_id)))
        await self.db.commit()

    async def get_summary(self, user: str, dream_id: str, block_id: str) -> Optional[DialogSummary]:
        result = await self.db.execute(
            select(DialogSummary)
            .where(*self._thread(DialogSummary, user, dream_id, block_id))
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def save_summary(self, user: str, dream_id: str, block_id: str, summary: str, message_count: int) -> None:
        """Upsert the thread's summary and the number of turns it covers."""
        for _ in range(2):
            row = await self.get_summary(user, dream_id, block_id)
            if row is None:
                row = DialogSummary(id=str(uuid.uuid4()), user=user, dream_id=dream_id, block_id=block_id)
            row.summary = summary
            row.last_message_count = message_count
            row.updated_at = clock.now_ms()
            self.db.add(row)
            try:
                await self.db.commit()
                return
            except IntegrityError:
                # A concurrent writer created the row first; update it instead
                await self.db.rollback()
        raise RuntimeError(f"could not save summary for {dream_id}/{block_id}")

    async def unprocessed(self, user: str, dream_id: str, block_id: str) -> Tuple[str, List[Turn]]:
        """Stored summary text and the turns it does not cover yet."""
        row = await self.get_summary(user, dream_id, block_id)
        processed = row.last_message_count if row else 0
        turns = await self.turns(user, dream_id, block_id)
        return (row.summary if row else ""), turns[processed:]
