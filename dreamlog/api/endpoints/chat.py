# dreamlog/api/endpoints/chat.py
"""Stored conversation of one dream block."""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from dreamlog.api.deps import get_active_user, get_dialog_repository, json_body
from dreamlog.core.errors import conflict, validation_error
from dreamlog.schemas.dialog import ChatCleared, ChatHistory, ChatMessage, ChatMessageCreate
from dreamlog.schemas.user import UserRecord
from dreamlog.services.dialog_repository import DialogRepository

router = APIRouter()


def _thread(dream_id: Optional[str], block_id: Optional[str]):
    if not dream_id or not block_id:
        raise validation_error("Missing dreamId or blockId")
    return dream_id, block_id


@router.get("/chat", response_model=ChatHistory)
async def read_chat(
        dream_id: Optional[str] = Query(None, alias="dreamId"),
        block_id: Optional[str] = Query(None, alias="blockId"),
        user: UserRecord = Depends(get_active_user),
        dialogs: DialogRepository = Depends(get_dialog_repository),
):
    dream_id, block_id = _thread(dream_id, block_id)
    return ChatHistory(messages=await dialogs.list_messages(user.email, dream_id, block_id))


@router.post("/chat", response_model=ChatMessage, status_code=status.HTTP_201_CREATED)
async def append_chat_message(
        user: UserRecord = Depends(get_active_user),
        message_in: ChatMessageCreate = Depends(json_body(ChatMessageCreate)),
        dialogs: DialogRepository = Depends(get_dialog_repository),
):
    message = await dialogs.append_message(
        user.email,
        message_in.dream_id,
        message_in.block_id,
        message_in.role,
        message_in.content,
        meta=message_in.meta,
        message_id=message_in.id,
    )
    if message is None:
        raise conflict("Message id already exists")
    return message


@router.delete("/chat", response_model=ChatCleared)
async def clear_chat(
        dream_id: Optional[str] = Query(None, alias="dreamId"),
        block_id: Optional[str] = Query(None, alias="blockId"),
        user: UserRecord = Depends(get_active_user),
        dialogs: DialogRepository = Depends(get_dialog_repository),
):
    dream_id, block_id = _thread(dream_id, block_id)
    await dialogs.clear(user.email, dream_id, block_id)
    return ChatCleared()
