# dreamlog/schemas/dialog.py
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from dreamlog.schemas.dream import CamelModel


class ChatMessageCreate(CamelModel):
    id: Optional[str] = Field(default=None, max_length=64)
    dream_id: str = Field(min_length=1, max_length=64)
    block_id: str = Field(min_length=1, max_length=128)
    role: Literal["user", "assistant"]
    content: str = Field(min_length=1)
    meta: Optional[Dict[str, Any]] = None


class ChatMessage(BaseModel):
    # Stored turns keep the snake_case ``created_at`` key on the wire
    id: str
    role: str
    content: str
    created_at: int
    meta: Optional[Dict[str, Any]] = None


class ChatHistory(BaseModel):
    messages: List[ChatMessage]


class ChatCleared(BaseModel):
    success: bool = True


class InterpretBlockRequest(CamelModel):
    block_text: Optional[str] = None
    dream_id: Optional[str] = None
    block_id: Optional[str] = None


class InterpretBlockResponse(CamelModel):
    interpretation: str
    is_block_interpretation: bool = True


class BlockRef(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[Any] = None
    text: Optional[str] = None


class InterpretFinalRequest(CamelModel):
    dream_text: Optional[str] = None
    blocks: List[BlockRef] = Field(default_factory=list)
    dream_id: Optional[str] = None


class InterpretationResponse(BaseModel):
    interpretation: str
