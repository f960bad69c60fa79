# dreamlog/schemas/completion.py
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from dreamlog.schemas.dream import CamelModel


class ChatTurn(BaseModel):
    role: str
    content: str

    def as_message(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


class SummarizeRequest(CamelModel):
    history: List[ChatTurn] = Field(default_factory=list)
    block_text: Optional[str] = None
    existing_summary: Optional[str] = None


class SummarizeResponse(BaseModel):
    summary: str


class AnalyzeRequest(CamelModel):
    block_text: str = ""
    last_turns: List[ChatTurn] = Field(default_factory=list)
    rolling_summary: Optional[str] = None
    extra_system_prompt: Optional[str] = None
    dream_summary: Optional[str] = None
    # Optional: pull stored digests of an owned dream into the prompt
    dream_id: Optional[str] = None
    block_id: Optional[str] = None


class FindSimilarRequest(CamelModel):
    dream_text: Optional[str] = None
    global_final_interpretation: Optional[str] = None
    block_interpretations: Optional[str] = None


class FindSimilarResponse(BaseModel):
    similar: List[Any]


class AutoSummaryRequest(CamelModel):
    dream_id: Optional[str] = None
    dream_text: Optional[str] = None


class AutoSummaryResponse(CamelModel):
    success: bool = True
    auto_summary: str
