# dreamlog/schemas/dream.py
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

MAX_SIMILAR_ARTWORKS = 5


class CamelModel(BaseModel):
    # Wire format is camelCase (dreamText, similarArtworks, ...)
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ArtworkItem(BaseModel):
    model_config = ConfigDict(extra="allow")

    title: str = ""
    author: str = ""
    desc: str = ""
    value: str = ""
    type: Optional[str] = None


def _require_text(v: Optional[str]) -> str:
    if v is None or not v.strip():
        raise ValueError("dreamText is required and must be a non-empty string")
    return v


class DreamCreate(CamelModel):
    dream_text: str
    title: Optional[str] = None
    blocks: Optional[List[Any]] = None
    similar_artworks: Optional[List[ArtworkItem]] = Field(default=None, max_length=MAX_SIMILAR_ARTWORKS)

    @field_validator("dream_text")
    @classmethod
    def check_dream_text(cls, v):
        return _require_text(v)


class DreamUpdate(CamelModel):
    """Partial update. Only fields present in the body are applied."""
    dream_text: Optional[str] = None
    title: Optional[str] = None
    category: Optional[str] = None
    dream_summary: Optional[str] = None
    global_final_interpretation: Optional[str] = None
    blocks: Optional[List[Any]] = None
    similar_artworks: Optional[List[ArtworkItem]] = Field(default=None, max_length=MAX_SIMILAR_ARTWORKS)
    context: Optional[str] = None

    @field_validator("dream_text")
    @classmethod
    def check_dream_text(cls, v):
        return _require_text(v)

    def changes(self) -> Dict[str, Any]:
        """Fields present in the request body, by schema field name."""
        data = self.model_dump(exclude_unset=True)
        if "similar_artworks" in data and self.similar_artworks is not None:
            data["similar_artworks"] = [item.model_dump(exclude_none=True) for item in self.similar_artworks]
        return data


class DreamResponse(CamelModel):
    id: str
    user: str
    title: Optional[str] = None
    dream_text: Optional[str] = None
    # Epoch milliseconds
    date: Optional[int] = None
    category: Optional[str] = None
    dream_summary: Optional[str] = None
    global_final_interpretation: Optional[str] = None
    blocks: List[Any] = Field(default_factory=list)
    similar_artworks: List[Any] = Field(default_factory=list)
    context: Optional[str] = None
    auto_summary: Optional[str] = None


class DeleteResponse(BaseModel):
    success: bool = True
