# dreamlog/services/dream_repository.py
"""
CRUD over the ``dreams`` table.

Every statement carries the ownership predicate ``user == <caller>``; a
record owned by someone else is indistinguishable from a missing one.

``blocks`` and ``similarArtworks`` are JSON text at rest. On read they are
decoded, and a value that fails to decode is served as an empty list
(logged, storage left untouched). Legacy rows that kept their text in
``text`` or their timestamp in ``created``/``updated`` are normalized into
``dreamText``/``date`` on read only.
"""
import json
import logging
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from dreamlog.core import clock
from dreamlog.models.dream import Dream
from dreamlog.schemas.dream import DreamCreate, DreamResponse

logger = logging.getLogger(__name__)

# Columns a partial update may touch, keyed by schema field name
UPDATABLE_FIELDS = (
    "title",
    "dream_text",
    "category",
    "dream_summary",
    "global_final_interpretation",
    "blocks",
    "similar_artworks",
    "context",
)
JSON_FIELDS = ("blocks", "similar_artworks")


def decode_json_list(raw: Optional[str], *, field: str = "", dream_id: str = "") -> List[Any]:
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Undecodable %s on dream %s, serving empty list", field, dream_id)
        return []
    if not isinstance(value, list):
        logger.warning("Non-list %s on dream %s, serving empty list", field, dream_id)
        return []
    return value


def encode_json_list(value: Optional[List[Any]]) -> str:
    return json.dumps(value or [], ensure_ascii=False)


def to_response(dream: Dream) -> DreamResponse:
    dream_text = dream.dream_text if dream.dream_text else dream.legacy_text
    if dream.date is not None:
        date = dream.date
    elif dream.legacy_created is not None:
        date = dream.legacy_created
    else:
        date = dream.legacy_updated

    return DreamResponse(
        id=dream.id,
        user=dream.user,
        title=dream.title,
        dream_text=dream_text,
        date=date,
        category=dream.category,
        dream_summary=dream.dream_summary,
        global_final_interpretation=dream.global_final_interpretation,
        blocks=decode_json_list(dream.blocks, field="blocks", dream_id=dream.id),
        similar_artworks=decode_json_list(dream.similar_artworks, field="similarArtworks", dream_id=dream.id),
        context=dream.context,
        auto_summary=dream.auto_summary,
    )


class DreamRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def _owned(self, user: str, dream_id: str) -> Optional[Dream]:
        result = await self.db.execute(
            select(Dream)
            .where(Dream.id == dream_id, Dream.user == user)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def list(self, user: str) -> List[DreamResponse]:
        sort_key = func.coalesce(Dream.date, Dream.legacy_created, Dream.legacy_updated)
        result = await self.db.execute(
            select(Dream).where(Dream.user == user).order_by(sort_key.desc())
        )
        return [to_response(dream) for dream in result.scalars().all()]

    async def create(self, user: str, data: DreamCreate) -> DreamResponse:
        similar = (
            [item.model_dump(exclude_none=True) for item in data.similar_artworks]
            if data.similar_artworks
            else []
        )
        dream = Dream(
            id=str(uuid.uuid4()),
            user=user,
            title=data.title,
            dream_text=data.dream_text.strip(),
            date=clock.now_ms(),
            blocks=encode_json_list(data.blocks),
            similar_artworks=encode_json_list(similar),
        )
        self.db.add(dream)
        await self.db.commit()
        return to_response(dream)

    async def get(self, user: str, dream_id: str) -> Optional[DreamResponse]:
        dream = await self._owned(user, dream_id)
        return to_response(dream) if dream else None

    async def update(self, user: str, dream_id: str, changes: Dict[str, Any]) -> Optional[DreamResponse]:
        """
        Apply ``changes`` (schema field name → value). Fields absent from
        ``changes`` keep their stored value. Changing the text drops the
        cached auto summary.
        """
        dream = await self._owned(user, dream_id)
        if dream is None:
            return None

        text_changed = "dream_text" in changes and changes["dream_text"] != dream.dream_text

        for key, value in changes.items():
            if key not in UPDATABLE_FIELDS:
                continue
            if key in JSON_FIELDS:
                value = encode_json_list(value)
            setattr(dream, key, value)

        if text_changed:
            dream.auto_summary = None

        self.db.add(dream)
        await self.db.commit()
        return to_response(dream)

    async def delete(self, user: str, dream_id: str) -> bool:
        result = await self.db.execute(
            delete(Dream).where(Dream.id == dream_id, Dream.user == user)
        )
        await self.db.commit()
        return result.rowcount > 0

    async def set_auto_summary(self, user: str, dream_id: str, summary: str) -> bool:
        dream = await self._owned(user, dream_id)
        if dream is None:
            return False
        dream.auto_summary = summary
        self.db.add(dream)
        await self.db.commit()
        return True


    async def set_block_interpretation(self, user: str, dream_id: str, block_id: str, interpretation: str) -> bool:
        """Attach ``interpretation`` to the stored block whose id is ``block_id``."""
        dream = await self._owned(user, dream_id)
        if dream is None:
            return False
        blocks = decode_json_list(dream.blocks, field="blocks", dream_id=dream_id)
        for block in blocks:
            if isinstance(block, dict) and str(block.get("id")) == block_id:
                block["interpretation"] = interpretation
                break
        else:
            return False
        dream.blocks = encode_json_list(blocks)
        self.db.add(dream)
        await self.db.commit()
        return True
