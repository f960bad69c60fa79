# dreamlog/api/endpoints/dreams.py
from typing import List

from fastapi import APIRouter, Depends, status

from dreamlog.api.deps import get_active_user, get_dream_repository, json_body
from dreamlog.core.errors import not_found, validation_error
from dreamlog.schemas.dream import DeleteResponse, DreamCreate, DreamResponse, DreamUpdate
from dreamlog.schemas.user import UserRecord
from dreamlog.services.dream_repository import DreamRepository

router = APIRouter()


@router.get("", response_model=List[DreamResponse])
async def list_dreams(
        user: UserRecord = Depends(get_active_user),
        repo: DreamRepository = Depends(get_dream_repository),
):
    return await repo.list(user.email)


@router.post("", response_model=DreamResponse, status_code=status.HTTP_201_CREATED)
async def create_dream(
        user: UserRecord = Depends(get_active_user),
        dream_in: DreamCreate = Depends(json_body(DreamCreate)),
        repo: DreamRepository = Depends(get_dream_repository),
):
    return await repo.create(user.email, dream_in)


@router.api_route("/", methods=["GET", "PUT", "DELETE"], include_in_schema=False)
async def missing_dream_id(user: UserRecord = Depends(get_active_user)):
    raise validation_error("Missing dream id")


@router.get("/{dream_id}", response_model=DreamResponse)
async def read_dream(
        dream_id: str,
        user: UserRecord = Depends(get_active_user),
        repo: DreamRepository = Depends(get_dream_repository),
):
    dream = await repo.get(user.email, dream_id)
    if dream is None:
        raise not_found("Dream not found")
    return dream


@router.put("/{dream_id}", response_model=DreamResponse)
async def update_dream(
        dream_id: str,
        user: UserRecord = Depends(get_active_user),
        dream_in: DreamUpdate = Depends(json_body(DreamUpdate)),
        repo: DreamRepository = Depends(get_dream_repository),
):
    dream = await repo.update(user.email, dream_id, dream_in.changes())
    if dream is None:
        raise not_found("Dream not found")
    return dream


@router.delete("/{dream_id}", response_model=DeleteResponse)
async def delete_dream(
        dream_id: str,
        user: UserRecord = Depends(get_active_user),
        repo: DreamRepository = Depends(get_dream_repository),
):
    if not await repo.delete(user.email, dream_id):
        raise not_found("Dream not found")
    return DeleteResponse()
