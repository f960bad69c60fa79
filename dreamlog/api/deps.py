# dreamlog/api/deps.py
from typing import Awaitable, Callable, Type, TypeVar

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from dreamlog.core.config import Settings
from dreamlog.core.errors import describe_errors, trial_expired, unauthorized, validation_error
from dreamlog.db.session import get_db
from dreamlog.schemas.user import UserRecord
from dreamlog.security import trial
from dreamlog.security.jwt import resolve_identity
from dreamlog.services.completion import CompletionClient
from dreamlog.services.credential_store import UserStore
from dreamlog.services.dialog_repository import DialogRepository
from dreamlog.services.dream_repository import DreamRepository

# auto_error=False: a missing header must produce our own 401 body
reusable_oauth2 = OAuth2PasswordBearer(tokenUrl="/login", auto_error=False)

ModelT = TypeVar("ModelT", bound=BaseModel)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_user_store(db: AsyncSession = Depends(get_db)) -> UserStore:
    return UserStore(db)


def get_dream_repository(db: AsyncSession = Depends(get_db)) -> DreamRepository:
    return DreamRepository(db)


def get_dialog_repository(db: AsyncSession = Depends(get_db)) -> DialogRepository:
    return DialogRepository(db)


async def get_current_user(
        token: str = Depends(reusable_oauth2),
        store: UserStore = Depends(get_user_store),
        settings: Settings = Depends(get_app_settings),
) -> UserRecord:
    user = await resolve_identity(token, settings.SECRET_KEY, store)
    if user is None:
        raise unauthorized()
    return user


async def get_active_user(
        user: UserRecord = Depends(get_current_user),
        settings: Settings = Depends(get_app_settings),
) -> UserRecord:
    """Authenticated user whose trial has not elapsed."""
    if not trial.is_active(user, trial_days=settings.TRIAL_DAYS):
        raise trial_expired()
    return user


def get_completion_client(settings: Settings = Depends(get_app_settings)) -> CompletionClient:
    return CompletionClient.from_settings(settings)


def require_json_content(request: Request) -> None:
    content_type = request.headers.get("content-type", "")
    if content_type.split(";", 1)[0].strip().lower() != "application/json":
        raise validation_error("Content-Type must be application/json")


def json_body(model: Type[ModelT]) -> Callable[[Request], Awaitable[ModelT]]:
    """
    Body dependency for protected routes.

    Listed after the auth dependencies, it reads and validates the body
    only once the caller is known, so a malformed body from an anonymous
    client still gets 401.
    """

    async def parse(request: Request) -> ModelT:
        try:
            payload = await request.json()
        except ValueError:
            raise validation_error("Invalid JSON")
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            raise validation_error(describe_errors(exc.errors()))

    return parse
