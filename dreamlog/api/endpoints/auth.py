# dreamlog/api/endpoints/auth.py
import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, status

from dreamlog.api.deps import get_app_settings, get_current_user, get_user_store
from dreamlog.core import clock
from dreamlog.core.config import Settings
from dreamlog.core.errors import conflict, internal_error, not_found, trial_expired, unauthorized
from dreamlog.schemas.user import Credentials, MeResponse, RegisterResponse, Token, UserRecord
from dreamlog.security import hashing, jwt, trial
from dreamlog.services.credential_store import CorruptRecordError, UserStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(user_in: Credentials, store: UserStore = Depends(get_user_store)):
    record = UserRecord(
        email=user_in.email,
        password_hash=hashing.get_password_hash(user_in.password),
        created=clock.now_ms(),
        token_version=0,
    )
    if not await store.insert_if_absent(record):
        raise conflict("User already exists")

    logger.info("Registered %s", user_in.email)
    return RegisterResponse()


@router.post("/login", response_model=Token)
async def login(
        user_in: Credentials,
        store: UserStore = Depends(get_user_store),
        settings: Settings = Depends(get_app_settings),
):
    try:
        user = await store.get(user_in.email)
    except CorruptRecordError as exc:
        logger.error("Login for %s hit an unreadable record", user_in.email)
        raise internal_error(str(exc))

    if user is None:
        raise not_found("User not found")

    if not hashing.verify_password(user_in.password, user.password_hash):
        logger.info("Failed login for %s", user_in.email)
        raise unauthorized("Invalid password")

    if not trial.is_active(user, trial_days=settings.TRIAL_DAYS):
        logger.info("Login refused for %s: trial expired", user_in.email)
        raise trial_expired()

    token = jwt.create_access_token(
        user,
        settings.SECRET_KEY,
        expires_delta=timedelta(days=settings.ACCESS_TOKEN_EXPIRE_DAYS),
    )
    return Token(token=token)


@router.get("/me", response_model=MeResponse, response_model_by_alias=True)
async def read_me(
        user: UserRecord = Depends(get_current_user),
        settings: Settings = Depends(get_app_settings),
):
    # Not trial-gated
    return MeResponse(
        email=user.email,
        created=user.created,
        trial_ends_at=trial.trial_ends_at(user, settings.TRIAL_DAYS),
        trial_days_left=trial.days_left(user, trial_days=settings.TRIAL_DAYS),
    )
