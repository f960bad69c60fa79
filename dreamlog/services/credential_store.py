# dreamlog/services/credential_store.py
"""
Credential store: one JSON user record per email in the key/value table.

Registration uses ``insert_if_absent``, which relies on the primary key of
``kv_store`` instead of a separate existence check, so two concurrent
registrations for the same email cannot both succeed.
"""
import logging
from typing import Optional

from pydantic import ValidationError
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import FlushError

from dreamlog.models.kv_entry import KeyValueEntry
from dreamlog.schemas.user import UserRecord

logger = logging.getLogger(__name__)


class CorruptRecordError(Exception):
    """A stored user document could not be decoded."""


def user_key(email: str) -> str:
    return f"user:{email}"


class UserStore:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def _raw(self, email: str) -> Optional[KeyValueEntry]:
        result = await self.db.execute(
            select(KeyValueEntry)
            .where(KeyValueEntry.key == user_key(email))
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def get(self, email: str) -> Optional[UserRecord]:
        entry = await self._raw(email)
        if entry is None:
            return None
        try:
            return UserRecord.model_validate_json(entry.value)
        except ValidationError as exc:
            raise CorruptRecordError(f"user record for {email} is corrupted") from exc

    async def insert_if_absent(self, record: UserRecord) -> bool:
        """Insert a new record. Returns False when the email is already taken."""
        self.db.add(
            KeyValueEntry(key=user_key(record.email), value=record.model_dump_json(by_alias=True))
        )
        try:
            await self.db.commit()
        except (IntegrityError, FlushError):
            await self.db.rollback()
            logger.info("Registration conflict for existing key")
            return False
        return True

    async def bump_token_version(self, email: str) -> Optional[int]:
        """
        Invalidate every token issued so far for ``email``.

        Returns the new version, or None when the user does not exist.
        The write is conditional on the value read, so concurrent bumps
        never lose an increment.
        """
        while True:
            entry = await self._raw(email)
            if entry is None:
                return None
            try:
                record = UserRecord.model_validate_json(entry.value)
            except ValidationError as exc:
                raise CorruptRecordError(f"user record for {email} is corrupted") from exc

            record.token_version += 1
            result = await self.db.execute(
                update(KeyValueEntry)
                .where(KeyValueEntry.key == entry.key, KeyValueEntry.value == entry.value)
                .values(value=record.model_dump_json(by_alias=True))
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
            if result.rowcount == 1:
                return record.token_version
            # Lost a race with another writer; re-read and retry
