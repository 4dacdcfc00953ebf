"""Vendor credential storage and resolution."""

import asyncio
import base64
import binascii
import logging
from typing import Optional, Protocol

from cryptography.fernet import Fernet, InvalidToken
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from avatarlab.db.models import CredentialStatus, ServiceName, UserApiKey, utcnow
from avatarlab.errors import CredentialMissing

logger = logging.getLogger(__name__)


class SecretDecodeError(Exception):
    """A stored secret could not be decoded."""


class SecretCodec(Protocol):
    def encode(self, secret: str) -> str: ...

    def decode(self, encoded: str) -> str: ...


class FernetCodec:
    """Symmetric encryption of secrets at rest."""

    def __init__(self, key: str):
        self._fernet = Fernet(key.encode() if isinstance(key, str) else key)

    def encode(self, secret: str) -> str:
        return self._fernet.encrypt(secret.encode("utf-8")).decode("ascii")

    def decode(self, encoded: str) -> str:
        try:
            return self._fernet.decrypt(encoded.encode("ascii")).decode("utf-8")
        except (InvalidToken, UnicodeError) as e:
            raise SecretDecodeError("Stored secret could not be decrypted") from e


class Base64Codec:
    """
    Legacy reversible encoding of secrets.

    This is not encryption. It only exists so rows written before a
    Fernet key was configured keep working.
    """

    def encode(self, secret: str) -> str:
        return base64.b64encode(secret.encode("utf-8")).decode("ascii")

    def decode(self, encoded: str) -> str:
        try:
            return base64.b64decode(encoded, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeError) as e:
            raise SecretDecodeError("Stored secret is not valid base64") from e


def build_codec(encryption_key: Optional[str]) -> SecretCodec:
    """Pick the codec for the configured key."""
    if encryption_key:
        return FernetCodec(encryption_key)
    logger.warning(
        "CREDENTIAL_ENCRYPTION_KEY is not set; vendor keys are stored base64-encoded, not encrypted"
    )
    return Base64Codec()


def key_hint(secret: str) -> str:
    return secret[-4:] if len(secret) >= 8 else ""


class CredentialResolver:
    """
    Resolve the vendor secret to use for a user.

    The most recently created active user credential wins; when there is
    none (or it cannot be decoded) the platform key for the service is
    used; with neither, ``CredentialMissing`` is raised.
    """

    def __init__(
        self,
        platform_keys: dict[str, str],
        codec: SecretCodec,
        session_factory: async_sessionmaker[AsyncSession],
    ):
        self.platform_keys = dict(platform_keys)
        self.codec = codec
        self.session_factory = session_factory
        self._background_tasks: set[asyncio.Task] = set()

    async def resolve(self, db: AsyncSession, user_id: str, service: ServiceName) -> str:
        result = await db.execute(
            select(UserApiKey)
            .where(
                UserApiKey.user_id == user_id,
                UserApiKey.service == service.value,
                UserApiKey.status == CredentialStatus.ACTIVE,
            )
            .order_by(UserApiKey.created_at.desc())
            .limit(1)
        )
        credential = result.scalar_one_or_none()

        if credential is not None and credential.api_key_encrypted:
            try:
                secret = self.codec.decode(credential.api_key_encrypted)
            except SecretDecodeError as e:
                logger.error(f"Failed to decode {service.value} key {credential.id}: {e}")
            else:
                logger.info(f"Using user's personal {service.label} API key")
                self.touch_last_used(credential.id)
                return secret

        platform_key = self.platform_keys.get(service.value)
        if platform_key:
            logger.info(f"Using platform {service.label} API key")
            return platform_key

        raise CredentialMissing(
            f"No {service.label} API key configured. "
            "Please add your API key in Settings > API Keys."
        )

    def touch_last_used(self, credential_id: str) -> asyncio.Task:
        """Record usage in a detached task; the caller never waits on it."""
        task = asyncio.create_task(self._update_last_used(credential_id))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        return task

    async def _update_last_used(self, credential_id: str) -> None:
        try:
            async with self.session_factory() as session:
                await session.execute(
                    update(UserApiKey)
                    .where(UserApiKey.id == credential_id)
                    .values(last_used_at=utcnow())
                )
                await session.commit()
        except Exception as e:
            logger.warning(f"Could not update last_used_at for credential {credential_id}: {e}")

    async def drain(self) -> None:
        """Wait for pending bookkeeping tasks (shutdown and tests)."""
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)


class CredentialService:
    """Create, list and revoke the credentials a user owns."""

    def __init__(self, codec: SecretCodec):
        self.codec = codec

    async def add(
        self, db: AsyncSession, user_id: str, service: ServiceName, secret: str
    ) -> UserApiKey:
        credential = UserApiKey(
            user_id=user_id,
            service=service.value,
            api_key_encrypted=self.codec.encode(secret),
            key_hint=key_hint(secret),
            status=CredentialStatus.ACTIVE,
        )
        db.add(credential)
        await db.flush()
        await db.refresh(credential)
        return credential

    async def list_for_user(
        self, db: AsyncSession, user_id: str, include_revoked: bool = False
    ) -> list[UserApiKey]:
        query = select(UserApiKey).where(UserApiKey.user_id == user_id)
        if not include_revoked:
            query = query.where(UserApiKey.status == CredentialStatus.ACTIVE)
        result = await db.execute(query.order_by(UserApiKey.created_at.desc()))
        return list(result.scalars().all())

    async def revoke(self, db: AsyncSession, user_id: str, credential_id: str) -> Optional[UserApiKey]:
        result = await db.execute(
            select(UserApiKey).where(
                UserApiKey.id == credential_id,
                UserApiKey.user_id == user_id,
            )
        )
        credential = result.scalar_one_or_none()
        if credential is None:
            return None
        credential.status = CredentialStatus.REVOKED
        await db.flush()
        return credential
