"""Shared FastAPI dependencies for edge-function routes."""

from functools import lru_cache

import httpx
from fastapi import Depends

from avatarlab.config import get_settings
from avatarlab.db.session import get_session_factory
from avatarlab.services.credentials import (
    CredentialResolver,
    CredentialService,
    SecretCodec,
    build_codec,
)
from avatarlab.services.http import get_http_client
from avatarlab.services.materialize import AssetMaterializer
from avatarlab.services.storage import StorageService, get_storage


@lru_cache
def get_codec() -> SecretCodec:
    return build_codec(get_settings().credential_encryption_key)


@lru_cache
def get_credential_resolver() -> CredentialResolver:
    """Resolver with the platform keys injected once from configuration."""
    return CredentialResolver(
        platform_keys=get_settings().platform_keys(),
        codec=get_codec(),
        session_factory=get_session_factory(),
    )


def get_credential_service(codec: SecretCodec = Depends(get_codec)) -> CredentialService:
    return CredentialService(codec)


def get_materializer(
    storage: StorageService = Depends(get_storage),
    http_client: httpx.AsyncClient = Depends(get_http_client),
) -> AssetMaterializer:
    return AssetMaterializer(storage, http_client)
