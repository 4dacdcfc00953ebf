"""OpenAI chat completion proxy."""

import httpx
from fastapi import APIRouter, Body, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from avatarlab.api.deps import get_credential_resolver
from avatarlab.auth.security import require_user
from avatarlab.db.models import ServiceName
from avatarlab.db.session import get_db
from avatarlab.middleware.rate_limit import rate_limit_generation
from avatarlab.responses import raw_json_response
from avatarlab.services.credentials import CredentialResolver
from avatarlab.services.http import get_http_client
from avatarlab.services.vendors.openai import OpenAIClient

router = APIRouter(prefix="/functions/v1", tags=["Chat"])


@router.post(
    "/chat-completions",
    summary="Chat completion",
    description="Forward an OpenAI chat completion request and return OpenAI's response as-is.",
)
@rate_limit_generation()
async def chat_completions(
    request: Request,
    payload: dict = Body(...),
    user_id: str = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    resolver: CredentialResolver = Depends(get_credential_resolver),
    http_client: httpx.AsyncClient = Depends(get_http_client),
):
    api_key = await resolver.resolve(db, user_id, ServiceName.OPENAI)
    result = await OpenAIClient(http_client, api_key).chat_completion(payload)
    return raw_json_response(result)
