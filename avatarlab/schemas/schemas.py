"""Pydantic schemas for request/response validation."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from avatarlab.db.models import AssetStatus, ServiceName, VoiceCloneStatus


class CamelModel(BaseModel):
    """Request bodies arrive camelCased from the web client."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============== Credential Schemas ==============


class CredentialCreate(CamelModel):
    """Store a vendor API key for the calling user."""

    service: ServiceName = Field(..., description="Vendor service the key belongs to")
    api_key: str = Field(..., min_length=1, max_length=500, description="Plain vendor API key")


class CredentialInfo(BaseModel):
    """Credential metadata (never the secret)."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    service: str
    key_hint: Optional[str] = None
    status: str
    created_at: datetime
    last_used_at: Optional[datetime] = None


# ============== Generation Schemas ==============


class AvatarVideoRequest(CamelModel):
    """Create a HeyGen avatar video, or check one with ``check_status``."""

    avatar_type: Literal["preset", "photo"] = "preset"
    script: Optional[str] = None
    avatar_id: Optional[str] = None
    photo_avatar: Optional[str] = None
    voice_id: Optional[str] = None
    avatar_style: str = "normal"
    emotion: Optional[str] = "Friendly"
    speech_speed: float = 1.0
    pitch: float = 0
    dimension: str = "1920x1080"
    add_captions: bool = False
    check_status: bool = False
    video_id: Optional[str] = None


class ImageGenerateRequest(CamelModel):
    prompt: Optional[str] = None
    provider: str = "openai"
    parameters: dict = Field(default_factory=dict)
    check_progress: bool = False
    task_id: Optional[str] = None
    input_image: Optional[str] = None


class VideoGenerateRequest(CamelModel):
    prompt: Optional[str] = None
    provider: str = "kie-veo3-fast"
    parameters: dict = Field(default_factory=dict)
    input_image: Optional[str] = None
    input_images: Optional[list[str]] = None


class TaskInspectRequest(CamelModel):
    task_id: Optional[str] = None
    provider: Optional[str] = None


class VideoRefreshRequest(CamelModel):
    """Re-check one video at KIE.AI; task and provider default to the record's."""

    video_id: Optional[str] = None
    task_id: Optional[str] = None
    provider: Optional[str] = None


class ManualVideoUrlRequest(CamelModel):
    video_id: Optional[str] = None
    video_url: Optional[str] = None


class DownloadRequest(CamelModel):
    image_url: Optional[str] = None
    filename: Optional[str] = None


class TtsRequest(CamelModel):
    text: Optional[str] = None
    voice_id: Optional[str] = None
    settings: dict = Field(default_factory=dict)


class VideoTranslateRequest(CamelModel):
    """Start a HeyGen video translation, or check one with ``check_status``."""

    video_url: Optional[str] = None
    target_languages: Optional[list[str]] = None
    speaker_num: int = 1
    audio_only: bool = False
    dynamic_duration: Optional[bool] = True
    check_status: bool = False
    translate_id: Optional[str] = None


class VoiceSampleUpload(BaseModel):
    """An already-uploaded recording to train a voice clone with."""

    url: str
    filename: str
    size: Optional[int] = None
    duration: Optional[float] = None


class VoiceCloneCreate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    samples: list[VoiceSampleUpload] = Field(default_factory=list)
    language: Optional[str] = None
    remove_background_noise: Optional[bool] = None


# ============== Access Token Schemas ==============


class AccessTokenCreate(BaseModel):
    """Request to issue a bearer token for a user."""

    user_id: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1, max_length=100)
    expires_in_days: Optional[int] = Field(None, ge=1, le=365)


class AccessTokenResponse(BaseModel):
    """Response after issuing a token (only time the full token is shown)."""

    id: str
    token: str
    token_prefix: str
    user_id: str
    name: str
    created_at: datetime
    expires_at: Optional[datetime] = None


class AccessTokenInfo(BaseModel):
    """Token info (without the token)."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    token_prefix: str
    user_id: str
    name: str
    is_active: bool
    created_at: datetime
    expires_at: Optional[datetime] = None


# ============== Health & Misc Schemas ==============


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    database: str
    redis: str
    storage: str


# ============== Asset Record Schemas ==============


class ImageInfo(BaseModel):
    """Generated image row as returned to the client."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    prompt: str
    provider: str
    model: Optional[str] = None
    task_id: Optional[str] = None
    image_url: Optional[str] = None
    status: AssetStatus
    generation_type: str
    width: Optional[int] = None
    height: Optional[int] = None
    error_message: Optional[str] = None
    created_at: datetime
    completed_at: Optional[datetime] = None


class VideoInfo(BaseModel):
    """Generated video row as returned to the client."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    prompt: Optional[str] = None
    provider: str
    model: Optional[str] = None
    task_id: Optional[str] = None
    video_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    duration: Optional[float] = None
    status: AssetStatus
    progress: int
    error_message: Optional[str] = None
    created_at: datetime
    completed_at: Optional[datetime] = None


class TtsGenerationInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    text: str
    voice_id: str
    model: str
    settings: Optional[dict] = None
    audio_url: Optional[str] = None
    status: AssetStatus
    created_at: datetime


class VoiceCloneInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    name: str
    description: Optional[str] = None
    elevenlabs_voice_id: Optional[str] = None
    status: VoiceCloneStatus
    sample_count: int
    created_at: datetime


def record_payload(schema: type[BaseModel], record) -> dict:
    """Serialize an ORM row through ``schema`` into JSON-safe primitives."""
    return schema.model_validate(record).model_dump(mode="json")
