"""Database models for the AvatarLab edge functions."""

import enum
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from sqlalchemy import (
    JSON,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from avatarlab.db.session import Base


def _new_id() -> str:
    return str(uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ServiceName(str, enum.Enum):
    """External vendor services a credential can belong to."""

    OPENAI = "openai"
    HEYGEN = "heygen"
    KIE_AI = "kie-ai"
    ELEVENLABS = "elevenlabs"
    STABILITY = "stability"
    GOOGLE = "google"

    @property
    def label(self) -> str:
        return {
            "openai": "OpenAI",
            "heygen": "HeyGen",
            "kie-ai": "KIE.AI",
            "elevenlabs": "ElevenLabs",
            "stability": "Stability AI",
            "google": "Google AI",
        }[self.value]


class CredentialStatus(str, enum.Enum):
    ACTIVE = "active"
    REVOKED = "revoked"


class AssetStatus(str, enum.Enum):
    """Lifecycle of a generated image, video or audio record."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class VoiceCloneStatus(str, enum.Enum):
    TRAINING = "training"
    ACTIVE = "active"
    FAILED = "failed"


class AccessToken(Base):
    """Bearer tokens issued to users by the auth subsystem."""

    __tablename__ = "access_tokens"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    token_hash: Mapped[str] = mapped_column(String(255), unique=True)
    token_prefix: Mapped[str] = mapped_column(String(12), index=True)  # "avl_" + first 8 chars
    name: Mapped[str] = mapped_column(String(100))
    is_active: Mapped[bool] = mapped_column(default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class UserApiKey(Base):
    """A vendor secret owned by one user, encoded at rest."""

    __tablename__ = "user_api_keys"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    service: Mapped[str] = mapped_column(String(50), index=True)
    api_key_encrypted: Mapped[str] = mapped_column(Text)
    key_hint: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)  # Last 4 chars
    status: Mapped[CredentialStatus] = mapped_column(
        Enum(CredentialStatus), default=CredentialStatus.ACTIVE
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    last_used_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class _AssetStateMixin:
    """Status transitions that keep the URL/status invariant intact."""

    _url_field = ""

    def mark_completed(self, url: str) -> None:
        if not url:
            raise ValueError("A completed asset requires a URL")
        setattr(self, self._url_field, url)
        self.status = AssetStatus.COMPLETED
        self.completed_at = utcnow()
        self.error_message = None

    def mark_failed(self, message: Optional[str]) -> None:
        self.status = AssetStatus.FAILED
        self.error_message = message or "Generation failed"
        self.completed_at = utcnow()


class GeneratedImage(_AssetStateMixin, Base):
    """An image produced by a vendor for one user."""

    __tablename__ = "generated_images"
    _url_field = "image_url"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    prompt: Mapped[str] = mapped_column(Text)
    negative_prompt: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    provider: Mapped[str] = mapped_column(String(50))
    model: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    task_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[AssetStatus] = mapped_column(Enum(AssetStatus), default=AssetStatus.PENDING)
    generation_type: Mapped[str] = mapped_column(String(20), default="text2img")
    input_image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)  # img2img source
    parameters: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    width: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    height: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class GeneratedVideo(_AssetStateMixin, Base):
    """A video produced asynchronously by a vendor for one user."""

    __tablename__ = "generated_videos"
    _url_field = "video_url"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    prompt: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    provider: Mapped[str] = mapped_column(String(50))
    model: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    task_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    video_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    thumbnail_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    duration: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    status: Mapped[AssetStatus] = mapped_column(Enum(AssetStatus), default=AssetStatus.PENDING)
    progress: Mapped[int] = mapped_column(Integer, default=0)
    generation_type: Mapped[str] = mapped_column(String(20), default="text2vid")
    parameters: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def mark_completed(self, url: str) -> None:
        super().mark_completed(url)
        self.progress = 100


class TtsGeneration(_AssetStateMixin, Base):
    """Synthesized speech stored for one user."""

    __tablename__ = "tts_generations"
    _url_field = "audio_url"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    text: Mapped[str] = mapped_column(Text)
    voice_id: Mapped[str] = mapped_column(String(100))
    model: Mapped[str] = mapped_column(String(100))
    settings: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    audio_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[AssetStatus] = mapped_column(Enum(AssetStatus), default=AssetStatus.PENDING)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class VoiceClone(Base):
    """An ElevenLabs professional voice clone owned by one user."""

    __tablename__ = "voice_clones"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    name: Mapped[str] = mapped_column(String(200))
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    elevenlabs_voice_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    status: Mapped[VoiceCloneStatus] = mapped_column(
        Enum(VoiceCloneStatus), default=VoiceCloneStatus.TRAINING
    )
    sample_count: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    # Relationships
    samples: Mapped[list["VoiceSample"]] = relationship(
        "VoiceSample", back_populates="voice_clone", cascade="all, delete-orphan"
    )


class VoiceSample(Base):
    """One recording uploaded to train a voice clone."""

    __tablename__ = "voice_samples"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    voice_clone_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("voice_clones.id", ondelete="CASCADE"), index=True
    )
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    filename: Mapped[str] = mapped_column(String(255))
    file_url: Mapped[str] = mapped_column(Text)
    file_size_bytes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    duration_seconds: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="completed")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    # Relationships
    voice_clone: Mapped["VoiceClone"] = relationship("VoiceClone", back_populates="samples")
