"""Professional voice clones: creation, training status and deletion."""

import asyncio
import logging
from typing import Optional

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from avatarlab.db.models import VoiceClone, VoiceCloneStatus, VoiceSample
from avatarlab.errors import AppError, InternalError
from avatarlab.schemas.schemas import VoiceSampleUpload
from avatarlab.services.vendors.elevenlabs import ElevenLabsClient

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGE = "en"


def is_training_complete(voice: dict) -> bool:
    """ElevenLabs reports a finished clone by locking fine-tuning or listing samples."""
    fine_tuning = voice.get("fine_tuning")
    if isinstance(fine_tuning, dict) and fine_tuning.get("is_allowed_to_fine_tune") is False:
        return True
    return bool(voice.get("samples"))


class VoiceCloneService:
    """Service for a user's ElevenLabs voice clones."""

    async def list_clones(self, db: AsyncSession, user_id: str) -> list[VoiceClone]:
        result = await db.execute(
            select(VoiceClone)
            .where(VoiceClone.user_id == user_id)
            .order_by(VoiceClone.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_clone(self, db: AsyncSession, user_id: str, clone_id: str) -> Optional[VoiceClone]:
        result = await db.execute(
            select(VoiceClone).where(VoiceClone.id == clone_id, VoiceClone.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def refresh_training(
        self, db: AsyncSession, clones: list[VoiceClone], client: ElevenLabsClient
    ) -> None:
        """
        Ask ElevenLabs about every clone still training, concurrently.

        Finished clones are switched to active; a clone whose check fails
        keeps its status and the error is only logged.
        """
        training = [
            c for c in clones
            if c.status == VoiceCloneStatus.TRAINING and c.elevenlabs_voice_id
        ]
        if not training:
            return

        outcomes = await asyncio.gather(
            *(client.get_voice(c.elevenlabs_voice_id) for c in training),
            return_exceptions=True,
        )
        changed = False
        for clone, outcome in zip(training, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(f"Error checking voice status for {clone.id}: {outcome}")
                continue
            if is_training_complete(outcome):
                logger.info(f"Voice clone {clone.id} finished training")
                clone.status = VoiceCloneStatus.ACTIVE
                changed = True

        if changed:
            await db.flush()

    async def fetch_samples(
        self, http_client: httpx.AsyncClient, samples: list[VoiceSampleUpload]
    ) -> list[tuple[str, bytes]]:
        """Download each uploaded recording; any failure aborts the clone."""
        files = []
        for index, sample in enumerate(samples, start=1):
            logger.info(f"Preparing sample {index}/{len(samples)}: {sample.filename}")
            try:
                response = await http_client.get(sample.url)
            except httpx.HTTPError as e:
                raise InternalError(f"Failed to fetch sample from storage: {sample.url}") from e
            if not response.is_success:
                raise InternalError(f"Failed to fetch sample from storage: {sample.url}")
            files.append((sample.filename, response.content))
        return files

    async def create_clone(
        self,
        db: AsyncSession,
        user_id: str,
        client: ElevenLabsClient,
        http_client: httpx.AsyncClient,
        name: str,
        samples: list[VoiceSampleUpload],
        description: Optional[str] = None,
        language: Optional[str] = None,
        remove_background_noise: Optional[bool] = None,
    ) -> VoiceClone:
        """
        Create a professional voice clone and record it as training.

        The voice is created at ElevenLabs first, then every sample is
        fetched and uploaded in one request. Nothing is stored locally
        unless both steps succeed.
        """
        voice_id = await client.create_pvc_voice(name, language or DEFAULT_LANGUAGE, description)
        logger.info(f"PVC voice created: {voice_id}")

        files = await self.fetch_samples(http_client, samples)
        await client.upload_pvc_samples(voice_id, files, remove_background_noise)
        logger.info(f"Uploaded {len(files)} samples to PVC voice {voice_id}")

        clone = VoiceClone(
            user_id=user_id,
            name=name,
            description=description,
            elevenlabs_voice_id=voice_id,
            status=VoiceCloneStatus.TRAINING,
            sample_count=len(samples),
        )
        clone.samples = [
            VoiceSample(
                user_id=user_id,
                filename=sample.filename,
                file_url=sample.url,
                file_size_bytes=sample.size,
                duration_seconds=sample.duration,
                status="completed",
            )
            for sample in samples
        ]
        db.add(clone)
        await db.flush()
        await db.refresh(clone)
        return clone

    async def delete_clone(
        self, db: AsyncSession, clone: VoiceClone, client: ElevenLabsClient
    ) -> None:
        """Remove the voice at ElevenLabs (best effort) and delete the record."""
        if clone.elevenlabs_voice_id:
            try:
                await client.delete_voice(clone.elevenlabs_voice_id)
            except AppError as e:
                logger.error(f"Failed to delete voice from ElevenLabs: {e.message}")

        await db.delete(clone)
        await db.flush()


# Singleton instance
voice_clone_service = VoiceCloneService()
