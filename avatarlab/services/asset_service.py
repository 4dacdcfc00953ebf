"""Generated-asset records: creation, status transitions and migration."""

import logging
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from avatarlab.db.models import (
    AccessToken,
    AssetStatus,
    CredentialStatus,
    GeneratedImage,
    GeneratedVideo,
    TtsGeneration,
    UserApiKey,
    VoiceClone,
)
from avatarlab.errors import StorageError
from avatarlab.services.materialize import (
    AssetKind,
    AssetMaterializer,
    decode_data_url,
    is_inline_url,
)
from avatarlab.services.vendors.base import VideoStatus

logger = logging.getLogger(__name__)

POLL_BATCH_SIZE = 50


class AssetService:
    """Service for generated image and video records."""

    async def create_image(
        self,
        db: AsyncSession,
        user_id: str,
        prompt: str,
        provider: str,
        model: Optional[str],
        parameters: dict,
        image_url: Optional[str] = None,
        task_id: Optional[str] = None,
        input_image_url: Optional[str] = None,
    ) -> GeneratedImage:
        """
        Record an accepted image generation.

        With ``image_url`` the record is created completed; otherwise it is
        pending until the vendor task identified by ``task_id`` finishes.
        """
        image = GeneratedImage(
            user_id=user_id,
            prompt=prompt,
            negative_prompt=parameters.get("negative_prompt"),
            provider=provider,
            model=model,
            task_id=task_id,
            parameters=parameters,
            generation_type="img2img" if input_image_url else "text2img",
            input_image_url=input_image_url,
            width=parameters.get("width") or 1024,
            height=parameters.get("height") or 1024,
            status=AssetStatus.PENDING,
        )
        if image_url:
            image.mark_completed(image_url)

        db.add(image)
        await db.flush()
        await db.refresh(image)
        return image

    async def create_video(
        self,
        db: AsyncSession,
        user_id: str,
        provider: str,
        task_id: str,
        prompt: Optional[str] = None,
        model: Optional[str] = None,
        parameters: Optional[dict] = None,
        generation_type: str = "text2vid",
    ) -> GeneratedVideo:
        """Record a video task the vendor has accepted."""
        video = GeneratedVideo(
            user_id=user_id,
            provider=provider,
            task_id=task_id,
            prompt=prompt,
            model=model,
            parameters=parameters,
            generation_type=generation_type,
            status=AssetStatus.PROCESSING,
            progress=0,
        )
        db.add(video)
        await db.flush()
        await db.refresh(video)
        return video

    async def get_video(self, db: AsyncSession, user_id: str, video_id: str) -> Optional[GeneratedVideo]:
        result = await db.execute(
            select(GeneratedVideo).where(
                GeneratedVideo.id == video_id,
                GeneratedVideo.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def find_video_by_task(
        self, db: AsyncSession, user_id: str, task_id: str
    ) -> Optional[GeneratedVideo]:
        result = await db.execute(
            select(GeneratedVideo)
            .where(GeneratedVideo.user_id == user_id, GeneratedVideo.task_id == task_id)
            .order_by(GeneratedVideo.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def find_image_by_task(
        self, db: AsyncSession, user_id: str, task_id: str
    ) -> Optional[GeneratedImage]:
        result = await db.execute(
            select(GeneratedImage)
            .where(GeneratedImage.user_id == user_id, GeneratedImage.task_id == task_id)
            .order_by(GeneratedImage.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_processing_videos(
        self, db: AsyncSession, user_id: str, limit: int = POLL_BATCH_SIZE
    ) -> list[GeneratedVideo]:
        result = await db.execute(
            select(GeneratedVideo)
            .where(
                GeneratedVideo.user_id == user_id,
                GeneratedVideo.status == AssetStatus.PROCESSING,
            )
            .order_by(GeneratedVideo.created_at.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def apply_video_status(
        self,
        db: AsyncSession,
        video: GeneratedVideo,
        status: VideoStatus,
        materializer: AssetMaterializer,
    ) -> GeneratedVideo:
        """Move a video record forward from a vendor status check."""
        if status.status == "completed" and status.video_url:
            stored = await materializer.materialize(
                video.user_id, status.video_url, video.id, AssetKind.VIDEO
            )
            video.mark_completed(stored.url)
            if status.thumbnail_url:
                video.thumbnail_url = status.thumbnail_url
            if status.duration is not None:
                video.duration = status.duration
        elif status.status == "failed":
            video.mark_failed(status.error)
        else:
            video.progress = status.progress
        await db.flush()
        return video

    async def migrate_inline_assets(
        self,
        db: AsyncSession,
        user_id: str,
        materializer: AssetMaterializer,
    ) -> list[dict]:
        """
        Move a user's inline ``data:`` images and videos into object storage.

        Records are processed one at a time and committed individually, so
        an interrupted run leaves finished records migrated and the rest
        untouched. A failure on one record is reported and the batch goes on.
        """
        results = []
        for model, url_field, kind in (
            (GeneratedImage, "image_url", AssetKind.IMAGE),
            (GeneratedVideo, "video_url", AssetKind.VIDEO),
        ):
            column = getattr(model, url_field)
            # Ids only; each payload is loaded when its record is processed
            rows = await db.execute(
                select(model.id)
                .where(model.user_id == user_id, column.like("data:%"))
                .order_by(model.created_at.asc())
            )
            pending = list(rows.scalars().all())
            logger.info(f"Found {len(pending)} inline {kind.value}s to migrate for user {user_id}")

            for record_id in pending:
                record = await db.get(model, record_id)
                data_url = getattr(record, url_field) if record is not None else None
                if not is_inline_url(data_url):
                    # Changed since the listing query
                    if record is not None:
                        db.expunge(record)
                    continue

                try:
                    content_type, content = decode_data_url(data_url)
                    stored = await materializer.store_bytes(
                        user_id, record_id, content, content_type, kind
                    )
                except (ValueError, StorageError) as e:
                    error = e.message if isinstance(e, StorageError) else str(e)
                    logger.error(f"Migration failed for {kind.value} {record_id}: {error}")
                    results.append({"id": record_id, "kind": kind.value, "status": "failed", "error": error})
                    db.expunge(record)
                    continue

                try:
                    setattr(record, url_field, stored.url)
                    await db.commit()
                except Exception as e:
                    await db.rollback()
                    logger.error(f"Update failed for {kind.value} {record_id}: {e}")
                    results.append({"id": record_id, "kind": kind.value, "status": "failed", "error": str(e)})
                    continue
                finally:
                    if record in db:
                        db.expunge(record)

                logger.info(f"Migrated {kind.value} {record_id} to {stored.url}")
                results.append({"id": record_id, "kind": kind.value, "status": "success", "url": stored.url})

        return results

    async def platform_stats(self, db: AsyncSession) -> dict:
        """Aggregate platform counts computed on demand."""

        async def count(query) -> int:
            return (await db.execute(query)).scalar() or 0

        return {
            "users": await count(select(func.count(func.distinct(AccessToken.user_id)))),
            "active_credentials": await count(
                select(func.count()).select_from(UserApiKey).where(
                    UserApiKey.status == CredentialStatus.ACTIVE
                )
            ),
            "images": await count(select(func.count()).select_from(GeneratedImage)),
            "videos": await count(select(func.count()).select_from(GeneratedVideo)),
            "completed_videos": await count(
                select(func.count()).select_from(GeneratedVideo).where(
                    GeneratedVideo.status == AssetStatus.COMPLETED
                )
            ),
            "tts_generations": await count(select(func.count()).select_from(TtsGeneration)),
            "voice_clones": await count(select(func.count()).select_from(VoiceClone)),
        }


# Singleton instance
asset_service = AssetService()
