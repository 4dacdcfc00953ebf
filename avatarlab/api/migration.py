"""Bulk migration of inline assets into object storage."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from avatarlab.api.deps import get_materializer
from avatarlab.auth.security import require_user
from avatarlab.db.session import get_db
from avatarlab.responses import success_response
from avatarlab.services.asset_service import asset_service
from avatarlab.services.materialize import AssetMaterializer

router = APIRouter(prefix="/functions/v1", tags=["Storage"])


@router.post(
    "/migrate-images-to-storage",
    summary="Migrate inline assets",
    description="Upload the caller's data: URL images and videos to object storage "
    "and replace the stored URLs. Safe to run repeatedly.",
)
async def migrate_images_to_storage(
    user_id: str = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    materializer: AssetMaterializer = Depends(get_materializer),
):
    results = await asset_service.migrate_inline_assets(db, user_id, materializer)

    succeeded = sum(1 for r in results if r["status"] == "success")
    failed = len(results) - succeeded

    return success_response(
        {
            "message": f"Migration complete: {succeeded} succeeded, {failed} failed",
            "total": len(results),
            "results": results,
        }
    )
