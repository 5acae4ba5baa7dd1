"""
Admin maintenance endpoints: storage sync, connection checks, diagnostics
"""
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from portfolio.auth import require_admin
from portfolio.database import get_db
from portfolio.debug_utils import DebugInfo
from portfolio.dependencies import get_blob_store, get_sync_service
from portfolio.serializers import envelope
from portfolio.services.photo_sync import PhotoSyncService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Admin"])


@router.post("/api/admin/sync")
async def sync_photos(
    prune: bool = Query(False, description="Delete records whose file is missing"),
    admin: Dict[str, Any] = Depends(require_admin),
    service: PhotoSyncService = Depends(get_sync_service),
):
    """
    Compare photo records with the files in the Nextcloud photo root
    """
    logger.info(f"Sync requested by {admin.get('email')} (prune={prune})")
    report = await service.sync(prune=prune)
    return envelope(report.to_dict())


@router.get("/api/admin/nextcloud")
async def nextcloud_connection(
    admin: Dict[str, Any] = Depends(require_admin),
    blob_store=Depends(get_blob_store),
):
    """
    Test the Nextcloud credentials and photo root
    """
    return envelope(await DebugInfo.check_nextcloud_connection(blob_store))


@router.get("/debug/health-full")
async def full_health_check(
    admin: Dict[str, Any] = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    blob_store=Depends(get_blob_store),
):
    """
    Health of every dependency plus basic statistics
    """
    database = await DebugInfo.check_database_connection(db)
    nextcloud = await DebugInfo.check_nextcloud_connection(blob_store)
    healthy = database["status"] == "connected" and nextcloud["status"] == "connected"

    return envelope({
        "status": "healthy" if healthy else "degraded",
        "database": database,
        "nextcloud": nextcloud,
        "stats": await DebugInfo.get_database_stats(db),
        "environment": DebugInfo.get_environment_info(),
        "system": DebugInfo.get_system_info(),
    })
