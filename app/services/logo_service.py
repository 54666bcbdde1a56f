"""
app/services/logo_service.py

Purpose: Business logo storage

- Downloads an uploaded image from whichever transport received it
- Stores it under MEDIA_DIR/logos and publishes it under /media
- Points the business at the new logo
"""

import asyncio
from pathlib import Path

import httpx
from pymongo.errors import PyMongoError

from app.core.config import settings
from app.core.exceptions import ExternalServiceError
from app.core.logging import get_logger
from app.db.mongo import get_tenants_collection
from app.schemas.outbound import LogoJob
from app.services.meta_service import meta_service
from app.services.twilio_service import twilio_service

logger = get_logger(__name__)

EXTENSIONS = {"image/png": ".png", "image/jpeg": ".jpg", "image/jpg": ".jpg", "image/webp": ".webp"}


def logo_dir() -> Path:
    return Path(settings.MEDIA_DIR) / "logos"


async def store_logo(job: LogoJob) -> str:
    """
    Returns:
        Public URL of the stored logo

    Raises:
        ExternalServiceError: download or storage failed
    """
    try:
        if job.media_id:
            content = await meta_service.download_media(job.media_id)
        elif job.media_url:
            content = await twilio_service.download_media(job.media_url)
        else:
            raise ExternalServiceError("Logo upload has no media reference")
    except httpx.HTTPError as e:
        raise ExternalServiceError("Could not download logo") from e

    filename = f"{job.tenant_id}{EXTENSIONS.get(job.mime_type or '', '.jpg')}"
    path = logo_dir() / filename
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread(path.write_bytes, content)
    except OSError as e:
        raise ExternalServiceError("Could not store logo") from e

    url = f"{settings.PUBLIC_BASE_URL.rstrip('/')}/media/logos/{filename}"
    try:
        await get_tenants_collection().update_one({"_id": job.tenant_id}, {"$set": {"logo_url": url}})
    except PyMongoError as e:
        raise ExternalServiceError("Could not save logo link") from e

    logger.info(f"🖼️ Logo stored at {url}")
    return url
