"""
app/services/meta_service.py

Purpose: WhatsApp Cloud API message sending (transport B)

- POST /{phone_number_id}/messages with a bearer token
- Text, interactive buttons, interactive list and document payloads
- Media lookup and download for logo uploads
- Retries timeouts and 5xx answers with backoff
"""

import asyncio
from typing import Any, Dict, Optional

import httpx

from app.core.config import settings
from app.core.logging import get_logger
from utils.validation_utils import phone_digits

logger = get_logger(__name__)


class MetaService:
    """Service for sending WhatsApp messages via the Graph API"""

    def __init__(self):
        self.access_token = settings.META_ACCESS_TOKEN
        self.phone_number_id = settings.META_PHONE_NUMBER_ID
        self.graph_url = f"{settings.META_GRAPH_URL}/{settings.META_API_VERSION}"
        self.max_attempts = max(1, settings.OUTBOUND_MAX_RETRIES)

    @property
    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"}

    async def send_payload(self, to_phone: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Sends one message payload built by utils.whatsapp_utils.

        Args:
            to_phone: Recipient, any format; sent as digits only
            payload: {"type": ..., <type>: {...}}

        Returns:
            {"success": bool, "message_id": str | None, "error": str | None}
        """
        if not self.is_configured():
            logger.warning("Meta Cloud API is not configured; message dropped")
            return {"success": False, "error": "Meta not configured"}

        body = {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": phone_digits(to_phone),
            **payload,
        }
        url = f"{self.graph_url}/{self.phone_number_id}/messages"
        delay = 1.0

        for attempt in range(1, self.max_attempts + 1):
            try:
                logger.info(f"📤 Sending Meta {payload.get('type')} to {to_phone} (attempt {attempt})")
                async with httpx.AsyncClient() as client:
                    response = await client.post(url, json=body, headers=self._headers, timeout=10.0)

                if response.status_code in (200, 201):
                    data = response.json()
                    message_id = (data.get("messages") or [{}])[0].get("id")
                    logger.info(f"✅ Message sent: id={message_id}")
                    return {"success": True, "message_id": message_id}

                logger.error(f"❌ Graph API error: {response.status_code} - {response.text[:300]}")
                if response.status_code < 500:
                    return {"success": False, "error": f"Graph API error: {response.status_code}"}

            except httpx.TimeoutException:
                logger.error("Graph API timeout")
            except httpx.HTTPError as e:
                logger.error(f"Error sending Meta message: {e}")

            if attempt < self.max_attempts:
                await asyncio.sleep(delay)
                delay *= 2

        return {"success": False, "error": "Graph API send failed after retries"}

    async def download_media(self, media_id: str) -> bytes:
        """
        Resolves a media id to its URL, then downloads it.

        Raises:
            httpx.HTTPError
        """
        async with httpx.AsyncClient(follow_redirects=True) as client:
            meta = await client.get(f"{self.graph_url}/{media_id}", headers=self._headers, timeout=10.0)
            meta.raise_for_status()
            media_url: Optional[str] = meta.json().get("url")
            if not media_url:
                raise httpx.HTTPError(f"No URL for media {media_id}")

            response = await client.get(media_url, headers=self._headers, timeout=20.0)
            response.raise_for_status()
            return response.content

    def is_configured(self) -> bool:
        return bool(self.access_token and self.phone_number_id)


# Singleton instance
meta_service = MetaService()
