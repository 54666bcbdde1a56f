"""
app/services/twilio_service.py

Purpose: Twilio WhatsApp message sending (transport A)

- Sends WhatsApp messages via the Twilio REST API
- Supports text messages and media (document links)
- Downloads inbound media (logo uploads)
- Retries timeouts and 5xx answers with backoff
"""

import asyncio
from typing import Any, Dict, Optional

import httpx

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)

MAX_BODY = 1600


class TwilioService:
    """Service for sending WhatsApp messages via Twilio"""

    def __init__(self):
        self.account_sid = settings.TWILIO_ACCOUNT_SID
        self.auth_token = settings.TWILIO_AUTH_TOKEN
        self.whatsapp_number = settings.TWILIO_WHATSAPP_NUMBER
        self.base_url = f"https://api.twilio.com/2010-04-01/Accounts/{self.account_sid}"
        self.max_attempts = max(1, settings.OUTBOUND_MAX_RETRIES)

    async def send_message(
        self,
        to_phone: str,
        message: str,
        media_url: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Sends a WhatsApp message via Twilio

        Args:
            to_phone: Recipient phone (+263772123456)
            message: Message text
            media_url: Optional media URL for documents

        Returns:
            {
                "success": True/False,
                "message_sid": "SMxxx...",
                "error": "Optional error message"
            }
        """
        if not self.is_configured():
            logger.warning("Twilio is not configured; message dropped")
            return {"success": False, "error": "Twilio not configured"}

        if not to_phone.startswith("whatsapp:"):
            to_phone = f"whatsapp:{to_phone}"

        data = {
            "From": self.whatsapp_number,
            "To": to_phone,
            "Body": message[:MAX_BODY],
        }
        if media_url:
            data["MediaUrl"] = media_url

        url = f"{self.base_url}/Messages.json"
        delay = 1.0

        for attempt in range(1, self.max_attempts + 1):
            try:
                logger.info(f"📤 Sending Twilio message to {to_phone} (attempt {attempt})")
                async with httpx.AsyncClient() as client:
                    response = await client.post(
                        url,
                        data=data,
                        auth=(self.account_sid, self.auth_token),
                        timeout=10.0
                    )

                if response.status_code in (200, 201):
                    result = response.json()
                    logger.info(f"✅ Message sent: SID={result.get('sid')}")
                    return {
                        "success": True,
                        "message_sid": result.get("sid"),
                        "status": result.get("status")
                    }

                logger.error(f"❌ Twilio API error: {response.status_code} - {response.text[:300]}")
                if response.status_code < 500:
                    return {"success": False, "error": f"Twilio API error: {response.status_code}"}

            except httpx.TimeoutException:
                logger.error("Twilio API timeout")
            except httpx.HTTPError as e:
                logger.error(f"Error sending Twilio message: {e}")

            if attempt < self.max_attempts:
                await asyncio.sleep(delay)
                delay *= 2

        return {"success": False, "error": "Twilio send failed after retries"}

    async def download_media(self, media_url: str) -> bytes:
        """
        Fetches an inbound attachment (Twilio media URLs need basic auth).

        Raises:
            httpx.HTTPError
        """
        async with httpx.AsyncClient(follow_redirects=True) as client:
            response = await client.get(
                media_url,
                auth=(self.account_sid, self.auth_token) if self.account_sid else None,
                timeout=20.0,
            )
            response.raise_for_status()
            return response.content

    def is_configured(self) -> bool:
        """Check if Twilio is properly configured"""
        return bool(
            self.account_sid
            and self.auth_token
            and self.whatsapp_number
            and self.account_sid != "your_twilio_sid"
        )


# Singleton instance
twilio_service = TwilioService()
