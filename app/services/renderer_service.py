"""
app/services/renderer_service.py

Purpose: PDF renderer client

- Sends a structured document plus branding to the external renderer
- Returns a publicly fetchable link and the method tag it reports
- Never called while a tenant lock is held
"""

from typing import Any, Dict, Optional

import httpx
from pydantic import BaseModel

from app.core.config import settings
from app.core.exceptions import RenderError
from app.core.logging import get_logger

logger = get_logger(__name__)


class RenderResult(BaseModel):
    url: str
    method: str = "renderer"


class RendererService:
    """HTTP client for the document renderer."""

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None):
        self.base_url = base_url if base_url is not None else settings.RENDERER_URL
        self.timeout = timeout or settings.RENDERER_TIMEOUT
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    def is_configured(self) -> bool:
        return bool(self.base_url)

    async def render(self, document: Dict[str, Any], branding: Dict[str, Any]) -> RenderResult:
        """
        Renders one document.

        Args:
            document: JSON-safe committed document
            branding: business name, address, logo, currency, terms

        Returns:
            RenderResult with the file link

        Raises:
            RenderError: if the renderer is not configured, unreachable,
                         or answers without a link
        """
        if not self.is_configured():
            raise RenderError("Renderer is not configured")

        try:
            response = await self._get_client().post(
                self.base_url,
                json={"document": document, "branding": branding},
            )
        except httpx.TimeoutException as e:
            logger.error("⏱️ Renderer timeout")
            raise RenderError("Renderer timed out") from e
        except httpx.HTTPError as e:
            logger.error(f"Renderer request failed: {e}")
            raise RenderError("Renderer unreachable") from e

        if response.status_code not in (200, 201):
            logger.error(f"❌ Renderer error: {response.status_code} - {response.text[:200]}")
            raise RenderError(f"Renderer returned {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise RenderError("Renderer returned invalid JSON") from e

        url = data.get("url")
        if not url:
            raise RenderError("Renderer returned no link")

        return RenderResult(url=url, method=data.get("method") or "renderer")

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None


# Singleton instance
renderer_service = RendererService()
