"""
app/schemas/response.py

Purpose: HTTP response bodies

- ErrorResponse: every error the API returns
- WebhookAck: acknowledgement for the JSON webhook
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """
    Standard error response structure.
    """
    error: str
    code: str
    details: Optional[Any] = None


class WebhookAck(BaseModel):
    status: Literal["ok"] = "ok"
