"""
app/models/principal.py

Purpose: Role membership model

- (tenant, phone) -> role and branch
- Pending flag for invited-but-not-joined staff
- Active business binding (one per phone)
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

Role = Literal["owner", "manager", "clerk"]
ROLES = ("owner", "manager", "clerk")


class Principal(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    tenant_id: str
    phone: str
    role: Role
    branch_id: Optional[str] = None
    pending: bool = False
    display_name: Optional[str] = None
    invited_by: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    joined_at: Optional[datetime] = None

    @model_validator(mode="after")
    def branch_required_for_staff(self):
        if self.role != "owner" and not self.branch_id:
            raise ValueError("branch_id is required for non-owner roles")
        return self

    @property
    def is_owner(self) -> bool:
        return self.role == "owner"

    @property
    def branch_scope(self) -> Optional[str]:
        """Branch a principal's reports and invoice lists are limited to (None = all)."""
        return None if self.is_owner else self.branch_id


class ActiveBinding(BaseModel):
    """The business a phone is currently 'logged into' on WhatsApp."""

    model_config = ConfigDict(populate_by_name=True)

    phone: str = Field(alias="_id")
    tenant_id: str
    updated_at: datetime = Field(default_factory=datetime.utcnow)
