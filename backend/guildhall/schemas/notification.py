"""
Guildhall Backend — Notification Pydantic Schemas
===================================================

What:  API contracts for the addressee-facing notification feed.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class NotificationResponse(BaseModel):
    id: uuid.UUID
    type: str = Field(description="connection_request, connection_accepted, general")
    title: str
    message: str
    related_id: Optional[uuid.UUID] = Field(
        default=None,
        description="Record that triggered the notification (e.g. a connection request)",
    )
    is_read: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationListResponse(BaseModel):
    notifications: List[NotificationResponse]
    unread_count: int = Field(ge=0)


class UnreadCountResponse(BaseModel):
    count: int = Field(ge=0)
