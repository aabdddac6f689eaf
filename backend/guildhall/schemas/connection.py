"""
Guildhall Backend — Connection Pydantic Schemas
=================================================

What:  API contracts for the connection-request endpoints.
How:   Response models read straight from ORM rows (`from_attributes`);
       request bodies are validated by FastAPI before the ledger runs.

The message length limit is NOT declared here. The ledger enforces it so
the rule holds for every caller, and an over-long message surfaces as
our 400 `validation_error` rather than FastAPI's generic 422.
"""

import uuid
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class ConnectionRequestCreate(BaseModel):
    to_member_id: uuid.UUID = Field(description="Member to send the request to")
    message: Optional[str] = Field(
        default=None,
        description="Optional note to the recipient (max 1000 characters, trimmed)",
    )


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class MemberSummary(BaseModel):
    """Public profile projection used to decorate request and connection lists."""
    id: uuid.UUID
    full_name: str
    profession: Optional[str] = None
    district: Optional[str] = None
    area: Optional[str] = None
    company: Optional[str] = None
    profile_image: Optional[str] = None

    model_config = {"from_attributes": True}


class ConnectionRequestResponse(BaseModel):
    id: uuid.UUID = Field(description="Connection request identifier")
    from_member_id: uuid.UUID
    to_member_id: uuid.UUID
    message: Optional[str] = Field(default=None, description="Trimmed note; null when absent")
    status: str = Field(description="pending, accepted, rejected, cancelled")
    created_at: datetime
    updated_at: datetime = Field(description="Time of the last status transition")

    model_config = {"from_attributes": True}


class ConnectionRequestListItem(ConnectionRequestResponse):
    """
    A request plus the member on the other side of it.

    For the `received` direction the counterpart is the sender; for `sent`
    it is the addressee. Null only if that member row has been removed.
    """
    counterpart: Optional[MemberSummary] = None


class ConnectionRequestActionResponse(BaseModel):
    """Envelope returned by create/accept/reject/cancel."""
    message: str = Field(description="Human-readable outcome")
    request: ConnectionRequestResponse


class PendingCountResponse(BaseModel):
    count: int = Field(ge=0, description="Pending requests addressed to the caller")


class ConnectionItem(BaseModel):
    """One accepted connection, seen from the calling member's side."""
    request_id: uuid.UUID = Field(description="The accepted request this connection derives from")
    peer_member_id: uuid.UUID = Field(description="The other party")
    member: Optional[MemberSummary] = Field(default=None, description="The other party's public profile")
    connected_at: datetime = Field(description="When the request was accepted")


class ConnectionStatsResponse(BaseModel):
    """Administrative overview: number of requests per status."""
    by_status: Dict[str, int]
    total: int


class ConnectionRequestList(BaseModel):
    requests: List[ConnectionRequestListItem]
    total_count: int
