"""Pydantic schemas for Notifications and admin actions."""
from __future__ import annotations
from typing import Optional
from pydantic import BaseModel

from eventpool.models.entrant import NotificationType


class Notification(BaseModel):
    recipient_id: str
    event_id: str
    type: NotificationType
    message: str
    key: Optional[str] = None


class BanRequest(BaseModel):
    reason: str = ""
