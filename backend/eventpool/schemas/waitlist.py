"""Pydantic schemas for waiting-list buckets, the lottery and broadcasts."""
from __future__ import annotations
from typing import Optional
from pydantic import BaseModel, Field

from eventpool.models.entrant import EntrantStatus, NotificationType


class JoinRequest(BaseModel):
    user_id: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class EntrantAction(BaseModel):
    user_id: str


class Entrant(BaseModel):
    """One bucket membership, stored under WaitingList/<event>/<STATUS>/<user>."""

    user_id: str
    event_id: str
    status: EntrantStatus
    since: int = 0  # epoch millis of the transition that placed it here
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    def record(self) -> dict:
        data = {"since": self.since}
        if self.latitude is not None and self.longitude is not None:
            data["latitude"] = self.latitude
            data["longitude"] = self.longitude
        return data


class BucketCounts(BaseModel):
    waiting: int = 0
    invited: int = 0
    uninvited: int = 0
    accepted: int = 0
    declined: int = 0
    cancelled: int = 0


class LotteryResult(BaseModel):
    drawn: int
    target_remaining: Optional[int] = None  # None for unlimited events
    drawn_user_ids: list[str] = []


class BroadcastRequest(BaseModel):
    status: EntrantStatus
    message: str = Field(min_length=1, max_length=1000)
    notification_type: Optional[NotificationType] = None  # defaults to the bucket's status


class BroadcastResult(BaseModel):
    recipients: int


class RepairAction(BaseModel):
    user_id: str
    kept: EntrantStatus
    removed: list[EntrantStatus]


class StatusOut(BaseModel):
    user_id: str
    status: Optional[EntrantStatus] = None
