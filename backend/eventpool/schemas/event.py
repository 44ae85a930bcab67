"""Pydantic schemas for Events."""
from __future__ import annotations
from datetime import date, time
from typing import Optional
from pydantic import BaseModel, Field, model_validator

from eventpool.config import settings


class EventCreate(BaseModel):
    organizer_id: str
    name: str = Field(min_length=1, max_length=100)
    details: str = Field(default="", max_length=1000)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    registration_start: Optional[date] = None
    registration_end: Optional[date] = None
    entrant_limit: Optional[int] = None  # None → unlimited
    geolocation_required: bool = False

    @model_validator(mode="after")
    def _check_windows(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not precede start_date")
        if self.registration_start and self.registration_end and self.registration_end < self.registration_start:
            raise ValueError("registration_end must not precede registration_start")
        return self


class EventUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    details: Optional[str] = Field(default=None, max_length=1000)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    registration_start: Optional[date] = None
    registration_end: Optional[date] = None
    entrant_limit: Optional[int] = None
    geolocation_required: Optional[bool] = None


class Event(BaseModel):
    """Event record as stored under Event/<event_id>."""

    event_id: str
    organizer_id: str
    name: str
    details: str = ""
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    registration_start: Optional[date] = None
    registration_end: Optional[date] = None
    entrant_limit: int = settings.UNLIMITED_ENTRANTS
    geolocation_required: bool = False
    on_hold: bool = False

    @property
    def unlimited(self) -> bool:
        return self.entrant_limit <= 0 or self.entrant_limit == settings.UNLIMITED_ENTRANTS


class EventOut(Event):
    unlimited_entrants: bool = False

    @classmethod
    def from_event(cls, event: Event) -> "EventOut":
        return cls(**event.model_dump(), unlimited_entrants=event.unlimited)
