"""
Pydantic schemas for event-related request/response validation.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional, Union

from pydantic import Field, field_validator

from eventflow.schemas.common import APIModel, Envelope

Category = Literal["Concert", "Conference", "Workshop", "Sports", "Stand-Up", "Other"]


class SlotIn(APIModel):
    time: str = Field(..., min_length=1, max_length=32)
    available_seats: int = Field(..., ge=0, le=100000)


class DateIn(APIModel):
    date: Union[datetime, date]
    slots: list[SlotIn] = Field(..., min_length=1)

    @field_validator("slots")
    @classmethod
    def slot_times_unique(cls, slots: list[SlotIn]) -> list[SlotIn]:
        times = [s.time for s in slots]
        if len(set(times)) != len(times):
            raise ValueError("Slot times must be unique within a date")
        return slots


class EventCreate(APIModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    category: Category
    location: str = Field(..., min_length=1, max_length=255)
    price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    dates: list[DateIn] = Field(..., min_length=1)


class EventUpdate(APIModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, min_length=1)
    category: Optional[Category] = None
    location: Optional[str] = Field(None, min_length=1, max_length=255)
    price: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)
    dates: Optional[list[DateIn]] = Field(None, min_length=1)


class SlotResponse(APIModel):
    id: int
    time: str
    capacity: int
    available_seats: int


class DateResponse(APIModel):
    id: int
    date: datetime
    slots: list[SlotResponse]


class EventResponse(APIModel):
    id: int
    title: str
    description: str
    category: str
    location: str
    price: float
    created_by: int
    dates: list[DateResponse]
    created_at: datetime


class EventEnvelope(Envelope):
    event: EventResponse


class EventListEnvelope(Envelope):
    events: list[EventResponse]
    count: int
    total: int
    page: int
    page_size: int
    cached: bool = False


class AvailabilityResponse(Envelope):
    available: bool
    available_seats: int
