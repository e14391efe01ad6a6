"""
Event endpoints with Redis caching on list operations.
"""

from datetime import date, datetime
from typing import Optional, Union

from fastapi import APIRouter, Depends, Query, status

from eventflow.core.logging import get_logger
from eventflow.core.security import Actor, require_admin
from eventflow.db.session import UnitOfWork, get_uow
from eventflow.schemas.common import Envelope
from eventflow.schemas.event import (
    AvailabilityResponse,
    EventCreate,
    EventEnvelope,
    EventListEnvelope,
    EventResponse,
    EventUpdate,
)
from eventflow.services import event_service
from eventflow.services.cache_service import get_cached_events, make_event_list_key, set_cached_events

logger = get_logger(__name__)
router = APIRouter(prefix="/events", tags=["Events"])


@router.post("/", response_model=EventEnvelope, status_code=status.HTTP_201_CREATED)
async def create_event(
    event_data: EventCreate,
    admin: Actor = Depends(require_admin),
    uow: UnitOfWork = Depends(get_uow),
):
    event = await event_service.create_event(uow, event_data, admin.id)
    return EventEnvelope(message="Event created successfully", event=EventResponse.model_validate(event))


@router.get("/", response_model=EventListEnvelope)
async def list_events(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    category: Optional[str] = Query(None),
    location: Optional[str] = Query(None),
    uow: UnitOfWork = Depends(get_uow),
):
    """
    List events with pagination.
    Results are cached in Redis; any booking, cancellation or admin change
    invalidates the cache.
    """
    key = make_event_list_key(page, page_size, category, location)
    cached = await get_cached_events(key)
    if cached:
        logger.info("events_list_cache_hit", page=page)
        cached["cached"] = True
        return EventListEnvelope.model_validate(cached)

    events, total = await event_service.list_events(uow, page, page_size, category, location)
    response = EventListEnvelope(
        message="Events fetched successfully",
        events=[EventResponse.model_validate(e) for e in events],
        count=len(events),
        total=total,
        page=page,
        page_size=page_size,
    )
    await set_cached_events(key, response.model_dump(mode="json"))
    return response


@router.get("/{event_id}", response_model=EventEnvelope)
async def get_event(event_id: int, uow: UnitOfWork = Depends(get_uow)):
    """Single event with live seat counts. Not cached."""
    event = await event_service.get_event(uow, event_id)
    return EventEnvelope(event=EventResponse.model_validate(event))


@router.get("/{event_id}/availability", response_model=AvailabilityResponse)
async def check_availability(
    event_id: int,
    day: Union[datetime, date] = Query(..., alias="date"),
    slot_time: str = Query(..., alias="slotTime", min_length=1),
    uow: UnitOfWork = Depends(get_uow),
):
    available, seats, reason = await event_service.check_availability(uow, event_id, day, slot_time)
    return AvailabilityResponse(available=available, available_seats=seats, message=reason)


@router.put("/{event_id}", response_model=EventEnvelope)
async def update_event(
    event_id: int,
    event_data: EventUpdate,
    _admin: Actor = Depends(require_admin),
    uow: UnitOfWork = Depends(get_uow),
):
    event = await event_service.update_event(uow, event_id, event_data)
    return EventEnvelope(message="Event updated successfully", event=EventResponse.model_validate(event))


@router.delete("/{event_id}", response_model=Envelope)
async def delete_event(
    event_id: int,
    _admin: Actor = Depends(require_admin),
    uow: UnitOfWork = Depends(get_uow),
):
    await event_service.delete_event(uow, event_id)
    return Envelope(message="Event deleted successfully")
