"""
Tests for the event catalogue: admin CRUD, listing, availability and list caching.
"""

import fnmatch

import pytest
from httpx import AsyncClient

from conftest import EVENT_DAY, booking_body, create_event
from eventflow.services import cache_service


def event_payload(**overrides) -> dict:
    payload = {
        "title": "Jazz Night",
        "description": "Live jazz",
        "category": "Concert",
        "location": "Blue Room, Chicago",
        "price": 40,
        "dates": [
            {
                "date": EVENT_DAY.isoformat(),
                "slots": [
                    {"time": "7:00 PM", "availableSeats": 50},
                    {"time": "9:30 PM", "availableSeats": 20},
                ],
            }
        ],
    }
    payload.update(overrides)
    return payload


class FakeRedis:
    """Just enough of redis.asyncio.Redis for the listing cache."""

    def __init__(self):
        self.store = {}

    async def get(self, key):
        return self.store.get(key)

    async def setex(self, key, ttl, value):
        self.store[key] = value

    async def delete(self, key):
        self.store.pop(key, None)

    async def scan_iter(self, match="*", count=None):
        for key in list(self.store):
            if fnmatch.fnmatch(key, match):
                yield key


@pytest.fixture
def fake_redis(monkeypatch):
    fake = FakeRedis()
    monkeypatch.setattr(cache_service.settings, "REDIS_ENABLED", True)
    monkeypatch.setattr(cache_service, "_redis_client", fake)
    return fake


@pytest.mark.asyncio
async def test_admin_creates_event(client: AsyncClient, admin_headers, admin_user):
    response = await client.post("/api/v1/events/", json=event_payload(), headers=admin_headers)
    assert response.status_code == 201
    event = response.json()["event"]
    assert event["title"] == "Jazz Night"
    assert event["price"] == 40.0
    assert event["createdBy"] == admin_user.id
    assert len(event["dates"]) == 1
    assert event["dates"][0]["date"].startswith(EVENT_DAY.isoformat())
    slots = {s["time"]: s for s in event["dates"][0]["slots"]}
    assert slots["7:00 PM"]["capacity"] == 50
    assert slots["7:00 PM"]["availableSeats"] == 50
    assert slots["9:30 PM"]["availableSeats"] == 20


@pytest.mark.asyncio
async def test_create_event_requires_admin(client: AsyncClient, auth_headers):
    response = await client.post("/api/v1/events/", json=event_payload(), headers=auth_headers)
    assert response.status_code == 403

    response = await client.post("/api/v1/events/", json=event_payload())
    assert response.status_code == 401


@pytest.mark.asyncio
@pytest.mark.parametrize("overrides", [
    {"price": 0},
    {"category": "Opera"},
    {"dates": []},
    {"title": ""},
    {"dates": [{"date": EVENT_DAY.isoformat(), "slots": []}]},
    {"dates": [{"date": EVENT_DAY.isoformat(), "slots": [{"time": "7:00 PM", "availableSeats": -1}]}]},
    {"dates": [{"date": EVENT_DAY.isoformat(), "slots": [
        {"time": "7:00 PM", "availableSeats": 5},
        {"time": "7:00 PM", "availableSeats": 6},
    ]}]},
])
async def test_create_event_validation(client: AsyncClient, admin_headers, overrides):
    response = await client.post("/api/v1/events/", json=event_payload(**overrides), headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_create_event_rejects_repeated_day(client: AsyncClient, admin_headers):
    day = {"date": EVENT_DAY.isoformat(), "slots": [{"time": "7:00 PM", "availableSeats": 5}]}
    response = await client.post("/api/v1/events/", json=event_payload(dates=[day, day]), headers=admin_headers)
    assert response.status_code == 400
    assert "more than once" in response.json()["message"]


@pytest.mark.asyncio
async def test_list_events_newest_first(client: AsyncClient, session_factory, admin_user):
    first = await create_event(session_factory, admin_user, {"7:00 PM": 5}, title="First")
    second = await create_event(session_factory, admin_user, {"7:00 PM": 5}, title="Second")

    response = await client.get("/api/v1/events/")
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert data["count"] == 2
    assert data["cached"] is False
    assert [e["id"] for e in data["events"]] == [second.id, first.id]


@pytest.mark.asyncio
async def test_list_events_filters_and_pagination(client: AsyncClient, session_factory, admin_user):
    await create_event(session_factory, admin_user, {"7:00 PM": 5}, category="Concert", location="Austin, TX")
    await create_event(session_factory, admin_user, {"7:00 PM": 5}, category="Workshop", location="Austin, TX")
    await create_event(session_factory, admin_user, {"7:00 PM": 5}, category="Concert", location="Denver, CO")

    data = (await client.get("/api/v1/events/", params={"category": "Concert"})).json()
    assert data["total"] == 2
    assert {e["category"] for e in data["events"]} == {"Concert"}

    data = (await client.get("/api/v1/events/", params={"location": "austin"})).json()
    assert data["total"] == 2

    data = (await client.get("/api/v1/events/", params={"category": "Concert", "location": "denver"})).json()
    assert data["total"] == 1

    data = (await client.get("/api/v1/events/", params={"page": 2, "page_size": 2})).json()
    assert data["total"] == 3
    assert data["count"] == 1
    assert data["page"] == 2
    assert data["pageSize"] == 2


@pytest.mark.asyncio
async def test_get_event(client: AsyncClient, test_event):
    response = await client.get(f"/api/v1/events/{test_event.id}")
    assert response.status_code == 200
    assert response.json()["event"]["title"] == "Test Concert"

    response = await client.get("/api/v1/events/9999")
    assert response.status_code == 404
    assert response.json()["message"] == "Event not found"


@pytest.mark.asyncio
async def test_availability(client: AsyncClient, auth_headers, test_event):
    url = f"/api/v1/events/{test_event.id}/availability"

    response = await client.get(url, params={"date": EVENT_DAY.isoformat(), "slotTime": "9:00 PM"})
    assert response.status_code == 200
    assert response.json()["available"] is True
    assert response.json()["availableSeats"] == 5

    await client.post("/api/v1/bookings/", json=booking_body(test_event.id, 5, "9:00 PM"), headers=auth_headers)
    data = (await client.get(url, params={"date": EVENT_DAY.isoformat(), "slotTime": "9:00 PM"})).json()
    assert data["available"] is False
    assert data["availableSeats"] == 0


@pytest.mark.asyncio
async def test_availability_unknown_date_or_slot(client: AsyncClient, test_event):
    url = f"/api/v1/events/{test_event.id}/availability"

    data = (await client.get(url, params={"date": "2001-01-01", "slotTime": "7:00 PM"})).json()
    assert data["available"] is False
    assert data["message"] == "Date not found for this event"

    data = (await client.get(url, params={"date": EVENT_DAY.isoformat(), "slotTime": "6:00 AM"})).json()
    assert data["available"] is False
    assert data["message"] == "Time slot not found"

    response = await client.get(url, params={"date": EVENT_DAY.isoformat()})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_partial_update_keeps_seats(client: AsyncClient, admin_headers, auth_headers, test_event):
    await client.post("/api/v1/bookings/", json=booking_body(test_event.id, 3), headers=auth_headers)

    response = await client.put(
        f"/api/v1/events/{test_event.id}",
        json={"title": "Renamed", "price": 30},
        headers=admin_headers,
    )
    assert response.status_code == 200
    event = response.json()["event"]
    assert event["title"] == "Renamed"
    assert event["price"] == 30.0
    assert event["location"] == "Test Venue"
    slots = {s["time"]: s["availableSeats"] for s in event["dates"][0]["slots"]}
    assert slots == {"7:00 PM": 7, "9:00 PM": 5}


@pytest.mark.asyncio
async def test_update_replaces_dates(client: AsyncClient, admin_headers, test_event):
    new_dates = [{"date": EVENT_DAY.isoformat(), "slots": [{"time": "8:00 PM", "availableSeats": 12}]}]
    response = await client.put(
        f"/api/v1/events/{test_event.id}", json={"dates": new_dates}, headers=admin_headers
    )
    assert response.status_code == 200
    slots = response.json()["event"]["dates"][0]["slots"]
    assert [(s["time"], s["capacity"], s["availableSeats"]) for s in slots] == [("8:00 PM", 12, 12)]


@pytest.mark.asyncio
async def test_update_requires_admin(client: AsyncClient, auth_headers, test_event):
    response = await client.put(f"/api/v1/events/{test_event.id}", json={"title": "Mine"}, headers=auth_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_soft_delete(client: AsyncClient, admin_headers, auth_headers, test_event):
    response = await client.delete(f"/api/v1/events/{test_event.id}", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["message"] == "Event deleted successfully"

    assert (await client.get(f"/api/v1/events/{test_event.id}")).status_code == 404
    assert (await client.get("/api/v1/events/")).json()["total"] == 0

    response = await client.post("/api/v1/bookings/", json=booking_body(test_event.id, 1), headers=auth_headers)
    assert response.status_code == 404

    response = await client.delete(f"/api/v1/events/{test_event.id}", headers=admin_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_event_list_is_cached_and_invalidated(client: AsyncClient, fake_redis, auth_headers, test_event):
    first = (await client.get("/api/v1/events/")).json()
    assert first["cached"] is False
    assert len(fake_redis.store) == 1

    second = (await client.get("/api/v1/events/")).json()
    assert second["cached"] is True
    assert second["events"] == first["events"]

    # A booking changes seat counts, so cached listings are dropped
    response = await client.post("/api/v1/bookings/", json=booking_body(test_event.id, 4), headers=auth_headers)
    assert response.status_code == 201
    assert fake_redis.store == {}

    third = (await client.get("/api/v1/events/")).json()
    assert third["cached"] is False
    slots = {s["time"]: s["availableSeats"] for s in third["events"][0]["dates"][0]["slots"]}
    assert slots["7:00 PM"] == 6
