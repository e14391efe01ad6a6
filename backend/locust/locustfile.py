"""
Locust Load Test Suite

Run scenarios:
  locust -f locustfile.py --tags concurrency  # 100 users fight for one 10-seat slot
  locust -f locustfile.py --tags throughput   # Cached event listing
  locust -f locustfile.py --tags edge         # Bad input
  locust -f locustfile.py --tags payment      # Book + pay through the mock provider
  locust -f locustfile.py                     # All tests

The admin account used to create test events must be listed in the server's
ADMIN_EMAILS (default below: load-admin@test.com). The payment scenario needs
PAYMENT_PROVIDER=mock on the server and the same MOCK_PAYMENT_SECRET here.
"""

import base64
import hashlib
import hmac
import json
import os
import random
import uuid
from datetime import datetime, timedelta, timezone

from locust import HttpUser, between, events, tag, task

ADMIN_EMAIL = os.getenv("LOCUST_ADMIN_EMAIL", "load-admin@test.com")
ADMIN_PASSWORD = os.getenv("LOCUST_ADMIN_PASSWORD", "admin-password")
MOCK_SECRET = os.getenv("MOCK_PAYMENT_SECRET", "mock-webhook-secret")

SLOT_TIME = "7:00 PM"
SLOT_SEATS = 10
EVENT_DAY = (datetime.now(timezone.utc) + timedelta(days=30)).date().isoformat()

# Shared state
EVENT_IDS = []
CONCURRENCY_EVENT_ID = None


def random_email():
    return f"load_{uuid.uuid4().hex[:10]}@test.com"


def event_payload(title, seats):
    return {
        "title": title,
        "description": "Load test event",
        "category": "Concert",
        "location": "Test Arena",
        "price": 25,
        "dates": [{"date": EVENT_DAY, "slots": [{"time": SLOT_TIME, "availableSeats": seats}]}],
    }


def signup(client, email, password="load-test-pw"):
    """Register + login; returns auth headers or {}."""
    client.post("/api/v1/auth/register", json={"name": "Load Tester", "email": email, "password": password})
    resp = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    if resp.status_code == 200:
        return {"Authorization": f"Bearer {resp.json()['token']}"}
    return {}


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    """Create the contested slot once, as admin."""
    global CONCURRENCY_EVENT_ID
    if not environment.host:
        return
    from locust.clients import HttpSession

    client = HttpSession(base_url=environment.host, request_event=environment.events.request, user=None)
    headers = signup(client, ADMIN_EMAIL, ADMIN_PASSWORD)
    resp = client.post("/api/v1/events/", json=event_payload("Concurrency Test Event", SLOT_SEATS), headers=headers)
    if resp.status_code == 201:
        CONCURRENCY_EVENT_ID = resp.json()["event"]["id"]
        EVENT_IDS.append(CONCURRENCY_EVENT_ID)
        print(f"\n[setup] event {CONCURRENCY_EVENT_ID}: {SLOT_SEATS} seats at {EVENT_DAY} {SLOT_TIME}\n")
    else:
        print(f"\n[setup] could not create event ({resp.status_code}); is {ADMIN_EMAIL} in ADMIN_EMAILS?\n")


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - 100 users -> 10 seats

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT SUM(seats_booked) FROM bookings
      WHERE event_id = X AND booking_status IN ('pending', 'confirmed');
    Should be <= 10, and event_slots.available_seats should be 10 minus that sum.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.headers = signup(self.client, random_email())

    @tag("concurrency")
    @task
    def book_last_seats(self):
        if not CONCURRENCY_EVENT_ID or not self.headers:
            return
        with self.client.post(
            "/api/v1/bookings/",
            json={"eventId": CONCURRENCY_EVENT_ID, "eventDate": EVENT_DAY, "slotTime": SLOT_TIME, "seatsBooked": 1},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            if resp.status_code == 201:
                resp.success()
            elif resp.status_code == 400 and "availableSeats" in resp.json():
                resp.success()  # Expected: sold out
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - Cache effectiveness

    Run with and without Redis and compare P95 latency and RPS.
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def list_events_cached(self):
        page = random.randint(1, 5)
        resp = self.client.get(f"/api/v1/events/?page={page}&page_size=20", name="/api/v1/events/ [cached]")
        if resp.status_code == 200:
            for event in resp.json().get("events", []):
                if event["id"] not in EVENT_IDS:
                    EVENT_IDS.append(event["id"])

    @tag("throughput", "read")
    @task(3)
    def availability(self):
        if EVENT_IDS:
            self.client.get(
                f"/api/v1/events/{random.choice(EVENT_IDS)}/availability",
                params={"date": EVENT_DAY, "slotTime": SLOT_TIME},
                name="/api/v1/events/{id}/availability",
            )

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    System should NOT crash; every response is a 4xx envelope.
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = signup(self.client, random_email())

    def _expect(self, json_body, codes, name):
        with self.client.post(
            "/api/v1/bookings/", json=json_body, headers=self.headers, catch_response=True, name=name
        ) as resp:
            if resp.status_code in codes:
                resp.success()
            else:
                resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_event(self):
        self._expect(
            {"eventId": 999999, "eventDate": EVENT_DAY, "slotTime": SLOT_TIME, "seatsBooked": 1},
            [404],
            "bookings [unknown event]",
        )

    @tag("edge")
    @task
    def zero_seats(self):
        self._expect(
            {"eventId": 1, "eventDate": EVENT_DAY, "slotTime": SLOT_TIME, "seatsBooked": 0},
            [400],
            "bookings [zero seats]",
        )

    @tag("edge")
    @task
    def unknown_slot(self):
        if CONCURRENCY_EVENT_ID:
            self._expect(
                {"eventId": CONCURRENCY_EVENT_ID, "eventDate": EVENT_DAY, "slotTime": "3:33 AM", "seatsBooked": 1},
                [404],
                "bookings [unknown slot]",
            )

    @tag("edge")
    @task
    def missing_auth(self):
        with self.client.post(
            "/api/v1/bookings/",
            json={"eventId": 1, "eventDate": EVENT_DAY, "slotTime": SLOT_TIME, "seatsBooked": 1},
            catch_response=True,
            name="bookings [no auth]",
        ) as resp:
            if resp.status_code == 401:
                resp.success()
            else:
                resp.failure(f"Expected 401, got {resp.status_code}")


class PaymentUser(HttpUser):
    """
    TEST 4: Book, open an intent, then deliver the success webhook twice
    and confirm from the client at the same time. Exactly one transition
    must happen; every call must succeed.
    """
    wait_time = between(0.5, 1)

    def on_start(self):
        self.headers = signup(self.client, random_email())
        admin = signup(self.client, ADMIN_EMAIL, ADMIN_PASSWORD)
        resp = self.client.post("/api/v1/events/", json=event_payload("Payment Test Event", 1000), headers=admin)
        self.event_id = resp.json()["event"]["id"] if resp.status_code == 201 else None

    def _webhook(self, intent_id, booking_id):
        payload = json.dumps(
            {
                "id": f"evt_{uuid.uuid4().hex}",
                "type": "payment_intent.succeeded",
                "data": {"object": {"id": intent_id, "status": "succeeded", "metadata": {"bookingId": str(booking_id)}}},
            }
        ).encode()
        signature = base64.b64encode(hmac.new(MOCK_SECRET.encode(), payload, hashlib.sha256).digest()).decode()
        return payload, signature

    @tag("payment")
    @task
    def book_and_pay(self):
        if not self.event_id or not self.headers:
            return
        resp = self.client.post(
            "/api/v1/bookings/",
            json={"eventId": self.event_id, "eventDate": EVENT_DAY, "slotTime": SLOT_TIME, "seatsBooked": 2},
            headers=self.headers,
        )
        if resp.status_code != 201:
            return
        booking_id = resp.json()["booking"]["id"]

        resp = self.client.post("/api/v1/payment/create-intent", json={"bookingId": booking_id}, headers=self.headers)
        if resp.status_code != 200:
            return
        intent_id = resp.json()["intentId"]

        payload, signature = self._webhook(intent_id, booking_id)
        for _ in range(2):
            self.client.post(
                "/api/v1/payment/webhook",
                data=payload,
                headers={"x-mockpay-signature": signature, "Content-Type": "application/json"},
                name="/api/v1/payment/webhook",
            )
        self.client.get(f"/api/v1/payment/status/{booking_id}", headers=self.headers, name="/api/v1/payment/status/{id}")
