"""
Locust Load Test Suite

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Test overselling
  locust -f locustfile.py --tags throughput   # Test cache
  locust -f locustfile.py --tags edge         # Test bad input
  locust -f locustfile.py                     # All tests
"""

import random
import string
from locust import HttpUser, task, between, tag, events
from datetime import datetime, timezone, timedelta

# Shared state
EVENT_IDS = []
CONCURRENCY_EVENT = {}
PASSWORD = "loadtest123"


def random_email():
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=10))
    return f"load_{suffix}@test.com"


def register_and_login(client, organizer=False):
    """Returns auth headers, or {} when the API rejected the account."""
    email = random_email()
    client.post("/api/v1/auth/register", json={"email": email, "password": PASSWORD, "name": "Load Tester"})
    resp = client.post("/api/v1/auth/login", json={"email": email, "password": PASSWORD})
    if resp.status_code != 200:
        return {}
    headers = {"Authorization": f"Bearer {resp.json()['access_token']}"}
    if organizer:
        client.post(
            "/api/v1/auth/request-organizer",
            json={"business_name": "Load Test Events"},
            headers=headers,
        )
    return headers


def create_published_event(client, headers, quantity, price="5000.00"):
    start = datetime.now(timezone.utc) + timedelta(days=random.randint(7, 90))
    resp = client.post(
        "/api/v1/organizer/events/",
        json={
            "title": f"Load Event {random.randint(1, 100000)}",
            "city": random.choice(["Lagos", "Abuja", "Accra"]),
            "category": random.choice(["music", "tech", "sports"]),
            "start_at": start.isoformat(),
            "end_at": (start + timedelta(hours=4)).isoformat(),
            "ticket_types": [
                {"name": "Regular", "price": price, "total_quantity": quantity, "max_per_order": 4}
            ],
        },
        headers=headers,
    )
    if resp.status_code != 201:
        return None
    event = resp.json()
    client.patch(
        f"/api/v1/organizer/events/{event['id']}/status",
        json={"status": "PUBLISHED"},
        headers=headers,
    )
    return event


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print("SETUP: concurrency event is created by the first ConcurrencyUser")
    print("=" * 60)


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - 100 users -> 10 tickets

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT sold_quantity + reserved_quantity FROM ticket_types WHERE id = X;
    Should be <= 10
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        if not CONCURRENCY_EVENT:
            organizer = register_and_login(self.client, organizer=True)
            event = create_published_event(self.client, organizer, quantity=10) if organizer else None
            if event:
                CONCURRENCY_EVENT.update(event_id=event["id"], ticket_type_id=event["ticket_types"][0]["id"])
                print(f"\nCreated event {event['id']} with 10 tickets\n")

    @tag("concurrency")
    @task
    def reserve_limited_tickets(self):
        """All users fight for the same 10 tickets."""
        if not CONCURRENCY_EVENT:
            return

        with self.client.post(
            "/api/v1/tickets/reserve",
            json={**CONCURRENCY_EVENT, "quantity": 1},
            catch_response=True,
        ) as resp:
            if resp.status_code in (201, 409):
                resp.success()  # 409 is the expected sold-out answer
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - Cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: Stop Redis, run again
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def list_events_cached(self):
        page = random.randint(1, 5)
        resp = self.client.get(f"/api/v1/events/?page={page}&limit=20", name="/api/v1/events/ [cached]")
        if resp.status_code == 200:
            for event in resp.json().get("items", []):
                if event["id"] not in EVENT_IDS:
                    EVENT_IDS.append(event["id"])

    @tag("throughput", "read")
    @task(3)
    def get_event_detail(self):
        if EVENT_IDS:
            self.client.get(f"/api/v1/events/{random.choice(EVENT_IDS)}", name="/api/v1/events/{id}")

    @tag("throughput", "read")
    @task(2)
    def search_events(self):
        self.client.get("/api/v1/events/search?q=load", name="/api/v1/events/search")

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def _expect(self, resp, allowed):
        if resp.status_code in allowed:
            resp.success()
        else:
            resp.failure(f"Expected {allowed}, got {resp.status_code}")

    @tag("edge")
    @task
    def invalid_ticket_type(self):
        with self.client.post(
            "/api/v1/tickets/reserve",
            json={"event_id": 999999, "ticket_type_id": 999999, "quantity": 1},
            catch_response=True,
        ) as resp:
            self._expect(resp, (404,))

    @tag("edge")
    @task
    def zero_quantity(self):
        with self.client.post(
            "/api/v1/tickets/reserve",
            json={"event_id": 1, "ticket_type_id": 1, "quantity": 0},
            catch_response=True,
        ) as resp:
            self._expect(resp, (422,))

    @tag("edge")
    @task
    def unknown_reservation(self):
        with self.client.post(
            "/api/v1/tickets/release",
            json={"reservation_id": "00000000-0000-0000-0000-000000000000"},
            catch_response=True,
        ) as resp:
            self._expect(resp, (404,))

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post(
            "/api/v1/orders/",
            data="not json at all",
            headers={"Content-Type": "application/json"},
            catch_response=True,
        ) as resp:
            self._expect(resp, (400, 422))

    @tag("edge")
    @task
    def unsigned_webhook(self):
        with self.client.post("/api/v1/webhooks/paystack", data=b"{}", catch_response=True) as resp:
            self._expect(resp, (400,))

    @tag("edge")
    @task
    def missing_auth(self):
        with self.client.get("/api/v1/organizer/events/", catch_response=True) as resp:
            self._expect(resp, (401,))


class RealisticUser(HttpUser):
    """
    TEST 4: Realistic mixed workload

    Run: locust -f locustfile.py -u 200 -r 20 --run-time 120s

    Simulates real traffic:
      - Mostly browsing
      - Some reserve -> checkout flows against free events
      - Some abandoned holds
    """
    wait_time = between(1, 3)

    def on_start(self):
        self.headers = register_and_login(self.client, organizer=random.random() < 0.05)

    @task(50)
    def browse_events(self):
        resp = self.client.get("/api/v1/events/?page=1&limit=20")
        if resp.status_code == 200:
            for event in resp.json().get("items", []):
                if event["id"] not in EVENT_IDS:
                    EVENT_IDS.append(event["id"])

    @task(20)
    def view_event(self):
        if EVENT_IDS:
            self.client.get(f"/api/v1/events/{random.choice(EVENT_IDS)}", name="/api/v1/events/{id}")

    def _reserve(self):
        if not EVENT_IDS:
            return None, None
        resp = self.client.get(f"/api/v1/events/{random.choice(EVENT_IDS)}", name="/api/v1/events/{id}")
        if resp.status_code != 200 or not resp.json()["ticket_types"]:
            return None, None
        event = resp.json()
        ticket_type = random.choice(event["ticket_types"])
        resp = self.client.post(
            "/api/v1/tickets/reserve",
            json={"event_id": event["id"], "ticket_type_id": ticket_type["id"], "quantity": 1},
            headers=self.headers,
        )
        if resp.status_code != 201:
            return None, None
        return event, resp.json()

    @task(8)
    def checkout(self):
        """Reserve then create the order. Free tickets settle immediately."""
        event, reservation = self._reserve()
        if not reservation:
            return
        self.client.post(
            "/api/v1/orders/",
            json={
                "event_id": event["id"],
                "ticket_type_id": reservation["ticket_type_id"],
                "quantity": 1,
                "reservation_id": reservation["reservation_id"],
                "customer_email": random_email(),
                "customer_name": "Load Tester",
            },
            headers=self.headers,
        )

    @task(4)
    def abandon_hold(self):
        _, reservation = self._reserve()
        if reservation:
            self.client.post("/api/v1/tickets/release", json={"reservation_id": reservation["reservation_id"]})

    @task(1)
    def create_event(self):
        """Rare: an organizer publishes a free event."""
        if self.headers:
            event = create_published_event(
                self.client, self.headers, quantity=random.randint(10, 500), price="0.00"
            )
            if event:
                EVENT_IDS.append(event["id"])
