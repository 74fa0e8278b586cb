"""Locust profile for mixed create/redirect/list traffic.

Each simulated user acts as one owner and keeps a pool of the short codes it
created, so redirect traffic targets real links.

    locust -f stress/locustfile.py --host http://localhost:8000
"""

import random
import uuid

from locust import HttpUser, between, task

MAX_CODES_PER_USER = 200


class UrlTrimmerUser(HttpUser):
    """Mixed workload user for local functional load checks."""

    wait_time = between(0.1, 0.5)

    def on_start(self) -> None:
        self.codes: list[str] = []
        self.headers = {"X-Owner-Id": f"load-{uuid.uuid4().hex[:12]}"}

    @task(2)
    def create_short_url(self) -> None:
        url = f"https://example.com/page/{random.randint(1, 1000000)}"
        response = self.client.post(
            "/api/urls",
            json={"originalUrl": url},
            headers=self.headers,
            name="POST /api/urls",
        )

        if response.status_code in (200, 201):
            short_code = response.json().get("shortCode")
            if short_code:
                self.codes.append(short_code)
                if len(self.codes) > MAX_CODES_PER_USER:
                    self.codes = self.codes[-MAX_CODES_PER_USER:]

    @task(6)
    def redirect(self) -> None:
        if not self.codes:
            self.create_short_url()
            return

        short_code = random.choice(self.codes)
        self.client.get(f"/{short_code}", name="GET /:short_code", allow_redirects=False)

    @task(1)
    def list_links(self) -> None:
        self.client.get("/api/urls", params={"limit": 20}, headers=self.headers, name="GET /api/urls")

    @task(1)
    def summary(self) -> None:
        self.client.get("/api/urls/analytics/summary", headers=self.headers, name="GET /api/urls/analytics/summary")
