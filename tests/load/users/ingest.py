"""IngestUser — sensor fleets submitting readings with their API key (95% of traffic)."""

from locust import HttpUser, between, task

from tests.load.helpers import key_header, random_ingest_key, random_reading


class IngestUser(HttpUser):
    """Simulates one device pushing readings and occasionally reading them back."""

    weight = 95
    wait_time = between(0.1, 0.5)

    def on_start(self):
        self.key = random_ingest_key()

    @task(20)
    def submit_reading(self):
        with self.client.post(
            "/readings",
            json=random_reading(),
            headers=key_header(self.key),
            catch_response=True,
        ) as resp:
            # A full sliding window is expected under load, not a failure.
            if resp.status_code == 429:
                resp.success()

    @task(2)
    def list_readings(self):
        with self.client.get(
            "/readings", headers=key_header(self.key), catch_response=True
        ) as resp:
            if resp.status_code == 429:
                resp.success()

    @task(1)
    def health(self):
        self.client.get("/health")
