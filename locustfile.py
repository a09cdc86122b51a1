from locust import HttpUser, task, between
import os
import random

# Transaction ids to look up, comma-separated
TXIDS = [t.strip() for t in os.getenv("LOCUST_TXIDS", "").split(",") if t.strip()]


class MetricsUser(HttpUser):
    wait_time = between(1, 2)

    @task(5)
    def supply(self):
        self.client.get("/v1/supply")

    @task(2)
    def timestamp(self):
        if not TXIDS:
            return
        txid = random.choice(TXIDS)
        self.client.get(f"/v1/timestamp/{txid}", name="/v1/timestamp/[txid]")

    @task(1)
    def health(self):
        self.client.get("/health")
