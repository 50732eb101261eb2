from locust import HttpUser, task, between
import random


class ClientUser(HttpUser):
    wait_time = between(0.1, 0.5)

    def on_start(self):
        # Self-register a client for this simulated user; the session cookie sticks to self.client
        uid = random.randint(1, 1_000_000)
        r = self.client.post(
            "/auth/register",
            json={"name": f"client_{uid}", "email": f"client_{uid}@load.test", "password": "loadtest"},
        )
        self.registered = r.status_code == 200
        self.product_ids = []

    @task(3)
    def browse_catalog(self):
        r = self.client.get("/products")
        if r.status_code == 200:
            self.product_ids = [p["id"] for p in r.json()["products"]]

    @task(2)
    def place_order(self):
        if not self.registered or not self.product_ids:
            return
        self.client.post("/orders", json={"productId": random.choice(self.product_ids), "paymentMethod": "bank_transfer"})

    @task(1)
    def list_orders(self):
        if self.registered:
            self.client.get("/orders")
