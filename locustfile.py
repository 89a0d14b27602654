from locust import HttpUser, task, between
import random

CINS = ["U72900KA2010PTC000111", "L17110MH1973PLC019786", "U74999DL2015PTC000222"]


class ApiUser(HttpUser):
    wait_time = between(0.1, 0.5)

    def on_start(self):
        # Sign up a fresh account for this simulated client
        self.email = f"load_{random.randint(1, 1_000_000)}@example.com"
        r = self.client.post(
            "/api/signup",
            json={"full_name": "Load Tester", "email": self.email, "password": "loadtest1"},
        )
        self.user_id = r.json().get("userId") if r.status_code == 201 else None

    @task(3)
    def create_order(self):
        payload = {"user_email": self.email, "company_cin": random.choice(CINS), "company_name": "Load Co"}
        if self.user_id:
            payload["user_id"] = self.user_id
        self.client.post("/api/orders/create", json=payload)

    @task(2)
    def list_orders(self):
        self.client.get("/api/orders", params={"email": self.email})

    @task(1)
    def health(self):
        self.client.get("/api/health")
