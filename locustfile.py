from locust import HttpUser, task, between
import os
import random

# Configurable via environment variables:
# LOCUST_HEALTH_PATH (default: /health)
# LOCUST_CENTERS (semicolon-separated "lat,lng" pairs, default: Roma;Milano;Napoli)
# LOCUST_RADIUS_KM (default: 5)

HEALTH_PATH = os.getenv("LOCUST_HEALTH_PATH", "/health")
CENTERS = os.getenv("LOCUST_CENTERS", "41.9028,12.4964;45.4642,9.1900;40.8518,14.2681")
CENTERS = [tuple(c.split(",")) for c in CENTERS.split(";") if c.strip()]
RADIUS_KM = os.getenv("LOCUST_RADIUS_KM", "5")
FUEL_TYPES = ["Benzina", "Gasolio", "GPL", "Metano"]


class StationSearchUser(HttpUser):
    wait_time = between(1, 3)

    @task(1)
    def health(self):
        self.client.get(HEALTH_PATH, name=f"GET {HEALTH_PATH}")

    @task(5)
    def gas_stations(self):
        lat, lng = random.choice(CENTERS)
        self.client.get(
            "/gas-stations",
            params={"lat": lat, "lng": lng, "distance": RADIUS_KM},
            name="GET /gas-stations",
        )

    @task(3)
    def gas_stations_by_fuel(self):
        lat, lng = random.choice(CENTERS)
        self.client.get(
            "/gas-stations-by-fuel",
            params={"lat": lat, "lng": lng, "distance": RADIUS_KM, "TipoFuel": random.choice(FUEL_TYPES)},
            name="GET /gas-stations-by-fuel",
        )
