"""Shared constants and utilities for load test user classes."""

import random

NUM_INGEST_KEYS = 500
ADMIN_TOKEN_ENV = "LOAD_TEST_ADMIN_TOKEN"

SENSOR_UNITS = ["°C", "%", "hPa", "m/s", "lux"]


def load_test_key(idx: int) -> str:
    """Deterministic ``sk_`` key for the idx-th pre-seeded load test key."""
    return f"sk_loadtest{idx:024d}"


def random_ingest_key() -> str:
    """Pick a random key from the pre-seeded pool."""
    return load_test_key(random.randint(0, NUM_INGEST_KEYS - 1))


def key_header(key: str) -> dict:
    """Build the API key header dict."""
    return {"X-API-Key": key}


def random_reading() -> dict:
    """A valid reading payload from one of a handful of sensors."""
    return {
        "sensor_id": f"sensor-{random.randint(0, 49):03d}",
        "value": round(random.uniform(-50.0, 150.0), 2),
        "unit": random.choice(SENSOR_UNITS),
    }
