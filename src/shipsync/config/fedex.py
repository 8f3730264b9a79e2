"""FedEx Track API configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_int_env_var, require_env_vars
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy

FEDEX_TIMEOUT_SECONDS = 10.0
FEDEX_CONNECT_TIMEOUT_SECONDS = 5.0
FEDEX_REQUESTS_PER_SECOND = 10
FEDEX_TRACKING_ENDPOINT = "/track/v1/trackingnumbers"
FEDEX_AUTHENTICATION_ENDPOINT = "/oauth/token"
FEDEX_LOCALE = "en_US"


@dataclass(frozen=True, slots=True)
class FedExConfig:
    """Holds FedEx API credentials and transport settings."""

    client_id: str
    client_secret: str
    resilience: ResilienceConfig
    tracking_endpoint: str = FEDEX_TRACKING_ENDPOINT
    authentication_endpoint: str = FEDEX_AUTHENTICATION_ENDPOINT


def get_fedex_config(*, resilience: ResilienceConfig | None = None) -> FedExConfig:
    values = require_env_vars(("FEDEX_CLIENT_ID", "FEDEX_CLIENT_SECRET", "FEDEX_API_URL"))
    requests_per_second = optional_int_env_var(
        "FEDEX_REQUESTS_PER_SECOND", FEDEX_REQUESTS_PER_SECOND, minimum=1
    )
    return FedExConfig(
        client_id=values["FEDEX_CLIENT_ID"],
        client_secret=values["FEDEX_CLIENT_SECRET"],
        resilience=resilience
        or ResilienceConfig(
            name="fedex",
            base_url=values["FEDEX_API_URL"].rstrip("/"),
            timeout_seconds=FEDEX_TIMEOUT_SECONDS,
            connect_timeout_seconds=FEDEX_CONNECT_TIMEOUT_SECONDS,
            # Whole lookups are retried by the reconciliation engine.
            retry=RetryPolicy(attempts=1),
            ratelimit=RateLimit(max_calls=requests_per_second),
            headers={"X-locale": FEDEX_LOCALE},
        ),
    )
