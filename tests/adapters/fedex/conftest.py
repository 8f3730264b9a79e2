"""Shared fixtures for FedEx adapter tests."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from shipsync.config.fedex import FedExConfig
from shipsync.config.http_resilience import ResilienceConfig

FedExPayload = dict[str, Any]
FIXTURES = Path(__file__).resolve().parents[2] / "data" / "fedex"
BASE_URL = "https://fedex.test"


def _load_fixture(name: str) -> FedExPayload:
    return json.loads((FIXTURES / name).read_text())


@pytest.fixture
def delivered_payload() -> FedExPayload:
    return _load_fixture("track_delivered.json")


@pytest.fixture
def not_found_payload() -> FedExPayload:
    return _load_fixture("track_not_found.json")


@pytest.fixture
def fedex_config() -> FedExConfig:
    return FedExConfig(
        client_id="client-id",
        client_secret="client-secret",
        resilience=ResilienceConfig(name="fedex-test", base_url=BASE_URL, timeout_seconds=1.0),
    )
