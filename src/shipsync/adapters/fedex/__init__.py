"""Public interface for the FedEx adapter."""

from __future__ import annotations

from .client import AccessToken, FedExClient
from .schema import TrackingResponse, TrackResult
from .translator import translate_response, translate_track_result

__all__ = [
    "AccessToken",
    "FedExClient",
    "TrackResult",
    "TrackingResponse",
    "translate_response",
    "translate_track_result",
]
