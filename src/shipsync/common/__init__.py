from __future__ import annotations

from .retry import BackoffPolicy, retry_with_backoff

__all__ = ["BackoffPolicy", "retry_with_backoff"]
