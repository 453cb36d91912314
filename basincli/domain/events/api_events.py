"""Domain Events related to API calls and resilience.

Examples include events for when calls are issued, retried, fail, or succeed,
and for when the cached credential is refreshed after a 401.
"""

from dataclasses import dataclass, field
import time
from typing import Optional


@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass


# --- Specific API Events ---

@dataclass
class RequestIssued(DomainEvent):
    """Event triggered when an HTTP attempt is about to be sent."""
    method: str
    endpoint: str
    attempt: int = 1
    timestamp: float = field(default_factory=time.time)


@dataclass
class RequestSucceeded(DomainEvent):
    """Event triggered when an attempt returns a 2xx response."""
    method: str
    endpoint: str
    status_code: int
    latency_ms: float
    timestamp: float = field(default_factory=time.time)


@dataclass
class RequestFailed(DomainEvent):
    """Event triggered when a call fails definitively (after retries)."""
    method: str
    endpoint: str
    error_type: str
    error_message: str
    status_code: Optional[int] = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class RetryScheduled(DomainEvent):
    """Event triggered when a transport failure is retried."""
    endpoint: str
    attempt_number: int
    delay_seconds: float
    timestamp: float = field(default_factory=time.time)


@dataclass
class CredentialRefreshed(DomainEvent):
    """Event triggered when a 401 forces the credential to be re-resolved."""
    endpoint: str
    timestamp: float = field(default_factory=time.time)
