"""Prometheus metric inventory.

Every metric the service exports is declared here; the owning modules
import and update them at the point of action.  Scraped from /metrics.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    # whoisthis fans out to two upstreams, so the upper buckets matter
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Token lifecycle
# ---------------------------------------------------------------------------

TOKENS_ISSUED = Counter(
    "tokens_issued_total",
    "Tokens signed and recorded in the ledger",
    ["expires_in"],  # bounded enum; service names are caller-controlled
)

TOKENS_REVOKED = Counter(
    "tokens_revoked_total",
    "Ledger rows matched by revocation requests",
    ["scope"],  # token|service|creator
)

TOKEN_VERIFICATIONS = Counter(
    "token_verifications_total",
    "Token verification outcomes",
    ["result"],  # valid|expired|invalid|revoked
)

# ---------------------------------------------------------------------------
# Upstream collaborators
# ---------------------------------------------------------------------------

UPSTREAM_REQUESTS = Counter(
    "upstream_requests_total",
    "Calls to external collaborators by outcome",
    ["upstream", "outcome"],  # upstream: secret|permission|identity
)

UPSTREAM_DURATION = Histogram(
    "upstream_request_duration_seconds",
    "Latency of calls to external collaborators",
    ["upstream"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

SECRET_CACHE_OPERATIONS = Counter(
    "secret_cache_operations_total",
    "Signing secret cache lookups by result",
    ["operation"],  # hit|miss
)
