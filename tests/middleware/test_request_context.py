"""Tests for the request context middleware and log filter."""

from __future__ import annotations

import logging
import uuid

import pytest
from fastapi.testclient import TestClient

from tests.conftest import actor_headers, generate_token
from token_authority.middleware.request_context import (
    _RequestContextFilter,
    actor_var,
    request_id_var,
)


def test_request_id_generated_when_not_provided(client: TestClient) -> None:
    resp = client.get("/health")
    uuid.UUID(resp.headers["x-request-id"])


def test_request_id_echoed_when_provided(client: TestClient) -> None:
    resp = client.get("/health", headers={"X-Request-ID": "gw-req-123"})
    assert resp.headers.get("x-request-id") == "gw-req-123"


def test_request_id_present_on_error_responses(client: TestClient) -> None:
    resp = client.post("/api/v1/token/search")
    assert resp.status_code == 401
    assert resp.headers.get("x-request-id") is not None


def test_completion_line_carries_request_context(
    client: TestClient, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(logging.INFO, logger="token_authority.middleware.request_context"):
        client.post(
            "/api/v1/token/search",
            headers={**actor_headers(), "X-Request-ID": "req-ctx-1"},
        )

    [record] = [r for r in caplog.records if getattr(r, "path", None) == "/api/v1/token/search"]
    assert record.request_id == "req-ctx-1"  # type: ignore[attr-defined]
    assert record.method == "POST"  # type: ignore[attr-defined]
    assert record.status_code == 200  # type: ignore[attr-defined]


def test_service_logs_carry_the_actor(
    client: TestClient, caplog: pytest.LogCaptureFixture
) -> None:
    caplog.handler.addFilter(_RequestContextFilter())
    with caplog.at_level(logging.INFO, logger="token_authority.services.token_authority"):
        generate_token(client, actor="Carol")

    [record] = [r for r in caplog.records if r.getMessage().startswith("Token issued")]
    assert record.actor == "carol"  # type: ignore[attr-defined]


def test_filter_defaults_outside_a_request() -> None:
    record = logging.LogRecord("t", logging.INFO, "x.py", 1, "msg", (), None)
    token_req = request_id_var.set("-")
    token_actor = actor_var.set("-")
    try:
        _RequestContextFilter().filter(record)
    finally:
        request_id_var.reset(token_req)
        actor_var.reset(token_actor)
    assert record.request_id == "-"  # type: ignore[attr-defined]
    assert record.actor == "-"  # type: ignore[attr-defined]
