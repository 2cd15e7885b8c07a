"""
Tests for structured logging, middleware and the application shell.
"""

import json
import logging

import httpx
import pytest

from slo_r.core import (
    ApplicationException,
    NerdGraphException,
    ResourceNotFoundException,
    StorageMutationFailed,
    ValidationException,
)
from slo_r.main import app
from slo_r.shared.api.middleware import status_for
from slo_r.shared.infrastructure.logging import CustomJsonFormatter, correlation_id_var


def _format(**extra):
    formatter = CustomJsonFormatter(fmt="%(name)s %(levelname)s %(message)s", environment="staging")
    record = logging.LogRecord("slo_r.test", logging.INFO, __file__, 1, "hello", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return json.loads(formatter.format(record))


def test_formatter_adds_context():
    payload = _format(correlation_id="abc", rows=3)

    assert payload["message"] == "hello"
    assert payload["environment"] == "staging"
    assert payload["correlation_id"] == "abc"
    assert payload["rows"] == 3
    assert "timestamp" in payload


def test_formatter_redacts_credentials():
    payload = _format(new_relic_api_key="NRAK-SECRET", access_token="t0k", entity_guid="g1")

    assert payload["new_relic_api_key"] == "***REDACTED***"
    assert payload["access_token"] == "***REDACTED***"
    assert payload["entity_guid"] == "g1"


@pytest.mark.asyncio
async def test_health_before_startup_and_correlation_id():
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        health = await client.get("/health", headers={"X-Correlation-ID": "req-1"})
        root = await client.get("/")

    assert health.status_code == 200
    assert health.json()["checks"] == {"slo_list": "not_initialized"}
    assert health.headers["X-Correlation-ID"] == "req-1"
    assert root.json()["modules"]["slo"]["prefix"] == "/slo"


def test_formatter_reads_request_correlation_id():
    token = correlation_id_var.set("req-9")
    try:
        payload = _format()
    finally:
        correlation_id_var.reset(token)

    assert payload["correlation_id"] == "req-9"
    assert "correlation_id" not in _format()


def test_status_for_application_exceptions():
    assert status_for(ResourceNotFoundException("SLO document", "a")) == 404
    assert status_for(ValidationException("nothing pending")) == 409
    assert status_for(NerdGraphException("timeout")) == 502
    assert status_for(StorageMutationFailed("g1", "a")) == 502
    assert status_for(ApplicationException("boom")) == 500
