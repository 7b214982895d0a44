"""Tests for JSON logging with secret masking and request correlation."""

from __future__ import annotations

import json
import logging

from replenish.core.logging import JsonFormatter, get_request_id, mask, set_request_id


def _format(msg, **extra):
    record = logging.LogRecord("replenish.test", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return json.loads(JsonFormatter().format(record))


def test_payload_is_json_with_request_id():
    set_request_id("req-1")

    payload = _format("buffers_recalc_completed", org_id="org-1", updated=3)

    assert payload["msg"] == "buffers_recalc_completed"
    assert payload["level"] == "INFO"
    assert payload["request_id"] == "req-1"
    assert payload["extra"] == {"org_id": "org-1", "updated": 3}


def test_sensitive_keys_and_long_secrets_are_masked():
    payload = _format(
        "connecting with key " + "k" * 40,
        api_key="plain-key",
        database_url="postgresql://user:secret@db/replenish",
    )

    assert "k" * 40 not in payload["msg"]
    assert payload["extra"]["api_key"] == "***"
    assert payload["extra"]["database_url"] == "***"


def test_url_passwords_are_masked_in_values():
    payload = _format("db", target="postgresql://user:hunter2@db:5432/replenish")
    assert "hunter2" not in payload["extra"]["target"]


def test_generated_request_id():
    rid = set_request_id()
    assert rid
    assert get_request_id() == rid


def test_blank_request_id_header_gets_a_fresh_id():
    assert set_request_id("   ") != "   "


def test_errors_carry_location_and_service():
    record = logging.LogRecord("replenish.test", logging.ERROR, __file__, 7, "boom", None, None)
    payload = json.loads(JsonFormatter().format(record))

    assert payload["service"] == "replenish"
    assert payload["where"].endswith(":7")


def test_mask_recurses_into_containers():
    masked = mask({"items": [{"password": "p"}, "Bearer abcdefghijklmnop"]})
    assert masked == {"items": [{"password": "***"}, "Bearer ***"]}
